import os

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_FUNCTION_PREFIX = "cesty_"
DEFAULT_ENTRY_POINT = "main"

_FALSE_VALUES = {"0", "false", "no", "off"}


class ExtractorSettings(BaseModel):
    """Naming rules used while walking a file, built once per run."""

    model_config = ConfigDict(frozen=True)

    function_prefix: str = Field(default=DEFAULT_FUNCTION_PREFIX, min_length=1)
    entry_point: str = Field(default=DEFAULT_ENTRY_POINT, min_length=1)
    parse_comments: bool = True

    @classmethod
    def from_env(cls) -> "ExtractorSettings":
        parse_comments = os.getenv("CESTY_PARSE_COMMENTS", "1").strip().lower() not in _FALSE_VALUES
        return cls(
            function_prefix=os.getenv("CESTY_FUNCTION_PREFIX", DEFAULT_FUNCTION_PREFIX),
            entry_point=os.getenv("CESTY_ENTRY_POINT", DEFAULT_ENTRY_POINT),
            parse_comments=parse_comments,
        )
