"""Per-test configuration written as TOML inside a function's doc comment.

.. code-block:: c

    // [settings]
    // run = false
    //
    // [compiler]
    // flags = "-O2 -Wall"
    // append = { libraries = "-lm" }
    //
    // commands = ["make fixtures"]
    int cesty_sum_test(void) { ... }
"""

import re
import tomllib
from typing import Any, NoReturn

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cesty.core.diagnostics import AlertCategory, AlertEvidence, AlertFix, fail

CONFIG_ERROR_DESCRIPTION = "failed to parse TOML from comment into a test configuration"

_LOCATION_SUFFIX = re.compile(r"\s*\(at (?:line (\d+), column (\d+)|end of document)\)\s*$")


def _tokenize(value: Any) -> Any:
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return [token for item in value for token in item.split()]
    return value


class CompilerAppend(BaseModel):
    flags: list[str] = Field(default_factory=list)
    libraries: list[str] = Field(default_factory=list)

    @field_validator("flags", "libraries", mode="before")
    @classmethod
    def split_tokens(cls, value: Any) -> Any:
        return _tokenize(value)


class CompilerReplaceItem(BaseModel):
    """``old`` is a literal flag or a regular expression, ``new`` its replacement."""

    old: str
    new: str


class CompilerReplace(BaseModel):
    flag: list[CompilerReplaceItem] = Field(default_factory=list)
    library: list[CompilerReplaceItem] = Field(default_factory=list)


class CompilerOverride(BaseModel):
    name: str | None = None
    flags: list[str] = Field(default_factory=list)
    libraries: list[str] = Field(default_factory=list)
    append: CompilerAppend | None = None
    replace: CompilerReplace | None = None

    @field_validator("flags", "libraries", mode="before")
    @classmethod
    def split_tokens(cls, value: Any) -> Any:
        return _tokenize(value)


class Settings(BaseModel):
    run: bool = True
    stdout: bool = False
    stdin: bool = False


class TestConfig(BaseModel):
    __test__ = False

    settings: Settings = Field(default_factory=Settings)
    compiler: CompilerOverride = Field(default_factory=CompilerOverride)
    commands: list[str] = Field(default_factory=list)


class ConfigLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Comment content with markers stripped.
    content: str
    # Full original file line the content came from.
    source: str
    # 1-based file line.
    line: int = Field(ge=1)
    # 0-based character column of ``content`` within ``source``.
    column: int = Field(ge=0)


class ConfigText(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    lines: tuple[ConfigLine, ...] = ()

    @property
    def document(self) -> str:
        return "\n".join(line.content for line in self.lines)

    def __len__(self) -> int:
        return len(self.lines)


def _error_offset(err: tomllib.TOMLDecodeError, document: str) -> int | None:
    pos = getattr(err, "pos", None)
    if isinstance(pos, int):
        return pos

    match = _LOCATION_SUFFIX.search(str(err))
    if match is None:
        return None
    if match.group(1) is None:
        return len(document)

    line, column = int(match.group(1)), int(match.group(2))
    offset = 0
    for _ in range(line - 1):
        newline = document.find("\n", offset)
        if newline == -1:
            return None
        offset = newline + 1
    return offset + column - 1


def _error_message(err: tomllib.TOMLDecodeError) -> str:
    message = getattr(err, "msg", None)
    if not isinstance(message, str):
        message = _LOCATION_SUFFIX.sub("", str(err))
    return " ".join(message.split())


def _raise_decode_error(err: tomllib.TOMLDecodeError, config_text: ConfigText) -> NoReturn:
    document = config_text.document
    message = _error_message(err)
    offset = _error_offset(err, document)

    if offset is None or not config_text.lines:
        raise fail(
            AlertCategory.CONFIG,
            CONFIG_ERROR_DESCRIPTION,
            notes=["no error location was recovered, here is the parser message:", message],
        ) from None

    offset = min(offset, len(document))
    index = min(document.count("\n", 0, offset), len(config_text.lines) - 1)
    line_start = document.rfind("\n", 0, offset) + 1
    origin = config_text.lines[index]
    column = origin.column + (offset - line_start) + 1

    raise fail(
        AlertCategory.CONFIG,
        CONFIG_ERROR_DESCRIPTION,
        evidence=AlertEvidence(
            path=config_text.path,
            line=origin.line,
            code=origin.source,
            fixes=[AlertFix(column=column, comment=f"{message} on line {origin.line}, column {column}.")],
        ),
    ) from None


def _validation_notes(err: ValidationError) -> list[str]:
    notes = []
    for item in err.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        notes.append(f"`{location}`: {item['msg']}")
    return notes


def parse_config(config_text: ConfigText | None) -> TestConfig:
    """Deserialize the logical comment text of one function."""
    if config_text is None:
        return TestConfig()

    try:
        table = tomllib.loads(config_text.document)
    except tomllib.TOMLDecodeError as err:
        _raise_decode_error(err, config_text)

    try:
        return TestConfig.model_validate(table)
    except ValidationError as err:
        first = config_text.lines[0] if config_text.lines else None
        raise fail(
            AlertCategory.CONFIG,
            CONFIG_ERROR_DESCRIPTION,
            notes=[
                f"the comment starting on line {first.line if first else '?'} of `{config_text.path}` "
                "has invalid values:",
                *_validation_notes(err),
            ],
        ) from None
