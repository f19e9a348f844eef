from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cesty.core.config import TestConfig


class SourcePosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=1)
    column: int = Field(ge=1)
    offset: int = Field(ge=0)


class ByteRange(BaseModel):
    """Half-open ``[start, end)`` span over the bytes of a file."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "ByteRange":
        if self.end < self.start:
            raise ValueError(f"range end {self.end} lies before its start {self.start}")
        return self

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, other: "ByteRange") -> bool:
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: "ByteRange") -> bool:
        return self.start < other.end and other.start < self.end


class FunctionSignature(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    # Name without the test prefix, empty for the entry point.
    suffix: str = ""
    returns: str
    args: list[str] = Field(default_factory=list)


class TestRanges(BaseModel):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    template: ByteRange
    body: ByteRange


class ParsedTest(BaseModel):
    config: TestConfig = Field(default_factory=TestConfig)
    function: FunctionSignature
    ranges: TestRanges
    position: SourcePosition


class ModificationKind(str, Enum):
    NEUTRALIZE_BODY = "neutralize-body"
    REMOVE_ENTRY_POINT = "remove-entry-point"


class Modification(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ModificationKind
    range: ByteRange

    @property
    def replacement(self) -> bytes:
        match self.kind:
            case ModificationKind.NEUTRALIZE_BODY:
                return b";"
            case ModificationKind.REMOVE_ENTRY_POINT:
                return b""


class Environment(BaseModel):
    """The three textual views a test program can be hosted in."""

    model_config = ConfigDict(frozen=True)

    full: str = ""
    mainless: str = ""
    templated: str = ""


class ParsedFile(BaseModel):
    path: Path
    stem: str
    tests: list[ParsedTest] = Field(default_factory=list)
    main: ParsedTest | None = None
    environment: Environment = Field(default_factory=Environment)

    def test_file_stem(self, test: ParsedTest) -> str:
        return f"{self.stem}_{test.function.suffix}"

    def find_test(self, name: str) -> ParsedTest | None:
        for test in self.tests:
            if name in (test.function.name, test.function.suffix):
                return test
        return None
