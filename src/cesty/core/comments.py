"""Recover the TOML text hidden in a function's documentation comment.

A doc comment may freely mix ``//`` runs and ``/* */`` blocks. Every form
below yields the same three logical lines ``a``, ``b``, ``c``::

    // a              /**               /*a
    // b               * a              b
    // c               * b              c*/
                       * c
                       */

Each kept line remembers the file line and column its content starts at, so
a TOML error can be reported against the original file.
"""

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cesty.core.config import ConfigLine, ConfigText
from cesty.core.cursor import DocComment, FunctionCursor
from cesty.core.diagnostics import AlertCategory, AlertEvidence, AlertFix, ExtractionError, fail

logger = logging.getLogger(__name__)


class CommentVariant(str, Enum):
    LINE = "line"
    BLOCK = "block"

    @property
    def opening(self) -> str:
        match self:
            case CommentVariant.LINE:
                return "//"
            case CommentVariant.BLOCK:
                return "/*"

    @property
    def closing(self) -> str | None:
        match self:
            case CommentVariant.LINE:
                return None
            case CommentVariant.BLOCK:
                return "*/"

    @property
    def filler(self) -> str:
        """Characters repeated after the marker that carry no content."""
        match self:
            case CommentVariant.LINE:
                return "/"
            case CommentVariant.BLOCK:
                return "*"

    def describe(self) -> str:
        if self.closing is None:
            return f"{self.value} comment with mark `{self.opening}`"
        return f"{self.value} comment with opening delimiter `{self.opening}` and closing delimiter `{self.closing}`"


# Priority order in which the variants are tried.
COMMENT_VARIANTS = (CommentVariant.LINE, CommentVariant.BLOCK)


class CommentSegment(BaseModel):
    """Part of one physical file line that belongs to a comment slice."""

    model_config = ConfigDict(frozen=True)

    text: str
    line: int = Field(ge=1)
    # 0-based character column of ``text`` in the file line.
    column: int = Field(ge=0)


class CommentSlice(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: CommentVariant
    segments: tuple[CommentSegment, ...]

    @property
    def text(self) -> str:
        return "\n".join(segment.text for segment in self.segments)


class _Reader:
    """Walks the physical lines of a raw comment keeping file coordinates."""

    def __init__(self, comment: DocComment) -> None:
        self.lines = comment.text.split("\n")
        self.first_line = comment.position.line
        self.first_column = comment.position.column - 1
        self.row = 0
        self.col = 0

    def coordinates(self, row: int, col: int) -> tuple[int, int]:
        base = self.first_column if row == 0 else 0
        return self.first_line + row, base + col

    def skip_whitespace(self) -> bool:
        """Advance to the next non-blank character, False when exhausted."""
        while self.row < len(self.lines):
            line = self.lines[self.row]
            while self.col < len(line) and line[self.col].isspace():
                self.col += 1
            if self.col < len(line):
                return True
            self.row += 1
            self.col = 0
        return False

    def rest(self) -> str:
        return self.lines[self.row][self.col :]

    def segment(self, row: int, start: int, end: int | None = None) -> CommentSegment:
        line, column = self.coordinates(row, start)
        text = self.lines[row][start:end]
        return CommentSegment(text=text, line=line, column=column)


def _read_line_comments(reader: _Reader) -> CommentSlice:
    segments = [reader.segment(reader.row, reader.col)]
    reader.row += 1
    reader.col = 0
    while reader.row < len(reader.lines):
        line = reader.lines[reader.row]
        stripped = line.lstrip()
        if not stripped.startswith(CommentVariant.LINE.opening):
            break
        segments.append(reader.segment(reader.row, len(line) - len(stripped)))
        reader.row += 1
    return CommentSlice(variant=CommentVariant.LINE, segments=tuple(segments))


def _read_block_comment(reader: _Reader, cursor: FunctionCursor) -> CommentSlice:
    variant = CommentVariant.BLOCK
    closing = variant.closing or ""
    open_row, open_col = reader.row, reader.col
    search_from = open_col + len(variant.opening)

    row = open_row
    while row < len(reader.lines):
        position = reader.lines[row].find(closing, search_from if row == open_row else 0)
        if position != -1:
            break
        row += 1
    else:
        open_line, _ = reader.coordinates(open_row, open_col)
        raise fail(
            AlertCategory.COMMENT_SYNTAX,
            f"block comment is missing closing delimiter `{closing}`",
            notes=[f"the block comment opened on line {open_line} is never closed with `{closing}`"],
            evidence=AlertEvidence(
                path=cursor.path,
                line=cursor.name_position.line,
                code=cursor.declaration_line(),
                fixes=[
                    AlertFix(
                        column=cursor.name_position.column,
                        comment=(
                            "this function has a block comment above it that doesn't have "
                            f"a closing `{closing}` delimiter"
                        ),
                    )
                ],
            ),
        )

    segments = []
    for current in range(open_row, row + 1):
        start = search_from if current == open_row else 0
        end = position if current == row else None
        segments.append(reader.segment(current, start, end))

    reader.row, reader.col = row, position + len(closing)
    return CommentSlice(variant=variant, segments=tuple(segments))


def _unrecognized(cursor: FunctionCursor) -> ExtractionError:
    return fail(
        AlertCategory.COMMENT_SYNTAX,
        "unrecognized comment form",
        notes=[
            "supported comment variants are:",
            *(variant.describe() for variant in COMMENT_VARIANTS),
        ],
        evidence=AlertEvidence(
            path=cursor.path,
            line=cursor.name_position.line,
            code=cursor.declaration_line(),
            fixes=[
                AlertFix(
                    column=cursor.name_position.column,
                    comment="this function has a comment above it in a form that was not recognized",
                )
            ],
        ),
    )


def comment_slices(comment: DocComment, cursor: FunctionCursor) -> list[CommentSlice]:
    """Split a raw doc comment into its line and block comment slices."""
    reader = _Reader(comment)
    slices: list[CommentSlice] = []

    while reader.skip_whitespace():
        rest = reader.rest()
        for variant in COMMENT_VARIANTS:
            if not rest.startswith(variant.opening):
                continue
            match variant:
                case CommentVariant.LINE:
                    slices.append(_read_line_comments(reader))
                case CommentVariant.BLOCK:
                    slices.append(_read_block_comment(reader, cursor))
            break
        else:
            raise _unrecognized(cursor)

    return slices


def _content_start(text: str, filler: str) -> int | None:
    for index, ch in enumerate(text):
        if ch not in filler and not ch.isspace():
            return index
    return None


def _strip_marker(segment: CommentSegment, variant: CommentVariant) -> tuple[int, str] | None:
    text = segment.text
    if variant is CommentVariant.LINE:
        text = text[len(variant.opening) :]
        offset = len(variant.opening)
    else:
        offset = 0
    start = _content_start(text, variant.filler)
    if start is None:
        return None
    return segment.column + offset + start, text[start:].rstrip()


def config_lines(slices: list[CommentSlice], cursor: FunctionCursor) -> list[ConfigLine]:
    source = cursor.unit.source
    lines = []
    for comment_slice in slices:
        for segment in comment_slice.segments:
            stripped = _strip_marker(segment, comment_slice.variant)
            if stripped is None:
                # Blank or separator line such as `//////` or ` * `.
                continue
            column, content = stripped
            lines.append(ConfigLine(content=content, source=source.line(segment.line), line=segment.line, column=column))
    return lines


def extract_config_text(cursor: FunctionCursor) -> ConfigText | None:
    """Logical configuration text of ``cursor``'s doc comment, if it has one."""
    comment = cursor.doc_comment()
    if comment is None:
        return None

    slices = comment_slices(comment, cursor)
    lines = config_lines(slices, cursor)
    logger.debug(
        "Function %s: %d comment slice(s), %d config line(s)",
        cursor.name,
        len(slices),
        len(lines),
    )
    return ConfigText(path=cursor.path, lines=tuple(lines))
