import bisect
import logging
from pathlib import Path
from typing import cast

from tree_sitter import Node, Tree
from tree_sitter_language_pack import SupportedLanguage, get_parser

from cesty.core.diagnostics import AlertCategory, fail
from cesty.core.languages import detect_language_from_path, normalize_language
from cesty.models import ByteRange, SourcePosition

logger = logging.getLogger(__name__)


class SourceText:
    """Raw bytes of a file plus line bookkeeping for position lookups."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.text = data.decode("utf-8")
        self._line_starts = [0]
        for index, byte in enumerate(data):
            if byte == 0x0A:
                self._line_starts.append(index + 1)

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def position(self, offset: int) -> SourcePosition:
        offset = max(0, min(offset, len(self.data)))
        row = bisect.bisect_right(self._line_starts, offset) - 1
        prefix = self.data[self._line_starts[row] : offset]
        column = len(prefix.decode("utf-8", errors="replace")) + 1
        return SourcePosition(line=row + 1, column=column, offset=offset)

    def line(self, number: int) -> str:
        """Text of the 1-based line ``number`` without its line break."""
        if not 1 <= number <= self.line_count:
            return ""
        start = self._line_starts[number - 1]
        end = self._line_starts[number] if number < self.line_count else len(self.data)
        return self.data[start:end].decode("utf-8").rstrip("\r\n")

    def slice(self, span: ByteRange) -> str:
        return self.data[span.start : span.end].decode("utf-8")


class TranslationUnit:
    """A parsed C file: path, source text and the tree-sitter syntax tree."""

    def __init__(self, path: Path, source: SourceText, tree: Tree, parse_comments: bool = True) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self.parse_comments = parse_comments

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @classmethod
    def from_source(
        cls,
        source_bytes: bytes,
        path: str | Path,
        language: str = "c",
        parse_comments: bool = True,
    ) -> "TranslationUnit":
        try:
            source = SourceText(source_bytes)
        except UnicodeDecodeError as exc:
            raise fail(
                AlertCategory.IO,
                f"failed to decode `{path}` as UTF-8",
                notes=[f"byte {exc.start} is not valid UTF-8: {exc.reason}"],
            ) from None

        parser = get_parser(cast(SupportedLanguage, normalize_language(language)))
        tree = parser.parse(source_bytes)
        if tree.root_node.has_error:
            logger.debug("Syntax errors while parsing %s, continuing with partial tree", path)
        return cls(Path(path), source, tree, parse_comments=parse_comments)

    @classmethod
    def open(cls, path: str | Path, language: str | None = None, parse_comments: bool = True) -> "TranslationUnit":
        file_path = Path(path)
        try:
            resolved_language = normalize_language(language) if language else detect_language_from_path(file_path)
        except ValueError as exc:
            raise fail(AlertCategory.IO, f"unsupported source file `{path}`", notes=[str(exc)]) from None

        try:
            source_bytes = file_path.read_bytes()
        except OSError as exc:
            raise fail(
                AlertCategory.IO,
                f"failed to read `{path}`",
                notes=[f"read_bytes() returned the following message: {exc.strerror or exc}"],
            ) from None

        return cls.from_source(source_bytes, file_path, resolved_language, parse_comments=parse_comments)

    def position(self, node: Node) -> SourcePosition:
        return self.source.position(node.start_byte)

    def extent(self, node: Node) -> ByteRange:
        return ByteRange(start=node.start_byte, end=node.end_byte)

    def text(self, node: Node) -> str:
        return self.source.data[node.start_byte : node.end_byte].decode("utf-8")
