import re

from pydantic import BaseModel, ConfigDict
from tree_sitter import Node

from cesty.core.diagnostics import AlertCategory, fail
from cesty.core.parser import TranslationUnit
from cesty.models import ByteRange, FunctionSignature, SourcePosition

FUNCTION_DEFINITION = "function_definition"

_DECLARATOR_WRAPPERS = {
    "pointer_declarator",
    "parenthesized_declarator",
    "attributed_declarator",
    "array_declarator",
    "function_declarator",
}
_SPECIFIER_TYPES = {
    "type_qualifier",
    "primitive_type",
    "sized_type_specifier",
    "type_identifier",
    "struct_specifier",
    "enum_specifier",
    "union_specifier",
    "macro_type_specifier",
}
# Items that still end cleanly when they sit inside a parse error.
_COMPLETE_ITEMS = {FUNCTION_DEFINITION, "declaration", "type_definition", "preproc_include", "preproc_def"}
_SPACE_BEFORE_CLOSE = re.compile(r"\s+([)\]])")
_SPACE_AFTER_OPEN = re.compile(r"([(\[])\s+")


class DocComment(BaseModel):
    """Raw documentation comment attached to a function."""

    model_config = ConfigDict(frozen=True)

    text: str
    range: ByteRange
    position: SourcePosition


def _collapse(text: str) -> str:
    text = " ".join(text.split())
    text = _SPACE_BEFORE_CLOSE.sub(r"\1", text)
    return _SPACE_AFTER_OPEN.sub(r"\1", text)


def _unterminated_block_comment(data: bytes, start: int, end: int) -> int | None:
    """Offset of a ``/*`` in ``data[start:end]`` that is never closed there."""
    index = start
    while index < end - 1:
        pair = data[index : index + 2]
        if pair == b"//":
            newline = data.find(b"\n", index, end)
            if newline == -1:
                return None
            index = newline + 1
        elif pair == b"/*":
            closing = data.find(b"*/", index + 2, end)
            if closing == -1:
                return index
            index = closing + 2
        else:
            index += 1
    return None


def _declarator_identifier(node: Node | None) -> Node | None:
    while node is not None:
        if node.type in ("identifier", "field_identifier"):
            return node
        if node.type not in _DECLARATOR_WRAPPERS:
            return None
        inner = node.child_by_field_name("declarator")
        if inner is None:
            inner = next((child for child in node.named_children if child.type != "attribute_specifier"), None)
        node = inner
    return None


class FunctionCursor:
    """A function definition node together with the unit it was parsed from."""

    def __init__(self, node: Node, unit: TranslationUnit) -> None:
        if node.type != FUNCTION_DEFINITION:
            raise fail(
                AlertCategory.STRUCTURAL,
                "invalid syntax node kind as argument",
                notes=[f"expected a `{FUNCTION_DEFINITION}` node, received `{node.type}`."],
            )
        self.node = node
        self.unit = unit

    @property
    def path(self) -> str:
        return str(self.unit.path)

    @property
    def body(self) -> Node | None:
        return self.node.child_by_field_name("body")

    @property
    def function_declarator(self) -> Node | None:
        node = self.node.child_by_field_name("declarator")
        while node is not None and node.type != "function_declarator":
            if node.type not in _DECLARATOR_WRAPPERS:
                return None
            node = node.child_by_field_name("declarator") or next(iter(node.named_children), None)
        return node

    @property
    def name_node(self) -> Node | None:
        declarator = self.function_declarator
        if declarator is None:
            return None
        return _declarator_identifier(declarator.child_by_field_name("declarator"))

    @property
    def name(self) -> str | None:
        node = self.name_node
        return self.unit.text(node).strip() if node is not None else None

    @property
    def start_byte(self) -> int:
        """First byte of the declaration, skipping leading parse error nodes."""
        for child in self.node.children:
            if child.type != "ERROR":
                return child.start_byte
        return self.node.start_byte

    @property
    def position(self) -> SourcePosition:
        """Start of the whole definition, return type included."""
        return self.unit.source.position(self.start_byte)

    @property
    def name_position(self) -> SourcePosition:
        node = self.name_node
        if node is None:
            return self.position
        return self.unit.position(node)

    @property
    def extent(self) -> ByteRange:
        return ByteRange(start=self.start_byte, end=self.node.end_byte)

    def declaration_line(self) -> str:
        """Source line holding the function name."""
        return self.unit.source.line(self.name_position.line)

    def _preceding_end(self) -> int:
        node = self.node
        while True:
            recovering = node.parent is not None and node.parent.type == "ERROR"
            sibling = node.prev_sibling
            while sibling is not None and (
                sibling.type in ("comment", "ERROR") or (recovering and sibling.type not in _COMPLETE_ITEMS)
            ):
                sibling = sibling.prev_sibling
            if sibling is not None:
                return sibling.end_byte
            if not recovering:
                return node.parent.start_byte if node.parent is not None else 0
            # inside a parse error, look before the error node itself
            node = node.parent

    def _raw_comment(self, start: int, end: int) -> DocComment:
        span = ByteRange(start=start, end=end)
        return DocComment(
            text=self.unit.source.slice(span),
            range=span,
            position=self.unit.source.position(start),
        )

    def doc_comment(self) -> DocComment | None:
        """Comment nodes above the definition, merged into one block.

        Blank lines may separate the block from the function, but not two
        comments of the same block. A comment trailing code is not attached.
        A ``/*`` left open before the definition is returned as is so the
        comment reader reports it.
        """
        if not self.unit.parse_comments:
            return None

        data = self.unit.source.data
        start = self.start_byte
        unterminated = _unterminated_block_comment(data, self._preceding_end(), start)
        if unterminated is not None:
            end = start
            while end > unterminated and data[end - 1 : end].isspace():
                end -= 1
            return self._raw_comment(unterminated, end)

        comments: list[Node] = []
        boundary = self.node.start_byte
        sibling = self.node.prev_sibling
        while sibling is not None and sibling.type == "comment":
            gap = data[sibling.end_byte : boundary]
            if gap.strip() or (comments and gap.count(b"\n") > 1):
                break
            comments.append(sibling)
            boundary = sibling.start_byte
            sibling = sibling.prev_sibling

        while comments:
            first = comments[-1]
            line_start = data.rfind(b"\n", 0, first.start_byte) + 1
            if not data[line_start : first.start_byte].strip():
                break
            comments.pop()

        if not comments:
            return None
        return self._raw_comment(comments[-1].start_byte, comments[0].end_byte)

    def return_type(self) -> str:
        specifiers = [
            self.unit.text(child) for child in self.node.children if child.type in _SPECIFIER_TYPES
        ]
        base = " ".join(specifiers) or "int"

        levels = []
        node = self.node.child_by_field_name("declarator")
        while node is not None and node.type != "function_declarator":
            if node.type == "pointer_declarator":
                qualifiers = [self.unit.text(child) for child in node.named_children if child.type == "type_qualifier"]
                levels.append("*" + " ".join(qualifiers))
            elif node.type not in _DECLARATOR_WRAPPERS:
                break
            node = node.child_by_field_name("declarator") or next(iter(node.named_children), None)

        if not levels:
            return _collapse(base)
        return _collapse(f"{base} {''.join(levels)}")

    def parameter_types(self) -> list[str]:
        declarator = self.function_declarator
        parameters = declarator.child_by_field_name("parameters") if declarator is not None else None
        if parameters is None:
            return []

        types = []
        for child in parameters.named_children:
            if child.type != "parameter_declaration":
                continue
            text = self.unit.text(child)
            identifier = _declarator_identifier(child.child_by_field_name("declarator"))
            if identifier is not None:
                start = identifier.start_byte - child.start_byte
                end = identifier.end_byte - child.start_byte
                raw = self.unit.source.data[child.start_byte : child.end_byte]
                text = (raw[:start] + raw[end:]).decode("utf-8")
            types.append(_collapse(text))

        if types == ["void"]:
            return []
        return types

    def signature(self, prefix: str = "") -> FunctionSignature:
        name = self.name or ""
        suffix = name[len(prefix) :] if prefix and name.startswith(prefix) else ""
        return FunctionSignature(
            name=name,
            suffix=suffix,
            returns=self.return_type(),
            args=self.parameter_types(),
        )
