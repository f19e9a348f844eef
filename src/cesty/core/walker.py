import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from tree_sitter import Node

from cesty.core.comments import extract_config_text
from cesty.core.config import parse_config
from cesty.core.cursor import FUNCTION_DEFINITION, FunctionCursor
from cesty.core.diagnostics import (
    Alert,
    AlertCategory,
    AlertEvidence,
    AlertFix,
    ExtractionError,
)
from cesty.core.parser import TranslationUnit
from cesty.core.settings import ExtractorSettings
from cesty.models import (
    ByteRange,
    Modification,
    ModificationKind,
    ParsedTest,
    SourcePosition,
    TestRanges,
)

logger = logging.getLogger(__name__)

# Nodes that may hold function definitions of the file itself. Everything
# else outside a function (declarations, `#include`, expressions) is skipped.
_CONTAINER_NODE_TYPES = frozenset(
    {
        "preproc_if",
        "preproc_ifdef",
        "preproc_else",
        "preproc_elif",
        "preproc_elifdef",
        "linkage_specification",
        "declaration_list",
        "ERROR",
    }
)


class VisitResult(Enum):
    BREAK = "break"
    CONTINUE = "continue"
    RECURSE = "recurse"


Visitor = Callable[[Node, Node | None], VisitResult]


def visit_children(root: Node, visitor: Visitor) -> bool:
    """Depth-first walk over the descendants of ``root``.

    ``visitor`` decides per node whether to descend into it, skip it, or stop
    the whole walk. Returns False when the walk was stopped. Uses an explicit
    stack, so deeply nested trees do not hit the recursion limit.
    """
    stack: list[tuple[Node, Iterator[Node]]] = [(root, iter(root.children))]
    while stack:
        parent, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            continue
        result = visitor(child, parent)
        if result is VisitResult.BREAK:
            return False
        if result is VisitResult.RECURSE:
            stack.append((child, iter(child.children)))
    return True


@dataclass
class WalkResult:
    tests: list[ParsedTest] = field(default_factory=list)
    main: ParsedTest | None = None
    modifications: list[Modification] = field(default_factory=list)
    warnings: list[Alert] = field(default_factory=list)
    error: Alert | None = None

    @property
    def entry_point_range(self) -> ByteRange | None:
        for modification in self.modifications:
            if modification.kind is ModificationKind.REMOVE_ENTRY_POINT:
                return modification.range
        return None


class SourceCursorWalker:
    """One traversal of a translation unit collecting annotated test functions.

    All state lives on the instance, create one walker per file.
    """

    def __init__(self, unit: TranslationUnit, settings: ExtractorSettings | None = None) -> None:
        self.unit = unit
        self.settings = settings or ExtractorSettings()
        self.result = WalkResult()
        self._main_position: SourcePosition | None = None

    def walk(self) -> WalkResult:
        visit_children(self.unit.root, self._visit)
        if self.result.error is not None:
            raise ExtractionError(self.result.error)
        logger.debug(
            "Walked %s: %d test(s), main %s, %d warning(s)",
            self.unit.path,
            len(self.result.tests),
            "found" if self.result.main else "absent",
            len(self.result.warnings),
        )
        return self.result

    def _visit(self, node: Node, parent: Node | None) -> VisitResult:
        if node.type == FUNCTION_DEFINITION:
            return VisitResult.RECURSE
        if parent is not None and parent.type == FUNCTION_DEFINITION:
            if node.type != "compound_statement" or node != parent.child_by_field_name("body"):
                return VisitResult.CONTINUE
            try:
                self._visit_body(FunctionCursor(parent, self.unit), node)
            except ExtractionError as exc:
                self.result.error = exc.alert
                return VisitResult.BREAK
            return VisitResult.CONTINUE
        if node.type in _CONTAINER_NODE_TYPES:
            return VisitResult.RECURSE
        return VisitResult.CONTINUE

    def _visit_body(self, cursor: FunctionCursor, body: Node) -> None:
        name = cursor.name
        if name is None:
            self._warn_unnamed(cursor)
            return

        prefix = self.settings.function_prefix
        is_main = name == self.settings.entry_point
        if not is_main and not name.startswith(prefix):
            return
        if not is_main and name == prefix:
            self._warn_prefix_only(cursor, name)
            return

        body_range = self.unit.extent(body)
        ranges = TestRanges(
            template=ByteRange(start=cursor.extent.start, end=body_range.start),
            body=body_range,
        )

        if is_main:
            self._check_single_entry_point(cursor)
            self._main_position = cursor.name_position
            modification = Modification(
                kind=ModificationKind.REMOVE_ENTRY_POINT,
                range=ByteRange(start=ranges.template.start, end=body_range.end),
            )
        else:
            modification = Modification(kind=ModificationKind.NEUTRALIZE_BODY, range=body_range)

        config = parse_config(extract_config_text(cursor))
        test = ParsedTest(
            config=config,
            function=cursor.signature(prefix="" if is_main else prefix),
            ranges=ranges,
            position=cursor.name_position,
        )

        self.result.modifications.append(modification)
        if is_main:
            self.result.main = test
        else:
            self.result.tests.append(test)

    def _check_single_entry_point(self, cursor: FunctionCursor) -> None:
        first = self._main_position
        if first is None:
            return
        entry_point = self.settings.entry_point
        second = cursor.name_position
        raise ExtractionError(
            Alert.error(
                AlertCategory.DUPLICATE_ENTRY_POINT,
                f"file contains multiple {entry_point}() functions",
                notes=[f"the first {entry_point}() is defined on line {first.line}, column {first.column}"],
                evidence=AlertEvidence(
                    path=cursor.path,
                    line=second.line,
                    code=self.unit.source.line(second.line),
                    fixes=[
                        AlertFix(
                            column=second.column,
                            comment=(
                                f"already encountered a {entry_point}() on line {first.line}, column {first.column}"
                            ),
                        )
                    ],
                ),
            )
        )

    def _warn_prefix_only(self, cursor: FunctionCursor, name: str) -> None:
        position = cursor.name_position
        self.result.warnings.append(
            Alert.warning(
                AlertCategory.NAMING,
                f"function only contains prefix part aka. `{name}`",
                notes=["due to having no name the test will be ignored"],
                evidence=AlertEvidence(
                    path=cursor.path,
                    line=position.line,
                    code=self.unit.source.line(position.line),
                    fixes=[
                        AlertFix(
                            column=position.column + len(name),
                            comment="add a name for the test like `sum_test` or anything you like",
                        )
                    ],
                ),
            )
        )

    def _warn_unnamed(self, cursor: FunctionCursor) -> None:
        position = cursor.position
        self.result.warnings.append(
            Alert.warning(
                AlertCategory.NAMING,
                "unable to resolve the name of a function definition",
                notes=["the function is skipped"],
                evidence=AlertEvidence(
                    path=cursor.path,
                    line=position.line,
                    code=self.unit.source.line(position.line),
                    fixes=[AlertFix(column=position.column, comment="no function name found in this declarator")],
                ),
            )
        )


def walk(unit: TranslationUnit, settings: ExtractorSettings | None = None) -> WalkResult:
    return SourceCursorWalker(unit, settings).walk()
