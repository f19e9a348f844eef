"""Unit tests for walking a translation unit for annotated tests."""

from collections.abc import Callable

import pytest
from tree_sitter import Node

from cesty.core.diagnostics import AlertCategory, AlertKind, ExtractionError
from cesty.core.parser import TranslationUnit
from cesty.core.settings import ExtractorSettings
from cesty.core.walker import SourceCursorWalker, VisitResult, visit_children, walk
from cesty.models import ByteRange, ModificationKind

SAMPLE = """\
#include <stdio.h>

int helper(int x) { return x * 2; }

// settings.run = false
int cesty_sum_test(void) {
    return helper(1) == 2;
}

int cesty_other(void) { return 1; }

int main(void) {
    return 0;
}
"""

DEEP_INITIALIZER = "int total = " + " + ".join(["1"] * 3000) + ";\nint cesty_after(void) { return 1; }\n"


class TestVisitChildren:
    def test_break_stops_walk(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit("int a;\nint b;\nint c;\n")
        seen = []

        def visitor(node: Node, parent: Node | None) -> VisitResult:
            seen.append(node.type)
            return VisitResult.BREAK if len(seen) == 2 else VisitResult.CONTINUE

        assert visit_children(unit.root, visitor) is False
        assert seen == ["declaration", "declaration"]

    def test_recurse_descends(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit("int f(void) { return 0; }\n")
        types = []

        def visitor(node: Node, parent: Node | None) -> VisitResult:
            types.append(node.type)
            return VisitResult.RECURSE

        assert visit_children(unit.root, visitor) is True
        assert "return_statement" in types

    def test_deep_tree_does_not_exhaust_the_stack(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(DEEP_INITIALIZER)
        count = 0

        def visitor(node: Node, parent: Node | None) -> VisitResult:
            nonlocal count
            count += 1
            return VisitResult.RECURSE

        assert visit_children(unit.root, visitor) is True
        assert count > 3000

    def test_siblings_follow_descendants(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit("int f(void) { return 0; }\nint g;\n")
        types = []

        def visitor(node: Node, parent: Node | None) -> VisitResult:
            types.append(node.type)
            return VisitResult.RECURSE

        visit_children(unit.root, visitor)
        assert types.index("return_statement") < types.index("declaration")


class TestDiscovery:
    def test_empty_file(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit(""))
        assert result.tests == []
        assert result.main is None
        assert result.modifications == []
        assert result.warnings == []

    def test_collects_tests_and_main(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit(SAMPLE))

        assert [test.function.name for test in result.tests] == ["cesty_sum_test", "cesty_other"]
        assert [test.function.suffix for test in result.tests] == ["sum_test", "other"]
        assert result.main is not None
        assert result.main.function.name == "main"
        assert result.main.function.suffix == ""
        assert result.warnings == []

    def test_config_is_read_from_doc_comment(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit(SAMPLE))
        sum_test, other = result.tests
        assert sum_test.config.settings.run is False
        assert other.config.settings.run is True

    def test_positions_point_at_names(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit(SAMPLE))
        assert (result.tests[0].position.line, result.tests[0].position.column) == (6, 5)
        assert result.main is not None
        assert result.main.position.line == 12

    def test_ranges(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SAMPLE)
        result = walk(unit)
        ranges = result.tests[1].ranges
        assert unit.source.slice(ranges.template) == "int cesty_other(void) "
        assert unit.source.slice(ranges.body) == "{ return 1; }"
        assert ranges.template.end == ranges.body.start

    def test_modifications(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SAMPLE)
        result = walk(unit)
        kinds = [modification.kind for modification in result.modifications]
        assert kinds.count(ModificationKind.NEUTRALIZE_BODY) == 2
        assert kinds.count(ModificationKind.REMOVE_ENTRY_POINT) == 1
        assert result.entry_point_range is not None
        assert unit.source.slice(result.entry_point_range) == "int main(void) {\n    return 0;\n}"

    def test_other_functions_are_untouched(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SAMPLE)
        result = walk(unit)
        start = SAMPLE.index("int helper")
        helper = ByteRange(start=start, end=SAMPLE.index("\n", start))
        assert unit.source.slice(helper) == "int helper(int x) { return x * 2; }"
        assert not any(modification.range.overlaps(helper) for modification in result.modifications)

    def test_functions_in_preprocessor_blocks(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit("#ifdef FEATURE\nint cesty_guarded(void) { return 1; }\n#endif\n"))
        assert [test.function.name for test in result.tests] == ["cesty_guarded"]

    def test_functions_in_else_branch(self, make_unit: Callable[..., TranslationUnit]) -> None:
        source = "#if defined(A)\nint cesty_a(void) { return 1; }\n#else\nint cesty_b(void) { return 1; }\n#endif\n"
        result = walk(make_unit(source))
        assert [test.function.name for test in result.tests] == ["cesty_a", "cesty_b"]

    def test_long_global_initializer(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit(DEEP_INITIALIZER))
        assert [test.function.name for test in result.tests] == ["cesty_after"]

    def test_declarations_are_ignored(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit("int cesty_declared(void);\nint main(void);\n"))
        assert result.tests == []
        assert result.main is None

    def test_custom_prefix(self, make_unit: Callable[..., TranslationUnit]) -> None:
        settings = ExtractorSettings(function_prefix="check_")
        result = walk(make_unit("int check_one(void) { return 1; }\nint cesty_two(void) { return 1; }\n"), settings)
        assert [test.function.name for test in result.tests] == ["check_one"]
        assert result.tests[0].function.suffix == "one"

    def test_walkers_do_not_share_state(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SAMPLE)
        first = SourceCursorWalker(unit).walk()
        second = SourceCursorWalker(unit).walk()
        assert len(first.tests) == len(second.tests) == 2


class TestNamingWarnings:
    def test_prefix_only_function(self, make_unit: Callable[..., TranslationUnit]) -> None:
        result = walk(make_unit("int cesty_(void) { return 1; }\n"))

        assert result.tests == []
        assert result.modifications == []
        (warning,) = result.warnings
        assert warning.kind is AlertKind.WARNING
        assert warning.category is AlertCategory.NAMING
        assert warning.description == "function only contains prefix part aka. `cesty_`"
        assert warning.evidence is not None
        assert warning.evidence.line == 1
        assert warning.evidence.fixes[0].column == 11

    def test_prefix_only_sibling_is_excluded(self, make_unit: Callable[..., TranslationUnit]) -> None:
        source = "// settings.run = false\nint cesty_sum_test(void) { return 1; }\n\nint cesty_(void) { return 0; }\n"
        result = walk(make_unit(source))

        (test,) = result.tests
        assert test.function.name == "cesty_sum_test"
        assert test.config.settings.run is False
        assert [warning.category for warning in result.warnings] == [AlertCategory.NAMING]
        assert result.warnings[0].evidence is not None
        assert result.warnings[0].evidence.line == 4


class TestErrors:
    def test_duplicate_main(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit("int main(void) { return 0; }\n\nint main(void) { return 1; }\n")

        with pytest.raises(ExtractionError) as exc_info:
            walk(unit)

        alert = exc_info.value.alert
        assert alert.category is AlertCategory.DUPLICATE_ENTRY_POINT
        assert alert.description == "file contains multiple main() functions"
        assert alert.evidence is not None
        assert alert.evidence.line == 3
        assert "line 1, column 5" in alert.evidence.fixes[0].comment
        assert "line 1" in alert.notes[0]

    def test_bad_config_aborts_file(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit("int cesty_ok(void) { return 1; }\n\n// run = flase\nint cesty_bad(void) { return 1; }\n")

        with pytest.raises(ExtractionError) as exc_info:
            walk(unit)

        alert = exc_info.value.alert
        assert alert.category is AlertCategory.CONFIG
        assert alert.evidence is not None
        assert alert.evidence.line == 3
        assert alert.evidence.code == "// run = flase"
