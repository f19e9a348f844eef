"""Unit tests for building the environment views of a file."""

from collections.abc import Callable

import pytest

from cesty.core.environment import apply_modifications, synthesize
from cesty.core.parser import TranslationUnit
from cesty.core.walker import walk
from cesty.models import ByteRange, Environment, Modification, ModificationKind

SOURCE = """\
/* héllo */
int helper(int x) { return x * 2; }

// run = false
int cesty_sum_test(void) {
    return helper(1) == 2;
}

int main(void) {
    return 0;
}

int cesty_other(void) { return 1; }
"""


def _neutralize(start: int, end: int) -> Modification:
    return Modification(kind=ModificationKind.NEUTRALIZE_BODY, range=ByteRange(start=start, end=end))


def _remove(start: int, end: int) -> Modification:
    return Modification(kind=ModificationKind.REMOVE_ENTRY_POINT, range=ByteRange(start=start, end=end))


def _apply_forward(source: bytes, modifications: list[Modification]) -> bytes:
    """Apply edits front to back, shifting later ranges by the size delta."""
    result = bytearray(source)
    delta = 0
    for modification in sorted(modifications, key=lambda m: m.range.start):
        start = modification.range.start + delta
        end = modification.range.end + delta
        result[start:end] = modification.replacement
        delta += len(modification.replacement) - len(modification.range)
    return bytes(result)


class TestApplyModifications:
    def test_replacements(self) -> None:
        assert apply_modifications(b"abcdef", [_neutralize(1, 3), _remove(4, 6)]) == b"a;d"

    def test_no_modifications(self) -> None:
        assert apply_modifications(b"abc", []) == b"abc"

    def test_order_does_not_matter(self) -> None:
        edits = [_neutralize(0, 2), _neutralize(3, 5), _remove(6, 8)]
        assert apply_modifications(b"0123456789", edits) == apply_modifications(b"0123456789", edits[::-1])

    def test_matches_forward_application(self) -> None:
        source = b"int a(void) { x; }\nint b(void) { y; }\nint main(void) { z; }\n"
        edits = [_neutralize(12, 18), _neutralize(31, 37), _remove(38, 59)]
        assert apply_modifications(source, edits) == _apply_forward(source, edits)

    def test_rejects_overlap(self) -> None:
        with pytest.raises(ValueError, match="overlap"):
            apply_modifications(b"abcdef", [_neutralize(0, 4), _remove(3, 6)])

    def test_touching_ranges_do_not_overlap(self) -> None:
        assert apply_modifications(b"abcdef", [_neutralize(0, 3), _neutralize(3, 6)]) == b";;"

    def test_rejects_out_of_bounds(self) -> None:
        with pytest.raises(ValueError, match="exceeds"):
            apply_modifications(b"abc", [_neutralize(1, 9)])


class TestSynthesize:
    def test_empty_source(self) -> None:
        assert synthesize(b"", []) == Environment(full="", mainless="", templated="")

    def test_nothing_to_modify(self) -> None:
        environment = synthesize(b"int x;\n", [])
        assert environment.full == environment.mainless == environment.templated == "int x;\n"

    def test_views_of_real_file(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SOURCE)
        result = walk(unit)
        environment = synthesize(unit.source.data, result.modifications, result.entry_point_range)

        main_definition = "int main(void) {\n    return 0;\n}"
        assert environment.full == SOURCE
        assert environment.mainless == SOURCE.replace(main_definition, "")
        assert environment.templated == (
            SOURCE.replace("{\n    return helper(1) == 2;\n}", ";")
            .replace(main_definition, "")
            .replace("{ return 1; }", ";")
        )

    def test_only_tests_are_neutralized(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SOURCE)
        result = walk(unit)
        environment = synthesize(unit.source.data, result.modifications, result.entry_point_range)
        assert "int helper(int x) { return x * 2; }" in environment.templated
        assert environment.templated.count("(void) ;") == 2

    def test_byte_offsets_with_multibyte_text(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SOURCE)
        result = walk(unit)
        environment = synthesize(unit.source.data, result.modifications)
        assert environment.templated.startswith("/* héllo */\n")
        assert "int cesty_other(void) ;\n" in environment.templated

    def test_entry_point_not_removed_twice(self) -> None:
        source = b"int main(void) { return 0; }\nint x;\n"
        removal = _remove(0, 28)
        environment = synthesize(source, [removal], removal.range)
        assert environment.mainless == "\nint x;\n"
        assert environment.templated == "\nint x;\n"

    def test_entry_point_range_without_modification(self) -> None:
        source = b"int main(void) { return 0; }\nint x;\n"
        environment = synthesize(source, [], ByteRange(start=0, end=28))
        assert environment.mainless == "\nint x;\n"
        assert environment.templated == "\nint x;\n"

    def test_is_idempotent(self, make_unit: Callable[..., TranslationUnit]) -> None:
        unit = make_unit(SOURCE)
        result = walk(unit)
        first = synthesize(unit.source.data, result.modifications, result.entry_point_range)
        second = synthesize(unit.source.data, result.modifications, result.entry_point_range)
        assert first == second
        assert unit.source.data == SOURCE.encode("utf-8")
