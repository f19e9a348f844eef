"""Shared fixtures and helpers for tests."""

from collections.abc import Callable
from pathlib import Path

import pytest
from tree_sitter import Parser
from tree_sitter_language_pack import get_parser

from cesty.core.parser import TranslationUnit

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def c_parser() -> Parser:
    """Return a tree-sitter parser for C."""
    return get_parser("c")


@pytest.fixture
def write_c(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing C source into ``tmp_path``."""

    def _write(source: str, name: str = "sample.c") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_unit() -> Callable[..., TranslationUnit]:
    """Return a helper parsing C source into a translation unit."""

    def _make(source: str, path: str = "sample.c", parse_comments: bool = True) -> TranslationUnit:
        return TranslationUnit.from_source(source.encode("utf-8"), path, parse_comments=parse_comments)

    return _make
