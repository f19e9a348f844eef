"""Warnings and errors reported while extracting tests from a C file.

An :class:`Alert` is plain data. :func:`render_alert` turns it into the
human readable block printed by the CLI, so rendering can be tested without a
terminal:

.. code-block:: text

    error[E0301]: failed to parse TOML from comment into a test configuration
      --> tests/sum.c:4:19
       |
     4 | // settings.run = flase
       |                   ^ Invalid value on line 4, column 19.
       |
       = note: ...
"""

import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class AlertKind(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class AlertCategory(str, Enum):
    STRUCTURAL = "structural"
    COMMENT_SYNTAX = "comment-syntax"
    CONFIG = "config"
    NAMING = "naming"
    DUPLICATE_ENTRY_POINT = "duplicate-entry-point"
    IO = "io"

    @property
    def code(self) -> int:
        match self:
            case AlertCategory.STRUCTURAL:
                return 101
            case AlertCategory.COMMENT_SYNTAX:
                return 201
            case AlertCategory.CONFIG:
                return 301
            case AlertCategory.NAMING:
                return 401
            case AlertCategory.DUPLICATE_ENTRY_POINT:
                return 402
            case AlertCategory.IO:
                return 501


class AlertFix(BaseModel):
    model_config = ConfigDict(frozen=True)

    # 1-based column in the evidence line the caret points at.
    column: int = Field(ge=1)
    comment: str


class AlertEvidence(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    line: int = Field(ge=1)
    code: str
    fixes: list[AlertFix] = Field(min_length=1)


class Alert(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AlertKind
    category: AlertCategory
    description: str
    notes: list[str] = Field(default_factory=list)
    evidence: AlertEvidence | None = None

    @classmethod
    def error(
        cls,
        category: AlertCategory,
        description: str,
        notes: Iterable[str] = (),
        evidence: AlertEvidence | None = None,
    ) -> "Alert":
        return cls(
            kind=AlertKind.ERROR,
            category=category,
            description=description,
            notes=list(notes),
            evidence=evidence,
        )

    @classmethod
    def warning(
        cls,
        category: AlertCategory,
        description: str,
        notes: Iterable[str] = (),
        evidence: AlertEvidence | None = None,
    ) -> "Alert":
        return cls(
            kind=AlertKind.WARNING,
            category=category,
            description=description,
            notes=list(notes),
            evidence=evidence,
        )

    @property
    def is_error(self) -> bool:
        return self.kind is AlertKind.ERROR

    @property
    def label(self) -> str:
        prefix = "E" if self.is_error else "W"
        return f"{self.kind.value}[{prefix}{self.category.code:04d}]"

    def __str__(self) -> str:
        return render_alert(self)


class ExtractionError(Exception):
    """Raised with the first error alert of a file; aborts that file only."""

    def __init__(self, alert: Alert) -> None:
        if not alert.is_error:
            raise ValueError("ExtractionError requires an error alert")
        super().__init__(alert.description)
        self.alert = alert


def fail(
    category: AlertCategory,
    description: str,
    notes: Iterable[str] = (),
    evidence: AlertEvidence | None = None,
) -> ExtractionError:
    return ExtractionError(Alert.error(category, description, notes=notes, evidence=evidence))


def evidence_from_file(path: str | Path, line: int, fixes: list[AlertFix]) -> AlertEvidence | None:
    """Build evidence by reading ``line`` of ``path`` from disk.

    Returns ``None`` when the snippet cannot be read, callers then fall back
    to a plain note instead of losing the alert itself.
    """
    try:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Could not read snippet from %s: %s", path, exc)
        return None
    if not 1 <= line <= len(lines):
        return None
    return AlertEvidence(path=str(path), line=line, code=lines[line - 1], fixes=fixes)


def exit_status(alerts: Iterable[Alert]) -> int:
    """Process exit status for a batch: 0 when no error was reported."""
    for alert in alerts:
        if alert.is_error:
            return 1
    return 0


def _caret_padding(code: str, column: int) -> str:
    # Tabs are kept so the caret lines up however the terminal expands them.
    padding = []
    for ch in code[: column - 1]:
        padding.append("\t" if ch == "\t" else " ")
    padding.extend(" " * max(0, column - 1 - len(code)))
    return "".join(padding)


def render_alert(alert: Alert) -> str:
    evidence = alert.evidence
    width = len(str(evidence.line)) if evidence else 1
    gutter = " " * (width + 1)

    lines = [f"{alert.label}: {alert.description}"]
    if evidence is not None:
        lines.append(f"{' ' * width}--> {evidence.path}:{evidence.line}:{evidence.fixes[0].column}")
        lines.append(f"{gutter}|")
        for index, fix in enumerate(evidence.fixes):
            if index:
                lines.append(f"{' ' * width}...")
            lines.append(f"{evidence.line:>{width}} | {evidence.code}")
            lines.append(f"{gutter}| {_caret_padding(evidence.code, fix.column)}^ {fix.comment}")
        lines.append(f"{gutter}|")
    else:
        lines.append(f"{gutter}?")

    for note in alert.notes:
        lines.append(f"{gutter}= note: {note}")
    return "\n".join(lines)
