import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from cesty.core.diagnostics import Alert, AlertCategory, ExtractionError, fail
from cesty.core.environment import synthesize
from cesty.core.languages import write_temp_code_file
from cesty.core.parser import TranslationUnit
from cesty.core.settings import ExtractorSettings
from cesty.core.walker import SourceCursorWalker
from cesty.models import ParsedFile

logger = logging.getLogger(__name__)


def extract_unit(unit: TranslationUnit, settings: ExtractorSettings | None = None) -> tuple[ParsedFile, list[Alert]]:
    stem = unit.path.stem
    if not stem:
        raise fail(
            AlertCategory.IO,
            "failed to extract file stem from path",
            notes=[f"`{unit.path}` has no file stem"],
        )

    result = SourceCursorWalker(unit, settings).walk()
    environment = synthesize(unit.source.data, result.modifications, result.entry_point_range)

    parsed = ParsedFile(
        path=unit.path,
        stem=stem,
        tests=result.tests,
        main=result.main,
        environment=environment,
    )
    return parsed, result.warnings


def extract(path: str | Path, settings: ExtractorSettings | None = None) -> tuple[ParsedFile, list[Alert]]:
    """Extract the annotated tests and environments of one C file.

    Returns the parsed file with the warnings collected on the way. Raises
    :class:`ExtractionError` with the first error found in the file.
    """
    settings = settings or ExtractorSettings()
    unit = TranslationUnit.open(path, parse_comments=settings.parse_comments)
    parsed, warnings = extract_unit(unit, settings)
    logger.info("Extracted %d test(s) from %s", len(parsed.tests), path)
    return parsed, warnings


def run_extract(
    path: str | None = None,
    code: str | None = None,
    settings: ExtractorSettings | None = None,
) -> tuple[ParsedFile, list[Alert]]:
    """Extract from a file, or from a code snippet written to a temp file."""
    temp_path: Path | None = None
    file_path = Path(path) if path and code is None else None

    if code is not None:
        temp_path = write_temp_code_file(code)
        file_path = temp_path

    if file_path is None:
        raise ValueError("Either a path or a code snippet is required.")

    try:
        return extract(file_path, settings)
    finally:
        if temp_path:
            temp_path.unlink(missing_ok=True)


@dataclass
class FileReport:
    path: Path
    parsed: ParsedFile | None = None
    warnings: list[Alert] = field(default_factory=list)
    error: Alert | None = None

    @property
    def alerts(self) -> list[Alert]:
        return [*self.warnings, *([self.error] if self.error else [])]


def extract_many(paths: Iterable[str | Path], settings: ExtractorSettings | None = None) -> Iterator[FileReport]:
    """Extract every path in turn; an error only aborts its own file."""
    settings = settings or ExtractorSettings()
    for path in paths:
        try:
            parsed, warnings = extract(path, settings)
        except ExtractionError as exc:
            logger.info("Skipping %s: %s", path, exc.alert.description)
            yield FileReport(path=Path(path), error=exc.alert)
            continue
        yield FileReport(path=Path(path), parsed=parsed, warnings=warnings)
