import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from cesty.core.diagnostics import Alert, ExtractionError, exit_status
from cesty.core.extract import FileReport, extract_many, run_extract
from cesty.core.harness import render_test_program
from cesty.core.languages import is_c_source
from cesty.core.settings import ExtractorSettings
from cesty.models import ParsedFile

console = Console()
err_console = Console(stderr=True)


class View(str, Enum):
    full = "full"
    mainless = "mainless"
    templated = "templated"


def _settings(prefix: str | None) -> ExtractorSettings:
    settings = ExtractorSettings.from_env()
    if prefix:
        settings = settings.model_copy(update={"function_prefix": prefix})
    return settings


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def print_alert(alert: Alert) -> None:
    text = Text(str(alert))
    text.stylize("bold red" if alert.is_error else "bold yellow", 0, len(alert.label))
    err_console.print(text, highlight=False)


def _render_tests(reports: Sequence[FileReport]) -> None:
    table = Table(show_lines=False)
    for header in ["file", "function", "line", "returns", "args", "run", "stdout", "stdin"]:
        table.add_column(header)
    rows = 0
    for report in reports:
        if report.parsed is None:
            continue
        for test in report.parsed.tests:
            settings = test.config.settings
            table.add_row(
                str(report.path),
                test.function.name,
                str(test.position.line),
                test.function.returns,
                ", ".join(test.function.args),
                str(settings.run),
                str(settings.stdout),
                str(settings.stdin),
            )
            rows += 1
    console.print(table)
    console.print(f"({rows} tests)")


def extract(
    paths: Annotated[list[Path] | None, typer.Argument(help="C source files to scan.")] = None,
    code: Annotated[str | None, typer.Option(help="C source string to scan instead of files.")] = None,
    prefix: Annotated[str | None, typer.Option(help="Test function prefix (default: cesty_).")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the parsed files as JSON.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Discover annotated test functions."""
    _configure_logging(verbose)
    settings = _settings(prefix)

    if code is not None:
        try:
            parsed, warnings = run_extract(code=code, settings=settings)
            reports = [FileReport(path=parsed.path, parsed=parsed, warnings=warnings)]
        except ExtractionError as exc:
            reports = [FileReport(path=Path("<code>"), error=exc.alert)]
    else:
        if not paths:
            raise typer.BadParameter("at least one path or --code is required")
        for path in paths:
            if not is_c_source(path):
                raise typer.BadParameter(f"`{path}` is not a C source file")
        reports = list(extract_many(paths, settings))

    alerts = [alert for report in reports for alert in report.alerts]
    for alert in alerts:
        print_alert(alert)

    if as_json:
        parsed_files = [report.parsed.model_dump(mode="json") for report in reports if report.parsed]
        console.print_json(data=parsed_files)
    else:
        _render_tests(reports)

    status = exit_status(alerts)
    if status:
        raise typer.Exit(code=status)


def _load(path: Path, prefix: str | None) -> ParsedFile:
    try:
        parsed, warnings = run_extract(path=str(path), settings=_settings(prefix))
    except ExtractionError as exc:
        print_alert(exc.alert)
        raise typer.Exit(code=1) from None
    for warning in warnings:
        print_alert(warning)
    return parsed


def env(
    path: Annotated[Path, typer.Argument(help="C source file.")],
    view: Annotated[View, typer.Option(help="Which rendering of the file to print.")] = View.templated,
    prefix: Annotated[str | None, typer.Option(help="Test function prefix (default: cesty_).")] = None,
) -> None:
    """Print one environment view of a file."""
    parsed = _load(path, prefix)
    console.out(getattr(parsed.environment, view.value), highlight=False, end="")


def harness(
    path: Annotated[Path, typer.Argument(help="C source file.")],
    test: Annotated[str, typer.Argument(help="Test function name, with or without the prefix.")],
    prefix: Annotated[str | None, typer.Option(help="Test function prefix (default: cesty_).")] = None,
) -> None:
    """Print the C program that runs a single test."""
    parsed = _load(path, prefix)
    found = parsed.find_test(test)
    if found is None:
        err_console.print(f"[red]No test named[/red] {test} in {path}")
        raise typer.Exit(code=1)
    try:
        program = render_test_program(parsed, found)
    except ValueError as exc:
        err_console.print(f"[red]Cannot render[/red] {exc}")
        raise typer.Exit(code=1) from None
    console.out(program, highlight=False, end="")
