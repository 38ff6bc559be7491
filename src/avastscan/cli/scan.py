"""CLI command: avast-scan scan <target>... — static rule scan with a CI gate."""

from __future__ import annotations

import functools
import logging
import signal
import sys
from contextlib import contextmanager

import click
from rich.console import Console
from rich.markup import escape

from avastscan.catalog.loader import load_catalog
from avastscan.catalog.models import Category, Severity
from avastscan.cli.exit_codes import ExitCode
from avastscan.config import ScanConfig
from avastscan.errors import AvastError
from avastscan.report import emit, export
from avastscan.scanner.engine import ScanEngine
from avastscan.scanner.languages import supported_languages
from avastscan.scanner.models import Diagnostic

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def _exit_on_internal_error(func):
    """Exit 2 on unexpected exceptions so CI never reads them as a gate failure."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (click.exceptions.Exit, click.ClickException, click.Abort):
            raise
        except Exception as e:
            logger.debug("Internal error", exc_info=True)
            detail = escape(f"{type(e).__name__}: {e}")
            console.print(f"[red]internal error:[/red] {detail}", highlight=False)
            sys.exit(ExitCode.ERROR)

    return wrapper


@click.command()
@click.argument("targets", nargs=-1, required=True, type=click.Path())
@click.option(
    "--threshold",
    "-t",
    type=click.Choice([s.value for s in Severity], case_sensitive=False),
    help="Lowest severity that fails the gate (default: high).",
)
@click.option(
    "--category",
    "-c",
    multiple=True,
    type=click.Choice([c.value for c in Category], case_sensitive=False),
    help="Only run rules of this category. Repeatable.",
)
@click.option(
    "--language",
    "-l",
    multiple=True,
    type=click.Choice(supported_languages(), case_sensitive=False),
    help="Only scan files of this language. Repeatable.",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    help="Report format: human, structured or sarif.",
)
@click.option(
    "--rules",
    "-r",
    "rule_paths",
    multiple=True,
    type=click.Path(),
    help="Extra catalog YAML; later files override earlier rule ids.",
)
@click.option(
    "--no-default-rules",
    is_flag=True,
    help="Do not load the bundled catalog.",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Ignore pattern (gitignore-like). Repeatable.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Also write the structured report to this file.",
)
@click.option("--jobs", "-j", type=int, help="Number of scan workers.")
@click.option("--timeout", type=float, help="Cancel the scan after N seconds.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Path to a YAML config file.",
)
@_exit_on_internal_error
def scan(
    targets: tuple[str, ...],
    threshold: str | None,
    category: tuple[str, ...],
    language: tuple[str, ...],
    output_format: str | None,
    rule_paths: tuple[str, ...],
    no_default_rules: bool,
    exclude: tuple[str, ...],
    output: str | None,
    jobs: int | None,
    timeout: float | None,
    config_path: str | None,
) -> None:
    """Scan source files for AVAST security violations."""
    try:
        config = ScanConfig.load(config_path).merged(
            {
                "severity_threshold": threshold,
                "categories": category or None,
                "languages": language or None,
                "output_format": output_format,
                "jobs": jobs,
                "timeout": timeout,
            }
        )
        config = config.merged(
            {
                "rule_paths": config.rule_paths + rule_paths,
                "ignore": config.ignore + exclude,
                "use_default_rules": config.use_default_rules and not no_default_rules,
            }
        )
        config.validate()
        catalog = load_catalog(
            config.rule_paths, include_default=config.use_default_rules
        )
        engine = ScanEngine(catalog, config, on_diagnostic=_print_diagnostic)
    except AvastError as e:
        console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(ExitCode.ERROR)

    if not len(engine.catalog):
        console.print("[yellow]warning:[/yellow] no rules selected; nothing to check")

    try:
        with _cancel_on_sigterm(engine):
            run = engine.run(targets)
    except AvastError as e:
        console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(ExitCode.ERROR)

    try:
        report = emit(run, config.output_format)
        if output:
            export(run, output)
    except (AvastError, OSError) as e:
        console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(ExitCode.ERROR)

    click.echo(report, nl=False)

    if run.cancelled:
        console.print(
            "[yellow]Scan cancelled — partial results, no gate decision.[/yellow]"
        )
        sys.exit(ExitCode.ERROR)

    run.mark_reported()
    sys.exit(ExitCode.PASS if run.gate_passed() else ExitCode.FAIL)


def _print_diagnostic(diagnostic: Diagnostic) -> None:
    detail = f" ({diagnostic.detail})" if diagnostic.detail else ""
    console.print(
        f"[dim]skipped[/dim] {escape(diagnostic.path)}: "
        f"{diagnostic.kind.value}{escape(detail)}",
        highlight=False,
    )


@contextmanager
def _cancel_on_sigterm(engine: ScanEngine):
    """Route SIGTERM (e.g. a CI timeout) to engine cancellation."""

    def _handler(signum: int, frame: object) -> None:
        console.print("\n[dim]Stopping scan...[/dim]")
        engine.cancel()

    try:
        previous = signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # not on the main thread; signals cannot be installed
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)
