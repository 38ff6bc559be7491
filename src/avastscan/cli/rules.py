"""CLI commands: avast-scan rules list|validate — inspect rule catalogs."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from avastscan.catalog.loader import load, load_catalog
from avastscan.catalog.models import Category, MatcherKind, Rule
from avastscan.cli.exit_codes import ExitCode
from avastscan.errors import CatalogError
from avastscan.scanner.languages import supported_languages

err_console = Console(stderr=True)

_SEVERITY_COLORS = {
    "critical": "red",
    "high": "magenta",
    "medium": "yellow",
    "low": "blue",
}


@click.group()
def rules() -> None:
    """Inspect and validate rule catalogs."""


@rules.command("list")
@click.option("--rules", "-r", "rule_paths", multiple=True, type=click.Path())
@click.option("--no-default-rules", is_flag=True)
@click.option(
    "--category",
    "-c",
    multiple=True,
    type=click.Choice([c.value for c in Category], case_sensitive=False),
)
@click.option(
    "--language",
    "-l",
    multiple=True,
    type=click.Choice(supported_languages(), case_sensitive=False),
)
def list_rules(
    rule_paths: tuple[str, ...],
    no_default_rules: bool,
    category: tuple[str, ...],
    language: tuple[str, ...],
) -> None:
    """Print the effective catalog."""
    try:
        catalog = load_catalog(rule_paths, include_default=not no_default_rules)
    except CatalogError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False)
        sys.exit(ExitCode.ERROR)

    catalog = catalog.select(
        categories=[Category.parse(c) for c in category] or None,
        languages=[lang.lower() for lang in language] or None,
    )

    table = Table(title=f"Rules ({len(catalog)})", title_justify="left")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Category")
    table.add_column("Severity", style="bold")
    table.add_column("Matcher")
    table.add_column("Languages")
    table.add_column("Message")

    for rule in catalog:
        color = _SEVERITY_COLORS.get(rule.severity.value, "white")
        table.add_row(
            rule.id,
            rule.category.title,
            f"[{color}]{rule.severity.value}[/{color}]",
            _describe_matcher(rule),
            ", ".join(sorted(rule.languages)),
            escape(rule.message),
        )

    Console().print(table)
    sources = ", ".join(catalog.sources) or "-"
    err_console.print(f"Sources: {escape(sources)}", highlight=False)


@rules.command("validate")
@click.argument("paths", nargs=-1, required=True, type=click.Path())
def validate(paths: tuple[str, ...]) -> None:
    """Check catalog files for malformed or conflicting rules."""
    failed = False
    for path in paths:
        try:
            loaded = load(Path(path))
        except CatalogError as e:
            err_console.print(f"[red]invalid[/red] {escape(str(e))}", highlight=False)
            failed = True
            continue
        click.echo(f"ok {path}: {len(loaded)} rules")
    if failed:
        sys.exit(ExitCode.ERROR)


def _describe_matcher(rule: Rule) -> str:
    matcher = rule.matcher
    if matcher.kind is MatcherKind.REGEX:
        return f"regex/{matcher.scope.value}"
    if matcher.kind is MatcherKind.TOKENS:
        return "tokens"
    return "imports"
