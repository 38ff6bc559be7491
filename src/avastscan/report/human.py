"""Human-readable report — rich tables grouped by category."""

from __future__ import annotations

import io

from rich.console import Console
from rich.table import Table
from rich.text import Text

from avastscan.catalog.models import Category
from avastscan.report.common import display_text, gate_passed
from avastscan.scanner.models import Finding, ScanRun

# Fixed width keeps output byte-identical regardless of the terminal
REPORT_WIDTH = 120


def render(run: ScanRun) -> str:
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        width=REPORT_WIDTH,
        color_system=None,
        force_terminal=False,
        force_jupyter=False,
        highlight=False,
        emoji=False,
        soft_wrap=False,
    )
    _render(console, run)
    return buffer.getvalue()


def _render(console: Console, run: ScanRun) -> None:
    summary = run.summary

    console.print(Text("AVAST scan report", style="bold"))
    console.print(Text(f"Targets: {', '.join(run.targets) or '-'}"))
    console.print(Text(f"Rules:   {', '.join(run.catalog_sources) or '-'}"))
    if run.cancelled:
        console.print(
            Text("Status:  CANCELLED (partial results, not valid for gating)")
        )
    console.print()

    if not run.findings:
        console.print("No findings.")
        console.print()

    by_category: dict[Category, list[Finding]] = {}
    for finding in run.findings:
        by_category.setdefault(finding.category, []).append(finding)

    for category in Category:
        findings = by_category.get(category)
        if not findings:
            continue
        findings = sorted(findings, key=lambda f: (-f.severity.rank, f.sort_key))
        console.print(_category_table(category, findings))
        console.print()

    _print_skipped(console, run)

    counts = ", ".join(f"{s.value} {n}" for s, n in summary.by_severity.items())
    console.print(Text(f"Total findings: {summary.total} ({counts})"))
    console.print(
        Text(
            f"Scanned {summary.files_scanned} files "
            f"({summary.files_skipped} skipped)"
        )
    )

    passed = gate_passed(run)
    if passed is None:
        console.print(Text("Gate: NONE (scan cancelled)"))
    elif passed:
        console.print(Text(f"Gate: PASS (threshold {summary.threshold.value})"))
    else:
        console.print(
            Text(
                f"Gate: FAIL ({summary.failing} finding(s) at or above "
                f"{summary.threshold.value})"
            )
        )


def _category_table(category: Category, findings: list[Finding]) -> Table:
    table = Table(
        title=f"{category.title} ({len(findings)})",
        title_justify="left",
        show_lines=False,
    )
    table.add_column("Severity", width=8, no_wrap=True)
    table.add_column("Location", overflow="fold")
    table.add_column("Rule", no_wrap=True)
    table.add_column("Message", overflow="fold")
    table.add_column("Match", max_width=40, overflow="fold")

    for finding in findings:
        table.add_row(
            finding.severity.value,
            Text(f"{finding.file_path}:{finding.line_range}"),
            finding.rule_id,
            Text(finding.message),
            Text(display_text(finding)),
        )
    return table


def _print_skipped(console: Console, run: ScanRun) -> None:
    summary = run.summary
    if not run.diagnostics:
        console.print("Skipped files: 0")
        console.print()
        return

    reasons = ", ".join(
        f"{kind.value.replace('_', ' ')}: {n}"
        for kind, n in summary.skipped_by_kind.items()
    )
    console.print(Text(f"Skipped files: {summary.files_skipped} ({reasons})"))
    for diagnostic in run.diagnostics:
        detail = f" ({diagnostic.detail})" if diagnostic.detail else ""
        console.print(Text(f"  {diagnostic.path}: {diagnostic.kind.value}{detail}"))
    console.print()
