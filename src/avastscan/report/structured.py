"""Structured (JSON) report — stable field names for CI and run-to-run diffs."""

from __future__ import annotations

import json

from avastscan import __version__
from avastscan.report.common import display_text, gate_passed, iso_timestamp, run_status
from avastscan.scanner.models import Diagnostic, Finding, ScanRun

SCHEMA_VERSION = 1


def to_dict(run: ScanRun) -> dict:
    summary = run.summary
    return {
        "schema_version": SCHEMA_VERSION,
        "tool": {"name": "avastscan", "version": __version__},
        "run": {
            "targets": list(run.targets),
            "timestamp": iso_timestamp(run.timestamp),
            "status": run_status(run),
            "catalog": list(run.catalog_sources),
        },
        "gate": {
            "threshold": summary.threshold.value,
            "passed": gate_passed(run),
            "authoritative": not run.cancelled,
        },
        "summary": {
            "total": summary.total,
            "failing": summary.failing,
            "files_scanned": summary.files_scanned,
            "files_skipped": summary.files_skipped,
            "by_severity": {s.value: n for s, n in summary.by_severity.items()},
            "by_category": {c.value: n for c, n in summary.by_category.items()},
            "skipped": {k.value: n for k, n in summary.skipped_by_kind.items()},
        },
        "findings": [_finding(f) for f in run.findings],
        "diagnostics": [_diagnostic(d) for d in run.diagnostics],
    }


def render(run: ScanRun) -> str:
    return json.dumps(to_dict(run), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _finding(f: Finding) -> dict:
    return {
        "rule_id": f.rule_id,
        "category": f.category.value,
        "severity": f.severity.value,
        "file": f.file_path,
        "line": f.line_range.start,
        "end_line": f.line_range.end,
        "column": f.column,
        "language": f.language,
        "message": f.message,
        "matched_text": display_text(f),
    }


def _diagnostic(d: Diagnostic) -> dict:
    return {"path": d.path, "kind": d.kind.value, "detail": d.detail}
