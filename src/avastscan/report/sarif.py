"""SARIF 2.1.0 output for code-scanning dashboards."""

from __future__ import annotations

import json

from avastscan import __version__
from avastscan.catalog.models import Severity
from avastscan.report.common import display_text
from avastscan.scanner.models import Finding, ScanRun

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"

_LEVELS = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
}


def to_dict(run: ScanRun) -> dict:
    rules: dict[str, dict] = {}
    for f in run.findings:
        rules.setdefault(
            f.rule_id,
            {
                "id": f.rule_id,
                "name": f.rule_id,
                "shortDescription": {"text": f.message or f.rule_id},
                "defaultConfiguration": {"level": _LEVELS[f.severity]},
                "properties": {
                    "category": f.category.value,
                    "severity": f.severity.value,
                },
            },
        )

    return {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "avastscan",
                        "version": __version__,
                        "rules": [rules[k] for k in sorted(rules)],
                    }
                },
                "invocations": [{"executionSuccessful": not run.cancelled}],
                "results": [_result(f) for f in run.findings],
            }
        ],
    }


def render(run: ScanRun) -> str:
    return json.dumps(to_dict(run), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _result(f: Finding) -> dict:
    return {
        "ruleId": f.rule_id,
        "level": _LEVELS[f.severity],
        "message": {"text": f"{f.message}: {display_text(f)}"},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {"uri": f.file_path.replace("\\", "/")},
                    "region": {
                        "startLine": f.line_range.start,
                        "endLine": f.line_range.end,
                        "startColumn": f.column,
                    },
                }
            }
        ],
    }
