"""Helpers shared by all report formats."""

from __future__ import annotations

from datetime import datetime, timezone

from avastscan.catalog.models import Category
from avastscan.errors import RunStateError
from avastscan.scanner.models import Finding, RunState, ScanRun

_REDACT_KEEP = 4
_EMITTABLE = (RunState.AGGREGATED, RunState.REPORTED, RunState.CANCELLED)


def ensure_emittable(run: ScanRun) -> None:
    if run.state not in _EMITTABLE or run.summary is None:
        raise RunStateError(
            f"cannot report a {run.state.value} scan run; aggregate it first"
        )


def display_text(finding: Finding) -> str:
    """Matched text safe to print: secrets keep only a short prefix."""
    if finding.category is Category.SECRETS:
        return redact(finding.matched_text)
    return finding.matched_text


def redact(text: str) -> str:
    if len(text) <= _REDACT_KEEP:
        return "*" * len(text)
    return text[:_REDACT_KEEP] + "[REDACTED]"


def run_status(run: ScanRun) -> str:
    """Stable status label; does not change when a run is marked reported."""
    return "cancelled" if run.cancelled else "complete"


def gate_passed(run: ScanRun) -> bool | None:
    """Gate decision, or None for a non-authoritative (cancelled) run."""
    if run.cancelled:
        return None
    return run.gate_passed()


def iso_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="seconds")
