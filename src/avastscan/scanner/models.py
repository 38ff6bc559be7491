"""Scanner data models — findings, diagnostics and the scan run lifecycle."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field

from avastscan.catalog.models import Category, Severity
from avastscan.errors import RunStateError


@dataclass(frozen=True, order=True)
class LineRange:
    """Inclusive 1-based line span of a finding."""

    start: int
    end: int

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class Finding:
    """A single rule match in a single file."""

    rule_id: str
    category: Category
    severity: Severity
    file_path: str
    line_range: LineRange
    matched_text: str
    message: str = ""
    column: int = 1
    language: str = ""

    @property
    def line(self) -> int:
        return self.line_range.start

    @property
    def dedup_key(self) -> tuple[str, str, LineRange]:
        return (self.rule_id, self.file_path, self.line_range)

    @property
    def sort_key(self) -> tuple:
        return (
            self.file_path,
            self.line_range.start,
            self.line_range.end,
            self.column,
            self.rule_id,
        )


class DiagnosticKind(enum.Enum):
    """Why a file contributed no findings."""

    BINARY = "binary"
    TOO_LARGE = "too_large"
    UNREADABLE = "unreadable"
    MISSING = "missing"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem recorded against a target path."""

    path: str
    kind: DiagnosticKind
    detail: str = ""


@dataclass(frozen=True)
class Summary:
    """Aggregate counts and the gate decision for a run."""

    total: int
    by_severity: dict[Severity, int]
    by_category: dict[Category, int]
    files_scanned: int
    files_skipped: int
    skipped_by_kind: dict[DiagnosticKind, int]
    threshold: Severity
    failing: int

    @property
    def passed(self) -> bool:
        return self.failing == 0


class RunState(enum.Enum):
    """Lifecycle of a scan run. Transitions are strictly forward."""

    PENDING = "pending"
    SCANNING = "scanning"
    AGGREGATED = "aggregated"
    REPORTED = "reported"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.PENDING: frozenset({RunState.SCANNING, RunState.CANCELLED}),
    RunState.SCANNING: frozenset({RunState.AGGREGATED, RunState.CANCELLED}),
    RunState.AGGREGATED: frozenset({RunState.REPORTED}),
    RunState.REPORTED: frozenset(),
    RunState.CANCELLED: frozenset(),
}


@dataclass
class ScanRun:
    """One scan invocation: targets, collected results and lifecycle state.

    A run is never rescanned; a new scan needs a new ScanRun.
    """

    targets: tuple[str, ...]
    timestamp: float = field(default_factory=time.time)
    state: RunState = RunState.PENDING
    findings: tuple[Finding, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    summary: Summary | None = None
    catalog_sources: tuple[str, ...] = ()
    duration: float = 0.0

    def advance(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RunStateError(
                f"cannot move scan run from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def start(self) -> None:
        self.advance(RunState.SCANNING)

    def cancel(self) -> None:
        self.advance(RunState.CANCELLED)

    def mark_reported(self) -> None:
        self.advance(RunState.REPORTED)

    @property
    def cancelled(self) -> bool:
        return self.state is RunState.CANCELLED

    @property
    def authoritative(self) -> bool:
        """Whether the run's gate decision may be trusted."""
        return self.state in (RunState.AGGREGATED, RunState.REPORTED)

    def gate_passed(self) -> bool:
        """The CI gate decision. Only defined for completed, aggregated runs."""
        if self.cancelled:
            raise RunStateError("a cancelled scan run has no gate decision")
        if not self.authoritative or self.summary is None:
            raise RunStateError(
                f"scan run is {self.state.value}; aggregate it before gating"
            )
        return self.summary.passed
