"""Finding aggregator — dedup, ordering, counts and the gate decision."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from avastscan.catalog.models import Catalog, Category, Severity
from avastscan.errors import RunStateError, ScanError
from avastscan.scanner.models import (
    Diagnostic,
    DiagnosticKind,
    Finding,
    RunState,
    ScanRun,
    Summary,
)

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = Severity.HIGH


class FindingAggregator:
    """Single-writer merge point for per-file scan results.

    Only the thread that owns the run calls ``add``; workers hand their
    findings back instead of writing here directly.
    """

    def __init__(
        self,
        catalog: Catalog,
        threshold: Severity = DEFAULT_THRESHOLD,
    ) -> None:
        self._catalog = catalog
        self._threshold = threshold
        self._findings: dict[tuple, Finding] = {}
        self._diagnostics: list[Diagnostic] = []
        self.files_scanned = 0

    def add(self, findings: Iterable[Finding]) -> None:
        for finding in findings:
            if finding.rule_id not in self._catalog:
                raise ScanError(
                    f"finding references unknown rule '{finding.rule_id}'"
                )
            # first writer wins; duplicates come from overlapping matcher passes
            self._findings.setdefault(finding.dedup_key, finding)

    def add_diagnostic(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)

    def record_scanned(self, count: int = 1) -> None:
        self.files_scanned += count

    @property
    def findings(self) -> list[Finding]:
        return sorted(self._findings.values(), key=lambda f: f.sort_key)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return sorted(self._diagnostics, key=lambda d: (d.path, d.kind.value, d.detail))

    def summary(self) -> Summary:
        return summarize(
            self.findings,
            self.diagnostics,
            files_scanned=self.files_scanned,
            threshold=self._threshold,
        )

    def finalize(self, run: ScanRun) -> Summary:
        """Freeze results into the run and advance it to aggregated.

        A cancelled run receives its partial results but stays cancelled.
        """
        if run.state not in (RunState.SCANNING, RunState.CANCELLED):
            raise RunStateError(f"cannot aggregate a {run.state.value} scan run")

        summary = self.summary()
        run.findings = tuple(self.findings)
        run.diagnostics = tuple(self.diagnostics)
        run.summary = summary
        if run.state is RunState.SCANNING:
            run.advance(RunState.AGGREGATED)
        logger.debug(
            "Aggregated %d findings (%d failing at >= %s)",
            summary.total,
            summary.failing,
            summary.threshold.value,
        )
        return summary


def aggregate(
    findings: Iterable[Finding],
    catalog: Catalog,
    threshold: Severity = DEFAULT_THRESHOLD,
) -> Summary:
    """Functional form: dedup and summarize a finished batch of findings."""
    aggregator = FindingAggregator(catalog, threshold)
    aggregator.add(findings)
    return aggregator.summary()


def summarize(
    findings: list[Finding],
    diagnostics: list[Diagnostic],
    files_scanned: int,
    threshold: Severity,
) -> Summary:
    by_severity = Counter(f.severity for f in findings)
    by_category = Counter(f.category for f in findings)
    skipped = Counter(d.kind for d in diagnostics)
    return Summary(
        total=len(findings),
        by_severity={s: by_severity.get(s, 0) for s in Severity.descending()},
        by_category={c: by_category.get(c, 0) for c in Category},
        files_scanned=files_scanned,
        files_skipped=len(diagnostics),
        skipped_by_kind={k: skipped[k] for k in DiagnosticKind if skipped.get(k)},
        threshold=threshold,
        failing=sum(1 for f in findings if f.severity.at_least(threshold)),
    )


def failing_findings(findings: Iterable[Finding], threshold: Severity) -> list[Finding]:
    """Findings that fail the gate at ``threshold``."""
    return [f for f in findings if f.severity.at_least(threshold)]
