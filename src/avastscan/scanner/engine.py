"""Scan engine — orchestrates static analysis across files."""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from avastscan.catalog.models import Catalog, Rule
from avastscan.config import ScanConfig
from avastscan.errors import ScanError, TargetResolutionError
from avastscan.scanner.aggregator import FindingAggregator
from avastscan.scanner.languages import detect_language, get_language
from avastscan.scanner.matchers import CompiledRule, FileContext
from avastscan.scanner.models import (
    Diagnostic,
    DiagnosticKind,
    Finding,
    ScanRun,
)
from avastscan.scanner.targets import iter_target_files

logger = logging.getLogger(__name__)

# Bytes inspected for a NUL byte when sniffing binary content
_BINARY_SNIFF_BYTES = 8192


def scan(
    file_path: str,
    content: str,
    applicable_rules: Iterable[Rule],
    language: str | None = None,
) -> list[Finding]:
    """Apply rules to one file's content. Pure and deterministic.

    Files of an unknown language produce no findings.
    """
    language = language or detect_language(file_path)
    if language is None:
        return []

    ctx = FileContext(file_path, content, get_language(language))
    findings: list[Finding] = []
    for rule in sorted(applicable_rules, key=lambda r: r.id):
        if not rule.applies_to(language):
            continue
        findings.extend(_compiled(rule).find(ctx))

    findings.sort(
        key=lambda f: (f.line_range.start, f.line_range.end, f.column, f.rule_id)
    )
    return findings


@functools.lru_cache(maxsize=1024)
def _compiled(rule: Rule) -> CompiledRule:
    return CompiledRule(rule)


def is_binary(data: bytes) -> bool:
    return b"\x00" in data[:_BINARY_SNIFF_BYTES]


def _read_bytes(path: Path) -> bytes:
    return path.read_bytes()


@dataclass(frozen=True)
class FileOutcome:
    """What one worker produced for one file."""

    path: str
    findings: tuple[Finding, ...] = ()
    diagnostic: Diagnostic | None = None


class ScanEngine:
    """Scans targets on a bounded worker pool and aggregates the results."""

    def __init__(
        self,
        catalog: Catalog,
        config: ScanConfig | None = None,
        on_diagnostic: Callable[[Diagnostic], None] | None = None,
    ) -> None:
        self._config = config or ScanConfig()
        self._config.validate()
        self._catalog = catalog.select(
            categories=self._config.categories,
            languages=self._config.languages,
        )
        self._on_diagnostic = on_diagnostic
        self._cancel = threading.Event()

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def cancel(self) -> None:
        """Stop dispatching new files. Safe to call from any thread."""
        self._cancel.set()

    def run(self, targets: Sequence[str | Path]) -> ScanRun:
        """Scan every target and return an aggregated (or cancelled) run."""
        run = ScanRun(
            targets=tuple(str(t) for t in targets),
            catalog_sources=self._catalog.sources,
        )
        aggregator = FindingAggregator(self._catalog, self._config.severity_threshold)
        start = time.monotonic()
        run.start()

        try:
            completed = self._dispatch(targets, aggregator, start)
        except KeyboardInterrupt:
            logger.warning("Scan interrupted — run is cancelled")
            self._cancel.set()
            completed = False

        if not completed:
            run.cancel()
        aggregator.finalize(run)
        run.duration = time.monotonic() - start
        logger.info(
            "Scanned %d files in %.2fs (%d findings, state %s)",
            aggregator.files_scanned,
            run.duration,
            len(run.findings),
            run.state.value,
        )
        return run

    def _dispatch(
        self,
        targets: Sequence[str | Path],
        aggregator: FindingAggregator,
        start: float,
    ) -> bool:
        """Feed files to the pool; merge results on this thread only.

        Returns False when the run was cancelled or timed out.
        """
        deadline = start + self._config.timeout if self._config.timeout else None
        max_in_flight = self._config.jobs * 2

        def on_unresolved(err: TargetResolutionError) -> None:
            kind = DiagnosticKind.MISSING if err.missing else DiagnosticKind.UNREADABLE
            self._record(aggregator, Diagnostic(err.path, kind, err.detail))

        files = iter_target_files(
            targets, self._config.ignore, on_error=on_unresolved
        )
        executor = ThreadPoolExecutor(
            max_workers=self._config.jobs, thread_name_prefix="avast-scan"
        )
        pending: set[Future[FileOutcome]] = set()
        exhausted = False
        try:
            while True:
                if self._cancel.is_set() or _expired(deadline):
                    return False

                while not exhausted and len(pending) < max_in_flight:
                    path = next(files, None)
                    if path is None:
                        exhausted = True
                        break
                    if not self._wanted(path):
                        continue
                    pending.add(executor.submit(self._scan_path, path))

                if not pending:
                    return True

                timeout = 0.25
                if deadline is not None:
                    timeout = max(0.0, min(0.25, deadline - time.monotonic()))
                done, pending = wait(
                    pending, timeout=timeout, return_when=FIRST_COMPLETED
                )
                for future in sorted(done, key=lambda f: f.result().path):
                    self._merge(aggregator, future.result())
        finally:
            # abandon in-flight work on cancellation; results are discarded
            executor.shutdown(wait=not pending, cancel_futures=True)

    def _wanted(self, path: Path) -> bool:
        language = detect_language(path)
        if language is None:
            return False
        languages = self._config.languages
        if languages is not None and language not in languages:
            return False
        return bool(self._catalog.for_language(language))

    def _merge(self, aggregator: FindingAggregator, outcome: FileOutcome) -> None:
        if outcome.diagnostic is not None:
            self._record(aggregator, outcome.diagnostic)
            return
        aggregator.record_scanned()
        aggregator.add(outcome.findings)

    def _record(self, aggregator: FindingAggregator, diagnostic: Diagnostic) -> None:
        aggregator.add_diagnostic(diagnostic)
        if self._on_diagnostic:
            self._on_diagnostic(diagnostic)

    def _scan_path(self, path: Path) -> FileOutcome:
        """Worker body: read, sniff and scan one file. Never raises."""
        name = str(path)
        try:
            size = path.stat().st_size
            if size > self._config.max_file_size:
                return _skipped(name, DiagnosticKind.TOO_LARGE, f"{size} bytes")
            data = _read_bytes(path)
        except OSError as e:
            logger.debug("Skipping %s: %s", name, e)
            return _skipped(name, DiagnosticKind.UNREADABLE, e.strerror or str(e))

        if is_binary(data):
            return _skipped(name, DiagnosticKind.BINARY, "binary content")

        try:
            content = data.decode("utf-8", errors="replace")
            language = detect_language(path)
            rules = self._catalog.for_language(language)
            findings = scan(name, content, rules, language)
        except Exception as e:  # isolate per-file failures from the batch
            err = ScanError(f"{name}: {e}")
            logger.warning(
                "Scan failed: %s", err, exc_info=logger.isEnabledFor(logging.DEBUG)
            )
            return _skipped(name, DiagnosticKind.ERROR, str(e))
        return FileOutcome(path=name, findings=tuple(findings))


def _skipped(path: str, kind: DiagnosticKind, detail: str) -> FileOutcome:
    return FileOutcome(path=path, diagnostic=Diagnostic(path, kind, detail))


def _expired(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline


def scan_paths(
    targets: Sequence[str | Path],
    catalog: Catalog,
    config: ScanConfig | None = None,
) -> ScanRun:
    """Convenience wrapper: one engine, one run."""
    return ScanEngine(catalog, config).run(targets)
