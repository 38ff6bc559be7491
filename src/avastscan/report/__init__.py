"""Report emitter — render a scan run as structured, human or SARIF text."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from avastscan.errors import ReportError
from avastscan.report import human, sarif, structured
from avastscan.report.common import ensure_emittable
from avastscan.scanner.models import ScanRun

logger = logging.getLogger(__name__)

_EMITTERS: dict[str, Callable[[ScanRun], str]] = {
    "structured": structured.render,
    "human": human.render,
    "sarif": sarif.render,
}

FORMATS = tuple(_EMITTERS)


def check_format(fmt: str) -> None:
    if fmt not in _EMITTERS:
        raise ReportError(
            f"unsupported output format {fmt!r} (choose from {', '.join(FORMATS)})"
        )


def emit(run: ScanRun, fmt: str) -> str:
    """Render ``run`` in ``fmt``. Never mutates the run; same input, same bytes."""
    check_format(fmt)
    ensure_emittable(run)
    return _EMITTERS[fmt](run)


def export(run: ScanRun, path: str | Path, fmt: str = "structured") -> Path:
    """Write a report to ``path`` for trend tooling outside this process."""
    text = emit(run, fmt)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info("Report written to %s", path)
    return path
