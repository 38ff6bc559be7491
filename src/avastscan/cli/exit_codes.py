"""Process exit codes for CI pipelines.

Exit codes:
    0 — PASS: gate decision is pass
    1 — FAIL: findings at or above the severity threshold
    2 — ERROR: internal error, invalid catalog/config, or a cancelled scan
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    PASS = 0
    FAIL = 1
    ERROR = 2
