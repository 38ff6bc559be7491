"""Target resolution — expand paths and directories into files to scan."""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from avastscan.errors import TargetResolutionError

logger = logging.getLogger(__name__)

IGNORE_FILE = ".avastignore"

# Directories to always skip
SKIP_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".venv",
        "venv",
        ".tox",
        ".eggs",
        ".terraform",
        "dist",
        "build",
    }
)


class IgnoreRules:
    """gitignore-like patterns: ``#`` comments, trailing ``/`` for directories,
    patterns containing ``/`` match the relative path, others the base name."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns: list[tuple[str, bool, bool]] = []
        for raw in patterns:
            self.add(raw)

    def add(self, raw: str) -> None:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#"):
            return
        dir_only = pattern.endswith("/")
        pattern = pattern.rstrip("/")
        anchored = "/" in pattern
        self._patterns.append((pattern.lstrip("/"), dir_only, anchored))

    def extend_from_file(self, path: Path) -> None:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning("Cannot read ignore file %s: %s", path, e)
            return
        for line in lines:
            self.add(line)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        name = rel_path.rsplit("/", 1)[-1]
        for pattern, dir_only, anchored in self._patterns:
            if dir_only and not is_dir:
                continue
            subject = rel_path if anchored else name
            if fnmatch.fnmatchcase(subject, pattern):
                return True
        return False

    def __len__(self) -> int:
        return len(self._patterns)


def iter_target_files(
    targets: Iterable[str | Path],
    ignore: Iterable[str] = (),
    on_error: Callable[[TargetResolutionError], None] | None = None,
) -> Iterator[Path]:
    """Yield files under each target in a stable order.

    Missing targets and directories that cannot be listed are reported through
    ``on_error`` and skipped; the rest of the targets are still resolved.
    """
    seen: set[Path] = set()
    for target in targets:
        path = Path(target)
        try:
            files = _resolve_one(path, ignore, on_error)
        except TargetResolutionError as e:
            logger.debug("Target resolution failed: %s", e)
            if on_error is None:
                raise
            on_error(e)
            continue
        for file_path in files:
            key = file_path.absolute()
            if key in seen:
                continue
            seen.add(key)
            yield file_path


def _resolve_one(
    path: Path,
    ignore: Iterable[str],
    on_error: Callable[[TargetResolutionError], None] | None = None,
) -> list[Path]:
    if not os.path.lexists(path):
        raise TargetResolutionError(str(path), "no such file or directory")
    if path.is_file():
        return [path]
    if path.is_dir():
        rules = IgnoreRules(ignore)
        ignore_file = path / IGNORE_FILE
        if ignore_file.is_file():
            rules.extend_from_file(ignore_file)
        return list(walk(path, rules, on_error))
    raise TargetResolutionError(
        str(path), "not a regular file or directory", missing=False
    )


def walk(
    root: Path,
    rules: IgnoreRules,
    on_error: Callable[[TargetResolutionError], None] | None = None,
) -> Iterator[Path]:
    """Walk a directory yielding files, pruning skipped and ignored entries.

    A directory that cannot be listed is passed to ``on_error``, or raised when
    no handler is given.
    """

    def _onerror(err: OSError) -> None:
        logger.warning("Cannot list %s: %s", err.filename, err.strerror)
        failure = TargetResolutionError(
            str(err.filename or root),
            err.strerror or str(err),
            missing=isinstance(err, FileNotFoundError),
        )
        if on_error is None:
            raise failure from err
        on_error(failure)

    for current, dirs, files in os.walk(root, onerror=_onerror):
        rel_dir = Path(current).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir + "/"

        # Prune skipped directories in-place; sort for a stable walk order
        dirs[:] = sorted(
            d
            for d in dirs
            if d not in SKIP_DIRS
            and not d.endswith(".egg-info")
            and not rules.matches(rel_dir + d, is_dir=True)
        )

        for name in sorted(files):
            if name == IGNORE_FILE or rules.matches(rel_dir + name, is_dir=False):
                continue
            yield Path(current) / name
