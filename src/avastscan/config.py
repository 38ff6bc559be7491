"""Scan configuration — defaults, YAML config file, env vars, validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from avastscan.catalog.models import Category, Severity
from avastscan.errors import ConfigError
from avastscan.report import check_format
from avastscan.scanner.languages import supported_languages

logger = logging.getLogger(__name__)

LOCAL_CONFIG = ".avast.yaml"

# Max file size to scan (1 MB)
DEFAULT_MAX_FILE_SIZE = 1_048_576


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "avastscan"
    return Path.home() / ".config" / "avastscan"


def _default_output_format() -> str:
    # CI systems set CI=true; they want the machine-readable form
    if os.environ.get("CI", "").strip().lower() in ("1", "true", "yes"):
        return "structured"
    return "human"


def _default_jobs() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass
class ScanConfig:
    """Options recognized by a scan run."""

    severity_threshold: Severity = Severity.HIGH
    categories: frozenset[Category] = frozenset(Category)
    languages: frozenset[str] | None = None  # None: auto-detect by extension
    output_format: str = field(default_factory=_default_output_format)
    rule_paths: tuple[str, ...] = ()
    use_default_rules: bool = True
    ignore: tuple[str, ...] = ()
    jobs: int = field(default_factory=_default_jobs)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    timeout: float | None = None

    @classmethod
    def load(cls, path: str | Path | None = None) -> ScanConfig:
        """Build config from defaults, a YAML file and AVAST_* env vars.

        Without an explicit ``path`` the first existing of ``./.avast.yaml``
        and ``$XDG_CONFIG_HOME/avastscan/config.yaml`` is used.
        """
        config = cls()
        config_file = Path(path) if path else _find_config_file()
        if config_file is not None:
            config = config.merged(_read_config_file(config_file))
        return config.merged(_read_env())

    def merged(self, options: dict) -> ScanConfig:
        """Return a copy with raw option values (strings or lists) applied."""
        known = {f.name for f in fields(self)}
        changes = {}
        for key, value in options.items():
            if value is None:
                continue
            if key not in known:
                raise ConfigError(key, "unknown option")
            changes[key] = _coerce(key, value)
        return replace(self, **changes)

    def validate(self) -> None:
        """Raise on the first invalid option, naming it."""
        if not isinstance(self.severity_threshold, Severity):
            raise ConfigError("severity_threshold", repr(self.severity_threshold))
        if not self.categories:
            raise ConfigError("categories", "at least one category is required")
        if self.languages is not None:
            unknown = sorted(set(self.languages) - set(supported_languages()))
            if unknown:
                raise ConfigError(
                    "languages",
                    f"unsupported {', '.join(unknown)} "
                    f"(choose from {', '.join(supported_languages())})",
                )
            if not self.languages:
                raise ConfigError("languages", "at least one language is required")
        check_format(self.output_format)
        if self.jobs < 1:
            raise ConfigError("jobs", "must be at least 1")
        if self.max_file_size < 1:
            raise ConfigError("max_file_size", "must be positive")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout", "must be positive")


def _find_config_file() -> Path | None:
    for candidate in (Path(LOCAL_CONFIG), _default_config_dir() / "config.yaml"):
        if candidate.is_file():
            return candidate
    return None


def _read_config_file(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError("config", f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError("config", f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config", f"{path} must contain a mapping")
    logger.debug("Loaded config from %s", path)
    return data


def _read_env() -> dict:
    options: dict = {}
    for key in (
        "severity_threshold",
        "categories",
        "languages",
        "output_format",
        "rule_paths",
        "ignore",
        "jobs",
        "max_file_size",
        "timeout",
    ):
        value = os.environ.get(f"AVAST_{key.upper()}")
        if value:
            options[key] = value
    no_default = os.environ.get("AVAST_NO_DEFAULT_RULES", "").strip().lower()
    if no_default in ("1", "true", "yes"):
        options["use_default_rules"] = False
    return options


def _as_list(value) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v).strip() for v in value]


def _coerce(key: str, value):
    try:
        if key == "severity_threshold":
            return value if isinstance(value, Severity) else Severity.parse(value)
        if key == "categories":
            items = _as_list(value) if isinstance(value, str) else list(value)
            return frozenset(
                v if isinstance(v, Category) else Category.parse(v) for v in items
            )
        if key == "languages":
            langs = _as_list(value)
            return frozenset(v.lower() for v in langs) if langs else None
        if key in ("rule_paths", "ignore"):
            return tuple(_as_list(value))
        if key == "use_default_rules":
            return bool(value)
        if key in ("jobs", "max_file_size"):
            return int(value)
        if key == "timeout":
            return float(value)
        return str(value).strip().lower()
    except (TypeError, ValueError) as e:
        raise ConfigError(key, f"{value!r} ({e})") from None
