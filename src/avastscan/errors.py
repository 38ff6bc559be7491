"""Exception hierarchy for avastscan."""

from __future__ import annotations


class AvastError(Exception):
    """Base exception for all avastscan errors."""


class CatalogError(AvastError, ValueError):
    """A rule catalog is malformed or declares conflicting rules."""

    def __init__(self, message: str, rule_id: str = "", source: str = "") -> None:
        self.rule_id = rule_id
        self.source = source
        prefix = ""
        if source:
            prefix += f"{source}: "
        if rule_id:
            prefix += f"rule '{rule_id}': "
        super().__init__(prefix + message)


class ConfigError(AvastError, ValueError):
    """A configuration option has an invalid value."""

    def __init__(self, option: str, message: str) -> None:
        self.option = option
        super().__init__(f"invalid value for '{option}': {message}")


class TargetResolutionError(AvastError):
    """A requested target path does not exist or cannot be listed."""

    def __init__(self, path: str, message: str, missing: bool = True) -> None:
        self.path = path
        self.detail = message
        self.missing = missing
        super().__init__(f"{path}: {message}")


class ScanError(AvastError):
    """Unexpected failure while scanning a single file."""


class ReportError(AvastError, ValueError):
    """A report cannot be produced in the requested format."""


class RunStateError(AvastError, RuntimeError):
    """A scan run was asked to make an illegal state transition."""
