"""Rule catalog — declarative rule definitions and their loader."""

from avastscan.catalog.loader import (
    default_catalog,
    load,
    load_catalog,
    load_catalog_from_string,
)
from avastscan.catalog.models import (
    ANY_LANGUAGE,
    Catalog,
    Category,
    Matcher,
    MatcherKind,
    Rule,
    Scope,
    Severity,
)

__all__ = [
    "ANY_LANGUAGE",
    "Catalog",
    "Category",
    "Matcher",
    "MatcherKind",
    "Rule",
    "Scope",
    "Severity",
    "default_catalog",
    "load",
    "load_catalog",
    "load_catalog_from_string",
]
