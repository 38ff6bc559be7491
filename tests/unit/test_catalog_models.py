"""Tests for catalog data models."""

import pytest

from avastscan.catalog.models import (
    Catalog,
    Category,
    Matcher,
    MatcherKind,
    Rule,
    Severity,
)


def _rule(rule_id: str, category=Category.SECRETS, languages=("*",)) -> Rule:
    return Rule(
        id=rule_id,
        category=category,
        severity=Severity.HIGH,
        message="m",
        matcher=Matcher(kind=MatcherKind.REGEX, pattern="x"),
        languages=frozenset(languages),
    )


def test_category_values():
    assert [c.value for c in Category] == [
        "authentication",
        "validation",
        "auditing",
        "secrets",
        "trust",
    ]
    assert Category.AUTHENTICATION.title == "Authentication"


def test_severity_ordering():
    assert Severity.descending() == [
        Severity.CRITICAL,
        Severity.HIGH,
        Severity.MEDIUM,
        Severity.LOW,
    ]
    assert Severity.CRITICAL.at_least(Severity.HIGH)
    assert Severity.HIGH.at_least(Severity.HIGH)
    assert not Severity.MEDIUM.at_least(Severity.HIGH)


def test_severity_parse():
    assert Severity.parse(" High ") == Severity.HIGH
    with pytest.raises(ValueError):
        Severity.parse("urgent")


def test_rule_is_hashable():
    assert len({_rule("a"), _rule("a"), _rule("b")}) == 2


def test_rule_applies_to():
    assert _rule("a").applies_to("go")
    scoped = _rule("b", languages=("python",))
    assert scoped.applies_to("python")
    assert not scoped.applies_to("ruby")


def test_catalog_sorted_and_indexed():
    catalog = Catalog(rules=(_rule("b"), _rule("a")))
    assert [r.id for r in catalog] == ["a", "b"]
    assert "a" in catalog
    assert catalog.get("missing") is None
    assert len(catalog) == 2


def test_catalog_select():
    catalog = Catalog(
        rules=(
            _rule("auth", category=Category.AUTHENTICATION),
            _rule("py", category=Category.TRUST, languages=("python",)),
            _rule("go", category=Category.TRUST, languages=("go",)),
        )
    )
    assert [r.id for r in catalog.select(categories=[Category.TRUST])] == ["go", "py"]
    assert [r.id for r in catalog.select(languages=["python"])] == ["auth", "py"]
    assert [r.id for r in catalog.for_language("go")] == ["auth", "go"]
    assert len(catalog.select()) == 3
