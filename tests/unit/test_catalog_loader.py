"""Tests for catalog YAML loading, validation and merging."""

from pathlib import Path

import pytest

from avastscan.catalog.loader import (
    default_catalog,
    load,
    load_catalog,
    load_catalog_from_string,
)
from avastscan.catalog.models import Category, MatcherKind, Scope, Severity
from avastscan.errors import CatalogError


def _rule_yaml(**overrides) -> str:
    fields = {
        "id": "r-1",
        "category": "secrets",
        "severity": "high",
        "message": "m",
        "match": "{regex: 'abc'}",
    }
    fields.update(overrides)
    body = "\n".join(f"    {k}: {v}" for k, v in fields.items() if v is not None)
    return f"rules:\n  - {body.lstrip()}\n"


def test_load_single_rule_from_string():
    rules = load(_rule_yaml())
    assert len(rules) == 1
    rule = next(iter(rules))
    assert rule.id == "r-1"
    assert rule.category == Category.SECRETS
    assert rule.severity == Severity.HIGH
    assert rule.matcher.kind == MatcherKind.REGEX
    assert rule.matcher.scope == Scope.LINE
    assert rule.languages == frozenset({"*"})


def test_duplicate_ids_rejected(duplicate_rules_path: Path):
    with pytest.raises(CatalogError, match="dup-1"):
        load(duplicate_rules_path)


def test_missing_id_rejected():
    with pytest.raises(CatalogError, match="missing an id"):
        load(_rule_yaml(id=None))


def test_invalid_category_rejected():
    with pytest.raises(CatalogError, match="invalid category") as exc:
        load(_rule_yaml(category="crypto"))
    assert exc.value.rule_id == "r-1"


def test_invalid_severity_rejected():
    with pytest.raises(CatalogError, match="invalid severity"):
        load(_rule_yaml(severity="urgent"))


def test_category_is_case_insensitive():
    rules = load(_rule_yaml(category="Trust", severity="LOW"))
    rule = next(iter(rules))
    assert rule.category == Category.TRUST
    assert rule.severity == Severity.LOW


def test_bad_regex_rejected():
    with pytest.raises(CatalogError, match="invalid regex"):
        load(_rule_yaml(match="{regex: '(unclosed'}"))


def test_ambiguous_matcher_rejected():
    with pytest.raises(CatalogError, match="exactly one"):
        load(_rule_yaml(match="{regex: 'a', tokens: [a]}"))


def test_missing_matcher_rejected():
    with pytest.raises(CatalogError, match="match"):
        load(_rule_yaml(match=None))


def test_unknown_token_class_rejected():
    with pytest.raises(CatalogError, match="token class"):
        load(_rule_yaml(match="{tokens: [$FOO]}"))


def test_tokens_and_imports_matchers():
    yaml_str = """
rules:
  - id: t-1
    category: validation
    severity: medium
    message: eval
    languages: [python, javascript]
    match:
      tokens: [eval, "("]
  - id: i-1
    category: validation
    severity: low
    message: pickle
    languages: python
    match:
      imports: pickle
"""
    catalog = load_catalog_from_string(yaml_str)
    assert catalog.get("t-1").matcher.tokens == ("eval", "(")
    assert catalog.get("t-1").languages == frozenset({"python", "javascript"})
    assert catalog.get("i-1").matcher.modules == ("pickle",)
    assert catalog.get("i-1").languages == frozenset({"python"})


def test_non_mapping_yaml_rejected():
    with pytest.raises(CatalogError, match="mapping"):
        load_catalog_from_string("- just\n- a list\n")


def test_malformed_yaml_rejected():
    with pytest.raises(CatalogError, match="invalid YAML"):
        load_catalog_from_string("rules: [unclosed\n")


def test_missing_file_rejected(tmp_path: Path):
    with pytest.raises(CatalogError, match="cannot read"):
        load(tmp_path / "nope.yaml")


def test_default_catalog_loaded_once():
    assert default_catalog() is default_catalog()


def test_default_catalog_covers_every_category():
    categories = {rule.category for rule in default_catalog()}
    assert categories == set(Category)
    assert "avast-auth-001" in default_catalog()


def test_override_replaces_and_disables(override_rules_path: Path):
    catalog = load_catalog([override_rules_path])
    rule = catalog.get("avast-auth-001")
    assert rule.severity == Severity.MEDIUM
    assert rule.languages == frozenset({"python"})
    assert "avast-trust-005" not in catalog
    assert "team-val-001" in catalog
    assert catalog.sources == ("preset:default", str(override_rules_path))


def test_later_source_wins(tmp_path: Path):
    first = tmp_path / "first.yaml"
    second = tmp_path / "second.yaml"
    first.write_text(_rule_yaml(severity="low"))
    second.write_text(_rule_yaml(severity="critical"))

    catalog = load_catalog([first, second], include_default=False)
    assert len(catalog) == 1
    assert catalog.get("r-1").severity == Severity.CRITICAL

    catalog = load_catalog([second, first], include_default=False)
    assert catalog.get("r-1").severity == Severity.LOW


def test_without_default_rules(tmp_path: Path):
    path = tmp_path / "only.yaml"
    path.write_text(_rule_yaml())
    catalog = load_catalog([path], include_default=False)
    assert [r.id for r in catalog] == ["r-1"]


def test_circular_inheritance_detected(tmp_path: Path):
    a = tmp_path / "a.yaml"
    b = tmp_path / "b.yaml"
    a.write_text(f"name: a\ninherit:\n  - {b}\nrules: []\n")
    b.write_text(f"name: b\ninherit:\n  - {a}\nrules: []\n")

    with pytest.raises(CatalogError, match="circular"):
        load(a)


def test_shared_base_is_not_circular(tmp_path: Path):
    base = tmp_path / "base.yaml"
    team = tmp_path / "team.yaml"
    base.write_text(_rule_yaml())
    team.write_text(f"inherit:\n  - {base}\nrules: []\n")
    top = tmp_path / "top.yaml"
    top.write_text(f"inherit:\n  - {base}\n  - {team}\nrules: []\n")

    assert [r.id for r in load(top)] == ["r-1"]


def test_unknown_preset_rejected():
    with pytest.raises(CatalogError, match="unknown preset"):
        load_catalog_from_string("inherit: preset:nope\nrules: []\n")


class TestMalformedFields:
    def test_non_utf8_file_rejected(self, tmp_path: Path):
        path = tmp_path / "rules.yaml"
        path.write_bytes(_rule_yaml(message="caf").encode() + b"# caf\xe9\n")
        with pytest.raises(CatalogError, match="cannot read"):
            load(path)

    def test_non_utf8_inherited_file_rejected(self, tmp_path: Path):
        base = tmp_path / "base.yaml"
        base.write_bytes(b"rules: []\n# caf\xe9\n")
        with pytest.raises(CatalogError, match="cannot read inherited"):
            load_catalog_from_string(f"inherit: {base}\nrules: []\n")

    def test_scalar_languages_rejected(self):
        with pytest.raises(CatalogError, match="'languages' must be") as exc:
            load(_rule_yaml(languages="5"))
        assert exc.value.rule_id == "r-1"

    def test_non_list_inherit_rejected(self):
        with pytest.raises(CatalogError, match="'inherit' must be"):
            load_catalog_from_string("inherit: 5\nrules: []\n")

    def test_scalar_exclude_is_one_pattern(self):
        rule = next(iter(load(_rule_yaml(match="{regex: 'abc', exclude: 'abcd'}"))))
        assert rule.matcher.exclude == ("abcd",)

    @pytest.mark.parametrize("exclude", ["5", "{a: b}"])
    def test_non_list_exclude_rejected(self, exclude):
        with pytest.raises(CatalogError, match="'exclude' must be"):
            load(_rule_yaml(match=f"{{regex: 'abc', exclude: {exclude}}}"))
