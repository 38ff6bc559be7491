"""Load and merge rule catalogs from YAML files."""

from __future__ import annotations

import functools
import importlib.resources
import logging
import re
from collections.abc import Iterable
from pathlib import Path

import yaml

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
from avastscan.errors import CatalogError

logger = logging.getLogger(__name__)

_PRESET_PREFIX = "preset:"
_DEFAULT_PRESET = "default"
_TOKEN_CLASSES = {"$STRING", "$IDENT", "$NUMBER", "$ANY"}


def load(source: str | Path) -> frozenset[Rule]:
    """Parse a single catalog source into its set of rules.

    ``source`` is either a path to a YAML file or the YAML text itself.
    Inherited catalogs are resolved first and overridden by the source's own
    rules.
    """
    name, data = _read_source(source)
    entries = _resolve(data, name, _resolved=set())
    return frozenset(r for r in entries.values() if r is not None)


def load_catalog_from_string(text: str, name: str = "<string>") -> Catalog:
    """Parse YAML text into a Catalog (without the bundled default)."""
    data = _parse_yaml(text, name)
    entries = _resolve(data, name, _resolved=set())
    return Catalog(
        rules=tuple(r for r in entries.values() if r is not None),
        sources=(name,),
    )


def load_catalog(
    sources: Iterable[str | Path] = (),
    include_default: bool = True,
) -> Catalog:
    """Build the effective catalog: bundled default, then each source in order.

    A later rule with an existing id replaces the earlier one. An entry of the
    form ``{id: X, enabled: false}`` removes rule X.
    """
    merged: dict[str, Rule] = {}
    names: list[str] = []

    if include_default:
        base = default_catalog()
        merged.update((r.id, r) for r in base)
        names.extend(base.sources)

    for source in sources:
        name, data = _read_source(Path(source))
        entries = _resolve(data, name, _resolved=set())
        for rule_id, rule in entries.items():
            if rule is None:
                if merged.pop(rule_id, None) is not None:
                    logger.debug("Rule %s disabled by %s", rule_id, name)
                continue
            if rule_id in merged:
                logger.debug("Rule %s overridden by %s", rule_id, name)
            merged[rule_id] = rule
        names.append(name)

    return Catalog(rules=tuple(merged.values()), sources=tuple(names))


@functools.lru_cache(maxsize=1)
def default_catalog() -> Catalog:
    """The bundled catalog, parsed once per process."""
    data = _load_preset_data(_DEFAULT_PRESET)
    name = f"{_PRESET_PREFIX}{_DEFAULT_PRESET}"
    entries = _resolve(data, name, _resolved=set())
    return Catalog(
        rules=tuple(r for r in entries.values() if r is not None),
        sources=(name,),
    )


def _read_source(source: str | Path) -> tuple[str, dict]:
    if isinstance(source, Path) or _looks_like_path(source):
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CatalogError(f"cannot read catalog: {e}", source=str(path)) from e
        return str(path), _parse_yaml(text, str(path))
    return "<string>", _parse_yaml(source, "<string>")


def _looks_like_path(source: str) -> bool:
    if "\n" in source:
        return False
    return source.endswith((".yaml", ".yml")) or Path(source).exists()


def _parse_yaml(text: str, name: str) -> dict:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CatalogError(f"invalid YAML: {e}", source=name) from e
    if not isinstance(data, dict):
        raise CatalogError("catalog YAML must be a mapping", source=name)
    return data


def _as_list(value: object, key: str, source: str) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise CatalogError(f"'{key}' must be a string or a list", source=source)
    return value


def _resolve(data: dict, name: str, _resolved: set[str]) -> dict[str, Rule | None]:
    """Return id → Rule (None marks a disabled rule), inherited rules first."""
    if name in _resolved:
        raise CatalogError("circular catalog inheritance detected", source=name)
    _resolved.add(name)

    merged: dict[str, Rule | None] = {}
    inherit_list = _as_list(data.get("inherit"), "inherit", name)
    try:
        for ref in inherit_list:
            merged.update(_load_ref(str(ref), _resolved))
    finally:
        # only ancestors count; siblings may share a base catalog
        _resolved.discard(name)
    # own entries override inherited ones; None markers survive so an outer
    # merge can drop the rule too
    merged.update(_parse_rules(data.get("rules", []), name))
    return merged


def _load_ref(ref: str, _resolved: set[str]) -> dict[str, Rule | None]:
    if ref.startswith(_PRESET_PREFIX):
        preset = ref[len(_PRESET_PREFIX) :]
        return _resolve(_load_preset_data(preset), ref, _resolved)
    path = Path(ref)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogError(f"cannot read inherited catalog: {e}", source=ref) from e
    return _resolve(_parse_yaml(text, ref), ref, _resolved)


def _load_preset_data(name: str) -> dict:
    pkg = importlib.resources.files("avastscan.catalog.presets")
    resource = pkg.joinpath(f"{name}.yaml")
    try:
        text = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise CatalogError(
            f"unknown preset '{name}'", source=f"{_PRESET_PREFIX}{name}"
        ) from e
    return _parse_yaml(text, f"{_PRESET_PREFIX}{name}")


def _parse_rules(rules_data: object, source: str) -> dict[str, Rule | None]:
    if rules_data is None:
        return {}
    if not isinstance(rules_data, list):
        raise CatalogError("'rules' must be a list", source=source)

    rules: dict[str, Rule | None] = {}
    for index, entry in enumerate(rules_data):
        if not isinstance(entry, dict):
            raise CatalogError(f"rule #{index + 1} must be a mapping", source=source)
        rule_id = entry.get("id")
        if not rule_id or not isinstance(rule_id, str):
            raise CatalogError(f"rule #{index + 1} is missing an id", source=source)
        if rule_id in rules:
            raise CatalogError("duplicate rule id", rule_id=rule_id, source=source)

        if entry.get("enabled", True) is False:
            rules[rule_id] = None
            continue
        rules[rule_id] = _parse_rule(rule_id, entry, source)
    return rules


def _parse_rule(rule_id: str, entry: dict, source: str) -> Rule:
    def fail(message: str) -> CatalogError:
        return CatalogError(message, rule_id=rule_id, source=source)

    try:
        category = Category.parse(entry["category"])
    except KeyError:
        raise fail("missing category") from None
    except ValueError:
        raise fail(f"invalid category {entry['category']!r}") from None

    try:
        severity = Severity.parse(entry["severity"])
    except KeyError:
        raise fail("missing severity") from None
    except ValueError:
        raise fail(f"invalid severity {entry['severity']!r}") from None

    message = entry.get("message")
    if not message:
        raise fail("missing message")

    languages_raw = entry.get("languages", [ANY_LANGUAGE])
    if isinstance(languages_raw, str):
        languages_raw = [languages_raw]
    if not isinstance(languages_raw, list):
        raise fail("'languages' must be a string or a list")
    languages = frozenset(str(lang).strip().lower() for lang in languages_raw)
    if not languages:
        raise fail("'languages' must not be empty")

    return Rule(
        id=rule_id,
        category=category,
        severity=severity,
        message=str(message).strip(),
        matcher=_parse_matcher(entry.get("match"), fail),
        languages=languages,
        remediation=str(entry.get("remediation", "")).strip(),
    )


def _parse_matcher(data: object, fail) -> Matcher:
    if not isinstance(data, dict):
        raise fail("missing 'match' mapping")

    kinds = [k for k in MatcherKind if k.value in data]
    if len(kinds) != 1:
        raise fail("'match' must declare exactly one of regex, tokens, imports")
    kind = kinds[0]

    ignore_case = bool(data.get("ignore_case", False))
    exclude_raw = data.get("exclude") or []
    if isinstance(exclude_raw, str):
        exclude_raw = [exclude_raw]
    if not isinstance(exclude_raw, list):
        raise fail("'exclude' must be a string or a list")
    exclude = tuple(str(p) for p in exclude_raw)
    for pattern in exclude:
        _check_regex(pattern, False, fail)

    try:
        scope = Scope(data.get("scope", "line"))
    except ValueError:
        raise fail(f"invalid scope {data.get('scope')!r}") from None

    common = dict(
        kind=kind,
        ignore_case=ignore_case,
        comments=bool(data.get("comments", False)),
        exclude=exclude,
    )

    if kind is MatcherKind.REGEX:
        pattern = str(data["regex"])
        _check_regex(pattern, ignore_case, fail)
        return Matcher(pattern=pattern, scope=scope, **common)

    if kind is MatcherKind.TOKENS:
        tokens = data["tokens"]
        if not isinstance(tokens, list) or not tokens:
            raise fail("'tokens' must be a non-empty list")
        tokens = tuple(str(t) for t in tokens)
        unknown = [t for t in tokens if t.startswith("$") and t not in _TOKEN_CLASSES]
        if unknown:
            raise fail(f"unknown token class {unknown[0]!r}")
        return Matcher(tokens=tokens, **common)

    modules = data["imports"]
    if isinstance(modules, str):
        modules = [modules]
    if not isinstance(modules, list) or not modules:
        raise fail("'imports' must be a non-empty list")
    return Matcher(modules=tuple(str(m) for m in modules), **common)


def _check_regex(pattern: str, ignore_case: bool, fail) -> None:
    try:
        re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    except re.error as e:
        raise fail(f"invalid regex {pattern!r}: {e}") from None
