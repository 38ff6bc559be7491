"""Catalog data models — immutable rule definitions shared across scans."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

ANY_LANGUAGE = "*"


class Category(enum.Enum):
    """The five AVAST vulnerability categories."""

    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    AUDITING = "auditing"
    SECRETS = "secrets"
    TRUST = "trust"

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, text: str) -> Category:
        return cls(str(text).strip().lower())


class Severity(enum.Enum):
    """Finding severity. Ordering is fixed: critical > high > medium > low."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: Severity) -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, text: str) -> Severity:
        return cls(str(text).strip().lower())

    @classmethod
    def descending(cls) -> list[Severity]:
        return sorted(cls, key=lambda s: s.rank, reverse=True)


_SEVERITY_RANK = {
    Severity.CRITICAL: 3,
    Severity.HIGH: 2,
    Severity.MEDIUM: 1,
    Severity.LOW: 0,
}


class MatcherKind(enum.Enum):
    """Capability tag of a rule matcher."""

    REGEX = "regex"
    TOKENS = "tokens"
    IMPORTS = "imports"


class Scope(enum.Enum):
    """Text unit a regex matcher is applied to."""

    LINE = "line"
    BLOCK = "block"
    FILE = "file"


@dataclass(frozen=True)
class Matcher:
    """Declarative matcher. Exactly one of pattern/tokens/modules is used,
    selected by ``kind``."""

    kind: MatcherKind
    pattern: str = ""
    tokens: tuple[str, ...] = ()
    modules: tuple[str, ...] = ()
    scope: Scope = Scope.LINE
    ignore_case: bool = False
    comments: bool = False
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class Rule:
    """A single detection rule."""

    id: str
    category: Category
    severity: Severity
    message: str
    matcher: Matcher
    languages: frozenset[str] = frozenset({ANY_LANGUAGE})
    remediation: str = ""

    def applies_to(self, language: str) -> bool:
        return ANY_LANGUAGE in self.languages or language in self.languages


@dataclass(frozen=True)
class Catalog:
    """An immutable, id-indexed collection of rules."""

    rules: tuple[Rule, ...] = ()
    sources: tuple[str, ...] = ()
    _index: dict[str, Rule] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.rules, key=lambda r: r.id))
        object.__setattr__(self, "rules", ordered)
        object.__setattr__(self, "_index", {r.id: r for r in ordered})

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._index

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def get(self, rule_id: str) -> Rule | None:
        return self._index.get(rule_id)

    def select(
        self,
        categories: Iterable[Category] | None = None,
        languages: Iterable[str] | None = None,
    ) -> Catalog:
        """Return a sub-catalog restricted to the given categories/languages."""
        cats = frozenset(categories) if categories else None
        langs = frozenset(languages) if languages else None
        kept = [
            r
            for r in self.rules
            if (cats is None or r.category in cats)
            and (langs is None or any(r.applies_to(lang) for lang in langs))
        ]
        return Catalog(rules=tuple(kept), sources=self.sources)

    def for_language(self, language: str) -> tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.applies_to(language))
