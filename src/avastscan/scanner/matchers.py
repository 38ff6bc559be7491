"""Compiled matchers — apply a rule's declarative matcher to one file."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import cached_property

from avastscan.catalog.models import MatcherKind, Rule, Scope
from avastscan.scanner.languages import Language
from avastscan.scanner.languages.generic import (
    Block,
    ImportRef,
    Token,
    find_imports,
    mask_comments,
    module_matches,
    split_blocks,
    split_lines,
    tokenize,
)
from avastscan.scanner.languages.python import find_python_imports
from avastscan.scanner.models import Finding, LineRange

# Matched text longer than this is truncated in findings
_MAX_MATCH_CHARS = 200

_TOKEN_CLASSES = {
    "$STRING": "string",
    "$IDENT": "ident",
    "$NUMBER": "number",
}


class FileContext:
    """Lazily computed lexical views of one file, shared by all rules."""

    def __init__(self, file_path: str, content: str, language: Language) -> None:
        self.file_path = file_path
        self.content = content
        self.language = language
        self._tokens: dict[Block, list[Token]] = {}

    @cached_property
    def lines(self) -> list[str]:
        return split_lines(self.content)

    @cached_property
    def code_lines(self) -> list[str]:
        return mask_comments(self.content, self.language)

    @cached_property
    def code_text(self) -> str:
        return "\n".join(self.code_lines)

    @cached_property
    def blocks(self) -> list[Block]:
        return split_blocks(self.lines, self.language)

    @cached_property
    def code_blocks(self) -> list[Block]:
        return split_blocks(self.code_lines, self.language)

    @cached_property
    def imports(self) -> list[ImportRef]:
        if self.language.name == "python":
            return find_python_imports(self.content, self.code_lines, self.file_path)
        return find_imports(self.code_lines, self.language)

    def tokens(self, block: Block) -> list[Token]:
        cached = self._tokens.get(block)
        if cached is None:
            cached = self._tokens[block] = tokenize(block.text)
        return cached


@dataclass(frozen=True)
class _Hit:
    start_line: int
    end_line: int
    column: int
    text: str


class CompiledRule:
    """A rule with its regexes compiled once, reusable across files."""

    def __init__(self, rule: Rule) -> None:
        self.rule = rule
        matcher = rule.matcher
        flags = re.IGNORECASE if matcher.ignore_case else 0
        self._regex: re.Pattern[str] | None = None
        if matcher.kind is MatcherKind.REGEX:
            if matcher.scope is Scope.FILE:
                flags |= re.MULTILINE
            elif matcher.scope is Scope.BLOCK:
                # a block is one statement; let . span its lines
                flags |= re.DOTALL
            self._regex = re.compile(matcher.pattern, flags)
        self._exclude = tuple(re.compile(p) for p in matcher.exclude)

    def find(self, ctx: FileContext) -> list[Finding]:
        findings: list[Finding] = []
        seen: set[tuple[int, int]] = set()
        for hit in self._hits(ctx):
            if self._is_excluded(hit.text):
                continue
            key = (hit.start_line, hit.end_line)
            if key in seen:
                continue
            seen.add(key)
            findings.append(
                Finding(
                    rule_id=self.rule.id,
                    category=self.rule.category,
                    severity=self.rule.severity,
                    file_path=ctx.file_path,
                    line_range=LineRange(hit.start_line, hit.end_line),
                    matched_text=_clip(hit.text),
                    message=self.rule.message,
                    column=hit.column,
                    language=ctx.language.name,
                )
            )
        return findings

    def _is_excluded(self, text: str) -> bool:
        return any(p.search(text) for p in self._exclude)

    def _hits(self, ctx: FileContext) -> Iterator[_Hit]:
        kind = self.rule.matcher.kind
        if kind is MatcherKind.REGEX:
            scope = self.rule.matcher.scope
            if scope is Scope.LINE:
                return self._line_hits(ctx)
            if scope is Scope.BLOCK:
                return self._block_hits(ctx)
            return self._file_hits(ctx)
        if kind is MatcherKind.TOKENS:
            return self._token_hits(ctx)
        return self._import_hits(ctx)

    def _line_hits(self, ctx: FileContext) -> Iterator[_Hit]:
        lines = ctx.lines if self.rule.matcher.comments else ctx.code_lines
        for line_num, line in enumerate(lines, start=1):
            for match in self._regex.finditer(line):
                yield _Hit(line_num, line_num, match.start() + 1, match.group(0))

    def _block_hits(self, ctx: FileContext) -> Iterator[_Hit]:
        blocks = ctx.blocks if self.rule.matcher.comments else ctx.code_blocks
        for block in blocks:
            for match in self._regex.finditer(block.text):
                yield _Hit(
                    block.line_of(match.start()),
                    block.line_of(max(match.start(), match.end() - 1)),
                    _column(block.text, match.start()),
                    match.group(0),
                )

    def _file_hits(self, ctx: FileContext) -> Iterator[_Hit]:
        text = "\n".join(ctx.lines) if self.rule.matcher.comments else ctx.code_text
        for match in self._regex.finditer(text):
            yield _Hit(
                text.count("\n", 0, match.start()) + 1,
                text.count("\n", 0, max(match.start(), match.end() - 1)) + 1,
                _column(text, match.start()),
                match.group(0),
            )

    def _token_hits(self, ctx: FileContext) -> Iterator[_Hit]:
        wanted = self.rule.matcher.tokens
        fold = self.rule.matcher.ignore_case
        blocks = ctx.blocks if self.rule.matcher.comments else ctx.code_blocks
        for block in blocks:
            tokens = ctx.tokens(block)
            for i in range(len(tokens) - len(wanted) + 1):
                window = tokens[i : i + len(wanted)]
                if all(_token_matches(t, w, fold) for t, w in zip(window, wanted)):
                    first, last = window[0], window[-1]
                    yield _Hit(
                        block.line_of(first.start),
                        block.line_of(last.end - 1),
                        _column(block.text, first.start),
                        block.text[first.start : last.end],
                    )

    def _import_hits(self, ctx: FileContext) -> Iterator[_Hit]:
        modules = self.rule.matcher.modules
        for ref in ctx.imports:
            if any(module_matches(ref.module, m) for m in modules):
                yield _Hit(ref.line, ref.line, 1, ref.text or ref.module)


def _token_matches(token: Token, wanted: str, fold: bool) -> bool:
    if wanted == "$ANY":
        return True
    kind = _TOKEN_CLASSES.get(wanted)
    if kind is not None:
        return token.kind == kind
    if fold:
        return token.text.casefold() == wanted.casefold()
    return token.text == wanted


def _column(text: str, offset: int) -> int:
    return offset - (text.rfind("\n", 0, offset) + 1) + 1


def _clip(text: str) -> str:
    text = text.strip()
    if len(text) > _MAX_MATCH_CHARS:
        return text[: _MAX_MATCH_CHARS - 3] + "..."
    return text
