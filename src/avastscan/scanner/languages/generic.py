"""Language-aware lexical helpers — comment masking, statement blocks, tokens.

Nothing here parses a language. Blocks and tokens are approximations built
from bracket depth, line continuations and a small token grammar shared by
every supported language.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from avastscan.scanner.languages import Language

# Blocks longer than this are flushed even if brackets never balance
_MAX_BLOCK_LINES = 40

_CONTINUATION_SUFFIXES = ("\\", "+", ",", ".", "&&", "||", "=", "(", "[")
_OPENERS = {"(": ")", "[": "]"}
_CLOSERS = {")", "]"}
_NEWLINE_RE = re.compile(r"\r\n|\r|\n")

_TOKEN_RE = re.compile(
    r"""
    (?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>==|!=|<=|>=|=>|->|::|&&|\|\||\+=|-=|\*\*|//|[^\sA-Za-z0-9_])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Block:
    """A statement-sized run of lines."""

    start_line: int
    end_line: int
    text: str

    def line_of(self, offset: int) -> int:
        """1-based file line of a character offset inside the block."""
        return self.start_line + self.text.count("\n", 0, offset)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    start: int
    end: int


@dataclass(frozen=True)
class ImportRef:
    module: str
    line: int
    text: str


def split_lines(content: str) -> list[str]:
    """Split on ``\\n``, ``\\r\\n`` and ``\\r`` only.

    Unlike ``str.splitlines`` this keeps form feeds and other separators inside
    a line, so line numbers agree with editors and with ``ast``.
    """
    lines = _NEWLINE_RE.split(content)
    if lines[-1] == "":
        lines.pop()
    return lines


def mask_comments(content: str, language: Language) -> list[str]:
    """Return the file's lines with comments blanked.

    Comment-only lines become empty and block comments are overwritten with
    spaces, so line count and columns are preserved.
    """
    masked: list[str] = []
    in_block = False
    opener, closer = language.block_comment or ("", "")

    for line in split_lines(content):
        if in_block:
            end = line.find(closer)
            if end < 0:
                masked.append("")
                continue
            in_block = False
            end += len(closer)
            line = " " * end + line[end:]
        if opener and line.strip().startswith(opener):
            start = line.find(opener)
            end = line.find(closer, start + len(opener))
            if end < 0:
                masked.append("")
                in_block = True
                continue
            end += len(closer)
            line = line[:start] + " " * (end - start) + line[end:]
        stripped = line.strip()
        if not stripped or stripped.startswith(language.line_comments):
            masked.append("")
            continue
        masked.append(line)
    return masked


def split_blocks(lines: list[str], language: Language) -> list[Block]:
    """Group lines into statement blocks using bracket/continuation heuristics."""
    blocks: list[Block] = []
    pending: list[str] = []
    start = 0
    depth = 0

    def flush(end_index: int) -> None:
        nonlocal pending, depth
        if pending and any(p.strip() for p in pending):
            blocks.append(
                Block(
                    start_line=start + 1,
                    end_line=end_index + 1,
                    text="\n".join(pending),
                )
            )
        pending = []
        depth = 0

    for index, line in enumerate(lines):
        if not pending:
            start = index
            if not line.strip():
                continue
        pending.append(line)

        code = _strip_trailing_comment(line, language).rstrip()
        depth = max(0, depth + _bracket_delta(code))
        continues = depth > 0 or code.endswith(_CONTINUATION_SUFFIXES)
        if not continues or len(pending) >= _MAX_BLOCK_LINES:
            flush(index)

    if pending:
        flush(len(lines) - 1)
    return blocks


def tokenize(text: str) -> list[Token]:
    """Split text into string, number, identifier and operator tokens."""
    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup or "op"
        tokens.append(
            Token(kind=kind, text=match.group(0), start=match.start(), end=match.end())
        )
    return tokens


def find_imports(lines: list[str], language: Language) -> list[ImportRef]:
    """Find import-like statements with the language's regex patterns."""
    refs: list[ImportRef] = []
    in_group = False

    for line_num, line in enumerate(lines, start=1):
        if language.name == "go":
            stripped = line.strip()
            if in_group:
                if stripped.startswith(")"):
                    in_group = False
                    continue
                m = re.match(r'^(?:[\w.]+\s+)?"([^"]+)"', stripped)
                if m:
                    refs.append(ImportRef(m.group(1), line_num, stripped))
                continue
            if re.match(r"^import\s*\($", stripped):
                in_group = True
                continue

        for pattern in language.import_patterns:
            for match in pattern.finditer(line):
                for module in _split_modules(match.group(1)):
                    refs.append(ImportRef(module, line_num, line.strip()))
    return refs


def module_matches(module: str, wanted: str) -> bool:
    """Whether an imported module is ``wanted`` or one of its sub-modules."""
    if module == wanted:
        return True
    return module.startswith((wanted + ".", wanted + "/"))


def _split_modules(raw: str) -> list[str]:
    return [m.strip() for m in raw.split(",") if m.strip()]


def _strip_trailing_comment(line: str, language: Language) -> str:
    """Drop a trailing line comment that is not inside a string literal."""
    quote = ""
    i = 0
    while i < len(line):
        ch = line[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = ""
        elif ch in "\"'`":
            quote = ch
        else:
            for marker in language.line_comments:
                if line.startswith(marker, i):
                    return line[:i]
        i += 1
    return line


def _bracket_delta(code: str) -> int:
    """Net count of opened ( and [ outside string literals."""
    delta = 0
    quote = ""
    i = 0
    while i < len(code):
        ch = code[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = ""
        elif ch in "\"'`":
            quote = ch
        elif ch in _OPENERS:
            delta += 1
        elif ch in _CLOSERS:
            delta -= 1
        i += 1
    return delta
