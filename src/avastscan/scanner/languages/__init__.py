"""Supported source languages and extension-based detection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Language:
    """Lexical conventions of a source language."""

    name: str
    extensions: tuple[str, ...]
    line_comments: tuple[str, ...] = ()
    block_comment: tuple[str, str] | None = None
    filenames: tuple[str, ...] = ()
    import_patterns: tuple[re.Pattern[str], ...] = field(default=(), repr=False)


_C_STYLE = ("//",)
_C_BLOCK = ("/*", "*/")

_JS_IMPORTS = (
    re.compile(r"""\bimport\s+(?:[\w*${}\s,]+\s+from\s+)?["']([^"']+)["']"""),
    re.compile(r"""\brequire\s*\(\s*["']([^"']+)["']\s*\)"""),
    re.compile(r"""\bimport\s*\(\s*["']([^"']+)["']\s*\)"""),
)

LANGUAGES: dict[str, Language] = {
    lang.name: lang
    for lang in (
        Language(
            name="python",
            extensions=(".py", ".pyi", ".pyw"),
            line_comments=("#",),
            import_patterns=(
                re.compile(r"^\s*from\s+([\w.]+)\s+import\b"),
                re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)"),
            ),
        ),
        Language(
            name="javascript",
            extensions=(".js", ".jsx", ".mjs", ".cjs"),
            line_comments=_C_STYLE,
            block_comment=_C_BLOCK,
            import_patterns=_JS_IMPORTS,
        ),
        Language(
            name="typescript",
            extensions=(".ts", ".tsx", ".mts", ".cts"),
            line_comments=_C_STYLE,
            block_comment=_C_BLOCK,
            import_patterns=_JS_IMPORTS,
        ),
        Language(
            name="ruby",
            extensions=(".rb", ".rake", ".gemspec"),
            line_comments=("#",),
            filenames=("Gemfile", "Rakefile"),
            import_patterns=(
                re.compile(r"""^\s*require(?:_relative)?\s*\(?\s*["']([^"']+)["']"""),
            ),
        ),
        Language(
            name="java",
            extensions=(".java", ".kt", ".kts"),
            line_comments=_C_STYLE,
            block_comment=_C_BLOCK,
            import_patterns=(
                re.compile(r"^\s*import\s+(?:static\s+)?([\w.]+?)(?:\.\*)?\s*;?\s*$"),
            ),
        ),
        Language(
            name="go",
            extensions=(".go",),
            line_comments=_C_STYLE,
            block_comment=_C_BLOCK,
            import_patterns=(
                re.compile(r"""^\s*import\s+(?:[\w.]+\s+)?"([^"]+)\""""),
            ),
        ),
        Language(
            name="terraform",
            extensions=(".tf", ".tfvars", ".hcl"),
            line_comments=("#", "//"),
            block_comment=_C_BLOCK,
            import_patterns=(re.compile(r"""^\s*source\s*=\s*"([^"]+)\""""),),
        ),
        Language(
            name="shell",
            extensions=(".sh", ".bash", ".zsh", ".ksh"),
            line_comments=("#",),
            import_patterns=(re.compile(r"""^\s*(?:source|\.)\s+["']?([^\s"';]+)"""),),
        ),
        Language(
            name="yaml",
            extensions=(".yml", ".yaml"),
            line_comments=("#",),
        ),
    )
}

_BY_EXTENSION = {ext: lang for lang in LANGUAGES.values() for ext in lang.extensions}
_BY_FILENAME = {name: lang for lang in LANGUAGES.values() for name in lang.filenames}


def detect_language(file_path: str | Path) -> str | None:
    """Return the language name for a path, or None when unsupported."""
    path = Path(file_path)
    lang = _BY_FILENAME.get(path.name) or _BY_EXTENSION.get(path.suffix.lower())
    return lang.name if lang else None


def get_language(name: str) -> Language:
    return LANGUAGES[name]


def supported_languages() -> list[str]:
    return sorted(LANGUAGES)
