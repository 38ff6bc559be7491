"""Python import discovery using stdlib ast + regex fallback."""

from __future__ import annotations

import ast
import logging

from avastscan.scanner.languages import get_language
from avastscan.scanner.languages.generic import ImportRef, find_imports, split_lines

logger = logging.getLogger(__name__)


def find_python_imports(
    content: str, masked_lines: list[str], file_path: str = ""
) -> list[ImportRef]:
    """Return imported modules, preferring the AST when the file parses."""
    try:
        tree = ast.parse(content)
    except (SyntaxError, ValueError):
        logger.debug("AST parse failed for %s, using regex only", file_path)
        return find_imports(masked_lines, get_language("python"))
    return _imports_from_ast(tree, split_lines(content))


def _imports_from_ast(tree: ast.Module, lines: list[str]) -> list[ImportRef]:
    refs: list[ImportRef] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                refs.append(
                    ImportRef(alias.name, node.lineno, _line(lines, node.lineno))
                )
        elif isinstance(node, ast.ImportFrom):
            # relative imports (level > 0) never name a third-party module
            if node.module and node.level == 0:
                refs.append(
                    ImportRef(node.module, node.lineno, _line(lines, node.lineno))
                )
                for alias in node.names:
                    refs.append(
                        ImportRef(
                            f"{node.module}.{alias.name}",
                            node.lineno,
                            _line(lines, node.lineno),
                        )
                    )
    refs.sort(key=lambda r: (r.line, r.module))
    return refs


def _line(lines: list[str], lineno: int) -> str:
    return lines[lineno - 1].strip() if 0 < lineno <= len(lines) else ""
