"""Structural directive parsing for template sources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

_COMMENT_PATTERN = re.compile(r"\{#.*?#\}", re.DOTALL)
_DIRECTIVE_PATTERN = re.compile(r"""\{%-?\s*(include|extends|embed)\s+['"]([^'"]+)['"]""")


@dataclass(frozen=True)
class Directives:
    """Structural relations declared by one template."""

    extends: Optional[str] = None
    includes: Tuple[str, ...] = ()


class DirectiveParser(Protocol):
    """Anything that can pull extends/include targets out of template text."""

    def parse(self, text: str) -> Directives:
        ...


def normalize_template_path(rel: str) -> str:
    cleaned = rel.strip().replace("\\", "/").lstrip("/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned if cleaned.endswith(".twig") else f"{cleaned}.twig"


def parse_directives(text: str) -> Directives:
    """Return the first `extends` target and every `include`/`embed` target, in order."""
    extends: Optional[str] = None
    includes: List[str] = []
    for match in _DIRECTIVE_PATTERN.finditer(_COMMENT_PATTERN.sub("", text)):
        kind, target = match.group(1), normalize_template_path(match.group(2))
        if kind == "extends":
            if extends is None:
                extends = target
        elif target not in includes:
            includes.append(target)
    return Directives(extends=extends, includes=tuple(includes))


class RegexDirectiveParser:
    """Default parser backed by a directive regular expression."""

    def parse(self, text: str) -> Directives:
        return parse_directives(text)


__all__ = [
    "DirectiveParser",
    "Directives",
    "RegexDirectiveParser",
    "normalize_template_path",
    "parse_directives",
]
