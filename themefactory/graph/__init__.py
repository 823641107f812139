"""Template dependency graph construction and ordering."""

from .builder import DependencyGraph, DependencyGraphBuilder, Edge, TemplateCycleError
from .directives import DirectiveParser, Directives, RegexDirectiveParser, parse_directives

__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
    "DirectiveParser",
    "Directives",
    "Edge",
    "RegexDirectiveParser",
    "TemplateCycleError",
    "parse_directives",
]
