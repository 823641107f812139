"""Synthesize template-based theme packages from parsed static prototypes."""

__version__ = "1.0.0"
