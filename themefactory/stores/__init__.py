"""Persistent caches used across builds."""

from .baseline_index import BaselineIndexCache

__all__ = ["BaselineIndexCache"]
