"""Validators for generated theme output."""

from .structure import REPORT_FILENAME, ValidationIssue, ValidationReport, validate_theme

__all__ = ["REPORT_FILENAME", "ValidationIssue", "ValidationReport", "validate_theme"]
