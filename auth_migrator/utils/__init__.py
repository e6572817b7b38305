"""Shared utilities for database engines, logging and secret redaction."""

__all__ = [
    "database",
    "logging",
    "redaction",
]
