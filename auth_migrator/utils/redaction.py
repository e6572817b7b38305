"""
Redaction of secrets before records reach any log output.

Password hashes and tokens must never be written to a log file.  Every
record rendered for diagnostics goes through :func:`render`, which replaces
the value of each sensitive field with a fixed marker.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Mapping

REDACTED = "[REDACTED]"

# Field names are matched case-sensitively.
SENSITIVE_FIELDS = frozenset({"password_hash", "hashed_password", "access_token", "token"})


def redact(record: Any) -> Any:
    """Return a copy of ``record`` with sensitive values masked.

    Dataclasses are converted to dicts first; mappings and lists are walked
    recursively so nested records are masked too.  Other values are returned
    unchanged.
    """
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        record = {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    if isinstance(record, Mapping):
        return {
            key: REDACTED if key in SENSITIVE_FIELDS else redact(value)
            for key, value in record.items()
        }
    if isinstance(record, list):
        return [redact(item) for item in record]
    return record


def render(record: Any) -> str:
    """Render ``record`` as JSON text with sensitive values masked."""
    return json.dumps(redact(record), default=str, sort_keys=True)
