"""
Identifier derivation for migrated rows.

Every row written to the target carries a ULID.  The same 128-bit value is
exposed as the lexically sortable Crockford base32 string (what MAS shows
to operators) and as a UUID (what MAS stores in its ``uuid`` columns).  IDs
are seeded from the time of the source event they describe rather than the
time of the migration, so target rows keep a meaningful chronology.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import NamedTuple

from ulid import ULID

from auth_migrator.exceptions import MalformedIdentifierError

ULID_LENGTH = 26


class MigratedId(NamedTuple):
    """One 128-bit identifier in both of its textual encodings."""

    ulid: str
    uuid: uuid.UUID

    @classmethod
    def from_ulid(cls, value: ULID) -> MigratedId:
        return cls(ulid=str(value), uuid=value.to_uuid())


def new_id(timestamp: datetime) -> MigratedId:
    """Generate a new identifier whose time component is ``timestamp``.

    The random component makes two calls with the same timestamp yield
    different identifiers.

    Args:
        timestamp: Point in time to seed the identifier with. Naive
            datetimes are taken to be UTC.

    Returns:
        The identifier as a (ULID string, UUID) pair.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return MigratedId.from_ulid(ULID.from_datetime(timestamp))


def parse_external_id(text: str) -> MigratedId:
    """Normalise an operator-supplied identifier into both encodings.

    Accepts a ULID, a canonical UUID, or any non-canonical spelling the
    standard library understands (no dashes, braces, ``urn:uuid:`` prefix,
    upper case).

    Raises:
        MalformedIdentifierError: If ``text`` is neither a ULID nor a UUID.
    """
    candidate = text.strip()
    if len(candidate) == ULID_LENGTH:
        try:
            return MigratedId.from_ulid(ULID.from_str(candidate.upper()))
        except ValueError:
            pass
    try:
        parsed = uuid.UUID(candidate)
    except ValueError as e:
        raise MalformedIdentifierError(
            f"'{text}' is neither a ULID nor a UUID"
        ) from e
    return MigratedId.from_ulid(ULID.from_uuid(parsed))


def from_epoch_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def from_epoch_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
