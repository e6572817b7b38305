"""Shared type definitions for the Synapse to MAS authentication migrator.

Source records mirror rows read from the Synapse database; target records
are the rows the migration derives for MAS.  Each record is an explicit
dataclass so the transformation boundary never does dynamic field lookup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Mapping

import sqlalchemy as sa

from auth_migrator.core import schema
from auth_migrator.services.identifiers import MigratedId

# ---------------------------------------------------------------------------
# Source records (Synapse)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceUser:
    """A row of the Synapse ``users`` table."""

    name: str
    creation_ts: int
    password_hash: str | None = None
    admin: bool = False
    is_guest: bool = False
    deactivated: bool = False
    appservice_id: str | None = None

    @property
    def localpart(self) -> str:
        """``alice`` for ``@alice:example.org``; names of another shape as-is."""
        if self.name.startswith("@") and ":" in self.name:
            return self.name[1:].split(":", 1)[0]
        return self.name

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SourceUser:
        return cls(
            name=row["name"],
            creation_ts=int(row["creation_ts"]),
            password_hash=row["password_hash"],
            admin=bool(row["admin"]),
            is_guest=bool(row["is_guest"]),
            deactivated=bool(row["deactivated"]),
            appservice_id=row["appservice_id"],
        )


@dataclass(frozen=True)
class SourceThreePid:
    """A row of ``user_threepids``; timestamps are in milliseconds."""

    user_id: str
    medium: str
    address: str
    added_at: int
    validated_at: int | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SourceThreePid:
        return cls(
            user_id=row["user_id"],
            medium=row["medium"],
            address=row["address"],
            added_at=int(row["added_at"]),
            validated_at=row["validated_at"],
        )


@dataclass(frozen=True)
class SourceExternalId:
    """A row of ``user_external_ids`` linking a user to an upstream provider."""

    user_id: str
    auth_provider: str
    external_id: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SourceExternalId:
        return cls(
            user_id=row["user_id"],
            auth_provider=row["auth_provider"],
            external_id=row["external_id"],
        )


@dataclass(frozen=True)
class SourceAccessToken:
    """A device-bound row of ``access_tokens``; ``last_validated`` is in ms."""

    id: int
    user_id: str
    device_id: str
    token: str
    last_validated: int | None = None
    refresh_token_id: int | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SourceAccessToken:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            device_id=row["device_id"],
            token=row["token"],
            last_validated=row["last_validated"],
            refresh_token_id=row["refresh_token_id"],
        )


@dataclass(frozen=True)
class SourceRefreshToken:
    """A row of ``refresh_tokens``."""

    id: int
    user_id: str
    device_id: str
    token: str
    next_token_id: int | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SourceRefreshToken:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            device_id=row["device_id"],
            token=row["token"],
            next_token_id=row["next_token_id"],
        )


# ---------------------------------------------------------------------------
# Target records (MAS)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpstreamOAuthProvider:
    """An upstream OAuth provider already configured in MAS."""

    id: MigratedId
    issuer: str | None = None
    human_name: str | None = None


@dataclass(frozen=True)
class TargetUser:
    user_id: MigratedId
    username: str
    created_at: datetime
    locked_at: datetime | None
    can_request_admin: bool

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id.uuid,
            "username": self.username,
            "created_at": self.created_at,
            "locked_at": self.locked_at,
            "can_request_admin": self.can_request_admin,
        }


@dataclass(frozen=True)
class TargetUserPassword:
    user_password_id: MigratedId
    user_id: MigratedId
    hashed_password: str
    created_at: datetime
    version: int = 1

    def to_row(self) -> dict[str, Any]:
        return {
            "user_password_id": self.user_password_id.uuid,
            "user_id": self.user_id.uuid,
            "hashed_password": self.hashed_password,
            "version": self.version,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TargetUserEmail:
    user_email_id: MigratedId
    user_id: MigratedId
    email: str
    created_at: datetime
    confirmed_at: datetime | None

    def to_row(self) -> dict[str, Any]:
        return {
            "user_email_id": self.user_email_id.uuid,
            "user_id": self.user_id.uuid,
            "email": self.email,
            "created_at": self.created_at,
            "confirmed_at": self.confirmed_at,
        }


@dataclass(frozen=True)
class TargetUpstreamOAuthLink:
    upstream_oauth_link_id: MigratedId
    user_id: MigratedId
    upstream_oauth_provider_id: MigratedId
    subject: str
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "upstream_oauth_link_id": self.upstream_oauth_link_id.uuid,
            "upstream_oauth_provider_id": self.upstream_oauth_provider_id.uuid,
            "user_id": self.user_id.uuid,
            "subject": self.subject,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TargetCompatSession:
    compat_session_id: MigratedId
    user_id: MigratedId
    device_id: str
    created_at: datetime
    is_synapse_admin: bool

    def to_row(self) -> dict[str, Any]:
        return {
            "compat_session_id": self.compat_session_id.uuid,
            "user_id": self.user_id.uuid,
            "device_id": self.device_id,
            "created_at": self.created_at,
            "is_synapse_admin": self.is_synapse_admin,
        }


@dataclass(frozen=True)
class TargetCompatAccessToken:
    compat_access_token_id: MigratedId
    compat_session_id: MigratedId
    token: str
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "compat_access_token_id": self.compat_access_token_id.uuid,
            "compat_session_id": self.compat_session_id.uuid,
            "access_token": self.token,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TargetCompatRefreshToken:
    compat_refresh_token_id: MigratedId
    compat_session_id: MigratedId
    compat_access_token_id: MigratedId
    token: str
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "compat_refresh_token_id": self.compat_refresh_token_id.uuid,
            "compat_session_id": self.compat_session_id.uuid,
            "compat_access_token_id": self.compat_access_token_id.uuid,
            "refresh_token": self.token,
            "created_at": self.created_at,
        }


# ---------------------------------------------------------------------------
# Insertion plan
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Insertion:
    """One typed insert command, applied only inside the commit transaction."""

    table: sa.Table
    record: Any

    def row(self) -> dict[str, Any]:
        return self.record.to_row()


@dataclass
class UserMigrationPlan:
    """Every target row derived for one source user.

    Built while transforming, applied while committing.
    """

    user: TargetUser
    password: TargetUserPassword | None = None
    emails: list[TargetUserEmail] = field(default_factory=list)
    links: list[TargetUpstreamOAuthLink] = field(default_factory=list)
    sessions: list[TargetCompatSession] = field(default_factory=list)
    access_tokens: list[TargetCompatAccessToken] = field(default_factory=list)
    refresh_tokens: list[TargetCompatRefreshToken] = field(default_factory=list)

    def insertions(self) -> Iterator[Insertion]:
        """Yield insert commands with parents always before their children."""
        yield Insertion(schema.target_users, self.user)
        if self.password is not None:
            yield Insertion(schema.target_user_passwords, self.password)
        for email in self.emails:
            yield Insertion(schema.target_user_emails, email)
        for link in self.links:
            yield Insertion(schema.target_upstream_oauth_links, link)
        for session in self.sessions:
            yield Insertion(schema.target_compat_sessions, session)
        for access_token in self.access_tokens:
            yield Insertion(schema.target_compat_access_tokens, access_token)
        for refresh_token in self.refresh_tokens:
            yield Insertion(schema.target_compat_refresh_tokens, refresh_token)

    def row_counts(self) -> dict[str, int]:
        """Number of rows this plan writes, keyed by target table name."""
        counts: dict[str, int] = {}
        for insertion in self.insertions():
            name = insertion.table.name
            counts[name] = counts.get(name, 0) + 1
        return counts
