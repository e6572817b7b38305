"""
Read access to the Synapse database.

Users are streamed through a server-side cursor when the backend supports
one (PostgreSQL) and fully materialised otherwise (SQLite).  Either way the
caller sees the same lazy, single-use sequence of :class:`SourceUser`.
Dependent rows are fetched per user over a second connection so they never
interfere with an open user cursor.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from auth_migrator.core import schema
from auth_migrator.core.config import DEFAULT_STREAM_BATCH_SIZE
from auth_migrator.types import (
    SourceAccessToken,
    SourceExternalId,
    SourceRefreshToken,
    SourceThreePid,
    SourceUser,
)
from auth_migrator.utils.database import supports_streaming
from auth_migrator.utils.logging import log_with_context


class SourceReader:
    """Read-only view of the Synapse tables the migration consumes."""

    def __init__(
        self, engine: Engine, stream_batch_size: int = DEFAULT_STREAM_BATCH_SIZE
    ) -> None:
        self.engine = engine
        self.stream_batch_size = stream_batch_size
        self._conn: Optional[Connection] = None

    def __enter__(self) -> SourceReader:
        self._conn = self.engine.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("SourceReader used outside of its context manager")
        return self._conn

    # -- users -------------------------------------------------------------

    def _eligible_users_query(self) -> sa.Select:
        u = schema.source_users
        return sa.select(
            u.c.name,
            u.c.password_hash,
            u.c.creation_ts,
            u.c.admin,
            u.c.is_guest,
            u.c.deactivated,
            u.c.appservice_id,
        ).where(u.c.appservice_id.is_(None))

    def count_eligible_users(self) -> int:
        """Number of users not owned by an application service."""
        u = schema.source_users
        query = (
            sa.select(sa.func.count()).select_from(u).where(u.c.appservice_id.is_(None))
        )
        return int(self.conn.execute(query).scalar_one())

    def supports_streaming(self) -> bool:
        return supports_streaming(self.engine)

    def iter_users(self) -> Iterator[SourceUser]:
        """Yield every user that is not owned by an application service.

        Iteration order is backend-defined and must not be relied upon.
        """
        if self.supports_streaming():
            log_with_context(
                logging.DEBUG,
                f"Streaming users with a server-side cursor "
                f"(batch size {self.stream_batch_size})",
            )
            return self._stream_users()
        log_with_context(
            logging.DEBUG,
            "Backend cannot stream rows; loading all eligible users into memory",
        )
        return self._materialize_users()

    def _stream_users(self) -> Iterator[SourceUser]:
        with self.engine.connect() as stream_conn:
            result = stream_conn.execution_options(
                stream_results=True, yield_per=self.stream_batch_size
            ).execute(self._eligible_users_query())
            for row in result.mappings():
                yield SourceUser.from_row(row)

    def _materialize_users(self) -> Iterator[SourceUser]:
        rows = self.conn.execute(self._eligible_users_query()).mappings().fetchall()
        for row in rows:
            yield SourceUser.from_row(row)

    # -- dependent rows ----------------------------------------------------

    def threepids_for(self, user_name: str) -> list[SourceThreePid]:
        t = schema.source_user_threepids
        query = sa.select(
            t.c.user_id, t.c.medium, t.c.address, t.c.validated_at, t.c.added_at
        ).where(t.c.user_id == user_name)
        return [SourceThreePid.from_row(row) for row in self.conn.execute(query).mappings()]

    def external_ids_for(self, user_name: str) -> list[SourceExternalId]:
        e = schema.source_user_external_ids
        query = sa.select(e.c.user_id, e.c.auth_provider, e.c.external_id).where(
            e.c.user_id == user_name
        )
        return [
            SourceExternalId.from_row(row) for row in self.conn.execute(query).mappings()
        ]

    def access_tokens_for(self, user_name: str) -> list[SourceAccessToken]:
        """Access tokens bound to a device; device-less tokens are left out."""
        a = schema.source_access_tokens
        query = sa.select(
            a.c.id,
            a.c.user_id,
            a.c.device_id,
            a.c.token,
            a.c.last_validated,
            a.c.refresh_token_id,
        ).where(a.c.user_id == user_name, a.c.device_id.is_not(None))
        return [
            SourceAccessToken.from_row(row) for row in self.conn.execute(query).mappings()
        ]

    def refresh_token(self, refresh_token_id: int) -> Optional[SourceRefreshToken]:
        r = schema.source_refresh_tokens
        query = sa.select(
            r.c.id, r.c.user_id, r.c.device_id, r.c.token, r.c.next_token_id
        ).where(r.c.id == refresh_token_id)
        row = self.conn.execute(query).mappings().first()
        return SourceRefreshToken.from_row(row) if row is not None else None
