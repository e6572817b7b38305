"""
Write access to the MAS database.

The target is touched in three ways only: the pre-flight user count, the
upstream provider lookups, and one transaction per migrated user.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth_migrator.core import schema
from auth_migrator.exceptions import CommitError
from auth_migrator.services.identifiers import MigratedId
from auth_migrator.types import Insertion, UpstreamOAuthProvider
from auth_migrator.utils.logging import log_record, log_with_context


def describe_database_error(error: SQLAlchemyError) -> str:
    """Name a database error without its statement, parameters or detail lines.

    Driver messages may quote the offending row (PostgreSQL's ``DETAIL: Key
    (access_token)=(...)``), so only the first line of the driver error is kept.
    """
    orig = getattr(error, "orig", None)
    lines = str(orig).strip().splitlines() if orig is not None else []
    if not lines:
        return type(error).__name__
    return f"{type(error).__name__}: {lines[0]}"


class TargetWriter:
    """Thin wrapper around the MAS engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            query = sa.select(sa.func.count()).select_from(schema.target_users)
            return int(conn.execute(query).scalar_one())

    def find_provider(self, provider_id: MigratedId) -> Optional[UpstreamOAuthProvider]:
        p = schema.target_upstream_oauth_providers
        query = sa.select(p.c.issuer, p.c.human_name).where(
            p.c.upstream_oauth_provider_id == provider_id.uuid
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            return None
        return UpstreamOAuthProvider(
            id=provider_id, issuer=row["issuer"], human_name=row["human_name"]
        )

    def apply(self, insertions: Iterable[Insertion], user: str) -> int:
        """Apply ``insertions`` in order inside a single transaction.

        Either every row is committed or none is.  A failed rollback is
        logged without hiding the error that caused it.

        Args:
            insertions: Insert commands, parents before children
            user: Source user name, for log context

        Returns:
            The number of rows written

        Raises:
            CommitError: If any insert or the commit itself fails
        """
        written = 0
        with self.engine.connect() as conn:
            transaction = conn.begin()
            try:
                for insertion in insertions:
                    log_record(
                        logging.DEBUG,
                        f"Inserting into {insertion.table.name}",
                        insertion.record,
                        user=user,
                        table=insertion.table.name,
                    )
                    conn.execute(insertion.table.insert(), insertion.row())
                    written += 1
                transaction.commit()
            except SQLAlchemyError as e:
                try:
                    transaction.rollback()
                except SQLAlchemyError as rollback_error:
                    log_with_context(
                        logging.ERROR,
                        f"Rollback failed for user {user}: "
                        f"{describe_database_error(rollback_error)}",
                        user=user,
                    )
                raise CommitError(
                    f"Failed to write user {user} to the target: "
                    f"{describe_database_error(e)}"
                ) from e
        return written
