"""Engine construction for the source and target databases."""

from __future__ import annotations

import logging

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from auth_migrator.core.config import DatabaseConfig
from auth_migrator.utils.logging import log_with_context


def create_engine_for(database: DatabaseConfig) -> Engine:
    """Create an engine for ``database``.

    Bound parameters are kept out of error messages, since they carry
    password hashes and tokens. Connection pooling is left at SQLAlchemy's
    defaults; the migration never holds more than two connections per
    database at once.
    """
    log_with_context(logging.DEBUG, f"Creating engine for {database.display_url}")
    return sa.create_engine(database.url, hide_parameters=True)


def supports_streaming(engine: Engine) -> bool:
    """True when the backend can stream rows through a server-side cursor."""
    return bool(engine.dialect.supports_server_side_cursors)
