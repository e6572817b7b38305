"""Shared test fixtures for the auth_migrator test suite."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import pytest
import sqlalchemy as sa
import yaml

from auth_migrator.core import schema
from auth_migrator.services.identifiers import MigratedId, parse_external_id

# 2023-11-14T22:13:20Z
ALICE_CREATION_TS = 1_700_000_000
PROVIDER_ULID = "01H8PKNWKKRPCBW4YGH1RWV279"


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def insert_rows(engine: sa.Engine, table: sa.Table, *rows: dict[str, Any]) -> None:
    """Insert ``rows`` into ``table`` and commit."""
    with engine.begin() as conn:
        for row in rows:
            conn.execute(table.insert(), row)


def add_user(engine: sa.Engine, name: str, **overrides: Any) -> None:
    """Add a Synapse user with sensible defaults."""
    row = {
        "name": name,
        "password_hash": "$2b$12$hash-of-" + name,
        "creation_ts": ALICE_CREATION_TS,
        "admin": 0,
        "is_guest": 0,
        "deactivated": 0,
        "appservice_id": None,
    }
    row.update(overrides)
    insert_rows(engine, schema.source_users, row)


def add_threepid(
    engine: sa.Engine,
    user_id: str,
    address: str,
    medium: str = "email",
    added_at: int = ALICE_CREATION_TS * 1000,
    validated_at: int | None = ALICE_CREATION_TS * 1000,
) -> None:
    insert_rows(
        engine,
        schema.source_user_threepids,
        {
            "user_id": user_id,
            "medium": medium,
            "address": address,
            "added_at": added_at,
            "validated_at": validated_at,
        },
    )


def add_external_id(
    engine: sa.Engine, user_id: str, auth_provider: str, external_id: str
) -> None:
    insert_rows(
        engine,
        schema.source_user_external_ids,
        {"user_id": user_id, "auth_provider": auth_provider, "external_id": external_id},
    )


def add_access_token(
    engine: sa.Engine,
    token_id: int,
    user_id: str,
    device_id: str | None,
    token: str | None = None,
    last_validated: int | None = None,
    refresh_token_id: int | None = None,
) -> None:
    insert_rows(
        engine,
        schema.source_access_tokens,
        {
            "id": token_id,
            "user_id": user_id,
            "device_id": device_id,
            "token": token or f"syt_access_{token_id}",
            "last_validated": last_validated,
            "refresh_token_id": refresh_token_id,
        },
    )


def add_refresh_token(
    engine: sa.Engine, token_id: int, user_id: str, device_id: str, token: str | None = None
) -> None:
    insert_rows(
        engine,
        schema.source_refresh_tokens,
        {
            "id": token_id,
            "user_id": user_id,
            "device_id": device_id,
            "token": token or f"syr_refresh_{token_id}",
            "next_token_id": None,
        },
    )


def count_rows(engine: sa.Engine, table: sa.Table) -> int:
    with engine.connect() as conn:
        return int(conn.execute(sa.select(sa.func.count()).select_from(table)).scalar_one())


def fetch_all(engine: sa.Engine, table: sa.Table) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(sa.select(table)).mappings()]


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logger():
    """Drop handlers a test (or a CLI invocation) attached to the package logger."""
    yield
    logger = logging.getLogger("auth_migrator")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def source_db_path(tmp_path):
    return tmp_path / "homeserver.db"


@pytest.fixture()
def target_db_path(tmp_path):
    return tmp_path / "mas.db"


@pytest.fixture()
def source_engine(source_db_path):
    """A file-backed SQLite database with the Synapse tables."""
    engine = sa.create_engine(f"sqlite:///{source_db_path}")
    schema.source_metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def target_engine(target_db_path):
    """A file-backed SQLite database with the MAS tables."""
    engine = sa.create_engine(f"sqlite:///{target_db_path}")
    schema.target_metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def provider_id(target_engine) -> MigratedId:
    """An upstream OAuth provider registered in the target."""
    provider = parse_external_id(PROVIDER_ULID)
    insert_rows(
        target_engine,
        schema.target_upstream_oauth_providers,
        {
            "upstream_oauth_provider_id": provider.uuid,
            "issuer": "https://accounts.example.com",
            "human_name": "Example SSO",
            "created_at": datetime(2023, 1, 1, tzinfo=timezone.utc),
        },
    )
    return provider


@pytest.fixture()
def alice(source_engine):
    """The end-to-end example user: one email, one device-bound token."""
    add_user(source_engine, "@alice:example.org")
    add_threepid(source_engine, "@alice:example.org", "alice@Example.ORG")
    add_access_token(
        source_engine,
        1,
        "@alice:example.org",
        "DEVICE1",
        token="syt_alice_secret",
        last_validated=(ALICE_CREATION_TS + 60) * 1000,
    )
    return "@alice:example.org"


# ---------------------------------------------------------------------------
# Config file fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def source_config_file(tmp_path, source_db_path, source_engine):
    path = tmp_path / "homeserver.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "server_name": "example.org",
                "database": {"name": "sqlite3", "args": {"database": str(source_db_path)}},
            }
        )
    )
    return path


@pytest.fixture()
def target_config_file(tmp_path, target_db_path, target_engine):
    path = tmp_path / "mas.yaml"
    path.write_text(
        yaml.safe_dump({"database": {"uri": f"sqlite:///{target_db_path}"}})
    )
    return path
