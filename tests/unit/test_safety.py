"""Tests for the pre-flight check."""

from datetime import datetime, timezone

import pytest

from auth_migrator.core import schema
from auth_migrator.core.safety import ensure_target_empty
from auth_migrator.exceptions import TargetNotEmptyError
from auth_migrator.services.identifiers import new_id
from auth_migrator.services.target import TargetWriter
from tests.conftest import insert_rows


class TestEnsureTargetEmpty:
    def test_empty_target_passes(self, target_engine):
        ensure_target_empty(TargetWriter(target_engine))

    def test_providers_alone_do_not_count(self, target_engine, provider_id):
        ensure_target_empty(TargetWriter(target_engine))

    def test_existing_user_raises(self, target_engine):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        insert_rows(
            target_engine,
            schema.target_users,
            {
                "user_id": new_id(now).uuid,
                "username": "existing",
                "created_at": now,
                "locked_at": None,
                "can_request_admin": False,
            },
        )
        with pytest.raises(TargetNotEmptyError, match="1 user"):
            ensure_target_empty(TargetWriter(target_engine))
