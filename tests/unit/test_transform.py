"""Tests for the Synapse to MAS row transformation."""

from datetime import datetime, timedelta, timezone
from types import MappingProxyType

import pytest
from ulid import ULID

from auth_migrator.core.transform import (
    build_plan,
    transform_email,
    transform_password,
    transform_session,
    transform_user,
)
from auth_migrator.exceptions import UnmappedProviderError
from auth_migrator.services.identifiers import parse_external_id
from auth_migrator.types import (
    SourceAccessToken,
    SourceExternalId,
    SourceRefreshToken,
    SourceThreePid,
    SourceUser,
    UpstreamOAuthProvider,
)

CREATED = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
ALICE = SourceUser(
    name="@alice:example.org", creation_ts=1_700_000_000, password_hash="$2b$12$abc"
)
PROVIDER = UpstreamOAuthProvider(id=parse_external_id("01H8PKNWKKRPCBW4YGH1RWV279"))


def _seed(migrated_id):
    return ULID.from_str(migrated_id.ulid).datetime


def _email(address="alice@Example.ORG", medium="email", validated=True):
    return SourceThreePid(
        user_id=ALICE.name,
        medium=medium,
        address=address,
        added_at=1_700_000_100_000,
        validated_at=1_700_000_200_000 if validated else None,
    )


def _token(token_id=1, device_id="DEVICE1", last_validated=None, refresh_token_id=None):
    return SourceAccessToken(
        id=token_id,
        user_id=ALICE.name,
        device_id=device_id,
        token=f"syt_{token_id}",
        last_validated=last_validated,
        refresh_token_id=refresh_token_id,
    )


def _build(user=ALICE, threepids=(), external_ids=(), tokens=(), refresh=None, mapping=None):
    warnings = []
    plan = build_plan(
        user,
        threepids,
        external_ids,
        tokens,
        refresh or {},
        MappingProxyType(mapping or {}),
        warnings.append,
    )
    return plan, warnings


class TestTransformUser:
    def test_fields(self):
        user = transform_user(ALICE)
        assert user.username == "alice"
        assert user.created_at == CREATED
        assert user.locked_at is None
        assert user.can_request_admin is False
        assert _seed(user.user_id) == CREATED

    def test_admin_can_request_admin(self):
        admin = SourceUser(name="@root:example.org", creation_ts=1, admin=True)
        assert transform_user(admin).can_request_admin is True

    def test_deactivated_user_locked_at_creation(self):
        gone = SourceUser(name="@gone:example.org", creation_ts=1_700_000_000, deactivated=True)
        assert transform_user(gone).locked_at == CREATED


class TestTransformPassword:
    def test_password_keeps_hash_and_user_creation_time(self):
        target_user = transform_user(ALICE)
        password = transform_password(ALICE, target_user)
        assert password.hashed_password == "$2b$12$abc"
        assert password.version == 1
        assert password.user_id == target_user.user_id
        assert password.created_at == CREATED

    @pytest.mark.parametrize("password_hash", [None, ""])
    def test_no_password(self, password_hash):
        user = SourceUser(name="@sso:example.org", creation_ts=1, password_hash=password_hash)
        assert transform_password(user, transform_user(user)) is None


class TestTransformEmail:
    def test_email_lowercased_and_seeded_at_addition(self):
        email = transform_email(_email(), transform_user(ALICE))
        assert email.email == "alice@example.org"
        assert email.created_at == CREATED + timedelta(seconds=100)
        assert email.confirmed_at == CREATED + timedelta(seconds=200)
        assert _seed(email.user_email_id) == email.created_at

    def test_unvalidated_email_unconfirmed(self):
        email = transform_email(_email(validated=False), transform_user(ALICE))
        assert email.confirmed_at is None


class TestTransformSession:
    def test_seeded_at_last_validation(self):
        last = 1_700_000_300_000
        session, access = transform_session(
            _token(last_validated=last), ALICE, transform_user(ALICE)
        )
        assert session.created_at == CREATED + timedelta(seconds=300)
        assert session.device_id == "DEVICE1"
        assert access.token == "syt_1"
        assert access.compat_session_id == session.compat_session_id
        assert _seed(session.compat_session_id) == session.created_at

    def test_never_validated_falls_back_to_user_creation(self):
        session, _ = transform_session(_token(), ALICE, transform_user(ALICE))
        assert session.created_at == CREATED

    def test_admin_flag_carried(self):
        admin = SourceUser(name="@root:example.org", creation_ts=1, admin=True)
        session, _ = transform_session(_token(), admin, transform_user(admin))
        assert session.is_synapse_admin is True


class TestBuildPlan:
    """Tests for build_plan."""

    def test_end_to_end_example(self):
        plan, warnings = _build(threepids=[_email()], tokens=[_token()])
        assert warnings == []
        assert plan.user.username == "alice"
        assert plan.password is not None
        assert [e.email for e in plan.emails] == ["alice@example.org"]
        assert len(plan.sessions) == 1
        assert len(plan.access_tokens) == 1
        assert plan.refresh_tokens == []

    def test_insertions_in_dependency_order(self):
        refresh = SourceRefreshToken(id=9, user_id=ALICE.name, device_id="DEVICE1", token="syr")
        plan, _ = _build(
            threepids=[_email()],
            external_ids=[SourceExternalId(ALICE.name, "oidc", "sub-1")],
            tokens=[_token(refresh_token_id=9)],
            refresh={9: refresh},
            mapping={"oidc": PROVIDER},
        )
        tables = [insertion.table.name for insertion in plan.insertions()]
        assert tables == [
            "users",
            "user_passwords",
            "user_emails",
            "upstream_oauth_links",
            "compat_sessions",
            "compat_access_tokens",
            "compat_refresh_tokens",
        ]
        assert plan.row_counts()["users"] == 1
        refresh_row = plan.refresh_tokens[0]
        assert refresh_row.token == "syr"
        assert refresh_row.compat_access_token_id == plan.access_tokens[0].compat_access_token_id

    def test_non_email_threepid_warns_and_is_skipped(self):
        plan, warnings = _build(threepids=[_email("+15550100", medium="msisdn"), _email()])
        assert len(warnings) == 1
        assert "msisdn" in warnings[0]
        assert len(plan.emails) == 1

    def test_link_to_mapped_provider(self):
        plan, warnings = _build(
            external_ids=[SourceExternalId(ALICE.name, "oidc", "sub-1")],
            mapping={"oidc": PROVIDER},
        )
        assert warnings == []
        (link,) = plan.links
        assert link.subject == "sub-1"
        assert link.upstream_oauth_provider_id == PROVIDER.id
        assert link.user_id == plan.user.user_id

    def test_unmapped_provider_is_fatal(self):
        with pytest.raises(UnmappedProviderError) as exc_info:
            _build(external_ids=[SourceExternalId(ALICE.name, "oidc-gitlab", "sub-1")])
        assert exc_info.value.provider == "oidc-gitlab"

    def test_deactivated_user_gets_no_sessions(self):
        gone = SourceUser(name="@gone:example.org", creation_ts=1_700_000_000, deactivated=True)
        plan, warnings = _build(
            user=gone,
            threepids=[_email("gone@example.org")],
            external_ids=[SourceExternalId(gone.name, "oidc", "sub-2")],
            tokens=[_token()],
            mapping={"oidc": PROVIDER},
        )
        assert warnings == []
        assert plan.user.locked_at is not None
        assert len(plan.emails) == 1
        assert len(plan.links) == 1
        assert plan.sessions == []
        assert plan.access_tokens == []

    def test_missing_refresh_token_warns(self):
        plan, warnings = _build(tokens=[_token(refresh_token_id=42)], refresh={42: None})
        assert len(warnings) == 1
        assert "42" in warnings[0]
        assert len(plan.sessions) == 1
        assert plan.refresh_tokens == []

    def test_each_row_gets_distinct_id(self):
        plan, _ = _build(tokens=[_token(1), _token(2, device_id="DEVICE2")])
        ids = {s.compat_session_id for s in plan.sessions} | {
            a.compat_access_token_id for a in plan.access_tokens
        }
        assert len(ids) == 4
