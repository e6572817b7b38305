"""SQLAlchemy table definitions for the source (Synapse) and target (MAS) stores.

Only the columns the migration reads or writes are declared.  The metadata
objects are also used by the test-suite to create throwaway databases.
"""

from __future__ import annotations

import sqlalchemy as sa

# ---------------------------------------------------------------------------
# Source: Synapse homeserver database
# ---------------------------------------------------------------------------

source_metadata = sa.MetaData()

source_users = sa.Table(
    "users",
    source_metadata,
    sa.Column("name", sa.Text, primary_key=True),
    sa.Column("password_hash", sa.Text, nullable=True),
    sa.Column("creation_ts", sa.BigInteger, nullable=False),
    sa.Column("admin", sa.SmallInteger, nullable=False, default=0),
    sa.Column("is_guest", sa.SmallInteger, nullable=False, default=0),
    sa.Column("deactivated", sa.SmallInteger, nullable=False, default=0),
    sa.Column("appservice_id", sa.Text, nullable=True),
)

source_user_threepids = sa.Table(
    "user_threepids",
    source_metadata,
    sa.Column("user_id", sa.Text, nullable=False),
    sa.Column("medium", sa.Text, nullable=False),
    sa.Column("address", sa.Text, nullable=False),
    sa.Column("validated_at", sa.BigInteger, nullable=True),
    sa.Column("added_at", sa.BigInteger, nullable=False),
)

source_user_external_ids = sa.Table(
    "user_external_ids",
    source_metadata,
    sa.Column("auth_provider", sa.Text, nullable=False),
    sa.Column("external_id", sa.Text, nullable=False),
    sa.Column("user_id", sa.Text, nullable=False),
)

source_access_tokens = sa.Table(
    "access_tokens",
    source_metadata,
    sa.Column("id", sa.BigInteger, primary_key=True),
    sa.Column("user_id", sa.Text, nullable=False),
    sa.Column("device_id", sa.Text, nullable=True),
    sa.Column("token", sa.Text, nullable=False),
    sa.Column("last_validated", sa.BigInteger, nullable=True),
    sa.Column("refresh_token_id", sa.BigInteger, nullable=True),
)

source_refresh_tokens = sa.Table(
    "refresh_tokens",
    source_metadata,
    sa.Column("id", sa.BigInteger, primary_key=True),
    sa.Column("user_id", sa.Text, nullable=False),
    sa.Column("device_id", sa.Text, nullable=False),
    sa.Column("token", sa.Text, nullable=False),
    sa.Column("next_token_id", sa.BigInteger, nullable=True),
)

# ---------------------------------------------------------------------------
# Target: Matrix Authentication Service database
# ---------------------------------------------------------------------------

target_metadata = sa.MetaData()

target_users = sa.Table(
    "users",
    target_metadata,
    sa.Column("user_id", sa.Uuid, primary_key=True),
    sa.Column("username", sa.Text, nullable=False, unique=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("can_request_admin", sa.Boolean, nullable=False, default=False),
)

target_user_passwords = sa.Table(
    "user_passwords",
    target_metadata,
    sa.Column("user_password_id", sa.Uuid, primary_key=True),
    sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.user_id"), nullable=False),
    sa.Column("hashed_password", sa.Text, nullable=False),
    sa.Column("version", sa.Integer, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

target_user_emails = sa.Table(
    "user_emails",
    target_metadata,
    sa.Column("user_email_id", sa.Uuid, primary_key=True),
    sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.user_id"), nullable=False),
    sa.Column("email", sa.Text, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
)

target_upstream_oauth_providers = sa.Table(
    "upstream_oauth_providers",
    target_metadata,
    sa.Column("upstream_oauth_provider_id", sa.Uuid, primary_key=True),
    sa.Column("issuer", sa.Text, nullable=True),
    sa.Column("human_name", sa.Text, nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

target_upstream_oauth_links = sa.Table(
    "upstream_oauth_links",
    target_metadata,
    sa.Column("upstream_oauth_link_id", sa.Uuid, primary_key=True),
    sa.Column(
        "upstream_oauth_provider_id",
        sa.Uuid,
        sa.ForeignKey("upstream_oauth_providers.upstream_oauth_provider_id"),
        nullable=False,
    ),
    sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.user_id"), nullable=True),
    sa.Column("subject", sa.Text, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

target_compat_sessions = sa.Table(
    "compat_sessions",
    target_metadata,
    sa.Column("compat_session_id", sa.Uuid, primary_key=True),
    sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.user_id"), nullable=False),
    sa.Column("device_id", sa.Text, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("is_synapse_admin", sa.Boolean, nullable=False),
)

target_compat_access_tokens = sa.Table(
    "compat_access_tokens",
    target_metadata,
    sa.Column("compat_access_token_id", sa.Uuid, primary_key=True),
    sa.Column(
        "compat_session_id",
        sa.Uuid,
        sa.ForeignKey("compat_sessions.compat_session_id"),
        nullable=False,
    ),
    sa.Column("access_token", sa.Text, nullable=False, unique=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

target_compat_refresh_tokens = sa.Table(
    "compat_refresh_tokens",
    target_metadata,
    sa.Column("compat_refresh_token_id", sa.Uuid, primary_key=True),
    sa.Column(
        "compat_session_id",
        sa.Uuid,
        sa.ForeignKey("compat_sessions.compat_session_id"),
        nullable=False,
    ),
    sa.Column(
        "compat_access_token_id",
        sa.Uuid,
        sa.ForeignKey("compat_access_tokens.compat_access_token_id"),
        nullable=False,
    ),
    sa.Column("refresh_token", sa.Text, nullable=False, unique=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
