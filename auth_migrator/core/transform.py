"""
Field-by-field transformation of Synapse rows into MAS rows.

Every derived identifier is seeded from the time of the source event it
describes: the user's registration, the third-party ID's addition, or the
access token's last validation.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Optional

from auth_migrator.exceptions import UnmappedProviderError
from auth_migrator.services.identifiers import (
    from_epoch_millis,
    from_epoch_seconds,
    new_id,
)
from auth_migrator.types import (
    SourceAccessToken,
    SourceExternalId,
    SourceRefreshToken,
    SourceThreePid,
    SourceUser,
    TargetCompatAccessToken,
    TargetCompatRefreshToken,
    TargetCompatSession,
    TargetUpstreamOAuthLink,
    TargetUser,
    TargetUserEmail,
    TargetUserPassword,
    UpstreamOAuthProvider,
    UserMigrationPlan,
)

EMAIL_MEDIUM = "email"
PASSWORD_SCHEMA_VERSION = 1


def transform_user(user: SourceUser) -> TargetUser:
    created_at = from_epoch_seconds(user.creation_ts)
    return TargetUser(
        user_id=new_id(created_at),
        username=user.localpart,
        created_at=created_at,
        # Synapse keeps no deactivation time; registration time stands in for it
        locked_at=created_at if user.deactivated else None,
        can_request_admin=user.admin,
    )


def transform_password(
    user: SourceUser, target_user: TargetUser
) -> Optional[TargetUserPassword]:
    if not user.password_hash:
        return None
    return TargetUserPassword(
        user_password_id=new_id(target_user.created_at),
        user_id=target_user.user_id,
        hashed_password=user.password_hash,
        created_at=target_user.created_at,
        version=PASSWORD_SCHEMA_VERSION,
    )


def transform_email(threepid: SourceThreePid, target_user: TargetUser) -> TargetUserEmail:
    created_at = from_epoch_millis(threepid.added_at)
    confirmed_at = (
        from_epoch_millis(threepid.validated_at)
        if threepid.validated_at is not None
        else None
    )
    return TargetUserEmail(
        user_email_id=new_id(created_at),
        user_id=target_user.user_id,
        email=threepid.address.lower(),
        created_at=created_at,
        confirmed_at=confirmed_at,
    )


def transform_link(
    external_id: SourceExternalId,
    target_user: TargetUser,
    provider: UpstreamOAuthProvider,
) -> TargetUpstreamOAuthLink:
    return TargetUpstreamOAuthLink(
        upstream_oauth_link_id=new_id(target_user.created_at),
        user_id=target_user.user_id,
        upstream_oauth_provider_id=provider.id,
        subject=external_id.external_id,
        created_at=target_user.created_at,
    )


def transform_session(
    token: SourceAccessToken, user: SourceUser, target_user: TargetUser
) -> tuple[TargetCompatSession, TargetCompatAccessToken]:
    """Derive the compat session and access token for one device-bound token."""
    created_at = (
        from_epoch_millis(token.last_validated)
        if token.last_validated is not None
        else target_user.created_at
    )
    session = TargetCompatSession(
        compat_session_id=new_id(created_at),
        user_id=target_user.user_id,
        device_id=token.device_id,
        created_at=created_at,
        is_synapse_admin=user.admin,
    )
    access_token = TargetCompatAccessToken(
        compat_access_token_id=new_id(created_at),
        compat_session_id=session.compat_session_id,
        token=token.token,
        created_at=created_at,
    )
    return session, access_token


def transform_refresh_token(
    refresh_token: SourceRefreshToken,
    session: TargetCompatSession,
    access_token: TargetCompatAccessToken,
) -> TargetCompatRefreshToken:
    return TargetCompatRefreshToken(
        compat_refresh_token_id=new_id(session.created_at),
        compat_session_id=session.compat_session_id,
        compat_access_token_id=access_token.compat_access_token_id,
        token=refresh_token.token,
        created_at=session.created_at,
    )


def build_plan(
    user: SourceUser,
    threepids: Iterable[SourceThreePid],
    external_ids: Iterable[SourceExternalId],
    access_tokens: Iterable[SourceAccessToken],
    refresh_tokens: Mapping[int, Optional[SourceRefreshToken]],
    provider_mapping: Mapping[str, UpstreamOAuthProvider],
    warn: Callable[[str], None],
) -> UserMigrationPlan:
    """Derive every MAS row for one Synapse user.

    Rows that cannot be carried over but do not endanger the rest of the
    user (non-email third-party IDs, dangling refresh tokens) are reported
    through ``warn`` and left out.

    Args:
        user: The Synapse user
        threepids: The user's third-party IDs
        external_ids: The user's upstream provider links
        access_tokens: The user's device-bound access tokens; ignored for
            deactivated users
        refresh_tokens: Refresh tokens referenced by ``access_tokens``,
            keyed by id, ``None`` for ids that do not exist
        provider_mapping: Synapse provider name to MAS provider
        warn: Callback recording a warning against this user

    Returns:
        The plan of rows to insert

    Raises:
        UnmappedProviderError: If an upstream link names a provider that
            has no mapping
    """
    target_user = transform_user(user)
    plan = UserMigrationPlan(user=target_user)
    plan.password = transform_password(user, target_user)

    for threepid in threepids:
        if threepid.medium != EMAIL_MEDIUM:
            warn(
                f"Third-party ID with medium '{threepid.medium}' is not an email "
                "address and was not migrated"
            )
            continue
        plan.emails.append(transform_email(threepid, target_user))

    for external_id in external_ids:
        provider = provider_mapping.get(external_id.auth_provider)
        if provider is None:
            raise UnmappedProviderError(user.name, external_id.auth_provider)
        plan.links.append(transform_link(external_id, target_user, provider))

    if user.deactivated:
        return plan

    for token in access_tokens:
        session, access_token = transform_session(token, user, target_user)
        plan.sessions.append(session)
        plan.access_tokens.append(access_token)

        if token.refresh_token_id is None:
            continue
        refresh_token = refresh_tokens.get(token.refresh_token_id)
        if refresh_token is None:
            warn(
                f"Access token for device {token.device_id} refers to refresh "
                f"token {token.refresh_token_id}, which does not exist"
            )
            continue
        plan.refresh_tokens.append(
            transform_refresh_token(refresh_token, session, access_token)
        )

    return plan
