"""Custom exception hierarchy for the Synapse to MAS authentication migrator."""

from __future__ import annotations


class MigratorError(Exception):
    """Base exception for all migration-related errors."""


class ConfigError(MigratorError):
    """Raised when configuration is invalid or missing."""


class InvalidMappingFormatError(ConfigError):
    """Raised when an upstream provider mapping is not ``<name>:<provider id>``."""


class UnknownProviderError(ConfigError):
    """Raised when a provider mapping points at a provider absent from the target."""


class MalformedIdentifierError(MigratorError, ValueError):
    """Raised when a string is neither a ULID nor a UUID."""


class TargetNotEmptyError(MigratorError):
    """Raised by the pre-flight check when the target already holds users."""


class FatalUserError(MigratorError):
    """A user that cannot be migrated; escalates to a whole-run failure."""

    def __init__(self, message: str, user: str) -> None:
        super().__init__(message)
        self.user = user


class GuestUserError(FatalUserError):
    """Raised when a guest account is found in the source."""

    def __init__(self, user: str) -> None:
        super().__init__(
            f"Guest user {user} found; guest accounts cannot be migrated", user
        )


class UnmappedProviderError(FatalUserError):
    """Raised when a user is linked to an upstream provider with no mapping."""

    def __init__(self, user: str, provider: str) -> None:
        super().__init__(
            f"User {user} is linked to upstream provider '{provider}' which has "
            "no mapping; pass --upstream_provider_mapping "
            f"{provider}:<provider id>",
            user,
        )
        self.provider = provider


class UserWarningsError(FatalUserError):
    """Raised outside dry-run mode when a user accumulated warnings."""

    def __init__(self, user: str, warnings: list[str]) -> None:
        super().__init__(
            f"User {user} has {len(warnings)} warning(s) and cannot be migrated "
            "safely",
            user,
        )
        self.warnings = list(warnings)


class CommitError(MigratorError):
    """Raised when the target store rejects the writes for one user."""


class MigrationAbortedError(MigratorError):
    """Raised when the migration is aborted due to fatal errors."""
