"""Pre-flight check run before anything is read from the source."""

from __future__ import annotations

import logging

from auth_migrator.exceptions import TargetNotEmptyError
from auth_migrator.services.target import TargetWriter
from auth_migrator.utils.logging import log_with_context


def ensure_target_empty(target: TargetWriter) -> None:
    """Refuse to run against a MAS database that already holds users.

    Re-running on top of migrated data would duplicate every logical user.

    Raises:
        TargetNotEmptyError: If the target ``users`` table has any rows
    """
    existing = target.count_users()
    if existing > 0:
        raise TargetNotEmptyError(
            f"The MAS database already contains {existing} user(s). "
            "The migration must run against an empty MAS database."
        )
    log_with_context(logging.INFO, "Pre-flight check passed: MAS database has no users")
