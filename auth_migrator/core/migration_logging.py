"""
Migration success/failure logging for the Synapse to MAS migrator.

Kept apart from ``migrator.py`` so the orchestrator stays focused on control
flow.  Each function takes the migrator instance as its first argument.
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, Any

from auth_migrator.core.state import RunSummary
from auth_migrator.utils.logging import log_with_context

if TYPE_CHECKING:
    from auth_migrator.core.migrator import AuthMigrator


def _collect_statistics(migrator: AuthMigrator) -> dict[str, Any]:
    """Gather the run statistics from the migrator's summary into a flat dict.

    Args:
        migrator: The migrator instance whose summary holds the counters.

    Returns:
        Dict with keys: users_considered, users_migrated, users_validated,
        users_skipped, fatal_count, warning_count, rows.
    """
    summary = migrator.summary
    return {
        "users_considered": summary.users_considered,
        "users_migrated": summary.users_migrated,
        "users_validated": summary.users_validated,
        "users_skipped": summary.users_skipped,
        "fatal_count": summary.fatal_count,
        "warning_count": summary.warning_count,
        "rows": sum(summary.row_counts.values()),
    }


def replay_warnings(summary: RunSummary) -> None:
    """Log every warning gathered so far, one record each."""
    for warning in summary.warnings:
        log_with_context(logging.WARNING, f"Warning: {warning}", stat="warning")


def log_migration_success(migrator: AuthMigrator, duration: float) -> None:
    """Log final migration success status with a summary.

    Args:
        migrator: The migrator instance whose summary holds the counters.
        duration: Migration duration in seconds.
    """
    stats = _collect_statistics(migrator)
    is_dry_run = migrator.dry_run

    if is_dry_run:
        log_with_context(
            logging.INFO,
            "DRY RUN VALIDATION COMPLETED SUCCESSFULLY",
            outcome="dry_run_complete",
        )
    else:
        log_with_context(
            logging.INFO,
            "SYNAPSE-TO-MAS MIGRATION COMPLETED SUCCESSFULLY",
            outcome="success",
        )

    log_with_context(
        logging.INFO,
        f"Duration: {duration / 60:.1f} minutes ({duration:.1f} seconds)",
        duration_seconds=duration,
    )
    log_with_context(
        logging.INFO,
        f"Users considered: {stats['users_considered']}",
        stat="users_considered",
        count=stats["users_considered"],
    )
    if is_dry_run:
        log_with_context(
            logging.INFO,
            f"Users validated: {stats['users_validated']}",
            stat="users_validated",
            count=stats["users_validated"],
        )
        log_with_context(
            logging.INFO,
            f"Rows that would be written: {stats['rows']}",
            stat="rows",
            count=stats["rows"],
        )
        log_with_context(
            logging.INFO,
            "Validation complete. Review the logs and run without --dry_run to migrate.",
        )
    else:
        log_with_context(
            logging.INFO,
            f"Users migrated: {stats['users_migrated']}",
            stat="users_migrated",
            count=stats["users_migrated"],
        )
        log_with_context(
            logging.INFO,
            f"Rows written: {stats['rows']}",
            stat="rows",
            count=stats["rows"],
        )


def log_migration_failure(
    migrator: AuthMigrator, exception: BaseException, duration: float
) -> None:
    """Log final migration failure status with error details.

    Every warning gathered before the failure is replayed so the operator
    sees all of them, not just the one that stopped the run.

    Args:
        migrator: The migrator instance whose summary holds the counters.
        exception: The exception that caused the failure.
        duration: Migration duration in seconds before failure.
    """
    stats = _collect_statistics(migrator)
    is_interrupt = isinstance(exception, KeyboardInterrupt)
    is_dry_run = migrator.dry_run

    if is_interrupt:
        header = (
            "DRY RUN VALIDATION INTERRUPTED BY USER"
            if is_dry_run
            else "SYNAPSE-TO-MAS MIGRATION INTERRUPTED BY USER"
        )
        log_with_context(
            logging.WARNING,
            header,
            outcome="interrupted",
            exception_type="KeyboardInterrupt",
        )
    else:
        header = (
            "DRY RUN VALIDATION FAILED"
            if is_dry_run
            else "SYNAPSE-TO-MAS MIGRATION FAILED"
        )
        log_with_context(
            logging.ERROR,
            header,
            outcome="failed",
            exception_type=type(exception).__name__,
            exception_message=str(exception),
        )
        log_with_context(
            logging.ERROR,
            f"Exception: {type(exception).__name__}: {exception!s}",
            exception_type=type(exception).__name__,
            duration_seconds=duration,
        )

    progress_level = logging.WARNING if is_interrupt else logging.ERROR
    progress_label = (
        "PROGRESS BEFORE INTERRUPTION" if is_interrupt else "PROGRESS BEFORE FAILURE"
    )
    log_with_context(
        progress_level,
        f"{progress_label}: Users considered: {stats['users_considered']}",
        stat="users_considered",
        count=stats["users_considered"],
    )
    if not is_dry_run:
        log_with_context(
            progress_level,
            f"Users committed: {stats['users_migrated']}",
            stat="users_migrated",
            count=stats["users_migrated"],
        )
    log_with_context(
        progress_level,
        f"Users skipped: {stats['users_skipped']}, fatal errors: {stats['fatal_count']}",
        stat="users_skipped",
        count=stats["users_skipped"],
    )

    for fatal in migrator.summary.fatal_errors:
        log_with_context(logging.ERROR, f"Fatal: {fatal}", stat="fatal")
    replay_warnings(migrator.summary)

    if not is_interrupt and exception.__traceback__ is not None:
        # Chained database errors can quote row values; only the outer error is shown
        tb = "".join(
            traceback.format_exception(
                type(exception), exception, exception.__traceback__, chain=False
            )
        )
        log_with_context(logging.DEBUG, f"Traceback:\n{tb}")

    if is_dry_run:
        log_with_context(
            logging.ERROR if not is_interrupt else logging.WARNING,
            "Fix the issues above and run the dry run again.",
        )
    elif migrator.summary.users_migrated:
        log_with_context(
            progress_level,
            "Users committed before the failure remain in MAS. Empty the MAS "
            "database before running the migration again.",
        )
