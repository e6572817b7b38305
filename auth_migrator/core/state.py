"""
Run state for the Synapse to MAS migration.

Each pipeline invocation returns a :class:`UserOutcome`; the orchestrator
folds it into the run-scoped :class:`RunSummary`.  There are no global
counters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from auth_migrator.exceptions import FatalUserError


class PipelineStage(str, Enum):
    """Where a user is in the per-user pipeline, or where it ended up."""

    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    DRY_RUN_VALIDATED = "dry_run_validated"
    SKIPPED_WITH_WARNING = "skipped_with_warning"
    FATAL_ABORTED = "fatal_aborted"

    @property
    def is_final(self) -> bool:
        return self in _FINAL_STAGES


_FINAL_STAGES = frozenset(
    {
        PipelineStage.COMMITTED,
        PipelineStage.DRY_RUN_VALIDATED,
        PipelineStage.SKIPPED_WITH_WARNING,
        PipelineStage.FATAL_ABORTED,
    }
)


@dataclass
class UserOutcome:
    """Result of running the pipeline for one source user."""

    user: str
    stage: PipelineStage = PipelineStage.EXTRACTING
    warnings: list[str] = field(default_factory=list)
    fatal: Optional[FatalUserError] = None
    # Rows written (or, in dry-run, that would have been written) per table
    row_counts: dict[str, int] = field(default_factory=dict)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass
class RunSummary:
    """Aggregate counters for a whole run."""

    dry_run: bool = False
    users_considered: int = 0
    users_migrated: int = 0
    users_validated: int = 0
    users_skipped: int = 0
    fatal_count: int = 0
    fatal_errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    row_counts: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.fatal_count < 0:
            raise ValueError(f"fatal_count must be non-negative, got {self.fatal_count}")

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def succeeded(self) -> bool:
        """True when no user hit a fatal error and none was skipped."""
        return self.fatal_count == 0 and self.users_skipped == 0

    def merge(self, outcome: UserOutcome) -> None:
        """Fold one user's outcome into the run totals."""
        if not outcome.stage.is_final:
            raise ValueError(
                f"Cannot merge outcome for {outcome.user} in non-final stage {outcome.stage.value}"
            )
        self.users_considered += 1
        self.warnings.extend(f"{outcome.user}: {w}" for w in outcome.warnings)

        if outcome.stage is PipelineStage.FATAL_ABORTED:
            self.record_fatal(str(outcome.fatal) if outcome.fatal else outcome.user)
            return

        if outcome.stage is PipelineStage.SKIPPED_WITH_WARNING:
            self.users_skipped += 1
            return

        if outcome.stage is PipelineStage.COMMITTED:
            self.users_migrated += 1
        else:
            self.users_validated += 1
        for table, count in outcome.row_counts.items():
            self.row_counts[table] = self.row_counts.get(table, 0) + count

    def record_fatal(self, message: str) -> None:
        self.fatal_count += 1
        self.fatal_errors.append(message)

    def record_failed_user(self, message: str) -> None:
        """Count a user whose rows the target rejected."""
        self.users_considered += 1
        self.record_fatal(message)

    def to_dict(self) -> dict[str, object]:
        return {
            "dry_run": self.dry_run,
            "succeeded": self.succeeded,
            "users_considered": self.users_considered,
            "users_migrated": self.users_migrated,
            "users_validated": self.users_validated,
            "users_skipped": self.users_skipped,
            "fatal_count": self.fatal_count,
            "warning_count": self.warning_count,
            "rows": dict(sorted(self.row_counts.items())),
            "fatal_errors": list(self.fatal_errors),
            "warnings": list(self.warnings),
        }
