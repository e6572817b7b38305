"""Per-user migration pipeline.

For one Synapse user the pipeline extracts the dependent rows, transforms
them into a :class:`~auth_migrator.types.UserMigrationPlan`, decides what to
do with any warnings, and finally commits the plan in one transaction.

Stages: extracting -> transforming -> validating -> committing, ending in
committed, dry-run validated, skipped with warning, or fatal aborted.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth_migrator.core.context import MigrationContext
from auth_migrator.core.state import PipelineStage, UserOutcome
from auth_migrator.core.transform import build_plan
from auth_migrator.exceptions import FatalUserError, GuestUserError, UserWarningsError
from auth_migrator.services.source import SourceReader
from auth_migrator.services.target import TargetWriter
from auth_migrator.types import SourceRefreshToken, SourceUser, UserMigrationPlan
from auth_migrator.utils.logging import log_record, log_with_context


class UserPipeline:
    """Migrates one user at a time; never holds more than one transaction."""

    def __init__(
        self, ctx: MigrationContext, source: SourceReader, target: TargetWriter
    ) -> None:
        self.ctx = ctx
        self.source = source
        self.target = target

    def run(self, user: SourceUser) -> UserOutcome:
        """Run the pipeline for ``user``.

        Fatal user errors end the pipeline in ``FATAL_ABORTED`` and are
        returned on the outcome; the caller decides whether the run goes on.
        Errors from the databases propagate.

        Raises:
            CommitError: If the target rejected this user's rows
        """
        outcome = UserOutcome(user=user.name)
        try:
            plan = self._extract_and_transform(user, outcome)
            self._dispose(user, plan, outcome)
        except FatalUserError as e:
            outcome.stage = PipelineStage.FATAL_ABORTED
            outcome.fatal = e
            log_with_context(
                logging.ERROR,
                f"{self.ctx.log_prefix}{e}",
                user=user.name,
                stage=outcome.stage.value,
            )
        return outcome

    def _extract_and_transform(
        self, user: SourceUser, outcome: UserOutcome
    ) -> UserMigrationPlan:
        outcome.stage = PipelineStage.EXTRACTING
        log_record(logging.DEBUG, "Processing source user", user, user=user.name)

        if user.is_guest:
            raise GuestUserError(user.name)

        threepids = self.source.threepids_for(user.name)
        external_ids = self.source.external_ids_for(user.name)
        if user.deactivated:
            access_tokens = []
            log_with_context(
                logging.DEBUG,
                "User is deactivated; sessions and tokens are not migrated",
                user=user.name,
            )
        else:
            access_tokens = self.source.access_tokens_for(user.name)
        refresh_tokens: dict[int, Optional[SourceRefreshToken]] = {
            token.refresh_token_id: self.source.refresh_token(token.refresh_token_id)
            for token in access_tokens
            if token.refresh_token_id is not None
        }

        outcome.stage = PipelineStage.TRANSFORMING
        plan = build_plan(
            user,
            threepids,
            external_ids,
            access_tokens,
            refresh_tokens,
            self.ctx.provider_mapping,
            outcome.warn,
        )
        for insertion in plan.insertions():
            log_record(
                logging.DEBUG,
                f"Derived {insertion.table.name} row",
                insertion.record,
                user=user.name,
                table=insertion.table.name,
            )
        return plan

    def _dispose(
        self, user: SourceUser, plan: UserMigrationPlan, outcome: UserOutcome
    ) -> None:
        outcome.stage = PipelineStage.VALIDATING
        outcome.row_counts = plan.row_counts()

        if outcome.warnings:
            for warning in outcome.warnings:
                log_with_context(
                    logging.WARNING,
                    f"{self.ctx.log_prefix}{user.name}: {warning}",
                    user=user.name,
                )
            if not self.ctx.dry_run:
                raise UserWarningsError(user.name, outcome.warnings)
            outcome.stage = PipelineStage.SKIPPED_WITH_WARNING
            outcome.row_counts = {}
            log_with_context(
                logging.WARNING,
                f"{self.ctx.log_prefix}Skipping {user.name}: "
                f"{len(outcome.warnings)} warning(s)",
                user=user.name,
                stage=outcome.stage.value,
            )
            return

        if self.ctx.dry_run:
            outcome.stage = PipelineStage.DRY_RUN_VALIDATED
            log_with_context(
                logging.DEBUG,
                f"{self.ctx.log_prefix}{user.name} validated, would write "
                f"{sum(outcome.row_counts.values())} row(s)",
                user=user.name,
                stage=outcome.stage.value,
            )
            return

        outcome.stage = PipelineStage.COMMITTING
        written = self.target.apply(plan.insertions(), user=user.name)
        outcome.stage = PipelineStage.COMMITTED
        log_with_context(
            logging.DEBUG,
            f"Committed {written} row(s) for {user.name} as {plan.user.user_id.ulid}",
            user=user.name,
            stage=outcome.stage.value,
        )
