"""
Main migrator class for the Synapse to MAS authentication migrator
"""

from __future__ import annotations

import contextlib
import logging
import time
from typing import Mapping, Optional, Sequence

from sqlalchemy.engine import Engine
from tqdm import tqdm

from auth_migrator.core.config import MigrationConfig
from auth_migrator.core.context import MigrationContext
from auth_migrator.core.migration_logging import (
    log_migration_failure,
    log_migration_success,
)
from auth_migrator.core.pipeline import UserPipeline
from auth_migrator.core.safety import ensure_target_empty
from auth_migrator.core.state import PipelineStage, RunSummary
from auth_migrator.exceptions import CommitError, MigrationAbortedError
from auth_migrator.services.providers import resolve_provider_mappings
from auth_migrator.services.source import SourceReader
from auth_migrator.services.target import TargetWriter
from auth_migrator.types import UpstreamOAuthProvider
from auth_migrator.utils.database import create_engine_for
from auth_migrator.utils.logging import log_with_context


class AuthMigrator:
    """Migrates Synapse accounts, emails, upstream links and sessions into MAS."""

    def __init__(
        self,
        config: MigrationConfig,
        provider_mappings: Sequence[str] = (),
        dry_run: bool = False,
        source_engine: Optional[Engine] = None,
        target_engine: Optional[Engine] = None,
    ) -> None:
        self.config = config
        self.provider_mappings = list(provider_mappings)
        self.dry_run = dry_run

        self.source_engine = source_engine or create_engine_for(config.source_database)
        self.target_engine = target_engine or create_engine_for(config.target_database)
        self.target = TargetWriter(self.target_engine)

        self.summary = RunSummary(dry_run=dry_run)
        self.ctx: Optional[MigrationContext] = None

    def check(self) -> Mapping[str, UpstreamOAuthProvider]:
        """Run the pre-flight check and resolve provider mappings.

        Nothing is read from the source and nothing is written anywhere.

        Returns:
            The resolved provider mapping

        Raises:
            TargetNotEmptyError: If MAS already holds users
            InvalidMappingFormatError: If a mapping string is malformed
            UnknownProviderError: If a mapped provider is absent from MAS
        """
        ensure_target_empty(self.target)
        return resolve_provider_mappings(self.provider_mappings, self.target)

    def migrate(self) -> RunSummary:
        """Main migration function that orchestrates the entire process.

        Returns:
            The run summary when every user was migrated (or, in dry-run,
            validated)

        Raises:
            MigrationAbortedError: If any user hit a fatal error or, in
                dry-run, had to be skipped
        """
        prefix = "[DRY RUN] " if self.dry_run else ""
        log_with_context(logging.INFO, f"{prefix}Starting migration process")
        start = time.time()

        try:
            provider_mapping = self.check()
            self.ctx = MigrationContext(
                dry_run=self.dry_run,
                provider_mapping=provider_mapping,
            )
            self._migrate_users(self.ctx)
            if not self.summary.succeeded:
                raise MigrationAbortedError(
                    f"{prefix}Migration finished with {self.summary.fatal_count} "
                    f"fatal error(s) and {self.summary.users_skipped} skipped user(s)"
                )
        except BaseException as e:
            log_migration_failure(self, e, time.time() - start)
            raise

        log_migration_success(self, time.time() - start)
        return self.summary

    def _migrate_users(self, ctx: MigrationContext) -> None:
        with SourceReader(self.source_engine, self.config.stream_batch_size) as source:
            pipeline = UserPipeline(ctx, source, self.target)
            total = source.count_eligible_users()
            log_with_context(
                logging.INFO, f"{ctx.log_prefix}Found {total} user(s) to migrate"
            )

            with contextlib.closing(source.iter_users()) as users:
                pbar = tqdm(users, total=total, desc="Migrating users", unit="user")
                for user in pbar:
                    try:
                        outcome = pipeline.run(user)
                    except CommitError as e:
                        self.summary.record_failed_user(str(e))
                        raise
                    self.summary.merge(outcome)

                    if outcome.stage is PipelineStage.FATAL_ABORTED and not ctx.dry_run:
                        raise MigrationAbortedError(
                            f"Migration aborted at user {outcome.user}: {outcome.fatal}"
                        ) from outcome.fatal

    def close(self) -> None:
        """Dispose of both engines."""
        self.source_engine.dispose()
        self.target_engine.dispose()
