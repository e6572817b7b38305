"""CLI command handler for the migrate workflow."""

from __future__ import annotations

import datetime
import logging
import os
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

import click
import yaml

from auth_migrator.cli.common import cli, common_options, handle_exception
from auth_migrator.cli.report import generate_report, print_run_summary
from auth_migrator.core.config import load_config
from auth_migrator.core.migrator import AuthMigrator
from auth_migrator.utils.logging import log_with_context, setup_logger


# ---------------------------------------------------------------------------
# migrate subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option(
    "--dry_run",
    is_flag=True,
    default=False,
    help="Validation-only mode - runs every check and transformation without writing to MAS",
)
def migrate(
    source_config: str,
    target_config: str,
    upstream_provider_mappings: tuple[str, ...],
    verbose: bool,
    json_logs: bool,
    dry_run: bool,
) -> None:
    """Migrate Synapse users, emails, upstream links and sessions into MAS.

    Args:
        source_config: Path to the Synapse homeserver.yaml.
        target_config: Path to the MAS config.yaml.
        upstream_provider_mappings: ``<synapse id>:<MAS id>`` pairs.
        verbose: Enable verbose console logging.
        json_logs: Emit console logs as JSON.
        dry_run: Validation-only mode.
    """
    args = SimpleNamespace(
        source_config=source_config,
        target_config=target_config,
        upstream_provider_mappings=list(upstream_provider_mappings),
        verbose=verbose,
        json_logs=json_logs,
        dry_run=dry_run,
    )

    # Create output directory early so all operations are logged to file
    output_dir = create_migration_output_directory()
    setup_logger(args.verbose, output_dir, args.json_logs)

    log_startup_info(args)
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    orchestrator = MigrationOrchestrator(args)
    orchestrator.output_dir = output_dir

    try:
        orchestrator.validate_prerequisites()
        orchestrator.run_migration()
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        sys.exit(1)
    finally:
        orchestrator.cleanup()


# ---------------------------------------------------------------------------
# MigrationOrchestrator
# ---------------------------------------------------------------------------


class MigrationOrchestrator:
    """Orchestrates the migration process with validation and error handling."""

    def __init__(self, args: SimpleNamespace) -> None:
        self.args = args
        self.migrator: Optional[AuthMigrator] = None
        self.output_dir: Optional[str] = None

    def create_migrator(self) -> AuthMigrator:
        """Load both configuration files and build a migrator from them.

        Returns:
            A configured AuthMigrator ready to run.
        """
        config = load_config(self.args.source_config, self.args.target_config)
        return AuthMigrator(
            config,
            self.args.upstream_provider_mappings,
            dry_run=self.args.dry_run,
        )

    def validate_prerequisites(self) -> None:
        """Load configuration and connect to both databases."""
        self.migrator = self.create_migrator()
        log_with_context(
            logging.INFO,
            f"Source database: {self.migrator.config.source_database.display_url}",
        )
        log_with_context(
            logging.INFO,
            f"Target database: {self.migrator.config.target_database.display_url}",
        )

    def write_report(self, interrupted: bool = False) -> Optional[str]:
        """Generate the report, logging rather than raising on failure.

        Returns:
            The report path, or None if it could not be written.
        """
        if self.migrator is None:
            return None
        try:
            report_file = generate_report(
                self.migrator.summary,
                self.output_dir,
                source_config=self.args.source_config,
                target_config=self.args.target_config,
            )
        except (OSError, yaml.YAMLError) as report_error:
            log_with_context(
                logging.WARNING,
                f"Failed to generate migration report: {report_error}",
            )
            return None
        if interrupted:
            log_with_context(
                logging.INFO,
                f"Partial migration report available at: {report_file}",
            )
        return report_file

    def run_migration(self) -> None:
        """Execute the migration and report on it whatever the outcome."""
        if self.migrator is None:
            raise RuntimeError("Migrator not initialized")
        m = self.migrator
        try:
            m.migrate()
        except BaseException as e:
            # Report even on failure to show the progress made
            report_file = self.write_report(
                interrupted=isinstance(e, (KeyboardInterrupt, SystemExit))
            )
            if m.summary.users_considered:
                print_run_summary(m.summary, report_file)
            raise

        report_file = self.write_report()
        print_run_summary(m.summary, report_file)

    def cleanup(self) -> None:
        """Release database connections."""
        if self.migrator:
            self.migrator.close()


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def log_startup_info(args: SimpleNamespace) -> None:
    """Log startup information.

    Args:
        args: Parsed CLI arguments containing migration parameters.
    """
    log_with_context(logging.INFO, "Starting migration with the following parameters:")
    log_with_context(logging.INFO, f"- Source config: {_absolute(args.source_config)}")
    log_with_context(logging.INFO, f"- Target config: {_absolute(args.target_config)}")
    for mapping in args.upstream_provider_mappings:
        log_with_context(logging.INFO, f"- Upstream provider mapping: {mapping}")
    log_with_context(logging.INFO, f"- Dry run: {args.dry_run}")
    log_with_context(logging.INFO, f"- Verbose logging: {args.verbose}")


def _absolute(path: str) -> Path:
    config_path = Path(path)
    if not config_path.is_absolute():
        config_path = Path.cwd() / path
    return config_path


def create_migration_output_directory() -> str:
    """Create output directory for migration with timestamp.

    Returns:
        The path to the newly created output directory.
    """
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = f"migration_logs/run_{timestamp}"
    os.makedirs(output_dir, exist_ok=True)
    return output_dir
