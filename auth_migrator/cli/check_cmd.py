"""CLI command handler for the pre-flight check."""

from __future__ import annotations

import logging
import sys
from types import SimpleNamespace

import click

from auth_migrator.cli.common import cli, common_options, handle_exception
from auth_migrator.cli.migrate_cmd import MigrationOrchestrator
from auth_migrator.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# check subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
def check(
    source_config: str,
    target_config: str,
    upstream_provider_mappings: tuple[str, ...],
    verbose: bool,
    json_logs: bool,
) -> None:
    """Check that the MAS database is empty and every provider mapping resolves.

    Nothing is read from Synapse beyond its configuration, and nothing is
    written anywhere.

    Args:
        source_config: Path to the Synapse homeserver.yaml.
        target_config: Path to the MAS config.yaml.
        upstream_provider_mappings: ``<synapse id>:<MAS id>`` pairs.
        verbose: Enable verbose console logging.
        json_logs: Emit console logs as JSON.
    """
    args = SimpleNamespace(
        source_config=source_config,
        target_config=target_config,
        upstream_provider_mappings=list(upstream_provider_mappings),
        verbose=verbose,
        json_logs=json_logs,
        dry_run=True,  # check never writes
    )
    setup_logger(args.verbose, json_logs=args.json_logs)

    orchestrator = MigrationOrchestrator(args)
    try:
        orchestrator.validate_prerequisites()
        if orchestrator.migrator is None:
            raise RuntimeError("Migrator not initialized")
        providers = orchestrator.migrator.check()
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        sys.exit(1)
    finally:
        orchestrator.cleanup()

    log_with_context(
        logging.INFO,
        f"Check passed: MAS is empty and {len(providers)} upstream provider "
        "mapping(s) resolved",
    )
    click.echo("Check passed. The migration can be run.")
