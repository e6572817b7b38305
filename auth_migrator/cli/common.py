"""Shared CLI infrastructure: option decorators, error handlers, and the CLI group."""

from __future__ import annotations

import logging
from typing import Callable, ClassVar

import click
from sqlalchemy.exc import SQLAlchemyError

import auth_migrator
from auth_migrator.exceptions import (
    ConfigError,
    MigrationAbortedError,
    MigratorError,
    TargetNotEmptyError,
)
from auth_migrator.services.target import describe_database_error
from auth_migrator.utils.logging import log_with_context


# ---------------------------------------------------------------------------
# Custom click.Group that defaults to ``migrate``.
# When the first CLI token starts with ``-`` (i.e. a flag, not a subcommand)
# the group silently prepends ``migrate`` so that
#   ``auth-migrator --source_config ... --target_config ...``
# runs a migration.
# ---------------------------------------------------------------------------


class DefaultGroup(click.Group):
    """Click group that defaults to the ``migrate`` subcommand."""

    # Flags that belong to the group itself and should NOT trigger the
    # ``migrate`` default.
    _GROUP_FLAGS: ClassVar[set[str]] = {"--help", "--version", "-h"}

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        """Prepend ``migrate`` when the first token is a flag.

        Args:
            ctx: The current Click context.
            args: Raw CLI argument list.

        Returns:
            The (possibly modified) argument list for further parsing.
        """
        if args and args[0].startswith("-") and args[0] not in self._GROUP_FLAGS:
            args = ["migrate", *args]
        return super().parse_args(ctx, args)


# ---------------------------------------------------------------------------
# Shared option decorator
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator that adds options shared across subcommands.

    Args:
        f: The Click command function to decorate.

    Returns:
        The decorated function with common options attached.
    """
    f = click.option(
        "--source_config",
        required=True,
        type=click.Path(dir_okay=False),
        help="Path to the Synapse homeserver.yaml",
    )(f)
    f = click.option(
        "--target_config",
        required=True,
        type=click.Path(dir_okay=False),
        help="Path to the MAS config.yaml",
    )(f)
    f = click.option(
        "--upstream_provider_mapping",
        "upstream_provider_mappings",
        multiple=True,
        metavar="SYNAPSE_ID:MAS_ID",
        help="Map a Synapse SSO provider to a MAS upstream provider (repeatable)",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    f = click.option(
        "--json_logs",
        is_flag=True,
        default=False,
        help="Emit console logs as one JSON object per line",
    )(f)
    return f


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(
    cls=DefaultGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=auth_migrator.__version__, prog_name="auth-migrator")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Synapse to Matrix Authentication Service migration tool.

    Args:
        ctx: The Click context (injected by ``@click.pass_context``).
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Error handler
# ---------------------------------------------------------------------------


def handle_exception(e: BaseException) -> None:
    """Handle different types of exceptions.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, TargetNotEmptyError):
        log_with_context(logging.ERROR, str(e))
        log_with_context(
            logging.INFO,
            "Point --target_config at a freshly created MAS database and try again.",
        )
    elif isinstance(e, ConfigError):
        log_with_context(logging.ERROR, f"Configuration error: {e}")
        log_with_context(
            logging.INFO,
            "Please check the config files and --upstream_provider_mapping values.",
        )
    elif isinstance(e, MigrationAbortedError):
        log_with_context(logging.ERROR, str(e))
        log_with_context(
            logging.INFO, "Check the migration report and logs in the output directory."
        )
    elif isinstance(e, MigratorError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, SQLAlchemyError):
        log_with_context(logging.ERROR, f"Database error: {describe_database_error(e)}")
    elif isinstance(e, KeyboardInterrupt):
        log_with_context(logging.WARNING, "Migration interrupted by user.")
        log_with_context(
            logging.INFO,
            "Users committed so far remain in MAS; empty it before running again.",
        )
    else:
        log_with_context(logging.ERROR, f"Migration failed: {e}", exc_info=True)
