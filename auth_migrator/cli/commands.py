#!/usr/bin/env python3
"""
Command-line entry point for the Synapse to MAS migrator.

Importing the subcommand modules registers them on the shared ``cli`` group.
"""

from auth_migrator.cli import check_cmd, migrate_cmd  # noqa: F401
from auth_migrator.cli.common import cli


def main() -> None:
    """Main entry point for the Synapse to MAS migration tool."""
    cli()


if __name__ == "__main__":
    main()
