"""Command-line interface: the migrate and check subcommands."""

__all__ = [
    "check_cmd",
    "commands",
    "common",
    "migrate_cmd",
    "report",
]
