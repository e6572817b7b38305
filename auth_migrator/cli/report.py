"""
Report generation for the Synapse to MAS migration
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Any, Optional

import click
import yaml

from auth_migrator.core.state import RunSummary
from auth_migrator.utils.logging import log_with_context

REPORT_FILENAME = "migration_report.yaml"


def print_run_summary(summary: RunSummary, report_file: Optional[str] = None) -> None:
    """Print a summary of the run to the console."""
    title = "DRY RUN SUMMARY" if summary.dry_run else "MIGRATION SUMMARY"
    click.echo("\n" + "=" * 80)
    click.echo(title)
    click.echo("=" * 80)
    click.echo(f"Users considered: {summary.users_considered}")
    if summary.dry_run:
        click.echo(f"Users validated: {summary.users_validated}")
    else:
        click.echo(f"Users migrated: {summary.users_migrated}")
    click.echo(f"Users skipped with warnings: {summary.users_skipped}")
    click.echo(f"Fatal errors: {summary.fatal_count}")

    if summary.row_counts:
        verb = "that would be written" if summary.dry_run else "written"
        click.echo(f"\nRows {verb}:")
        for table, count in sorted(summary.row_counts.items()):
            click.echo(f"  {table}: {count}")

    if summary.fatal_errors:
        click.echo(f"\nFatal errors ({summary.fatal_count}):")
        for error in summary.fatal_errors:
            click.echo(f"  - {error}")

    if summary.warnings:
        click.echo(f"\nWarnings ({summary.warning_count}):")
        for warning in summary.warnings:
            click.echo(f"  - {warning}")

    if report_file:
        click.echo(f"\nDetailed report saved to {report_file}")
    click.echo("=" * 80)
    if summary.dry_run and summary.succeeded:
        click.echo("\nTo perform the actual migration, run again without --dry_run")
        click.echo("=" * 80)


def _recommendations(summary: RunSummary) -> list[dict[str, str]]:
    recommendations = []
    if summary.users_skipped:
        recommendations.append(
            {
                "type": "skipped_users",
                "message": f"{summary.users_skipped} user(s) have data that cannot be "
                "migrated. Review the warnings; a real run would abort on them.",
                "severity": "error",
            }
        )
    if summary.fatal_count:
        recommendations.append(
            {
                "type": "fatal_errors",
                "message": f"{summary.fatal_count} user(s) cannot be migrated. Fix the "
                "source data or add the missing --upstream_provider_mapping values.",
                "severity": "error",
            }
        )
    return recommendations


def generate_report(
    summary: RunSummary,
    output_dir: Optional[str] = None,
    source_config: Optional[str] = None,
    target_config: Optional[str] = None,
    output_file: str = REPORT_FILENAME,
) -> str:
    """Write a YAML report of the run into ``output_dir``.

    Returns:
        The path of the report file
    """
    output_dir = output_dir or "."
    os.makedirs(output_dir, exist_ok=True)
    report_path = os.path.join(output_dir, output_file)

    report: dict[str, Any] = {
        "migration_summary": {
            "timestamp": datetime.datetime.now().isoformat(),
            "source_config": source_config,
            "target_config": target_config,
            "output_path": str(output_dir),
            **summary.to_dict(),
        },
        "recommendations": _recommendations(summary),
    }

    with open(report_path, "w") as f:
        yaml.safe_dump(report, f, default_flow_style=False, sort_keys=False)

    log_with_context(logging.INFO, f"Migration report generated: {report_path}")
    return report_path
