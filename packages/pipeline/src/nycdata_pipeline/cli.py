"""
cli.py — Click CLI entrypoint for the pipeline workers.

Usage:
    nycdata-pipeline run housing
    nycdata-pipeline run capital-budget --dry-run
    nycdata-pipeline run all
    nycdata-pipeline status

Exit codes: 0 on success, skipped (no changes) or dry run; 1 when a
validation gate blocked the write or the run raised.
"""

from __future__ import annotations

import asyncio
import sys

import click
import structlog

from nycdata_shared.config import settings
from nycdata_shared.constants import ALL_TABLES

log = structlog.get_logger(__name__)

PIPELINES = ("housing", "capital-budget")

STATUS_MARKS = {"success": "✓", "skipped": "=", "dry_run": "~", "validation_failed": "✗"}


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
def main(log_level: str) -> None:
    """NYC housing and capital budget ETL pipeline workers."""
    from nycdata_pipeline.utils.logging import configure_logging

    configure_logging(log_level=log_level)


@main.command()
@click.argument(
    "pipeline",
    type=click.Choice([*PIPELINES, "all"], case_sensitive=False),
)
@click.option("--dry-run", is_flag=True, help="Fetch and reconcile without writing.")
def run(pipeline: str, dry_run: bool) -> None:
    """Run a named pipeline or 'all' to run every pipeline."""
    from nycdata_pipeline.pipelines import capital_budget, housing

    runners = {"housing": housing.run, "capital-budget": capital_budget.run}
    selected = list(PIPELINES) if pipeline.lower() == "all" else [pipeline.lower()]

    exit_code = 0
    for name in selected:
        click.echo(f"Running pipeline: {name}{' (dry run)' if dry_run else ''}")
        try:
            outcome = asyncio.run(runners[name](dry_run=dry_run))
        except Exception as exc:
            log.error("pipeline_failed", pipeline=name, error=str(exc))
            raise click.ClickException(f"Pipeline '{name}' failed: {exc}") from exc

        mark = STATUS_MARKS.get(outcome.status, "?")
        click.echo(f"  {mark} {name:16s} {outcome.status:18s} {outcome.reason}")
        for failure in outcome.validation_failures:
            click.echo(f"      {failure.message}", err=True)
        exit_code = max(exit_code, outcome.exit_code)

    sys.exit(exit_code)


@main.command()
def status() -> None:
    """Show the row count and last sync time of each table."""
    from nycdata_pipeline.loaders.change_detection import check_needs_update
    from nycdata_pipeline.loaders.supabase_loader import SupabaseLoader

    click.echo("Table status:")
    try:
        loader = SupabaseLoader()
    except Exception as exc:
        raise click.ClickException(f"Error connecting to Supabase: {exc}") from exc

    async def _collect() -> None:
        for table in ALL_TABLES:
            try:
                count = await loader.current_count(table)
            except Exception as exc:
                click.echo(f"  ✗ {table:22s} error: {exc}", err=True)
                continue
            freshness = await check_needs_update(loader, table)
            synced = freshness.last_synced.isoformat()[:19] if freshness.last_synced else "never"
            mark = "⚠" if freshness.needs_update else "✓"
            click.echo(f"  {mark} {table:22s} {count:>8,} rows  synced {synced}  {freshness.reason}")

    asyncio.run(_collect())


if __name__ == "__main__":
    main()
