"""Command line entry point for running ingestion and cleanup outside Lambda."""
import json
import logging
import sys
from dataclasses import replace

import click

from lambda_function import load_config, parse_source_list, run_cleanup, run_ingestion, setup_logging
from processor.locales import ConfigurationError

logger = logging.getLogger(__name__)


@click.group()
@click.option("--table", default=None, help="DynamoDB table name [env TABLE_NAME]")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR [env LOG_LEVEL]")
@click.pass_context
def cli(ctx, table, log_level):
    """Protest event ingestion tools."""
    try:
        config = load_config()
    except ConfigurationError as e:
        click.echo(f"FATAL: {e}", err=True)
        sys.exit(1)

    if table:
        config = replace(config, table_name=table)
    if log_level:
        config = replace(config, log_level=log_level)

    setup_logging(config.log_level)
    ctx.obj = config


@cli.command()
@click.option("--days", default=None, type=click.IntRange(min=1), help="Range forward in days [env DAYS_AHEAD, default 40]")
@click.option("--sources", default=None, help="Comma separated source ids [env ENABLED_SOURCES, default all]")
@click.option("--cache-file", default=None, type=click.Path(dir_okay=False), help="Geocode cache file [env GEOCODE_CACHE_FILE]")
@click.pass_obj
def ingest(config, days, sources, cache_file):
    """Scrape all sources and reconcile them with the events table."""
    if days is not None:
        config = replace(config, days_ahead=days)
    if sources:
        config = replace(config, enabled_sources=parse_source_list(sources))
    if cache_file:
        config = replace(config, geocode_cache_file=cache_file)

    try:
        statistics = run_ingestion(config)
    except ConfigurationError as e:
        click.echo(f"FATAL: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Ingestion failed: {e}", exc_info=True)
        click.echo(f"FATAL: ingestion failed: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(statistics, indent=2, default=str))


@cli.command()
@click.option("--dry-run", is_flag=True, help="Preview what would be deleted without making changes [env DRY_RUN]")
@click.pass_obj
def cleanup(config, dry_run):
    """Merge and delete duplicate events in the events table."""
    try:
        summary = run_cleanup(config, dry_run=True if dry_run else None)
    except Exception as e:
        logger.error(f"Cleanup failed: {e}", exc_info=True)
        click.echo(f"FATAL: cleanup failed: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(summary, indent=2))


if __name__ == "__main__":
    cli()
