"""
Command line entry points: run a batch, or check the configured feeds.
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from greenwire.adapters.rss import FeedFetcher
from greenwire.errors import ConfigurationError
from greenwire.pipeline import BatchPipeline
from greenwire.settings import load_settings
from greenwire.status import feed_health_to_dict, log_feed_health, summary_to_dict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


@click.group()
def cli():
    pass


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--database-url", default=None, help="SQLAlchemy URL overriding DATABASE_URL.")
@click.option("--verbose", is_flag=True, help="Log at DEBUG level.")
def run(config_path: Optional[Path], database_url: Optional[str], verbose: bool):
    """Run one batch and print the summary as JSON."""
    _configure_logging(verbose)
    settings = load_settings(config_path)
    if database_url:
        settings.database_url = database_url
    try:
        summary = BatchPipeline(settings).run()
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)
    click.echo(json.dumps(summary_to_dict(summary), ensure_ascii=False, indent=2))


@cli.command("check-feeds")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--verbose", is_flag=True, help="Log at DEBUG level.")
def check_feeds(config_path: Optional[Path], verbose: bool):
    """Fetch every configured feed once and report its health."""
    _configure_logging(verbose)
    settings = load_settings(config_path)
    fetcher = FeedFetcher(
        settings.feeds,
        timeout=settings.feed_timeout_seconds,
        max_workers=settings.feed_workers,
        user_agent=settings.user_agent,
    )
    _, health = fetcher.fetch()
    log_feed_health(health)
    for entry in health:
        click.echo(json.dumps(feed_health_to_dict(entry), ensure_ascii=False))
    if health and not any(entry.healthy for entry in health):
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    cli()
