from __future__ import annotations

import asyncio
import logging
from typing import Optional

import click

from .config import (
    ConfigurationError,
    InteractiveSource,
    Settings,
    StaticSource,
    TripQuery,
    resolve_query,
)
from .dashboard import ConsoleDashboard, settings_lines, summary_lines
from .delta_engine import DeltaEngine, EmptyObservationError
from .runner import FareCycle, PollScheduler, show_trip
from .southwest_fetcher import ScrapeError, SouthwestFetcher

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(log_file: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
        format=LOG_FORMAT,
    )


def load_query(config_path: Optional[str], interactive: bool) -> TripQuery:
    try:
        if interactive:
            source = InteractiveSource()
        elif config_path:
            source = StaticSource(Settings.from_json(config_path))
        else:
            source = StaticSource()
        return resolve_query(source)
    except ConfigurationError as exc:
        raise click.UsageError(f"Invalid trip settings – {exc}") from exc


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG logging")
@click.option("--log-file", default="fare_sniper.log", show_default=True)
def cli(verbose: bool, log_file: str) -> None:
    """Watch Southwest fares for one roundtrip."""
    setup_logging(log_file, verbose)


@cli.command()
@click.option("--once", is_flag=True, help="Run a single check and exit")
@click.option("--interactive", is_flag=True, help="Ask for the trip settings")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the trip settings",
)
@click.option("--headed", is_flag=True, help="Show the browser window")
def run(once: bool, interactive: bool, config_path: Optional[str], headed: bool) -> None:
    """Check fares every interval until interrupted."""
    query = load_query(config_path, interactive)
    dashboard = ConsoleDashboard()
    show_trip(query, dashboard)

    cycle = FareCycle(query, SouthwestFetcher(headless=not headed), dashboard)
    scheduler = PollScheduler(cycle, query.interval_minutes)
    try:
        asyncio.run(scheduler.run(max_cycles=1 if once else None))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


@cli.command()
@click.option("--interactive", is_flag=True, help="Ask for the trip settings")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the trip settings",
)
@click.option("--headed", is_flag=True, help="Show the browser window")
def fetch(interactive: bool, config_path: Optional[str], headed: bool) -> None:
    """Scrape fares once and print them."""
    query = load_query(config_path, interactive)
    fetcher = SouthwestFetcher(headless=not headed)
    try:
        observation = asyncio.run(fetcher.fetch_fares(query))
        evaluation = DeltaEngine(query).step(observation)
    except (ScrapeError, EmptyObservationError) as exc:
        logger.warning("Failed to fetch fares: %s", exc)
        raise SystemExit(1) from exc

    click.echo(f"Outbound fares: {', '.join(map(str, observation.outbound))}")
    click.echo(f"Return fares: {', '.join(map(str, observation.return_))}")
    for line in summary_lines(evaluation):
        click.echo(line)


@cli.command()
@click.option("--interactive", is_flag=True, help="Ask for the trip settings")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the trip settings",
)
def settings(interactive: bool, config_path: Optional[str]) -> None:
    """Validate the trip settings and print them."""
    query = load_query(config_path, interactive)
    for line in settings_lines(query):
        click.echo(line)


if __name__ == "__main__":
    cli()
