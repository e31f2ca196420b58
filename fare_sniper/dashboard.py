"""
dashboard – where the polling loop sends what it has to show.

The runner only talks to :class:`PresentationSink`.  ``ConsoleDashboard``
prints to the terminal with click and keeps the plotted series and map
markers in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

import click

from .config import TripQuery
from .models import Direction, Evaluation, LegDelta, Number

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%m/%d/%y-%H:%M:%S"
LEGS = ("outbound", "return", "roundtrip")


@dataclass(slots=True, frozen=True)
class Waypoint:
    lat: float
    lon: float
    color: str
    label: str = "X"


@dataclass(slots=True)
class Series:
    title: str
    color: str
    x: List[str] = field(default_factory=list)
    y: List[Number] = field(default_factory=list)


class PresentationSink(Protocol):
    def log(self, lines: Iterable[str]) -> None:
        ...

    def plot(self, prices: Mapping[str, Number]) -> None:
        ...

    def waypoint(self, marker: Waypoint) -> None:
        ...

    def settings(self, lines: Iterable[str]) -> None:
        ...

    def render(self) -> None:
        ...


class ConsoleDashboard:
    """Terminal sink: timestamped log lines plus in-memory graph data."""

    def __init__(self, echo=click.echo) -> None:
        self._echo = echo
        self.series: Dict[str, Series] = {
            "outbound": Series("Origin/Outbound", "red"),
            "return": Series("Destination/Return", "yellow"),
            "roundtrip": Series("Roundtrip", "magenta"),
        }
        self.markers: List[Waypoint] = []
        self.settings_lines: List[str] = []
        self._rendered_points = 0

    @staticmethod
    def _now() -> str:
        return datetime.now().strftime(TIMESTAMP_FORMAT)

    def log(self, lines: Iterable[str]) -> None:
        now = self._now()
        for line in lines:
            self._echo(f"{now}: {line}")

    def plot(self, prices: Mapping[str, Number]) -> None:
        now = self._now()
        for leg in LEGS:
            series = self.series[leg]
            series.x.append(now)
            series.y.append(prices[leg])

    def waypoint(self, marker: Waypoint) -> None:
        self.markers.append(marker)
        self._echo(
            click.style(
                f"Map marker {marker.label} at {marker.lat:.4f}, {marker.lon:.4f}",
                fg=marker.color,
            )
        )

    def settings(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.settings_lines.append(line)
            self._echo(click.style(line, fg="blue"))

    def render(self) -> None:
        """Echo the price graph when new points were plotted since last time."""
        points = len(self.series["roundtrip"].y)
        if points == self._rendered_points:
            return
        self._rendered_points = points
        for series in self.series.values():
            self._echo(click.style(graph_line(series), fg=series.color))


# ────────────────────────────────────────────────────────────────
# Content builders
# ────────────────────────────────────────────────────────────────


def human_interval(minutes: float) -> str:
    """``30`` -> ``"30m"``, ``90`` -> ``"1h 30m"``, ``0.5`` -> ``"30s"``."""
    seconds = int(round(minutes * 60))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    mins, secs = divmod(rest, 60)
    parts = [
        f"{value}{unit}"
        for value, unit in ((days, "d"), (hours, "h"), (mins, "m"), (secs, "s"))
        if value
    ]
    return " ".join(parts) or "0s"


GRAPH_POINTS = 20
SPARK_CHARS = "▁▂▃▄▅▆▇█"


def sparkline(values: List[Number]) -> str:
    """One block character per value, scaled between the min and max."""
    if not values:
        return ""
    low, high = min(values), max(values)
    span = high - low
    top = len(SPARK_CHARS) - 1
    return "".join(
        SPARK_CHARS[int(round((v - low) / span * top)) if span else 0]
        for v in values
    )


def graph_line(series: Series, points: int = GRAPH_POINTS) -> str:
    recent = series.y[-points:]
    prices = " ".join(f"${v}" for v in recent)
    return f"{series.title}: {sparkline(recent)} {prices}"


def _price(value: Optional[float]) -> str:
    return f"<= ${value:g}" if value else "disabled"


def settings_lines(query: TripQuery) -> List[str]:
    return [
        f"Origin airport: {query.origin}",
        f"Destination airport: {query.destination}",
        f"Outbound date: {query.departure_date:%m/%d}",
        f"Outbound time: {query.departure_time_of_day.name}",
        f"Return date: {query.return_date:%m/%d}",
        f"Return time: {query.return_time_of_day.name}",
        f"Passengers: {query.passengers}",
        f"Interval: {human_interval(query.interval_minutes)}",
        f"Deal price: {_price(query.deal_price_threshold)}",
        f"Roundtrip deal price: {_price(query.deal_price_threshold_roundtrip)}",
        f"SMS alerts: {query.sms.phone_to if query.sms else 'disabled'}",
    ]


_DELTA_COLORS = {
    Direction.DECREASED: "green",
    Direction.INCREASED: "red",
    Direction.NO_CHANGE: "blue",
}


def delta_label(delta: LegDelta) -> str:
    return click.style(f"({delta.describe()})", fg=_DELTA_COLORS[delta.direction])


def summary_lines(evaluation: Evaluation) -> List[str]:
    summary = evaluation.summary
    return [
        f"Lowest fare for an outbound flight is currently "
        f"${summary.lowest_outbound} {delta_label(evaluation.outbound)}",
        f"Lowest fare for a return flight is currently "
        f"${summary.lowest_return} {delta_label(evaluation.return_)}",
        f"Lowest fare for roundtrip is currently "
        f"${summary.lowest_roundtrip} {delta_label(evaluation.roundtrip)}",
    ]


def alert_line(message: str) -> str:
    return click.style(message, fg="magenta", bold=True)


def airport_waypoints(
    query: TripQuery, airports: Optional[Mapping[str, Mapping]] = None
) -> List[Waypoint]:
    """Map markers for the origin (red) and destination (yellow) airports.

    Codes missing from *airports* are skipped; no validation is done.
    """
    if airports is None:
        import airportsdata

        airports = airportsdata.load("IATA")

    markers: List[Waypoint] = []
    for code, color in ((query.origin, "red"), (query.destination, "yellow")):
        airport = airports.get(code)
        if not airport:
            logger.debug("No coordinates for airport %s", code)
            continue
        markers.append(Waypoint(float(airport["lat"]), float(airport["lon"]), color))
    return markers


__all__ = [
    "ConsoleDashboard",
    "PresentationSink",
    "Series",
    "Waypoint",
    "airport_waypoints",
    "alert_line",
    "delta_label",
    "graph_line",
    "human_interval",
    "settings_lines",
    "sparkline",
    "summary_lines",
]
