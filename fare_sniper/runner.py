from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .config import TripQuery
from .dashboard import (
    PresentationSink,
    airport_waypoints,
    alert_line,
    settings_lines,
    summary_lines,
)
from .delta_engine import DeltaEngine, EmptyObservationError
from .models import Evaluation
from .notifier import SmsNotifier
from .southwest_fetcher import FareSource, ScrapeError

logger = logging.getLogger(__name__)

SECONDS_PER_MIN = 60


class CycleStatus(str, enum.Enum):
    OK = "ok"
    INVALID = "invalid"
    SCRAPE_FAILED = "scrape_failed"
    EMPTY_OBSERVATION = "empty_observation"


@dataclass(slots=True)
class CycleOutcome:
    status: CycleStatus
    evaluation: Optional[Evaluation] = None
    error: Optional[str] = None


# ────────────────────────────────────────────────────────────────
# One cycle
# ────────────────────────────────────────────────────────────────


class FareCycle:
    """fetch → reduce/evaluate → alerts → dashboard, for one trip query."""

    def __init__(
        self,
        query: TripQuery,
        source: FareSource,
        sink: PresentationSink,
        notifier: Optional[SmsNotifier] = None,
        engine: Optional[DeltaEngine] = None,
    ) -> None:
        self.query = query
        self.source = source
        self.sink = sink
        self.notifier = notifier or SmsNotifier(query.sms)
        self.engine = engine or DeltaEngine(query)

    async def _fetch(self):
        fetch = self.source.fetch_fares(self.query)
        timeout_min = self.query.scrape_timeout_minutes
        if not timeout_min:
            return await fetch
        try:
            return await asyncio.wait_for(fetch, timeout_min * SECONDS_PER_MIN)
        except asyncio.TimeoutError as exc:
            raise ScrapeError(
                f"Scrape did not finish within {timeout_min:g} min"
            ) from exc

    async def __call__(self) -> CycleOutcome:
        try:
            observation = await self._fetch()
        except ScrapeError as exc:
            logger.warning("Failed to fetch fares: %s (%s)", exc, exc.diagnostic)
            self.sink.log([f"Error: failed to fetch fares: {exc}"])
            self.sink.render()
            return CycleOutcome(CycleStatus.SCRAPE_FAILED, error=str(exc))

        try:
            evaluation = self.engine.step(observation)
        except EmptyObservationError as exc:
            logger.warning("Skipping cycle: %s", exc)
            self.sink.log([f"Error: {exc}"])
            self.sink.render()
            return CycleOutcome(CycleStatus.EMPTY_OBSERVATION, error=str(exc))

        if not evaluation.valid:
            summary = evaluation.summary
            self.sink.log(
                [
                    f"Discarded fares ${summary.lowest_outbound} (outbound) and "
                    f"${summary.lowest_return} (return): no comparable baseline"
                ]
            )
            self.sink.render()
            return CycleOutcome(CycleStatus.INVALID, evaluation=evaluation)

        for alert in evaluation.alerts:
            logger.info("%s", alert.message)
            self.sink.log([alert_line(alert.message)])
            if self.notifier.enabled:
                result = await self.notifier.dispatch(alert.message)
                if result.success:
                    self.sink.log([f"Successfully sent SMS to {self.query.sms.phone_to}"])
                else:
                    self.sink.log([f"Error: {result.error}"])

        summary = evaluation.summary
        logger.info(
            "Lowest fares outbound=%s return=%s roundtrip=%s",
            summary.lowest_outbound,
            summary.lowest_return,
            summary.lowest_roundtrip,
        )
        self.sink.log(summary_lines(evaluation))
        self.sink.plot(
            {
                "outbound": summary.lowest_outbound,
                "return": summary.lowest_return,
                "roundtrip": summary.lowest_roundtrip,
            }
        )
        self.sink.render()
        return CycleOutcome(CycleStatus.OK, evaluation=evaluation)


def show_trip(query: TripQuery, sink: PresentationSink, airports=None) -> None:
    """Push the static parts of the dashboard: map markers and settings."""
    for marker in airport_waypoints(query, airports):
        sink.waypoint(marker)
    sink.settings(settings_lines(query))
    sink.render()


# ────────────────────────────────────────────────────────────────
# Scheduler
# ────────────────────────────────────────────────────────────────


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class PollScheduler:
    """Run *cycle* forever, waiting *interval_minutes* after each one ends."""

    def __init__(
        self,
        cycle: Callable[[], Awaitable[CycleOutcome]],
        interval_minutes: float,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cycle = cycle
        self.interval_s = interval_minutes * SECONDS_PER_MIN
        self._sleep = sleep
        self.state = SchedulerState.IDLE
        self.cycles_run = 0

    async def run_once(self) -> Optional[CycleOutcome]:
        if self.state is SchedulerState.RUNNING:
            raise RuntimeError("a polling cycle is already running")
        self.state = SchedulerState.RUNNING
        try:
            return await self.cycle()
        except Exception:
            logger.exception("Polling cycle failed")
            return None
        finally:
            self.cycles_run += 1
            self.state = SchedulerState.IDLE

    async def run(self, max_cycles: Optional[int] = None) -> None:
        while True:
            outcome = await self.run_once()
            if outcome is not None:
                logger.debug("Cycle %d finished: %s", self.cycles_run, outcome.status.value)
            if max_cycles is not None and self.cycles_run >= max_cycles:
                return
            logger.debug("Next check in %.0f s", self.interval_s)
            await self._sleep(self.interval_s)


__all__ = [
    "CycleOutcome",
    "CycleStatus",
    "FareCycle",
    "PollScheduler",
    "SchedulerState",
    "show_trip",
]
