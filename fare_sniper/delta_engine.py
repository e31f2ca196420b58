"""
delta_engine – lowest fare per leg and its change since the previous check.

A cycle is valid unless the outbound or return delta is not a finite
number.  Only valid cycles raise deal alerts and replace the history.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

from .config import TripQuery
from .models import (
    AlertKind,
    DealAlert,
    Direction,
    Evaluation,
    FareHistory,
    FareObservation,
    FareSummary,
    LegDelta,
    Number,
)

logger = logging.getLogger(__name__)


class EmptyObservationError(ValueError):
    """A leg of the observation holds no fares."""


def reduce(observation: FareObservation) -> FareSummary:
    """Return the lowest outbound and return fare of *observation*."""
    if not observation.outbound:
        raise EmptyObservationError("no outbound fares observed")
    if not observation.return_:
        raise EmptyObservationError("no return fares observed")
    return FareSummary(
        lowest_outbound=min(observation.outbound),
        lowest_return=min(observation.return_),
    )


def classify(delta: Number) -> LegDelta:
    if delta > 0:
        return LegDelta(delta, Direction.DECREASED)
    if delta < 0:
        return LegDelta(delta, Direction.INCREASED)
    return LegDelta(delta, Direction.NO_CHANGE)


def _delta(previous: Optional[Number], current: Number) -> Number:
    return (current if previous is None else previous) - current


def _money(value: Number) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


def deal_alerts(summary: FareSummary, query: TripQuery) -> List[DealAlert]:
    """Return the deal alerts *summary* triggers under *query* thresholds."""
    alerts: List[DealAlert] = []

    threshold = query.deal_price_threshold
    if threshold and (
        summary.lowest_outbound <= threshold
        or summary.lowest_return <= threshold
    ):
        alerts.append(
            DealAlert(
                AlertKind.ONE_WAY,
                f"Deal alert! Lowest fare has hit "
                f"${_money(summary.lowest_outbound)} (outbound) and "
                f"${_money(summary.lowest_return)} (return)",
            )
        )

    threshold_rt = query.deal_price_threshold_roundtrip
    if threshold_rt and summary.lowest_roundtrip <= threshold_rt:
        alerts.append(
            DealAlert(
                AlertKind.ROUNDTRIP,
                f"Roundtrip deal alert! Lowest fare has hit "
                f"${_money(summary.lowest_roundtrip)}",
            )
        )
    return alerts


def evaluate(
    summary: FareSummary, history: FareHistory, query: TripQuery
) -> Evaluation:
    """Compare *summary* with *history* and decide which alerts fire."""
    out_delta = _delta(history.previous_outbound, summary.lowest_outbound)
    ret_delta = _delta(history.previous_return, summary.lowest_return)
    rt_delta = _delta(history.previous_roundtrip, summary.lowest_roundtrip)

    valid = math.isfinite(out_delta) and math.isfinite(ret_delta)

    return Evaluation(
        summary=summary,
        outbound=classify(out_delta),
        return_=classify(ret_delta),
        roundtrip=classify(rt_delta),
        valid=valid,
        alerts=deal_alerts(summary, query) if valid else [],
    )


class DeltaEngine:
    """Owns the fare history of one trip query across polling cycles."""

    def __init__(
        self, query: TripQuery, history: Optional[FareHistory] = None
    ) -> None:
        self.query = query
        self.history = history or FareHistory()

    def step(self, observation: FareObservation) -> Evaluation:
        summary = reduce(observation)
        evaluation = evaluate(summary, self.history, self.query)
        if evaluation.valid:
            self.history = FareHistory.from_summary(summary)
        else:
            logger.warning(
                "Discarding fares outbound=%s return=%s: no comparable "
                "baseline (deltas %s/%s)",
                summary.lowest_outbound,
                summary.lowest_return,
                evaluation.outbound.delta,
                evaluation.return_.delta,
            )
        return evaluation


__all__ = [
    "DeltaEngine",
    "EmptyObservationError",
    "classify",
    "deal_alerts",
    "evaluate",
    "reduce",
]
