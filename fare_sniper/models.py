"""Data models used throughout the project."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union

Number = Union[int, float]


@dataclass(slots=True)
class FareObservation:
    outbound: List[int]
    return_: List[int]


@dataclass(slots=True, frozen=True)
class FareSummary:
    lowest_outbound: Number
    lowest_return: Number
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def lowest_roundtrip(self) -> Number:
        return self.lowest_outbound + self.lowest_return


@dataclass(slots=True, frozen=True)
class FareHistory:
    """Last known-good minima; all ``None`` before the first valid cycle."""

    previous_outbound: Optional[Number] = None
    previous_return: Optional[Number] = None
    previous_roundtrip: Optional[Number] = None

    @classmethod
    def from_summary(cls, summary: FareSummary) -> "FareHistory":
        return cls(
            previous_outbound=summary.lowest_outbound,
            previous_return=summary.lowest_return,
            previous_roundtrip=summary.lowest_roundtrip,
        )


class Direction(str, enum.Enum):
    DECREASED = "decreased"
    INCREASED = "increased"
    NO_CHANGE = "no change"


@dataclass(slots=True, frozen=True)
class LegDelta:
    """Change of one leg's lowest fare; positive ``delta`` means cheaper."""

    delta: Number
    direction: Direction

    @property
    def amount(self) -> Number:
        return abs(self.delta)

    def describe(self) -> str:
        if self.direction is Direction.DECREASED:
            return f"down ${self.amount}"
        if self.direction is Direction.INCREASED:
            return f"up ${self.amount}"
        return "no change"


class AlertKind(str, enum.Enum):
    ONE_WAY = "one_way"
    ROUNDTRIP = "roundtrip"


@dataclass(slots=True, frozen=True)
class DealAlert:
    kind: AlertKind
    message: str


@dataclass(slots=True)
class Evaluation:
    summary: FareSummary
    outbound: LegDelta
    return_: LegDelta
    roundtrip: LegDelta
    valid: bool
    alerts: List[DealAlert] = field(default_factory=list)


__all__ = [
    "AlertKind",
    "DealAlert",
    "Direction",
    "Evaluation",
    "FareHistory",
    "FareObservation",
    "FareSummary",
    "LegDelta",
]
