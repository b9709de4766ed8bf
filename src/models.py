"""Plain record types shared by the store, the calculators and the API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

from constants import DayLabel
from errors import InvalidInput

SLEEP_TYPES = ("sleep", "nap")


def naive_local(ts: datetime) -> datetime:
    """Offset-aware timestamps become naive server-local time; naive ones pass through."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone().replace(tzinfo=None)


@dataclass(frozen=True)
class DayOverride:
    user_id: str
    date: date
    label: DayLabel


@dataclass(frozen=True)
class SleepSession:
    id: str
    start_at: datetime
    end_at: datetime
    type: str = "sleep"
    quality: Optional[int] = None

    def __post_init__(self):
        # Every reader compares against naive local "now".
        object.__setattr__(self, "start_at", naive_local(self.start_at))
        object.__setattr__(self, "end_at", naive_local(self.end_at))
        if self.end_at <= self.start_at:
            raise InvalidInput(f"Sleep session {self.id} ends before it starts")
        if self.type not in SLEEP_TYPES:
            raise InvalidInput(f"Unknown sleep type: {self.type!r}")
        if self.quality is not None and not 1 <= int(self.quality) <= 5:
            raise InvalidInput(f"Sleep quality must be 1..5, got {self.quality}")

    @property
    def duration_hours(self) -> float:
        return (self.end_at - self.start_at).total_seconds() / 3600.0

    @property
    def is_main(self) -> bool:
        return self.type == "sleep"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "type": self.type,
            "quality": self.quality,
            "duration_hours": round(self.duration_hours, 2),
        }


RESOLVED_SOURCES = ("override", "pattern", "outside_window", "no_rota")


@dataclass(frozen=True)
class ResolvedDay:
    date: date
    label: DayLabel
    day_in_cycle: Optional[int]
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "label": self.label.value,
            "day_in_cycle": self.day_in_cycle,
            "source": self.source,
        }


@dataclass(frozen=True)
class EnergyPoint:
    hour: int
    energy: float

    def to_dict(self) -> Dict[str, Any]:
        return {"hour": self.hour, "energy": self.energy}
