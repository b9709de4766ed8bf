"""
Body-clock alignment score.

Starts from 50 and adds five signed factors (latest shift, sleep duration,
sleep timing, sleep debt, bedtime inconsistency), clamped to 0-100. The
score anchors on the latest main sleep and is unavailable without one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Sequence

from constants import DayLabel
from models import SleepSession

IDEAL_MIDPOINT_MINUTES = 3 * 60

SHIFT_EFFECT = {
    "morning": 10,
    "day": 0,
    "evening": -5,
    "night": -15,
    "rotating": -12,
}

_LABEL_TO_SHIFT_TYPE = {
    DayLabel.MORNING: "morning",
    DayLabel.DAY: "day",
    DayLabel.AFTERNOON: "evening",
    DayLabel.EVENING: "evening",
    DayLabel.NIGHT: "night",
    DayLabel.OFF: "day",
    DayLabel.OTHER: "day",
}


def shift_type_for(label: DayLabel, recent_labels: Sequence[DayLabel] = ()) -> str:
    """Map today's label to a shift type; 'rotating' beats it when recent work varies."""
    distinct = {d for d in recent_labels if d.is_working}
    if len(distinct) > 2:
        return "rotating"
    return _LABEL_TO_SHIFT_TYPE[label]


def duration_factor(hours: float) -> int:
    if hours >= 7:
        return 12
    if hours >= 6:
        return 4
    return -8


def midpoint_deviation_hours(start: datetime, end: datetime) -> float:
    mid = start + (end - start) / 2
    minutes = mid.hour * 60 + mid.minute + mid.second / 60.0
    deviation = abs(minutes - IDEAL_MIDPOINT_MINUTES)
    return min(deviation, 1440 - deviation) / 60.0


def timing_factor(deviation_hours: float) -> int:
    if deviation_hours <= 1:
        return 12
    if deviation_hours <= 2:
        return 4
    return -8


def debt_factor(debt_hours: float) -> int:
    if debt_hours <= 2:
        return 8
    if debt_hours <= 5:
        return 0
    return -12


def inconsistency_factor(variance_minutes: Optional[float]) -> int:
    if variance_minutes is None or variance_minutes < 30:
        return 0
    if variance_minutes < 60:
        return -5
    if variance_minutes < 120:
        return -10
    return -15


@dataclass(frozen=True)
class BodyClockInputs:
    latest_sleep: Optional[SleepSession]
    sleep_debt_hours: float
    bedtime_variance_minutes: Optional[float]
    shift_type: str


@dataclass(frozen=True)
class BodyClockResult:
    score: int
    shift_type: str
    factors: Dict[str, int]

    def factor_display(self) -> Dict[str, str]:
        return {name: _signed(value) for name, value in self.factors.items()}

    def to_dict(self) -> Dict[str, object]:
        return {
            "score": self.score,
            "shift_type": self.shift_type,
            "factors": dict(self.factors),
            "factor_display": self.factor_display(),
        }


def _signed(value: int) -> str:
    if value > 0:
        return f"+{value}"
    return str(value)


def body_clock_score(inputs: BodyClockInputs) -> Optional[BodyClockResult]:
    sleep = inputs.latest_sleep
    if sleep is None or not sleep.is_main:
        return None

    factors = {
        "latest_shift": SHIFT_EFFECT.get(inputs.shift_type, 0),
        "sleep_duration": duration_factor(sleep.duration_hours),
        "sleep_timing": timing_factor(midpoint_deviation_hours(sleep.start_at, sleep.end_at)),
        "sleep_debt": debt_factor(inputs.sleep_debt_hours),
        "inconsistency": inconsistency_factor(inputs.bedtime_variance_minutes),
    }
    score = max(0, min(100, 50 + sum(factors.values())))
    return BodyClockResult(score=score, shift_type=inputs.shift_type, factors=factors)
