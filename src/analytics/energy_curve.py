"""
Hour-by-hour energy curve for the current day.

energy(hour) = clamp(50 + circadian[hour] + shift adjustment + recency
                     - debt penalty, 0, 100)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from analytics.sleep_metrics import debt_penalty
from constants import BIO_NIGHT_END_HOUR, BIO_NIGHT_START_HOUR, WORKING_HOURS, DayLabel
from models import EnergyPoint

BASE_ENERGY = 50.0
WORK_BONUS = 10.0
BIO_NIGHT_PENALTY = 15.0
RECENCY_MAX_BONUS = 10.0
RECENCY_DECAY_HOURS = 16.0

# Adjustment by clock hour: overnight trough, late-morning peak, post-lunch dip
CIRCADIAN_ADJUSTMENT = np.array(
    [-10, -10,                 # 00-01
     -20, -20, -20, -20,       # 02-05 trough
     -5, -5,                   # 06-07
     10, 10,                   # 08-09
     25, 25, 25, 25,           # 10-13 peak
     5, 5,                     # 14-15 dip
     15, 15, 15,               # 16-18
     5, 5,                     # 19-20
     -5, -5,                   # 21-22
     -10],                     # 23
    dtype=np.float64,
)


def in_block(hour: int, start: int, end: int) -> bool:
    """start inclusive, end exclusive; end <= start wraps past midnight."""
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def _shift_adjustment(
    hour: int,
    label: DayLabel,
    working_hours: Mapping[DayLabel, Tuple[int, int]],
    bio_night: Tuple[int, int],
) -> float:
    adjust = 0.0
    block = working_hours.get(label) if label.is_working else None
    if block is not None and in_block(hour, *block):
        adjust += WORK_BONUS
    if in_block(hour, *bio_night):
        adjust -= BIO_NIGHT_PENALTY
    return adjust


def _recency_bonus(hour: int, last_wake: Optional[datetime]) -> float:
    if last_wake is None:
        return 0.0
    wake_hour = last_wake.hour + last_wake.minute / 60.0
    hours_since_wake = (hour - wake_hour) % 24
    return RECENCY_MAX_BONUS * max(0.0, 1.0 - hours_since_wake / RECENCY_DECAY_HOURS)


def energy_curve(
    label: DayLabel,
    now: datetime,
    last_wake: Optional[datetime] = None,
    debt_hours: float = 0.0,
    bio_night: Tuple[int, int] = (BIO_NIGHT_START_HOUR, BIO_NIGHT_END_HOUR),
    working_hours: Optional[Mapping[DayLabel, Tuple[int, int]]] = None,
) -> List[EnergyPoint]:
    blocks = working_hours if working_hours is not None else WORKING_HOURS
    penalty = debt_penalty(debt_hours)

    raw = np.array([
        BASE_ENERGY
        + CIRCADIAN_ADJUSTMENT[hour]
        + _shift_adjustment(hour, label, blocks, bio_night)
        + _recency_bonus(hour, last_wake)
        - penalty
        for hour in range(24)
    ])
    clipped = np.clip(raw, 0.0, 100.0)
    return [EnergyPoint(hour=h, energy=round(float(v), 1)) for h, v in enumerate(clipped)]


def now_marker(now: datetime) -> float:
    """Fractional clock hour, e.g. 14:30 -> 14.5."""
    return round(now.hour + now.minute / 60.0 + now.second / 3600.0, 2)


def energy_payload(
    label: DayLabel,
    now: datetime,
    last_wake: Optional[datetime] = None,
    debt_hours: float = 0.0,
    bio_night: Tuple[int, int] = (BIO_NIGHT_START_HOUR, BIO_NIGHT_END_HOUR),
) -> Dict[str, Any]:
    points = energy_curve(label, now, last_wake=last_wake, debt_hours=debt_hours, bio_night=bio_night)
    energies = [p.energy for p in points]
    return {
        "label": label.value,
        "points": [p.to_dict() for p in points],
        "now_marker": now_marker(now),
        "peak_hour": int(np.argmax(energies)),
        "trough_hour": int(np.argmin(energies)),
        "debt_penalty": debt_penalty(debt_hours),
    }
