"""Sleep debt, weekly deficit and consistency scores over logged sessions."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from constants import SLEEP_TARGET_HOURS
from models import SleepSession

MINUTES_PER_DAY = 24 * 60


# ─── Sleep debt ────────────────────────────────────────────

def sleep_hours_in_window(sessions: Sequence[SleepSession], start: datetime, end: datetime) -> float:
    """Hours of sleep (naps included) overlapping [start, end]."""
    total = 0.0
    for s in sessions:
        overlap = (min(s.end_at, end) - max(s.start_at, start)).total_seconds()
        if overlap > 0:
            total += overlap
    return total / 3600.0


def sleep_debt_hours(
    sessions: Sequence[SleepSession], now: datetime, target_hours: float = SLEEP_TARGET_HOURS
) -> float:
    actual = sleep_hours_in_window(sessions, now - timedelta(hours=24), now)
    return max(0.0, target_hours - actual)


def debt_penalty(debt_hours: float) -> float:
    return min(max(debt_hours, 0.0) * 5.0, 30.0)


def _deficit_category(weekly: float) -> str:
    if weekly <= -1:
        return "surplus"
    if weekly < 3:
        return "low"
    if weekly < 8:
        return "medium"
    return "high"


def weekly_sleep_deficit(
    sessions: Sequence[SleepSession], today: date, required_daily: float = SLEEP_TARGET_HOURS
) -> Dict[str, Any]:
    """Seven-day deficit, most recent day first.

    Sleep is attributed to the date the session ends on. A user with no
    logged sleep at all gets a zero deficit instead of a full week of debt.
    """
    per_day: Dict[date, float] = {}
    for s in sessions:
        wake_day = s.end_at.date()
        per_day[wake_day] = per_day.get(wake_day, 0.0) + s.duration_hours

    daily: List[Dict[str, Any]] = []
    for offset in range(7):
        day = today - timedelta(days=offset)
        actual = per_day.get(day, 0.0)
        daily.append({
            "date": day.isoformat(),
            "label": day.strftime("%a"),
            "required": required_daily,
            "actual": round(actual, 2),
            "deficit": round(required_daily - actual, 2),
        })

    has_any_sleep = any(per_day.get(today - timedelta(days=o), 0.0) > 0 for o in range(7))
    weekly = sum(d["deficit"] for d in daily) if has_any_sleep else 0.0
    weekly = float(np.clip(weekly, -8.0, 20.0))

    return {
        "required_daily": required_daily,
        "weekly_deficit": round(weekly, 2),
        "daily": daily,
        "category": _deficit_category(weekly),
    }


# ─── Consistency ───────────────────────────────────────────

def _clock_minutes(ts: datetime) -> float:
    return ts.hour * 60 + ts.minute + ts.second / 60.0


def _unwrap_minutes(values: Sequence[float], reference: float) -> np.ndarray:
    """Shift clock minutes into [reference - 12h, reference + 12h)."""
    arr = np.asarray(values, dtype=np.float64)
    half = MINUTES_PER_DAY / 2
    return reference + ((arr - reference + half) % MINUTES_PER_DAY) - half


def _circular_mean_minutes(values: Sequence[float]) -> float:
    angles = np.asarray(values, dtype=np.float64) / MINUTES_PER_DAY * 2 * math.pi
    mean = math.atan2(np.sin(angles).mean(), np.cos(angles).mean())
    return (mean / (2 * math.pi) * MINUTES_PER_DAY) % MINUTES_PER_DAY


def _score_from_sd(sd: float, scale: float) -> int:
    return int(round(float(np.clip(100.0 - sd / scale * 100.0, 0.0, 100.0))))


def wake_time_consistency(sessions: Sequence[SleepSession]) -> Optional[int]:
    """0-100; 4h of wake-time spread scores zero. None with fewer than 2 main sleeps.

    Spread is the plain std-dev of minutes since midnight, so wakes either
    side of midnight count as far apart.
    """
    wakes = [_clock_minutes(s.end_at) for s in sessions if s.is_main]
    if len(wakes) < 2:
        return None
    sd = float(np.std(wakes))
    return _score_from_sd(sd, 240.0)


def sleep_duration_consistency(sessions: Sequence[SleepSession]) -> Optional[int]:
    """0-100; 3h of duration spread scores zero."""
    durations = [s.duration_hours for s in sessions if s.is_main and s.duration_hours > 0]
    if len(durations) < 2:
        return None
    return _score_from_sd(float(np.std(durations)), 3.0)


def bedtime_consistency(sessions: Sequence[SleepSession]) -> Optional[int]:
    """Bedtime regularity: 100 for identical bedtimes, floor of 40 at 3.5h spread."""
    mains = [s for s in sessions if s.is_main]
    if len(mains) < 2:
        return None
    bedtimes = [_clock_minutes(s.start_at) for s in mains]
    offsets_h = _unwrap_minutes(bedtimes, bedtimes[0]) / 60.0
    sd = float(np.std(offsets_h))
    if sd <= 0:
        return 100
    if sd >= 3.5:
        return 40
    return int(round(100 - sd / 3.5 * 60))


def bedtime_variance_minutes(sessions: Sequence[SleepSession]) -> Optional[float]:
    """Std-dev of bedtime clock minutes, measured around midnight."""
    bedtimes = [_clock_minutes(s.start_at) for s in sessions if s.is_main]
    if len(bedtimes) < 2:
        return None
    sd = float(np.std(_unwrap_minutes(bedtimes, _circular_mean_minutes(bedtimes))))
    return round(sd, 1)


def latest_main_sleep(sessions: Sequence[SleepSession]) -> Optional[SleepSession]:
    mains = [s for s in sessions if s.is_main]
    return max(mains, key=lambda s: s.end_at) if mains else None


def consistency_summary(sessions: Sequence[SleepSession]) -> Dict[str, Optional[float]]:
    return {
        "wake_time": wake_time_consistency(sessions),
        "duration": sleep_duration_consistency(sessions),
        "bedtime": bedtime_consistency(sessions),
        "bedtime_variance_minutes": bedtime_variance_minutes(sessions),
    }
