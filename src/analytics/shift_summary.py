"""Shift-history summaries behind the "why you have this score" panel."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, Optional, Sequence

import pandas as pd

from constants import DAY_VARIANTS, DayLabel
from models import ResolvedDay, SleepSession


def quick_turnarounds(shift_dates: Iterable[date]) -> int:
    """Working dates immediately followed by another working date.

    Only calendar adjacency is checked; shift clock times are not, so a late
    finish followed by an early start on the next date counts the same as two
    day shifts.
    """
    ordered = sorted(set(shift_dates))
    return sum(1 for a, b in zip(ordered, ordered[1:]) if (b - a).days == 1)


def _sleep_bucket(wake_day: date, labels: Dict[date, DayLabel]) -> str:
    today = labels.get(wake_day, DayLabel.OFF)
    before = labels.get(wake_day - timedelta(days=1), DayLabel.OFF)
    if DayLabel.NIGHT in (today, before):
        return "night"
    if today.is_working:
        return "day"
    return "off"


def sleep_by_shift_type(
    sessions: Sequence[SleepSession], resolved_days: Sequence[ResolvedDay]
) -> Dict[str, Optional[float]]:
    """Average main-sleep hours after night shifts, day shifts and days off."""
    out: Dict[str, Optional[float]] = {"night": None, "day": None, "off": None}
    mains = [s for s in sessions if s.is_main]
    if not mains:
        return out

    labels = {d.date: d.label for d in resolved_days}
    frame = pd.DataFrame(
        {
            "bucket": [_sleep_bucket(s.end_at.date(), labels) for s in mains],
            "hours": [s.duration_hours for s in mains],
        }
    )
    means = frame.groupby("bucket")["hours"].mean()
    for bucket, value in means.items():
        out[bucket] = round(float(value), 2)
    return out


def shift_mix(resolved_days: Sequence[ResolvedDay]) -> Dict[str, int]:
    labels = [d.label for d in resolved_days]
    return {
        "total_days": len(labels),
        "working": sum(1 for d in labels if d.is_working),
        "night": sum(1 for d in labels if d is DayLabel.NIGHT),
        "day": sum(1 for d in labels if d in DAY_VARIANTS),
        "off": sum(1 for d in labels if d is DayLabel.OFF),
    }


def shift_summary(sessions: Sequence[SleepSession], resolved_days: Sequence[ResolvedDay]) -> Dict[str, Any]:
    working_dates = [d.date for d in resolved_days if d.label.is_working]
    return {
        "quick_turnarounds": quick_turnarounds(working_dates),
        "sleep_by_shift_type": sleep_by_shift_type(sessions, resolved_days),
        "shift_mix": shift_mix(resolved_days),
    }
