"""
Daily signal assembly.

Glue between the lookup service, the sleep log and the pure calculators in
analytics/. Each builder returns a JSON-ready dict; a signal whose inputs are
missing reports "available": False instead of raising.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

import config
from analytics.body_clock import BodyClockInputs, body_clock_score, shift_type_for
from analytics.energy_curve import energy_payload
from analytics.meal_timing import meal_schedule, meal_shift_type
from analytics.shift_summary import shift_summary
from analytics.sleep_metrics import (
    bedtime_variance_minutes,
    consistency_summary,
    debt_penalty,
    latest_main_sleep,
    sleep_debt_hours,
    sleep_duration_consistency,
    wake_time_consistency,
    weekly_sleep_deficit,
)
from models import SleepSession
from rota_service import ShiftLookupService

log = logging.getLogger("signals")

SLEEP_LOOKBACK_DAYS = 14
ROTATING_LOOKBACK_DAYS = 7
DEFAULT_WAKE = time(7, 0)


def load_sleep(service: ShiftLookupService, user_id: str, now: datetime,
               days: int = SLEEP_LOOKBACK_DAYS) -> List[SleepSession]:
    return [
        s for s in service.store.list_sleep_sessions(user_id, now - timedelta(days=days), now)
        if s.end_at <= now
    ]


def unavailable(reason: str) -> Dict[str, Any]:
    return {"available": False, "reason": reason}


def energy_signal(service: ShiftLookupService, user_id: str, now: datetime,
                  sessions: List[SleepSession]) -> Dict[str, Any]:
    label = service.resolve_day(user_id, now.date())
    latest = latest_main_sleep(sessions)
    # An empty log is missing data, not a full night of debt.
    debt = sleep_debt_hours(sessions, now, config.SLEEP_TARGET) if sessions else 0.0
    out = energy_payload(
        label,
        now,
        last_wake=latest.end_at if latest else None,
        debt_hours=debt,
        bio_night=(config.BIO_NIGHT_START, config.BIO_NIGHT_END),
    )
    out["available"] = True
    out["sleep_debt_hours"] = round(debt, 2) if sessions else None
    return out


def sleep_debt_signal(sessions: List[SleepSession], now: datetime) -> Dict[str, Any]:
    if not sessions:
        return unavailable("not enough data")
    debt = sleep_debt_hours(sessions, now, config.SLEEP_TARGET)
    return {
        "available": True,
        "target_hours": config.SLEEP_TARGET,
        "debt_hours": round(debt, 2),
        "penalty": debt_penalty(debt),
        "weekly": weekly_sleep_deficit(sessions, now.date(), config.SLEEP_TARGET),
    }


def consistency_signal(sessions: List[SleepSession]) -> Dict[str, Any]:
    summary = consistency_summary(sessions)
    summary["available"] = any(v is not None for v in summary.values())
    return summary


def body_clock_signal(service: ShiftLookupService, user_id: str, now: datetime,
                      sessions: List[SleepSession]) -> Optional[Dict[str, Any]]:
    today = now.date()
    label = service.resolve_day(user_id, today)
    recent = service.recent_labels(user_id, ROTATING_LOOKBACK_DAYS, until=today)
    result = body_clock_score(
        BodyClockInputs(
            latest_sleep=latest_main_sleep(sessions),
            sleep_debt_hours=sleep_debt_hours(sessions, now, config.SLEEP_TARGET),
            bedtime_variance_minutes=bedtime_variance_minutes(sessions),
            shift_type=shift_type_for(label, recent),
        )
    )
    return result.to_dict() if result else None


def meal_signal(service: ShiftLookupService, user_id: str, now: datetime,
                sessions: List[SleepSession], calories: float) -> Dict[str, Any]:
    label = service.resolve_day(user_id, now.date())
    latest = latest_main_sleep(sessions)
    if latest is not None and latest.end_at.date() == now.date():
        wake = latest.end_at
    else:
        wake = datetime.combine(now.date(), DEFAULT_WAKE)
    slots = meal_schedule(label, wake, calories)
    return {
        "available": True,
        "label": label.value,
        "shift_type": meal_shift_type(label),
        "wake_time": wake.isoformat(),
        "slots": [s.to_dict() for s in slots],
    }


def shift_summary_signal(service: ShiftLookupService, user_id: str, today: date,
                         sessions: List[SleepSession], days: int = SLEEP_LOOKBACK_DAYS) -> Dict[str, Any]:
    resolved = service.resolve_range(user_id, today - timedelta(days=days - 1), today)
    out = shift_summary(sessions, resolved)
    out["available"] = True
    out["days"] = days
    return out


def daily_record(service: ShiftLookupService, user_id: str, day: date) -> Dict[str, Any]:
    """Score row persisted by the nightly precompute, evaluated at end of day."""
    now = datetime.combine(day, time(23, 59, 59))
    sessions = load_sleep(service, user_id, now)
    body_clock = body_clock_signal(service, user_id, now, sessions)
    return {
        "score": body_clock["score"] if body_clock else None,
        "sleep_debt_hours": round(sleep_debt_hours(sessions, now, config.SLEEP_TARGET), 2) if sessions else None,
        "wake_consistency": wake_time_consistency(sessions),
        "duration_consistency": sleep_duration_consistency(sessions),
        "factors": body_clock["factors"] if body_clock else {},
    }
