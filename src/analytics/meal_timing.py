"""Meal windows for today, laid out around wake time and the shift block."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from constants import WORKING_HOURS, DayLabel

MIN_DAILY_CALORIES = 1200

_MEAL_SHIFT_TYPE = {
    DayLabel.MORNING: "day",
    DayLabel.DAY: "day",
    DayLabel.OTHER: "day",
    DayLabel.AFTERNOON: "late",
    DayLabel.EVENING: "late",
    DayLabel.NIGHT: "night",
    DayLabel.OFF: "off",
}


@dataclass(frozen=True)
class MealSlot:
    id: str
    label: str
    time: datetime
    window_hours: float
    calories_target: int
    hint: str

    @property
    def window_label(self) -> str:
        end = self.time + timedelta(hours=self.window_hours)
        return f"{self.time:%H:%M}-{end:%H:%M}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "time": self.time.isoformat(),
            "window_label": self.window_label,
            "calories_target": self.calories_target,
            "hint": self.hint,
        }


def meal_shift_type(label: DayLabel) -> str:
    return _MEAL_SHIFT_TYPE[label]


def default_shift_block(label: DayLabel, wake_time: datetime) -> Optional[Tuple[datetime, datetime]]:
    """Default working block for the label, on the wake date."""
    hours = WORKING_HOURS.get(label)
    if hours is None:
        return None
    day_start = wake_time.replace(hour=0, minute=0, second=0, microsecond=0)
    start = day_start + timedelta(hours=hours[0])
    end = day_start + timedelta(hours=hours[1])
    if end <= start:
        end += timedelta(days=1)
    return start, end


def _next_clock_hour(after: datetime, hour: int) -> datetime:
    candidate = after.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= after:
        candidate += timedelta(days=1)
    return candidate


def _off_day(wake: datetime, kcal) -> List[MealSlot]:
    return [
        MealSlot("breakfast", "Breakfast", wake + timedelta(hours=0.5), 1, kcal(0.30), "Protein-forward start"),
        MealSlot("lunch", "Lunch", wake + timedelta(hours=5.5), 1, kcal(0.35), "Balanced plate"),
        MealSlot("daySnack", "Snack", wake + timedelta(hours=8), 0.5, kcal(0.10), "Light, keep energy steady"),
        MealSlot("dinner", "Dinner", wake + timedelta(hours=10.5), 1, kcal(0.25), "Lighter evening"),
    ]


def meal_schedule(
    label: DayLabel,
    wake_time: datetime,
    adjusted_calories: float,
    shift_start: Optional[datetime] = None,
    shift_end: Optional[datetime] = None,
) -> List[MealSlot]:
    total = max(MIN_DAILY_CALORIES, round(adjusted_calories or 0))

    def kcal(pct: float) -> int:
        return round(total * pct)

    shift_type = meal_shift_type(label)
    if shift_type != "off" and (shift_start is None or shift_end is None):
        block = default_shift_block(label, wake_time)
        if block is not None:
            shift_start, shift_end = block

    if shift_type == "off" or shift_start is None or shift_end is None:
        slots = _off_day(wake_time, kcal)
    elif shift_type == "day":
        mid = shift_start + (shift_end - shift_start) / 2
        slots = [
            MealSlot("preShift", "Pre-shift breakfast", wake_time + timedelta(hours=0.5), 1, kcal(0.25), "Fuel before work"),
            MealSlot("midShift", "Mid-shift meal", mid, 1, kcal(0.40), "Main energy block"),
            MealSlot("daySnack", "Post-shift snack", shift_end + timedelta(hours=1), 0.75, kcal(0.15), "Recovery snack"),
            MealSlot("dinner", "Light evening meal", shift_end + timedelta(hours=4), 1, kcal(0.20), "Lighter evening"),
        ]
    elif shift_type == "night":
        post = shift_end + timedelta(hours=1)
        slots = [
            MealSlot("preShift", "Pre-shift meal", shift_start - timedelta(hours=2.5), 1, kcal(0.35), "Largest before shift"),
            MealSlot("midShift", "Early-shift snack", shift_start + timedelta(hours=2), 0.75, kcal(0.25), "Keep steady"),
            MealSlot("nightSnack", "Body-night snack", _next_clock_hour(shift_start, 2), 0.5, kcal(0.10), "Very light"),
            MealSlot("postShiftBreakfast", "Post-shift breakfast", post, 1, kcal(0.20), "Before sleep"),
            MealSlot("daySnack", "Day snack (optional)", post + timedelta(hours=6), 0.5, kcal(0.10), "Only if needed"),
        ]
    else:
        mid = shift_start + (shift_end - shift_start) / 2
        slots = [
            MealSlot("preShift", "Pre-shift meal", wake_time + timedelta(hours=0.5), 1, kcal(0.30), "Fuel up"),
            MealSlot("midShift", "Mid-shift meal", mid, 1, kcal(0.35), "Main energy"),
            MealSlot("nightSnack", "Late-shift light snack", shift_end - timedelta(hours=1), 0.5, kcal(0.10), "Keep light late"),
            MealSlot("dinner", "Post-shift light meal", shift_end + timedelta(hours=2), 0.75, kcal(0.25), "Wind down"),
        ]

    return sorted(slots, key=lambda s: s.time)
