"""
Shift Lookup Service
====================
Answers "what is this user's shift on date D" by combining the stored rota
window with manual day overrides.

Resolution order for a single date:
  1. a day override for (user, date)
  2. the active window's projection, when the date lies inside it
  3. off

Per user the rota is either absent (NoRota) or a single active window.
set_pattern() replaces the window, clear_rota() removes it together with
every override.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from constants import DayLabel
from errors import InvalidInput, PatternNotFound
from events import ROTA_CLEARED, ROTA_SAVED, EventBus
from models import DayOverride, ResolvedDay
from rota.catalog import cycle_or_default, get_pattern
from rota.projector import (
    LabelLike,
    RotaWindow,
    as_cycle,
    coerce_label,
    cycle_index,
    iter_dates,
    make_alignment,
    month_grid,
)
from rota_store import RotaStore

log = logging.getLogger("rota_service")

CUSTOM_PATTERN_ID = "custom"


class ShiftLookupService:
    def __init__(
        self,
        store: RotaStore,
        events: Optional[EventBus] = None,
        today: Union[date, Callable[[], date], None] = None,
    ):
        self.store = store
        self.events = events or EventBus()
        self._today = today

    def today(self) -> date:
        if self._today is None:
            return date.today()
        if isinstance(self._today, date):
            return self._today
        return self._today()

    # ─── Reads ─────────────────────────────────────────────

    def get_window(self, user_id: str) -> Optional[RotaWindow]:
        return self.store.get_window(user_id)

    @staticmethod
    def _resolve(
        day: date, window: Optional[RotaWindow], overrides: Dict[date, DayLabel]
    ) -> ResolvedDay:
        inside = window is not None and window.contains(day)
        position = cycle_index(window.alignment, day) + 1 if inside else None

        if day in overrides:
            return ResolvedDay(day, overrides[day], position, "override")
        if window is None:
            return ResolvedDay(day, DayLabel.OFF, None, "no_rota")
        if not inside:
            return ResolvedDay(day, DayLabel.OFF, None, "outside_window")
        return ResolvedDay(day, window.alignment.cycle[position - 1], position, "pattern")

    def resolve_day(self, user_id: str, day: date) -> DayLabel:
        return self.resolve_range(user_id, day, day)[0].label

    def resolve_range(self, user_id: str, from_date: date, to_date: date) -> List[ResolvedDay]:
        """One entry per date in [from_date, to_date]; empty when inverted."""
        if to_date < from_date:
            return []
        window = self.store.get_window(user_id)
        overrides = self.store.list_overrides(user_id, from_date, to_date)
        if window is None and not overrides:
            log.info("No rota for user %s; resolving %s..%s as off", user_id, from_date, to_date)
        return [self._resolve(day, window, overrides) for day in iter_dates(from_date, to_date)]

    def today_shift(self, user_id: str) -> ResolvedDay:
        today = self.today()
        return self.resolve_range(user_id, today, today)[0]

    def recent_labels(self, user_id: str, days: int, until: Optional[date] = None) -> List[DayLabel]:
        """Resolved labels for the trailing `days` dates ending at `until` (default today)."""
        if days <= 0:
            return []
        end = until or self.today()
        start = end - timedelta(days=days - 1)
        return [d.label for d in self.resolve_range(user_id, start, end)]

    def month(self, user_id: str, year: int, month: int) -> List[List[Dict[str, Any]]]:
        grid = month_grid(year, month)
        first, last = grid[0][0].date, grid[-1][-1].date
        resolved = {d.date: d for d in self.resolve_range(user_id, first, last)}
        today = self.today()

        weeks: List[List[Dict[str, Any]]] = []
        for row in grid:
            cells = []
            for cell in row:
                item = resolved[cell.date].to_dict()
                item["is_current_month"] = cell.is_current_month
                item["is_today"] = cell.date == today
                cells.append(item)
            weeks.append(cells)
        return weeks

    # ─── Writes ────────────────────────────────────────────

    def set_pattern(
        self,
        user_id: str,
        pattern_id: str,
        start_date: date,
        anchor_index: int,
        end_date: Optional[date] = None,
        cycle: Optional[Sequence[LabelLike]] = None,
    ) -> RotaWindow:
        """Store a new window anchored at start_date; replaces any previous one."""
        shift_length = None
        if cycle is not None:
            labels = as_cycle(cycle)
            pattern_id = pattern_id or CUSTOM_PATTERN_ID
        else:
            labels = cycle_or_default(pattern_id)
            try:
                shift_length = get_pattern(pattern_id).shift_length
            except PatternNotFound:
                pass

        if end_date is not None and end_date <= start_date:
            raise InvalidInput(f"end_date {end_date} must be after start_date {start_date}")

        window = RotaWindow(
            alignment=make_alignment(labels, start_date, anchor_index),
            start_date=start_date,
            end_date=end_date,
            pattern_id=pattern_id,
            shift_length=shift_length,
        )
        self.store.save_window(user_id, window)
        log.info(
            "Saved rota for user %s: pattern=%s start=%s anchor=%d length=%d",
            user_id, pattern_id, start_date, window.alignment.anchor_index, window.alignment.length,
        )
        self.events.publish(ROTA_SAVED, {"user_id": user_id, "pattern_id": pattern_id})
        return window

    def clear_rota(self, user_id: str) -> Dict[str, Any]:
        removed_window = self.store.delete_window(user_id)
        removed_overrides = self.store.delete_overrides(user_id)
        log.info(
            "Cleared rota for user %s (window=%s, overrides=%d)",
            user_id, removed_window, removed_overrides,
        )
        self.events.publish(ROTA_CLEARED, {"user_id": user_id})
        return {"window_removed": removed_window, "overrides_removed": removed_overrides}

    def set_override(self, user_id: str, day: date, label: LabelLike) -> DayOverride:
        override = DayOverride(user_id=user_id, date=day, label=coerce_label(label))
        self.store.upsert_override(override)
        self.events.publish(ROTA_SAVED, {"user_id": user_id, "date": day.isoformat()})
        return override

    def remove_override(self, user_id: str, day: date) -> bool:
        removed = self.store.delete_override(user_id, day)
        if removed:
            self.events.publish(ROTA_SAVED, {"user_id": user_id, "date": day.isoformat()})
        return removed
