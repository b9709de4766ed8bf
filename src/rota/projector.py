"""
Cycle projection: pins an abstract shift cycle to the calendar.

An alignment is the triple (cycle, anchor_date, anchor_index). The cycle
position of any date is

    floor_mod(anchor_index + days_between(anchor_date, date), len(cycle))

so dates before the anchor wrap backwards through the cycle instead of
producing negative indices.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from constants import MAX_CYCLE_LENGTH, DayLabel
from errors import InvalidInput

LabelLike = Union[DayLabel, str]
ShiftCycle = Tuple[DayLabel, ...]


def coerce_label(value: LabelLike) -> DayLabel:
    if isinstance(value, DayLabel):
        return value
    try:
        return DayLabel(str(value).strip().lower())
    except ValueError:
        raise InvalidInput(f"Unknown day label: {value!r}") from None


def as_cycle(labels: Iterable[LabelLike]) -> ShiftCycle:
    cycle = tuple(coerce_label(v) for v in labels)
    if not cycle:
        raise InvalidInput("A shift cycle needs at least one day")
    if len(cycle) > MAX_CYCLE_LENGTH:
        raise InvalidInput(f"A shift cycle can be at most {MAX_CYCLE_LENGTH} days, got {len(cycle)}")
    return cycle


def floor_mod(a: int, n: int) -> int:
    if n <= 0:
        raise InvalidInput(f"Modulus must be positive, got {n}")
    return ((a % n) + n) % n


def days_between(start: date, end: date) -> int:
    """Whole calendar days from start to end; negative when end is earlier."""
    return (end - start).days


def iter_dates(from_date: date, to_date: date) -> Iterator[date]:
    current = from_date
    while current <= to_date:
        yield current
        current += timedelta(days=1)


@dataclass(frozen=True)
class CycleAlignment:
    cycle: ShiftCycle
    anchor_date: date
    anchor_index: int = 0

    def __post_init__(self):
        object.__setattr__(self, "cycle", as_cycle(self.cycle))
        if not 0 <= self.anchor_index < len(self.cycle):
            raise InvalidInput(
                f"anchor_index {self.anchor_index} outside [0, {len(self.cycle)})"
            )

    @property
    def length(self) -> int:
        return len(self.cycle)


def make_alignment(cycle: Sequence[LabelLike], anchor_date: date, anchor_index: int) -> CycleAlignment:
    """Build an alignment, reducing an out-of-range anchor index into the cycle."""
    normalized = as_cycle(cycle)
    return CycleAlignment(normalized, anchor_date, floor_mod(int(anchor_index), len(normalized)))


def cycle_index(alignment: CycleAlignment, day: date) -> int:
    delta = days_between(alignment.anchor_date, day)
    return floor_mod(alignment.anchor_index + delta, alignment.length)


def label_at(alignment: CycleAlignment, day: date) -> DayLabel:
    return alignment.cycle[cycle_index(alignment, day)]


@dataclass(frozen=True)
class RotaWindow:
    alignment: CycleAlignment
    start_date: date
    end_date: Optional[date] = None
    pattern_id: str = ""
    shift_length: Optional[str] = None

    def __post_init__(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise InvalidInput(
                f"end_date {self.end_date} must be after start_date {self.start_date}"
            )

    def contains(self, day: date) -> bool:
        if day < self.start_date:
            return False
        return self.end_date is None or day < self.end_date

    def to_dict(self) -> Dict[str, object]:
        return {
            "pattern_id": self.pattern_id,
            "shift_length": self.shift_length,
            "start_date": self.start_date.isoformat(),
            "anchor_index": self.alignment.anchor_index,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "cycle": [label.value for label in self.alignment.cycle],
        }


def window_label(window: RotaWindow, day: date) -> Optional[DayLabel]:
    """Label for a date, or None when the date falls outside the window."""
    if not window.contains(day):
        return None
    return label_at(window.alignment, day)


def project_range(window: RotaWindow, from_date: date, to_date: date) -> Dict[date, Optional[DayLabel]]:
    """Project the window over [from_date, to_date]; empty when the range is inverted."""
    if to_date < from_date:
        return {}
    return {day: window_label(window, day) for day in iter_dates(from_date, to_date)}


# ─── Month grid ────────────────────────────────────────────


@dataclass(frozen=True)
class GridCell:
    date: date
    is_current_month: bool
    week: int
    weekday: int


def month_grid(year: int, month: int) -> List[List[GridCell]]:
    """Six Monday-first weeks covering the given month."""
    if not 1 <= month <= 12:
        raise InvalidInput(f"month must be 1..12, got {month}")
    first = date(year, month, 1)
    grid_start = first - timedelta(days=first.weekday())
    weeks: List[List[GridCell]] = []
    for week in range(6):
        row = []
        for weekday in range(7):
            day = grid_start + timedelta(days=week * 7 + weekday)
            row.append(GridCell(date=day, is_current_month=day.month == month, week=week, weekday=weekday))
        weeks.append(row)
    return weeks
