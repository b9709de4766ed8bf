"""
Setup-wizard draft state.

The wizard holds an immutable RotaDraft and folds user actions into it with
reduce_draft(). Drafts round-trip through plain dicts so the client can keep
them between steps.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date
from typing import Any, Dict, Optional

from constants import SHIFT_LENGTHS
from errors import InvalidInput, PatternNotFound
from rota.catalog import get_pattern


@dataclass(frozen=True)
class RotaDraft:
    shift_length: Optional[str] = None
    pattern_id: Optional[str] = None
    anchor_index: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["start_date"] = self.start_date.isoformat() if self.start_date else None
        out["end_date"] = self.end_date.isoformat() if self.end_date else None
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RotaDraft":
        def _d(value: Any) -> Optional[date]:
            if value in (None, ""):
                return None
            return value if isinstance(value, date) else date.fromisoformat(str(value))

        return cls(
            shift_length=data.get("shift_length"),
            pattern_id=data.get("pattern_id"),
            anchor_index=int(data.get("anchor_index") or 0),
            start_date=_d(data.get("start_date")),
            end_date=_d(data.get("end_date")),
        )

    def to_request(self) -> Dict[str, Any]:
        """Body for PUT /api/v1/rota; the draft must be complete."""
        if not self.pattern_id:
            raise InvalidInput("Pick a pattern before saving the rota")
        if self.start_date is None:
            raise InvalidInput("Pick a start date before saving the rota")
        return {
            "pattern_id": self.pattern_id,
            "start_date": self.start_date.isoformat(),
            "anchor_index": self.anchor_index,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


def reduce_draft(draft: RotaDraft, action: Dict[str, Any]) -> RotaDraft:
    """Apply one wizard action and return the new draft."""
    kind = action.get("type")

    if kind == "reset":
        return RotaDraft()

    if kind == "select_length":
        length = action.get("shift_length")
        if length not in SHIFT_LENGTHS:
            raise InvalidInput(f"Unknown shift length: {length!r}")
        if length == draft.shift_length:
            return draft
        return RotaDraft(shift_length=length, start_date=draft.start_date, end_date=draft.end_date)

    if kind == "select_pattern":
        pattern_id = action.get("pattern_id") or ""
        try:
            pattern = get_pattern(pattern_id)
        except PatternNotFound as e:
            raise InvalidInput(str(e)) from e
        # Anchor positions are only meaningful within the chosen cycle.
        return replace(draft, pattern_id=pattern.id, shift_length=pattern.shift_length, anchor_index=0)

    if kind == "select_anchor":
        if not draft.pattern_id:
            raise InvalidInput("Pick a pattern before choosing today's position")
        length = get_pattern(draft.pattern_id).cycle_length
        index = int(action.get("anchor_index", 0))
        if not 0 <= index < length:
            raise InvalidInput(f"anchor_index {index} outside [0, {length})")
        return replace(draft, anchor_index=index)

    if kind == "set_start":
        return replace(draft, start_date=action.get("start_date"))

    if kind == "set_end":
        end = action.get("end_date")
        if end is not None and draft.start_date is not None and end <= draft.start_date:
            raise InvalidInput("The end date must be after the start date")
        return replace(draft, end_date=end)

    raise InvalidInput(f"Unknown draft action: {kind!r}")
