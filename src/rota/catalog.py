"""
Shift Pattern Catalog
=====================
Static registry of preset rota cycles, grouped by shift length.

Each preset declares the working label variants it uses (`uses`) as
structured metadata. The declaration is checked against the cycle when the
module is imported, so a preset can never claim a label it does not contain.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Sequence

from constants import DAY_VARIANTS, DEFAULT_CYCLE, SLOT_LETTERS, DayLabel
from errors import PatternNotFound
from rota.projector import LabelLike, ShiftCycle, as_cycle

log = logging.getLogger("rota.catalog")

DEFAULT_PATTERN_ID = "default"


@dataclass(frozen=True)
class PatternDescriptor:
    id: str
    label: str
    description: str
    shift_length: str
    cycle: ShiftCycle
    uses: FrozenSet[DayLabel]

    @property
    def cycle_length(self) -> int:
        return len(self.cycle)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "shift_length": self.shift_length,
            "cycle": [d.value for d in self.cycle],
            "cycle_length": self.cycle_length,
            "uses": sorted(d.value for d in self.uses),
        }


def _slots(code: str) -> ShiftCycle:
    return tuple(SLOT_LETTERS[ch] for ch in code)


M, A, D, N = DayLabel.MORNING, DayLabel.AFTERNOON, DayLabel.DAY, DayLabel.NIGHT

# (id, label, description, slot code, declared working labels)
_PRESETS: Dict[str, List[tuple]] = {
    "8h": [
        ("8h-5on-2off-days", "5 on / 2 off · Mon–Fri days",
         "Standard Mon–Fri day shifts with weekends off.", "MMMAAOO", {M, A}),
        ("8h-5on-2off-rotating", "5 on / 2 off · rotating",
         "Five on, two off, rotating through the week.", "MAANNOO", {M, A, N}),
        ("8h-2e-2l-4off", "2 early / 2 late / 4 off",
         "Good for teams mixing early and late shifts with long recovery.", "MMAAOOOO", {M, A}),
        ("8h-2e-2l-2n-4off", "2 early / 2 late / 2 nights / 4 off",
         "Balanced rotation across early, late and nights.", "MMAANNOO", {M, A, N}),
        ("8h-3e-3l-6off", "3 early / 3 late / 6 off",
         "Longer blocks of early and late shifts with extended rest.", "MMMAAAOO", {M, A}),
        ("8h-4on-2off", "4 on / 2 off · rotating",
         "Classic 4 on / 2 off for 24/7 cover.", "MMAAOO", {M, A}),
        ("8h-6on-3off", "6 on / 3 off · rotating",
         "High-intensity pattern with regular 3-day breaks.", "MMMAAAOOO", {M, A}),
        ("8h-7on-2off-7off", "7 on / 2 off / 7 off",
         "Block of 7 worked days followed by a long rest block.", "MMMMAAAOOOOOOO", {M, A}),
        ("8h-2d-2n-4off", "2 days / 2 nights / 4 off · 8h",
         "Alternating days and nights with equal recovery time.", "MMNNOOOO", {M, N}),
        ("8h-custom", "Custom 8h pattern",
         "Build your own 8h pattern to match your rota exactly.", "MANNOO", {M, A, N}),
    ],
    "12h": [
        ("12h-4on-4off", "4 on / 4 off · 12h",
         "Very common 12h rota for emergency, plant and security teams.", "DDDDOOOO", {D}),
        ("12h-2d-2n-4off", "2 days / 2 nights / 4 off · 12h",
         "Two day shifts, two nights, then four days off.", "DDNNOOOO", {D, N}),
        ("12h-3on-3off", "3 on / 3 off · 12h",
         "Simple 3 on / 3 off rhythm for 24/7 cover.", "DDDOOO", {D}),
        ("12h-7on-7off", "7 on / 7 off · 12h",
         "Intense block of seven long shifts followed by a full week off.", "DDDDDDDOOOOOOO", {D}),
        ("12h-panama-223", "Panama 2–2–3 · 12h",
         "Popular 2–2–3 pattern with every other weekend off.", "DDOODDD", {D}),
        ("12h-du-pont", "DuPont · 12h rotating",
         "Continuous 24/7 DuPont rotation with regular long breaks.", "DDDOONNNOO", {D, N}),
        ("12h-continental", "Continental 2–2–3 · 12h",
         "Continental style rotation with a repeating 2–2–3 structure.", "DDODDONNO", {D, N}),
        ("12h-2d-3off-2n-3off", "2 days / 3 off / 2 nights / 3 off",
         "Separates day and night blocks with three-day recovery windows.", "DDOOONNOOO", {D, N}),
        ("12h-3d-3n-6off", "3 days / 3 nights / 6 off",
         "Three days, three nights, then six full days off.", "DDDNNNOOOOOO", {D, N}),
        ("12h-custom", "Custom 12h pattern",
         "Build your own 12h pattern to match your rota exactly.", "DDNNOO", {D, N}),
    ],
    "16h": [
        ("16h-2on-2off", "2 on / 2 off · 16h",
         "Long 16h shifts with equal time off for recovery.", "DDOO", {D}),
        ("16h-3on-3off", "3 on / 3 off · 16h",
         "Three long shifts followed by three full days off.", "DDDOOO", {D}),
        ("16h-4on-4off", "4 on / 4 off · 16h",
         "Maximises long shifts with extended rest blocks.", "DDDDOOOO", {D}),
        ("16h-2d-2off-2n-3off", "2 long days / 2 off / 2 long nights / 3 off",
         "Split between long days and long nights with recovery between.", "DDOONNOOO", {D, N}),
        ("16h-1on-2off", "1 on / 2 off · 16h (very heavy shifts)",
         "Occasional very long shifts with plenty of time off.", "DOO", {D}),
        ("16h-custom", "Custom 16h pattern",
         "Build your own 16h pattern for non-standard long shifts.", "DDNNOO", {D, N}),
    ],
}


def _build_catalog() -> Dict[str, PatternDescriptor]:
    catalog: Dict[str, PatternDescriptor] = {}
    for shift_length, presets in _PRESETS.items():
        for pattern_id, label, description, code, uses in presets:
            cycle = _slots(code)
            working = frozenset(d for d in cycle if d.is_working)
            if working != frozenset(uses):
                raise ValueError(
                    f"Pattern {pattern_id} declares {sorted(u.value for u in uses)} "
                    f"but its cycle uses {sorted(w.value for w in working)}"
                )
            catalog[pattern_id] = PatternDescriptor(
                id=pattern_id,
                label=label,
                description=description,
                shift_length=shift_length,
                cycle=cycle,
                uses=working,
            )
    return catalog


_CATALOG = _build_catalog()


def list_patterns(shift_length: str) -> List[PatternDescriptor]:
    return [p for p in _CATALOG.values() if p.shift_length == shift_length]


def get_pattern(pattern_id: str) -> PatternDescriptor:
    try:
        return _CATALOG[pattern_id]
    except KeyError:
        raise PatternNotFound(pattern_id) from None


def get_cycle(pattern_id: str) -> ShiftCycle:
    return get_pattern(pattern_id).cycle


def cycle_or_default(pattern_id: str) -> ShiftCycle:
    """Catalog cycle, or the default three-day cycle when the id is unknown."""
    try:
        return get_cycle(pattern_id)
    except PatternNotFound:
        log.warning("Unknown pattern %r; falling back to default cycle", pattern_id)
        return DEFAULT_CYCLE


def classify_pattern(cycle: Sequence[LabelLike]) -> str:
    """rotating | mostly_days | mostly_nights | custom"""
    if not cycle:
        return "custom"
    working = [d for d in as_cycle(cycle) if d.is_working]
    if not working:
        return "custom"

    counts = Counter(working)
    day_shifts = sum(counts[d] for d in DAY_VARIANTS)
    night_shifts = counts[DayLabel.NIGHT]

    if day_shifts and night_shifts:
        return "rotating"
    if day_shifts and day_shifts / len(working) >= 0.7:
        return "mostly_days"
    if night_shifts and night_shifts / len(working) >= 0.7:
        return "mostly_nights"
    return "custom"
