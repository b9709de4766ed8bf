"""Detects the shortest repeating cycle in a painted sequence of day labels."""

from __future__ import annotations

from typing import Optional, Sequence

from constants import MAX_RECOGNIZED_PERIOD, DayLabel
from rota.projector import LabelLike, ShiftCycle, coerce_label


def recognize(sequence: Sequence[LabelLike]) -> Optional[ShiftCycle]:
    """Return the smallest-period cycle that tiles the whole sequence.

    Candidates are prefixes of length 1..min(14, len // 2). All-off prefixes
    are skipped since they cannot be told apart from "no rota". Returns None
    when nothing repeats, which is an expected outcome for irregular rotas.
    """
    labels = [coerce_label(v) for v in sequence]
    if len(labels) < 2:
        return None

    max_period = min(MAX_RECOGNIZED_PERIOD, len(labels) // 2)
    for period in range(1, max_period + 1):
        candidate = labels[:period]
        if all(label is DayLabel.OFF for label in candidate):
            continue
        if all(labels[i] == candidate[i % period] for i in range(len(labels))):
            return tuple(candidate)
    return None
