"""
Shared constants used across multiple modules.
Single source of truth for shift labels, working hours and circadian defaults.
"""

from enum import Enum


class DayLabel(str, Enum):
    DAY = "day"
    NIGHT = "night"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    OFF = "off"
    OTHER = "other"

    @property
    def is_working(self) -> bool:
        return self is not DayLabel.OFF


# Slot letters used by the setup wizard presets
SLOT_LETTERS = {
    "M": DayLabel.MORNING,
    "A": DayLabel.AFTERNOON,
    "D": DayLabel.DAY,
    "N": DayLabel.NIGHT,
    "O": DayLabel.OFF,
}

DAY_VARIANTS = frozenset({DayLabel.MORNING, DayLabel.AFTERNOON, DayLabel.DAY})

DEFAULT_CYCLE = (DayLabel.DAY, DayLabel.NIGHT, DayLabel.OFF)

MAX_CYCLE_LENGTH = 30
MAX_RECOGNIZED_PERIOD = 14

SHIFT_LENGTHS = ("8h", "12h", "16h")

# Default working block per label: (start hour, end hour), end <= start crosses midnight
WORKING_HOURS = {
    DayLabel.DAY: (7, 19),
    DayLabel.NIGHT: (19, 7),
    DayLabel.MORNING: (6, 14),
    DayLabel.AFTERNOON: (14, 22),
    DayLabel.EVENING: (17, 1),
    DayLabel.OTHER: (9, 17),
}

SLEEP_TARGET_HOURS = 7.5
BIO_NIGHT_START_HOUR = 23
BIO_NIGHT_END_HOUR = 7
