"""
Tests for the body-clock alignment score and its factor display.
"""
import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from analytics.body_clock import (
    BodyClockInputs,
    body_clock_score,
    debt_factor,
    duration_factor,
    inconsistency_factor,
    midpoint_deviation_hours,
    shift_type_for,
    timing_factor,
)
from constants import DayLabel


class TestFactors:

    @pytest.mark.parametrize("hours,expected", [(8, 12), (7, 12), (6.5, 4), (6, 4), (5.9, -8)])
    def test_duration(self, hours, expected):
        assert duration_factor(hours) == expected

    @pytest.mark.parametrize("dev,expected", [(0, 12), (1, 12), (1.5, 4), (2, 4), (2.1, -8)])
    def test_timing(self, dev, expected):
        assert timing_factor(dev) == expected

    @pytest.mark.parametrize("debt,expected", [(0, 8), (2, 8), (3, 0), (5, 0), (5.5, -12)])
    def test_debt(self, debt, expected):
        assert debt_factor(debt) == expected

    @pytest.mark.parametrize("var,expected", [(None, 0), (10, 0), (30, -5), (59, -5), (60, -10), (119, -10), (120, -15)])
    def test_inconsistency(self, var, expected):
        assert inconsistency_factor(var) == expected

    def test_midpoint_wraps_midnight(self):
        # 19:00 -> 03:00 has midpoint 23:00, four hours from 03:00
        assert midpoint_deviation_hours(datetime(2024, 1, 1, 19), datetime(2024, 1, 2, 3)) == pytest.approx(4.0)
        assert midpoint_deviation_hours(datetime(2024, 1, 1, 23), datetime(2024, 1, 2, 7)) == pytest.approx(0.0)


class TestShiftType:

    def test_label_mapping(self):
        assert shift_type_for(DayLabel.MORNING) == "morning"
        assert shift_type_for(DayLabel.AFTERNOON) == "evening"
        assert shift_type_for(DayLabel.NIGHT) == "night"
        assert shift_type_for(DayLabel.OFF) == "day"

    def test_rotating_when_more_than_two_variants(self):
        recent = [DayLabel.MORNING, DayLabel.NIGHT, DayLabel.OFF, DayLabel.EVENING]
        assert shift_type_for(DayLabel.OFF, recent) == "rotating"

    def test_two_variants_not_rotating(self):
        recent = [DayLabel.DAY, DayLabel.NIGHT, DayLabel.OFF, DayLabel.OFF]
        assert shift_type_for(DayLabel.NIGHT, recent) == "night"


class TestScore:

    def test_no_main_sleep_is_unavailable(self, make_sleep):
        nap = make_sleep(datetime(2024, 1, 1, 14), datetime(2024, 1, 1, 15), type="nap")
        assert body_clock_score(BodyClockInputs(None, 0, None, "day")) is None
        assert body_clock_score(BodyClockInputs(nap, 0, None, "day")) is None

    def test_well_aligned_day_worker(self, make_sleep):
        sleep = make_sleep(datetime(2024, 1, 1, 23), datetime(2024, 1, 2, 7))
        result = body_clock_score(BodyClockInputs(sleep, 1.0, 20.0, "morning"))
        assert result.factors == {
            "latest_shift": 10,
            "sleep_duration": 12,
            "sleep_timing": 12,
            "sleep_debt": 8,
            "inconsistency": 0,
        }
        assert result.score == 92

    def test_struggling_night_worker(self, make_sleep):
        sleep = make_sleep(datetime(2024, 1, 2, 9), datetime(2024, 1, 2, 13))
        result = body_clock_score(BodyClockInputs(sleep, 6.0, 150.0, "night"))
        assert sum(result.factors.values()) == -58
        assert result.score == 0
        assert result.factor_display() == {
            "latest_shift": "-15",
            "sleep_duration": "-8",
            "sleep_timing": "-8",
            "sleep_debt": "-12",
            "inconsistency": "-15",
        }

    def test_zero_factor_display(self, make_sleep):
        sleep = make_sleep(datetime(2024, 1, 1, 23), datetime(2024, 1, 2, 7))
        result = body_clock_score(BodyClockInputs(sleep, 4.0, None, "day"))
        display = result.factor_display()
        assert display["latest_shift"] == "0"
        assert display["sleep_debt"] == "0"
        assert display["sleep_duration"] == "+12"
        assert result.to_dict()["score"] == result.score
