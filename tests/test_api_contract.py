"""
Contract/behavior tests for src/api.py.

Handlers are called directly against an in-memory store and validate:
- pattern catalog and recognition payloads
- rota save / resolve / month / clear round trips
- override and sleep-log error mapping (400 / 401 / 404)
- signals degrading individually when the sleep log is unavailable
- admin precompute authorization
"""

import os
import sys
from datetime import date, datetime

import pytest
from fastapi import HTTPException
from starlette.requests import Request

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
import api as api_mod
import routes.helpers as helpers_mod
from errors import InvalidInput, NotFound, PatternNotFound, UpstreamFailure
from events import ROTA_CLEARED, SLEEP_REFRESHED
from rota_service import ShiftLookupService
from rota_store import InMemoryRotaStore

USER = "user-1"
NOW = datetime(2024, 3, 15, 14, 30)


def _request(method="GET", path="/"):
    return Request({
        "type": "http",
        "method": method,
        "path": path,
        "headers": [],
        "query_string": b"",
        "client": ("127.0.0.1", 5000),
    })


class BrokenSleepStore(InMemoryRotaStore):
    def list_sleep_sessions(self, user_id, from_at=None, to_at=None):
        raise UpstreamFailure("sleep table unreachable")


@pytest.fixture
def wired(monkeypatch, store, bus):
    service = ShiftLookupService(store, bus, today=NOW.date())
    monkeypatch.setattr(api_mod, "get_service", lambda: service)
    monkeypatch.setattr(api_mod, "get_store", lambda: store)
    monkeypatch.setattr(api_mod, "_now", lambda: NOW)
    monkeypatch.setattr(api_mod.limiter, "enabled", False)
    return service


def _save_rota(pattern_id="12h-2d-2n-4off", start=date(2024, 3, 1), anchor=0, **extra):
    body = api_mod.RotaRequest(pattern_id=pattern_id, start_date=start, anchor_index=anchor, **extra)
    return api_mod.rota_put(body, _request("PUT"), x_user_id=USER)


def _add_sleep(start, end, type="sleep"):
    body = api_mod.SleepSessionRequest(start_at=start, end_at=end, type=type)
    return api_mod.sleep_session_add(body, _request("POST"), x_user_id=USER)


# ─── Patterns ────────────────────────────────────────────────


def test_patterns_lists_presets_for_length():
    out = api_mod.patterns(shift_length="16h")
    ids = [p["id"] for p in out["patterns"]]
    assert "16h-1on-2off" in ids
    assert all(p["shift_length"] == "16h" for p in out["data"])


def test_pattern_detail_and_unknown_pattern():
    out = api_mod.pattern_detail("12h-du-pont")
    assert out["cycle_length"] == 10
    assert out["classification"] == "rotating"

    with pytest.raises(HTTPException) as exc:
        api_mod.pattern_detail("nope")
    assert exc.value.status_code == 404


def test_recognize_pattern():
    seq = ["day", "day", "off", "day", "day", "off", "day"]
    out = api_mod.recognize_pattern(api_mod.RecognizeRequest(sequence=seq))
    assert out == {"cycle": ["day", "day", "off"], "length": 3, "classification": "mostly_days"}

    irregular = api_mod.recognize_pattern(api_mod.RecognizeRequest(sequence=["day", "night", "off"]))
    assert irregular["cycle"] is None

    with pytest.raises(HTTPException) as exc:
        api_mod.recognize_pattern(api_mod.RecognizeRequest(sequence=["day", "brunch"]))
    assert exc.value.status_code == 400


# ─── Rota ────────────────────────────────────────────────────


def test_missing_user_header_is_401(wired):
    with pytest.raises(HTTPException) as exc:
        api_mod.rota_get(x_user_id=None)
    assert exc.value.status_code == 401


def test_rota_put_then_get(wired):
    saved = _save_rota(anchor=2)
    assert saved["pattern_id"] == "12h-2d-2n-4off"
    assert saved["shift_length"] == "12h"
    assert saved["rota"]["anchor_index"] == 2

    assert api_mod.rota_get(x_user_id=USER)["cycle"][:4] == ["day", "day", "night", "night"]
    assert api_mod.rota_get(x_user_id="someone-else") == {"rota": None}


def test_rota_put_rejects_end_before_start(wired):
    with pytest.raises(HTTPException) as exc:
        _save_rota(end_date=date(2024, 2, 1))
    assert exc.value.status_code == 400


def test_rota_put_custom_cycle(wired):
    saved = _save_rota(pattern_id="", cycle=["night", "off"])
    assert saved["pattern_id"] == "custom"
    assert saved["cycle"] == ["night", "off"]


def test_rota_range_resolves_pattern_and_overrides(wired):
    _save_rota()
    api_mod.override_put("2024-03-05", api_mod.OverrideRequest(label="night"), _request("PUT"), x_user_id=USER)

    out = api_mod.rota_range(from_="2024-02-29", to="2024-03-05", x_user_id=USER)
    days = {d["date"]: d for d in out["days"]}
    assert days["2024-02-29"]["source"] == "outside_window"
    assert days["2024-03-01"] == {"date": "2024-03-01", "label": "day", "day_in_cycle": 1, "source": "pattern"}
    assert days["2024-03-03"]["label"] == "night"
    assert days["2024-03-05"]["source"] == "override"
    assert days["2024-03-05"]["label"] == "night"
    assert days["2024-03-05"]["day_in_cycle"] == 5


def test_rota_range_validation(wired):
    with pytest.raises(HTTPException) as exc:
        api_mod.rota_range(from_="03/01/2024", to="2024-03-05", x_user_id=USER)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        api_mod.rota_range(from_="2024-01-01", to="2025-06-01", x_user_id=USER)
    assert exc.value.status_code == 400

    assert api_mod.rota_range(from_="2024-03-05", to="2024-03-01", x_user_id=USER)["days"] == []


def test_rota_month_grid(wired):
    _save_rota()
    out = api_mod.rota_month(year=2024, month=3, x_user_id=USER)
    assert len(out["weeks"]) == 6
    assert all(len(w) == 7 for w in out["weeks"])
    first = out["weeks"][0][0]
    assert first["date"] == "2024-02-26"
    assert first["is_current_month"] is False
    today = [c for w in out["weeks"] for c in w if c["is_today"]]
    assert [c["date"] for c in today] == ["2024-03-15"]


def test_rota_clear_removes_window_and_overrides(wired, bus):
    seen = []
    bus.subscribe(ROTA_CLEARED, seen.append)
    _save_rota()
    api_mod.override_put("2024-03-05", api_mod.OverrideRequest(label="off"), _request("PUT"), x_user_id=USER)

    out = api_mod.rota_clear(_request("POST"), x_user_id=USER)
    assert out == {"status": "cleared", "window_removed": True, "overrides_removed": 1}
    assert seen == [{"user_id": USER}]
    assert api_mod.rota_get(x_user_id=USER) == {"rota": None}


# ─── Overrides ───────────────────────────────────────────────


def test_override_bad_label_and_missing_delete(wired):
    with pytest.raises(HTTPException) as exc:
        api_mod.override_put("2024-03-05", api_mod.OverrideRequest(label="brunch"), _request("PUT"), x_user_id=USER)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        api_mod.override_delete("2024-03-05", _request("DELETE"), x_user_id=USER)
    assert exc.value.status_code == 404


def test_override_delete_round_trip(wired):
    api_mod.override_put("2024-03-05", api_mod.OverrideRequest(label="evening"), _request("PUT"), x_user_id=USER)
    out = api_mod.override_delete("2024-03-05", _request("DELETE"), x_user_id=USER)
    assert out == {"status": "deleted", "date": "2024-03-05"}


# ─── Sleep log ───────────────────────────────────────────────


def test_sleep_add_list_delete(wired, bus):
    seen = []
    bus.subscribe(SLEEP_REFRESHED, seen.append)

    added = _add_sleep(datetime(2024, 3, 14, 23), datetime(2024, 3, 15, 7))
    assert added["duration_hours"] == 8.0
    assert seen[0]["session_id"] == added["id"]

    listed = api_mod.sleep_sessions(from_="2024-03-14", to="2024-03-15", x_user_id=USER)
    assert [s["id"] for s in listed["sessions"]] == [added["id"]]
    assert api_mod.sleep_sessions(from_="2024-03-16", to=None, x_user_id=USER)["sessions"] == []

    api_mod.sleep_session_delete(added["id"], _request("DELETE"), x_user_id=USER)
    with pytest.raises(HTTPException) as exc:
        api_mod.sleep_session_delete(added["id"], _request("DELETE"), x_user_id=USER)
    assert exc.value.status_code == 404


def test_sleep_add_rejects_inverted_session(wired):
    with pytest.raises(HTTPException) as exc:
        _add_sleep(datetime(2024, 3, 15, 7), datetime(2024, 3, 14, 23))
    assert exc.value.status_code == 400


def test_offset_timestamps_are_stored_naive_and_readable(wired):
    body = api_mod.SleepSessionRequest(start_at="2024-03-14T12:00:00Z", end_at="2024-03-14T20:00:00Z")
    added = api_mod.sleep_session_add(body, _request("POST"), x_user_id=USER)
    assert added["duration_hours"] == 8.0
    assert "+" not in added["end_at"] and not added["end_at"].endswith("Z")

    listed = api_mod.sleep_sessions(from_="2024-03-14", to="2024-03-15", x_user_id=USER)
    assert [s["id"] for s in listed["sessions"]] == [added["id"]]

    assert api_mod.signal_sleep_debt(x_user_id=USER)["available"] is True
    assert api_mod.signal_body_clock(x_user_id=USER)["available"] is True
    assert "available" in api_mod.signal_consistency(x_user_id=USER)
    assert api_mod.signal_energy(x_user_id=USER)["sleep_available"] is True
    assert api_mod.signal_meal_timing(calories=2000, x_user_id=USER)["available"] is True
    assert api_mod.signal_shift_summary(days=14, x_user_id=USER)["available"] is True


# ─── Signals ─────────────────────────────────────────────────


def test_signals_with_rota_and_sleep(wired):
    _save_rota(anchor=2)  # 2024-03-15 lands on a day shift
    _add_sleep(datetime(2024, 3, 14, 23), datetime(2024, 3, 15, 6, 30))

    energy = api_mod.signal_energy(x_user_id=USER)
    assert energy["available"] is True
    assert energy["label"] == "day"
    assert len(energy["points"]) == 24
    assert energy["sleep_available"] is True

    debt = api_mod.signal_sleep_debt(x_user_id=USER)
    assert debt["available"] is True
    assert debt["weekly"]["required_daily"] == debt["target_hours"]

    clock = api_mod.signal_body_clock(x_user_id=USER)
    assert clock["available"] is True
    assert 0 <= clock["score"] <= 100

    meals = api_mod.signal_meal_timing(calories=2000, x_user_id=USER)
    assert meals["wake_time"] == "2024-03-15T06:30:00"
    assert meals["shift_type"] == "day"

    summary = api_mod.signal_shift_summary(days=14, x_user_id=USER)
    assert summary["shift_mix"]["total_days"] == 14


def test_body_clock_unavailable_without_sleep(wired):
    out = api_mod.signal_body_clock(x_user_id=USER)
    assert out == {"available": False, "reason": "not enough data"}


def test_sleep_debt_unavailable_without_sleep(wired):
    assert api_mod.signal_sleep_debt(x_user_id=USER) == {"available": False, "reason": "not enough data"}
    energy = api_mod.signal_energy(x_user_id=USER)
    assert energy["debt_penalty"] == 0


def test_signals_degrade_independently(monkeypatch, bus):
    broken = BrokenSleepStore()
    service = ShiftLookupService(broken, bus, today=NOW.date())
    monkeypatch.setattr(api_mod, "get_service", lambda: service)
    monkeypatch.setattr(api_mod, "_now", lambda: NOW)

    assert api_mod.signal_sleep_debt(x_user_id=USER)["available"] is False
    assert api_mod.signal_consistency(x_user_id=USER)["available"] is False
    assert api_mod.signal_body_clock(x_user_id=USER)["available"] is False

    energy = api_mod.signal_energy(x_user_id=USER)
    assert energy["available"] is True
    assert energy["sleep_available"] is False

    meals = api_mod.signal_meal_timing(calories=1800, x_user_id=USER)
    assert meals["available"] is True


# ─── Admin ───────────────────────────────────────────────────


def test_admin_precompute_requires_secret(monkeypatch, wired):
    monkeypatch.setattr(api_mod.config, "CRON_SECRET", "")
    with pytest.raises(HTTPException) as exc:
        api_mod.admin_precompute(day=None, authorization="Bearer x")
    assert exc.value.status_code == 503

    monkeypatch.setattr(api_mod.config, "CRON_SECRET", "s3cret")
    with pytest.raises(HTTPException) as exc:
        api_mod.admin_precompute(day=None, authorization="Bearer wrong")
    assert exc.value.status_code == 401


def test_admin_precompute_runs_pipeline(monkeypatch, wired, store, tmp_path):
    monkeypatch.setattr(api_mod.config, "CRON_SECRET", "s3cret")
    monkeypatch.setattr(api_mod.config, "PIPELINE_STATUS_PATH", str(tmp_path / "status.json"))
    _add_sleep(datetime(2024, 3, 13, 23), datetime(2024, 3, 14, 7))

    out = api_mod.admin_precompute(day="2024-03-14", authorization="Bearer s3cret")
    assert out["run_date"] == "2024-03-14"
    assert out["users_total"] == 1
    assert out["overall_status"] == "success"
    assert store.get_daily_score(USER, date(2024, 3, 14))["score"] is not None


# ─── Error mapping ───────────────────────────────────────────


@pytest.mark.parametrize("error,status", [
    (InvalidInput("bad"), 400),
    (PatternNotFound("x"), 404),
    (NotFound("gone"), 404),
    (UpstreamFailure("db down"), 503),
    (RuntimeError("boom"), 500),
])
def test_http_error_mapping(error, status):
    assert helpers_mod._http_error(error).status_code == status
