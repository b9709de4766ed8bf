"""Contract tests for the nightly precompute's health-state semantics.

Covers:
- _overall_status with all edge cases
- _write_pipeline_status_file naming and path override
- succeeded() in lenient and strict mode
- Full runs against the in-memory store, including per-user failures
- daily_sync CLI exit codes
"""

import json
import os
import sys
from datetime import date, datetime
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import config
import daily_sync
from errors import UpstreamFailure
from models import SleepSession
from pipeline.daily_scores import DailyScoresPipeline
from rota_store import InMemoryRotaStore

DAY = date(2024, 3, 14)


@pytest.fixture(autouse=True)
def status_path(monkeypatch, tmp_path):
    path = tmp_path / "status.json"
    monkeypatch.setattr(config, "PIPELINE_STATUS_PATH", str(path))
    return path


def _night(store, user_id, session_id="s1"):
    store.add_sleep_session(
        user_id, SleepSession(session_id, datetime(2024, 3, 13, 23), datetime(2024, 3, 14, 7))
    )


# ─── _overall_status ─────────────────────────────────────────


class TestOverallStatus:

    def test_success(self):
        status = {"users_ok": True, "users_total": 3, "failed_users": []}
        assert DailyScoresPipeline._overall_status(status) == "success"

    def test_success_with_no_users(self):
        status = {"users_ok": True, "users_total": 0, "failed_users": []}
        assert DailyScoresPipeline._overall_status(status) == "success"

    def test_degraded_when_some_users_fail(self):
        status = {"users_ok": True, "users_total": 3, "failed_users": ["a"]}
        assert DailyScoresPipeline._overall_status(status) == "degraded"

    def test_failed_when_every_user_fails(self):
        status = {"users_ok": True, "users_total": 2, "failed_users": ["a", "b"]}
        assert DailyScoresPipeline._overall_status(status) == "failed"

    def test_failed_when_user_listing_fails(self):
        assert DailyScoresPipeline._overall_status({"users_ok": False}) == "failed"

    def test_missing_keys_default_to_failed(self):
        assert DailyScoresPipeline._overall_status({}) == "failed"


# ─── succeeded ───────────────────────────────────────────────


class TestSucceeded:

    def test_lenient_accepts_degraded(self, monkeypatch):
        monkeypatch.setattr(config, "STRICT_PIPELINE_HEALTH", False)
        assert DailyScoresPipeline.succeeded({"overall_status": "degraded"})
        assert not DailyScoresPipeline.succeeded({"overall_status": "failed"})

    def test_strict_requires_success(self, monkeypatch):
        monkeypatch.setattr(config, "STRICT_PIPELINE_HEALTH", True)
        assert DailyScoresPipeline.succeeded({"overall_status": "success"})
        assert not DailyScoresPipeline.succeeded({"overall_status": "degraded"})


# ─── _write_pipeline_status_file ─────────────────────────────


class TestWriteStatusFile:

    def test_writes_to_configured_path(self, status_path):
        DailyScoresPipeline._write_pipeline_status_file({"run_date": "2024-03-14", "overall_status": "success"})
        data = json.loads(status_path.read_text(encoding="utf-8"))
        assert data["overall_status"] == "success"

    def test_default_name_uses_run_date(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config, "PIPELINE_STATUS_PATH", "")
        monkeypatch.chdir(tmp_path)
        DailyScoresPipeline._write_pipeline_status_file({"run_date": "2024-03-14"})
        assert (tmp_path / "pipeline_status_2024-03-14.json").exists()

    def test_unwritable_path_is_logged_not_raised(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config, "PIPELINE_STATUS_PATH", str(tmp_path / "missing" / "status.json"))
        DailyScoresPipeline._write_pipeline_status_file({"run_date": "2024-03-14"})


# ─── Full run ────────────────────────────────────────────────


class TestRun:

    def test_scores_and_persists_each_user(self, status_path):
        store = InMemoryRotaStore()
        _night(store, "alice")
        _night(store, "bob", "s2")

        status = DailyScoresPipeline(store).run(DAY)

        assert status["users_total"] == 2
        assert status["users_scored"] == 2
        assert status["users_unscored"] == 0
        assert status["overall_status"] == "success"
        assert status["mean_score"] is not None
        record = store.get_daily_score("alice", DAY)
        assert record["sleep_debt_hours"] >= 0
        assert set(record["factors"]) == {
            "latest_shift", "sleep_duration", "sleep_timing", "sleep_debt", "inconsistency",
        }
        assert json.loads(status_path.read_text(encoding="utf-8"))["run_date"] == "2024-03-14"

    def test_user_without_main_sleep_is_unscored(self):
        store = InMemoryRotaStore()
        store.add_sleep_session(
            "carol", SleepSession("n1", datetime(2024, 3, 14, 13), datetime(2024, 3, 14, 14), type="nap")
        )
        status = DailyScoresPipeline(store).run(DAY)
        assert status["users_unscored"] == 1
        assert status["mean_score"] is None
        assert store.get_daily_score("carol", DAY)["score"] is None

    def test_one_failing_user_degrades_the_run(self):
        store = InMemoryRotaStore()
        _night(store, "alice")
        _night(store, "bob", "s2")
        save = store.save_daily_score

        def flaky(user_id, day, record):
            if user_id == "bob":
                raise UpstreamFailure("write failed")
            save(user_id, day, record)

        store.save_daily_score = flaky
        status = DailyScoresPipeline(store).run(DAY)
        assert status["failed_users"] == ["bob"]
        assert status["degraded_reasons"] == ["user_scoring_failed"]
        assert status["overall_status"] == "degraded"

    def test_listing_failure_fails_the_run(self):
        store = MagicMock()
        store.list_user_ids.side_effect = UpstreamFailure("db down")
        status = DailyScoresPipeline(store).run(DAY)
        assert status["users_ok"] is False
        assert "pipeline_exception" in status["degraded_reasons"]
        assert status["overall_status"] == "failed"


# ─── CLI ─────────────────────────────────────────────────────


class TestDailySyncCli:

    def test_memory_run_exits_zero(self):
        assert daily_sync.main(["--memory", "--date", "2024-03-14"]) == 0

    def test_postgres_run_applies_migrations(self):
        fake_store = InMemoryRotaStore()
        with patch.object(daily_sync, "ensure_startup_schema") as migrate, \
                patch.object(daily_sync, "PostgresRotaStore", return_value=fake_store):
            assert daily_sync.main(["--date", "2024-03-14"]) == 0
        migrate.assert_called_once()

    def test_skip_migrations(self):
        with patch.object(daily_sync, "ensure_startup_schema") as migrate, \
                patch.object(daily_sync, "PostgresRotaStore", return_value=InMemoryRotaStore()):
            daily_sync.main(["--skip-migrations"])
        migrate.assert_not_called()

    def test_failed_run_exits_one(self):
        broken = MagicMock()
        broken.list_user_ids.side_effect = UpstreamFailure("db down")
        with patch.object(daily_sync, "PostgresRotaStore", return_value=broken):
            assert daily_sync.main(["--skip-migrations", "--date", "2024-03-14"]) == 1

    def test_bad_date_is_rejected(self):
        with pytest.raises(SystemExit):
            daily_sync.main(["--date", "14/03/2024"])
