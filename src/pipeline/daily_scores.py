"""Nightly body-clock precompute with explicit health signaling."""

from __future__ import annotations

import json
import logging
import os
import traceback
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd

import config
from events import EventBus
from rota_service import ShiftLookupService
from rota_store import RotaStore
from signals import daily_record

log = logging.getLogger("daily_scores")


class DailyScoresPipeline:
    """Scores every known user for one day and persists one row per user."""

    def __init__(self, store: RotaStore, events: Optional[EventBus] = None):
        self.store = store
        self.service = ShiftLookupService(store, events)

    def run(self, day: Optional[date] = None) -> Dict[str, Any]:
        """Score all users for `day` and return machine-readable status."""
        day = day or date.today()
        pipeline_status: Dict[str, Any] = {
            "run_date": day.isoformat(),
            "run_started_at": datetime.utcnow().isoformat() + "Z",
            "users_ok": False,
            "users_total": 0,
            "users_scored": 0,
            "users_unscored": 0,
            "failed_users": [],
            "degraded_reasons": [],
        }

        log.info("=" * 60)
        log.info("  DAILY SCORE PRECOMPUTE STARTED")
        log.info("  Date: %s", day)
        log.info("=" * 60)

        records: List[Dict[str, Any]] = []
        try:
            log.info("Step 1/2: Listing users...")
            user_ids = self.store.list_user_ids()
            pipeline_status["users_total"] = len(user_ids)
            pipeline_status["users_ok"] = True

            log.info("Step 2/2: Scoring %d users...", len(user_ids))
            for user_id in user_ids:
                try:
                    record = daily_record(self.service, user_id, day)
                    self.store.save_daily_score(user_id, day, record)
                    records.append({"user_id": user_id, **record})
                except Exception as e:
                    log.warning("Scoring failed for user %s: %s", user_id, e)
                    pipeline_status["failed_users"].append(user_id)

            if pipeline_status["failed_users"]:
                pipeline_status["degraded_reasons"].append("user_scoring_failed")

        except Exception as e:
            pipeline_status["users_ok"] = False
            pipeline_status["degraded_reasons"].append("pipeline_exception")
            log.error("Pipeline failed: %s", e)
            traceback.print_exc()
        finally:
            frame = pd.DataFrame(records, columns=["user_id", "score", "sleep_debt_hours"])
            pipeline_status["users_scored"] = int(frame["score"].notna().sum())
            pipeline_status["users_unscored"] = int(frame["score"].isna().sum())
            mean_score = frame["score"].dropna().astype(float).mean()
            pipeline_status["mean_score"] = None if pd.isna(mean_score) else round(float(mean_score), 1)
            pipeline_status["run_finished_at"] = datetime.utcnow().isoformat() + "Z"
            pipeline_status["overall_status"] = self._overall_status(pipeline_status)
            self._write_pipeline_status_file(pipeline_status)
            self._print_summary(pipeline_status)
            log.info("=" * 60)
            log.info("  DAILY PRECOMPUTE COMPLETE (status=%s)", pipeline_status["overall_status"])
            log.info("=" * 60)

        return pipeline_status

    @staticmethod
    def succeeded(status: Dict[str, Any]) -> bool:
        if config.STRICT_PIPELINE_HEALTH:
            return status.get("overall_status") == "success"
        return status.get("overall_status") != "failed"

    @staticmethod
    def _overall_status(status: Dict[str, Any]) -> str:
        if not status.get("users_ok", False):
            return "failed"
        total = status.get("users_total", 0)
        failed = len(status.get("failed_users") or [])
        if total and failed >= total:
            return "failed"
        if failed:
            return "degraded"
        return "success"

    @staticmethod
    def _write_pipeline_status_file(status: Dict[str, Any]) -> None:
        default_path = f"pipeline_status_{status.get('run_date')}.json"
        path = config.PIPELINE_STATUS_PATH or default_path
        try:
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(status, fh, indent=2, ensure_ascii=False)
            log.info("Pipeline status written to %s", path)
        except OSError as e:
            log.warning("Failed to write pipeline status file: %s", e)

    @staticmethod
    def _print_summary(status: Dict[str, Any]) -> None:
        log.info("PRECOMPUTE SUMMARY:")
        log.info("  Users:     %d", status.get("users_total", 0))
        log.info("  Scored:    %d", status.get("users_scored", 0))
        log.info("  Unscored:  %d (no main sleep)", status.get("users_unscored", 0))
        failed = status.get("failed_users") or []
        if failed:
            log.info("  Failed:    %s", ", ".join(failed))
        log.info("  Mean score: %s", status.get("mean_score"))
        log.info("  Overall status: %s", status.get("overall_status"))
