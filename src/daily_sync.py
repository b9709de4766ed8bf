"""
ShiftCoach Daily Sync
=====================
Standalone orchestrator.  Run once a day (after midnight) to:
  1. Apply idempotent schema migrations
  2. Score every user's body clock for the target day
  3. Persist one body_clock_scores row per user and a status file

Usage:
    python daily_sync.py                      # Score yesterday
    python daily_sync.py --date 2024-03-01    # Score a specific day
    python daily_sync.py --memory             # Dry run against an empty in-memory store
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, timedelta

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("daily_sync")

from pipeline.daily_scores import DailyScoresPipeline
from pipeline.migrations import ensure_startup_schema
from rota_store import InMemoryRotaStore, PostgresRotaStore


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from None


# ═══════════════════════════════════════════════════════════════
#  CLI
# ═══════════════════════════════════════════════════════════════

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="ShiftCoach daily body-clock precompute"
    )
    parser.add_argument("--date", type=_parse_day, default=None,
                        help="Day to score (default: yesterday)")
    parser.add_argument("--memory", action="store_true",
                        help="Use an in-memory store (no database)")
    parser.add_argument("--skip-migrations", action="store_true",
                        help="Do not run startup migrations")
    args = parser.parse_args(argv)

    day = args.date or (date.today() - timedelta(days=1))

    if args.memory:
        store = InMemoryRotaStore()
    else:
        if not args.skip_migrations:
            log.info("Running startup migrations...")
            ensure_startup_schema()
        store = PostgresRotaStore()

    pipeline = DailyScoresPipeline(store)
    status = pipeline.run(day)
    return 0 if DailyScoresPipeline.succeeded(status) else 1


if __name__ == "__main__":
    sys.exit(main())
