"""
Rota Database Schema
====================
Tables backing the rota store and the daily scoring pipeline.

Tables:
  - rota_windows          (one active rota per user)
  - rota_day_overrides    (manual single-day edits, PK user + date)
  - sleep_sessions        (logged sleeps and naps)
  - body_clock_scores     (precomputed daily score, PK user + date)

Safe to run multiple times (uses IF NOT EXISTS).
"""
import logging

import psycopg2
from dotenv import load_dotenv

from db_utils import get_conn_str

logger = logging.getLogger("rota_schema")

SCHEMA_TABLES = (
    "rota_windows",
    "rota_day_overrides",
    "sleep_sessions",
    "body_clock_scores",
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS rota_windows (
    user_id TEXT PRIMARY KEY,
    pattern_id TEXT NOT NULL,
    shift_length TEXT,
    cycle TEXT[] NOT NULL,          -- day labels, length 1..30
    anchor_date DATE NOT NULL,
    anchor_index INTEGER NOT NULL DEFAULT 0,
    start_date DATE NOT NULL,
    end_date DATE,                  -- exclusive, NULL = open ended
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    CHECK (anchor_index >= 0),
    CHECK (end_date IS NULL OR end_date > start_date)
);

CREATE TABLE IF NOT EXISTS rota_day_overrides (
    user_id TEXT NOT NULL,
    date DATE NOT NULL,
    label TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (user_id, date)
);

CREATE TABLE IF NOT EXISTS sleep_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    start_at TIMESTAMP NOT NULL,
    end_at TIMESTAMP NOT NULL,
    type TEXT NOT NULL DEFAULT 'sleep',   -- sleep | nap
    quality INTEGER,                      -- 1-5
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    CHECK (end_at > start_at)
);

CREATE INDEX IF NOT EXISTS idx_sleep_sessions_user_end
    ON sleep_sessions(user_id, end_at DESC);

CREATE TABLE IF NOT EXISTS body_clock_scores (
    user_id TEXT NOT NULL,
    date DATE NOT NULL,
    score INTEGER,
    sleep_debt_hours NUMERIC(5,2),
    wake_consistency INTEGER,
    duration_consistency INTEGER,
    factors JSONB,
    computed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (user_id, date)
);
"""


def upgrade_database(conn_str: str = None):
    """
    Apply the rota schema to the database.

    Parameters
    ----------
    conn_str : str, optional
        PostgreSQL connection string.  Falls back to
        POSTGRES_CONNECTION_STRING env var.
    """
    load_dotenv()
    conn_str = conn_str or get_conn_str()

    try:
        conn = psycopg2.connect(conn_str)
        conn.autocommit = True
        cur = conn.cursor()

        for statement in SCHEMA_SQL.split(';'):
            stmt = statement.strip()
            if stmt:
                cur.execute(stmt)

        cur.close()
        conn.close()

        logger.info("Database schema upgraded successfully!")
        logger.info("   Tables: %s", ", ".join(SCHEMA_TABLES))

    except Exception as e:
        logger.error("Schema upgrade failed: %s", e)
        raise


if __name__ == "__main__":
    upgrade_database()
