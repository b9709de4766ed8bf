"""Startup migration and audit helpers for the rota store."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import psycopg2
from dotenv import load_dotenv

from db_utils import get_conn_str
from rota_schema import SCHEMA_TABLES, upgrade_database

log = logging.getLogger("pipeline.migrations")


def _resolve_conn_str(conn_str: str | None) -> str:
    load_dotenv()
    return (conn_str or get_conn_str()).strip()


def ensure_startup_schema(conn_str: str | None = None) -> None:
    """Run idempotent startup migrations before serving or scoring."""
    cs = _resolve_conn_str(conn_str)
    if not cs:
        raise RuntimeError("POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not configured")

    upgrade_database(cs)

    conn = psycopg2.connect(cs)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_body_clock_scores_date
                ON body_clock_scores(date DESC)
                """
            )
    finally:
        conn.close()

    log.info("Startup migrations completed.")


REQUIRED_COLUMNS: Dict[str, List[str]] = {
    "rota_windows": ["user_id", "pattern_id", "cycle", "anchor_date", "anchor_index", "start_date", "end_date"],
    "rota_day_overrides": ["user_id", "date", "label"],
    "sleep_sessions": ["id", "user_id", "start_at", "end_at", "type", "quality"],
    "body_clock_scores": ["user_id", "date", "score", "factors"],
}


def schema_audit(conn_str: str | None = None) -> Dict[str, Any]:
    """Return table/column audit data for runtime inspection."""
    cs = _resolve_conn_str(conn_str)
    if not cs:
        return {
            "ok": False,
            "error": "POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not configured",
            "tables": {},
            "missing_tables": [],
        }

    out: Dict[str, Any] = {"ok": True, "tables": {}, "missing_tables": []}
    conn = psycopg2.connect(cs)
    try:
        with conn.cursor() as cur:
            for table in SCHEMA_TABLES:
                cur.execute(
                    """
                    SELECT EXISTS (
                        SELECT 1
                        FROM information_schema.tables
                        WHERE table_schema = 'public' AND table_name = %s
                    )
                    """,
                    (table,),
                )
                exists = bool(cur.fetchone()[0])
                table_info: Dict[str, Any] = {"exists": exists, "columns": [], "missing_columns": []}
                if not exists:
                    out["missing_tables"].append(table)
                    out["tables"][table] = table_info
                    continue

                cur.execute(
                    """
                    SELECT column_name
                    FROM information_schema.columns
                    WHERE table_schema = 'public' AND table_name = %s
                    ORDER BY ordinal_position
                    """,
                    (table,),
                )
                cols = [r[0] for r in cur.fetchall()]
                table_info["columns"] = cols
                expected = REQUIRED_COLUMNS.get(table, [])
                table_info["missing_columns"] = [c for c in expected if c not in cols]
                out["tables"][table] = table_info

        out["ok"] = not out["missing_tables"] and not any(
            info.get("missing_columns") for info in out["tables"].values()
        )
        return out
    finally:
        conn.close()
