"""
Rota persistence.

RotaStore is the boundary the lookup service and the scoring pipeline talk
to. PostgresRotaStore is the production backend; InMemoryRotaStore backs
local development (ROTA_STORE=memory) and the test suite.

Every psycopg2 failure surfaces as UpstreamFailure. Connection attempts are
retried with exponential backoff on OperationalError before giving up.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from constants import DayLabel
from db_utils import get_conn_str
from errors import UpstreamFailure
from models import DayOverride, SleepSession
from rota.projector import CycleAlignment, RotaWindow, coerce_label

log = logging.getLogger("rota_store")


class RotaStore(ABC):
    # ─── Rota window ───────────────────────────────────────

    @abstractmethod
    def get_window(self, user_id: str) -> Optional[RotaWindow]:
        ...

    @abstractmethod
    def save_window(self, user_id: str, window: RotaWindow) -> None:
        """Replace the user's window (at most one per user)."""

    @abstractmethod
    def delete_window(self, user_id: str) -> bool:
        ...

    # ─── Day overrides ─────────────────────────────────────

    @abstractmethod
    def list_overrides(
        self, user_id: str, from_date: Optional[date] = None, to_date: Optional[date] = None
    ) -> Dict[date, DayLabel]:
        ...

    @abstractmethod
    def upsert_override(self, override: DayOverride) -> None:
        ...

    @abstractmethod
    def delete_override(self, user_id: str, day: date) -> bool:
        ...

    @abstractmethod
    def delete_overrides(self, user_id: str) -> int:
        ...

    # ─── Sleep sessions ────────────────────────────────────

    @abstractmethod
    def list_sleep_sessions(
        self, user_id: str, from_at: Optional[datetime] = None, to_at: Optional[datetime] = None
    ) -> List[SleepSession]:
        """Sessions overlapping [from_at, to_at], ordered by start time."""

    @abstractmethod
    def add_sleep_session(self, user_id: str, session: SleepSession) -> None:
        ...

    @abstractmethod
    def delete_sleep_session(self, user_id: str, session_id: str) -> bool:
        ...

    # ─── Daily scores / users ──────────────────────────────

    @abstractmethod
    def save_daily_score(self, user_id: str, day: date, record: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get_daily_score(self, user_id: str, day: date) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list_user_ids(self) -> List[str]:
        """Users with a saved rota or any logged sleep."""


# ─── Row conversion ────────────────────────────────────────


def _window_from_row(row: Dict[str, Any]) -> RotaWindow:
    alignment = CycleAlignment(
        cycle=tuple(coerce_label(v) for v in row["cycle"]),
        anchor_date=row["anchor_date"],
        anchor_index=int(row["anchor_index"]),
    )
    return RotaWindow(
        alignment=alignment,
        start_date=row["start_date"],
        end_date=row.get("end_date"),
        pattern_id=row.get("pattern_id") or "",
        shift_length=row.get("shift_length"),
    )


def _session_from_row(row: Dict[str, Any]) -> SleepSession:
    return SleepSession(
        id=str(row["id"]),
        start_at=row["start_at"],
        end_at=row["end_at"],
        type=row.get("type") or "sleep",
        quality=row.get("quality"),
    )


# ─── PostgreSQL ────────────────────────────────────────────


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=2, min=2, max=30),
    retry=retry_if_exception_type(psycopg2.OperationalError),
    reraise=True,
)
def _connect(conn_str: str):
    """Open a connection, retrying transient OperationalErrors (2s, 4s, ... max 30s)."""
    return psycopg2.connect(conn_str)


class PostgresRotaStore(RotaStore):
    def __init__(self, conn_str: Optional[str] = None):
        self.conn_str = conn_str or get_conn_str()
        if not self.conn_str:
            raise UpstreamFailure("POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not set")

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        try:
            conn = _connect(self.conn_str)
        except psycopg2.Error as e:
            log.error("Database connection failed: %s", e)
            raise UpstreamFailure(f"Database unavailable: {e}") from e
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    yield cur
        except psycopg2.Error as e:
            log.error("Database query failed: %s", e)
            raise UpstreamFailure(str(e)) from e
        finally:
            conn.close()

    def get_window(self, user_id: str) -> Optional[RotaWindow]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT pattern_id, shift_length, cycle, anchor_date, anchor_index,
                       start_date, end_date
                FROM rota_windows
                WHERE user_id = %s
                """,
                (user_id,),
            )
            row = cur.fetchone()
        return _window_from_row(dict(row)) if row else None

    def save_window(self, user_id: str, window: RotaWindow) -> None:
        alignment = window.alignment
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO rota_windows (
                    user_id, pattern_id, shift_length, cycle, anchor_date,
                    anchor_index, start_date, end_date, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP)
                ON CONFLICT (user_id) DO UPDATE SET
                    pattern_id = EXCLUDED.pattern_id,
                    shift_length = EXCLUDED.shift_length,
                    cycle = EXCLUDED.cycle,
                    anchor_date = EXCLUDED.anchor_date,
                    anchor_index = EXCLUDED.anchor_index,
                    start_date = EXCLUDED.start_date,
                    end_date = EXCLUDED.end_date,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    user_id,
                    window.pattern_id,
                    window.shift_length,
                    [label.value for label in alignment.cycle],
                    alignment.anchor_date,
                    alignment.anchor_index,
                    window.start_date,
                    window.end_date,
                ),
            )

    def delete_window(self, user_id: str) -> bool:
        with self._cursor() as cur:
            cur.execute("DELETE FROM rota_windows WHERE user_id = %s", (user_id,))
            return cur.rowcount > 0

    def list_overrides(self, user_id, from_date=None, to_date=None):
        query = "SELECT date, label FROM rota_day_overrides WHERE user_id = %s"
        params: List[Any] = [user_id]
        if from_date is not None:
            query += " AND date >= %s"
            params.append(from_date)
        if to_date is not None:
            query += " AND date <= %s"
            params.append(to_date)
        with self._cursor() as cur:
            cur.execute(query + " ORDER BY date", tuple(params))
            rows = cur.fetchall()
        return {row["date"]: coerce_label(row["label"]) for row in rows}

    def upsert_override(self, override: DayOverride) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO rota_day_overrides (user_id, date, label)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, date) DO UPDATE SET label = EXCLUDED.label
                """,
                (override.user_id, override.date, override.label.value),
            )

    def delete_override(self, user_id: str, day: date) -> bool:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM rota_day_overrides WHERE user_id = %s AND date = %s",
                (user_id, day),
            )
            return cur.rowcount > 0

    def delete_overrides(self, user_id: str) -> int:
        with self._cursor() as cur:
            cur.execute("DELETE FROM rota_day_overrides WHERE user_id = %s", (user_id,))
            return cur.rowcount

    def list_sleep_sessions(self, user_id, from_at=None, to_at=None):
        query = """
            SELECT id, start_at, end_at, type, quality
            FROM sleep_sessions
            WHERE user_id = %s
        """
        params: List[Any] = [user_id]
        if from_at is not None:
            query += " AND end_at >= %s"
            params.append(from_at)
        if to_at is not None:
            query += " AND start_at <= %s"
            params.append(to_at)
        with self._cursor() as cur:
            cur.execute(query + " ORDER BY start_at", tuple(params))
            rows = cur.fetchall()
        return [_session_from_row(dict(r)) for r in rows]

    def add_sleep_session(self, user_id: str, session: SleepSession) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO sleep_sessions (id, user_id, start_at, end_at, type, quality)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (session.id, user_id, session.start_at, session.end_at, session.type, session.quality),
            )

    def delete_sleep_session(self, user_id: str, session_id: str) -> bool:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM sleep_sessions WHERE user_id = %s AND id = %s",
                (user_id, session_id),
            )
            return cur.rowcount > 0

    def save_daily_score(self, user_id: str, day: date, record: Dict[str, Any]) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO body_clock_scores (
                    user_id, date, score, sleep_debt_hours, wake_consistency,
                    duration_consistency, factors, computed_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb, CURRENT_TIMESTAMP)
                ON CONFLICT (user_id, date) DO UPDATE SET
                    score = EXCLUDED.score,
                    sleep_debt_hours = EXCLUDED.sleep_debt_hours,
                    wake_consistency = EXCLUDED.wake_consistency,
                    duration_consistency = EXCLUDED.duration_consistency,
                    factors = EXCLUDED.factors,
                    computed_at = CURRENT_TIMESTAMP
                """,
                (
                    user_id,
                    day,
                    record.get("score"),
                    record.get("sleep_debt_hours"),
                    record.get("wake_consistency"),
                    record.get("duration_consistency"),
                    json.dumps(record.get("factors") or {}),
                ),
            )

    def get_daily_score(self, user_id: str, day: date) -> Optional[Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT score, sleep_debt_hours, wake_consistency, duration_consistency, factors
                FROM body_clock_scores
                WHERE user_id = %s AND date = %s
                """,
                (user_id, day),
            )
            row = cur.fetchone()
        if not row:
            return None
        out = dict(row)
        if out.get("sleep_debt_hours") is not None:
            out["sleep_debt_hours"] = float(out["sleep_debt_hours"])
        return out

    def list_user_ids(self) -> List[str]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT user_id FROM rota_windows
                UNION
                SELECT user_id FROM sleep_sessions
                ORDER BY user_id
                """
            )
            return [r["user_id"] for r in cur.fetchall()]


# ─── In-memory ─────────────────────────────────────────────


class InMemoryRotaStore(RotaStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._windows: Dict[str, RotaWindow] = {}
        self._overrides: Dict[str, Dict[date, DayLabel]] = {}
        self._sleep: Dict[str, Dict[str, SleepSession]] = {}
        self._scores: Dict[tuple, Dict[str, Any]] = {}

    def get_window(self, user_id):
        with self._lock:
            return self._windows.get(user_id)

    def save_window(self, user_id, window):
        with self._lock:
            self._windows[user_id] = window

    def delete_window(self, user_id):
        with self._lock:
            return self._windows.pop(user_id, None) is not None

    def list_overrides(self, user_id, from_date=None, to_date=None):
        with self._lock:
            items = dict(self._overrides.get(user_id, {}))
        return {
            d: label
            for d, label in sorted(items.items())
            if (from_date is None or d >= from_date) and (to_date is None or d <= to_date)
        }

    def upsert_override(self, override):
        with self._lock:
            self._overrides.setdefault(override.user_id, {})[override.date] = override.label

    def delete_override(self, user_id, day):
        with self._lock:
            return self._overrides.get(user_id, {}).pop(day, None) is not None

    def delete_overrides(self, user_id):
        with self._lock:
            return len(self._overrides.pop(user_id, {}))

    def list_sleep_sessions(self, user_id, from_at=None, to_at=None):
        with self._lock:
            sessions = list(self._sleep.get(user_id, {}).values())
        return sorted(
            (
                s for s in sessions
                if (from_at is None or s.end_at >= from_at) and (to_at is None or s.start_at <= to_at)
            ),
            key=lambda s: s.start_at,
        )

    def add_sleep_session(self, user_id, session):
        with self._lock:
            self._sleep.setdefault(user_id, {})[session.id] = session

    def delete_sleep_session(self, user_id, session_id):
        with self._lock:
            return self._sleep.get(user_id, {}).pop(session_id, None) is not None

    def save_daily_score(self, user_id, day, record):
        with self._lock:
            self._scores[(user_id, day)] = dict(record)

    def get_daily_score(self, user_id, day):
        with self._lock:
            record = self._scores.get((user_id, day))
        return dict(record) if record is not None else None

    def list_user_ids(self):
        with self._lock:
            users = set(self._windows) | {u for u, s in self._sleep.items() if s}
        return sorted(users)
