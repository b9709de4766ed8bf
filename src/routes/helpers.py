"""
Shared helpers for API routes.
Contains: store wiring, request parsing, error mapping, payload shaping.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv
from fastapi import HTTPException

import config
from errors import InvalidInput, NotFound, ShiftCoachError, UpstreamFailure
from events import EventBus
from rota.projector import RotaWindow
from rota_service import ShiftLookupService
from rota_store import InMemoryRotaStore, PostgresRotaStore, RotaStore
from signals import unavailable

load_dotenv()

log = logging.getLogger("api")


# ─── Store / service wiring ────────────────────────────────

@lru_cache(maxsize=1)
def get_store() -> RotaStore:
    if config.ROTA_STORE == "memory":
        log.info("Using in-memory rota store")
        return InMemoryRotaStore()
    return PostgresRotaStore()


@lru_cache(maxsize=1)
def get_events() -> EventBus:
    return EventBus()


def get_service() -> ShiftLookupService:
    return ShiftLookupService(get_store(), get_events())


# ─── Request parsing ───────────────────────────────────────

def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a YYYY-MM-DD date, got {value!r}") from None


def _parse_optional_date(value: Any, field: str) -> Optional[date]:
    if value in (None, ""):
        return None
    return _parse_date(value, field)


def _user_id(value: Optional[str]) -> str:
    user_id = (value or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return user_id


# ─── Error mapping ─────────────────────────────────────────

def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, InvalidInput):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, UpstreamFailure):
        return HTTPException(status_code=503, detail=str(e))
    if not isinstance(e, ShiftCoachError):
        log.exception("Unhandled error: %s", e)
    return HTTPException(status_code=500, detail=str(e))


def _degrade(name: str, build: Callable[[], Optional[Dict[str, Any]]]) -> Dict[str, Any]:
    """Run a signal builder; a storage failure becomes an unavailable signal."""
    try:
        out = build()
    except UpstreamFailure as e:
        log.warning("Signal %s unavailable: %s", name, e)
        return unavailable("sleep data unavailable")
    if out is None:
        return unavailable("not enough data")
    return out


# ─── Payload shaping ───────────────────────────────────────

def _window_payload(window: Optional[RotaWindow]) -> Dict[str, Any]:
    if window is None:
        return {"rota": None}
    payload = window.to_dict()
    out: Dict[str, Any] = {"rota": payload}
    out.update(payload)
    return out
