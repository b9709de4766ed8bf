"""
FastAPI backend for the ShiftCoach rota engine.

Route handlers are defined here; shared utilities live in routes/helpers.py.
The calling user is identified by the X-User-Id header.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import config
from errors import InvalidInput, NotFound, UpstreamFailure
from events import SLEEP_REFRESHED
from models import SleepSession
from pipeline.daily_scores import DailyScoresPipeline
from pipeline.migrations import schema_audit
from rota.catalog import classify_pattern, get_pattern, list_patterns
from rota.recognizer import recognize
from routes.helpers import (
    _degrade, _http_error, _parse_date, _parse_optional_date,
    _user_id, _window_payload, get_service, get_store,
)
from signals import (
    body_clock_signal, consistency_signal, energy_signal, load_sleep,
    meal_signal, shift_summary_signal, sleep_debt_signal, unavailable,
)

log = logging.getLogger("api")


# ─── App setup ─────────────────────────────────────────────

limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title="ShiftCoach Rota API", version="1.0.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.FRONTEND_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

_rate_limit = limiter.limit("30/minute")


def _now() -> datetime:
    return datetime.now()


class RecognizeRequest(BaseModel):
    sequence: List[str]


class RotaRequest(BaseModel):
    pattern_id: str = ""
    start_date: date
    anchor_index: int = 0
    end_date: Optional[date] = None
    cycle: Optional[List[str]] = None


class OverrideRequest(BaseModel):
    label: str


class SleepSessionRequest(BaseModel):
    start_at: datetime
    end_at: datetime
    type: str = "sleep"
    quality: Optional[int] = None


# ─── Service ───────────────────────────────────────────────

@app.get("/")
def root() -> Dict[str, Any]:
    return {"service": "shiftcoach-rota-api", "status": "ok"}


@app.get("/health-check")
def health_check() -> JSONResponse:
    try:
        get_store().list_user_ids()
        return JSONResponse({"status": "Online", "message": "Online"})
    except Exception as e:
        return JSONResponse(
            status_code=200,
            content={
                "status": "Waking up",
                "message": f"Service starting or DB unavailable: {e}",
            },
        )


# ─── Patterns ──────────────────────────────────────────────

@app.get("/api/v1/patterns")
def patterns(shift_length: str = Query(default="12h")) -> Dict[str, Any]:
    items = [p.to_dict() for p in list_patterns(shift_length)]
    return {"shift_length": shift_length, "data": items, "patterns": items}


@app.get("/api/v1/patterns/{pattern_id}")
def pattern_detail(pattern_id: str) -> Dict[str, Any]:
    try:
        pattern = get_pattern(pattern_id)
    except NotFound as e:
        raise _http_error(e)
    out = pattern.to_dict()
    out["classification"] = classify_pattern(pattern.cycle)
    return out


@app.post("/api/v1/patterns/recognize")
def recognize_pattern(body: RecognizeRequest) -> Dict[str, Any]:
    try:
        cycle = recognize(body.sequence)
    except InvalidInput as e:
        raise _http_error(e)
    if cycle is None:
        return {"cycle": None, "length": 0, "classification": None}
    return {
        "cycle": [d.value for d in cycle],
        "length": len(cycle),
        "classification": classify_pattern(cycle),
    }


# ─── Rota ──────────────────────────────────────────────────

@app.get("/api/v1/rota")
def rota_get(x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        return _window_payload(get_service().get_window(user_id))
    except Exception as e:
        raise _http_error(e)


@app.put("/api/v1/rota")
@_rate_limit
def rota_put(
    body: RotaRequest,
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        window = get_service().set_pattern(
            user_id,
            body.pattern_id,
            body.start_date,
            body.anchor_index,
            end_date=body.end_date,
            cycle=body.cycle,
        )
        return _window_payload(window)
    except Exception as e:
        raise _http_error(e)


@app.post("/api/v1/rota/clear")
@_rate_limit
def rota_clear(request: Request, x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        out = get_service().clear_rota(user_id)
        return {"status": "cleared", **out}
    except Exception as e:
        raise _http_error(e)


@app.get("/api/v1/rota/range")
def rota_range(
    from_: str = Query(alias="from"),
    to: str = Query(),
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        start, end = _parse_date(from_, "from"), _parse_date(to, "to")
        if (end - start).days > 366:
            raise InvalidInput("Range is limited to 366 days")
        items = [d.to_dict() for d in get_service().resolve_range(user_id, start, end)]
        return {"data": items, "days": items}
    except Exception as e:
        raise _http_error(e)


@app.get("/api/v1/rota/month")
def rota_month(
    year: int = Query(ge=1970, le=2100),
    month: int = Query(ge=1, le=12),
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        weeks = get_service().month(user_id, year, month)
        return {"year": year, "month": month, "weeks": weeks}
    except Exception as e:
        raise _http_error(e)


@app.put("/api/v1/rota/overrides/{day}")
@_rate_limit
def override_put(
    day: str,
    body: OverrideRequest,
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        override = get_service().set_override(user_id, _parse_date(day, "date"), body.label)
        return {"date": override.date.isoformat(), "label": override.label.value}
    except Exception as e:
        raise _http_error(e)


@app.delete("/api/v1/rota/overrides/{day}")
@_rate_limit
def override_delete(day: str, request: Request, x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        parsed = _parse_date(day, "date")
        if not get_service().remove_override(user_id, parsed):
            raise NotFound(f"No override on {parsed.isoformat()}")
        return {"status": "deleted", "date": parsed.isoformat()}
    except Exception as e:
        raise _http_error(e)


# ─── Sleep log ─────────────────────────────────────────────

@app.get("/api/v1/sleep/sessions")
def sleep_sessions(
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        start = _parse_optional_date(from_, "from")
        end = _parse_optional_date(to, "to")
        sessions = get_store().list_sleep_sessions(
            user_id,
            datetime.combine(start, datetime.min.time()) if start else None,
            datetime.combine(end, datetime.max.time()) if end else None,
        )
        items = [s.to_dict() for s in sessions]
        return {"data": items, "sessions": items}
    except Exception as e:
        raise _http_error(e)


@app.post("/api/v1/sleep/sessions")
@_rate_limit
def sleep_session_add(
    body: SleepSessionRequest,
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        session = SleepSession(
            id=str(uuid.uuid4()),
            start_at=body.start_at,
            end_at=body.end_at,
            type=body.type,
            quality=body.quality,
        )
        service = get_service()
        service.store.add_sleep_session(user_id, session)
        service.events.publish(SLEEP_REFRESHED, {"user_id": user_id, "session_id": session.id})
        return session.to_dict()
    except Exception as e:
        raise _http_error(e)


@app.delete("/api/v1/sleep/sessions/{session_id}")
@_rate_limit
def sleep_session_delete(
    session_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    try:
        service = get_service()
        if not service.store.delete_sleep_session(user_id, session_id):
            raise NotFound(f"No sleep session {session_id}")
        service.events.publish(SLEEP_REFRESHED, {"user_id": user_id, "session_id": session_id})
        return {"status": "deleted", "id": session_id}
    except Exception as e:
        raise _http_error(e)


# ─── Signals ───────────────────────────────────────────────
# Each signal degrades on its own: a failed sleep read marks that signal
# unavailable instead of failing the request.

def _sleep_or_none(service, user_id: str, now: datetime):
    try:
        return load_sleep(service, user_id, now)
    except UpstreamFailure as e:
        log.warning("Sleep log unavailable for user %s: %s", user_id, e)
        return None


@app.get("/api/v1/signals/energy")
def signal_energy(x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    service, now = get_service(), _now()
    try:
        sessions = _sleep_or_none(service, user_id, now)
        out = _degrade("energy", lambda: energy_signal(service, user_id, now, sessions or []))
        if out.get("available"):
            out["sleep_available"] = sessions is not None
        return out
    except Exception as e:
        raise _http_error(e)


@app.get("/api/v1/signals/sleep-debt")
def signal_sleep_debt(x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    service, now = get_service(), _now()
    sessions = _sleep_or_none(service, user_id, now)
    if sessions is None:
        return unavailable("sleep data unavailable")
    return _degrade("sleep-debt", lambda: sleep_debt_signal(sessions, now))


@app.get("/api/v1/signals/consistency")
def signal_consistency(x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    service, now = get_service(), _now()
    sessions = _sleep_or_none(service, user_id, now)
    if sessions is None:
        return unavailable("sleep data unavailable")
    return _degrade("consistency", lambda: consistency_signal(sessions))


@app.get("/api/v1/signals/body-clock")
def signal_body_clock(x_user_id: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    service, now = get_service(), _now()
    try:
        sessions = _sleep_or_none(service, user_id, now)
        if sessions is None:
            return unavailable("sleep data unavailable")
        out = _degrade("body-clock", lambda: body_clock_signal(service, user_id, now, sessions))
        if out.get("score") is not None:
            out["available"] = True
        return out
    except Exception as e:
        raise _http_error(e)


@app.get("/api/v1/signals/meal-timing")
def signal_meal_timing(
    calories: float = Query(default=2000, ge=0, le=10000),
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    service, now = get_service(), _now()
    try:
        sessions = _sleep_or_none(service, user_id, now)
        return _degrade("meal-timing", lambda: meal_signal(service, user_id, now, sessions or [], calories))
    except Exception as e:
        raise _http_error(e)


@app.get("/api/v1/signals/shift-summary")
def signal_shift_summary(
    days: int = Query(default=14, ge=1, le=90),
    x_user_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    user_id = _user_id(x_user_id)
    service, now = get_service(), _now()
    try:
        sessions = _sleep_or_none(service, user_id, now)
        out = _degrade(
            "shift-summary",
            lambda: shift_summary_signal(service, user_id, now.date(), sessions or [], days=days),
        )
        if out.get("available"):
            out["sleep_available"] = sessions is not None
        return out
    except Exception as e:
        raise _http_error(e)


# ─── Admin ─────────────────────────────────────────────────

@app.post("/api/v1/admin/precompute")
def admin_precompute(
    day: Optional[str] = Query(default=None, alias="date"),
    authorization: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    if not config.CRON_SECRET:
        raise HTTPException(status_code=503, detail="CRON_SECRET is not configured")
    if (authorization or "") != f"Bearer {config.CRON_SECRET}":
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        target = _parse_optional_date(day, "date") or _now().date()
        pipeline = DailyScoresPipeline(get_store())
        return pipeline.run(target)
    except Exception as e:
        raise _http_error(e)


@app.get("/api/v1/admin/migration-audit")
def migration_audit() -> Dict[str, Any]:
    try:
        return schema_audit()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
