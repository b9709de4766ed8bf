"""Configuration loaded from .env"""

import os

from dotenv import load_dotenv

from constants import BIO_NIGHT_END_HOUR, BIO_NIGHT_START_HOUR, SLEEP_TARGET_HOURS

load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _hour_env(name: str, default: int) -> int:
    value = int(_float_env(name, default))
    return value % 24


# Sleep / circadian
SLEEP_TARGET = _float_env("SLEEP_TARGET_HOURS", SLEEP_TARGET_HOURS)
BIO_NIGHT_START = _hour_env("BIO_NIGHT_START_HOUR", BIO_NIGHT_START_HOUR)
BIO_NIGHT_END = _hour_env("BIO_NIGHT_END_HOUR", BIO_NIGHT_END_HOUR)

# Storage backend: "postgres" or "memory"
ROTA_STORE = os.getenv("ROTA_STORE", "postgres").strip().lower()

# HTTP
FRONTEND_ORIGINS = [
    o.strip() for o in os.getenv("FRONTEND_ORIGINS", "").split(",") if o.strip()
] or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

# Batch scoring
CRON_SECRET = os.getenv("CRON_SECRET", "")
PIPELINE_STATUS_PATH = os.getenv("PIPELINE_STATUS_PATH", "")
STRICT_PIPELINE_HEALTH = os.getenv("STRICT_PIPELINE_HEALTH", "0").strip() == "1"
