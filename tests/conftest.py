"""
Shared test configuration.

Adds both the project root and src/ to sys.path so that flat modules
(rota_service, rota_store, signals, ...) import with plain `import module`.
Also provides a few fixtures shared by the service, signal and API tests.
"""

import os
import sys
from datetime import date, datetime

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

if _src_dir not in sys.path:
    sys.path.insert(1, _src_dir)


@pytest.fixture
def store():
    from rota_store import InMemoryRotaStore

    return InMemoryRotaStore()


@pytest.fixture
def bus():
    from events import EventBus

    return EventBus()


@pytest.fixture
def service(store, bus):
    from rota_service import ShiftLookupService

    return ShiftLookupService(store, bus, today=date(2024, 3, 15))


@pytest.fixture
def make_sleep():
    from models import SleepSession

    counter = {"n": 0}

    def _make(start: datetime, end: datetime, type: str = "sleep", quality=None):
        counter["n"] += 1
        return SleepSession(id=f"s{counter['n']}", start_at=start, end_at=end, type=type, quality=quality)

    return _make
