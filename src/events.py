"""
In-process publish/subscribe bus.

Views that show today's shift, the calendar or any signal subscribe to the
topics below and refresh when a rota is saved or cleared. A failing handler
is logged and never blocks delivery to the remaining subscribers.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

log = logging.getLogger("events")

ROTA_SAVED = "rota-saved"
ROTA_CLEARED = "rota-cleared"
SLEEP_REFRESHED = "sleep-refreshed"

TOPICS = (ROTA_SAVED, ROTA_CLEARED, SLEEP_REFRESHED)

Handler = Callable[[Dict[str, Any]], None]


class EventBus:
    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it again."""
        with self._lock:
            self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers.get(topic, []):
                    self._handlers[topic].remove(handler)

        return unsubscribe

    def publish(self, topic: str, payload: Dict[str, Any] | None = None) -> int:
        """Deliver payload to every subscriber; returns how many succeeded."""
        with self._lock:
            handlers = list(self._handlers.get(topic, []))

        delivered = 0
        for handler in handlers:
            try:
                handler(dict(payload or {}))
                delivered += 1
            except Exception as e:
                log.warning("Handler %r failed on %s: %s", handler, topic, e)
        log.debug("Published %s to %d/%d handlers", topic, delivered, len(handlers))
        return delivered
