"""Typed event channels with synchronous, ordered delivery.

Listeners run inline in registration order. A listener that raises
propagates to the emitter: callers emit outside their own error handling so
a listener fault is never mistaken for an extraction fault.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Event(str, Enum):
    DATA = "scraper:data"
    METRICS = "scraper:metrics"
    INVALID_SESSION = "scraper:invalid-session"
    ERROR = "scraper:error"
    END = "scraper:end"


class EventSink:
    """Callback registry keyed by :class:`Event`.

    Usage::

        sink = EventSink()
        sink.on(Event.DATA, lambda record: print(record.title))
        sink.emit(Event.DATA, record)
    """

    def __init__(self) -> None:
        self._listeners: dict[Event, list[Listener]] = {event: [] for event in Event}

    def on(self, event: Event, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def off(self, event: Event, listener: Listener) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            logger.debug("Listener not registered for %s", event.value)

    def listener_count(self, event: Event) -> int:
        return len(self._listeners[event])

    def emit(self, event: Event, *args: Any) -> None:
        if not self.listener_count(event):
            logger.debug("No listeners for %s, dropped", event.value)
            return
        for listener in list(self._listeners[event]):
            listener(*args)
