"""Outward event surface for created/updated/deleted and sync outcomes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List

LOGGER = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
SYNC_COMPLETE = "sync-complete"
SYNC_FAILED = "sync-failed"
LOAD_FAILED = "load-failed"
EVENT_KINDS = (CREATED, UPDATED, DELETED, SYNC_COMPLETE, SYNC_FAILED, LOAD_FAILED)

_FAILURE_KINDS = {SYNC_FAILED, LOAD_FAILED}


@dataclass(frozen=True)
class Event:
    kind: str
    detail: Dict[str, object] = field(default_factory=dict)


Listener = Callable[[Event], None]


class EventBus:
    """Fans events out to subscribers in subscription order."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, kind: str, **detail: object) -> Event:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind {kind!r}")
        event = Event(kind=kind, detail=dict(detail))
        if kind in _FAILURE_KINDS:
            LOGGER.warning("%s: %s", kind, event.detail)
        else:
            LOGGER.info("%s: %s", kind, event.detail)
        for listener in list(self._listeners):
            listener(event)
        return event


class EventRecorder:
    """Listener that keeps every event it sees; handy for CLI summaries and tests."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [event.kind for event in self.events]


__all__ = [
    "CREATED",
    "UPDATED",
    "DELETED",
    "SYNC_COMPLETE",
    "SYNC_FAILED",
    "LOAD_FAILED",
    "EVENT_KINDS",
    "Event",
    "EventBus",
    "EventRecorder",
]
