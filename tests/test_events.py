from __future__ import annotations

import pytest

from bidboard.events import CREATED, SYNC_FAILED, EventBus, EventRecorder


def test_listeners_receive_events_in_order() -> None:
    bus = EventBus()
    first, second = EventRecorder(), EventRecorder()
    bus.subscribe(first)
    unsubscribe = bus.subscribe(second)

    bus.emit(CREATED, table="price-items", id="a")
    unsubscribe()
    bus.emit(SYNC_FAILED, stage="list")

    assert first.kinds() == ["created", "sync-failed"]
    assert second.kinds() == ["created"]
    assert first.events[0].detail == {"table": "price-items", "id": "a"}


def test_unknown_kind_rejected() -> None:
    with pytest.raises(ValueError):
        EventBus().emit("exploded")


def test_failure_events_logged_as_warnings(caplog: pytest.LogCaptureFixture) -> None:
    EventBus().emit(SYNC_FAILED, stage="create")
    assert caplog.records[-1].levelname == "WARNING"
