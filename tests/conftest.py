from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from bidboard.cache import ARTIFACTS, BID_RECORDS, PRICE_ITEMS, LocalCache, MemoryStore
from bidboard.errors import RemoteError
from bidboard.events import EventBus, EventRecorder
from bidboard.models import PriceItem
from bidboard.remote import InMemoryCatalog

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def price_cache(memory_store: MemoryStore) -> LocalCache:
    return LocalCache(memory_store, PRICE_ITEMS)


@pytest.fixture
def artifact_cache(memory_store: MemoryStore) -> LocalCache:
    return LocalCache(memory_store, ARTIFACTS)


@pytest.fixture
def bid_cache(memory_store: MemoryStore) -> LocalCache:
    return LocalCache(memory_store, BID_RECORDS)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    ticks = itertools.count()

    def _now() -> datetime:
        return FIXED_NOW + timedelta(minutes=next(ticks))

    return _now


@pytest.fixture
def id_factory() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"local-{next(counter)}"


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def events(recorder: EventRecorder) -> EventBus:
    bus = EventBus()
    bus.subscribe(recorder)
    return bus


class FlakyCatalog(InMemoryCatalog):
    """In-memory catalog whose operations can be told to fail."""

    def __init__(self, items: Optional[List[PriceItem]] = None) -> None:
        super().__init__(items)
        self.fail_on: Dict[str, int] = {}
        self.calls: List[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        remaining = self.fail_on.get(operation, 0)
        if remaining:
            self.fail_on[operation] = remaining - 1
            raise RemoteError(f"{operation} unavailable", status_code=503)

    async def list(self) -> List[PriceItem]:
        self._maybe_fail("list")
        return await super().list()

    async def create(self, item: PriceItem) -> PriceItem:
        self._maybe_fail("create")
        return await super().create(item)

    async def update(self, item_id: str, item: PriceItem) -> PriceItem:
        self._maybe_fail("update")
        return await super().update(item_id, item)

    async def delete(self, item_id: str) -> None:
        self._maybe_fail("delete")
        await super().delete(item_id)


@pytest.fixture
def catalog_factory() -> Callable[..., FlakyCatalog]:
    def _create(*items: PriceItem) -> FlakyCatalog:
        return FlakyCatalog(list(items))

    return _create
