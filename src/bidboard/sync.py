"""Reconcile the local price-item snapshot with the remote catalog."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from .cache import LocalCache
from .config import RetryPolicy
from .errors import BidboardError, RemoteError, StorageError
from .events import SYNC_COMPLETE, SYNC_FAILED, EventBus
from .models import PriceItem
from .remote import RemoteCatalog
from .retry import CircuitBreaker, execute_with_retry

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

IDLE = "idle"
SYNCING = "syncing"

SUCCESS = "success"
FAILURE = "failure"


@dataclass
class SyncResult:
    success: bool
    created: int = 0
    updated: int = 0
    records: List[PriceItem] = field(default_factory=list)
    error: Optional[str] = None
    stage: Optional[str] = None

    @property
    def partial(self) -> bool:
        """True when some remote writes landed before the pass aborted."""
        return not self.success and (self.created + self.updated) > 0


class SyncReconciler:
    """Runs reconciliation passes against one cache.

    A pass pushes every local record to the remote catalog (create when the
    id is unknown remotely, update otherwise) and, only when every request
    succeeded, replaces the cache with a fresh remote listing. Any failure
    leaves the cache exactly as it was. Records that exist only remotely are
    never deleted by a pass.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteCatalog,
        *,
        events: Optional[EventBus] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.cache = cache
        self.remote = remote
        self.events = events or EventBus()
        self.policy = policy or RetryPolicy()
        self.last_outcome: Optional[str] = None
        self.last_result: Optional[SyncResult] = None
        self._breaker = CircuitBreaker(self.policy.circuit_breaker_failures)
        # Server ids handed out for local records whose pass later failed.
        self._assigned_ids: Dict[str, str] = {}

    @property
    def state(self) -> str:
        return SYNCING if self.cache.syncing else IDLE

    @property
    def assigned_ids(self) -> Dict[str, str]:
        return dict(self._assigned_ids)

    async def sync(self) -> SyncResult:
        """Run one pass. Raises ``SyncInProgressError`` if a pass is already running."""

        with self.cache.sync_guard():
            LOGGER.info("Starting %s sync pass", self.cache.table)
            # Breaker state is scoped to one pass.
            self._breaker = CircuitBreaker(self.policy.circuit_breaker_failures)
            result = await self._run_pass()
        self.last_result = result
        self.last_outcome = SUCCESS if result.success else FAILURE
        if result.success:
            self.events.emit(
                SYNC_COMPLETE,
                table=self.cache.table,
                created=result.created,
                updated=result.updated,
                total=len(result.records),
            )
        else:
            self.events.emit(
                SYNC_FAILED,
                table=self.cache.table,
                stage=result.stage,
                created=result.created,
                updated=result.updated,
                partial=result.partial,
                error=result.error,
            )
        return result

    async def _run_pass(self) -> SyncResult:
        local = [PriceItem.from_record(raw) for raw in self.cache.read()]
        result = SyncResult(success=False)

        try:
            remote_items = await self._call(self.remote.list, "remote listing")
        except RemoteError as exc:
            return self._fail(result, "list", exc)

        to_create, to_update = self.partition(local, {item.id for item in remote_items})
        LOGGER.debug("Sync plan: %d create(s), %d update(s)", len(to_create), len(to_update))

        for item in to_create:
            try:
                created = await self._call(
                    lambda item=item: self.remote.create(item),
                    f"create {item.name!r}",
                    idempotent=False,
                )
            except RemoteError as exc:
                return self._fail(result, "create", exc)
            self._assigned_ids[item.id] = created.id
            result.created += 1

        for item in to_update:
            try:
                await self._call(
                    lambda item=item: self.remote.update(item.id, item), f"update {item.id}"
                )
            except RemoteError as exc:
                return self._fail(result, "update", exc)
            result.updated += 1

        try:
            refreshed = await self._call(self.remote.list, "remote refresh")
        except RemoteError as exc:
            return self._fail(result, "refresh", exc)

        try:
            self.cache.write([item.to_record() for item in refreshed])
        except StorageError as exc:
            return self._fail(result, "persist", exc)
        self._assigned_ids.clear()
        result.success = True
        result.records = list(refreshed)
        LOGGER.info(
            "Sync complete: created %d, updated %d, %d record(s) cached",
            result.created,
            result.updated,
            len(refreshed),
        )
        return result

    def partition(
        self, local: List[PriceItem], remote_ids: set
    ) -> Tuple[List[PriceItem], List[PriceItem]]:
        """Split ``local`` into records to create and records to update.

        Local records that already received a server id in an earlier failed
        pass are rewritten to that id so they are updated, not created twice.
        """

        to_create: List[PriceItem] = []
        to_update: List[PriceItem] = []
        for item in local:
            assigned = self._assigned_ids.get(item.id)
            if assigned and assigned in remote_ids:
                item = replace(item, id=assigned)
            if item.id in remote_ids:
                to_update.append(item)
            else:
                to_create.append(item)
        return to_create, to_update

    def forget(self, local_id: str) -> Optional[str]:
        """Drop and return the server id assigned to ``local_id`` in a failed pass."""
        return self._assigned_ids.pop(local_id, None)

    async def _call(
        self, action: Callable[[], Awaitable[T]], description: str, *, idempotent: bool = True
    ) -> T:
        # A lost create response must not be replayed into a second record.
        policy = self.policy if idempotent else replace(self.policy, retries=0)
        return await execute_with_retry(
            action,
            policy=policy,
            description=description,
            logger=LOGGER,
            breaker=self._breaker,
        )

    def _fail(self, result: SyncResult, stage: str, exc: BidboardError) -> SyncResult:
        LOGGER.error("Sync aborted during %s: %s", stage, exc)
        result.success = False
        result.stage = stage
        result.error = str(exc)
        return result


__all__ = ["SyncReconciler", "SyncResult", "IDLE", "SYNCING", "SUCCESS", "FAILURE"]
