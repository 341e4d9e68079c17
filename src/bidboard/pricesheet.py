"""Price sheet management: validated edits, deletes, loading and sync."""
from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .cache import LocalCache
from .config import RetryPolicy
from .errors import NotFoundError, RemoteError, ValidationError
from .events import CREATED, DELETED, LOAD_FAILED, UPDATED, EventBus
from .models import PriceItem
from .remote import RemoteCatalog
from .sync import SyncReconciler, SyncResult

LOGGER = logging.getLogger(__name__)

VIEWING = "viewing"
EDITING = "editing"
COMMITTING = "committing"

LIST_SEPARATOR = " - $"


def validate_fields(name: str, price: str | float | int) -> tuple[str, float]:
    """Return the trimmed name and parsed price or raise :class:`ValidationError`."""

    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required")
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        value = float(price)
    else:
        text = str(price or "").strip()
        if not text:
            raise ValidationError("Price is required")
        try:
            value = float(text)
        except ValueError as exc:
            raise ValidationError("Price must be a valid positive number") from exc
    if not math.isfinite(value) or value < 0:
        raise ValidationError("Price must be a valid positive number")
    return cleaned, value


def format_price(price: float) -> str:
    return f"${price:,.2f}"


def parse_list_text(text: str, id_factory: Callable[[], str] | None = None) -> List[PriceItem]:
    """Parse ``"Name - $1,234.50"`` lines into price items.

    Unparseable prices become ``0``; a line without a name gets ``"Item N"``.
    """

    make_id = id_factory or (lambda: uuid.uuid4().hex)
    items: List[PriceItem] = []
    lines = [line for line in text.splitlines() if line.strip()]
    for index, line in enumerate(lines, start=1):
        name_part, _sep, price_part = line.partition(LIST_SEPARATOR)
        name = name_part.strip() or f"Item {index}"
        try:
            price = float(price_part.replace(",", "").strip() or 0)
        except ValueError:
            price = 0.0
        if not math.isfinite(price) or price < 0:
            price = 0.0
        items.append(PriceItem(id=make_id(), name=name, price=price))
    return items


def generate_list_text(items: Sequence[PriceItem]) -> str:
    return "\n".join(f"{item.name}{LIST_SEPARATOR}{item.price:,.2f}" for item in items)


@dataclass
class EditSession:
    item_id: str
    name: str
    price: str
    category: str
    is_new: bool


@dataclass(frozen=True)
class DeleteOutcome:
    item: PriceItem
    local_only: bool = False
    error: Optional[str] = None


class PriceSheet:
    """Owns the price-item table for one session.

    Edits follow ``viewing -> editing -> committing -> viewing``. Starting a
    new edit while one is open commits the open one first; if that commit
    fails validation the open edit stays as it was and the switch is refused.
    Mutations are refused while a sync pass holds the cache.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: Optional[RemoteCatalog] = None,
        *,
        events: Optional[EventBus] = None,
        policy: Optional[RetryPolicy] = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.cache = cache
        self.remote = remote
        self.events = events or EventBus()
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._items: List[PriceItem] = [PriceItem.from_record(raw) for raw in cache.read()]
        self._session: Optional[EditSession] = None
        self._mode = VIEWING
        self.reconciler: Optional[SyncReconciler] = None
        if remote is not None:
            self.reconciler = SyncReconciler(cache, remote, events=self.events, policy=policy)

    @property
    def items(self) -> List[PriceItem]:
        return list(self._items)

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def session(self) -> Optional[EditSession]:
        return self._session

    def get(self, item_id: str) -> PriceItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"Price item {item_id} not found")

    def _index(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        raise NotFoundError(f"Price item {item_id} not found")

    def _persist(self, items: List[PriceItem]) -> None:
        # Memory changes only after the snapshot write succeeds.
        self.cache.write([item.to_record() for item in items])
        self._items = items

    # -- edit workflow -------------------------------------------------

    def begin_edit(self, item_id: str) -> EditSession:
        self.cache.ensure_idle("edit")
        item = self.get(item_id)
        self._autosave()
        self._session = EditSession(
            item_id=item.id,
            name=item.name,
            price=str(item.price),
            category=item.category,
            is_new=False,
        )
        self._mode = EDITING
        return self._session

    def add_item(self) -> EditSession:
        """Open an edit for a new row; nothing is stored until it commits."""
        self.cache.ensure_idle("add an item")
        self._autosave()
        self._session = EditSession(
            item_id=self._id_factory(), name="", price="", category="", is_new=True
        )
        self._mode = EDITING
        return self._session

    def update_draft(
        self,
        *,
        name: Optional[str] = None,
        price: Optional[str | float] = None,
        category: Optional[str] = None,
    ) -> EditSession:
        session = self._require_session()
        if name is not None:
            session.name = name
        if price is not None:
            session.price = str(price)
        if category is not None:
            session.category = category
        return session

    def cancel_edit(self) -> None:
        self._session = None
        self._mode = VIEWING

    def commit_edit(self) -> PriceItem:
        """Validate the open edit and apply it to the local table only."""
        self.cache.ensure_idle("commit an edit")
        session = self._require_session()
        name, price = validate_fields(session.name, session.price)
        item = PriceItem(id=session.item_id, name=name, price=price, category=session.category.strip())
        self._mode = COMMITTING
        try:
            self._apply(item, session.is_new)
        except Exception:
            self._mode = EDITING
            raise
        self._session = None
        self._mode = VIEWING
        return item

    async def save_edit(self) -> PriceItem:
        """Validate the open edit, push it to the remote catalog, then store the server's version.

        A remote failure keeps the edit open and local state untouched.
        """

        self.cache.ensure_idle("save an edit")
        session = self._require_session()
        name, price = validate_fields(session.name, session.price)
        draft = PriceItem(id=session.item_id, name=name, price=price, category=session.category.strip())
        if self.remote is None:
            return self.commit_edit()

        self._mode = COMMITTING
        try:
            if session.is_new:
                saved = await self.remote.create(draft)
            else:
                saved = await self.remote.update(draft.id, draft)
        except RemoteError:
            LOGGER.error("Saving %r to the remote catalog failed; edit kept open", draft.name)
            self._mode = EDITING
            raise
        try:
            self.cache.ensure_idle("save an edit")
            self._apply(saved, session.is_new, replaces=draft.id)
        except Exception:
            self._mode = EDITING
            raise
        self._session = None
        self._mode = VIEWING
        return saved

    def _apply(self, item: PriceItem, is_new: bool, *, replaces: Optional[str] = None) -> None:
        target = replaces or item.id
        items = list(self._items)
        if is_new:
            items.append(item)
            self._persist(items)
            self.events.emit(CREATED, table=self.cache.table, id=item.id, name=item.name)
            return
        items[self._index(target)] = item
        self._persist(items)
        self.events.emit(UPDATED, table=self.cache.table, id=item.id, name=item.name)

    def _autosave(self) -> None:
        if self._session is None:
            return
        session = self._session
        if session.is_new and not session.name.strip() and not session.price.strip():
            # An untouched new row has nothing to keep.
            self.cancel_edit()
            return
        self.commit_edit()

    def _require_session(self) -> EditSession:
        if self._session is None:
            raise ValidationError("No item is being edited")
        return self._session

    # -- bulk / delete / remote ----------------------------------------

    def replace_all(self, items: Sequence[PriceItem]) -> None:
        """Replace the table, e.g. from pasted list text."""
        self.cache.ensure_idle("replace the price sheet")
        for item in items:
            validate_fields(item.name, item.price)
        self._persist(list(items))
        self.cancel_edit()

    async def delete(self, item_id: str) -> DeleteOutcome:
        """Remove an item locally, then remotely.

        The local removal stands even when the remote delete fails; that case
        is reported as a local-only removal.
        """

        self.cache.ensure_idle("delete")
        index = self._index(item_id)
        items = list(self._items)
        removed = items.pop(index)
        self._persist(items)
        if self._session is not None and self._session.item_id == item_id:
            self.cancel_edit()

        outcome = DeleteOutcome(item=removed)
        if self.remote is not None:
            remote_id = item_id
            if self.reconciler is not None:
                remote_id = self.reconciler.forget(item_id) or item_id
            try:
                await self.remote.delete(remote_id)
            except RemoteError as exc:
                LOGGER.warning("Remote delete of %s failed; removed locally only: %s", item_id, exc)
                outcome = DeleteOutcome(item=removed, local_only=True, error=str(exc))
        self.events.emit(
            DELETED,
            table=self.cache.table,
            id=item_id,
            local_only=outcome.local_only or self.remote is None,
        )
        return outcome

    async def load(self) -> List[PriceItem]:
        """Refresh from the remote catalog, falling back to the cached snapshot."""

        self.cache.ensure_idle("load")
        if self.remote is None:
            self._items = [PriceItem.from_record(raw) for raw in self.cache.read()]
            return self.items
        try:
            remote_items = await self.remote.list()
        except RemoteError as exc:
            self.events.emit(LOAD_FAILED, table=self.cache.table, error=str(exc))
            self._items = [PriceItem.from_record(raw) for raw in self.cache.read()]
            return self.items
        self._persist(list(remote_items))
        LOGGER.info("Loaded %d price item(s) from the remote catalog", len(remote_items))
        return self.items

    async def sync(self) -> SyncResult:
        if self.reconciler is None:
            raise RemoteError("No remote catalog configured")
        self._autosave()
        result = await self.reconciler.sync()
        if result.success:
            self._items = list(result.records)
        return result


__all__ = [
    "PriceSheet",
    "EditSession",
    "DeleteOutcome",
    "validate_fields",
    "parse_list_text",
    "generate_list_text",
    "format_price",
    "VIEWING",
    "EDITING",
    "COMMITTING",
]
