"""
Remote price catalog collaborators.

The engine needs exactly four operations from the catalog: ``list``,
``create`` (the server assigns the id), ``update`` and ``delete``. Every
failure surfaces as :class:`~bidboard.errors.RemoteError`.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .errors import RemoteError
from .models import PriceItem

LOGGER = logging.getLogger(__name__)


class RemoteCatalog(Protocol):
    async def list(self) -> List[PriceItem]:
        ...

    async def create(self, item: PriceItem) -> PriceItem:
        ...

    async def update(self, item_id: str, item: PriceItem) -> PriceItem:
        ...

    async def delete(self, item_id: str) -> None:
        ...


def _unwrap(payload: Any) -> Any:
    # Some endpoints answer ``{"success": true, "data": ...}`` instead of the bare value.
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class HttpPriceCatalog:
    """Async HTTP client for the ``/pricesheets`` REST resource."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpPriceCatalog":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        client = self._get_client()
        try:
            response = await client.request(method, endpoint, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            LOGGER.error("HTTP %d for %s %s: %s", status, method, endpoint, exc.response.text)
            raise RemoteError(
                f"{method} {endpoint} failed with status {status}", status_code=status
            ) from exc
        except httpx.RequestError as exc:
            LOGGER.error("Request error for %s %s: %s", method, endpoint, exc)
            raise RemoteError(f"{method} {endpoint} failed: {exc}") from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"{method} {endpoint} returned invalid JSON") from exc

    def _to_item(self, raw: Any) -> PriceItem:
        if not isinstance(raw, dict) or not (raw.get("_id") or raw.get("id")):
            raise RemoteError(f"Unexpected price item payload: {raw!r}")
        try:
            return PriceItem.from_record(raw)
        except (TypeError, ValueError) as exc:
            raise RemoteError(f"Unexpected price item payload: {raw!r}") from exc

    async def list(self) -> List[PriceItem]:
        payload = _unwrap(await self._request("GET", "/pricesheets"))
        if not isinstance(payload, list):
            return []
        return [self._to_item(raw) for raw in payload]

    async def create(self, item: PriceItem) -> PriceItem:
        payload = await self._request("POST", "/pricesheets", json=item.to_payload())
        return self._to_item(_unwrap(payload))

    async def update(self, item_id: str, item: PriceItem) -> PriceItem:
        payload = await self._request("PUT", f"/pricesheets/{item_id}", json=item.to_payload())
        return self._to_item(_unwrap(payload))

    async def delete(self, item_id: str) -> None:
        await self._request("DELETE", f"/pricesheets/{item_id}")


class InMemoryCatalog:
    """Catalog kept in process memory; ids come from a counter."""

    def __init__(self, items: Optional[List[PriceItem]] = None, *, id_prefix: str = "srv-") -> None:
        self._items: Dict[str, PriceItem] = {item.id: item for item in items or []}
        self._ids = itertools.count(1)
        self.id_prefix = id_prefix

    async def list(self) -> List[PriceItem]:
        return list(self._items.values())

    async def create(self, item: PriceItem) -> PriceItem:
        new_id = f"{self.id_prefix}{next(self._ids)}"
        while new_id in self._items:
            new_id = f"{self.id_prefix}{next(self._ids)}"
        created = PriceItem(id=new_id, name=item.name, price=item.price, category=item.category)
        self._items[new_id] = created
        return created

    async def update(self, item_id: str, item: PriceItem) -> PriceItem:
        if item_id not in self._items:
            raise RemoteError(f"Price item {item_id} not found", status_code=404)
        updated = PriceItem(id=item_id, name=item.name, price=item.price, category=item.category)
        self._items[item_id] = updated
        return updated

    async def delete(self, item_id: str) -> None:
        if self._items.pop(item_id, None) is None:
            raise RemoteError(f"Price item {item_id} not found", status_code=404)


__all__ = ["RemoteCatalog", "HttpPriceCatalog", "InMemoryCatalog"]
