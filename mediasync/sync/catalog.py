"""Catalog and display-order coordinator for one media kind."""

import logging
from typing import Any

from ..errors import OperationFailedError, RemoteError
from ..events import EventName
from ..models import META_COLLECTION, CatalogItem, MediaKind, catalog_item_from_dict
from .conflict import complete_order, merge_order
from .coordinator import CollectionCoordinator, SyncContext, log_remote_failure
from .progress import ProgressCoordinator

logger = logging.getLogger(__name__)


def sort_by_order(items: list[CatalogItem], order: list[str]) -> list[CatalogItem]:
    """Sort items by their position in order; unknown ids go last."""
    position = {item_id: i for i, item_id in enumerate(order)}
    return sorted(items, key=lambda item: position.get(item.id, len(position)))


class CatalogCoordinator(CollectionCoordinator):
    """The user's movies or series plus their display order.

    Removing an item cascades to its progress record.
    """

    def __init__(self, kind: MediaKind, context: SyncContext, progress: ProgressCoordinator):
        super().__init__(kind.catalog_key, context)
        self.kind = kind
        self.progress = progress
        self.order_guard = context.guards.get(kind.order_key)
        self.order_remote = context.collection(META_COLLECTION)

    # -- cache helpers -----------------------------------------------------

    def _load(self) -> list[CatalogItem]:
        raw = self.cache.get(self.kind.catalog_key, [])
        if not isinstance(raw, list):
            return []
        return self._parse(raw)

    def _parse(self, records: list[dict[str, Any]]) -> list[CatalogItem]:
        items = []
        for data in records:
            if not isinstance(data, dict):
                logger.warning(f"Skipping non-object {self.kind.value} record")
                continue
            try:
                items.append(catalog_item_from_dict(data, self.kind))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {self.kind.value} record: {e}")
        return items

    def _store(self, items: list[CatalogItem]) -> bool:
        return self.cache.set(self.kind.catalog_key, [item.to_dict() for item in items])

    def _load_order(self) -> list[str]:
        raw = self.cache.get(self.kind.order_key, [])
        return [str(i) for i in raw] if isinstance(raw, list) else []

    # -- catalog -----------------------------------------------------------

    async def get_all(self, sync_from_cloud: bool = True) -> list[CatalogItem]:
        """Return the cached catalog, reconciling with the remote once per session."""
        items = self._load()
        self._schedule_reconcile(sync_from_cloud, self.remote.list_all, self._apply_remote_catalog)
        return items

    def _apply_remote_catalog(self, records: list[dict[str, Any]]) -> None:
        if not records:
            # An empty remote never wipes a populated cache
            logger.debug(f"Remote {self.name} is empty, keeping local cache")
            return
        items = self._parse(records)
        self._store(items)
        logger.info(f"Synced {len(items)} {self.name} from remote")
        self._publish(EventName.CATALOG_SYNCED, items, kind=self.kind.value)

    async def get_by_id(self, item_id: str) -> CatalogItem | None:
        for item in self._load():
            if item.id == item_id:
                return item
        return None

    async def add(self, item: CatalogItem) -> CatalogItem:
        """Add an item to the catalog and the end of the order.

        Raises:
            OperationFailedError: If neither the cache nor the remote store
                accepted the item.
        """
        if item.kind is not self.kind:
            raise TypeError(f"Cannot add {item.kind.value} to {self.name} catalog")

        items = [existing for existing in self._load() if existing.id != item.id]
        items.append(item)
        cached = self._store(items)

        order = self._load_order()
        if item.id not in order:
            order.append(item.id)
            self.cache.set(self.kind.order_key, order)

        remote_ok = await self._best_effort(
            "add", lambda: self.remote.upsert(item.id, item.to_dict())
        )
        if not cached and not remote_ok:
            raise OperationFailedError("Could not add item")

        await self._best_effort("order append", lambda: self._remote_order_append(item.id))
        await self.progress.initialize(item.id)
        logger.info(f"Added {self.kind.value} {item.id} ({item.title})")
        return item

    async def update(self, item: CatalogItem) -> CatalogItem:
        """Replace the whole stored record of an item."""
        items = self._load()
        for i, existing in enumerate(items):
            if existing.id == item.id:
                items[i] = item
                break
        else:
            items.append(item)
        self._store(items)

        await self._best_effort("update", lambda: self.remote.upsert(item.id, item.to_dict()))
        return item

    async def remove(self, item_id: str) -> None:
        """Remove an item, its order entry and its progress record."""
        items = [item for item in self._load() if item.id != item_id]
        self._store(items)
        order = [i for i in self._load_order() if i != item_id]
        self.cache.set(self.kind.order_key, order)

        await self._best_effort("delete", lambda: self.remote.delete(item_id))
        await self._best_effort("order removal", lambda: self._remote_order_remove(item_id))
        await self.progress.delete(item_id)
        logger.info(f"Removed {self.kind.value} {item_id}")

    async def save_all(self, items: list[CatalogItem]) -> int:
        """Overwrite the catalog; each remote upsert is attempted separately.

        Returns:
            Number of items stored remotely.
        """
        self._store(items)
        stored = 0
        for item in items:
            if await self._best_effort(
                "bulk save", lambda item=item: self.remote.upsert(item.id, item.to_dict())
            ):
                stored += 1
        return stored

    # -- order -------------------------------------------------------------

    async def get_order(self, sync_from_cloud: bool = True) -> list[str]:
        """Return the display order, completed with every catalog id."""
        stored = self._load_order()
        order = complete_order(stored, [item.id for item in self._load()])
        if order != stored:
            self.cache.set(self.kind.order_key, order)

        self._schedule_reconcile(
            sync_from_cloud,
            self._fetch_remote_order,
            self._apply_remote_order,
            guard=self.order_guard,
        )
        return order

    async def save_order(self, order: list[str]) -> None:
        self.cache.set(self.kind.order_key, list(order))
        await self._best_effort(
            "order save",
            lambda: self.order_remote.upsert(self.kind.order_key, {"order": list(order)}),
        )

    async def _fetch_remote_order(self) -> list[str]:
        doc = await self.order_remote.get_one(self.kind.order_key)
        if not doc:
            return []
        return [str(i) for i in doc.get("order", [])]

    def _apply_remote_order(self, remote_order: list[str]) -> None:
        local = self._load_order()
        merged = merge_order(remote_order, local)
        merged = complete_order(merged, [item.id for item in self._load()])
        if merged == local:
            return
        self.cache.set(self.kind.order_key, merged)
        self._publish(EventName.ORDER_SYNCED, merged, kind=self.kind.value)

    async def _remote_order_append(self, item_id: str) -> None:
        order = await self._fetch_remote_order()
        if item_id not in order:
            order.append(item_id)
            await self.order_remote.upsert(self.kind.order_key, {"order": order})

    async def _remote_order_remove(self, item_id: str) -> None:
        order = await self._fetch_remote_order()
        if item_id in order:
            order = [i for i in order if i != item_id]
            await self.order_remote.upsert(self.kind.order_key, {"order": order})

    # -- manual pull -------------------------------------------------------

    async def pull(self) -> int:
        """Fetch catalog and order from the remote now, ignoring the guard.

        Returns:
            Number of catalog items received.
        """
        if not self.remote_enabled:
            return 0
        try:
            records = await self.remote.list_all()
            remote_order = await self._fetch_remote_order()
        except RemoteError as e:
            log_remote_failure(f"pull of {self.name}", e)
            return 0

        self._apply_remote_catalog(records)
        if remote_order:
            self._apply_remote_order(remote_order)
        return len(records)
