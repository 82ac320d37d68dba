"""Notification coordinator with age/count retention."""

import logging
import uuid
from typing import Any

from ..errors import RemoteError
from ..events import EventName
from ..models import NOTIFICATIONS_KEY, AnyNotification, notification_from_dict
from .coordinator import CollectionCoordinator, SyncContext, log_remote_failure
from .retention import RetentionPolicy, RetentionResult

logger = logging.getLogger(__name__)


def unread_count(items: list[AnyNotification]) -> int:
    return sum(1 for item in items if not item.read)


class NotificationCoordinator(CollectionCoordinator):
    """Release notifications, bounded by a RetentionPolicy.

    The policy runs on every read and every insert. Entries evicted by the
    count bound are also deleted remotely, one at a time.
    """

    def __init__(self, context: SyncContext, policy: RetentionPolicy | None = None):
        super().__init__(NOTIFICATIONS_KEY, context)
        self.policy = policy or RetentionPolicy()

    def _parse(self, records: list[dict[str, Any]]) -> list[AnyNotification]:
        items = []
        for data in records:
            if not isinstance(data, dict):
                logger.warning("Skipping non-object notification record")
                continue
            try:
                items.append(notification_from_dict(data))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed notification: {e}")
        return items

    def _load(self) -> list[AnyNotification]:
        raw = self.cache.get(NOTIFICATIONS_KEY, [])
        return self._parse(raw) if isinstance(raw, list) else []

    def _store(self, items: list[AnyNotification]) -> bool:
        return self.cache.set(NOTIFICATIONS_KEY, [item.to_dict() for item in items])

    def _retain(self, items: list[AnyNotification]) -> RetentionResult:
        result = self.policy.apply(items, self.clock.now_ms())
        if result.changed:
            logger.debug(
                f"Notification retention dropped {len(result.expired)} expired, "
                f"{len(result.evicted)} evicted"
            )
        return result

    def _delete_evicted(self, result: RetentionResult) -> None:
        if result.evicted and self.remote_enabled:
            self.tasks.spawn(
                self._delete_remote([item.id for item in result.evicted]),
                name="notifications-evict",
            )

    async def _delete_remote(self, ids: list[str]) -> int:
        deleted = 0
        for notif_id in ids:
            if await self._best_effort("evict", lambda notif_id=notif_id: self.remote.delete(notif_id)):
                deleted += 1
        return deleted

    async def get_all(self, sync_from_cloud: bool = True) -> list[AnyNotification]:
        """Return the retained notifications from the cache.

        Entries without a read flag are normalized to unread.
        """
        raw = self.cache.get(NOTIFICATIONS_KEY, [])
        items = self._parse(raw) if isinstance(raw, list) else []
        result = self._retain(items)

        needs_write = result.changed or any(
            isinstance(data, dict) and "read" not in data for data in raw or []
        )
        if needs_write:
            self._store(result.kept)
        self._delete_evicted(result)

        self._schedule_reconcile(sync_from_cloud, self.remote.list_all, self._apply_remote)
        return result.kept

    def _apply_remote(self, records: list[dict[str, Any]]) -> None:
        if not records:
            logger.debug("Remote notifications empty, keeping local cache")
            return
        result = self._retain(self._parse(records))
        self._store(result.kept)
        self._delete_evicted(result)
        self._publish(EventName.NOTIFICATIONS_SYNCED, result.kept)

    async def add(self, notification: AnyNotification) -> AnyNotification:
        """Store a new notification as unread.

        An id and creation timestamp are assigned when not already set.
        """
        if not notification.id:
            notification.id = uuid.uuid4().hex
        if not notification.timestamp:
            notification.timestamp = self.clock.now_ms()
        notification.read = False

        items = [item for item in self._load() if item.id != notification.id]
        items.append(notification)
        result = self._retain(items)
        self._store(result.kept)

        await self._best_effort(
            "add",
            lambda: self.remote.upsert(notification.id, notification.to_dict(), merge=True),
        )
        self._delete_evicted(result)
        self._publish(EventName.NOTIFICATIONS_UPDATED, result.kept, source="local")
        return notification

    async def mark_read(self, notification_id: str) -> bool:
        items = self._load()
        for item in items:
            if item.id == notification_id:
                item.read = True
                break
        else:
            return False

        self._store(items)
        await self._best_effort(
            "mark read",
            lambda: self.remote.upsert(notification_id, {"read": True}, merge=True),
        )
        self._publish(EventName.NOTIFICATIONS_UPDATED, items, source="local")
        return True

    async def mark_all_read(self) -> int:
        """Mark every unread notification read; remote updates are isolated per item.

        Returns:
            Number of notifications that changed.
        """
        items = self._load()
        changed = [item for item in items if not item.read]
        for item in changed:
            item.read = True
        self._store(items)

        for item in changed:
            await self._best_effort(
                "mark read",
                lambda item=item: self.remote.upsert(item.id, {"read": True}, merge=True),
            )
        if changed:
            self._publish(EventName.NOTIFICATIONS_UPDATED, items, source="local")
        return len(changed)

    async def delete(self, notification_id: str) -> None:
        items = [item for item in self._load() if item.id != notification_id]
        self._store(items)
        await self._best_effort("delete", lambda: self.remote.delete(notification_id))
        self._publish(EventName.NOTIFICATIONS_UPDATED, items, source="local")

    async def clear(self) -> None:
        self._store([])
        await self._best_effort("clear", self.remote.clear)
        self._publish(EventName.NOTIFICATIONS_UPDATED, [], source="local")

    async def unread_count(self) -> int:
        return unread_count(await self.get_all(sync_from_cloud=False))

    async def pull(self) -> int:
        """Replace cached notifications with the remote ones now."""
        if not self.remote_enabled:
            return 0
        try:
            records = await self.remote.list_all()
        except RemoteError as e:
            log_remote_failure(f"pull of {self.name}", e)
            return 0
        self._apply_remote(records)
        return len(records)
