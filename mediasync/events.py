"""In-process publish/subscribe bus for "data changed" events."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventName(Enum):
    CATALOG_SYNCED = "catalog_synced"
    ORDER_SYNCED = "order_synced"
    PROGRESS_SYNCED = "progress_synced"
    NOTIFICATIONS_UPDATED = "notifications_updated"
    NOTIFICATIONS_SYNCED = "notifications_synced"
    ITEM_REFRESHED = "item_refreshed"


@dataclass
class SyncEvent:
    """An event carrying the new snapshot of a collection."""

    name: EventName
    data: Any = None
    kind: str | None = None
    source: str = "cloud"


Handler = Callable[[SyncEvent], None]


class EventBus:
    """Synchronous event bus.

    Handlers run in subscription order inside ``publish``. A failing handler
    is logged and does not stop the remaining handlers.
    """

    def __init__(self):
        self._handlers: dict[EventName, list[Handler]] = defaultdict(list)

    def subscribe(self, name: EventName, handler: Handler) -> Callable[[], None]:
        """Register a handler.

        Returns:
            A callable that removes the handler again.
        """
        self._handlers[name].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[name]:
                self._handlers[name].remove(handler)

        return unsubscribe

    def publish(self, event: SyncEvent) -> None:
        for handler in list(self._handlers.get(event.name, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler for {event.name.value} failed: {e}", exc_info=True
                )

    def handler_count(self, name: EventName) -> int:
        return len(self._handlers.get(name, []))
