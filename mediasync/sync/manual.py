"""User-triggered full pull and data wipes."""

import logging

from ..cache import LocalCache
from ..cache.guest import guest_keys
from ..errors import RemoteError
from ..models import MediaKind
from .catalog import CatalogCoordinator
from .coordinator import log_remote_failure
from .notifications import NotificationCoordinator
from .progress import ProgressCoordinator

logger = logging.getLogger(__name__)


class ManualSync:
    """Operations behind the "sync now" and "clear data" settings."""

    def __init__(
        self,
        cache: LocalCache,
        catalogs: dict[MediaKind, CatalogCoordinator],
        progress: dict[MediaKind, ProgressCoordinator],
        notifications: NotificationCoordinator,
    ):
        self.cache = cache
        self.catalogs = catalogs
        self.progress = progress
        self.notifications = notifications

    async def pull_all(self) -> dict[str, int]:
        """Copy every collection from the remote store into the cache.

        Empty remote collections leave the cache untouched; a failure in one
        collection does not stop the others.

        Returns:
            Number of remote records received per collection.
        """
        summary = {}
        for kind in MediaKind:
            summary[kind.catalog_key] = await self.catalogs[kind].pull()
            summary[kind.progress_key] = await self.progress[kind].pull()
        summary["notifications"] = await self.notifications.pull()
        logger.info(f"Manual pull finished: {summary}")
        return summary

    def clear_local(self) -> int:
        """Remove every synchronized collection from the cache.

        Returns:
            Number of keys removed.
        """
        removed = 0
        for key in guest_keys():
            if self.cache.get(key) is not None and self.cache.remove(key):
                removed += 1
        logger.info(f"Cleared {removed} local collections")
        return removed

    async def clear_remote_catalog(self) -> dict[str, int]:
        """Delete the user's remote catalog and progress, one document at a time.

        Returns:
            Number of documents deleted per collection.
        """
        summary = {}
        for kind in MediaKind:
            for coordinator in (self.catalogs[kind], self.progress[kind]):
                try:
                    summary[coordinator.name] = await coordinator.remote.clear()
                except RemoteError as e:
                    log_remote_failure(f"clear of {coordinator.name}", e)
                    summary[coordinator.name] = 0
        logger.info(f"Cleared remote catalog: {summary}")
        return summary
