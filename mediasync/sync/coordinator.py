"""Generic cache-first coordinator shared by every synchronized collection.

Reads return the local cache immediately and, once per session, schedule a
background reconciliation with the remote store. Writes hit the cache
first and then the remote store on a best-effort basis: a failed remote
write is logged, never rolled back and never raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..cache import LocalCache
from ..clock import Clock
from ..errors import NotAuthenticatedError, PermissionDeniedError, RemoteError
from ..events import EventBus, EventName, SyncEvent
from ..remote import RemoteCollection, RemoteStore, UserIdProvider
from .guards import SessionGuards, SyncGuard
from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Collaborators shared by all coordinators of one session."""

    cache: LocalCache
    store: RemoteStore
    user_id_provider: UserIdProvider
    events: EventBus = field(default_factory=EventBus)
    guards: SessionGuards = field(default_factory=SessionGuards)
    tasks: BackgroundTasks = field(default_factory=BackgroundTasks)
    clock: Clock = field(default_factory=Clock)

    def collection(self, name: str) -> RemoteCollection:
        return RemoteCollection(self.store, name, self.user_id_provider)


def log_remote_failure(operation: str, error: RemoteError) -> None:
    """Log a tolerated remote failure at a level matching its kind."""
    if isinstance(error, (PermissionDeniedError, NotAuthenticatedError)):
        logger.debug(f"Remote {operation} skipped: {error}")
    else:
        logger.warning(f"Remote {operation} failed: {error}")


class CollectionCoordinator:
    """Base class for a cache-first, best-effort synchronized collection."""

    def __init__(self, name: str, context: SyncContext, remote_name: str | None = None):
        """Initialize the coordinator.

        Args:
            name: Cache key of the collection; also names its session guard.
            context: Shared session collaborators.
            remote_name: Remote sub-collection name, defaults to ``name``.
        """
        self.name = name
        self.context = context
        self.cache = context.cache
        self.events = context.events
        self.clock = context.clock
        self.tasks = context.tasks
        self.guard: SyncGuard = context.guards.get(name)
        self.remote = context.collection(remote_name or name)

    @property
    def remote_enabled(self) -> bool:
        """Ephemeral (guest) sessions never talk to the remote store."""
        return not self.cache.session.is_ephemeral

    def _schedule_reconcile(
        self,
        sync_from_cloud: bool,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], None],
        guard: SyncGuard | None = None,
    ) -> bool:
        """Start a background reconciliation if this session has not had one.

        The guard is set before the fetch is spawned so concurrent callers
        in the same tick do not fetch twice.

        Returns:
            True if a reconciliation was started.
        """
        guard = guard or self.guard
        if not sync_from_cloud or not self.remote_enabled:
            return False
        if guard.reconciled_this_session or not self.tasks.accepting:
            return False

        guard.reconciled_this_session = True
        task = self.tasks.spawn(
            self._reconcile(fetch, apply, guard), name=f"reconcile-{self.name}"
        )
        if task is None:
            guard.reset()
        return task is not None

    async def _reconcile(
        self,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], None],
        guard: SyncGuard,
    ) -> None:
        try:
            result = await fetch()
        except NotAuthenticatedError as e:
            # Nobody to reconcile for yet; the next signed-in read retries.
            guard.reset()
            log_remote_failure(f"reconcile of {self.name}", e)
            return
        except RemoteError as e:
            log_remote_failure(f"reconcile of {self.name}", e)
            return
        apply(result)

    async def _best_effort(self, operation: str, action: Callable[[], Awaitable[Any]]) -> bool:
        """Run a remote write, tolerating failure.

        Returns:
            True if the remote write succeeded, False if it failed or the
            session is ephemeral.
        """
        if not self.remote_enabled:
            return False
        try:
            await action()
        except RemoteError as e:
            log_remote_failure(f"{operation} on {self.name}", e)
            return False
        return True

    def _publish(self, name: EventName, data: Any, kind: str | None = None, source: str = "cloud") -> None:
        self.events.publish(SyncEvent(name=name, data=data, kind=kind, source=source))
