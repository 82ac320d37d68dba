"""Offline-first synchronization between the local cache and the remote store.

Provides cache-first coordinators for each collection, the pure conflict
resolvers they share, notification retention, and the smart sync scheduler
that refreshes catalog metadata in priority order.
"""

from .catalog import CatalogCoordinator, sort_by_order
from .conflict import Resolution, complete_order, merge_order, merge_progress_maps, resolve_progress
from .coordinator import CollectionCoordinator, SyncContext
from .following import FollowingCoordinator
from .guards import SessionGuards, SyncGuard
from .manual import ManualSync
from .notifications import NotificationCoordinator
from .progress import ProgressCoordinator, count_watched, is_complete, watch_fraction
from .refresh import MetadataRefresher, RefreshResult
from .retention import RetentionPolicy, RetentionResult
from .smart_sync import (
    Lifecycle,
    PriorityInput,
    SmartSyncScheduler,
    SyncPolicy,
    SyncRunResult,
    is_eligible,
    score_priority,
)
from .tasks import BackgroundTasks

__all__ = [
    "BackgroundTasks",
    "CatalogCoordinator",
    "CollectionCoordinator",
    "FollowingCoordinator",
    "Lifecycle",
    "ManualSync",
    "MetadataRefresher",
    "NotificationCoordinator",
    "PriorityInput",
    "ProgressCoordinator",
    "RefreshResult",
    "Resolution",
    "RetentionPolicy",
    "RetentionResult",
    "SessionGuards",
    "SmartSyncScheduler",
    "SyncContext",
    "SyncGuard",
    "SyncPolicy",
    "SyncRunResult",
    "complete_order",
    "count_watched",
    "is_complete",
    "is_eligible",
    "merge_order",
    "merge_progress_maps",
    "resolve_progress",
    "score_priority",
    "sort_by_order",
    "watch_fraction",
]
