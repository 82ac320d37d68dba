"""Smart sync: prioritized, throttled background refresh of catalog items.

Each run loads the catalog and progress from the cache, keeps the items
whose eligibility window has passed, ranks them with ``score_priority`` and
refreshes them one at a time with a fixed delay between requests. A failed
refresh is retried with a growing backoff; an item that still fails is
recorded and skipped without aborting the run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from ..clock import days_to_ms
from ..errors import MediaSyncError
from ..models import (
    CatalogItem,
    MediaKind,
    Movie,
    MovieProgress,
    Series,
    SeriesProgress,
    SyncMeta,
    SyncRunRecord,
)
from .catalog import CatalogCoordinator
from .coordinator import SyncContext
from .progress import ProgressCoordinator, watch_fraction
from .refresh import MetadataRefresher, RefreshResult

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("On Display", "Returning Series", "In Production", "Returning")
ENDED_STATUS = "Ended"
RELEASED_STATUS = "Released"

# Failures worth retrying; anything else is a bug and propagates
RETRYABLE_ERRORS = (MediaSyncError, httpx.HTTPError)


class Lifecycle(Enum):
    ACTIVE = "active"
    ENDED = "ended"
    UNKNOWN = "unknown"  # scheduled like an active item


def classify(item: CatalogItem) -> Lifecycle:
    """Map a catalog item's remote status onto a lifecycle tier.

    Released movies are treated as ended; unreleased ones as active.
    """
    status = item.status or ""
    if isinstance(item, Series):
        if any(active in status for active in ACTIVE_STATUSES):
            return Lifecycle.ACTIVE
        if status == ENDED_STATUS:
            return Lifecycle.ENDED
        return Lifecycle.UNKNOWN
    if isinstance(item, Movie):
        if not status:
            return Lifecycle.UNKNOWN
        return Lifecycle.ENDED if status == RELEASED_STATUS else Lifecycle.ACTIVE
    raise TypeError(f"Unsupported catalog item: {item!r}")


@dataclass
class SyncPolicy:
    """Timing and scoring constants of the scheduler."""

    movie_interval_days: float = 30
    ended_interval_days: float = 30
    min_interval_hours: float = 24
    request_delay_seconds: float = 1.0
    max_retries: int = 2
    retry_delay_seconds: float = 2.0
    visible_boost: float = 1000
    never_synced_boost: float = 20

    @property
    def movie_interval_ms(self) -> int:
        return days_to_ms(self.movie_interval_days)

    @property
    def ended_interval_ms(self) -> int:
        return days_to_ms(self.ended_interval_days)

    @property
    def min_interval_ms(self) -> int:
        return days_to_ms(self.min_interval_hours / 24)


def is_eligible(
    kind: MediaKind,
    lifecycle: Lifecycle,
    meta: SyncMeta | None,
    now_ms: int,
    policy: SyncPolicy,
) -> bool:
    """Whether an item may be refreshed now.

    Items that never synced successfully are always eligible. Movies wait the
    movie interval since their last attempt. Series are throttled by the
    minimum interval; past it active and unknown series are eligible, ended
    ones wait the ended interval.
    """
    if meta is None or meta.last_success is None:
        return True
    elapsed = now_ms - (meta.last_attempt or meta.last_success)

    if kind is MediaKind.MOVIE:
        return elapsed >= policy.movie_interval_ms

    if elapsed < policy.min_interval_ms:
        return False
    if lifecycle is Lifecycle.ENDED:
        return elapsed >= policy.ended_interval_ms
    return True


@dataclass
class PriorityInput:
    lifecycle: Lifecycle
    watch_fraction: float = 0.0
    never_synced: bool = False
    visible: bool = False


def score_priority(entry: PriorityInput, policy: SyncPolicy | None = None) -> float:
    """Rank an eligible item; higher is refreshed first.

    Active items with partial progress score 100-150, active with none 50,
    active and fully watched 25; ended items score 10 with progress and 1
    without; unknown items 75 with progress and 40 without. Never-synced
    items get an additive boost and visible items an overriding one.
    """
    policy = policy or SyncPolicy()
    fraction = entry.watch_fraction

    if entry.lifecycle is Lifecycle.ACTIVE:
        if 0 < fraction < 1:
            score = 100 + 50 * fraction
        elif fraction <= 0:
            score = 50
        else:
            score = 25
    elif entry.lifecycle is Lifecycle.ENDED:
        score = 10 if fraction > 0 else 1
    else:
        score = 75 if fraction > 0 else 40

    if entry.never_synced:
        score += policy.never_synced_boost
    if entry.visible:
        score += policy.visible_boost
    return score


def progress_fraction(item: CatalogItem, progress: Any) -> float:
    if isinstance(item, Series):
        return watch_fraction(item, progress if isinstance(progress, SeriesProgress) else None)
    if isinstance(item, Movie):
        return 1.0 if isinstance(progress, MovieProgress) and progress.watched else 0.0
    raise TypeError(f"Unsupported catalog item: {item!r}")


@dataclass
class SyncRunResult:
    synced: int = 0
    skipped: int = 0
    errors: int = 0
    refreshed: list[str] = field(default_factory=list)
    results: list[RefreshResult] = field(default_factory=list)


@dataclass
class SyncStats:
    total: int = 0
    active: int = 0
    ended: int = 0
    never_synced: int = 0
    synced_recently: int = 0
    needs_sync: int = 0


class SmartSyncScheduler:
    """Drives MetadataRefresher over the catalog by priority."""

    def __init__(
        self,
        context: SyncContext,
        catalogs: dict[MediaKind, CatalogCoordinator],
        progress: dict[MediaKind, ProgressCoordinator],
        refresher: MetadataRefresher,
        policy: SyncPolicy | None = None,
    ):
        self.context = context
        self.cache = context.cache
        self.clock = context.clock
        self.tasks = context.tasks
        self.catalogs = catalogs
        self.progress = progress
        self.refresher = refresher
        self.policy = policy or SyncPolicy()
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._running = False

    # -- bookkeeping -------------------------------------------------------

    def _load_meta(self, kind: MediaKind) -> dict[str, SyncMeta]:
        raw = self.cache.get(kind.sync_meta_key, {})
        items = raw.get("items", {}) if isinstance(raw, dict) else {}
        return {item_id: SyncMeta.from_dict(data) for item_id, data in items.items()}

    def _save_meta(self, kind: MediaKind, metas: dict[str, SyncMeta]) -> None:
        raw = self.cache.get(kind.sync_meta_key, {})
        if not isinstance(raw, dict):
            raw = {}
        raw["items"] = {item_id: meta.to_dict() for item_id, meta in metas.items()}
        self.cache.set(kind.sync_meta_key, raw)

    def _record_attempt(self, kind: MediaKind, item_id: str, status: str, success: bool) -> SyncMeta:
        now = self.clock.now_ms()
        metas = self._load_meta(kind)
        meta = metas.get(item_id, SyncMeta())
        meta.last_attempt = now
        meta.status = status
        if success:
            meta.last_success = now
            meta.failure_count = 0
        else:
            meta.failure_count += 1
        metas[item_id] = meta
        self._save_meta(kind, metas)
        return meta

    def _record_run(self, kind: MediaKind, result: SyncRunResult) -> None:
        raw = self.cache.get(kind.sync_meta_key, {})
        if not isinstance(raw, dict):
            raw = {}
        raw["last_run"] = SyncRunRecord(
            executed_at=self.clock.now_ms(),
            synced=result.synced,
            skipped=result.skipped,
            errors=result.errors,
        ).to_dict()
        self.cache.set(kind.sync_meta_key, raw)

    def last_run(self, kind: MediaKind) -> SyncRunRecord | None:
        raw = self.cache.get(kind.sync_meta_key, {})
        if not isinstance(raw, dict) or not raw.get("last_run"):
            return None
        return SyncRunRecord.from_dict(raw["last_run"])

    def clear_meta(self, kind: MediaKind) -> None:
        self.cache.remove(kind.sync_meta_key)
        logger.info(f"Cleared smart sync metadata for {kind.catalog_key}")

    # -- planning ----------------------------------------------------------

    async def plan(
        self,
        kind: MediaKind,
        visible_ids: list[str] | None = None,
        active_only: bool = False,
    ) -> tuple[list[tuple[float, CatalogItem]], int]:
        """Eligible items ranked by priority, highest first.

        Returns:
            Tuple of (ranked (score, item) pairs, total catalog size).
        """
        items = await self.catalogs[kind].get_all(sync_from_cloud=False)
        progress = await self.progress[kind].get_all(sync_from_cloud=False)
        metas = self._load_meta(kind)
        visible = set(visible_ids or [])
        now = self.clock.now_ms()

        ranked = []
        for item in items:
            lifecycle = classify(item)
            if active_only and lifecycle is Lifecycle.ENDED:
                continue
            meta = metas.get(item.id)
            if not is_eligible(kind, lifecycle, meta, now, self.policy):
                continue
            score = score_priority(
                PriorityInput(
                    lifecycle=lifecycle,
                    watch_fraction=progress_fraction(item, progress.get(item.id)),
                    never_synced=meta is None or meta.last_success is None,
                    visible=item.id in visible,
                ),
                self.policy,
            )
            ranked.append((score, item))

        # Stable: equal scores keep catalog order
        ranked.sort(key=lambda pair: pair[0], reverse=True)
        return ranked, len(items)

    # -- execution ---------------------------------------------------------

    async def _refresh_with_retry(self, kind: MediaKind, item: CatalogItem) -> RefreshResult:
        attempt = 0
        while True:
            try:
                result = await self.refresher.refresh(item)
            except RETRYABLE_ERRORS as e:
                if attempt < self.policy.max_retries:
                    attempt += 1
                    logger.warning(
                        f"Retry {attempt}/{self.policy.max_retries} for {item.title}: {e}"
                    )
                    await self.clock.sleep(self.policy.retry_delay_seconds * attempt)
                    continue
                self._record_attempt(kind, item.id, item.status, success=False)
                raise

            status = result.item.status if result.item else item.status
            self._record_attempt(kind, item.id, status, success=result.updated)
            return result

    async def run(
        self,
        kind: MediaKind = MediaKind.SERIES,
        visible_ids: list[str] | None = None,
        active_only: bool = False,
    ) -> SyncRunResult:
        """Run one smart sync pass over a catalog.

        Args:
            kind: Which catalog to refresh.
            visible_ids: Ids currently on screen; they are refreshed first.
            active_only: Ignore ended items entirely.

        Returns:
            Counts of synced, skipped and failed items.
        """
        if self.cache.session.is_ephemeral:
            logger.info("Guest session: smart sync disabled")
            return SyncRunResult()
        if not self.tasks.accepting:
            logger.debug("Smart sync refused: not accepting new work")
            return SyncRunResult()

        ranked, total = await self.plan(kind, visible_ids, active_only)
        result = SyncRunResult(skipped=total - len(ranked))
        logger.info(
            f"Smart sync {kind.catalog_key}: total={total} "
            f"to_sync={len(ranked)} skipped={result.skipped}"
        )

        for index, (score, item) in enumerate(ranked):
            if not self.tasks.accepting:
                result.skipped += len(ranked) - index
                logger.info("Smart sync stopped early: no longer accepting work")
                break

            logger.debug(f"[P{score:.0f}] refreshing {item.title} ({item.status or 'no status'})")
            try:
                outcome = await self._refresh_with_retry(kind, item)
            except RETRYABLE_ERRORS as e:
                logger.error(f"Smart sync failed for {item.title}: {e}")
                result.errors += 1
            else:
                result.refreshed.append(item.id)
                result.results.append(outcome)
                if outcome.updated:
                    result.synced += 1

            if index < len(ranked) - 1:
                await self.clock.sleep(self.policy.request_delay_seconds)

        self._record_run(kind, result)
        logger.info(
            f"Smart sync {kind.catalog_key} done: synced={result.synced} "
            f"skipped={result.skipped} errors={result.errors}"
        )
        return result

    async def run_all(self, visible_ids: list[str] | None = None) -> dict[MediaKind, SyncRunResult]:
        results = {}
        for kind in MediaKind:
            results[kind] = await self.run(kind, visible_ids=visible_ids)
        return results

    async def get_stats(self, kind: MediaKind) -> SyncStats:
        items = await self.catalogs[kind].get_all(sync_from_cloud=False)
        metas = self._load_meta(kind)
        now = self.clock.now_ms()
        stats = SyncStats(total=len(items))

        for item in items:
            lifecycle = classify(item)
            if lifecycle is Lifecycle.ENDED:
                stats.ended += 1
            else:
                stats.active += 1

            meta = metas.get(item.id)
            if meta is None or meta.last_attempt is None:
                stats.never_synced += 1
            elif now - meta.last_attempt < self.policy.min_interval_ms:
                stats.synced_recently += 1

            if is_eligible(kind, lifecycle, meta, now, self.policy):
                stats.needs_sync += 1
        return stats

    # -- background loop ---------------------------------------------------

    async def start(self, interval_minutes: float = 60) -> None:
        """Start periodic smart sync as a background task."""
        if self._running:
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(interval_minutes * 60))
        logger.info(f"Smart sync loop started (interval={interval_minutes}min)")

    async def stop(self) -> None:
        """Stop the periodic loop.

        A run already in progress is not cancelled; the loop exits once it
        finishes.
        """
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        logger.info("Smart sync loop stopped")

    async def shutdown(self) -> None:
        """Stop accepting new background work and end the loop."""
        self.tasks.stop_accepting()
        await self.stop()

    async def _run_loop(self, interval_seconds: float) -> None:
        while self._running:
            try:
                await self.run_all()
            except Exception as e:
                logger.error(f"Smart sync run failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval_seconds)
                break
            except asyncio.TimeoutError:
                pass
