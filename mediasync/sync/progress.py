"""Watch-progress coordinator with last-write-wins reconciliation."""

import logging
from typing import Any

from ..errors import RemoteError
from ..events import EventName
from ..models import (
    MediaKind,
    MovieProgress,
    ProgressRecord,
    Series,
    SeriesProgress,
    empty_progress,
    episode_key,
    progress_from_dict,
)
from .conflict import REMOTE, merge_progress_maps, resolve_progress
from .coordinator import CollectionCoordinator, SyncContext, log_remote_failure

logger = logging.getLogger(__name__)


def _episode_positions(series: Series) -> list[tuple[int, int]]:
    """(season, episode) pairs in viewing order, episodes numbered from 1."""
    return [
        (season.number, index)
        for season in series.seasons
        for index, _ in enumerate(season.episodes, start=1)
    ]


def count_watched(series: Series, progress: SeriesProgress) -> tuple[int, int]:
    """Return (watched, total) episode counts."""
    watched = sum(1 for value in progress.watched.values() if value)
    return watched, series.total_episodes


def watch_fraction(series: Series, progress: SeriesProgress | None) -> float:
    """Share of episodes watched, between 0 and 1."""
    if progress is None or series.total_episodes == 0:
        return 0.0
    watched, total = count_watched(series, progress)
    return min(watched / total, 1.0)


def is_complete(series: Series, progress: SeriesProgress) -> bool:
    """True when every episode of every season is marked watched."""
    positions = _episode_positions(series)
    if not positions:
        return False
    return all(progress.watched.get(episode_key(s, e)) for s, e in positions)


class ProgressCoordinator(CollectionCoordinator):
    """Progress records keyed by catalog item id.

    Every write stamps ``last_updated`` from the clock; that timestamp alone
    decides conflicts with the remote copy.
    """

    def __init__(self, kind: MediaKind, context: SyncContext):
        super().__init__(kind.progress_key, context)
        self.kind = kind

    def _load_map(self) -> dict[str, ProgressRecord]:
        raw = self.cache.get(self.kind.progress_key, {})
        if not isinstance(raw, dict):
            return {}
        records = {}
        for item_id, data in raw.items():
            if not isinstance(data, dict):
                continue
            try:
                records[item_id] = progress_from_dict(self.kind, data)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {self.name} record {item_id}: {e}")
        return records

    def _store_map(self, records: dict[str, ProgressRecord]) -> bool:
        return self.cache.set(
            self.kind.progress_key,
            {item_id: record.to_dict() for item_id, record in records.items()},
        )

    async def get_all(self, sync_from_cloud: bool = True) -> dict[str, ProgressRecord]:
        """Return all cached progress, reconciling once per session."""
        records = self._load_map()
        self._schedule_reconcile(sync_from_cloud, self.remote.list_all, self._apply_remote)
        return records

    def _apply_remote(self, documents: list[dict[str, Any]]) -> None:
        remote = {
            str(doc["id"]): progress_from_dict(self.kind, doc)
            for doc in documents
            if "id" in doc
        }
        merged, changed = merge_progress_maps(self._load_map(), remote)
        if not changed:
            return
        self._store_map(merged)
        logger.info(f"Merged remote {self.name} ({len(remote)} records)")
        self._publish(EventName.PROGRESS_SYNCED, merged, kind=self.kind.value)

    async def get_progress(self, item_id: str) -> ProgressRecord:
        """Return the newer of the local and remote record for one item.

        A remote winner overwrites the cache. Without either record a fresh
        empty one is returned (and not stored).
        """
        records = self._load_map()
        local = records.get(item_id)

        remote = None
        if self.remote_enabled:
            try:
                doc = await self.remote.get_one(item_id)
                if doc:
                    remote = progress_from_dict(self.kind, doc)
            except RemoteError as e:
                log_remote_failure(f"read of {self.name}/{item_id}", e)

        resolution = resolve_progress(local, remote)
        if resolution.winner == REMOTE:
            records[item_id] = resolution.record
            self._store_map(records)
        return resolution.record or empty_progress(self.kind)

    async def update(self, item_id: str, record: ProgressRecord) -> ProgressRecord:
        """Stamp and store a record, replacing the remote document whole."""
        record.last_updated = self.clock.now_ms()
        records = self._load_map()
        records[item_id] = record
        self._store_map(records)

        await self._best_effort(
            "update", lambda: self.remote.upsert(item_id, record.to_dict(), merge=False)
        )
        return record

    async def initialize(self, item_id: str) -> ProgressRecord:
        return await self.update(item_id, empty_progress(self.kind))

    async def delete(self, item_id: str) -> None:
        records = self._load_map()
        if records.pop(item_id, None) is not None:
            self._store_map(records)
        await self._best_effort("delete", lambda: self.remote.delete(item_id))

    async def pull(self) -> int:
        """Merge every remote record now, ignoring the session guard."""
        if not self.remote_enabled:
            return 0
        try:
            documents = await self.remote.list_all()
        except RemoteError as e:
            log_remote_failure(f"pull of {self.name}", e)
            return 0
        self._apply_remote(documents)
        return len(documents)

    # -- movies ------------------------------------------------------------

    def _require(self, kind: MediaKind) -> None:
        if self.kind is not kind:
            raise TypeError(f"{self.name} does not hold {kind.value} progress")

    async def set_watched(self, movie_id: str, watched: bool) -> MovieProgress:
        self._require(MediaKind.MOVIE)
        return await self.update(movie_id, MovieProgress(watched=watched))

    async def toggle_watched(self, movie_id: str) -> MovieProgress:
        self._require(MediaKind.MOVIE)
        current = await self.get_progress(movie_id)
        return await self.set_watched(movie_id, not current.watched)

    async def watched_states(self, sync_from_cloud: bool = True) -> dict[str, bool]:
        """Map of movie id to watched flag."""
        self._require(MediaKind.MOVIE)
        records = await self.get_all(sync_from_cloud=sync_from_cloud)
        return {item_id: record.watched for item_id, record in records.items()}

    # -- series ------------------------------------------------------------

    async def toggle_episode(self, series: Series, season: int, episode: int) -> SeriesProgress:
        """Toggle one episode the way a viewer ticks through a series.

        - Unwatched episode: it and every earlier episode become watched.
        - Watched episode with later watched episodes: the later ones are
          unmarked, the clicked one stays watched.
        - Otherwise only the clicked episode is unmarked.

        Unknown episodes leave progress untouched.
        """
        self._require(MediaKind.SERIES)
        progress = await self.get_progress(series.id)
        positions = _episode_positions(series)
        target = (season, episode)
        if target not in positions:
            logger.warning(f"Episode {episode_key(season, episode)} not found in {series.id}")
            return progress

        clicked = positions.index(target)
        watched = dict(progress.watched)
        key = episode_key(season, episode)

        if not watched.get(key):
            for s, e in positions[: clicked + 1]:
                watched[episode_key(s, e)] = True
        elif any(watched.get(episode_key(s, e)) for s, e in positions[clicked + 1:]):
            watched = {
                episode_key(s, e): True
                for s, e in positions[: clicked + 1]
                if watched.get(episode_key(s, e))
            }
        else:
            watched = {k: True for k, v in watched.items() if v and k != key}

        return await self.update(series.id, SeriesProgress(watched=watched))

    async def mark_all_watched(self, series: Series) -> SeriesProgress:
        self._require(MediaKind.SERIES)
        watched = {episode_key(s, e): True for s, e in _episode_positions(series)}
        return await self.update(series.id, SeriesProgress(watched=watched))

    async def clear_watched(self, series_id: str) -> SeriesProgress:
        self._require(MediaKind.SERIES)
        return await self.update(series_id, SeriesProgress())
