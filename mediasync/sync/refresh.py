"""Refresh of a single catalog item from the metadata service."""

import logging
from dataclasses import dataclass

from ..events import EventBus, EventName, SyncEvent
from ..metadata import MetadataClient
from ..models import (
    CatalogItem,
    MediaKind,
    Movie,
    Season,
    Series,
    SeriesEpisodeBatchNotification,
    SeriesProgress,
    parse_episode_key,
)
from .catalog import CatalogCoordinator
from .notifications import NotificationCoordinator
from .progress import ProgressCoordinator

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    """Outcome of one refresh.

    ``updated`` means metadata was found and applied; ``changed`` means the
    stored record actually differs afterwards.
    """

    item_id: str
    updated: bool = False
    changed: bool = False
    added_episodes: int = 0
    item: CatalogItem | None = None


def highest_watched_episodes(progress: SeriesProgress | None) -> dict[int, int]:
    """Highest watched episode number per season."""
    highest: dict[int, int] = {}
    if progress is None:
        return highest
    for key, value in progress.watched.items():
        parsed = parse_episode_key(key)
        if not value or parsed is None:
            continue
        season, episode = parsed
        highest[season] = max(highest.get(season, 0), episode)
    return highest


def count_new_episodes(
    local: list[Season], remote: list[Season], progress: SeriesProgress | None
) -> list[tuple[int, int]]:
    """Episodes present remotely beyond what was known locally.

    Per season, the known count is the larger of the local episode count and
    the highest episode the user has watched, so episodes missing from a
    stale local structure are not reported as new.
    """
    local_counts = {season.number: len(season.episodes) for season in local}
    watched = highest_watched_episodes(progress)
    new = []
    for season in remote:
        known = max(local_counts.get(season.number, 0), watched.get(season.number, 0))
        for number in range(known + 1, len(season.episodes) + 1):
            new.append((season.number, number))
    return new


class MetadataRefresher:
    """Pulls fresh metadata for one item and stores it through the catalog.

    The item's title and the user's progress are never modified. Metadata
    errors propagate so the caller can retry.
    """

    def __init__(
        self,
        catalogs: dict[MediaKind, CatalogCoordinator],
        progress: dict[MediaKind, ProgressCoordinator],
        metadata: MetadataClient,
        events: EventBus,
        notifications: NotificationCoordinator | None = None,
    ):
        self.catalogs = catalogs
        self.progress = progress
        self.metadata = metadata
        self.events = events
        self.notifications = notifications

    async def refresh(self, item: CatalogItem) -> RefreshResult:
        if isinstance(item, Movie):
            return await self.refresh_movie(item.id)
        if isinstance(item, Series):
            return await self.refresh_series(item.id)
        raise TypeError(f"Unsupported catalog item: {item!r}")

    async def _persist(self, kind: MediaKind, local: CatalogItem, updated: CatalogItem) -> bool:
        changed = updated.to_dict() != local.to_dict()
        if changed:
            await self.catalogs[kind].update(updated)
        self.events.publish(
            SyncEvent(EventName.ITEM_REFRESHED, data=updated, kind=kind.value, source="metadata")
        )
        return changed

    async def refresh_movie(self, movie_id: str) -> RefreshResult:
        local = await self.catalogs[MediaKind.MOVIE].get_by_id(movie_id)
        if not isinstance(local, Movie):
            return RefreshResult(movie_id)

        try:
            tmdb_id = int(local.tmdb_id or local.id)
        except ValueError:
            logger.debug(f"Movie {movie_id} has no metadata id")
            return RefreshResult(movie_id)

        remote = await self.metadata.get_movie(tmdb_id)
        if remote is None:
            return RefreshResult(movie_id)

        updated = Movie(
            id=local.id,
            title=local.title,
            tmdb_id=local.tmdb_id,
            year=remote.year or local.year,
            poster=remote.poster or local.poster,
            genres=remote.genres or local.genres,
            rating=remote.rating or local.rating,
            status=remote.status or "Released",
            overview=remote.overview or local.overview,
            release_date=remote.release_date or local.release_date,
            poster_path=remote.poster_path or local.poster_path,
            backdrop_path=remote.backdrop_path or local.backdrop_path,
            added_at=local.added_at,
        )
        changed = await self._persist(MediaKind.MOVIE, local, updated)
        return RefreshResult(movie_id, updated=True, changed=changed, item=updated)

    async def refresh_series(self, series_id: str) -> RefreshResult:
        local = await self.catalogs[MediaKind.SERIES].get_by_id(series_id)
        if not isinstance(local, Series):
            return RefreshResult(series_id)

        try:
            tmdb_id = int(local.tmdb_id or local.id)
        except ValueError:
            logger.debug(f"Series {series_id} has no metadata id")
            return RefreshResult(series_id)

        remote = await self.metadata.get_series(tmdb_id)
        if remote is None:
            return RefreshResult(series_id)

        all_progress = await self.progress[MediaKind.SERIES].get_all(sync_from_cloud=False)
        progress = all_progress.get(series_id)
        new_episodes = count_new_episodes(local.seasons, remote.seasons, progress)

        updated = Series(
            id=local.id,
            title=local.title,
            tmdb_id=local.tmdb_id,
            year=remote.year or local.year,
            poster=remote.poster or local.poster,
            genres=remote.genres or local.genres,
            rating=remote.rating or local.rating,
            status=remote.status or local.status,
            description=remote.description or local.description,
            seasons=remote.seasons,
            added_at=local.added_at,
        )
        changed = await self._persist(MediaKind.SERIES, local, updated)

        # A first import of the season structure is not "new episodes"
        if new_episodes and local.seasons and self.notifications is not None:
            await self.notifications.add(
                SeriesEpisodeBatchNotification(
                    series_id=local.id,
                    series_name=local.title,
                    poster=updated.poster,
                    count=len(new_episodes),
                    episodes=new_episodes,
                )
            )
        if new_episodes:
            logger.info(f"{local.title}: {len(new_episodes)} new episodes")

        return RefreshResult(
            series_id,
            updated=True,
            changed=changed,
            added_episodes=len(new_episodes),
            item=updated,
        )
