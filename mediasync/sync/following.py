"""Following lists and release detection.

A followed movie produces one ``movie_release`` notification on its release
day; a followed series produces one ``series_episode_release`` notification
per new episode airing today. Each entry carries a marker
(``release_notified`` / ``last_episode_notified``) that prevents repeats.
"""

import logging
from typing import Any

from ..errors import MetadataError, NotAuthenticatedError, RemoteError
from ..metadata import MetadataClient
from ..models import (
    FollowingEntry,
    FollowingMovie,
    FollowingSeries,
    MediaKind,
    MovieReleaseNotification,
    SeriesEpisodeReleaseNotification,
    following_from_dict,
)
from .coordinator import CollectionCoordinator, SyncContext, log_remote_failure
from .notifications import NotificationCoordinator

logger = logging.getLogger(__name__)


class FollowingCoordinator(CollectionCoordinator):
    """Followed movies or series for one media kind."""

    def __init__(
        self,
        kind: MediaKind,
        context: SyncContext,
        notifications: NotificationCoordinator,
        metadata: MetadataClient | None = None,
    ):
        super().__init__(kind.following_key, context)
        self.kind = kind
        self.notifications = notifications
        self.metadata = metadata

    def _parse(self, records: list[dict[str, Any]]) -> list[FollowingEntry]:
        entries = []
        for data in records:
            if not isinstance(data, dict):
                logger.warning(f"Skipping non-object {self.name} entry")
                continue
            try:
                entries.append(following_from_dict(self.kind, data))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {self.name} entry: {e}")
        return entries

    def _load(self) -> list[FollowingEntry]:
        raw = self.cache.get(self.kind.following_key, [])
        return self._parse(raw) if isinstance(raw, list) else []

    def _store(self, entries: list[FollowingEntry]) -> bool:
        return self.cache.set(self.kind.following_key, [e.to_dict() for e in entries])

    async def get_all(self) -> list[FollowingEntry]:
        """Return followed entries.

        Outside guest sessions the remote list is authoritative and mirrored
        into the cache; the cached copy is used when the remote is
        unreachable. Without a signed-in user the list is empty.
        """
        if not self.remote_enabled:
            return self._load()

        try:
            records = await self.remote.list_all()
        except NotAuthenticatedError:
            return []
        except RemoteError as e:
            log_remote_failure(f"list of {self.name}", e)
            return self._load()

        entries = self._parse(records)
        self._store(entries)
        return entries

    async def add(self, entry: FollowingEntry) -> FollowingEntry:
        entries = [e for e in self._load() if e.id != entry.id]
        entries.append(entry)
        self._store(entries)
        await self._best_effort("add", lambda: self.remote.upsert(entry.id, entry.to_dict()))
        return entry

    async def remove(self, entry_id: str) -> None:
        self._store([e for e in self._load() if e.id != entry_id])
        await self._best_effort("remove", lambda: self.remote.delete(entry_id))

    async def is_following(self, entry_id: str) -> bool:
        return any(
            e.id == entry_id or str(e.tmdb_id) == entry_id for e in await self.get_all()
        )

    async def _mark(self, entries: list[FollowingEntry], entry: FollowingEntry, fields: dict[str, Any]) -> None:
        """Persist a notified marker locally, then merge it into the remote document."""
        self._store(entries)
        await self._best_effort(
            "mark notified", lambda: self.remote.upsert(entry.id, fields, merge=True)
        )

    async def check_movie_releases(self) -> int:
        """Notify for followed movies released today.

        Returns:
            Number of notifications created.
        """
        if self.kind is not MediaKind.MOVIE:
            raise TypeError(f"{self.name} does not hold movies")

        entries = await self.get_all()
        if not entries:
            return 0

        today = self.clock.today().isoformat()
        existing = {
            n.movie_id
            for n in await self.notifications.get_all(sync_from_cloud=False)
            if isinstance(n, MovieReleaseNotification)
        }

        created = 0
        for entry in entries:
            if not isinstance(entry, FollowingMovie):
                raise TypeError(f"Unexpected following entry {entry!r}")
            if not entry.release_date or entry.release_date[:10] != today:
                continue
            if entry.release_notified or entry.id in existing:
                continue

            await self.notifications.add(
                MovieReleaseNotification(
                    movie_id=entry.id,
                    title=entry.title,
                    poster=entry.poster,
                    year=entry.year,
                )
            )
            entry.release_notified = True
            await self._mark(entries, entry, {"release_notified": True})
            created += 1
            logger.info(f"Release notification created for movie {entry.title}")

        return created

    async def check_series_releases(self) -> int:
        """Notify for followed series whose next episode airs today.

        A metadata failure for one series is logged and the rest still run.

        Returns:
            Number of notifications created.
        """
        if self.kind is not MediaKind.SERIES:
            raise TypeError(f"{self.name} does not hold series")
        if self.metadata is None:
            logger.debug("No metadata client, skipping series release check")
            return 0

        entries = await self.get_all()
        today = self.clock.today().isoformat()
        created = 0

        for entry in entries:
            if not isinstance(entry, FollowingSeries):
                raise TypeError(f"Unexpected following entry {entry!r}")
            tmdb_id = entry.tmdb_id or entry.id
            try:
                details = await self.metadata.get_series_details(int(tmdb_id))
            except (MetadataError, ValueError) as e:
                logger.warning(f"Release check failed for series {entry.title}: {e}")
                continue

            next_ep = details.next_episode if details else None
            if next_ep is None or next_ep.air_date != today:
                continue
            if entry.last_episode_notified == next_ep.key:
                continue

            await self.notifications.add(
                SeriesEpisodeReleaseNotification(
                    series_id=entry.id,
                    series_name=entry.title,
                    poster=entry.poster,
                    season=next_ep.season or 0,
                    episode=next_ep.episode or 0,
                    episode_name=next_ep.name,
                    air_date=next_ep.air_date,
                )
            )
            entry.last_episode_notified = next_ep.key
            await self._mark(entries, entry, {"last_episode_notified": next_ep.key})
            created += 1
            logger.info(f"Episode notification created for {entry.title} {next_ep.key}")

        return created
