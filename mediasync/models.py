"""Data model for the media tracker.

Records serialize to plain dicts so the same shape is stored as JSON in the
local cache and as documents in the remote store. All timestamps are integer
epoch milliseconds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MediaKind(Enum):
    """The two kinds of catalog entry."""

    MOVIE = "movie"
    SERIES = "series"

    @property
    def catalog_key(self) -> str:
        return "movies" if self is MediaKind.MOVIE else "series"

    @property
    def order_key(self) -> str:
        return f"{self.catalog_key}_order"

    @property
    def progress_key(self) -> str:
        return f"{self.catalog_key}_progress"

    @property
    def following_key(self) -> str:
        return f"following_{self.catalog_key}"

    @property
    def sync_meta_key(self) -> str:
        return f"{self.catalog_key}_sync_meta"


# Remote collection holding the per-kind order documents
META_COLLECTION = "meta"
NOTIFICATIONS_KEY = "notifications"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass
class Episode:
    title: str
    air_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "air_date": self.air_date}

    @classmethod
    def from_dict(cls, data: Any) -> "Episode":
        if isinstance(data, str):
            return cls(title=data)
        return cls(
            title=data.get("title") or data.get("name") or "",
            air_date=data.get("air_date"),
        )


@dataclass
class Season:
    number: int
    episodes: list[Episode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "episodes": [ep.to_dict() for ep in self.episodes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Season":
        return cls(
            number=int(data.get("number", 0)),
            episodes=[Episode.from_dict(ep) for ep in data.get("episodes") or []],
        )


@dataclass
class Movie:
    """A movie in the user's catalog."""

    id: str
    title: str
    tmdb_id: int | None = None
    year: str | None = None
    poster: str | None = None
    genres: list[str] = field(default_factory=list)
    rating: float = 0.0
    status: str = ""
    overview: str = ""
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    added_at: int | None = None

    kind = MediaKind.MOVIE

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "title": self.title,
            "tmdb_id": self.tmdb_id,
            "year": self.year,
            "poster": self.poster,
            "genres": list(self.genres),
            "rating": self.rating,
            "status": self.status,
            "overview": self.overview,
            "release_date": self.release_date,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Movie":
        year = data.get("year")
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            tmdb_id=data.get("tmdb_id"),
            year=str(year) if year is not None else None,
            poster=data.get("poster"),
            genres=list(data.get("genres") or []),
            rating=data.get("rating") or 0.0,
            status=data.get("status") or "",
            overview=data.get("overview") or "",
            release_date=data.get("release_date"),
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            added_at=data.get("added_at"),
        )


@dataclass
class Series:
    """A series in the user's catalog, with its season/episode structure."""

    id: str
    title: str
    tmdb_id: int | None = None
    year: str | None = None
    poster: str | None = None
    genres: list[str] = field(default_factory=list)
    rating: float = 0.0
    status: str = ""
    description: str = ""
    seasons: list[Season] = field(default_factory=list)
    added_at: int | None = None

    kind = MediaKind.SERIES

    @property
    def total_episodes(self) -> int:
        return sum(len(season.episodes) for season in self.seasons)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "title": self.title,
            "tmdb_id": self.tmdb_id,
            "year": self.year,
            "poster": self.poster,
            "genres": list(self.genres),
            "rating": self.rating,
            "status": self.status,
            "description": self.description,
            "seasons": [season.to_dict() for season in self.seasons],
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Series":
        year = data.get("year")
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            tmdb_id=data.get("tmdb_id"),
            year=str(year) if year is not None else None,
            poster=data.get("poster"),
            genres=list(data.get("genres") or []),
            rating=data.get("rating") or 0.0,
            status=data.get("status") or "",
            description=data.get("description") or "",
            seasons=[Season.from_dict(s) for s in data.get("seasons") or []],
            added_at=data.get("added_at"),
        )


CatalogItem = Movie | Series


def catalog_item_from_dict(
    data: dict[str, Any], default_kind: MediaKind | None = None
) -> CatalogItem:
    """Build a Movie or Series from its dict form.

    Records without a ``kind`` field fall back to ``default_kind``.
    """
    raw_kind = data.get("kind") or (default_kind.value if default_kind else None)
    if raw_kind == MediaKind.MOVIE.value:
        return Movie.from_dict(data)
    if raw_kind == MediaKind.SERIES.value:
        return Series.from_dict(data)
    raise ValueError(f"Unknown catalog item kind: {raw_kind!r}")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def episode_key(season: int, episode: int) -> str:
    """Key of an episode in a series progress map, e.g. ``"1-3"``."""
    return f"{season}-{episode}"


def parse_episode_key(key: str) -> tuple[int, int] | None:
    """Inverse of episode_key; returns None for malformed keys."""
    parts = key.split("-")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


@dataclass
class MovieProgress:
    watched: bool = False
    last_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"watched": self.watched, "last_updated": self.last_updated}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MovieProgress":
        return cls(
            watched=bool(data.get("watched", False)),
            last_updated=int(data.get("last_updated") or 0),
        )


@dataclass
class SeriesProgress:
    watched: dict[str, bool] = field(default_factory=dict)
    last_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"watched": dict(self.watched), "last_updated": self.last_updated}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeriesProgress":
        watched = data.get("watched")
        return cls(
            watched=dict(watched) if isinstance(watched, dict) else {},
            last_updated=int(data.get("last_updated") or 0),
        )


ProgressRecord = MovieProgress | SeriesProgress


def progress_from_dict(kind: MediaKind, data: dict[str, Any]) -> ProgressRecord:
    if kind is MediaKind.MOVIE:
        return MovieProgress.from_dict(data)
    return SeriesProgress.from_dict(data)


def empty_progress(kind: MediaKind) -> ProgressRecord:
    if kind is MediaKind.MOVIE:
        return MovieProgress()
    return SeriesProgress()


# ---------------------------------------------------------------------------
# Following
# ---------------------------------------------------------------------------


@dataclass
class FollowingMovie:
    """A movie the user wants a release notification for."""

    id: str
    title: str
    tmdb_id: int | None = None
    year: str | None = None
    poster: str | None = None
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_notified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tmdb_id": self.tmdb_id,
            "year": self.year,
            "poster": self.poster,
            "release_date": self.release_date,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "release_notified": self.release_notified,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FollowingMovie":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            tmdb_id=data.get("tmdb_id"),
            year=data.get("year"),
            poster=data.get("poster"),
            release_date=data.get("release_date"),
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            release_notified=bool(data.get("release_notified", False)),
        )


@dataclass
class FollowingSeries:
    """A series the user wants new-episode notifications for."""

    id: str
    title: str
    tmdb_id: int | None = None
    year: str | None = None
    poster: str | None = None
    status: str = ""
    genres: list[str] = field(default_factory=list)
    rating: float = 0.0
    last_episode_notified: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tmdb_id": self.tmdb_id,
            "year": self.year,
            "poster": self.poster,
            "status": self.status,
            "genres": list(self.genres),
            "rating": self.rating,
            "last_episode_notified": self.last_episode_notified,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FollowingSeries":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            tmdb_id=data.get("tmdb_id"),
            year=data.get("year"),
            poster=data.get("poster"),
            status=data.get("status") or "",
            genres=list(data.get("genres") or []),
            rating=data.get("rating") or 0.0,
            last_episode_notified=data.get("last_episode_notified"),
        )


FollowingEntry = FollowingMovie | FollowingSeries


def following_from_dict(kind: MediaKind, data: dict[str, Any]) -> FollowingEntry:
    if kind is MediaKind.MOVIE:
        return FollowingMovie.from_dict(data)
    return FollowingSeries.from_dict(data)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationType(Enum):
    MOVIE_RELEASE = "movie_release"
    SERIES_EPISODE_RELEASE = "series_episode_release"
    SERIES_EPISODE_BATCH = "series_episode_batch"


@dataclass
class Notification(ABC):
    """Common fields of every notification variant.

    An empty ``id`` or a zero ``timestamp`` means "not stamped yet"; the
    notification coordinator fills both in on insert.
    """

    id: str = ""
    timestamp: int = 0
    read: bool = False

    type = None  # type: NotificationType | None

    def _base_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "read": self.read,
        }

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Serialize the notification, including its ``type``."""


@dataclass
class MovieReleaseNotification(Notification):
    movie_id: str = ""
    title: str = ""
    poster: str | None = None
    year: str | None = None

    type = NotificationType.MOVIE_RELEASE

    def to_dict(self) -> dict[str, Any]:
        data = self._base_dict()
        data.update(
            movie_id=self.movie_id,
            title=self.title,
            poster=self.poster,
            year=self.year,
        )
        return data


@dataclass
class SeriesEpisodeReleaseNotification(Notification):
    series_id: str = ""
    series_name: str = ""
    poster: str | None = None
    season: int = 0
    episode: int = 0
    episode_name: str | None = None
    air_date: str | None = None

    type = NotificationType.SERIES_EPISODE_RELEASE

    def to_dict(self) -> dict[str, Any]:
        data = self._base_dict()
        data.update(
            series_id=self.series_id,
            series_name=self.series_name,
            poster=self.poster,
            season=self.season,
            episode=self.episode,
            episode_name=self.episode_name,
            air_date=self.air_date,
        )
        return data


@dataclass
class SeriesEpisodeBatchNotification(Notification):
    series_id: str = ""
    series_name: str = ""
    poster: str | None = None
    count: int = 0
    episodes: list[tuple[int, int]] = field(default_factory=list)

    type = NotificationType.SERIES_EPISODE_BATCH

    def to_dict(self) -> dict[str, Any]:
        data = self._base_dict()
        data.update(
            series_id=self.series_id,
            series_name=self.series_name,
            poster=self.poster,
            count=self.count,
            episodes=[[season, episode] for season, episode in self.episodes],
        )
        return data


AnyNotification = (
    MovieReleaseNotification
    | SeriesEpisodeReleaseNotification
    | SeriesEpisodeBatchNotification
)


def notification_from_dict(data: dict[str, Any]) -> AnyNotification:
    """Build a notification from its dict form.

    A missing ``read`` flag is read as unread.
    """
    common = {
        "id": str(data.get("id") or ""),
        "timestamp": int(data.get("timestamp") or 0),
        "read": bool(data.get("read", False)),
    }
    raw_type = data.get("type")

    if raw_type == NotificationType.MOVIE_RELEASE.value:
        return MovieReleaseNotification(
            movie_id=str(data.get("movie_id", "")),
            title=data.get("title", ""),
            poster=data.get("poster"),
            year=data.get("year"),
            **common,
        )
    if raw_type == NotificationType.SERIES_EPISODE_RELEASE.value:
        return SeriesEpisodeReleaseNotification(
            series_id=str(data.get("series_id", "")),
            series_name=data.get("series_name", ""),
            poster=data.get("poster"),
            season=int(data.get("season") or 0),
            episode=int(data.get("episode") or 0),
            episode_name=data.get("episode_name"),
            air_date=data.get("air_date"),
            **common,
        )
    if raw_type == NotificationType.SERIES_EPISODE_BATCH.value:
        return SeriesEpisodeBatchNotification(
            series_id=str(data.get("series_id", "")),
            series_name=data.get("series_name", ""),
            poster=data.get("poster"),
            count=int(data.get("count") or 0),
            episodes=[(int(s), int(e)) for s, e in data.get("episodes") or []],
            **common,
        )
    raise ValueError(f"Unknown notification type: {raw_type!r}")


# ---------------------------------------------------------------------------
# Smart-sync bookkeeping
# ---------------------------------------------------------------------------


@dataclass
class SyncMeta:
    """Per-entity refresh bookkeeping, never shown to the user."""

    last_attempt: int | None = None
    last_success: int | None = None
    failure_count: int = 0
    status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_attempt": self.last_attempt,
            "last_success": self.last_success,
            "failure_count": self.failure_count,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncMeta":
        return cls(
            last_attempt=data.get("last_attempt"),
            last_success=data.get("last_success"),
            failure_count=int(data.get("failure_count") or 0),
            status=data.get("status") or "",
        )


@dataclass
class SyncRunRecord:
    """Summary of the last scheduler run, for diagnostics only."""

    executed_at: int
    synced: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "executed_at": self.executed_at,
            "synced": self.synced,
            "skipped": self.skipped,
            "errors": self.errors,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncRunRecord":
        return cls(
            executed_at=int(data.get("executed_at") or 0),
            synced=int(data.get("synced") or 0),
            skipped=int(data.get("skipped") or 0),
            errors=int(data.get("errors") or 0),
        )
