"""Metadata lookup client for refreshing already-imported catalog items."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import httpx

from ..clock import Clock
from ..errors import MetadataError
from ..models import Episode, Season

logger = logging.getLogger(__name__)

IMAGE_BASE = "https://image.tmdb.org/t/p/w500"
DEFAULT_POSTER = "./assets/default.jpg"
ENDED_STATUSES = ("Ended", "Canceled")


@dataclass
class NextEpisode:
    season: int | None
    episode: int | None
    air_date: str | None = None
    name: str | None = None

    @property
    def key(self) -> str:
        """Identifier like ``S01E05`` used to avoid duplicate notifications."""
        return f"S{self.season or 0:02d}E{self.episode or 0:02d}"


@dataclass
class MovieMetadata:
    tmdb_id: int
    title: str
    year: str | None = None
    release_date: str | None = None
    poster: str = DEFAULT_POSTER
    poster_path: str | None = None
    backdrop_path: str | None = None
    overview: str = ""
    status: str = "Released"
    genres: list[str] = field(default_factory=list)
    rating: float = 0.0


@dataclass
class SeriesMetadata:
    tmdb_id: int
    title: str
    year: str | None = None
    poster: str = DEFAULT_POSTER
    poster_path: str | None = None
    backdrop_path: str | None = None
    description: str = ""
    status: str = ""
    genres: list[str] = field(default_factory=list)
    rating: float = 0.0
    seasons: list[Season] = field(default_factory=list)
    season_numbers: list[int] = field(default_factory=list)
    next_episode: NextEpisode | None = None


def _year(date_str: str | None) -> str | None:
    return date_str.split("-")[0] if date_str else None


def _poster(path: str | None) -> str:
    return f"{IMAGE_BASE}{path}" if path else DEFAULT_POSTER


def normalize_movie(tmdb_id: int, data: dict[str, Any]) -> MovieMetadata:
    """Normalize a TMDB ``movie/{id}`` response."""
    return MovieMetadata(
        tmdb_id=tmdb_id,
        title=data.get("title") or "Untitled",
        year=_year(data.get("release_date")),
        release_date=data.get("release_date") or None,
        poster=_poster(data.get("poster_path")),
        poster_path=data.get("poster_path"),
        backdrop_path=data.get("backdrop_path"),
        overview=data.get("overview") or "",
        status=data.get("status") or "Released",
        genres=[g["name"] for g in data.get("genres") or []],
        rating=data.get("vote_average") or 0.0,
    )


def normalize_series(tmdb_id: int, data: dict[str, Any]) -> SeriesMetadata:
    """Normalize a TMDB ``tv/{id}`` response.

    Canceled series are reported as "Ended"; everything else as
    "On Display". Specials (season 0) are dropped.
    """
    next_ep = data.get("next_episode_to_air")
    status = "Ended" if data.get("status") in ENDED_STATUSES else "On Display"
    return SeriesMetadata(
        tmdb_id=tmdb_id,
        title=data.get("name") or "Untitled",
        year=_year(data.get("first_air_date")),
        poster=_poster(data.get("poster_path")),
        poster_path=data.get("poster_path"),
        backdrop_path=data.get("backdrop_path"),
        description=data.get("overview") or "",
        status=status,
        genres=[g["name"] for g in data.get("genres") or []],
        rating=data.get("vote_average") or 0.0,
        season_numbers=sorted(
            s["season_number"]
            for s in data.get("seasons") or []
            if s.get("season_number", 0) > 0
        ),
        next_episode=(
            NextEpisode(
                season=next_ep.get("season_number"),
                episode=next_ep.get("episode_number"),
                air_date=next_ep.get("air_date"),
                name=next_ep.get("name"),
            )
            if next_ep
            else None
        ),
    )


def normalize_season_episodes(data: dict[str, Any], today: date) -> list[Episode]:
    """Keep only episodes that have already aired, titled like ``Ep. 3 - Name``."""
    episodes = []
    for ep in data.get("episodes") or []:
        air_date = ep.get("air_date")
        if not air_date:
            continue
        try:
            if date.fromisoformat(air_date) > today:
                continue
        except ValueError:
            continue
        number = ep.get("episode_number") or 0
        name = ep.get("name")
        title = f"Ep. {number} - {name}" if name else f"Episode {number}"
        episodes.append(Episode(title=title, air_date=air_date))
    return episodes


class MetadataClient(ABC):
    """Lookup of normalized metadata by external (TMDB) id.

    Each method returns None when the id is unknown and raises MetadataError
    when the service cannot answer.
    """

    @abstractmethod
    async def get_movie(self, tmdb_id: int) -> MovieMetadata | None:
        """Movie details."""

    @abstractmethod
    async def get_series_details(self, tmdb_id: int) -> SeriesMetadata | None:
        """Series details without episodes, including the next episode to air."""

    @abstractmethod
    async def get_series(self, tmdb_id: int) -> SeriesMetadata | None:
        """Series details with the full season/episode structure."""

    async def close(self) -> None:
        """Release any held resources."""


class TMDBClient(MetadataClient):
    """MetadataClient for The Movie Database v3 API."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.themoviedb.org/3",
        language: str = "en-US",
        timeout: float = 30.0,
        clock: Clock | None = None,
    ):
        """Initialize the TMDB client.

        Args:
            api_key: TMDB v3 API key.
            base_url: API base URL (a proxy may be used instead).
            language: Language for localized fields.
            timeout: Request timeout in seconds.
            clock: Clock deciding which episodes have aired.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.timeout = timeout
        self.clock = clock or Clock()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, endpoint: str) -> dict[str, Any] | None:
        client = await self._get_client()
        params = {"language": self.language}
        if self.api_key:
            params["api_key"] = self.api_key
        try:
            response = await client.get(f"/{endpoint}", params=params)
        except httpx.HTTPError as e:
            raise MetadataError(f"TMDB request {endpoint} failed: {e}") from e

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MetadataError(
                f"TMDB request {endpoint} returned HTTP {response.status_code}"
            ) from e
        return response.json()

    async def get_movie(self, tmdb_id: int) -> MovieMetadata | None:
        data = await self._get(f"movie/{tmdb_id}")
        return normalize_movie(tmdb_id, data) if data is not None else None

    async def get_series_details(self, tmdb_id: int) -> SeriesMetadata | None:
        data = await self._get(f"tv/{tmdb_id}")
        return normalize_series(tmdb_id, data) if data is not None else None

    async def _get_season(self, tmdb_id: int, number: int) -> Season:
        try:
            data = await self._get(f"tv/{tmdb_id}/season/{number}")
        except MetadataError as e:
            # One broken season should not hide the rest of the series
            logger.warning(f"Failed to load season {number} of {tmdb_id}: {e}")
            return Season(number=number)
        if data is None:
            return Season(number=number)
        return Season(
            number=number,
            episodes=normalize_season_episodes(data, self.clock.today()),
        )

    async def get_series(self, tmdb_id: int) -> SeriesMetadata | None:
        series = await self.get_series_details(tmdb_id)
        if series is None or not series.season_numbers:
            return series

        seasons = await asyncio.gather(
            *(self._get_season(tmdb_id, n) for n in series.season_numbers)
        )
        series.seasons = sorted(seasons, key=lambda s: s.number)
        return series
