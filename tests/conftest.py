"""Shared fixtures for mediasync tests."""

from datetime import date

import pytest

from mediasync.cache import EphemeralBackend, LocalCache, SessionMode
from mediasync.clock import MS_PER_DAY, Clock
from mediasync.metadata import MetadataClient
from mediasync.remote import InMemoryRemoteStore
from mediasync.sync import SyncContext

# 2026-03-01T00:00:00Z
START_MS = 1772323200000


class FakeClock(Clock):
    """Clock that only moves when told to; sleeping is recorded, not waited."""

    def __init__(self, now_ms: int = START_MS, today: date = date(2026, 3, 1)):
        self.now = now_ms
        self.current_date = today
        self.sleeps: list[float] = []

    def now_ms(self) -> int:
        return self.now

    def today(self) -> date:
        return self.current_date

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def advance_days(self, days: float) -> None:
        self.now += int(days * MS_PER_DAY)


class FakeMetadata(MetadataClient):
    """MetadataClient serving canned responses keyed by TMDB id."""

    def __init__(self, movies=None, series=None, details=None):
        self.movies = movies or {}
        self.series = series or {}
        self.details = details or {}
        self.calls: list[tuple[str, int]] = []

    async def get_movie(self, tmdb_id):
        self.calls.append(("movie", tmdb_id))
        return self.movies.get(tmdb_id)

    async def get_series_details(self, tmdb_id):
        self.calls.append(("details", tmdb_id))
        result = self.details.get(tmdb_id)
        if isinstance(result, Exception):
            raise result
        return result

    async def get_series(self, tmdb_id):
        self.calls.append(("series", tmdb_id))
        return self.series.get(tmdb_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return SessionMode()


@pytest.fixture
def cache(session):
    return LocalCache(session, EphemeralBackend(), EphemeralBackend())


@pytest.fixture
def store():
    return InMemoryRemoteStore()


@pytest.fixture
def user():
    """Mutable holder for the signed-in user id."""
    return {"id": "u1"}


@pytest.fixture
def context(cache, store, clock, user):
    return SyncContext(
        cache=cache,
        store=store,
        user_id_provider=lambda: user["id"],
        clock=clock,
    )
