"""Tests for watch progress coordination."""

import pytest

from mediasync.events import EventName
from mediasync.models import Episode, MediaKind, MovieProgress, Season, Series, SeriesProgress
from mediasync.sync import ProgressCoordinator, count_watched, is_complete, watch_fraction

SERIES_PROGRESS_PATH = "users/u1/series_progress"


def _series(*episode_counts):
    return Series(
        id="s1",
        title="Show",
        seasons=[
            Season(number=n, episodes=[Episode(f"Episode {e}") for e in range(1, count + 1)])
            for n, count in enumerate(episode_counts, start=1)
        ],
    )


@pytest.fixture
def series_progress(context):
    return ProgressCoordinator(MediaKind.SERIES, context)


@pytest.fixture
def movie_progress(context):
    return ProgressCoordinator(MediaKind.MOVIE, context)


class TestLastWriteWins:
    """Tests for progress reconciliation."""

    @pytest.mark.asyncio
    async def test_newer_remote_record_replaces_local(self, series_progress, cache, store):
        cache.set("series_progress", {"s1": {"watched": {"1-1": True}, "last_updated": 100}})
        await store.set_document(
            SERIES_PROGRESS_PATH, "s1", {"watched": {"1-1": True, "1-2": True}, "last_updated": 200}
        )

        record = await series_progress.get_progress("s1")

        assert record.watched == {"1-1": True, "1-2": True}
        assert cache.get("series_progress")["s1"]["last_updated"] == 200

    @pytest.mark.asyncio
    async def test_newer_local_record_is_kept(self, series_progress, cache, store):
        cache.set("series_progress", {"s1": {"watched": {"1-1": True}, "last_updated": 300}})
        await store.set_document(SERIES_PROGRESS_PATH, "s1", {"watched": {}, "last_updated": 200})

        record = await series_progress.get_progress("s1")

        assert record.watched == {"1-1": True}

    @pytest.mark.asyncio
    async def test_unknown_item_gets_empty_record(self, series_progress, cache):
        record = await series_progress.get_progress("nope")
        assert record == SeriesProgress()
        assert cache.get("series_progress") is None

    @pytest.mark.asyncio
    async def test_malformed_cached_records_are_skipped(self, series_progress, cache):
        cache.set(
            "series_progress",
            {
                "s1": "garbage",
                "s2": {"watched": {}, "last_updated": "yesterday"},
                "s3": {"watched": {"1-1": True}, "last_updated": 5},
            },
        )

        records = await series_progress.get_all(sync_from_cloud=False)

        assert list(records) == ["s3"]

    @pytest.mark.asyncio
    async def test_get_all_merges_remote_in_background(self, series_progress, cache, store, context):
        cache.set("series_progress", {"s1": {"watched": {"1-1": True}, "last_updated": 100}})
        await store.set_document(
            SERIES_PROGRESS_PATH, "s1", {"watched": {"1-1": True, "1-2": True}, "last_updated": 200}
        )
        await store.set_document(SERIES_PROGRESS_PATH, "s2", {"watched": {"2-1": True}, "last_updated": 5})
        events = []
        context.events.subscribe(EventName.PROGRESS_SYNCED, events.append)

        first = await series_progress.get_all()
        await context.tasks.drain()
        merged = await series_progress.get_all()

        assert set(first) == {"s1"}
        assert merged["s1"].watched == {"1-1": True, "1-2": True}
        assert merged["s2"].watched == {"2-1": True}
        assert len(events) == 1

    @pytest.mark.asyncio
    async def test_update_stamps_clock_and_replaces_remote(self, series_progress, store, clock):
        await store.set_document(SERIES_PROGRESS_PATH, "s1", {"watched": {"9-9": True}, "stale": 1})

        await series_progress.update("s1", SeriesProgress(watched={"1-1": True}))

        doc = store.documents(SERIES_PROGRESS_PATH)["s1"]
        assert doc == {"watched": {"1-1": True}, "last_updated": clock.now_ms()}

    @pytest.mark.asyncio
    async def test_delete_removes_both_copies(self, series_progress, store, cache):
        await series_progress.initialize("s1")
        await series_progress.delete("s1")
        assert cache.get("series_progress") == {}
        assert store.documents(SERIES_PROGRESS_PATH) == {}


class TestMovieProgress:
    """Tests for movie watched flags."""

    @pytest.mark.asyncio
    async def test_toggle_watched(self, movie_progress):
        assert (await movie_progress.toggle_watched("m1")).watched is True
        assert (await movie_progress.toggle_watched("m1")).watched is False

    @pytest.mark.asyncio
    async def test_watched_states(self, movie_progress):
        await movie_progress.set_watched("m1", True)
        await movie_progress.set_watched("m2", False)
        assert await movie_progress.watched_states(sync_from_cloud=False) == {"m1": True, "m2": False}

    @pytest.mark.asyncio
    async def test_movie_helpers_refuse_series_coordinator(self, series_progress):
        with pytest.raises(TypeError):
            await series_progress.set_watched("m1", True)


class TestToggleEpisode:
    """Tests for the episode toggle rules."""

    @pytest.mark.asyncio
    async def test_unwatched_marks_all_previous(self, series_progress):
        series = _series(3, 2)
        record = await series_progress.toggle_episode(series, 2, 1)
        assert record.watched == {"1-1": True, "1-2": True, "1-3": True, "2-1": True}

    @pytest.mark.asyncio
    async def test_watched_with_later_unmarks_later(self, series_progress):
        series = _series(3, 2)
        await series_progress.mark_all_watched(series)

        record = await series_progress.toggle_episode(series, 1, 2)

        assert record.watched == {"1-1": True, "1-2": True}

    @pytest.mark.asyncio
    async def test_last_watched_is_unmarked(self, series_progress):
        series = _series(3)
        await series_progress.toggle_episode(series, 1, 2)

        record = await series_progress.toggle_episode(series, 1, 2)

        assert record.watched == {"1-1": True}

    @pytest.mark.asyncio
    async def test_unknown_episode_is_ignored(self, series_progress, store):
        record = await series_progress.toggle_episode(_series(2), 5, 1)
        assert record.watched == {}
        assert store.calls["set_document"] == 0

    @pytest.mark.asyncio
    async def test_clear_watched(self, series_progress):
        series = _series(2)
        await series_progress.mark_all_watched(series)
        assert (await series_progress.clear_watched("s1")).watched == {}


class TestCompletion:
    """Tests for progress summaries."""

    def test_count_and_fraction(self):
        series = _series(2, 2)
        progress = SeriesProgress(watched={"1-1": True, "1-2": True, "2-1": False})
        assert count_watched(series, progress) == (2, 4)
        assert watch_fraction(series, progress) == 0.5

    def test_fraction_without_episodes(self):
        assert watch_fraction(Series(id="s", title="S"), SeriesProgress()) == 0.0
        assert watch_fraction(_series(2), None) == 0.0

    def test_is_complete(self):
        series = _series(1, 1)
        assert is_complete(series, SeriesProgress(watched={"1-1": True, "2-1": True}))
        assert not is_complete(series, SeriesProgress(watched={"1-1": True}))
        assert not is_complete(Series(id="s", title="S"), SeriesProgress())

    def test_movie_progress_defaults(self):
        assert MovieProgress.from_dict({}) == MovieProgress(watched=False, last_updated=0)
