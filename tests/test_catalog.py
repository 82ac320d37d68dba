"""Tests for the catalog coordinator and the shared cache-first behavior."""

import pytest

from mediasync.errors import OperationFailedError, TransportError
from mediasync.events import EventName
from mediasync.models import MediaKind, Movie, Series
from mediasync.remote import InMemoryRemoteStore
from mediasync.sync import CatalogCoordinator, ProgressCoordinator, SyncContext, sort_by_order

MOVIES_PATH = "users/u1/movies"
ORDER_PATH = "users/u1/meta"


class FailingStore(InMemoryRemoteStore):
    """In-memory store whose writes always fail."""

    async def set_document(self, path, doc_id, data, merge=False):
        self.calls["set_document"] += 1
        raise TransportError("network down")

    async def delete_document(self, path, doc_id):
        raise TransportError("network down")


def _coordinators(context, kind=MediaKind.MOVIE):
    progress = ProgressCoordinator(kind, context)
    return CatalogCoordinator(kind, context, progress), progress


@pytest.fixture
def movies(context):
    catalog, _ = _coordinators(context)
    return catalog


class TestGetAll:
    """Tests for cache-first reads with once-per-session reconciliation."""

    @pytest.mark.asyncio
    async def test_returns_cache_immediately(self, movies, cache, store, context):
        cache.set("movies", [Movie(id="a", title="A").to_dict()])
        await store.set_document(MOVIES_PATH, "b", {"kind": "movie", "title": "B"})

        items = await movies.get_all()

        assert [i.id for i in items] == ["a"]
        assert context.tasks.pending == 1
        await context.tasks.drain()

    @pytest.mark.asyncio
    async def test_background_reconcile_replaces_cache_and_publishes(self, movies, context, store):
        await store.set_document(MOVIES_PATH, "b", {"kind": "movie", "title": "B"})
        events = []
        context.events.subscribe(EventName.CATALOG_SYNCED, events.append)

        await movies.get_all()
        await context.tasks.drain()

        assert [i.id for i in await movies.get_all()] == ["b"]
        assert len(events) == 1
        assert events[0].kind == "movie"
        assert events[0].source == "cloud"
        assert [i.title for i in events[0].data] == ["B"]

    @pytest.mark.asyncio
    async def test_concurrent_reads_fetch_once(self, movies, context, store):
        for _ in range(5):
            await movies.get_all()
        await context.tasks.drain()
        assert store.calls["list_documents"] == 1

    @pytest.mark.asyncio
    async def test_empty_remote_keeps_populated_cache(self, movies, cache, context):
        cache.set("movies", [Movie(id="a", title="A").to_dict()])
        await movies.get_all()
        await context.tasks.drain()
        assert [i.id for i in await movies.get_all()] == ["a"]

    @pytest.mark.asyncio
    async def test_sync_from_cloud_false_skips_remote(self, movies, context, store):
        await movies.get_all(sync_from_cloud=False)
        await context.tasks.drain()
        assert store.calls["list_documents"] == 0
        assert not movies.guard.reconciled_this_session

    @pytest.mark.asyncio
    async def test_reload_resets_guard(self, movies, context, store):
        await movies.get_all()
        await context.tasks.drain()

        assert context.guards.handle_page_load(reloaded=False) is False
        await movies.get_all()
        await context.tasks.drain()
        assert store.calls["list_documents"] == 1

        assert context.guards.handle_page_load(reloaded=True) is True
        await movies.get_all()
        await context.tasks.drain()
        assert store.calls["list_documents"] == 2

    @pytest.mark.asyncio
    async def test_guest_session_never_calls_remote(self, movies, context, session, store):
        session.set_ephemeral(True)
        await movies.get_all()
        await movies.add(Movie(id="x", title="X"))
        await context.tasks.drain()
        assert sum(store.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_signed_out_keeps_cache(self, movies, cache, context, user):
        user["id"] = None
        cache.set("movies", [Movie(id="a", title="A").to_dict()])
        await movies.get_all()
        await context.tasks.drain()
        assert [i.id for i in await movies.get_all()] == ["a"]

    @pytest.mark.asyncio
    async def test_reconcile_retried_after_sign_in(self, movies, context, store, user):
        await store.set_document(MOVIES_PATH, "m1", {"kind": "movie", "title": "Dune"})
        user["id"] = None
        await movies.get_all()
        await context.tasks.drain()
        assert not movies.guard.reconciled_this_session

        user["id"] = "u1"
        await movies.get_all()
        await context.tasks.drain()

        assert [i.id for i in await movies.get_all(sync_from_cloud=False)] == ["m1"]

    @pytest.mark.asyncio
    async def test_malformed_cached_records_are_skipped(self, movies, cache):
        cache.set(
            "movies",
            [
                "garbage",
                42,
                {"id": "bad", "kind": "series", "seasons": ["not-a-season"]},
                {"id": "m1", "kind": "movie", "title": "Dune"},
            ],
        )

        items = await movies.get_all(sync_from_cloud=False)

        assert [i.id for i in items] == ["m1"]

    @pytest.mark.asyncio
    async def test_no_reconcile_after_stop_accepting(self, movies, context, store):
        context.tasks.stop_accepting()
        await movies.get_all()
        await context.tasks.drain()
        assert store.calls["list_documents"] == 0


class TestMutations:
    """Tests for add, update and remove."""

    @pytest.mark.asyncio
    async def test_add_writes_cache_remote_order_and_progress(self, movies, context, store, cache):
        await movies.add(Movie(id="a", title="A"))

        assert [i.id for i in await movies.get_all(sync_from_cloud=False)] == ["a"]
        assert cache.get("movies_order") == ["a"]
        assert store.documents(MOVIES_PATH)["a"]["title"] == "A"
        assert store.documents(ORDER_PATH)["movies_order"] == {"order": ["a"]}
        assert store.documents("users/u1/movies_progress")["a"]["watched"] is False
        assert cache.get("movies_progress")["a"]["last_updated"] == context.clock.now_ms()

    @pytest.mark.asyncio
    async def test_add_wrong_kind_raises(self, movies):
        with pytest.raises(TypeError):
            await movies.add(Series(id="s", title="S"))

    @pytest.mark.asyncio
    async def test_add_survives_remote_failure(self, cache, clock):
        context = SyncContext(cache=cache, store=FailingStore(), user_id_provider=lambda: "u1", clock=clock)
        catalog, _ = _coordinators(context)

        await catalog.add(Movie(id="a", title="A"))

        assert [i.id for i in await catalog.get_all(sync_from_cloud=False)] == ["a"]

    @pytest.mark.asyncio
    async def test_add_fails_when_cache_and_remote_fail(self, cache, clock, monkeypatch):
        context = SyncContext(cache=cache, store=FailingStore(), user_id_provider=lambda: "u1", clock=clock)
        catalog, _ = _coordinators(context)
        monkeypatch.setattr(cache, "set", lambda key, value: False)

        with pytest.raises(OperationFailedError):
            await catalog.add(Movie(id="a", title="A"))

    @pytest.mark.asyncio
    async def test_update_replaces_record(self, movies, store):
        await movies.add(Movie(id="a", title="A"))
        await movies.update(Movie(id="a", title="A", status="Released", rating=8.1))

        item = await movies.get_by_id("a")
        assert item.status == "Released"
        assert store.documents(MOVIES_PATH)["a"]["rating"] == 8.1

    @pytest.mark.asyncio
    async def test_remove_cascades_to_progress_and_order(self, movies, store, cache):
        await movies.add(Movie(id="a", title="A"))
        await movies.add(Movie(id="b", title="B"))

        await movies.remove("a")

        assert [i.id for i in await movies.get_all(sync_from_cloud=False)] == ["b"]
        assert cache.get("movies_order") == ["b"]
        assert "a" not in cache.get("movies_progress")
        assert "a" not in store.documents(MOVIES_PATH)
        assert "a" not in store.documents("users/u1/movies_progress")
        assert store.documents(ORDER_PATH)["movies_order"] == {"order": ["b"]}

    @pytest.mark.asyncio
    async def test_save_all_counts_remote_writes(self, movies, store):
        stored = await movies.save_all([Movie(id="a", title="A"), Movie(id="b", title="B")])
        assert stored == 2
        assert set(store.documents(MOVIES_PATH)) == {"a", "b"}


class TestOrder:
    """Tests for display order handling."""

    @pytest.mark.asyncio
    async def test_order_is_completed_with_catalog(self, movies, cache):
        cache.set("movies", [Movie(id=i, title=i).to_dict() for i in ("A", "B", "C")])
        cache.set("movies_order", ["C", "A"])

        order = await movies.get_order(sync_from_cloud=False)

        assert order == ["C", "A", "B"]
        assert cache.get("movies_order") == ["C", "A", "B"]

    @pytest.mark.asyncio
    async def test_remote_order_merged_in_background(self, movies, cache, store, context):
        cache.set("movies", [Movie(id=i, title=i).to_dict() for i in ("A", "B", "C")])
        cache.set("movies_order", ["A", "B", "C"])
        await store.set_document(ORDER_PATH, "movies_order", {"order": ["C", "A"]})
        events = []
        context.events.subscribe(EventName.ORDER_SYNCED, events.append)

        await movies.get_order()
        await context.tasks.drain()

        assert cache.get("movies_order") == ["C", "A", "B"]
        assert events[0].data == ["C", "A", "B"]

    @pytest.mark.asyncio
    async def test_order_and_catalog_guards_are_independent(self, movies, context, store):
        await movies.get_all()
        await movies.get_order()
        await context.tasks.drain()
        assert store.calls["list_documents"] == 1
        assert store.calls["get_document"] == 1

    @pytest.mark.asyncio
    async def test_save_order(self, movies, cache, store):
        await movies.save_order(["b", "a"])
        assert cache.get("movies_order") == ["b", "a"]
        assert store.documents(ORDER_PATH)["movies_order"] == {"order": ["b", "a"]}

    def test_sort_by_order(self):
        items = [Movie(id="a", title="A"), Movie(id="b", title="B"), Movie(id="z", title="Z")]
        assert [i.id for i in sort_by_order(items, ["b", "a"])] == ["b", "a", "z"]


class TestPull:
    """Tests for the manual pull."""

    @pytest.mark.asyncio
    async def test_pull_ignores_guard(self, movies, store, context):
        movies.guard.reconciled_this_session = True
        await store.set_document(MOVIES_PATH, "b", {"kind": "movie", "title": "B"})

        received = await movies.pull()

        assert received == 1
        assert [i.id for i in await movies.get_all(sync_from_cloud=False)] == ["b"]

    @pytest.mark.asyncio
    async def test_pull_in_guest_mode_is_noop(self, movies, session, store):
        session.set_ephemeral(True)
        assert await movies.pull() == 0
        assert sum(store.calls.values()) == 0
