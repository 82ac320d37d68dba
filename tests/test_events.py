"""Tests for the event bus, background tasks and session guards."""

import asyncio

import pytest

from mediasync.events import EventBus, EventName, SyncEvent
from mediasync.sync import BackgroundTasks, SessionGuards


class TestEventBus:
    """Tests for EventBus."""

    def test_handlers_receive_events_in_order(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventName.CATALOG_SYNCED, lambda e: received.append(("first", e.kind)))
        bus.subscribe(EventName.CATALOG_SYNCED, lambda e: received.append(("second", e.kind)))

        bus.publish(SyncEvent(EventName.CATALOG_SYNCED, data=[], kind="movie"))

        assert received == [("first", "movie"), ("second", "movie")]

    def test_other_events_not_delivered(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventName.ORDER_SYNCED, received.append)
        bus.publish(SyncEvent(EventName.PROGRESS_SYNCED))
        assert received == []

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(EventName.ORDER_SYNCED, received.append)
        unsubscribe()
        unsubscribe()
        bus.publish(SyncEvent(EventName.ORDER_SYNCED))
        assert received == []
        assert bus.handler_count(EventName.ORDER_SYNCED) == 0

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(EventName.ITEM_REFRESHED, broken)
        bus.subscribe(EventName.ITEM_REFRESHED, received.append)

        bus.publish(SyncEvent(EventName.ITEM_REFRESHED))

        assert len(received) == 1


class TestBackgroundTasks:
    """Tests for BackgroundTasks."""

    @pytest.mark.asyncio
    async def test_spawn_and_drain(self):
        tasks = BackgroundTasks()
        done = []

        async def work():
            await asyncio.sleep(0)
            done.append(True)

        tasks.spawn(work(), name="work")
        assert tasks.pending == 1
        await tasks.drain()
        assert done == [True]
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_failed_task_is_logged_not_raised(self):
        tasks = BackgroundTasks()

        async def broken():
            raise RuntimeError("boom")

        tasks.spawn(broken(), name="broken")
        await tasks.drain()
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_refuses_after_stop_accepting(self):
        tasks = BackgroundTasks()
        tasks.stop_accepting()

        async def work():
            return 1

        assert tasks.spawn(work()) is None
        assert tasks.pending == 0

        tasks.resume()
        assert tasks.spawn(work()) is not None
        await tasks.drain()

    @pytest.mark.asyncio
    async def test_stop_accepting_does_not_cancel_running_work(self):
        tasks = BackgroundTasks()
        release = asyncio.Event()
        done = []

        async def work():
            await release.wait()
            done.append(True)

        tasks.spawn(work())
        await asyncio.sleep(0)
        tasks.stop_accepting()
        release.set()
        await tasks.drain()

        assert done == [True]


class TestSessionGuards:
    """Tests for SessionGuards."""

    def test_guard_shared_by_name(self):
        guards = SessionGuards()
        assert guards.get("movies") is guards.get("movies")
        assert guards.get("movies") is not guards.get("series")

    def test_only_reload_resets(self):
        guards = SessionGuards()
        guards.get("movies").reconciled_this_session = True

        assert guards.handle_page_load(reloaded=False) is False
        assert guards.get("movies").reconciled_this_session

        assert guards.handle_page_load(reloaded=True) is True
        assert not guards.get("movies").reconciled_this_session
