"""Tests for conflict resolution and notification retention."""

from mediasync.clock import MS_PER_DAY
from mediasync.models import MovieProgress, MovieReleaseNotification, SeriesProgress
from mediasync.sync import (
    RetentionPolicy,
    complete_order,
    merge_order,
    merge_progress_maps,
    resolve_progress,
)


class TestResolveProgress:
    """Tests for last-write-wins progress resolution."""

    def test_newer_remote_wins(self):
        local = SeriesProgress(watched={"1-1": True}, last_updated=100)
        remote = SeriesProgress(watched={"1-1": True, "1-2": True}, last_updated=200)

        resolution = resolve_progress(local, remote)

        assert resolution.winner == "remote"
        assert resolution.record.watched == {"1-1": True, "1-2": True}

    def test_newer_local_wins(self):
        local = MovieProgress(watched=True, last_updated=300)
        remote = MovieProgress(watched=False, last_updated=200)

        resolution = resolve_progress(local, remote)

        assert resolution.winner == "local"
        assert resolution.record.watched is True

    def test_tie_keeps_local(self):
        local = MovieProgress(watched=True, last_updated=100)
        remote = MovieProgress(watched=False, last_updated=100)
        assert resolve_progress(local, remote).winner == "local"

    def test_missing_timestamp_counts_as_zero(self):
        local = MovieProgress(watched=True, last_updated=0)
        remote = MovieProgress(watched=False, last_updated=1)
        assert resolve_progress(local, remote).winner == "remote"

    def test_one_side_missing(self):
        record = MovieProgress(watched=True, last_updated=5)
        assert resolve_progress(record, None).winner == "local"
        assert resolve_progress(None, record).winner == "remote"
        none = resolve_progress(None, None)
        assert none.winner == "none"
        assert none.record is None

    def test_merge_maps_reports_changes(self):
        local = {"a": MovieProgress(True, 10), "b": MovieProgress(False, 50)}
        remote = {"a": MovieProgress(False, 20), "b": MovieProgress(True, 40), "c": MovieProgress(True, 1)}

        merged, changed = merge_progress_maps(local, remote)

        assert changed is True
        assert merged["a"].watched is False
        assert merged["b"].watched is False
        assert merged["c"].watched is True

    def test_merge_maps_without_remote_winner(self):
        local = {"a": MovieProgress(True, 10)}
        merged, changed = merge_progress_maps(local, {"a": MovieProgress(False, 10)})
        assert changed is False
        assert merged == local


class TestOrderMerge:
    """Tests for order merging and completion."""

    def test_remote_is_base_with_local_extras_appended(self):
        assert merge_order(["c", "a"], ["a", "b", "c", "d"]) == ["c", "a", "b", "d"]

    def test_empty_remote_uses_local(self):
        assert merge_order([], ["b", "a"]) == ["b", "a"]

    def test_duplicates_removed(self):
        assert merge_order(["a", "a", "b"], ["b", "b"]) == ["a", "b"]

    def test_complete_appends_missing_catalog_ids(self):
        assert complete_order(["c", "a"], ["a", "b", "c"]) == ["c", "a", "b"]

    def test_complete_keeps_every_id_once(self):
        order = complete_order(["b", "b", "x"], ["a", "b"])
        assert order == ["b", "x", "a"]
        assert len(order) == len(set(order))


def _notification(n, timestamp):
    return MovieReleaseNotification(id=f"n{n}", timestamp=timestamp, movie_id=f"m{n}")


class TestRetentionPolicy:
    """Tests for notification age and count bounds."""

    def test_drops_entries_older_than_max_age(self):
        now = 100 * MS_PER_DAY
        items = [
            _notification(1, now),
            _notification(2, now - 10 * MS_PER_DAY),
            _notification(3, now - 40 * MS_PER_DAY),
        ]

        result = RetentionPolicy().apply(items, now)

        assert {n.id for n in result.kept} == {"n1", "n2"}
        assert [n.id for n in result.expired] == ["n3"]
        assert result.changed

    def test_exactly_max_age_is_kept(self):
        now = 100 * MS_PER_DAY
        result = RetentionPolicy().apply([_notification(1, now - 30 * MS_PER_DAY)], now)
        assert len(result.kept) == 1
        assert not result.changed

    def test_count_bound_keeps_newest(self):
        now = 100 * MS_PER_DAY
        items = [_notification(i, now - i * 1000) for i in range(160)]

        result = RetentionPolicy().apply(items, now)

        assert len(result.kept) == 150
        assert len(result.evicted) == 10
        assert {n.id for n in result.evicted} == {f"n{i}" for i in range(150, 160)}

    def test_custom_bounds(self):
        policy = RetentionPolicy(max_age_days=1, max_count=2)
        now = 10 * MS_PER_DAY
        items = [_notification(i, now - i) for i in range(5)]
        result = policy.apply(items, now)
        assert [n.id for n in result.kept] == ["n1", "n0"]
