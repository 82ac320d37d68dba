"""Pure conflict resolution between local and remote records."""

from dataclasses import dataclass
from typing import Iterable

from ..models import ProgressRecord

LOCAL = "local"
REMOTE = "remote"
NONE = "none"


@dataclass
class Resolution:
    record: ProgressRecord | None
    winner: str  # "local", "remote" or "none"


def resolve_progress(
    local: ProgressRecord | None, remote: ProgressRecord | None
) -> Resolution:
    """Last-write-wins by ``last_updated``.

    A missing timestamp counts as 0. Equal timestamps keep the local record.
    """
    if local is None and remote is None:
        return Resolution(None, NONE)
    if remote is None:
        return Resolution(local, LOCAL)
    if local is None:
        return Resolution(remote, REMOTE)

    if (local.last_updated or 0) >= (remote.last_updated or 0):
        return Resolution(local, LOCAL)
    return Resolution(remote, REMOTE)


def merge_progress_maps(
    local: dict[str, ProgressRecord], remote: dict[str, ProgressRecord]
) -> tuple[dict[str, ProgressRecord], bool]:
    """Resolve every id present on either side.

    Returns:
        Tuple of (merged map, whether any local record was replaced or added).
    """
    merged = dict(local)
    changed = False
    for item_id, remote_record in remote.items():
        resolution = resolve_progress(local.get(item_id), remote_record)
        if resolution.winner == REMOTE:
            merged[item_id] = resolution.record
            changed = True
    return merged, changed


def merge_order(remote: list[str], local: list[str]) -> list[str]:
    """Union-append merge of two order lists.

    The remote list is the base when non-empty, otherwise the local one;
    ids only known locally follow in their local order.
    """
    base = remote if remote else local
    merged: list[str] = []
    seen: set[str] = set()
    for item_id in list(base) + list(local):
        if item_id not in seen:
            seen.add(item_id)
            merged.append(item_id)
    return merged


def complete_order(order: list[str], catalog_ids: Iterable[str]) -> list[str]:
    """Make an order cover every catalog id exactly once.

    Duplicates collapse to their first position; catalog ids missing from
    the order are appended in catalog order. Ids no longer in the catalog
    are kept.
    """
    completed: list[str] = []
    seen: set[str] = set()
    for item_id in list(order) + list(catalog_ids):
        if item_id not in seen:
            seen.add(item_id)
            completed.append(item_id)
    return completed
