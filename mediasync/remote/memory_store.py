"""In-process document store for offline runs and tests."""

import copy
from collections import Counter, defaultdict
from typing import Any

from .base import RemoteStore


class InMemoryRemoteStore(RemoteStore):
    """Dict-backed RemoteStore.

    ``calls`` counts invocations per method name so callers can assert how
    many remote round trips an operation made.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.calls: Counter = Counter()

    async def list_documents(self, path: str) -> dict[str, dict[str, Any]]:
        self.calls["list_documents"] += 1
        return copy.deepcopy(self._collections.get(path, {}))

    async def get_document(self, path: str, doc_id: str) -> dict[str, Any] | None:
        self.calls["get_document"] += 1
        doc = self._collections.get(path, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set_document(
        self, path: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        self.calls["set_document"] += 1
        collection = self._collections[path]
        if merge and doc_id in collection:
            collection[doc_id].update(copy.deepcopy(data))
        else:
            collection[doc_id] = copy.deepcopy(data)

    async def delete_document(self, path: str, doc_id: str) -> None:
        self.calls["delete_document"] += 1
        self._collections.get(path, {}).pop(doc_id, None)

    def documents(self, path: str) -> dict[str, dict[str, Any]]:
        """Synchronous snapshot of a collection, for inspection."""
        return copy.deepcopy(self._collections.get(path, {}))
