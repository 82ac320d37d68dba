"""Remote document store contract and per-user collection addressing."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

from ..errors import NotAuthenticatedError, RemoteError

logger = logging.getLogger(__name__)

UserIdProvider = Callable[[], str | None]


class RemoteStore(ABC):
    """Asynchronous document store addressed by slash-separated paths.

    A path names a collection (e.g. ``users/u1/movies``); documents inside it
    are plain dicts keyed by id. All methods may raise RemoteError
    subclasses. No multi-document transactions are offered.
    """

    @abstractmethod
    async def list_documents(self, path: str) -> dict[str, dict[str, Any]]:
        """Return every document in a collection, keyed by id."""

    @abstractmethod
    async def get_document(self, path: str, doc_id: str) -> dict[str, Any] | None:
        """Return one document, or None if it does not exist."""

    @abstractmethod
    async def set_document(
        self, path: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        """Create or replace a document; ``merge`` updates only given fields."""

    @abstractmethod
    async def delete_document(self, path: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""

    async def close(self) -> None:
        """Release any held resources."""


class RemoteCollection:
    """One per-user sub-collection, e.g. ``users/<uid>/series_progress``.

    The user id is resolved on every call; without a signed-in user every
    operation raises NotAuthenticatedError before touching the store.
    """

    def __init__(self, store: RemoteStore, name: str, user_id_provider: UserIdProvider):
        self.store = store
        self.name = name
        self._user_id_provider = user_id_provider

    @property
    def path(self) -> str:
        uid = self._user_id_provider()
        if not uid:
            raise NotAuthenticatedError(
                f"No authenticated user for remote collection {self.name}"
            )
        return f"users/{uid}/{self.name}"

    async def list_all(self) -> list[dict[str, Any]]:
        """Return all documents with their id injected as ``id``."""
        documents = await self.store.list_documents(self.path)
        return [{**data, "id": doc_id} for doc_id, data in documents.items()]

    async def get_one(self, doc_id: str) -> dict[str, Any] | None:
        return await self.store.get_document(self.path, str(doc_id))

    async def upsert(self, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        await self.store.set_document(self.path, str(doc_id), data, merge=merge)

    async def delete(self, doc_id: str) -> None:
        await self.store.delete_document(self.path, str(doc_id))

    async def clear(self) -> int:
        """Delete every document one by one.

        A failing delete is logged and skipped.

        Returns:
            Number of documents deleted.
        """
        documents = await self.store.list_documents(self.path)
        deleted = 0
        for doc_id in documents:
            try:
                await self.store.delete_document(self.path, doc_id)
                deleted += 1
            except RemoteError as e:
                logger.warning(f"Failed to delete {self.name}/{doc_id}: {e}")
        return deleted
