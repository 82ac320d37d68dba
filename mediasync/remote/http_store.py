"""Remote document store over a REST API."""

import logging
from typing import Any

import httpx

from ..errors import PermissionDeniedError, TransportError
from .base import RemoteStore

logger = logging.getLogger(__name__)


class HttpRemoteStore(RemoteStore):
    """Document store client for a simple REST document API.

    Endpoints, relative to ``base_url``:

    - ``GET /{path}`` returns ``{"documents": [{"id": ..., "data": {...}}]}``
    - ``GET /{path}/{id}`` returns the document body (404 if missing)
    - ``PUT /{path}/{id}`` replaces, ``PATCH /{path}/{id}`` merges
    - ``DELETE /{path}/{id}``
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the store client.

        Args:
            base_url: Base URL of the document API.
            api_token: Optional bearer token sent with every request.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        json_data: Any = None,
        allow_missing: bool = False,
    ) -> httpx.Response | None:
        """Send a request and map failures onto the remote error taxonomy.

        Returns:
            The response, or None for a 404 when ``allow_missing`` is set.
        """
        client = await self._get_client()
        try:
            response = await client.request(method, url, json=json_data)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise PermissionDeniedError(
                f"{method} {url} denied", status_code=response.status_code
            )
        if response.status_code == 404 and allow_missing:
            return None

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            ) from e
        return response

    async def list_documents(self, path: str) -> dict[str, dict[str, Any]]:
        response = await self._request("GET", f"/{path}", allow_missing=True)
        if response is None:
            return {}
        documents = response.json().get("documents", [])
        logger.debug(f"Listed {len(documents)} documents from {path}")
        return {str(doc["id"]): doc.get("data", {}) for doc in documents}

    async def get_document(self, path: str, doc_id: str) -> dict[str, Any] | None:
        response = await self._request("GET", f"/{path}/{doc_id}", allow_missing=True)
        if response is None:
            return None
        return response.json()

    async def set_document(
        self, path: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        method = "PATCH" if merge else "PUT"
        await self._request(method, f"/{path}/{doc_id}", json_data=data)

    async def delete_document(self, path: str, doc_id: str) -> None:
        await self._request("DELETE", f"/{path}/{doc_id}", allow_missing=True)

    async def check_connection(self) -> bool:
        """Check whether the document API answers at all."""
        try:
            client = await self._get_client()
            response = await client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Remote health check failed: {e}")
            return False
