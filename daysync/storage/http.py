"""HTTP remote document store.

Talks to a REST document backend::

    GET  {backend_url}/v1/documents/users/{userId}/{collection}/{periodKey}
    PUT  {backend_url}/v1/documents/users/{userId}/{collection}/{periodKey}

A 404 means the document does not exist. Documents returned by the server or
accepted by it are kept in an in-process replica, which serves
``get_from_cache`` without a round-trip.
"""

import copy
import logging
from typing import Any, Dict, Optional

import httpx

from daysync.protocols import RemoteError, RemoteErrorKind
from daysync.types import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0


class HttpRemoteStore:
    """Remote store over an ``httpx.AsyncClient``.

    Args:
        backend_url: Base URL of the document backend.
        auth_token: Bearer token sent with every request.
        client: Optional preconfigured client (tests pass one with a mock
            transport). When omitted, one is created and owned by the store.
    """

    def __init__(
        self,
        backend_url: str,
        auth_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        self.backend_url = backend_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers
        self._replica: Dict[str, Dict[str, Any]] = {}

    def _url(self, key: CacheKey) -> str:
        return f"{self.backend_url}/v1/documents/{key.document_path}"

    async def get_from_cache(self, key: CacheKey) -> Optional[Dict[str, Any]]:
        doc = self._replica.get(key.document_path)
        return copy.deepcopy(doc) if doc is not None else None

    async def get_from_server(self, key: CacheKey) -> Optional[Dict[str, Any]]:
        path = key.document_path
        response = await self._request("GET", key)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, path)
        try:
            doc = response.json()
        except ValueError as e:
            raise RemoteError(f"Undecodable document: {e}", RemoteErrorKind.INVALID_DOCUMENT, path)
        if not isinstance(doc, dict):
            raise RemoteError("Document is not an object", RemoteErrorKind.INVALID_DOCUMENT, path)
        self._replica[path] = copy.deepcopy(doc)
        return doc

    async def put(self, key: CacheKey, document: Dict[str, Any]) -> None:
        path = key.document_path
        # Visible to replica reads as soon as it is issued, like a local write
        self._replica[path] = copy.deepcopy(document)
        response = await self._request("PUT", key, json=document)
        self._raise_for_status(response, path)

    async def _request(self, method: str, key: CacheKey, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(
                method, self._url(key), headers=self._headers, **kwargs
            )
        except httpx.TimeoutException as e:
            raise RemoteError(f"Request timed out: {e}", RemoteErrorKind.TIMEOUT, key.document_path)
        except httpx.TransportError as e:
            raise RemoteError(f"Backend unreachable: {e}", RemoteErrorKind.OFFLINE, key.document_path)

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status in (401, 403):
            kind = RemoteErrorKind.PERMISSION_DENIED
        elif status in (502, 503, 504):
            kind = RemoteErrorKind.OFFLINE
        else:
            kind = RemoteErrorKind.UNKNOWN
        raise RemoteError(f"HTTP {status}", kind, path)

    async def health_check(self) -> Dict[str, Any]:
        """Probe ``/health``; never raises."""
        try:
            response = await self._client.get(f"{self.backend_url}/health", headers=self._headers)
        except httpx.HTTPError as e:
            return {"healthy": False, "error": f"Connection failed: {e}"}
        if response.status_code == 200:
            return {"healthy": True}
        return {"healthy": False, "error": f"HTTP {response.status_code}"}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
