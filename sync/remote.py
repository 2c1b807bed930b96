"""Remote sync client.

Pushes and pulls the whole curator document to and from a remote data
service. The remote being unreachable is a normal operating mode: every
failure is logged and resolved as False / None, never raised.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from errors import RemoteUnavailable
from persistence.document import CuratorDocument
from persistence.document_store import serialize_document

logger = logging.getLogger(__name__)


class RemoteSyncClient:
    def __init__(
        self,
        remote_url: str | None,
        *,
        timeout: float = 10.0,
        save_path: str = "/api/data/save",
        load_path: str = "/api/data/load",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            remote_url: Base URL of the data service (e.g. "http://localhost:3001").
                Empty or None disables remote sync entirely.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, used by tests to stub the remote.
        """
        self.remote_url = (remote_url or "").rstrip("/") or None
        self.timeout = timeout
        self.save_path = save_path
        self.load_path = load_path
        self._transport = transport
        self._last_synced: str | None = None
        self._consecutive_failures = 0

    @property
    def enabled(self) -> bool:
        return self.remote_url is not None

    @property
    def last_synced(self) -> str | None:
        """Serialized form of the last document the remote accepted."""
        return self._last_synced

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def has_diverged(self, serialized: str) -> bool:
        return serialized != self._last_synced

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        url = f"{self.remote_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(method, url, json=payload)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise RemoteUnavailable(f"{method} {url} failed: {e!r}") from e

        if not response.is_success:
            raise RemoteUnavailable(f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailable(f"{method} {url} returned a non-JSON body") from e

    async def push(self, doc: CuratorDocument) -> bool:
        if not self.enabled:
            return False
        serialized = serialize_document(doc)
        logger.info("SYNC PUSH: sending document (%d bytes) to %s", len(serialized), self.remote_url)
        try:
            result = await self._request("POST", self.save_path, doc.to_disk_doc())
        except RemoteUnavailable as e:
            self._consecutive_failures += 1
            logger.warning("SYNC PUSH: %s; continuing local-only", e.message)
            return False

        self._consecutive_failures = 0
        self._last_synced = serialized
        logger.info("SYNC PUSH: remote accepted document: %s", result)
        return True

    async def pull(self) -> CuratorDocument | None:
        if not self.enabled:
            return None
        try:
            data = await self._request("GET", self.load_path)
        except RemoteUnavailable as e:
            self._consecutive_failures += 1
            logger.warning("SYNC PULL: %s; offline mode", e.message)
            return None

        if not isinstance(data, dict):
            logger.warning("SYNC PULL: remote returned %s instead of a document", type(data).__name__)
            return None
        try:
            doc = CuratorDocument.from_disk_doc(data)
        except ValidationError as e:
            logger.warning("SYNC PULL: remote document does not match the schema: %s", e)
            return None
        self._consecutive_failures = 0
        return doc
