"""Smithery registry lookup for the MCP server deployment URL."""

import logging
import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

import httpx

from ..config import SMITHERY_REGISTRY_BASE

logger = logging.getLogger(__name__)

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Key-value cache whose entries expire ``ttl`` seconds after being set."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (self._clock() + self.ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RegistryClient:
    """Resolves an MCP server name to its deployment URL."""

    def __init__(
        self,
        api_key: Optional[str],
        cache: Optional[TTLCache[str]] = None,
        base_url: str = SMITHERY_REGISTRY_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else TTLCache(300.0)
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @staticmethod
    def _deployment_url(server: Dict[str, Any]) -> Optional[str]:
        if server.get("deploymentUrl"):
            return server["deploymentUrl"].rstrip("/") + "/mcp"
        for connection in server.get("connections") or []:
            if connection.get("type") == "http" and connection.get("url"):
                return connection["url"]
        return None

    async def resolve(self, server_name: str) -> Optional[str]:
        """Return the deployment URL for ``server_name``, or None if unknown.

        Successful lookups are cached; failures are not.
        """
        cached = self.cache.get(server_name)
        if cached is not None:
            return cached

        client = await self._get_client()
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = await client.get(f"{self.base_url}/servers/{server_name}", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Registry lookup for '{server_name}' failed: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Registry lookup for '{server_name}' returned {response.status_code}")
            return None

        try:
            url = self._deployment_url(response.json())
        except (ValueError, AttributeError, TypeError) as e:
            logger.error(f"Registry lookup for '{server_name}' returned an unreadable body: {e}")
            return None
        if url:
            self.cache.set(server_name, url)
            logger.info(f"Resolved MCP server '{server_name}' to {url}")
        return url
