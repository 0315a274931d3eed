"""
HTTP transport for the CheckLogs API.

The rest of the SDK talks to the API only through the Transport protocol,
so tests and alternative backends can replace HttpTransport freely.
"""

import logging
from typing import Any, Protocol

import httpx

from .errors import error_from_httpx, error_from_response

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.checklogs.dev/v1/logs"
USER_AGENT = f"checklogs-python/{__version__}"


class StatsSource(Protocol):
    async def fetch_stats(self) -> dict[str, Any]:
        """Return the raw stats endpoint response."""
        ...


class Transport(StatsSource, Protocol):
    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Deliver one log payload. Raises CheckLogsError on failure."""
        ...

    async def fetch_logs(self, params: dict[str, Any]) -> dict[str, Any]:
        ...

    async def aclose(self) -> None:
        ...


class HttpTransport:
    """Transport backed by an ``httpx.AsyncClient``."""

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def _request(self, method: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method, self.endpoint, headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            raise error_from_httpx(e) from e

        if response.is_error:
            raise error_from_response(response)

        try:
            return response.json()
        except ValueError:
            logger.warning(f"Non-JSON response from {self.endpoint} (HTTP {response.status_code})")
            return {"success": True, "status_code": response.status_code}

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", json=payload)

    async def fetch_logs(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("GET", params=params)

    async def fetch_stats(self) -> dict[str, Any]:
        return await self._request("GET", params={"stats": 1})

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
