"""
Catalog Fetcher

Fetches remote JSON datasets over HTTP.

PRINCIPLES:
===========
1. Failed fetches are first-class results, not exceptions
2. Every request has a bounded timeout
3. Non-2xx and undecodable bodies are failures, never partial data
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

import httpx

from .contracts import FetchResult, FetchStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogFetcher:
    """
    Fetches and decodes JSON payloads.

    GUARANTEES:
    ===========
    1. `fetch_json` never raises for network or payload problems
    2. Timeouts map to FetchStatus.TIMEOUT
    3. Non-2xx responses map to FetchStatus.HTTP_ERROR
    """

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = "HarmCatalog/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self._timeout,
            headers={'User-Agent': self._user_agent, 'Accept': 'application/json'},
            follow_redirects=True,
            transport=self._transport,
        )

    async def fetch_json(self, url: str) -> FetchResult:
        """Fetch a URL and decode its JSON body."""
        attempted_at = _utcnow()

        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            return self._failure(url, attempted_at, FetchStatus.TIMEOUT, "Request timed out")
        except httpx.HTTPError as e:
            return self._failure(url, attempted_at, FetchStatus.NETWORK_ERROR, str(e) or type(e).__name__)

        if not response.is_success:
            return self._failure(
                url, attempted_at, FetchStatus.HTTP_ERROR,
                f"HTTP {response.status_code}",
                http_status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            return self._failure(
                url, attempted_at, FetchStatus.PARSE_ERROR,
                f"Invalid JSON: {e}",
                http_status=response.status_code,
            )

        return FetchResult(
            url=url,
            attempted_at=attempted_at,
            completed_at=_utcnow(),
            status=FetchStatus.SUCCESS,
            payload=payload,
            http_status=response.status_code,
        )

    def _failure(
        self,
        url: str,
        attempted_at: datetime,
        status: FetchStatus,
        message: str,
        http_status: Optional[int] = None
    ) -> FetchResult:
        return FetchResult(
            url=url,
            attempted_at=attempted_at,
            completed_at=_utcnow(),
            status=status,
            error_message=message,
            http_status=http_status,
        )


class ConnectivityProbe:
    """
    Reports whether the network is reachable.

    With no URL the probe is optimistic and always reports online; the
    fetch itself then decides.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def is_online(self) -> bool:
        if not self._url:
            return True
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                await client.head(self._url, follow_redirects=True)
        except httpx.HTTPError:
            return False
        return True


class StaticConnectivity(ConnectivityProbe):
    """Fixed answer; for tests and explicitly offline sessions."""

    def __init__(self, online: bool = True):
        super().__init__()
        self.online = online

    async def is_online(self) -> bool:
        return self.online
