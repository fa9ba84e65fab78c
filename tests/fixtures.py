"""
Catalog Test Fixtures

Explicit payloads and a scriptable fake catalog server.

RULES:
======
1. Payloads mirror the remote shapes exactly
2. The server never touches the network (httpx.MockTransport)
3. Every request is counted so dedup can be asserted
"""

from __future__ import annotations
from collections import Counter
from typing import Any, Dict, Optional, Union
import asyncio

import httpx

from harm_catalog.contracts import Dataset
from harm_catalog.fetcher import CatalogFetcher, StaticConnectivity
from harm_catalog.registry import SourceRegistry
from harm_catalog.store import CatalogStore, MemoryCatalogStore
from harm_catalog.synchronizer import CatalogSynchronizer


# =============================================================================
# PAYLOADS (remote shapes)
# =============================================================================

SUBSTANCES_PAYLOAD = {
    "err": None,
    "data": [
        {
            "ketamine": {
                "name": "ketamine",
                "pretty_name": "Ketamine",
                "aliases": ["k", "Special K"],
                "categories": ["Dissociative"],
                "properties": {"summary": "A dissociative anaesthetic."},
                "formatted_onset": {"value": "5-15", "_unit": "minutes"},
                "formatted_duration": {"value": "30-60", "_unit": "minutes"},
                "formatted_aftereffects": {"value": "1-2", "_unit": "hours"},
            },
            "lsd": {
                "name": "lsd",
                "pretty_name": "LSD",
                "aliases": ["acid"],
                "categories": ["psychedelic"],
                "properties": {"summary": "A classical psychedelic."},
                "formatted_onset": {"value": "30-90", "_unit": "minutes"},
                "formatted_duration": {"value": "8-12", "_unit": "hours"},
            },
        }
    ],
}

INTERACTIONS_PAYLOAD = {
    "ketamine": {
        "lsd": {"status": "Low Risk & Synergy"},
        "alcohol": {"status": "Dangerous", "note": "Vomiting while sedated."},
    },
    "lsd": {
        "ketamine": {"status": "Low Risk & Synergy"},
    },
    "alcohol": {
        "ketamine": {"status": "Dangerous"},
    },
}

DEFINITIONS_PAYLOAD = [
    {"status": "Low Risk & Synergy", "emoji": "↗", "color": "#4CAF50", "definition": "Synergy."},
    {"status": "Dangerous", "emoji": "☠", "color": "#F44336", "definition": "Avoid."},
]


def default_registry() -> SourceRegistry:
    return SourceRegistry.load()


def url_of(dataset: Dataset) -> str:
    return default_registry().get(dataset).url


# =============================================================================
# FAKE CATALOG SERVER
# =============================================================================

Route = Union[Any, httpx.Response, Exception]


class FakeCatalogServer:
    """
    Serves canned payloads per URL through httpx.MockTransport.

    A route may be a JSON-compatible value (200), an httpx.Response, or an
    exception instance to raise. When `hold()` is active every request
    waits until `release()`.
    """

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: Counter = Counter()
        self._gate: Optional[asyncio.Event] = None
        self._started: Optional[asyncio.Event] = None

    @classmethod
    def healthy(cls) -> 'FakeCatalogServer':
        return cls({
            url_of(Dataset.SUBSTANCES): SUBSTANCES_PAYLOAD,
            url_of(Dataset.INTERACTIONS): INTERACTIONS_PAYLOAD,
            url_of(Dataset.DEFINITIONS): DEFINITIONS_PAYLOAD,
        })

    def set(self, dataset: Dataset, route: Route) -> None:
        self.routes[url_of(dataset)] = route

    def hold(self) -> None:
        self._gate = asyncio.Event()
        self._started = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def wait_started(self) -> None:
        await self._started.wait()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls[url] += 1
        if self._gate is not None:
            self._started.set()
            await self._gate.wait()

        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, request=request)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route, request=request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_synchronizer(
    server: Optional[FakeCatalogServer] = None,
    online: bool = True,
    store: Optional[CatalogStore] = None,
    registry: Optional[SourceRegistry] = None
) -> CatalogSynchronizer:
    """Synchronizer over a memory store, bundled assets and a fake server."""
    server = server or FakeCatalogServer()
    return CatalogSynchronizer(
        store=store if store is not None else MemoryCatalogStore(),
        registry=registry or default_registry(),
        fetcher=CatalogFetcher(timeout=1.0, transport=server.transport()),
        connectivity=StaticConnectivity(online=online),
    )
