"""
Catalog Synchronizer

Reconciles the bundled assets, the persisted cache and the remote source
of truth for every dataset.

PRINCIPLES:
===========
1. Readers always get a snapshot: bundled < cached < fresh
2. A failed refresh never replaces what readers already see
3. Datasets in one group are fetched together and written in one put_many
4. Store write and snapshot swap happen with no await in between
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging
import threading

from .config import CatalogConfig
from .contracts import (
    Dataset, DefinitionTable, Error, ErrorCode, InteractionTable,
    ParseError, Result, Snapshot, StoreError, SyncState
)
from .fetcher import CatalogFetcher, ConnectivityProbe
from .normalizer import normalize_definitions, normalize_interactions, normalize_substances
from .registry import SourceRegistry
from .store import CatalogStore, MemoryCatalogStore, SqliteCatalogStore

logger = logging.getLogger(__name__)

Listener = Callable[[Snapshot], None]

_PARSERS: Dict[Dataset, Callable[[Any], Any]] = {
    Dataset.SUBSTANCES: normalize_substances,
    Dataset.INTERACTIONS: normalize_interactions,
    Dataset.DEFINITIONS: normalize_definitions,
}

_EMPTY: Dict[Dataset, Callable[[], Any]] = {
    Dataset.SUBSTANCES: tuple,
    Dataset.INTERACTIONS: InteractionTable,
    Dataset.DEFINITIONS: DefinitionTable,
}


class CatalogSynchronizer:
    """
    Offline-first owner of every dataset snapshot.

    One instance is shared by all consumers. `load` is synchronous and
    never touches the network; `refresh` is the only path to the network.

    GUARANTEES:
    ===========
    1. `load` never raises
    2. Concurrent refreshes of one group share one fetch and one write
    3. A cancelled refresh writes nothing
    """

    def __init__(
        self,
        store: CatalogStore,
        registry: SourceRegistry,
        fetcher: Optional[CatalogFetcher] = None,
        connectivity: Optional[ConnectivityProbe] = None
    ):
        self._store = store
        self._registry = registry
        self._fetcher = fetcher or CatalogFetcher()
        self._connectivity = connectivity or ConnectivityProbe(
            registry.connectivity_url, registry.connectivity_timeout
        )

        self._snapshots: Dict[Dataset, Snapshot] = {}
        self._snapshot_lock = threading.Lock()
        self._inflight: Dict[Dataset, asyncio.Task] = {}
        self._waiters: Dict[Dataset, int] = {}
        self._group_locks: Dict[Dataset, asyncio.Lock] = {}
        self._listeners: List[Listener] = []

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    @property
    def store(self) -> CatalogStore:
        return self._store

    # =========================================================================
    # READ PATH
    # =========================================================================

    def load(self, dataset: Dataset) -> Snapshot:
        """Current snapshot: memory, else cache, else bundled asset."""
        with self._snapshot_lock:
            snapshot = self._snapshots.get(dataset)
        if snapshot is not None:
            return snapshot

        snapshot = self._load_cached(dataset) or self._load_bundled(dataset)
        with self._snapshot_lock:
            return self._snapshots.setdefault(dataset, snapshot)

    def _load_cached(self, dataset: Dataset) -> Optional[Snapshot]:
        extra = {'dataset': dataset.value}
        try:
            record = self._store.get(dataset)
        except StoreError as e:
            logger.warning(
                "Cache unavailable for %s, using bundled data: %s", dataset.value, e.message,
                extra={**extra, 'error_code': e.code.name}
            )
            return None
        if record is None:
            return None

        try:
            data = _PARSERS[dataset](record.payload)
        except ParseError as e:
            logger.warning(
                "Cached %s is unparseable, using bundled data: %s", dataset.value, e.message,
                extra={**extra, 'error_code': e.code.name}
            )
            return None

        return Snapshot(
            dataset=dataset,
            data=data,
            state=SyncState.CACHED,
            last_synced_at=record.last_synced_at,
        )

    def _load_bundled(self, dataset: Dataset) -> Snapshot:
        try:
            data = _PARSERS[dataset](self._registry.load_bundled(dataset))
        except ParseError as e:
            logger.warning(
                "Bundled %s unusable, serving empty dataset: %s", dataset.value, e.message,
                extra={'dataset': dataset.value, 'error_code': e.code.name}
            )
            data = _EMPTY[dataset]()
        return Snapshot(dataset=dataset, data=data, state=SyncState.BOOTSTRAPPED)

    # =========================================================================
    # REFRESH PATH
    # =========================================================================

    async def refresh(self, dataset: Dataset) -> Result:
        """
        Refresh the group `dataset` belongs to.

        Returns:
            Result.success(Snapshot) after a fresh fetch or while offline,
            Result.failure(Error) otherwise; the previous snapshot is kept.
        """
        group = self._registry.group_of(dataset)
        task = self._inflight.get(group)
        if task is None or task.done():
            task = asyncio.ensure_future(self._refresh_group(group))
            self._inflight[group] = task
            self._waiters[group] = 0
            task.add_done_callback(lambda t, g=group: self._forget(g, t))
        self._waiters[group] += 1

        try:
            results = await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                error = Error(
                    code=ErrorCode.CANCELLED,
                    message=f"Refresh of {group.value} was cancelled",
                ).with_context('dataset', dataset.value)
                return Result.failure(error)
            # Caller went away; stop the shared refresh once nobody waits on it
            self._waiters[group] -= 1
            if self._waiters[group] <= 0:
                task.cancel()
            raise

        return results[dataset]

    async def refresh_all(self) -> Dict[Dataset, Result]:
        """Refresh every group concurrently; one failing never affects another."""
        datasets = list(Dataset)
        results = await asyncio.gather(*(self.refresh(d) for d in datasets))
        return dict(zip(datasets, results))

    def cancel(self, dataset: Optional[Dataset] = None) -> int:
        """Cancel in-flight refreshes (all of them when dataset is None)."""
        if dataset is None:
            groups = list(self._inflight)
        else:
            groups = [self._registry.group_of(dataset)]

        cancelled = 0
        for group in groups:
            task = self._inflight.get(group)
            if task is not None and not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.info("Cancelled %d in-flight refresh(es)", cancelled)
        return cancelled

    def is_refreshing(self, dataset: Dataset) -> bool:
        task = self._inflight.get(self._registry.group_of(dataset))
        return task is not None and not task.done()

    def _forget(self, group: Dataset, task: asyncio.Task) -> None:
        if self._inflight.get(group) is task:
            del self._inflight[group]
            self._waiters.pop(group, None)

    def _group_lock(self, group: Dataset) -> asyncio.Lock:
        lock = self._group_locks.get(group)
        if lock is None:
            lock = self._group_locks[group] = asyncio.Lock()
        return lock

    async def _refresh_group(self, group: Dataset) -> Dict[Dataset, Result]:
        members = self._registry.members(group)
        datasets = [m.dataset for m in members]
        extra = {'dataset': group.value}

        if not await self._connectivity.is_online():
            logger.info("Offline; keeping current %s snapshot", group.value, extra=extra)
            return {d: Result.success(self.load(d)) for d in datasets}

        fetches = await asyncio.gather(*(self._fetcher.fetch_json(m.url) for m in members))

        failed = next((f for f in fetches if not f.success), None)
        if failed is not None:
            error = failed.to_error().with_context('dataset', group.value)
            logger.warning(
                "Refresh of %s failed: %s", group.value, error.message,
                extra={**extra, 'error_code': error.code.name, 'status': failed.status.value}
            )
            return {d: Result.failure(error) for d in datasets}

        parsed: Dict[Dataset, Any] = {}
        for member, fetch in zip(members, fetches):
            try:
                parsed[member.dataset] = _PARSERS[member.dataset](fetch.payload)
            except ParseError as e:
                error = e.to_error().with_context('url', member.url)
                logger.warning(
                    "Refresh of %s returned a malformed payload: %s", member.dataset.value, e.message,
                    extra={'dataset': member.dataset.value, 'error_code': e.code.name}
                )
                return {d: Result.failure(error) for d in datasets}

        async with self._group_lock(group):
            # No await below this point: write and swap are one step for readers
            try:
                records = self._store.put_many(
                    [(m.dataset, f.payload) for m, f in zip(members, fetches)]
                )
            except StoreError as e:
                logger.warning(
                    "Could not persist %s: %s", group.value, e.message,
                    extra={**extra, 'error_code': e.code.name}
                )
                return {d: Result.failure(e.to_error()) for d in datasets}

            snapshots = {
                r.dataset: Snapshot(
                    dataset=r.dataset,
                    data=parsed[r.dataset],
                    state=SyncState.FRESH,
                    last_synced_at=r.last_synced_at,
                )
                for r in records
            }
            with self._snapshot_lock:
                self._snapshots.update(snapshots)

        logger.info("Refreshed %s", ", ".join(d.value for d in snapshots), extra=extra)
        for snapshot in snapshots.values():
            self._notify(snapshot)
        return {d: Result.success(s) for d, s in snapshots.items()}

    # =========================================================================
    # LISTENERS / STATUS
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with every fresh snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, snapshot: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(
                    "Snapshot listener failed for %s", snapshot.dataset.value,
                    extra={'dataset': snapshot.dataset.value}
                )

    def status(self) -> Dict[str, dict]:
        """Per-dataset state summary."""
        summary = {}
        for dataset in Dataset:
            snapshot = self.load(dataset)
            summary[dataset.value] = {
                'state': snapshot.state.value,
                'last_synced_at': (
                    snapshot.last_synced_at.isoformat() if snapshot.last_synced_at else None
                ),
                'records': len(snapshot.data),
                'refreshing': self.is_refreshing(dataset),
            }
        return summary


def create_synchronizer(
    config: Optional[CatalogConfig] = None,
    store: Optional[CatalogStore] = None
) -> CatalogSynchronizer:
    """Create a synchronizer with defaults."""
    config = config or CatalogConfig()
    registry = SourceRegistry.load(config.sources_path, config.bundled_dir)

    if store is None:
        try:
            store = SqliteCatalogStore(config.cache_path)
        except StoreError as e:
            logger.warning(
                "Persistent cache unavailable, using memory store: %s", e.message,
                extra={'error_code': e.code.name}
            )
            store = MemoryCatalogStore()

    return CatalogSynchronizer(
        store=store,
        registry=registry,
        fetcher=CatalogFetcher(timeout=config.timeout_seconds, user_agent=config.user_agent),
        connectivity=ConnectivityProbe(
            config.connectivity_url or registry.connectivity_url,
            registry.connectivity_timeout,
        ),
    )
