"""
Catalog Store

Persistent key-value cache: one record per dataset plus its last-synced
timestamp.

PRINCIPLES:
===========
1. A write replaces a whole record in one transaction - never a partial blob
2. Writers are serialized per dataset; readers never see a torn record
3. Every failure surfaces as StoreError (recoverable by the caller)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import json
import logging
import sqlite3
import threading

from .contracts import CacheRecord, Dataset, ErrorCode, StoreError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogStore(ABC):
    """
    Abstract cache store.

    `put_many` must be atomic across all given datasets: either every
    record is replaced or none is.
    """

    def __init__(self):
        self._locks: Dict[Dataset, threading.Lock] = {d: threading.Lock() for d in Dataset}

    @abstractmethod
    def get(self, dataset: Dataset) -> Optional[CacheRecord]:
        """Return the stored record, or None if the dataset was never synced."""

    @abstractmethod
    def _write(self, records: List[CacheRecord]) -> None:
        """Persist all records atomically."""

    @abstractmethod
    def clear(self, dataset: Optional[Dataset] = None) -> None:
        """Drop one record, or every record when dataset is None."""

    def put(
        self,
        dataset: Dataset,
        payload: Any,
        synced_at: Optional[datetime] = None
    ) -> CacheRecord:
        return self.put_many([(dataset, payload)], synced_at)[0]

    def put_many(
        self,
        items: Iterable[Tuple[Dataset, Any]],
        synced_at: Optional[datetime] = None
    ) -> List[CacheRecord]:
        """Replace several records in one atomic write."""
        synced_at = synced_at or _utcnow()
        records = [CacheRecord(dataset=d, payload=p, last_synced_at=synced_at) for d, p in items]
        locks = [self._locks[d] for d in sorted({r.dataset for r in records}, key=lambda d: d.value)]
        for lock in locks:
            lock.acquire()
        try:
            self._write(records)
        finally:
            for lock in reversed(locks):
                lock.release()
        return records

    def last_synced_at(self, dataset: Dataset) -> Optional[datetime]:
        record = self.get(dataset)
        return record.last_synced_at if record else None


class MemoryCatalogStore(CatalogStore):
    """Dict-backed store for tests and ephemeral sessions."""

    def __init__(self):
        super().__init__()
        self._records: Dict[Dataset, CacheRecord] = {}

    def get(self, dataset: Dataset) -> Optional[CacheRecord]:
        return self._records.get(dataset)

    def _write(self, records: List[CacheRecord]) -> None:
        # Serialize first so an unserializable payload leaves nothing behind
        for record in records:
            try:
                json.dumps(record.payload)
            except (TypeError, ValueError) as e:
                raise StoreError(
                    ErrorCode.SERIALIZATION_FAILED,
                    f"Cannot serialize {record.dataset.value}: {e}"
                ) from e
        updated = dict(self._records)
        updated.update({r.dataset: r for r in records})
        self._records = updated

    def clear(self, dataset: Optional[Dataset] = None) -> None:
        if dataset is None:
            self._records = {}
        else:
            updated = dict(self._records)
            updated.pop(dataset, None)
            self._records = updated


class SqliteCatalogStore(CatalogStore):
    """
    SQLite-backed store.

    Each write is an INSERT OR REPLACE inside a single transaction, so the
    previous row stays intact until the new one is committed.
    """

    def __init__(self, db_path: Path):
        super().__init__()
        self._db_path = Path(db_path)
        self._init_db()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _init_db(self):
        """Initialize database schema."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._get_conn() as conn:
                conn.executescript('''
                    CREATE TABLE IF NOT EXISTS cache_records (
                        dataset TEXT PRIMARY KEY,
                        payload TEXT NOT NULL,
                        last_synced_at TEXT
                    );
                ''')
        except (OSError, sqlite3.Error) as e:
            raise StoreError(
                ErrorCode.STORAGE_UNAVAILABLE,
                f"Cannot open cache at {self._db_path}: {e}"
            ) from e

    @contextmanager
    def _get_conn(self):
        """Get database connection; commits on success, rolls back on error."""
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, dataset: Dataset) -> Optional[CacheRecord]:
        try:
            with self._get_conn() as conn:
                row = conn.execute(
                    'SELECT payload, last_synced_at FROM cache_records WHERE dataset = ?',
                    (dataset.value,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(ErrorCode.STORAGE_UNAVAILABLE, f"Cache read failed: {e}") from e

        if row is None:
            return None

        try:
            payload = json.loads(row['payload'])
            synced = row['last_synced_at']
            last_synced_at = datetime.fromisoformat(synced) if synced else None
        except (TypeError, ValueError) as e:
            raise StoreError(
                ErrorCode.STORAGE_CORRUPT,
                f"Cache record for {dataset.value} is corrupt: {e}"
            ) from e

        return CacheRecord(dataset=dataset, payload=payload, last_synced_at=last_synced_at)

    def _write(self, records: List[CacheRecord]) -> None:
        rows = []
        for record in records:
            try:
                blob = json.dumps(record.payload, ensure_ascii=False)
            except (TypeError, ValueError) as e:
                raise StoreError(
                    ErrorCode.SERIALIZATION_FAILED,
                    f"Cannot serialize {record.dataset.value}: {e}"
                ) from e
            synced = record.last_synced_at.isoformat() if record.last_synced_at else None
            rows.append((record.dataset.value, blob, synced))

        try:
            with self._get_conn() as conn:
                conn.executemany('''
                    INSERT OR REPLACE INTO cache_records (dataset, payload, last_synced_at)
                    VALUES (?, ?, ?)
                ''', rows)
        except sqlite3.Error as e:
            raise StoreError(ErrorCode.STORAGE_UNAVAILABLE, f"Cache write failed: {e}") from e

        logger.debug("Cached %s", ", ".join(r[0] for r in rows))

    def clear(self, dataset: Optional[Dataset] = None) -> None:
        try:
            with self._get_conn() as conn:
                if dataset is None:
                    conn.execute('DELETE FROM cache_records')
                else:
                    conn.execute('DELETE FROM cache_records WHERE dataset = ?', (dataset.value,))
        except sqlite3.Error as e:
            raise StoreError(ErrorCode.STORAGE_UNAVAILABLE, f"Cache clear failed: {e}") from e

    def get_stats(self) -> dict:
        """Get storage statistics."""
        try:
            with self._get_conn() as conn:
                rows = conn.execute(
                    'SELECT dataset, last_synced_at, LENGTH(payload) AS size FROM cache_records'
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(ErrorCode.STORAGE_UNAVAILABLE, f"Cache read failed: {e}") from e
        return {
            row['dataset']: {'last_synced_at': row['last_synced_at'], 'bytes': row['size']}
            for row in rows
        }
