"""
Harm Catalog

Offline-first harm-reduction reference: substances, pairwise interactions
and duration timelines.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts.py)
   - Immutable records, enums, Result / Error
   - MUST NOT: Perform I/O

2. PARSING (durations.py, normalizer.py)
   - Free-text durations and raw catalog payloads into contracts
   - MUST NOT: Persist or fetch

3. PERSISTENCE & TRANSPORT (store.py, fetcher.py, registry.py)
   - Cache records, HTTP fetches, dataset endpoints
   - MUST NOT: Interpret payloads

4. SYNCHRONIZATION (synchronizer.py)
   - Bundled < cached < fresh snapshots, refresh groups, cancellation
   - The only layer that writes the cache

5. READ MODELS (resolver.py, search.py, timeline.py)
   - Synchronous, pure reads over the current snapshots
   - MUST NOT: Touch the network
"""

from .config import CatalogConfig, load_config
from .contracts import (
    Dataset, DurationRange, DurationUnit, Error, ErrorCode, InteractionEntry,
    PhaseName, Result, Snapshot, StatusCode, StatusDefinition, Substance,
    SyncState, Timeline
)
from .durations import parse_duration, parse_duration_strict
from .resolver import InteractionResolver
from .search import SubstanceIndex
from .store import CatalogStore, MemoryCatalogStore, SqliteCatalogStore
from .synchronizer import CatalogSynchronizer, create_synchronizer
from .timeline import build_timeline, timeline_for_substance

__version__ = "1.0.0"

__all__ = [
    'CatalogConfig',
    'CatalogStore',
    'CatalogSynchronizer',
    'Dataset',
    'DurationRange',
    'DurationUnit',
    'Error',
    'ErrorCode',
    'InteractionEntry',
    'InteractionResolver',
    'MemoryCatalogStore',
    'PhaseName',
    'Result',
    'Snapshot',
    'SqliteCatalogStore',
    'StatusCode',
    'StatusDefinition',
    'Substance',
    'SubstanceIndex',
    'SyncState',
    'Timeline',
    'build_timeline',
    'create_synchronizer',
    'load_config',
    'parse_duration',
    'parse_duration_strict',
    'timeline_for_substance',
]
