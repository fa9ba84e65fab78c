"""
Substance Index

Name, alias and category lookups over the current substances snapshot.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple

from .contracts import Dataset, Substance
from .synchronizer import CatalogSynchronizer


def _matches(substance: Substance, needle: str) -> bool:
    if needle in substance.name or needle in substance.display_name.lower():
        return True
    return any(needle in alias for alias in substance.aliases)


class SubstanceIndex:
    """
    Query helper over the substances snapshot.

    The snapshot is read on every call, so results follow refreshes
    without rebuilding anything.
    """

    def __init__(self, synchronizer: CatalogSynchronizer):
        self._sync = synchronizer

    def _substances(self) -> Tuple[Substance, ...]:
        return self._sync.load(Dataset.SUBSTANCES).data

    def search(self, query: str = "", categories: Iterable[str] = ()) -> List[Substance]:
        """
        Substances whose name, display name or alias contains `query`.

        When `categories` is non-empty, only substances in at least one of
        them are kept. Both filters are case-insensitive.
        """
        needle = (query or "").strip().lower()
        wanted = {c.strip().lower() for c in categories if c and c.strip()}

        results = []
        for substance in self._substances():
            if wanted and not wanted.intersection(substance.categories):
                continue
            if needle and not _matches(substance, needle):
                continue
            results.append(substance)
        return results

    def get(self, name: str) -> Optional[Substance]:
        """Exact lookup by canonical name or alias."""
        key = (name or "").strip().lower()
        if not key:
            return None
        by_alias: Optional[Substance] = None
        for substance in self._substances():
            if substance.name == key:
                return substance
            if by_alias is None and key in substance.aliases:
                by_alias = substance
        return by_alias

    def categories(self) -> List[str]:
        seen: Dict[str, None] = {}
        for substance in self._substances():
            for category in substance.categories:
                seen.setdefault(category, None)
        return sorted(seen)
