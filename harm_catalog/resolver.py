"""
Interaction Resolver

Answers "what happens when A is combined with B" from the current
interactions snapshot.

GUARANTEES:
- Lookups are order-independent and case-insensitive
- An undocumented pair is None, never an error
- Reads never touch the network
"""

from __future__ import annotations
from typing import List, Optional, Tuple, Union

from .contracts import (
    Dataset, DefinitionTable, InteractionEntry, InteractionTable,
    StatusCode, StatusDefinition, pair_key
)
from .synchronizer import CatalogSynchronizer


NO_DEFINITION_TEXT = "No definition available."
DEFAULT_STATUS_COLOR = "#9E9E9E"


class InteractionResolver:
    """Read-only view over the interaction and definition snapshots."""

    def __init__(self, synchronizer: CatalogSynchronizer):
        self._sync = synchronizer

    def _table(self) -> InteractionTable:
        return self._sync.load(Dataset.INTERACTIONS).data

    def _definitions(self) -> DefinitionTable:
        return self._sync.load(Dataset.DEFINITIONS).data

    def resolve(self, a: str, b: str) -> Optional[InteractionEntry]:
        """Documented interaction for the pair, or None."""
        first, second = pair_key(a, b)
        if not first or not second:
            return None
        return self._table().entries.get((first, second))

    def definition_for(
        self,
        status: Union[StatusCode, str, None]
    ) -> Optional[StatusDefinition]:
        """Definition for a status code or raw status text."""
        return self._definitions().get(StatusCode.from_text(status))

    def describe(self, status: Union[StatusCode, str, None]) -> StatusDefinition:
        """Like `definition_for`, but falls back to a neutral entry."""
        code = StatusCode.from_text(status)
        definition = self._definitions().get(code)
        if definition is not None:
            return definition
        label = status if isinstance(status, str) and status.strip() else code.value
        return StatusDefinition(
            status=code,
            label=label,
            definition=NO_DEFINITION_TEXT,
            color=DEFAULT_STATUS_COLOR,
        )

    def interactions_for(self, name: str) -> List[Tuple[str, InteractionEntry]]:
        """Every documented partner of `name`, sorted by partner name."""
        key = name.strip().lower()
        if not key:
            return []
        found = [
            (entry.partner_of(key), entry)
            for entry in self._table()
            if key in entry.pair
        ]
        return sorted(found, key=lambda item: item[0])

    def known_substances(self) -> List[str]:
        names = set()
        for entry in self._table():
            names.update(entry.pair)
        return sorted(names)
