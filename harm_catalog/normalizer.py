"""
Catalog Normalizer
==================

Converts raw catalog payloads (remote responses, bundled assets, cache
records) into immutable contracts.

GUARANTEES:
- Every input entry is either normalized or recorded as dropped
- A payload whose overall shape is wrong raises ParseError
- Individual bad entries never sink the whole payload
- Status text is normalized exactly once, here
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
import logging

from .contracts import (
    Citation, DefinitionTable, ErrorCode, InteractionEntry, InteractionTable,
    ParseError, StatusCode, StatusDefinition, Substance, pair_key
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "uncategorized"


@dataclass(frozen=True)
class DroppedEntry:
    """Record of an entry that was dropped during normalization."""
    key: str
    reason: str

    def to_dict(self) -> dict:
        return {'key': self.key, 'reason': self.reason}


@dataclass
class NormalizationReport:
    """
    Report of one normalization pass.

    Every input entry results in exactly one of:
    - a record counted in `accepted_count`
    - an entry in `dropped`
    """
    processed_count: int = 0
    accepted_count: int = 0
    conflict_count: int = 0
    dropped: List[DroppedEntry] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    def drop(self, key: str, reason: str) -> None:
        self.dropped.append(DroppedEntry(key=key, reason=reason))

    def to_dict(self) -> dict:
        return {
            'processed_count': self.processed_count,
            'accepted_count': self.accepted_count,
            'conflict_count': self.conflict_count,
            'dropped_count': self.dropped_count,
            'dropped': [d.to_dict() for d in self.dropped],
        }


# =============================================================================
# SUBSTANCES
# =============================================================================

def _format_duration(value: Any) -> Optional[str]:
    """Rebuild "<value> <_unit>" from a formatted_* block."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        raw = value.get('value')
        if raw is None or not str(raw).strip():
            return None
        unit = value.get('_unit') or ''
        return f"{str(raw).strip()} {unit}".strip()
    return None


def _string_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v).strip() for v in value if v is not None and str(v).strip())


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _iter_substance_records(payload: Any) -> Iterator[Tuple[str, Any]]:
    """
    Yield (name, detail) pairs from any accepted catalog shape:

    - {"err": null, "data": [{name: {...}}, ...]}   remote API
    - [{name: {...}}, ...]                           unwrapped API data
    - {name: {...}, ...}                             bundled asset
    """
    if isinstance(payload, Mapping) and 'data' in payload:
        if payload.get('err'):
            raise ParseError(ErrorCode.MALFORMED_PAYLOAD, f"Catalog reported error: {payload['err']}")
        payload = payload['data']

    if isinstance(payload, list):
        for chunk in payload:
            if not isinstance(chunk, Mapping):
                raise ParseError(ErrorCode.MALFORMED_PAYLOAD, "Catalog list entries must be objects")
            yield from chunk.items()
    elif isinstance(payload, Mapping):
        yield from payload.items()
    else:
        raise ParseError(
            ErrorCode.MALFORMED_PAYLOAD,
            f"Unsupported catalog payload type: {type(payload).__name__}"
        )


def normalize_substance(name: str, detail: Mapping[str, Any]) -> Substance:
    key = str(detail.get('name') or name or '').strip().lower()
    if not key:
        raise ValueError("Substance has no name")

    properties = _mapping(detail.get('properties'))
    display_name = detail.get('pretty_name') or key.capitalize()
    categories = tuple(c.lower() for c in _string_tuple(detail.get('categories')))
    if not categories:
        categories = (DEFAULT_CATEGORY,)

    return Substance(
        name=key,
        display_name=str(display_name),
        aliases=frozenset(a.lower() for a in _string_tuple(detail.get('aliases'))),
        categories=categories,
        summary=str(properties.get('summary') or ''),
        onset=_format_duration(detail.get('formatted_onset')),
        duration=_format_duration(detail.get('formatted_duration')),
        after_effects=_format_duration(detail.get('formatted_aftereffects')),
        dose_table=_mapping(detail.get('formatted_dose')),
        effects=_string_tuple(detail.get('formatted_effects')),
        links=_mapping(detail.get('links')),
        sources=_mapping(detail.get('sources')),
        properties=properties,
        combos=_mapping(detail.get('combos')),
    )


def normalize_substances(
    payload: Any,
    report: Optional[NormalizationReport] = None
) -> Tuple[Substance, ...]:
    """Parse a catalog payload into substances sorted by name."""
    report = report if report is not None else NormalizationReport()
    substances: Dict[str, Substance] = {}

    for name, detail in _iter_substance_records(payload):
        report.processed_count += 1
        if not isinstance(detail, Mapping):
            report.drop(str(name), "Entry is not an object")
            continue
        try:
            substance = normalize_substance(str(name), detail)
        except (TypeError, ValueError) as e:
            report.drop(str(name), str(e))
            continue
        if substance.name in substances:
            report.conflict_count += 1
        substances[substance.name] = substance
        report.accepted_count += 1

    if report.dropped:
        logger.info("Dropped %d malformed substance entries", report.dropped_count)
    return tuple(substances[k] for k in sorted(substances))


# =============================================================================
# INTERACTIONS
# =============================================================================

def _citations(value: Any) -> Tuple[Citation, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(
        Citation(author=s.get('author'), title=s.get('title'), url=s.get('url'))
        for s in value
        if isinstance(s, Mapping)
    )


def _note(value: Any) -> Optional[str]:
    """Free-text note; numbers are stringified, structured values dropped."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _supersedes(entry: InteractionEntry, existing: InteractionEntry) -> bool:
    """Reverse-direction duplicates: more severe wins, then the annotated one."""
    if entry.status.severity != existing.status.severity:
        return entry.status.severity > existing.status.severity
    return bool(entry.note or entry.sources) and not (existing.note or existing.sources)


def normalize_interactions(
    payload: Any,
    report: Optional[NormalizationReport] = None
) -> InteractionTable:
    """
    Parse a pairwise combos map into an order-independent table.

    When the source documents a pair in both directions with different
    statuses, the more severe status wins.
    """
    if not isinstance(payload, Mapping):
        raise ParseError(ErrorCode.MALFORMED_PAYLOAD, "Interaction table must be an object")

    report = report if report is not None else NormalizationReport()
    entries: Dict[Tuple[str, str], InteractionEntry] = {}

    for first, partners in payload.items():
        if not isinstance(partners, Mapping):
            report.processed_count += 1
            report.drop(str(first), "Partner map is not an object")
            continue
        for second, combo in partners.items():
            report.processed_count += 1
            label = f"{first}+{second}"
            if not isinstance(combo, Mapping) or 'status' not in combo:
                report.drop(label, "Missing status")
                continue
            a, b = pair_key(str(first), str(second))
            if not a or not b:
                report.drop(label, "Empty substance name")
                continue
            raw_status = str(combo.get('status') or '')
            entry = InteractionEntry(
                a=a,
                b=b,
                status=StatusCode.from_text(raw_status),
                raw_status=raw_status,
                note=_note(combo.get('note')),
                sources=_citations(combo.get('sources')),
            )
            report.accepted_count += 1
            existing = entries.get((a, b))
            if existing is not None:
                if existing.status != entry.status:
                    report.conflict_count += 1
                if not _supersedes(entry, existing):
                    continue
            entries[(a, b)] = entry

    return InteractionTable(entries=entries)


def normalize_definitions(
    payload: Any,
    report: Optional[NormalizationReport] = None
) -> DefinitionTable:
    """Parse the status-definition array."""
    if not isinstance(payload, list):
        raise ParseError(ErrorCode.MALFORMED_PAYLOAD, "Definition table must be an array")

    report = report if report is not None else NormalizationReport()
    definitions: Dict[StatusCode, StatusDefinition] = {}

    for item in payload:
        report.processed_count += 1
        if not isinstance(item, Mapping) or not item.get('status'):
            report.drop(str(item)[:40], "Missing status")
            continue
        label = str(item['status'])
        status = StatusCode.from_text(label)
        if status == StatusCode.UNKNOWN and label.strip().lower() != 'unknown':
            report.drop(label, "Unrecognized status")
            continue
        definitions[status] = StatusDefinition(
            status=status,
            label=label,
            definition=str(item.get('definition') or ''),
            emoji=str(item.get('emoji') or ''),
            color=str(item.get('color') or ''),
        )
        report.accepted_count += 1

    return DefinitionTable(definitions=definitions)
