"""
Duration Parser

Turns free-text pharmacological durations ("45-90 minutes", "8-12 hours")
into DurationRange values.

DEGRADATION POLICY:
===================
Upstream data is hand-maintained and often malformed. `parse_duration`
never raises: absent text and malformed text both yield the zero sentinel
(downstream reads zero as "data unavailable"). Malformed text is logged.
"""

from __future__ import annotations
from typing import Optional, Tuple
import logging
import math
import re

from .contracts import (
    DurationRange, DurationUnit, ErrorCode, ParseError, Result, ZERO_DURATION
)

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r'\d+(?:\.\d+)?')
_SEPARATOR = re.compile(r'\s*[-–—]\s*')
_HOURS = re.compile(r'hour|\bhrs?\b|\dhrs?\b|\dh\b', re.IGNORECASE)
_MINUTES = re.compile(r'minute|\bmins?\b|\dmins?\b|\dm\b', re.IGNORECASE)

# Anything longer is a data-entry error, not a pharmacological duration
MAX_DURATION_MINUTES = 60 * 24 * 365.0


def detect_unit(text: str) -> Optional[DurationUnit]:
    """Permissive, case-insensitive unit detection ("hrs", "hour(s)", "mins")."""
    if _HOURS.search(text):
        return DurationUnit.HOURS
    if _MINUTES.search(text):
        return DurationUnit.MINUTES
    return None


def _leading_number(side: str) -> float:
    match = _NUMBER.search(side)
    if match is None:
        raise ParseError(ErrorCode.MALFORMED_DURATION, f"No numeric token in {side!r}")
    value = float(match.group())
    if not math.isfinite(value):
        raise ParseError(ErrorCode.MALFORMED_DURATION, f"Numeric token out of range in {side[:40]!r}")
    return value


def _split_sides(text: str) -> Tuple[str, Optional[str]]:
    parts = _SEPARATOR.split(text.strip(), maxsplit=1)
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[1]


def _parse(text: str) -> DurationRange:
    left, right = _split_sides(text)
    overall = detect_unit(text) or DurationUnit.MINUTES

    if right is None:
        value = _leading_number(left)
        return _bounded(DurationRange(value, value, overall), text)

    low = _leading_number(left)
    high = _leading_number(right)
    # A unit on the left side only applies to it ("30 minutes - 2 hours")
    left_unit = detect_unit(left) or overall
    right_unit = detect_unit(right) or overall

    if left_unit != right_unit:
        factor = {DurationUnit.MINUTES: 1.0, DurationUnit.HOURS: 60.0}
        low *= factor[left_unit]
        high *= factor[right_unit]
        unit = DurationUnit.MINUTES
    else:
        unit = right_unit

    if low > high:
        low, high = high, low
    return _bounded(DurationRange(low, high, unit), text)


def _bounded(parsed: DurationRange, text: str) -> DurationRange:
    if parsed.max_minutes > MAX_DURATION_MINUTES:
        raise ParseError(
            ErrorCode.MALFORMED_DURATION,
            f"Duration exceeds {MAX_DURATION_MINUTES:g} minutes: {text[:40]!r}"
        )
    return parsed


def parse_duration_strict(text: Optional[str]) -> Result:
    """
    Parse a duration, surfacing malformed input as a typed error.

    Absent or blank text is not an error: it succeeds with the zero sentinel.
    """
    if text is None or not str(text).strip():
        return Result.success(ZERO_DURATION)
    try:
        return Result.success(_parse(str(text)))
    except ParseError as e:
        return Result.failure(e.to_error().with_context('text', str(text)))


def parse_duration(text: Optional[str]) -> DurationRange:
    """
    Parse a duration expression, degrading to the zero sentinel.

    Examples:
        "45-90 minutes" -> DurationRange(45, 90, MINUTES)
        "8-12 hours"    -> DurationRange(8, 12, HOURS)
        "30"            -> DurationRange(30, 30, MINUTES)
        None / ""       -> DurationRange(0, 0, MINUTES)
    """
    result = parse_duration_strict(text)
    if result.is_failure:
        logger.warning(
            "Unparseable duration %r; treating as unavailable",
            text,
            extra={'error_code': result.error.code.name},
        )
        return ZERO_DURATION
    return result.value
