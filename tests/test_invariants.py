"""
Property Tests for Catalog Invariants

INVARIANTS:
===========
- Parsed ranges keep min <= max whatever order the bounds are written in
- avg is the mean of the bounds, in minutes
- Timelines are pure: identical texts give identical timelines
- The curve rises through onset, peaks at the boundary, then decays
- resolve(a, b) == resolve(b, a) under any casing or padding
"""

import pytest
from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from harm_catalog.contracts import DurationUnit, PhaseName
from harm_catalog.durations import parse_duration
from harm_catalog.resolver import InteractionResolver
from harm_catalog.timeline import SAMPLE_COUNT, build_timeline
from tests.fixtures import make_synchronizer


# Module-level so every generated example reads the same bundled snapshot
RESOLVER = InteractionResolver(make_synchronizer(online=False))
KNOWN_NAMES = RESOLVER.known_substances()

UNIT_SPELLINGS = {
    "minutes": DurationUnit.MINUTES,
    "mins": DurationUnit.MINUTES,
    "min": DurationUnit.MINUTES,
    "": DurationUnit.MINUTES,
    "hours": DurationUnit.HOURS,
    "Hours": DurationUnit.HOURS,
    "hrs": DurationUnit.HOURS,
    "hr": DurationUnit.HOURS,
}


# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

@composite
def bounds(draw):
    """Whole or one-decimal numbers, as (text, value)."""
    if draw(st.booleans()):
        value = draw(st.integers(min_value=0, max_value=500))
        return str(value), float(value)
    tenths = draw(st.integers(min_value=0, max_value=5000))
    return f"{tenths // 10}.{tenths % 10}", tenths / 10


@composite
def duration_texts(draw):
    """Two-sided duration text with its expected low, high and unit."""
    low_text, low = draw(bounds())
    high_text, high = draw(bounds())
    separator = draw(st.sampled_from(["-", " - ", "–", " — "]))
    spelling = draw(st.sampled_from(sorted(UNIT_SPELLINGS)))
    text = f"{low_text}{separator}{high_text} {spelling}".strip()
    return text, min(low, high), max(low, high), UNIT_SPELLINGS[spelling]


@composite
def phase_minutes(draw):
    """Onset, peak and optional after-effect lengths in whole minutes."""
    onset = draw(st.integers(min_value=1, max_value=600))
    peak = draw(st.integers(min_value=1, max_value=600))
    after = draw(st.one_of(st.none(), st.integers(min_value=1, max_value=600)))
    return onset, peak, after


@composite
def substance_spellings(draw):
    """A known substance name (or a stranger) with arbitrary casing and padding."""
    name = draw(st.sampled_from(KNOWN_NAMES + ["unobtainium"]))
    if draw(st.booleans()):
        name = name.upper()
    pad = st.sampled_from(["", " ", "  ", "\t"])
    return draw(pad) + name + draw(pad)


def _as_text(minutes):
    return None if minutes is None else f"{minutes} minutes"


# =============================================================================
# DURATION PARSER
# =============================================================================

@given(duration_texts())
def test_range_is_ordered_and_exact(case):
    """Bounds come back sorted, in the stated unit."""
    text, low, high, unit = case
    parsed = parse_duration(text)
    assert parsed.min == low
    assert parsed.max == high
    assert parsed.min <= parsed.max
    assert parsed.unit == unit


@given(duration_texts())
def test_avg_is_mean_in_minutes(case):
    text, low, high, unit = case
    factor = 60.0 if unit == DurationUnit.HOURS else 1.0
    assert parse_duration(text).avg == pytest.approx((low + high) / 2 * factor)


@given(bounds(), bounds())
def test_written_order_does_not_matter(first, second):
    forward = parse_duration(f"{first[0]}-{second[0]} hours")
    backward = parse_duration(f"{second[0]}-{first[0]} hours")
    assert forward == backward


# =============================================================================
# TIMELINE
# =============================================================================

@given(phase_minutes())
def test_timeline_is_pure(lengths):
    texts = [_as_text(m) for m in lengths]
    assert build_timeline(*texts) == build_timeline(*texts)


@given(phase_minutes())
def test_phases_tile_the_total(lengths):
    onset, peak, after = lengths
    timeline = build_timeline(*[_as_text(m) for m in lengths])

    assert timeline.phase(PhaseName.ONSET).end_minutes == onset
    assert timeline.phase(PhaseName.PEAK).end_minutes == onset + peak
    assert timeline.total_minutes == onset + peak + (after or 0)
    assert timeline.sampled_minutes == onset + peak


@given(phase_minutes())
def test_curve_rises_then_decays(lengths):
    onset = lengths[0]
    samples = build_timeline(*[_as_text(m) for m in lengths]).samples
    assert len(samples) == SAMPLE_COUNT

    offsets = [s.offset_minutes for s in samples]
    assert offsets == sorted(offsets)
    assert offsets.count(float(onset)) == 1
    b = offsets.index(float(onset))

    intensities = [s.intensity for s in samples]
    assert all(0.0 <= i <= 100.0 for i in intensities)
    assert intensities[0] == pytest.approx(0.0)
    assert intensities[b] == pytest.approx(100.0)
    assert all(x <= y for x, y in zip(intensities[:b + 1], intensities[1:b + 1]))
    assert all(x >= y for x, y in zip(intensities[b:], intensities[b + 1:]))


# =============================================================================
# RESOLVER
# =============================================================================

@given(substance_spellings(), substance_spellings())
def test_resolution_is_order_independent(a, b):
    assert RESOLVER.resolve(a, b) == RESOLVER.resolve(b, a)


@given(substance_spellings(), substance_spellings())
def test_spelling_does_not_change_resolution(a, b):
    canonical = RESOLVER.resolve(a.strip().lower(), b.strip().lower())
    assert RESOLVER.resolve(a, b) is canonical
