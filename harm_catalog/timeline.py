"""
Timeline Engine
===============

Derives phase boundaries and a sampled intensity curve from onset, peak
and after-effect durations.

CURVE:
======
- Onset: super-linear rise, f(p) = 100 * p^2          f(0)=0,   f(1)=100
- Peak:  exponential decay, f(p) = 100 * e^(-2p)      f(0)=100, f(1)=100e^-2
- After-effects: reported as a phase, not sampled

Pure functions only: identical inputs produce identical outputs.
"""

from __future__ import annotations
from typing import Optional, Tuple

import numpy as np

from .contracts import (
    IntensitySample, PhaseName, Substance, Timeline, TimelinePhase
)
from .durations import parse_duration


SAMPLE_COUNT = 28
AXIS_LABEL_COUNT = 6
ONSET_EXPONENT = 2.0
PEAK_DECAY_RATE = 2.0
HOURS_LABEL_THRESHOLD_MINUTES = 120.0


def onset_intensity(progress):
    """Intensity during onset for fractional progress in [0, 1]."""
    p = np.clip(np.asarray(progress, dtype=float), 0.0, 1.0)
    return np.clip(100.0 * p ** ONSET_EXPONENT, 0.0, 100.0)


def peak_intensity(progress):
    """Intensity during peak for fractional progress in [0, 1]."""
    p = np.clip(np.asarray(progress, dtype=float), 0.0, 1.0)
    return np.clip(100.0 * np.exp(-PEAK_DECAY_RATE * p), 0.0, 100.0)


def _allocate_steps(onset: float, peak: float) -> Tuple[int, int]:
    """Split SAMPLE_COUNT - 1 steps between onset and peak by duration."""
    steps = SAMPLE_COUNT - 1
    if onset <= 0:
        return 0, steps
    if peak <= 0:
        return steps, 0
    onset_steps = int(round(steps * onset / (onset + peak)))
    onset_steps = min(max(onset_steps, 1), steps - 1)
    return onset_steps, steps - onset_steps


def sample_curve(onset_minutes: float, peak_minutes: float) -> Tuple[IntensitySample, ...]:
    """
    Sample the intensity curve across [0, onset + peak].

    The onset/peak boundary is always an exact sample.
    """
    if onset_minutes + peak_minutes <= 0:
        return ()

    onset_steps, peak_steps = _allocate_steps(onset_minutes, peak_minutes)
    offsets = []
    intensities = []

    if onset_steps:
        onset_offsets = np.linspace(0.0, onset_minutes, onset_steps + 1)
        offsets.append(onset_offsets)
        intensities.append(onset_intensity(onset_offsets / onset_minutes))

    if peak_steps:
        peak_offsets = np.linspace(onset_minutes, onset_minutes + peak_minutes, peak_steps + 1)
        if onset_steps:
            # Boundary already sampled as the last onset point
            peak_offsets = peak_offsets[1:]
        offsets.append(peak_offsets)
        intensities.append(peak_intensity((peak_offsets - onset_minutes) / peak_minutes))

    all_offsets = np.concatenate(offsets)
    all_intensities = np.clip(np.concatenate(intensities), 0.0, 100.0)

    return tuple(
        IntensitySample(offset_minutes=float(t), intensity=float(i))
        for t, i in zip(all_offsets, all_intensities)
    )


def format_axis_label(minutes: float, use_hours: bool) -> str:
    if use_hours:
        hours = round(minutes / 60.0, 1)
        return f"{hours:g}h"
    return f"{int(round(minutes))}m"


def axis_labels(span_minutes: float) -> Tuple[str, ...]:
    """Evenly spaced time labels across the sampled span."""
    if span_minutes <= 0:
        return (format_axis_label(0.0, False),)
    use_hours = span_minutes >= HOURS_LABEL_THRESHOLD_MINUTES
    ticks = np.linspace(0.0, span_minutes, AXIS_LABEL_COUNT)
    return tuple(format_axis_label(float(t), use_hours) for t in ticks)


def build_timeline(
    onset_text: Optional[str],
    peak_text: Optional[str],
    after_effects_text: Optional[str]
) -> Optional[Timeline]:
    """
    Build phases, samples and axis labels from three duration texts.

    Returns None when the total duration is zero (nothing to show).
    """
    onset_range = parse_duration(onset_text)
    peak_range = parse_duration(peak_text)
    after_range = parse_duration(after_effects_text)

    onset = onset_range.avg
    peak = peak_range.avg
    after = after_range.avg
    total = onset + peak + after

    if total <= 0:
        return None

    phases = (
        TimelinePhase(PhaseName.ONSET, onset_range, 0.0, onset),
        TimelinePhase(PhaseName.PEAK, peak_range, onset, onset + peak),
        TimelinePhase(PhaseName.AFTER_EFFECTS, after_range, onset + peak, total),
    )
    sampled = onset + peak

    return Timeline(
        phases=phases,
        samples=sample_curve(onset, peak),
        total_minutes=total,
        sampled_minutes=sampled,
        axis_labels=axis_labels(sampled),
    )


def timeline_for_substance(substance: Substance) -> Optional[Timeline]:
    """Timeline from a catalog entry's onset / duration / after-effects text."""
    return build_timeline(substance.onset, substance.duration, substance.after_effects)
