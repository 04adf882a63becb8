import json
import logging
import math
from dataclasses import astuple
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from lcms_tracker.config import PERCENT_TOLERANCE, PERCENT_TOTAL
from lcms_tracker.data_types import GradientStep, SolventUsage

logger = logging.getLogger(__name__)

# Accepted spellings for each step field; stored JSON uses snake_case
STEP_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "time": ("time",),
    "percent_a": ("percent_a", "percentA"),
    "percent_b": ("percent_b", "percentB"),
    "flow_rate": ("flow_rate", "flowRate"),
}


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid measurement
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range, e.g. from a hand-edited JSON gradient
        return False


def _coerce_step(raw_step: Any) -> Optional[GradientStep]:
    if isinstance(raw_step, GradientStep):
        if not all(_is_number(v) for v in astuple(raw_step)):
            return None
        return GradientStep(*(float(v) for v in astuple(raw_step)))
    if not isinstance(raw_step, Mapping):
        return None

    values = {}
    for name, aliases in STEP_FIELD_ALIASES.items():
        value = next((raw_step[key] for key in aliases if key in raw_step), None)
        if not _is_number(value):
            return None
        values[name] = float(value)
    return GradientStep(**values)


def normalize_gradient_profile(raw: Any) -> List[GradientStep]:
    """
    Turn untrusted gradient data into a validated, time-ordered step list.

    Accepts a list or tuple of step mappings (or ``GradientStep`` objects), a
    JSON-encoded string of the same, or None. If any step is malformed the
    whole profile is rejected and an empty list is returned, so callers only
    ever branch on "gradient data available" vs. "not available".

    Args:
        raw: Gradient steps as stored on a method record, in any of the shapes above

    Returns:
        Steps sorted by time (stable for equal times), or [] when the input is unusable
    """
    if raw is None:
        return []

    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Gradient profile is not valid JSON, ignoring it: {e}")
            return []

    if not isinstance(raw, (list, tuple)):
        logger.warning(f"Gradient profile has unsupported type {type(raw).__name__}, ignoring it")
        return []

    steps = []
    for index, raw_step in enumerate(raw):
        step = _coerce_step(raw_step)
        if step is None:
            logger.warning(f"Gradient step {index} is malformed ({raw_step!r}), ignoring profile")
            return []
        steps.append(step)

    for step in steps:
        if abs(step.percent_a + step.percent_b - PERCENT_TOTAL) > PERCENT_TOLERANCE:
            logger.debug(
                f"Gradient step at {step.time} min has %A + %B = "
                f"{step.percent_a + step.percent_b:.2f}"
            )

    # sorted() is stable, so equal times keep their original order
    return sorted(steps, key=lambda s: s.time)


def round_volume(value: float, places: int = 2) -> float:
    """Round half away from zero, the way fixed-point display rounding does."""
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def calculate_solvent_usage(
    profile: Any,
    batch_size: int,
    injection_volume: float = 0.0,
) -> SolventUsage:
    """
    Estimate mobile-phase consumption for a batch of injections.

    Each pair of adjacent steps defines a segment whose volume is its duration
    times the mean flow rate; that volume is split between A and B by the mean
    composition over the segment. The per-injection totals are then scaled by
    the batch size.

    Args:
        profile: Gradient steps (validated or raw, normalized here either way)
        batch_size: Number of injections run with this gradient
        injection_volume: Sample volume per injection; added to the total only,
            since injected sample is not mobile phase

    Returns:
        SolventUsage with every field rounded to 2 decimals. Profiles with fewer
        than two steps and non-positive batch sizes give all zeros.
    """
    steps = normalize_gradient_profile(profile)
    batch_size = int(batch_size)
    if len(steps) < 2 or batch_size <= 0:
        return SolventUsage(0.0, 0.0, 0.0)

    total_a = 0.0
    total_b = 0.0
    for current, nxt in zip(steps, steps[1:]):
        dt = nxt.time - current.time
        if dt <= 0:
            # Equal times add nothing; negative ones can't survive the sort
            continue
        avg_flow = (current.flow_rate + nxt.flow_rate) / 2
        avg_percent_a = (current.percent_a + nxt.percent_a) / 2
        avg_percent_b = (current.percent_b + nxt.percent_b) / 2

        segment_volume = max(0.0, dt * avg_flow)
        total_a += segment_volume * avg_percent_a / 100
        total_b += segment_volume * avg_percent_b / 100

    solvent_a = total_a * batch_size
    solvent_b = total_b * batch_size
    if not _is_number(injection_volume):
        injection_volume = 0.0
    injection_contribution = float(injection_volume) * batch_size

    if not (math.isfinite(solvent_a) and math.isfinite(solvent_b)):
        logger.warning("Solvent usage overflowed, reporting zeros")
        return SolventUsage(0.0, 0.0, 0.0)

    return SolventUsage(
        solvent_a_ml=round_volume(solvent_a),
        solvent_b_ml=round_volume(solvent_b),
        total_volume_ml=round_volume(solvent_a + solvent_b + injection_contribution),
    )


def gradient_run_time(profile: Sequence[GradientStep]) -> float:
    """Time of the last step, in minutes (0 for an empty profile)."""
    return profile[-1].time if profile else 0.0


def expand_gradient(
    profile: Sequence[GradientStep], resolution: float = 0.5, max_time: Optional[float] = None
) -> List[Tuple[float, float, float]]:
    """
    Resample a gradient onto a regular time grid for plotting and tables.

    Args:
        profile: Validated, time-ordered steps
        resolution: Grid spacing in minutes
        max_time: Last grid time (defaults to the final step time)

    Returns:
        List of (time, %B, flow rate) tuples, linearly interpolated between steps
    """
    if not profile:
        return []
    if max_time is None:
        max_time = gradient_run_time(profile)

    times = [s.time for s in profile]
    full_times = np.arange(profile[0].time, max_time + resolution / 2, resolution)
    percent_b = np.interp(full_times, times, [s.percent_b for s in profile])
    flow = np.interp(full_times, times, [s.flow_rate for s in profile])
    return list(zip(full_times.tolist(), percent_b.tolist(), flow.tolist(), strict=False))
