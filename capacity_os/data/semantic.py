"""
Semantic layer: shared rounding and percentage helpers.

CRITICAL: All reported percentages must go through these helpers so the
dashboard, per-consultant and rollup views round the same way.
"""
import math
from typing import Iterable, Union

Number = Union[int, float]


# =============================================================================
# SENTINELS
# =============================================================================

# Hours allocated against zero billable capacity
INFINITE_OVERALLOCATION = math.inf


# =============================================================================
# ROUNDING
# =============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


# =============================================================================
# PERCENTAGES
# =============================================================================

def clamp_pct(value: Number) -> float:
    """Clamp a 0-100 percentage field into range."""
    return min(100.0, max(0.0, float(value)))


def allocation_percent(allocated_hours: float, hours_per_week: float) -> Number:
    """
    Allocated hours as a rounded share of billable capacity.

    Over-allocation above 100 is returned as is. Zero capacity returns 0 when
    nothing is allocated, else INFINITE_OVERALLOCATION.
    """
    if hours_per_week <= 0:
        return 0 if allocated_hours <= 0 else INFINITE_OVERALLOCATION
    return round_half_up(allocated_hours / hours_per_week * 100)


def fleet_percent(allocated_hours: float, capacity_hours: float) -> int:
    """Rounded fleet-wide percentage; zero capacity reports 0 (no data)."""
    if capacity_hours <= 0:
        return 0
    return round_half_up(allocated_hours / capacity_hours * 100)


def is_valid_hours(hours: float) -> bool:
    return isinstance(hours, (int, float)) and math.isfinite(hours) and hours >= 0


def ordered_sum(values: Iterable[float]) -> float:
    """Left-to-right float sum, so totals reproduce exactly for the same order."""
    total = 0.0
    for value in values:
        total += value
    return total
