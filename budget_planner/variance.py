"""Variance tiers for budget lines, the monthly performance heatmap, trend
directions and spending impact levels."""

from __future__ import annotations

from typing import Optional

from .config import get_config_value

# Budget line status tiers
OK = 'ok'
WARNING = 'warning'
CRITICAL = 'critical'
EXCEEDED = 'exceeded'

# Heatmap tiers
EXCELLENT = 'excellent'
GOOD = 'good'
DANGER = 'danger'
NEUTRAL = 'neutral'  # months without an outcome yet, flat trends

# Trend directions
UP = 'up'
DOWN = 'down'

# Impact levels
HIGH = 'high'
MEDIUM = 'medium'
LOW = 'low'
MINIMAL = 'minimal'

WARNING_THRESHOLD = get_config_value('defaults', 'variance', 'warning', default=0.8)
CRITICAL_THRESHOLD = get_config_value('defaults', 'variance', 'critical', default=0.95)
EXCEEDED_THRESHOLD = get_config_value('defaults', 'variance', 'exceeded', default=1.0)

HEATMAP_EXCELLENT = get_config_value('defaults', 'heatmap', 'excellent', default=110)
HEATMAP_GOOD = get_config_value('defaults', 'heatmap', 'good', default=90)
HEATMAP_WARNING = get_config_value('defaults', 'heatmap', 'warning', default=70)

SIGNIFICANT_CHANGE = get_config_value('defaults', 'trend', 'significant_change', default=10)

IMPACT_HIGH = get_config_value('defaults', 'impact', 'high', default=0.15)
IMPACT_MEDIUM = get_config_value('defaults', 'impact', 'medium', default=0.05)
IMPACT_LOW = get_config_value('defaults', 'impact', 'low', default=0.01)


def budget_status(
    actual: float,
    budgeted: float,
    warning: Optional[float] = None,
    critical: Optional[float] = None,
    exceeded: Optional[float] = None,
) -> str:
    """Classify spending against a single budget line.

    Args:
        actual: Amount spent
        budgeted: Amount planned; ``<= 0`` always yields ``ok``
        warning: Ratio where ``warning`` starts (default 0.8)
        critical: Ratio where ``critical`` starts (default 0.95)
        exceeded: Ratio where ``exceeded`` starts (default 1.0)

    Returns:
        One of ``ok``, ``warning``, ``critical``, ``exceeded``

    Example:
        >>> budget_status(85, 100)
        'warning'
        >>> budget_status(100, 100)
        'exceeded'
    """
    if budgeted <= 0:
        return OK
    ratio = actual / budgeted
    if ratio >= (EXCEEDED_THRESHOLD if exceeded is None else exceeded):
        return EXCEEDED
    if ratio >= (CRITICAL_THRESHOLD if critical is None else critical):
        return CRITICAL
    if ratio >= (WARNING_THRESHOLD if warning is None else warning):
        return WARNING
    return OK


def heatmap_status(actual_balance: float, budgeted_balance: float) -> str:
    """Heatmap tier of a month's actual balance against its planned balance.

    With a positive plan the tier follows the percentage achieved
    (>= 110 excellent, >= 90 good, >= 70 warning, else danger). A plan of zero
    or less has no meaningful percentage, so only the sign of the outcome
    counts.

    Example:
        >>> heatmap_status(90, 100)
        'good'
        >>> heatmap_status(-1, 0)
        'danger'
    """
    if budgeted_balance <= 0:
        return GOOD if actual_balance >= 0 else DANGER

    percentage = actual_balance / budgeted_balance * 100
    if percentage >= HEATMAP_EXCELLENT:
        return EXCELLENT
    if percentage >= HEATMAP_GOOD:
        return GOOD
    if percentage >= HEATMAP_WARNING:
        return WARNING
    return DANGER


def is_significant_change(percentage_change: float, threshold: Optional[float] = None) -> bool:
    """True when a percentage change reaches the significance threshold in either direction."""
    if threshold is None:
        threshold = SIGNIFICANT_CHANGE
    return abs(percentage_change) >= threshold


def change_direction(percentage_change: float, threshold: Optional[float] = None) -> str:
    """``up`` or ``down`` for a significant change, ``neutral`` otherwise."""
    if percentage_change == 0 or not is_significant_change(percentage_change, threshold):
        return NEUTRAL
    return UP if percentage_change > 0 else DOWN


def impact_level(share: float) -> str:
    """Bucket a category's share of total spending (0..1)."""
    if share >= IMPACT_HIGH:
        return HIGH
    if share >= IMPACT_MEDIUM:
        return MEDIUM
    if share >= IMPACT_LOW:
        return LOW
    return MINIMAL
