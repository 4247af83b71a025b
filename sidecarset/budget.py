"""
Upgrade budget arithmetic.

Percentages resolve against the matched population and round down (floor),
for both ``partition`` and ``maxUnavailable``.
"""

from typing import Optional

from sidecarset.models import BoundKind, IntOrPercent, UpdateStrategy


DEFAULT_PARTITION = 0
DEFAULT_MAX_UNAVAILABLE = 1


def resolve_bound(bound: Optional[IntOrPercent], total: int, default: int) -> int:
    """Concrete, non-negative value of a bound over *total* instances."""
    if bound is None:
        return max(0, default)
    if bound.kind is BoundKind.PERCENT:
        return max(0, bound.value * max(0, total) // 100)
    return max(0, bound.value)


def calculate_upgrade_count(
    strategy: UpdateStrategy,
    matched_count: int,
    upgraded_count: int,
    unavailable_count: int,
) -> int:
    """Number of instances that may be newly upgraded in this pass."""
    matched_count = max(0, matched_count)
    upgraded_count = max(0, upgraded_count)
    unavailable_count = max(0, unavailable_count)

    partition = resolve_bound(strategy.partition, matched_count, DEFAULT_PARTITION)
    max_unavailable = resolve_bound(strategy.max_unavailable, matched_count, DEFAULT_MAX_UNAVAILABLE)

    remaining = max(0, matched_count - partition - upgraded_count)
    available = max(0, max_unavailable - unavailable_count)
    return min(remaining, available)
