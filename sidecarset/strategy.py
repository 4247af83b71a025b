"""
Selection of the next pods whose sidecars should be upgraded.

``select_next_upgrade`` is evaluated fresh on every reconciliation pass. It
holds no state between calls, so a pass whose upgrades stalled or partially
applied is corrected by the next one.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sidecarset.budget import calculate_upgrade_count
from sidecarset.control import UpgradeControl
from sidecarset.eligibility import filter_eligible
from sidecarset.errors import SelectorError
from sidecarset.models import Instance, ScatterTerm, UpdateStrategy
from sidecarset.ordering import order_candidates
from sidecarset.scatter import resolve_scatter_terms


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """Ordered pods to upgrade now, plus the figures that produced them."""

    instances: List[Instance] = field(default_factory=list)
    matched_count: int = 0
    upgraded_count: int = 0
    unavailable_count: int = 0
    eligible_count: int = 0
    need_upgrade_count: int = 0
    scatter_terms: List[ScatterTerm] = field(default_factory=list)
    error: Optional[SelectorError] = None

    @property
    def names(self) -> List[str]:
        return [instance.name for instance in self.instances]


def select_next_upgrade(
    strategy: UpdateStrategy,
    instances: Sequence[Instance],
    control: UpgradeControl,
) -> Selection:
    """Pick the pods to upgrade in this pass, in upgrade order."""
    eligibility = filter_eligible(strategy, instances, control)
    if eligibility.error is not None:
        return Selection(error=eligibility.error)

    need = calculate_upgrade_count(
        strategy,
        eligibility.matched_count,
        eligibility.upgraded,
        eligibility.unavailable,
    )
    if strategy.halted:
        need = 0

    terms = resolve_scatter_terms(strategy.scatter_strategy, instances)
    chosen: List[Instance] = []
    if need > 0 and eligibility.eligible:
        chosen = order_candidates(eligibility.eligible, terms)[:need]

    LOGGER.debug(
        "matched=%d upgraded=%d unavailable=%d eligible=%d need=%d selected=%d",
        eligibility.matched_count,
        eligibility.upgraded,
        eligibility.unavailable,
        len(eligibility.eligible),
        need,
        len(chosen),
    )
    return Selection(
        instances=chosen,
        matched_count=eligibility.matched_count,
        upgraded_count=eligibility.upgraded,
        unavailable_count=eligibility.unavailable,
        eligible_count=len(eligibility.eligible),
        need_upgrade_count=need,
        scatter_terms=terms,
    )


@dataclass(frozen=True)
class StatusCounts:
    matched_pods: int = 0
    updated_pods: int = 0
    ready_pods: int = 0
    updated_ready_pods: int = 0

    def as_status(self) -> Dict[str, int]:
        return {
            "matchedPods": self.matched_pods,
            "updatedPods": self.updated_pods,
            "readyPods": self.ready_pods,
            "updatedReadyPods": self.updated_ready_pods,
        }


def calculate_status(instances: Sequence[Instance], control: UpgradeControl) -> StatusCounts:
    """Status counters over every pod the SidecarSet's selector matches."""
    updated = ready = updated_ready = 0
    for instance in instances:
        is_updated = control.is_updated(instance)
        if is_updated:
            updated += 1
        if instance.ready:
            ready += 1
            if is_updated:
                updated_ready += 1
    return StatusCounts(
        matched_pods=len(instances),
        updated_pods=updated,
        ready_pods=ready,
        updated_ready_pods=updated_ready,
    )
