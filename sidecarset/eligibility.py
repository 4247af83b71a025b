"""Narrow an instance snapshot down to the pods that may be upgraded now."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sidecarset.control import UpgradeControl
from sidecarset.errors import SelectorError
from sidecarset.models import Instance, UpdateStrategy
from sidecarset.selectors import compile_selector


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Eligibility:
    """
    Outcome of the eligibility filter.

    ``matched`` is the percentage base for the budget; ``eligible`` keeps the
    snapshot order. ``upgraded`` and ``unavailable`` count matched pods already
    on the target revision, and those of them not reporting ready.
    """

    matched: List[Instance] = field(default_factory=list)
    eligible: List[Instance] = field(default_factory=list)
    upgraded: int = 0
    unavailable: int = 0
    error: Optional[SelectorError] = None

    @property
    def matched_count(self) -> int:
        return len(self.matched)


def filter_eligible(
    strategy: UpdateStrategy,
    instances: Sequence[Instance],
    control: UpgradeControl,
) -> Eligibility:
    """
    Apply the strategy's sub-selector and the two control predicates.

    A malformed sub-selector yields an empty result carrying the error, so the
    pass upgrades nothing rather than something unintended.
    """
    try:
        selected = compile_selector(strategy.selector)
    except SelectorError as exc:
        LOGGER.warning("Rolling selector is invalid, selecting nothing: %s", exc)
        return Eligibility(error=exc)

    matched: List[Instance] = []
    eligible: List[Instance] = []
    upgraded = 0
    unavailable = 0
    for instance in instances:
        if not selected(instance.labels):
            continue
        matched.append(instance)
        if control.is_updated(instance):
            upgraded += 1
            if not instance.ready:
                unavailable += 1
            continue
        if control.is_upgradable(instance):
            eligible.append(instance)

    return Eligibility(
        matched=matched,
        eligible=eligible,
        upgraded=upgraded,
        unavailable=unavailable,
    )
