"""
Candidate ordering.

Candidates are sorted by disruption priority first: pods that are already
not ready go first, then newest first, then by name. Scatter terms then
spread the sorted list so that pods of the same label group do not end up
next to each other in a batch.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sidecarset.models import Instance, ScatterTerm


def _priority_key(instance: Instance) -> Tuple[bool, float, str, str]:
    return (
        instance.ready,
        -_timestamp(instance.creation_timestamp),
        instance.namespace,
        instance.name,
    )


def _timestamp(value: datetime) -> float:
    return value.timestamp()


def sort_candidates(instances: Sequence[Instance]) -> List[Instance]:
    """Not-ready before ready, newest first within each class."""
    return sorted(instances, key=_priority_key)


def scatter_group(instance: Instance, terms: Sequence[ScatterTerm]) -> Optional[int]:
    """Index of the first term whose label the instance carries, or None."""
    for index, term in enumerate(terms):
        if term.matches(instance.labels):
            return index
    return None


def scatter(instances: Sequence[Instance], terms: Sequence[ScatterTerm]) -> List[Instance]:
    """
    Interleave scatter groups round-robin.

    Groups take turns in the order their first member appears; each group
    keeps its own order. Pods matching no term form one more group. Once a
    group runs dry the others continue, so an oversized group trails at the end
    in its own order.
    """
    if not terms or len(instances) < 2:
        return list(instances)

    groups: Dict[Optional[int], List[Instance]] = OrderedDict()
    for instance in instances:
        groups.setdefault(scatter_group(instance, terms), []).append(instance)
    if len(groups) < 2:
        return list(instances)

    queues = [list(reversed(members)) for members in groups.values()]
    ordered: List[Instance] = []
    while queues:
        for queue in queues:
            ordered.append(queue.pop())
        queues = [queue for queue in queues if queue]
    return ordered


def order_candidates(instances: Sequence[Instance], terms: Sequence[ScatterTerm]) -> List[Instance]:
    """Priority sort followed by the scatter pass."""
    return scatter(sort_candidates(instances), terms)
