"""Sidecar upgrade selection for SidecarSets."""

from sidecarset.budget import calculate_upgrade_count, resolve_bound
from sidecarset.control import SidecarSetControl, UpgradeControl
from sidecarset.eligibility import Eligibility, filter_eligible
from sidecarset.errors import SelectorError, SerializationError, SidecarSetError
from sidecarset.hashing import sidecar_set_hash, sidecar_set_hash_without_image
from sidecarset.models import (
    BoundKind,
    Instance,
    IntOrPercent,
    LabelSelector,
    LabelSelectorRequirement,
    ScatterTerm,
    UpdateStrategy,
)
from sidecarset.ordering import order_candidates, sort_candidates
from sidecarset.scatter import resolve_scatter_terms
from sidecarset.strategy import Selection, StatusCounts, calculate_status, select_next_upgrade

__all__ = [
    "BoundKind",
    "Eligibility",
    "Instance",
    "IntOrPercent",
    "LabelSelector",
    "LabelSelectorRequirement",
    "ScatterTerm",
    "SelectorError",
    "Selection",
    "SerializationError",
    "SidecarSetControl",
    "SidecarSetError",
    "StatusCounts",
    "UpdateStrategy",
    "UpgradeControl",
    "calculate_status",
    "calculate_upgrade_count",
    "filter_eligible",
    "order_candidates",
    "resolve_bound",
    "resolve_scatter_terms",
    "select_next_upgrade",
    "sidecar_set_hash",
    "sidecar_set_hash_without_image",
    "sort_candidates",
]
