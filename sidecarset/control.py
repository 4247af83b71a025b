"""
Revision tracking for one SidecarSet.

The selection engine only needs two answers about a pod: is its sidecar
already on the desired revision, and may it be upgraded in place at all.
``UpgradeControl`` is that capability; ``SidecarSetControl`` answers it from
the hash annotations the injector records on every pod.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from sidecarset.models import Instance


LOGGER = logging.getLogger(__name__)

SIDECARSET_HASH_ANNOTATION = "kruise.io/sidecarset-hash"
SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION = "kruise.io/sidecarset-hash-without-image"


class UpgradeControl(Protocol):
    def is_updated(self, instance: Instance) -> bool:
        ...

    def is_upgradable(self, instance: Instance) -> bool:
        ...


def encode_pod_hash_annotation(
    existing: Optional[str],
    sidecar_set_name: str,
    hash_value: str,
    sidecar_list: Iterable[str],
    update_timestamp: Optional[str] = None,
) -> str:
    """Return *existing* with the entry for *sidecar_set_name* replaced."""
    entries = _decode(existing)
    entry: Dict[str, Any] = {
        "hash": hash_value,
        "sidecarSetName": sidecar_set_name,
        "sidecarList": sorted(sidecar_list),
    }
    if update_timestamp:
        entry["updateTimestamp"] = update_timestamp
    entries[sidecar_set_name] = entry
    return json.dumps(entries, sort_keys=True, separators=(",", ":"))


def _decode(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        LOGGER.warning("Ignoring malformed sidecarset hash annotation: %r", raw)
        return {}
    return value if isinstance(value, dict) else {}


def pod_sidecar_set_hash(
    annotations: Mapping[str, str], sidecar_set_name: str, annotation: str = SIDECARSET_HASH_ANNOTATION
) -> Optional[str]:
    """The hash recorded on a pod for one SidecarSet, or None."""
    entry = _decode(annotations.get(annotation)).get(sidecar_set_name)
    if not isinstance(entry, dict):
        return None
    value = entry.get("hash")
    return value if isinstance(value, str) else None


class SidecarSetControl:
    """UpgradeControl backed by a SidecarSet's stamped hash pair."""

    def __init__(self, name: str, hash_value: str, hash_without_image: str) -> None:
        self.name = name
        self.hash = hash_value
        self.hash_without_image = hash_without_image

    @classmethod
    def from_annotations(cls, name: str, annotations: Mapping[str, str]) -> Optional["SidecarSetControl"]:
        """Build a control from SidecarSet metadata; None when not stamped yet."""
        hash_value = annotations.get(SIDECARSET_HASH_ANNOTATION)
        hash_without_image = annotations.get(SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION)
        if not hash_value or not hash_without_image:
            return None
        return cls(name, hash_value, hash_without_image)

    def is_updated(self, instance: Instance) -> bool:
        return pod_sidecar_set_hash(instance.annotations, self.name) == self.hash

    def is_upgradable(self, instance: Instance) -> bool:
        # Only image changes can be rolled in place; anything else needs a new pod.
        if instance.terminating or not instance.sidecars_running:
            return False
        recorded = pod_sidecar_set_hash(
            instance.annotations, self.name, SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION
        )
        return recorded is not None and recorded == self.hash_without_image


def sidecar_names(containers: List[Dict[str, Any]]) -> List[str]:
    return [c["name"] for c in containers if isinstance(c, dict) and c.get("name")]
