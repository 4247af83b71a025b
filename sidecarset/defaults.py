"""
Admission-time defaulting of SidecarSet objects.

Fills in the update strategy and per-container defaults, then stamps the
template hash pair the selection engine compares pods against.
"""

import copy
from typing import Any, Dict, List, Optional

from sidecarset.control import SIDECARSET_HASH_ANNOTATION, SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION
from sidecarset.hashing import check_containers, sidecar_set_hash, sidecar_set_hash_without_image
from sidecarset.models import ROLLING_UPDATE


BEFORE_APP_CONTAINER = "BeforeAppContainer"
SHARE_VOLUME_POLICY_DISABLED = "disabled"
COLD_UPGRADE = "ColdUpgrade"
PULL_ALWAYS = "Always"
PULL_IF_NOT_PRESENT = "IfNotPresent"
TERMINATION_MESSAGE_PATH = "/dev/termination-log"
TERMINATION_MESSAGE_READ_FILE = "File"


def default_image_pull_policy(image: Optional[str]) -> str:
    """``Always`` for ``:latest`` or untagged images, ``IfNotPresent`` otherwise."""
    if not image:
        return PULL_ALWAYS
    if "@" in image:
        return PULL_IF_NOT_PRESENT
    last = image.rsplit("/", 1)[-1]
    if ":" not in last:
        return PULL_ALWAYS
    return PULL_ALWAYS if last.rsplit(":", 1)[1] == "latest" else PULL_IF_NOT_PRESENT


def set_defaults_update_strategy(spec: Dict[str, Any]) -> None:
    strategy = spec["updateStrategy"] = spec.get("updateStrategy") or {}
    strategy.setdefault("type", ROLLING_UPDATE)
    if strategy.get("partition") is None:
        strategy["partition"] = 0
    if strategy.get("maxUnavailable") is None:
        strategy["maxUnavailable"] = 1


def set_defaults_container(container: Dict[str, Any]) -> None:
    container.setdefault("podInjectPolicy", BEFORE_APP_CONTAINER)
    container["shareVolumePolicy"] = container.get("shareVolumePolicy") or {}
    container["shareVolumePolicy"].setdefault("type", SHARE_VOLUME_POLICY_DISABLED)
    container["upgradeStrategy"] = container.get("upgradeStrategy") or {}
    container["upgradeStrategy"].setdefault("upgradeType", COLD_UPGRADE)
    if not container.get("imagePullPolicy"):
        container["imagePullPolicy"] = default_image_pull_policy(container.get("image"))
    container.setdefault("terminationMessagePath", TERMINATION_MESSAGE_PATH)
    container.setdefault("terminationMessagePolicy", TERMINATION_MESSAGE_READ_FILE)


def set_defaults_sidecar_set(spec: Dict[str, Any], old_spec: Optional[Dict[str, Any]] = None) -> None:
    """
    Default *spec* in place.

    On update, a container that leaves ``imagePullPolicy`` empty keeps the
    policy the old object had for the container of the same name, instead of
    one re-derived from a possibly changed image tag.
    """
    set_defaults_update_strategy(spec)
    old_policies: Dict[str, str] = {}
    for old in (old_spec or {}).get("containers") or []:
        if isinstance(old, dict) and old.get("name") and old.get("imagePullPolicy"):
            old_policies[old["name"]] = old["imagePullPolicy"]

    for container in spec.get("containers") or []:
        if not container.get("imagePullPolicy") and container.get("name") in old_policies:
            container["imagePullPolicy"] = old_policies[container["name"]]
        set_defaults_container(container)


def hash_annotations(containers: List[Dict[str, Any]]) -> Dict[str, str]:
    return {
        SIDECARSET_HASH_ANNOTATION: sidecar_set_hash(containers),
        SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION: sidecar_set_hash_without_image(containers),
    }


def mutate_sidecar_set(body: Dict[str, Any], old: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Return a defaulted, hash-stamped copy of a SidecarSet body.

    Raises SerializationError if the containers cannot be hashed.
    """
    mutated = copy.deepcopy(body)
    spec = mutated.setdefault("spec", {})
    check_containers(spec.get("containers") or [])
    set_defaults_sidecar_set(spec, (old or {}).get("spec"))
    metadata = mutated.setdefault("metadata", {})
    metadata["annotations"] = {
        **(metadata.get("annotations") or {}),
        **hash_annotations(spec.get("containers") or []),
    }
    return mutated
