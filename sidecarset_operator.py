"""
sidecarset_operator.py

Kopf operator that plans rolling sidecar upgrades for SidecarSets.

Features:
- Mutating admission webhook: defaults SidecarSet strategy and containers and
  stamps the sidecar template hash pair (full and image-insensitive).
- Periodic selection pass per SidecarSet: lists the pods its selector matches,
  works out how many may be upgraded under partition/maxUnavailable, and which
  ones, spread across scatter groups.
- Publishes status counters and the next-upgrade batch; applying the upgrade is
  left to the sidecar injector.

Env vars (all prefixed with SO_):
- SO_SIDECAR_SET_NAME              (optional: only handle this SidecarSet)
- SO_RECONCILE_INTERVAL_SECONDS    (default: 30)
- SO_JSON_LOGS                     (default: false)
- SO_WEBHOOK_ENABLED               (default: false)
- SO_WEBHOOK_HOST                  (default: localhost)
- SO_WEBHOOK_PORT                  (default: 9443)
"""

import json
from typing import Any, Dict, List, Optional

import kopf
import kubernetes
from kubernetes.client import CoreV1Api
from pydantic import ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sidecarset.control import SidecarSetControl, sidecar_names
from sidecarset.defaults import mutate_sidecar_set
from sidecarset.errors import SelectorError, SerializationError
from sidecarset.models import UpdateStrategy
from sidecarset.pods import current_pods, instance_from_pod, parse_selector
from sidecarset.strategy import calculate_status, select_next_upgrade


# =========================
# Settings
# =========================

class SidecarSetSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SO_")

    sidecar_set_name: Optional[str] = None
    reconcile_interval_seconds: int = 30
    json_logs: bool = False
    webhook_enabled: bool = False
    webhook_host: str = "localhost"
    webhook_port: int = 9443

    @field_validator("sidecar_set_name")
    @classmethod
    def must_not_be_blank(cls, v: Optional[str], info: ValidationInfo):
        if v is None:
            return v
        if not v.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return v.strip()

    @field_validator("reconcile_interval_seconds")
    @classmethod
    def must_be_positive(cls, v: int, info: ValidationInfo):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v


settings = SidecarSetSettings()


# =========================
# Constants / Annotations
# =========================

GROUP = "apps.kruise.io"
VERSION = "v1alpha1"
PLURAL = "sidecarsets"

NEXT_UPGRADE_ANNOTATION = "sidecarset-operator/next-upgrade"


# =========================
# Helper functions
# =========================

def is_target(name: str) -> bool:
    """Check whether this SidecarSet is handled by this operator instance."""
    return settings.sidecar_set_name is None or name == settings.sidecar_set_name


def set_annotations_patch(next_upgrade: Optional[List[str]] = None) -> Dict[str, Any]:
    """Build a merge patch for the SidecarSet's operator annotations."""
    patch: Dict[str, Any] = {"metadata": {"annotations": {}}}
    ann = patch["metadata"]["annotations"]
    if next_upgrade is not None:
        ann[NEXT_UPGRADE_ANNOTATION] = json.dumps(next_upgrade)
    return patch


def parse_strategy(spec: Dict[str, Any]) -> UpdateStrategy:
    """Validate spec.updateStrategy into an UpdateStrategy."""
    return UpdateStrategy.model_validate(spec.get("updateStrategy") or {})


@kopf.on.startup()  # type: ignore
def configure(**kwargs):
    """Configure logging, the Kubernetes client and the admission webhook at startup."""
    if settings.json_logs:
        kopf.configure(log_format=kopf.LogFormat.JSON)

    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()

    if settings.webhook_enabled:
        operator_settings: kopf.OperatorSettings = kwargs["settings"]
        operator_settings.admission.server = kopf.WebhookServer(
            host=settings.webhook_host,
            port=settings.webhook_port,
        )
        operator_settings.admission.managed = "sidecarset-operator.kruise.io"


@kopf.on.mutate(GROUP, VERSION, PLURAL)
def mutate_sidecarset(body, patch, logger, **kwargs):
    """Default a SidecarSet and stamp its sidecar template hashes."""
    if kwargs.get("operation") not in (None, "CREATE", "UPDATE"):
        return
    old = kwargs.get("old")
    name = body.get("metadata", {}).get("name")
    try:
        mutated = mutate_sidecar_set(dict(body), dict(old) if old else None)
    except SerializationError as exc:
        logger.error(f"[{name}] Cannot hash sidecar containers: {exc}")
        raise kopf.AdmissionError(str(exc), code=500)

    patch.update({
        "spec": mutated["spec"],
        "metadata": {"annotations": mutated["metadata"]["annotations"]},
    })


@kopf.timer(GROUP, VERSION, PLURAL, interval=settings.reconcile_interval_seconds)
def reconcile_sidecarset(spec, meta, patch, logger, **kwargs):
    """Compute this pass's upgrade batch and publish it with status counters."""
    name = meta["name"]
    if not is_target(name):
        return

    control = SidecarSetControl.from_annotations(name, meta.get("annotations") or {})
    if control is None:
        logger.info(f"[{name}] No sidecar template hash found; skipping.")
        return

    try:
        strategy = parse_strategy(spec)
    except ValidationError as exc:
        logger.error(f"[{name}] Invalid updateStrategy: {exc}")
        return

    core_api = CoreV1Api()
    try:
        if parse_selector(spec) is None:
            logger.error(f"[{name}] SidecarSet has no selector; no pods matched.")
        pods = current_pods(core_api, spec)
    except (SelectorError, ValidationError) as exc:
        logger.error(f"[{name}] Invalid selector: {exc}")
        return
    except kubernetes.client.exceptions.ApiException as exc:
        raise kopf.TemporaryError(f"Failed to list pods: {exc.reason}", delay=settings.reconcile_interval_seconds)

    sidecars = sidecar_names(spec.get("containers") or [])
    instances = [instance_from_pod(p, sidecars) for p in pods]

    status = calculate_status(instances, control)
    patch.status.update(status.as_status())
    patch.status["observedGeneration"] = meta.get("generation")

    selection = select_next_upgrade(strategy, instances, control)
    if selection.error is not None:
        logger.error(f"[{name}] Rolling selector error, nothing selected: {selection.error}")

    next_upgrade = [i.key for i in selection.instances]
    patch.update(set_annotations_patch(next_upgrade=next_upgrade))

    if strategy.halted:
        logger.info(f"[{name}] Update strategy is paused; nothing selected.")
        return

    if not next_upgrade:
        logger.debug(
            f"[{name}] Nothing to upgrade: matched={selection.matched_count}, "
            f"upgraded={selection.upgraded_count}, unavailable={selection.unavailable_count}."
        )
        return

    logger.info(
        f"[{name}] Next upgrade batch ({len(next_upgrade)}/{selection.eligible_count} eligible, "
        f"maxUnavailable={strategy.max_unavailable or 1}, partition={strategy.partition or 0}): "
        f"{next_upgrade}."
    )
