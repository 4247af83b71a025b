"""Conversion of Kubernetes pods into engine instances."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from kubernetes.client import CoreV1Api, V1Pod

from sidecarset.models import Instance, LabelSelector
from sidecarset.selectors import compile_selector, to_label_selector_string


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"


def normalize_image(image: Optional[str]) -> str:
    """
    Expand an image reference to its fully-qualified form.

    Container runtimes report ``docker.io/library/nginx:1.15`` for a spec
    image of ``nginx:1.15``; both normalize to the same string. Digest
    references keep their digest and drop any tag.
    """
    if not image:
        return ""
    name, _, digest = image.partition("@")
    tag = ""
    if ":" in name.rsplit("/", 1)[-1]:
        name, tag = name.rsplit(":", 1)

    domain, _, path = name.partition("/")
    if not path or not ("." in domain or ":" in domain or domain == "localhost"):
        domain, path = DEFAULT_REGISTRY, name
    if domain == "index.docker.io":
        domain = DEFAULT_REGISTRY
    if domain == DEFAULT_REGISTRY and "/" not in path:
        path = f"library/{path}"

    if digest:
        return f"{domain}/{path}@{digest}"
    return f"{domain}/{path}:{tag or DEFAULT_TAG}"


def parse_selector(spec: Dict[str, Any]) -> Optional[LabelSelector]:
    raw = spec.get("selector")
    if raw is None:
        return None
    return LabelSelector.model_validate(raw)


def current_pods(core: CoreV1Api, spec: Dict[str, Any]) -> List[V1Pod]:
    """
    List pods matched by a SidecarSet selector, namespaced when spec.namespace is set.

    A SidecarSet without a selector matches no pods.
    """
    selector = parse_selector(spec)
    if selector is None:
        return []
    matches = compile_selector(selector)
    label_selector = to_label_selector_string(selector)
    namespace = spec.get("namespace")
    if namespace:
        pods = core.list_namespaced_pod(namespace=namespace, label_selector=label_selector).items
    else:
        pods = core.list_pod_for_all_namespaces(label_selector=label_selector).items
    return [p for p in pods if matches((p.metadata.labels if p.metadata else None) or {})]


def is_pod_ready(pod: V1Pod) -> bool:
    """Check if a pod is Ready."""
    conditions: List[Any] = (pod.status.conditions if pod.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


def sidecar_update_completed(pod: V1Pod, sidecars: Iterable[str]) -> bool:
    """True when every named sidecar runs the image its spec asks for."""
    names = set(sidecars)
    if not names:
        return True
    wanted: Dict[str, Optional[str]] = {
        c.name: c.image for c in ((pod.spec.containers if pod.spec else None) or []) if c.name in names
    }
    statuses = {
        s.name: s for s in ((pod.status.container_statuses if pod.status else None) or []) if s.name in names
    }
    for name, image in wanted.items():
        status = statuses.get(name)
        if status is None or normalize_image(status.image) != normalize_image(image):
            return False
    return True


def sidecars_running(pod: V1Pod, sidecars: Iterable[str]) -> bool:
    """True when every named sidecar container reports a running state."""
    names = set(sidecars)
    statuses = {
        s.name: s for s in ((pod.status.container_statuses if pod.status else None) or []) if s.name in names
    }
    for name in names:
        status = statuses.get(name)
        if status is None or status.state is None or status.state.running is None:
            return False
    return True


def instance_from_pod(pod: V1Pod, sidecars: Iterable[str] = ()) -> Instance:
    """
    Snapshot a pod for the selection engine.

    Readiness requires both the pod Ready condition and finished in-place
    updates of the given sidecar containers.
    """
    sidecars = list(sidecars)
    meta = pod.metadata
    created = (meta.creation_timestamp if meta else None) or _EPOCH
    return Instance(
        name=(meta.name if meta else None) or "",
        namespace=(meta.namespace if meta else None) or "default",
        creation_timestamp=created,
        ready=is_pod_ready(pod) and sidecar_update_completed(pod, sidecars),
        labels=dict((meta.labels if meta else None) or {}),
        annotations=dict((meta.annotations if meta else None) or {}),
        terminating=bool(meta and meta.deletion_timestamp),
        sidecars_running=sidecars_running(pod, sidecars),
    )
