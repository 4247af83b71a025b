"""
Template identity hashing.

Two digests are derived from the sidecar containers of a SidecarSet:

- the full hash, sensitive to every field including ``image``;
- the image-insensitive hash, computed the same way after blanking every
  container's ``image``, so templates that differ only in image reference
  hash alike.

The containers are encoded as canonical JSON (sorted keys, compact
separators) before hashing, which keeps the digest stable across process
restarts and across re-serialization of equivalent data.
"""

import copy
import hashlib
import json
from typing import Any, Dict, List

from sidecarset.errors import SerializationError


# Same alphabet Kubernetes uses for generated names: no vowels, no 0/1/3.
SAFE_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


def safe_encode(text: str) -> str:
    """Map every character of *text* onto SAFE_ALPHABET."""
    return "".join(SAFE_ALPHABET[ord(ch) % len(SAFE_ALPHABET)] for ch in text)


def encode_containers(containers: List[Dict[str, Any]]) -> str:
    """Canonical JSON encoding of a list of sidecar containers."""
    try:
        return json.dumps(
            {"containers": containers},
            sort_keys=True,
            separators=(",", ":"),
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"cannot encode sidecar containers: {exc}") from exc


def check_containers(containers: Any) -> None:
    """Raise SerializationError unless *containers* is a list of mappings."""
    if not isinstance(containers, list):
        raise SerializationError(
            f"sidecar containers must be a list, got {type(containers).__name__}"
        )
    for container in containers:
        if not isinstance(container, dict):
            raise SerializationError(
                f"sidecar container must be a mapping, got {type(container).__name__}"
            )


def _digest(encoded: str) -> str:
    return safe_encode(hashlib.sha256(encoded.encode("utf-8")).hexdigest())


def sidecar_set_hash(containers: List[Dict[str, Any]]) -> str:
    """Full content hash of the sidecar containers."""
    check_containers(containers)
    return _digest(encode_containers(containers))


def sidecar_set_hash_without_image(containers: List[Dict[str, Any]]) -> str:
    """Content hash of the sidecar containers with every image blanked."""
    check_containers(containers)
    normalized = copy.deepcopy(containers)
    for container in normalized:
        container["image"] = ""
    return _digest(encode_containers(normalized))
