"""Shared pytest fixtures and configuration."""
import os
import random
from datetime import datetime, timedelta, timezone

import pytest

# Keep operator settings deterministic regardless of the caller's environment;
# sidecarset_operator reads them at import time.
os.environ.setdefault("SO_RECONCILE_INTERVAL_SECONDS", "30")

from sidecarset.control import (  # noqa: E402
    SIDECARSET_HASH_ANNOTATION,
    SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION,
    SidecarSetControl,
    encode_pod_hash_annotation,
)
from sidecarset.models import Instance  # noqa: E402

# Pytest markers are defined in pytest.ini

SIDECAR_SET_NAME = "test-sidecarset"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def hash_annotations(hash_value, hash_without_image="without-aaa", name=SIDECAR_SET_NAME):
    return {
        SIDECARSET_HASH_ANNOTATION: encode_pod_hash_annotation(None, name, hash_value, ["test-sidecar"]),
        SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION: encode_pod_hash_annotation(
            None, name, hash_without_image, ["test-sidecar"]
        ),
    }


@pytest.fixture
def control():
    """Control for a SidecarSet whose desired revision is 'bbb'."""
    return SidecarSetControl(SIDECAR_SET_NAME, "bbb", "without-aaa")


@pytest.fixture
def make_instance():
    """Build a single instance; index drives name and creation time (higher = newer)."""

    def _make(index, ready=True, upgraded=False, labels=None, annotations=None, **kwargs):
        if annotations is None:
            annotations = hash_annotations("bbb" if upgraded else "aaa")
        return Instance(
            name=f"pod-{index}",
            creation_timestamp=BASE_TIME + timedelta(seconds=index),
            ready=ready,
            labels={"app": "sidecar", **(labels or {})},
            annotations=annotations,
            **kwargs,
        )

    return _make


@pytest.fixture
def factory_pods(make_instance):
    """
    Build ``count`` instances where the first ``upgraded`` carry the desired
    revision and only the first ``upgraded_and_ready`` of those are ready.
    Returned in shuffled order.
    """

    def _factory(count, upgraded, upgraded_and_ready, seed=7):
        pods = []
        for i in range(count):
            is_upgraded = i < upgraded
            ready = (not is_upgraded) or i < upgraded_and_ready
            pods.append(make_instance(i, ready=ready, upgraded=is_upgraded))
        random.Random(seed).shuffle(pods)
        return pods

    return _factory


@pytest.fixture
def pod_hash_annotations():
    """Callable building the pod hash annotations for the test SidecarSet."""
    return hash_annotations
