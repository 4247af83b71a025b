"""Unit tests for pod revision tracking."""
import json
import logging

import pytest

from sidecarset.control import (
    SIDECARSET_HASH_ANNOTATION,
    SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION,
    SidecarSetControl,
    encode_pod_hash_annotation,
    pod_sidecar_set_hash,
    sidecar_names,
)


@pytest.mark.unit
class TestPodHashAnnotation:
    """Test encoding and reading the per-pod hash annotation."""

    def test_encode_new(self):
        raw = encode_pod_hash_annotation(None, "s1", "abc", ["b", "a"], update_timestamp="2024-01-01T00:00:00Z")
        assert json.loads(raw) == {
            "s1": {
                "hash": "abc",
                "sidecarSetName": "s1",
                "sidecarList": ["a", "b"],
                "updateTimestamp": "2024-01-01T00:00:00Z",
            }
        }

    def test_encode_keeps_other_sidecarsets(self):
        first = encode_pod_hash_annotation(None, "s1", "abc", ["a"])
        both = encode_pod_hash_annotation(first, "s2", "def", ["b"])
        updated = encode_pod_hash_annotation(both, "s1", "xyz", ["a"])
        annotations = {SIDECARSET_HASH_ANNOTATION: updated}
        assert pod_sidecar_set_hash(annotations, "s1") == "xyz"
        assert pod_sidecar_set_hash(annotations, "s2") == "def"

    def test_missing(self):
        assert pod_sidecar_set_hash({}, "s1") is None
        assert pod_sidecar_set_hash({SIDECARSET_HASH_ANNOTATION: "{}"}, "s1") is None

    def test_malformed_json_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert pod_sidecar_set_hash({SIDECARSET_HASH_ANNOTATION: "{not json"}, "s1") is None
        assert "malformed" in caplog.text

    def test_non_object_entry(self):
        annotations = {SIDECARSET_HASH_ANNOTATION: json.dumps({"s1": "abc"})}
        assert pod_sidecar_set_hash(annotations, "s1") is None


@pytest.mark.unit
class TestSidecarSetControl:
    """Test SidecarSetControl predicates."""

    def test_is_updated(self, control, make_instance):
        assert control.is_updated(make_instance(0, upgraded=True)) is True
        assert control.is_updated(make_instance(0, upgraded=False)) is False

    def test_is_upgradable(self, control, make_instance):
        assert control.is_upgradable(make_instance(0)) is True

    def test_terminating_not_upgradable(self, control, make_instance):
        assert control.is_upgradable(make_instance(0, terminating=True)) is False

    def test_sidecars_not_running_not_upgradable(self, control, make_instance):
        assert control.is_upgradable(make_instance(0, sidecars_running=False)) is False

    def test_non_image_change_not_upgradable(self, control, make_instance, pod_hash_annotations):
        instance = make_instance(0, annotations=pod_hash_annotations("aaa", "without-old"))
        assert control.is_upgradable(instance) is False

    def test_missing_annotation_not_upgradable(self, control, make_instance):
        assert control.is_upgradable(make_instance(0, annotations={})) is False

    def test_other_sidecarset_ignored(self, make_instance):
        other = SidecarSetControl("other", "bbb", "without-aaa")
        instance = make_instance(0, upgraded=True)
        assert other.is_updated(instance) is False
        assert other.is_upgradable(instance) is False

    def test_from_annotations(self):
        control = SidecarSetControl.from_annotations("s1", {
            SIDECARSET_HASH_ANNOTATION: "h1",
            SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION: "h2",
        })
        assert (control.name, control.hash, control.hash_without_image) == ("s1", "h1", "h2")

    @pytest.mark.parametrize("annotations", [
        {},
        {SIDECARSET_HASH_ANNOTATION: "h1"},
        {SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION: "h2"},
        {SIDECARSET_HASH_ANNOTATION: "", SIDECARSET_HASH_WITHOUT_IMAGE_ANNOTATION: "h2"},
    ])
    def test_from_annotations_unstamped(self, annotations):
        assert SidecarSetControl.from_annotations("s1", annotations) is None


@pytest.mark.unit
def test_sidecar_names():
    containers = [{"name": "proxy"}, {"image": "x"}, "junk", {"name": "log"}]
    assert sidecar_names(containers) == ["proxy", "log"]
