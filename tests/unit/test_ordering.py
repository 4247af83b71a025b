"""Unit tests for candidate ordering and scatter interleaving."""
import random

import pytest

from sidecarset.models import ScatterTerm
from sidecarset.ordering import order_candidates, scatter, scatter_group, sort_candidates


def names(instances):
    return [i.name for i in instances]


@pytest.mark.unit
class TestSortCandidates:
    """Test sort_candidates function."""

    def test_newest_first(self, make_instance):
        pods = [make_instance(i) for i in range(5)]
        random.Random(1).shuffle(pods)
        assert names(sort_candidates(pods)) == ["pod-4", "pod-3", "pod-2", "pod-1", "pod-0"]

    def test_not_ready_first(self, make_instance):
        pods = [make_instance(i, ready=i not in (1, 3)) for i in range(5)]
        assert names(sort_candidates(pods)) == ["pod-3", "pod-1", "pod-4", "pod-2", "pod-0"]

    def test_ties_broken_by_name(self, make_instance):
        first = make_instance(0)
        twin = make_instance(0, namespace="a")
        other = type(first)(name="pod-00", creation_timestamp=first.creation_timestamp)
        ordered = sort_candidates([other, first, twin])
        assert [(i.namespace, i.name) for i in ordered] == [("a", "pod-0"), ("default", "pod-0"), ("default", "pod-00")]

    def test_independent_of_input_order(self, make_instance):
        pods = [make_instance(i, ready=i % 3 != 0) for i in range(12)]
        shuffled = list(pods)
        random.Random(5).shuffle(shuffled)
        assert sort_candidates(pods) == sort_candidates(shuffled)


@pytest.mark.unit
class TestScatterGroup:
    """Test scatter_group function."""

    def test_first_matching_term_wins(self, make_instance):
        pod = make_instance(0, labels={"zone": "a", "rack": "r1"})
        scatter_terms = [ScatterTerm(key="rack", value="r1"), ScatterTerm(key="zone", value="a")]
        assert scatter_group(pod, scatter_terms) == 0

    def test_unclassified(self, make_instance):
        assert scatter_group(make_instance(0), [ScatterTerm(key="zone", value="a")]) is None


@pytest.mark.unit
class TestScatter:
    """Test scatter function."""

    def test_round_robin(self, make_instance):
        pods = [
            make_instance(9, labels={"zone": "a"}),
            make_instance(8, labels={"zone": "a"}),
            make_instance(7, labels={"zone": "a"}),
            make_instance(6, labels={"zone": "b"}),
            make_instance(5, labels={"zone": "b"}),
        ]
        scatter_terms = [ScatterTerm(key="zone", value="a"), ScatterTerm(key="zone", value="b")]
        assert names(scatter(pods, scatter_terms)) == ["pod-9", "pod-6", "pod-8", "pod-5", "pod-7"]

    def test_unclassified_form_a_group(self, make_instance):
        pods = [
            make_instance(3, labels={"zone": "a"}),
            make_instance(2, labels={"zone": "a"}),
            make_instance(1),
            make_instance(0),
        ]
        assert names(scatter(pods, [ScatterTerm(key="zone", value="a")])) == ["pod-3", "pod-1", "pod-2", "pod-0"]

    def test_oversized_group_trails_in_order(self, make_instance):
        pods = [make_instance(i, labels={"zone": "a"}) for i in range(9, 4, -1)]
        pods.append(make_instance(0, labels={"zone": "b"}))
        result = names(scatter(pods, [ScatterTerm(key="zone", value="a"), ScatterTerm(key="zone", value="b")]))
        assert result == ["pod-9", "pod-0", "pod-8", "pod-7", "pod-6", "pod-5"]

    def test_groups_keep_internal_order(self, make_instance):
        pods = [make_instance(i, labels={"zone": "ab"[i % 2]}) for i in range(10, 0, -1)]
        scatter_terms = [ScatterTerm(key="zone", value="a"), ScatterTerm(key="zone", value="b")]
        result = scatter(pods, scatter_terms)
        for zone in "ab":
            expected = [p for p in pods if p.labels["zone"] == zone]
            assert [p for p in result if p.labels["zone"] == zone] == expected

    def test_no_terms_is_identity(self, make_instance):
        pods = [make_instance(i) for i in range(4)]
        assert scatter(pods, []) == pods

    def test_unmatched_terms_do_not_reorder(self, make_instance):
        pods = [make_instance(i) for i in range(4)]
        assert scatter(pods, [ScatterTerm(key="missing", value="x")]) == pods


@pytest.mark.unit
class TestOrderCandidates:
    """Test order_candidates function."""

    def test_sorts_then_scatters(self, make_instance):
        pods = [make_instance(i, labels={"zone": "a" if i < 3 else "b"}) for i in range(5)]
        random.Random(3).shuffle(pods)
        scatter_terms = [ScatterTerm(key="zone", value="a"), ScatterTerm(key="zone", value="b")]
        assert names(order_candidates(pods, scatter_terms)) == ["pod-4", "pod-2", "pod-3", "pod-1", "pod-0"]
