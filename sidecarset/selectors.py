"""Kubernetes label selector matching."""

import re
from typing import Callable, Dict, Mapping, Optional

from sidecarset.errors import SelectorError
from sidecarset.models import LabelSelector, LabelSelectorRequirement


IN = "In"
NOT_IN = "NotIn"
EXISTS = "Exists"
DOES_NOT_EXIST = "DoesNotExist"

_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")

Matcher = Callable[[Mapping[str, str]], bool]


def validate_label_key(key: str) -> None:
    """Raise SelectorError unless *key* is a qualified label name."""
    prefix, _, name = key.rpartition("/")
    if "/" in key and not prefix:
        raise SelectorError(f"invalid label key {key!r}: empty prefix")
    if prefix and (len(prefix) > 253 or not _DNS_SUBDOMAIN_RE.match(prefix)):
        raise SelectorError(f"invalid label key {key!r}: prefix must be a DNS subdomain")
    if not name or len(name) > 63 or not _NAME_RE.match(name):
        raise SelectorError(f"invalid label key {key!r}")


def validate_label_value(value: str) -> None:
    """Raise SelectorError unless *value* is a valid label value (may be empty)."""
    if value == "":
        return
    if len(value) > 63 or not _NAME_RE.match(value):
        raise SelectorError(f"invalid label value {value!r}")


def _requirement_matcher(req: LabelSelectorRequirement) -> Matcher:
    validate_label_key(req.key)
    op = req.operator
    if op in (IN, NOT_IN):
        if not req.values:
            raise SelectorError(f"{op} requirement on {req.key!r} needs at least one value")
        for value in req.values:
            validate_label_value(value)
        allowed = frozenset(req.values)
        if op == IN:
            return lambda labels: req.key in labels and labels[req.key] in allowed
        return lambda labels: req.key not in labels or labels[req.key] not in allowed
    if op in (EXISTS, DOES_NOT_EXIST):
        if req.values:
            raise SelectorError(f"{op} requirement on {req.key!r} must not have values")
        if op == EXISTS:
            return lambda labels: req.key in labels
        return lambda labels: req.key not in labels
    raise SelectorError(f"unsupported selector operator {op!r}")


def compile_selector(selector: Optional[LabelSelector]) -> Matcher:
    """
    Turn a selector into a predicate over a label set.

    ``None`` and the empty selector match everything. Malformed selectors
    raise SelectorError up front, before any label set is examined.
    """
    if selector is None:
        return lambda labels: True

    match_labels: Dict[str, str] = dict(selector.match_labels)
    for key, value in match_labels.items():
        validate_label_key(key)
        validate_label_value(value)
    requirements = [_requirement_matcher(req) for req in selector.match_expressions]

    def matches(labels: Mapping[str, str]) -> bool:
        for key, value in match_labels.items():
            if labels.get(key) != value:
                return False
        return all(req(labels) for req in requirements)

    return matches


def selector_matches(selector: Optional[LabelSelector], labels: Mapping[str, str]) -> bool:
    """One-shot form of compile_selector."""
    return compile_selector(selector)(labels)


def to_label_selector_string(selector: Optional[LabelSelector]) -> str:
    """Render a selector in the ``label_selector`` query syntax of the API server."""
    if selector is None:
        return ""
    clauses = [f"{k}={v}" for k, v in sorted(selector.match_labels.items())]
    for req in selector.match_expressions:
        if req.operator == IN:
            clauses.append(f"{req.key} in ({','.join(req.values)})")
        elif req.operator == NOT_IN:
            clauses.append(f"{req.key} notin ({','.join(req.values)})")
        elif req.operator == EXISTS:
            clauses.append(req.key)
        elif req.operator == DOES_NOT_EXIST:
            clauses.append(f"!{req.key}")
        else:
            raise SelectorError(f"unsupported selector operator {req.operator!r}")
    return ",".join(clauses)
