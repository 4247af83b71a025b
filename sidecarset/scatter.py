"""Expansion of wildcard scatter terms against the current population."""

from typing import List, Sequence, Set, Tuple

from sidecarset.models import Instance, ScatterTerm


def resolve_scatter_terms(terms: Sequence[ScatterTerm], instances: Sequence[Instance]) -> List[ScatterTerm]:
    """
    Replace every ``key=*`` term with one concrete term per observed value.

    Values are taken in first-seen order over *instances*; pods without the
    key are skipped. A wildcard's expansion occupies its own slot, and
    concrete terms are copied unchanged, so an already-concrete list comes
    back as is.
    """
    resolved: List[ScatterTerm] = []
    seen: Set[Tuple[str, str]] = set()
    for term in terms:
        if not term.is_wildcard:
            resolved.append(term)
            seen.add((term.key, term.value))
            continue
        for instance in instances:
            value = instance.labels.get(term.key)
            if value is None or (term.key, value) in seen:
                continue
            seen.add((term.key, value))
            resolved.append(ScatterTerm(key=term.key, value=value))
    return resolved
