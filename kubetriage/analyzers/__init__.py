"""Analyzer registry and filter selection.

Core analyzers run by default.  Additional analyzers only run when they are
named by a filter (CLI ``--filter`` or the settings' ``active_filters``) or
referenced explicitly with ``--resource``.
"""

import logging
from collections.abc import Iterable

from kubetriage.analyzers.base import Analyzer, AnalyzerContext, object_key
from kubetriage.analyzers.ingress import IngressAnalyzer
from kubetriage.analyzers.pdb import PdbAnalyzer
from kubetriage.analyzers.pod import PodAnalyzer
from kubetriage.analyzers.pvc import PvcAnalyzer
from kubetriage.analyzers.replicaset import ReplicaSetAnalyzer
from kubetriage.analyzers.service import ServiceAnalyzer
from kubetriage.models import ObjectRef

logger = logging.getLogger(__name__)

__all__ = [
    "ADDITIONAL_ANALYZERS",
    "CORE_ANALYZERS",
    "Analyzer",
    "AnalyzerContext",
    "all_analyzer_kinds",
    "list_filters",
    "normalize_filter",
    "object_key",
    "select_analyzers",
]

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

CORE_ANALYZERS: dict[str, type[Analyzer]] = {
    cls.kind: cls
    for cls in (
        PodAnalyzer,
        ReplicaSetAnalyzer,
        PvcAnalyzer,
        ServiceAnalyzer,
        IngressAnalyzer,
    )
}

ADDITIONAL_ANALYZERS: dict[str, type[Analyzer]] = {
    PdbAnalyzer.kind: PdbAnalyzer,
}

_ALL_ANALYZERS: dict[str, type[Analyzer]] = {**CORE_ANALYZERS, **ADDITIONAL_ANALYZERS}


def all_analyzer_kinds() -> list[str]:
    """Every registered analyzer kind, core first."""
    return list(_ALL_ANALYZERS)


def normalize_filter(name: str) -> str | None:
    """Map a user-supplied filter to its registered kind (case-insensitive)."""
    wanted = name.strip().lower()
    for kind in _ALL_ANALYZERS:
        if kind.lower() == wanted:
            return kind
    return None


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def _resolve_filters(filters: Iterable[str]) -> list[str]:
    kinds: list[str] = []
    for name in filters:
        kind = normalize_filter(name)
        if kind is None:
            logger.warning("Unknown analyzer filter %r ignored", name)
        elif kind not in kinds:
            kinds.append(kind)
    return kinds


def select_analyzers(
    filters: Iterable[str] = (),
    refs: Iterable[ObjectRef] = (),
) -> list[Analyzer]:
    """Build the active analyzer set for a run.

    Args:
        filters: Analyzer kind names.  When non-empty, only matching
            analyzers are activated; otherwise every core analyzer is.
        refs: Explicit object references.  When non-empty, only analyzers
            for the referenced kinds are activated.

    Returns:
        Fresh analyzer instances, in registry order.  May be empty.
    """
    filters = list(filters)
    refs = list(refs)

    if filters:
        kinds = _resolve_filters(filters)
    elif refs:
        kinds = list(_ALL_ANALYZERS)
    else:
        kinds = list(CORE_ANALYZERS)

    if refs:
        referenced = {kind for kind in (normalize_filter(ref.kind) for ref in refs) if kind}
        kinds = [kind for kind in kinds if kind in referenced]

    ordered = [kind for kind in _ALL_ANALYZERS if kind in kinds]
    return [_ALL_ANALYZERS[kind]() for kind in ordered]


def list_filters(active_filters: Iterable[str] = ()) -> tuple[list[str], list[str]]:
    """Split registered kinds into ``(active, unused)`` for display.

    With no configured active filters every core analyzer is active.
    """
    active = _resolve_filters(active_filters) or list(CORE_ANALYZERS)
    unused = [kind for kind in _ALL_ANALYZERS if kind not in active]
    return active, unused
