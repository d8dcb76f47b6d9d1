"""Analyzer interface shared by every resource kind."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from kubetriage.errors import ClusterAccessError
from kubetriage.models import Failure, Result, RunContext

logger = logging.getLogger(__name__)


@dataclass
class AnalyzerContext:
    """Read-only state handed to every analyzer in a run.

    Attributes:
        client: Cluster access capability (a :class:`~kubetriage.kube.ClusterClient`
            or anything exposing the same methods).
        namespace: Namespace to inspect; empty means all namespaces.
        run: Cancellation signal for the run.
    """

    client: object
    namespace: str = ""
    run: RunContext = field(default_factory=RunContext)


class Analyzer(ABC):
    """Inspects one resource kind and emits a :class:`Result` per broken object."""

    kind: str = ""

    @abstractmethod
    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        """Return results for every object of :attr:`kind` with failures.

        Raises:
            ClusterAccessError: If the objects cannot be listed.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind}>"

    # --- helpers ---

    def make_result(self, ctx: AnalyzerContext, metadata, failures: list[Failure]) -> Result:
        """Wrap *failures* for the object described by *metadata*."""
        try:
            parent = ctx.client.get_parent(ctx.run, metadata)
        except ClusterAccessError as exc:
            logger.debug("Parent lookup failed for %s: %s", object_key(metadata), exc)
            parent = None
        return Result(
            kind=self.kind,
            name=object_key(metadata),
            failures=failures,
            parent_object=parent,
        )

    def latest_event(self, ctx: AnalyzerContext, metadata):
        """Return the newest event for the object, or ``None`` if events cannot be read."""
        try:
            return ctx.client.latest_event(ctx.run, metadata.namespace, metadata.name)
        except ClusterAccessError as exc:
            logger.debug("Event lookup failed for %s: %s", object_key(metadata), exc)
            return None


def object_key(metadata) -> str:
    """Return the ``namespace/name`` key of an object."""
    return f"{metadata.namespace}/{metadata.name}"
