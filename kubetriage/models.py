"""kubetriage data models for analysis findings."""

import threading
from dataclasses import dataclass, field
from datetime import datetime

from kubetriage.errors import AnalysisCancelled, ConfigurationError

# ---------------------------------------------------------------------------
# Run status constants
# ---------------------------------------------------------------------------

STATE_OK: str = "OK"
STATE_PROBLEM_DETECTED: str = "ProblemDetected"


# ---------------------------------------------------------------------------
# Failure model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sensitive:
    """A literal substring of a failure text and the token that replaces it."""

    unmasked: str
    masked: str

    def to_dict(self) -> dict:
        return {"unmasked": self.unmasked, "masked": self.masked}


@dataclass(frozen=True)
class Failure:
    """One concrete problem found on a cluster object.

    Attributes:
        text: Human-readable description.  May embed sensitive literals.
        sensitive: Every literal substring of ``text`` that must be
            tokenized before the text leaves the process.
    """

    text: str
    sensitive: tuple[Sensitive, ...] = ()

    def to_dict(self) -> dict:
        """Return a JSON-serializable dictionary representation."""
        return {
            "text": self.text,
            "sensitive": [pair.to_dict() for pair in self.sensitive],
        }


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


@dataclass
class Result:
    """One object-level finding emitted by an analyzer.

    Attributes:
        kind: Resource type tag (e.g. ``"Pod"``).
        name: ``namespace/name`` key, unique per kind within one run.
        failures: Problems found on the object.  Never empty.
        parent_object: Optional ``Kind/name`` of the owning object.
        explanation: AI explanation, attached by the explanation stage.
    """

    kind: str
    name: str
    failures: list[Failure]
    parent_object: str | None = None
    explanation: str | None = None

    def __post_init__(self) -> None:
        if not self.failures:
            raise ValueError(f"{self.kind} {self.name}: a result needs at least one failure")

    @property
    def sensitive_pairs(self) -> list[Sensitive]:
        """All sensitive pairs across this result's failures, in order."""
        return [pair for failure in self.failures for pair in failure.sensitive]

    def to_dict(self) -> dict:
        """Return a JSON-serializable dictionary representation."""
        return {
            "kind": self.kind,
            "name": self.name,
            "failures": [failure.to_dict() for failure in self.failures],
            "explanation": self.explanation,
            "parent_object": self.parent_object,
        }


# ---------------------------------------------------------------------------
# AnalysisRun model
# ---------------------------------------------------------------------------


@dataclass
class AnalysisRun:
    """Aggregated result from a complete analysis run.

    Attributes:
        results: Every result, in completion order.  Order across analyzer
            kinds is not stable between runs.
        errors: Per-analyzer and per-result failures absorbed by the run.
        namespace: Namespace the run was scoped to (empty = all).
        anonymize: Whether sensitive values are masked in the report.
        cancelled: Whether the run was interrupted before completion.
    """

    results: list[Result] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    namespace: str = ""
    anonymize: bool = False
    cancelled: bool = False

    @property
    def status(self) -> str:
        return STATE_PROBLEM_DETECTED if self.results else STATE_OK

    @property
    def problem_count(self) -> int:
        return sum(len(result.failures) for result in self.results)

    def to_dict(self) -> dict:
        """Return a JSON-serializable dictionary of the full run."""
        return {
            "status": self.status,
            "problems": self.problem_count,
            "results": [result.to_dict() for result in self.results],
            "errors": list(self.errors),
        }


# ---------------------------------------------------------------------------
# Cache & provider configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    """A stored AI completion, keyed on the hash of its masked prompt."""

    key: str
    value: str
    stored_at: datetime

    def to_dict(self) -> dict:
        return {"value": self.value, "stored_at": self.stored_at.isoformat()}


@dataclass(frozen=True)
class ProviderConfig:
    """Settings for one named AI backend."""

    name: str
    credential: str = ""
    model: str = ""
    target_language: str = "english"
    base_url: str | None = None

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "credential": self.credential,
            "model": self.model,
            "target_language": self.target_language,
        }
        if self.base_url:
            data["base_url"] = self.base_url
        return data


# ---------------------------------------------------------------------------
# Object references & run context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectRef:
    """An explicit ``Kind`` + ``namespace/name`` reference to one object."""

    kind: str
    name: str

    @classmethod
    def parse(cls, raw: str, default_namespace: str = "default") -> "ObjectRef":
        """Parse ``Kind/namespace/name`` or ``Kind/name``.

        Raises:
            ConfigurationError: If *raw* has the wrong number of parts.
        """
        parts = [part for part in raw.strip().split("/") if part]
        if len(parts) == 2:
            kind, name = parts
            return cls(kind=kind, name=f"{default_namespace or 'default'}/{name}")
        if len(parts) == 3:
            kind, namespace, name = parts
            return cls(kind=kind, name=f"{namespace}/{name}")
        raise ConfigurationError(
            f"Invalid resource reference {raw!r}: expected Kind/namespace/name or Kind/name"
        )

    def matches(self, result: Result) -> bool:
        return self.kind.lower() == result.kind.lower() and self.name == result.name


class RunContext:
    """Shared, read-only state for one run: the cancellation signal."""

    __slots__ = ("_cancel",)

    def __init__(self, cancel: threading.Event | None = None) -> None:
        self._cancel = cancel if cancel is not None else threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def check(self) -> None:
        """Raise :class:`AnalysisCancelled` if the run has been cancelled."""
        if self._cancel.is_set():
            raise AnalysisCancelled("analysis run cancelled")
