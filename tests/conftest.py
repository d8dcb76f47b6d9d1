"""Shared fakes for the kubetriage test suite."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from kubernetes import client as k8s

from kubetriage.ai.providers import AIProvider
from kubetriage.cache import CacheBackend, ExplanationCache
from kubetriage.errors import CacheError, ClusterAccessError, CompletionError
from kubetriage.models import CacheEntry, RunContext

# ---------------------------------------------------------------------------
# Cluster fake
# ---------------------------------------------------------------------------


def meta(name: str, namespace: str = "default", **kwargs) -> k8s.V1ObjectMeta:
    return k8s.V1ObjectMeta(name=name, namespace=namespace, **kwargs)


def event(reason: str, message: str) -> SimpleNamespace:
    return SimpleNamespace(reason=reason, message=message)


class FakeCluster:
    """In-memory stand-in for :class:`kubetriage.kube.ClusterClient`.

    Objects are plain ``kubernetes`` client models.  ``events``,
    ``endpoints`` and ``parents`` are keyed on ``namespace/name``.
    Event lookups for keys in ``failing_events`` raise :class:`ClusterAccessError`.
    """

    def __init__(self, **objects) -> None:
        self.pods = objects.get("pods", [])
        self.ingresses = objects.get("ingresses", [])
        self.pdbs = objects.get("pdbs", [])
        self.replica_sets = objects.get("replica_sets", [])
        self.pvcs = objects.get("pvcs", [])
        self.services = objects.get("services", [])
        self.ingress_classes = set(objects.get("ingress_classes", []))
        self.existing_services = set(objects.get("existing_services", []))
        self.secrets = set(objects.get("secrets", []))
        self.endpoints = objects.get("endpoints", {})
        self.events = objects.get("events", {})
        self.failing_events = set(objects.get("failing_events", []))
        self.parents = objects.get("parents", {})
        self.calls: list[str] = []

    @staticmethod
    def _in(items: list, namespace: str) -> list:
        return [i for i in items if not namespace or i.metadata.namespace == namespace]

    def _record(self, ctx: RunContext, call: str) -> None:
        ctx.check()
        self.calls.append(call)

    def list_pods(self, ctx, namespace=""):
        self._record(ctx, "list_pods")
        return self._in(self.pods, namespace)

    def list_ingresses(self, ctx, namespace=""):
        self._record(ctx, "list_ingresses")
        return self._in(self.ingresses, namespace)

    def list_pod_disruption_budgets(self, ctx, namespace=""):
        self._record(ctx, "list_pod_disruption_budgets")
        return self._in(self.pdbs, namespace)

    def list_replica_sets(self, ctx, namespace=""):
        self._record(ctx, "list_replica_sets")
        return self._in(self.replica_sets, namespace)

    def list_persistent_volume_claims(self, ctx, namespace=""):
        self._record(ctx, "list_persistent_volume_claims")
        return self._in(self.pvcs, namespace)

    def list_services(self, ctx, namespace=""):
        self._record(ctx, "list_services")
        return self._in(self.services, namespace)

    def get_ingress_class(self, ctx, name):
        self._record(ctx, "get_ingress_class")
        return SimpleNamespace(name=name) if name in self.ingress_classes else None

    def get_service(self, ctx, namespace, name):
        self._record(ctx, "get_service")
        key = f"{namespace}/{name}"
        return SimpleNamespace(name=key) if key in self.existing_services else None

    def get_secret(self, ctx, namespace, name):
        self._record(ctx, "get_secret")
        key = f"{namespace}/{name}"
        return SimpleNamespace(name=key) if key in self.secrets else None

    def get_endpoints(self, ctx, namespace, name):
        self._record(ctx, "get_endpoints")
        return self.endpoints.get(f"{namespace}/{name}")

    def latest_event(self, ctx, namespace, name):
        self._record(ctx, "latest_event")
        key = f"{namespace}/{name}"
        if key in self.failing_events:
            raise ClusterAccessError("list events: 403 Forbidden")
        return self.events.get(key)

    def get_parent(self, ctx, metadata):
        return self.parents.get(f"{metadata.namespace}/{metadata.name}")


# ---------------------------------------------------------------------------
# Provider & cache fakes
# ---------------------------------------------------------------------------


class RecordingProvider(AIProvider):
    """Echoes the prompt back and remembers every prompt it was sent."""

    name = "recording"

    def __init__(self, fail_when: str | None = None) -> None:
        super().__init__()
        self.prompts: list[str] = []
        self.fail_when = fail_when

    def _configure(self, credential, model, base_url) -> None:
        self.model = model or "recorder"

    def _complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_when and self.fail_when in prompt:
            raise CompletionError("provider unavailable")
        return f"Explained: {prompt}"


class MemoryCache(CacheBackend):
    """Dictionary-backed cache backend; can be told to act unreachable."""

    name = "memory"

    def __init__(self, broken: bool = False) -> None:
        self.entries: dict[str, CacheEntry] = {}
        self.broken = broken

    def get(self, key):
        if self.broken:
            raise CacheError("backend unreachable")
        return self.entries.get(key)

    def put(self, key, value):
        if self.broken:
            raise CacheError("backend unreachable")
        entry = CacheEntry(key=key, value=value, stored_at=datetime.now(timezone.utc))
        self.entries[key] = entry
        return entry


@pytest.fixture
def run_ctx() -> RunContext:
    return RunContext()


@pytest.fixture
def provider() -> RecordingProvider:
    recorder = RecordingProvider()
    recorder.configure(credential="", model="", target_language="english")
    return recorder


@pytest.fixture
def memory_backend() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def explanation_cache(memory_backend: MemoryCache) -> ExplanationCache:
    return ExplanationCache(memory_backend)
