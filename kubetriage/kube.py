"""Cluster access backed by the official ``kubernetes`` client.

Analyzers only ever talk to a :class:`ClusterClient`.  Every call checks the
run's cancellation signal first and turns API failures into
:class:`~kubetriage.errors.ClusterAccessError`; ``get_*`` helpers return
``None`` when the object does not exist.
"""

import logging
from collections.abc import Callable
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from kubetriage.errors import ClusterAccessError, ConfigurationError
from kubetriage.models import RunContext

logger = logging.getLogger(__name__)

_NOT_FOUND: int = 404

# Owner kinds that are followed one level further up when resolving parents.
_INTERMEDIATE_OWNERS: frozenset[str] = frozenset({"ReplicaSet", "Job"})


class ClusterClient:
    """Read-only handle on one cluster's API server."""

    def __init__(self, api_client: client.ApiClient | None = None) -> None:
        self.core = client.CoreV1Api(api_client)
        self.apps = client.AppsV1Api(api_client)
        self.batch = client.BatchV1Api(api_client)
        self.networking = client.NetworkingV1Api(api_client)
        self.policy = client.PolicyV1Api(api_client)

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: str | None = None,
        context: str | None = None,
    ) -> "ClusterClient":
        """Build a client from a kubeconfig file, falling back to in-cluster config.

        Raises:
            ConfigurationError: If neither configuration source is usable.
        """
        try:
            api_client = config.new_client_from_config(config_file=kubeconfig, context=context)
            logger.debug("Loaded kubeconfig (context=%s)", context or "current")
            return cls(api_client)
        except (ConfigException, OSError) as kube_exc:
            if kubeconfig or context:
                raise ConfigurationError(f"Cannot load kubeconfig: {kube_exc}") from kube_exc
            try:
                config.load_incluster_config()
            except ConfigException as exc:
                raise ConfigurationError(
                    f"No usable Kubernetes configuration: {kube_exc}; {exc}"
                ) from exc
            logger.debug("Loaded in-cluster config")
            return cls()

    # ------------------------------------------------------------------
    # Call plumbing
    # ------------------------------------------------------------------

    def _call(self, ctx: RunContext, what: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        ctx.check()
        try:
            return fn(*args, **kwargs)
        except ApiException as exc:
            raise ClusterAccessError(f"{what}: {exc.status} {exc.reason}") from exc

    def _get(self, ctx: RunContext, what: str, fn: Callable[..., Any], *args) -> Any | None:
        ctx.check()
        try:
            return fn(*args)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return None
            raise ClusterAccessError(f"{what}: {exc.status} {exc.reason}") from exc

    def _list(self, ctx: RunContext, kind: str, namespace: str, namespaced, cluster_wide) -> list:
        if namespace:
            response = self._call(ctx, f"list {kind} in {namespace}", namespaced, namespace)
        else:
            response = self._call(ctx, f"list {kind}", cluster_wide)
        return list(response.items or [])

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def list_pods(self, ctx: RunContext, namespace: str = "") -> list:
        return self._list(
            ctx, "pods", namespace,
            self.core.list_namespaced_pod, self.core.list_pod_for_all_namespaces,
        )

    def list_services(self, ctx: RunContext, namespace: str = "") -> list:
        return self._list(
            ctx, "services", namespace,
            self.core.list_namespaced_service, self.core.list_service_for_all_namespaces,
        )

    def list_persistent_volume_claims(self, ctx: RunContext, namespace: str = "") -> list:
        return self._list(
            ctx, "persistentvolumeclaims", namespace,
            self.core.list_namespaced_persistent_volume_claim,
            self.core.list_persistent_volume_claim_for_all_namespaces,
        )

    def list_replica_sets(self, ctx: RunContext, namespace: str = "") -> list:
        return self._list(
            ctx, "replicasets", namespace,
            self.apps.list_namespaced_replica_set, self.apps.list_replica_set_for_all_namespaces,
        )

    def list_ingresses(self, ctx: RunContext, namespace: str = "") -> list:
        return self._list(
            ctx, "ingresses", namespace,
            self.networking.list_namespaced_ingress,
            self.networking.list_ingress_for_all_namespaces,
        )

    def list_pod_disruption_budgets(self, ctx: RunContext, namespace: str = "") -> list:
        return self._list(
            ctx, "poddisruptionbudgets", namespace,
            self.policy.list_namespaced_pod_disruption_budget,
            self.policy.list_pod_disruption_budget_for_all_namespaces,
        )

    # ------------------------------------------------------------------
    # Gets
    # ------------------------------------------------------------------

    def get_ingress_class(self, ctx: RunContext, name: str):
        return self._get(ctx, f"get ingressclass {name}", self.networking.read_ingress_class, name)

    def get_service(self, ctx: RunContext, namespace: str, name: str):
        return self._get(
            ctx, f"get service {namespace}/{name}",
            self.core.read_namespaced_service, name, namespace,
        )

    def get_secret(self, ctx: RunContext, namespace: str, name: str):
        return self._get(
            ctx, f"get secret {namespace}/{name}",
            self.core.read_namespaced_secret, name, namespace,
        )

    def get_endpoints(self, ctx: RunContext, namespace: str, name: str):
        return self._get(
            ctx, f"get endpoints {namespace}/{name}",
            self.core.read_namespaced_endpoints, name, namespace,
        )

    def get_replica_set(self, ctx: RunContext, namespace: str, name: str):
        return self._get(
            ctx, f"get replicaset {namespace}/{name}",
            self.apps.read_namespaced_replica_set, name, namespace,
        )

    def get_job(self, ctx: RunContext, namespace: str, name: str):
        return self._get(
            ctx, f"get job {namespace}/{name}",
            self.batch.read_namespaced_job, name, namespace,
        )

    # ------------------------------------------------------------------
    # Events & ownership
    # ------------------------------------------------------------------

    def latest_event(self, ctx: RunContext, namespace: str, name: str):
        """Return the most recent event recorded for object *name*, or ``None``."""
        response = self._call(
            ctx, f"list events for {namespace}/{name}",
            self.core.list_namespaced_event, namespace,
            field_selector=f"involvedObject.name={name}",
        )
        events = list(response.items or [])
        if not events:
            return None
        return max(events, key=_event_time)

    def get_parent(self, ctx: RunContext, metadata) -> str | None:
        """Walk owner references up to the top-level owner.

        Returns:
            ``Kind/name`` of the top-level owner, or ``None`` when
            *metadata* has no owner.
        """
        owners = metadata.owner_references or []
        if not owners:
            return None

        owner = owners[0]
        namespace = metadata.namespace
        lookups = {"ReplicaSet": self.get_replica_set, "Job": self.get_job}
        while owner.kind in _INTERMEDIATE_OWNERS:
            obj = lookups[owner.kind](ctx, namespace, owner.name)
            if obj is None or not obj.metadata.owner_references:
                break
            owner = obj.metadata.owner_references[0]
        return f"{owner.kind}/{owner.name}"


def _event_time(event) -> float:
    stamp = (
        event.last_timestamp
        or getattr(event, "event_time", None)
        or event.metadata.creation_timestamp
    )
    return stamp.timestamp() if stamp is not None else 0.0
