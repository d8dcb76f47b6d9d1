"""Unit tests for the cluster access wrapper."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes import client as k8s
from kubernetes.client.rest import ApiException

from kubetriage.errors import AnalysisCancelled, ClusterAccessError
from kubetriage.kube import ClusterClient
from kubetriage.models import RunContext


@pytest.fixture
def cluster() -> ClusterClient:
    wrapper = ClusterClient()
    wrapper.core = MagicMock()
    wrapper.apps = MagicMock()
    wrapper.batch = MagicMock()
    wrapper.networking = MagicMock()
    wrapper.policy = MagicMock()
    return wrapper


def _owner(kind: str, name: str) -> k8s.V1OwnerReference:
    return k8s.V1OwnerReference(api_version="apps/v1", kind=kind, name=name, uid="uid")


class TestCalls:
    """Tests for list/get plumbing."""

    def test_namespaced_list(self, cluster: ClusterClient) -> None:
        cluster.core.list_namespaced_pod.return_value = k8s.V1PodList(items=[k8s.V1Pod()])
        assert len(cluster.list_pods(RunContext(), "prod")) == 1
        cluster.core.list_namespaced_pod.assert_called_once_with("prod")
        cluster.core.list_pod_for_all_namespaces.assert_not_called()

    def test_cluster_wide_list(self, cluster: ClusterClient) -> None:
        cluster.core.list_service_for_all_namespaces.return_value = k8s.V1ServiceList(items=[])
        assert cluster.list_services(RunContext()) == []

    def test_forbidden_list(self, cluster: ClusterClient) -> None:
        cluster.policy.list_pod_disruption_budget_for_all_namespaces.side_effect = ApiException(
            status=403, reason="Forbidden"
        )
        with pytest.raises(ClusterAccessError, match="403"):
            cluster.list_pod_disruption_budgets(RunContext())

    def test_get_not_found(self, cluster: ClusterClient) -> None:
        cluster.core.read_namespaced_secret.side_effect = ApiException(status=404, reason="Not Found")
        assert cluster.get_secret(RunContext(), "prod", "tls") is None
        cluster.core.read_namespaced_secret.assert_called_once_with("tls", "prod")

    def test_get_server_error(self, cluster: ClusterClient) -> None:
        cluster.networking.read_ingress_class.side_effect = ApiException(status=500, reason="Boom")
        with pytest.raises(ClusterAccessError):
            cluster.get_ingress_class(RunContext(), "nginx")

    def test_cancelled(self, cluster: ClusterClient) -> None:
        ctx = RunContext()
        ctx.cancel()
        with pytest.raises(AnalysisCancelled):
            cluster.list_pods(ctx)
        cluster.core.list_pod_for_all_namespaces.assert_not_called()


class TestEvents:
    def test_latest_event(self, cluster: ClusterClient) -> None:
        now = datetime.now(timezone.utc)
        old = k8s.CoreV1Event(
            involved_object=k8s.V1ObjectReference(name="web"),
            metadata=k8s.V1ObjectMeta(name="e1"),
            reason="Old",
            last_timestamp=now - timedelta(minutes=5),
        )
        new = k8s.CoreV1Event(
            involved_object=k8s.V1ObjectReference(name="web"),
            metadata=k8s.V1ObjectMeta(name="e2"),
            reason="New",
            last_timestamp=now,
        )
        cluster.core.list_namespaced_event.return_value = k8s.CoreV1EventList(items=[new, old])

        assert cluster.latest_event(RunContext(), "prod", "web").reason == "New"
        cluster.core.list_namespaced_event.assert_called_once_with(
            "prod", field_selector="involvedObject.name=web"
        )

    def test_no_events(self, cluster: ClusterClient) -> None:
        cluster.core.list_namespaced_event.return_value = k8s.CoreV1EventList(items=[])
        assert cluster.latest_event(RunContext(), "prod", "web") is None


class TestGetParent:
    """Tests for owner reference resolution."""

    def test_no_owner(self, cluster: ClusterClient) -> None:
        assert cluster.get_parent(RunContext(), k8s.V1ObjectMeta(name="web", namespace="prod")) is None

    def test_replica_set_to_deployment(self, cluster: ClusterClient) -> None:
        cluster.apps.read_namespaced_replica_set.return_value = k8s.V1ReplicaSet(
            metadata=k8s.V1ObjectMeta(name="web-abc", owner_references=[_owner("Deployment", "web")])
        )
        metadata = k8s.V1ObjectMeta(
            name="web-abc-1", namespace="prod", owner_references=[_owner("ReplicaSet", "web-abc")]
        )
        assert cluster.get_parent(RunContext(), metadata) == "Deployment/web"

    def test_orphan_replica_set(self, cluster: ClusterClient) -> None:
        cluster.apps.read_namespaced_replica_set.side_effect = ApiException(status=404, reason="Not Found")
        metadata = k8s.V1ObjectMeta(
            name="web-abc-1", namespace="prod", owner_references=[_owner("ReplicaSet", "web-abc")]
        )
        assert cluster.get_parent(RunContext(), metadata) == "ReplicaSet/web-abc"

    def test_stateful_set(self, cluster: ClusterClient) -> None:
        metadata = k8s.V1ObjectMeta(name="db-0", namespace="prod", owner_references=[_owner("StatefulSet", "db")])
        assert cluster.get_parent(RunContext(), metadata) == "StatefulSet/db"
