"""Unit tests for analyzer registration and filter selection."""

import logging

import pytest

from kubetriage.analyzers import (
    ADDITIONAL_ANALYZERS,
    CORE_ANALYZERS,
    all_analyzer_kinds,
    list_filters,
    normalize_filter,
    select_analyzers,
)
from kubetriage.models import ObjectRef


def _kinds(analyzers) -> list[str]:
    return [a.kind for a in analyzers]


class TestRegistry:
    """Tests for the analyzer registry."""

    def test_core_and_additional_are_disjoint(self) -> None:
        assert not set(CORE_ANALYZERS) & set(ADDITIONAL_ANALYZERS)

    def test_all_kinds_core_first(self) -> None:
        kinds = all_analyzer_kinds()
        assert kinds[: len(CORE_ANALYZERS)] == list(CORE_ANALYZERS)
        assert kinds[-1] == "PodDisruptionBudget"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("pod", "Pod"), ("SERVICE", "Service"), (" ingress ", "Ingress"), ("deployment", None)],
    )
    def test_normalize_filter(self, raw: str, expected: str | None) -> None:
        assert normalize_filter(raw) == expected


class TestSelectAnalyzers:
    """Tests for building the active analyzer set."""

    def test_default_is_core(self) -> None:
        assert _kinds(select_analyzers()) == list(CORE_ANALYZERS)

    def test_filters_narrow_the_set(self) -> None:
        assert _kinds(select_analyzers(["service", "Pod"])) == ["Pod", "Service"]

    def test_additional_analyzer_by_filter(self) -> None:
        assert _kinds(select_analyzers(["PodDisruptionBudget"])) == ["PodDisruptionBudget"]

    def test_unknown_filter_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            analyzers = select_analyzers(["Pod", "Deployment"])
        assert _kinds(analyzers) == ["Pod"]
        assert "Deployment" in caplog.text

    def test_only_unknown_filters_select_nothing(self) -> None:
        assert select_analyzers(["Deployment"]) == []

    def test_refs_select_referenced_kinds(self) -> None:
        refs = [ObjectRef.parse("PodDisruptionBudget/prod/web"), ObjectRef.parse("pod/prod/web-0")]
        assert _kinds(select_analyzers(refs=refs)) == ["Pod", "PodDisruptionBudget"]

    def test_refs_intersect_filters(self) -> None:
        refs = [ObjectRef.parse("Pod/prod/web-0")]
        assert select_analyzers(["Service"], refs) == []

    def test_fresh_instances(self) -> None:
        assert select_analyzers()[0] is not select_analyzers()[0]


class TestListFilters:
    def test_defaults(self) -> None:
        active, unused = list_filters()
        assert active == list(CORE_ANALYZERS)
        assert unused == ["PodDisruptionBudget"]

    def test_configured(self) -> None:
        active, unused = list_filters(["pod", "PodDisruptionBudget"])
        assert active == ["Pod", "PodDisruptionBudget"]
        assert "Service" in unused
        assert "Pod" not in unused
