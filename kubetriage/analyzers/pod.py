"""Pod analyzer.

Flags pods that cannot be scheduled, containers stuck in a crash or image
pull back-off, and sandboxes that failed to be created.
"""

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.models import Failure, Result

_BACKOFF_REASONS: frozenset[str] = frozenset({"CrashLoopBackOff", "ImagePullBackOff"})


class PodAnalyzer(Analyzer):
    kind = "Pod"

    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        results: list[Result] = []
        for pod in ctx.client.list_pods(ctx.run, ctx.namespace):
            failures = self._check_pod(ctx, pod)
            if failures:
                results.append(self.make_result(ctx, pod.metadata, failures))
        return results

    def _check_pod(self, ctx: AnalyzerContext, pod) -> list[Failure]:
        failures: list[Failure] = []
        status = pod.status
        pending = status.phase == "Pending"

        if pending:
            for condition in status.conditions or []:
                if (
                    condition.type == "PodScheduled"
                    and condition.reason == "Unschedulable"
                    and condition.message
                ):
                    failures.append(Failure(text=condition.message))

        for container in status.container_statuses or []:
            waiting = container.state.waiting if container.state else None
            if waiting is None:
                continue
            if waiting.reason in _BACKOFF_REASONS and waiting.message:
                failures.append(Failure(text=waiting.message))
            # Still creating: the sandbox error only shows up in the events.
            if waiting.reason == "ContainerCreating" and pending:
                event = self.latest_event(ctx, pod.metadata)
                if event is not None and event.reason == "FailedCreatePodSandBox" and event.message:
                    failures.append(Failure(text=event.message))

        return failures
