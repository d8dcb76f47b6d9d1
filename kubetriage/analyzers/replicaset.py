"""ReplicaSet analyzer: sets scaled to zero because pod creation failed."""

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.models import Failure, Result


class ReplicaSetAnalyzer(Analyzer):
    kind = "ReplicaSet"

    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        results: list[Result] = []
        for rs in ctx.client.list_replica_sets(ctx.run, ctx.namespace):
            if rs.status.replicas:
                continue
            failures = [
                Failure(text=condition.message)
                for condition in rs.status.conditions or []
                if condition.type == "ReplicaFailure"
                and condition.reason == "FailedCreate"
                and condition.message
            ]
            if failures:
                results.append(self.make_result(ctx, rs.metadata, failures))
        return results
