"""PersistentVolumeClaim analyzer: pending claims that failed to provision."""

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.models import Failure, Result


class PvcAnalyzer(Analyzer):
    kind = "PersistentVolumeClaim"

    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        results: list[Result] = []
        for pvc in ctx.client.list_persistent_volume_claims(ctx.run, ctx.namespace):
            if pvc.status.phase != "Pending":
                continue
            event = self.latest_event(ctx, pvc.metadata)
            if event is None or event.reason != "ProvisioningFailed" or not event.message:
                continue
            results.append(self.make_result(ctx, pvc.metadata, [Failure(text=event.message)]))
        return results
