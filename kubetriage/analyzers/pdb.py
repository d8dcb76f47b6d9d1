"""PodDisruptionBudget analyzer: budgets whose selector matches no pods."""

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.masking import sensitive
from kubetriage.models import Failure, Result


class PdbAnalyzer(Analyzer):
    kind = "PodDisruptionBudget"

    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        results: list[Result] = []
        for pdb in ctx.client.list_pod_disruption_budgets(ctx.run, ctx.namespace):
            event = self.latest_event(ctx, pdb.metadata)
            if event is None or event.reason != "NoPods" or not event.message:
                continue

            failures: list[Failure] = []
            selector = pdb.spec.selector
            if selector is None:
                failures.append(Failure(text=f"{event.message}, selector is nil"))
            else:
                for key, value in (selector.match_labels or {}).items():
                    failures.append(
                        Failure(
                            text=f"{event.message}, expected label {key}={value}",
                            sensitive=sensitive(key, value),
                        )
                    )
                for expression in selector.match_expressions or []:
                    values = ",".join(expression.values or [])
                    failures.append(
                        Failure(
                            text=(
                                f"{event.message}, expected expression "
                                f"{expression.key} {expression.operator} [{values}]"
                            ),
                        )
                    )

            if failures:
                results.append(self.make_result(ctx, pdb.metadata, failures))
        return results
