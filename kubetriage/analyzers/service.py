"""Service analyzer: selectors with no endpoints, or endpoints that are not ready."""

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.masking import sensitive
from kubetriage.models import Failure, Result


class ServiceAnalyzer(Analyzer):
    kind = "Service"

    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        results: list[Result] = []
        for svc in ctx.client.list_services(ctx.run, ctx.namespace):
            selector = svc.spec.selector or {}
            if not selector:
                # Headless or externally managed endpoints.
                continue
            endpoints = ctx.client.get_endpoints(
                ctx.run, svc.metadata.namespace, svc.metadata.name
            )
            failures = self._check_endpoints(selector, endpoints)
            if failures:
                results.append(self.make_result(ctx, svc.metadata, failures))
        return results

    @staticmethod
    def _check_endpoints(selector: dict[str, str], endpoints) -> list[Failure]:
        subsets = (endpoints.subsets or []) if endpoints is not None else []
        if not subsets:
            return [
                Failure(
                    text=f"Service has no endpoints, expected label {key}={value}",
                    sensitive=sensitive(key, value),
                )
                for key, value in selector.items()
            ]

        not_ready: list[str] = []
        for subset in subsets:
            for address in subset.not_ready_addresses or []:
                ref = address.target_ref
                not_ready.append(f"{ref.kind}/{ref.name}" if ref else address.ip)
        if not not_ready:
            return []
        return [
            Failure(
                text=f"Service has not ready endpoints, pods: [{', '.join(not_ready)}]",
                sensitive=sensitive(*[item.split("/", 1)[-1] for item in not_ready]),
            )
        ]
