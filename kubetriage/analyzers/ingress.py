"""Ingress analyzer.

Checks that each ingress names an existing ingress class and that every
backend service and TLS secret it references exists.
"""

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.masking import sensitive
from kubetriage.models import Failure, Result

_CLASS_ANNOTATION: str = "kubernetes.io/ingress.class"


class IngressAnalyzer(Analyzer):
    kind = "Ingress"

    def analyze(self, ctx: AnalyzerContext) -> list[Result]:
        results: list[Result] = []
        for ing in ctx.client.list_ingresses(ctx.run, ctx.namespace):
            failures = self._check_ingress(ctx, ing)
            if failures:
                results.append(self.make_result(ctx, ing.metadata, failures))
        return results

    def _check_ingress(self, ctx: AnalyzerContext, ing) -> list[Failure]:
        failures: list[Failure] = []
        namespace = ing.metadata.namespace
        name = ing.metadata.name
        spec = ing.spec

        class_name = spec.ingress_class_name
        if class_name is None:
            class_name = (ing.metadata.annotations or {}).get(_CLASS_ANNOTATION) or None
            if class_name is None:
                failures.append(
                    Failure(
                        text=f"Ingress {namespace}/{name} does not specify an Ingress class.",
                        sensitive=sensitive(namespace, name),
                    )
                )

        if class_name is not None and ctx.client.get_ingress_class(ctx.run, class_name) is None:
            failures.append(
                Failure(
                    text=f"Ingress uses the ingress class {class_name} which does not exist.",
                    sensitive=sensitive(class_name),
                )
            )

        for rule in spec.rules or []:
            if rule.http is None:
                continue
            for path in rule.http.paths or []:
                service = path.backend.service
                if service is None:
                    continue
                if ctx.client.get_service(ctx.run, namespace, service.name) is None:
                    failures.append(
                        Failure(
                            text=(
                                f"Ingress uses the service {namespace}/{service.name} "
                                "which does not exist."
                            ),
                            sensitive=sensitive(namespace, service.name),
                        )
                    )

        for tls in spec.tls or []:
            if not tls.secret_name:
                continue
            if ctx.client.get_secret(ctx.run, namespace, tls.secret_name) is None:
                failures.append(
                    Failure(
                        text=(
                            f"Ingress uses the secret {namespace}/{tls.secret_name} "
                            "as a TLS certificate which does not exist."
                        ),
                        sensitive=sensitive(namespace, tls.secret_name),
                    )
                )

        return failures
