"""AI-powered problem explainer.

Turns each result's failures into a prompt, masks sensitive literals,
consults the explanation cache, asks the AI provider on a miss, and attaches
the unmasked answer to the result.

This stage is entirely optional.  A failed completion leaves that result
without an explanation and never stops the remaining results.
"""

import logging

from kubetriage import masking
from kubetriage.ai.providers import AIProvider
from kubetriage.cache import ExplanationCache, cache_key
from kubetriage.config import FOLLOW_UP_TEMPLATE, PROMPT_TEMPLATE
from kubetriage.errors import AnalysisCancelled, CompletionError, MaskingError
from kubetriage.models import AnalysisRun, Result, RunContext

logger = logging.getLogger(__name__)


def build_prompt(result: Result, language: str) -> str:
    """Join the failure texts of *result* into one prompt."""
    problem = " ".join(failure.text for failure in result.failures)
    return PROMPT_TEMPLATE.format(language=language, problem=problem)


class ExplanationStage:
    """Attaches AI explanations to the results of a run.

    Args:
        provider: Configured AI backend.
        cache: Explanation cache front.
        anonymize: Mask sensitive literals before they leave the process.
    """

    def __init__(self, provider: AIProvider, cache: ExplanationCache, anonymize: bool = False) -> None:
        self.provider = provider
        self.cache = cache
        self.anonymize = anonymize

    def explain(self, ctx: RunContext, result: Result) -> str:
        """Return the explanation for *result* without attaching it.

        Raises:
            MaskingError: If the prompt cannot be masked safely.
            CompletionError: If the provider call fails.
            AnalysisCancelled: If the run is cancelled.
        """
        prompt = build_prompt(result, self.provider.language)
        pairs = result.sensitive_pairs if self.anonymize else []

        if pairs:
            prompt = masking.mask(prompt, pairs)
            masking.verify(prompt, pairs)

        key = cache_key(prompt)
        response = self.cache.get(key, ctx)
        if response is None:
            response = self.provider.complete(ctx, prompt)
            self.cache.put(key, response, ctx)
        else:
            logger.debug("Using cached explanation for %s %s", result.kind, result.name)

        return masking.unmask(response, pairs) if pairs else response

    def run(self, ctx: RunContext, run: AnalysisRun) -> None:
        """Explain every result of *run* in place.

        Per-result failures are recorded in ``run.errors``.  Cancellation
        stops the loop and marks the run cancelled; explanations already
        attached are kept.
        """
        total = len(run.results)
        for index, result in enumerate(run.results, start=1):
            try:
                result.explanation = self.explain(ctx, result)
            except AnalysisCancelled:
                run.cancelled = True
                logger.warning("Explanation stage cancelled after %d/%d results", index - 1, total)
                return
            except (CompletionError, MaskingError) as exc:
                run.errors.append(f"{result.kind} {result.name}: {exc}")
                logger.warning("No explanation for %s %s: %s", result.kind, result.name, exc)
                continue
            logger.info("[%d/%d] Explained %s %s", index, total, result.kind, result.name)

    def follow_up(self, ctx: RunContext, run: AnalysisRun, context: str, query: str) -> str:
        """Answer a free-form *query* about an already rendered report.

        *context* must be rendered without masking; with anonymization on,
        the whole prompt is masked with every sensitive pair of *run*.
        Follow-up answers are not cached.

        Raises:
            MaskingError: If the prompt cannot be masked safely.
            CompletionError: If the provider call fails.
            AnalysisCancelled: If the run is cancelled.
        """
        prompt = FOLLOW_UP_TEMPLATE.format(context=context, query=query)
        pairs = [pair for result in run.results for pair in result.sensitive_pairs] if self.anonymize else []
        if pairs:
            prompt = masking.mask(prompt, pairs)
            masking.verify(prompt, pairs)
        response = self.provider.complete(ctx, prompt)
        return masking.unmask(response, pairs) if pairs else response
