"""Unified analysis pipeline.

Selects the active analyzers, fans them out over the scheduler, and
optionally hands the merged results to the explanation stage, collecting
everything into a single :class:`~kubetriage.models.AnalysisRun`.

All configuration problems (unknown provider, bad cache backend, invalid
concurrency) are raised **before** any analyzer executes.
"""

import dataclasses
import logging
from dataclasses import dataclass, field

from kubetriage.ai.explainer import ExplanationStage
from kubetriage.ai.providers import resolve_provider
from kubetriage.analyzers import AnalyzerContext, select_analyzers
from kubetriage.cache import ExplanationCache, get_cache_backend
from kubetriage.config import DEFAULT_MAX_CONCURRENCY, Settings
from kubetriage.core.scheduler import Scheduler
from kubetriage.models import AnalysisRun, ObjectRef, RunContext

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOptions:
    """Per-invocation choices, usually straight from the command line.

    Attributes:
        namespace: Namespace to inspect; empty means all namespaces.
        filters: Analyzer kinds to run.  Falls back to the settings'
            active filters, then to every core analyzer.
        refs: Explicit objects to analyze.
        explain: Ask the AI provider to explain each result.
        backend: Provider name; defaults to the settings' default provider.
        language: Overrides the provider's target language.
        no_cache: Skip cache lookups (completions are still stored).
        anonymize: Mask sensitive literals before they reach the provider.
        max_concurrency: Upper bound on analyzers running at once.
    """

    namespace: str = ""
    filters: list[str] = field(default_factory=list)
    refs: list[ObjectRef] = field(default_factory=list)
    explain: bool = False
    backend: str | None = None
    language: str | None = None
    no_cache: bool = False
    anonymize: bool = False
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY


def build_explanation_stage(settings: Settings, options: AnalysisOptions) -> ExplanationStage:
    """Resolve the provider and cache for *options*.

    Raises:
        ConfigurationError: If the provider or cache configuration is unusable.
    """
    name = options.backend or settings.default_provider
    configs = settings.providers
    if options.language:
        configs = [
            dataclasses.replace(c, target_language=options.language) if c.name == name else c
            for c in configs
        ]
    provider = resolve_provider(configs, name)
    cache = ExplanationCache(get_cache_backend(settings.cache), no_cache=options.no_cache)
    return ExplanationStage(provider, cache, anonymize=options.anonymize)


def run_analysis(
    client,
    settings: Settings,
    options: AnalysisOptions,
    ctx: RunContext | None = None,
    stage: ExplanationStage | None = None,
) -> AnalysisRun:
    """Execute a full analysis against the cluster behind *client*.

    Args:
        client: Cluster access capability handed to every analyzer.
        settings: Loaded settings (providers, cache, active filters).
        options: Per-invocation choices.
        ctx: Run context carrying the cancellation signal.
        stage: Prebuilt explanation stage, for callers that reuse its
            provider after the run.  Built from *settings* when omitted.

    Returns:
        An :class:`AnalysisRun` with every result found, explained when
        ``options.explain`` is set.

    Raises:
        ConfigurationError: Before any analyzer runs, for bad configuration
            or when no analyzer matches the filters.
        AnalysisError: If every analyzer failed.
    """
    ctx = ctx or RunContext()
    scheduler = Scheduler(options.max_concurrency)
    if options.explain and stage is None:
        stage = build_explanation_stage(settings, options)
    elif not options.explain:
        stage = None

    analyzers = select_analyzers(options.filters or settings.active_filters, options.refs)
    report = scheduler.run(
        analyzers,
        AnalyzerContext(client=client, namespace=options.namespace, run=ctx),
    )

    results = report.results
    if options.refs:
        results = [r for r in results if any(ref.matches(r) for ref in options.refs)]

    run = AnalysisRun(
        results=results,
        errors=list(report.errors),
        namespace=options.namespace,
        anonymize=options.anonymize,
        cancelled=report.cancelled,
    )
    logger.info("Analysis found %d problems in %d objects", run.problem_count, len(run.results))

    if stage is not None and run.results and not run.cancelled:
        stage.run(ctx, run)

    return run
