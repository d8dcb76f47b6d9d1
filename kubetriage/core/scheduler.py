"""Concurrent analyzer scheduler.

Runs the active analyzers on a bounded thread pool and merges their results.
A failing analyzer is recorded against its kind and never stops the others;
the call as a whole fails only when there is nothing to run or when every
analyzer failed.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from kubetriage.analyzers.base import Analyzer, AnalyzerContext
from kubetriage.config import DEFAULT_MAX_CONCURRENCY
from kubetriage.errors import (
    AnalysisCancelled,
    AnalysisError,
    ConfigurationError,
    KubeTriageError,
    NoAnalyzersError,
)
from kubetriage.models import Result

logger = logging.getLogger(__name__)


@dataclass
class AnalyzerOutcome:
    """What one analyzer invocation produced."""

    kind: str
    results: list[Result] = field(default_factory=list)
    error: str | None = None
    cancelled: bool = False
    duration: float = 0.0


@dataclass
class ScheduleReport:
    """Merged output of one scheduler run.

    Attributes:
        results: Results from every analyzer that completed.  Each analyzer's
            results keep their emission order; interleaving across kinds
            follows completion order.
        errors: ``"<kind>: <message>"`` for every analyzer that failed.
        cancelled: Whether the run's cancellation signal cut the run short.
    """

    results: list[Result] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False


class _ResultCollector:
    """Merged-results sink; one write per completed analyzer."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._report = ScheduleReport()

    def add(self, outcome: AnalyzerOutcome) -> None:
        with self._lock:
            if outcome.cancelled:
                self._report.cancelled = True
            elif outcome.error is not None:
                self._report.errors.append(f"{outcome.kind}: {outcome.error}")
            else:
                self._report.results.extend(outcome.results)

    def report(self) -> ScheduleReport:
        with self._lock:
            return self._report


class Scheduler:
    """Runs analyzers with at most ``max_concurrency`` executing at once."""

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        if max_concurrency < 1:
            raise ConfigurationError(
                f"max concurrency must be at least 1, got {max_concurrency}"
            )
        self.max_concurrency = max_concurrency

    def run(self, analyzers: list[Analyzer], ctx: AnalyzerContext) -> ScheduleReport:
        """Run every analyzer once and merge the results.

        Args:
            analyzers: The active analyzer set.
            ctx: Shared context (cluster handle, namespace, cancellation).

        Returns:
            A :class:`ScheduleReport` with merged results and per-kind errors.

        Raises:
            NoAnalyzersError: If *analyzers* is empty.
            AnalysisError: If every analyzer failed.
        """
        if not analyzers:
            raise NoAnalyzersError("no analyzers to run: the filter matched nothing")

        collector = _ResultCollector()
        workers = min(self.max_concurrency, len(analyzers))
        logger.debug("Running %d analyzers on %d workers", len(analyzers), workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="analyzer") as executor:
            futures = {executor.submit(_invoke, analyzer, ctx): analyzer for analyzer in analyzers}
            for completed, future in enumerate(as_completed(futures), start=1):
                outcome = future.result()
                collector.add(outcome)
                if outcome.error is not None:
                    logger.warning(
                        "[%d/%d] %s analyzer failed: %s",
                        completed, len(analyzers), outcome.kind, outcome.error,
                    )
                else:
                    logger.info(
                        "[%d/%d] %s analyzer finished with %d results (%.1fs)",
                        completed, len(analyzers), outcome.kind,
                        len(outcome.results), outcome.duration,
                    )

        report = collector.report()
        if not report.cancelled and len(report.errors) == len(analyzers):
            raise AnalysisError("every analyzer failed: " + "; ".join(report.errors))
        return report


def _invoke(analyzer: Analyzer, ctx: AnalyzerContext) -> AnalyzerOutcome:
    start = time.monotonic()
    try:
        ctx.run.check()
        results = list(analyzer.analyze(ctx))
    except AnalysisCancelled:
        return AnalyzerOutcome(kind=analyzer.kind, cancelled=True)
    except KubeTriageError as exc:
        return AnalyzerOutcome(
            kind=analyzer.kind, error=str(exc), duration=time.monotonic() - start
        )
    except Exception as exc:  # noqa: BLE001
        logger.debug("Analyzer %s raised", analyzer.kind, exc_info=True)
        return AnalyzerOutcome(
            kind=analyzer.kind,
            error=f"{type(exc).__name__}: {exc}",
            duration=time.monotonic() - start,
        )
    return AnalyzerOutcome(kind=analyzer.kind, results=results, duration=time.monotonic() - start)
