"""Exception hierarchy for kubetriage.

Configuration-level errors are fatal and abort a run before any analyzer
executes.  Everything else is absorbed per unit of work (one analyzer, one
result, one cache call) and surfaces as partial data in the final report.
"""


class KubeTriageError(Exception):
    """Base class for every error raised by kubetriage."""


# ---------------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------------


class ConfigurationError(KubeTriageError):
    """Missing or invalid provider, cache, or run configuration."""


class NoAnalyzersError(ConfigurationError):
    """The active analyzer set is empty (e.g. a filter matched nothing)."""


class AnalysisError(KubeTriageError):
    """Every requested analyzer failed, so the run has nothing to report."""


# ---------------------------------------------------------------------------
# Absorbed per unit of work
# ---------------------------------------------------------------------------


class ClusterAccessError(KubeTriageError):
    """A list/get call against the cluster API failed."""


class CompletionError(KubeTriageError):
    """The AI provider could not produce a completion."""


class CacheError(KubeTriageError):
    """The explanation cache backing store is unreachable or corrupt."""


class MaskingError(KubeTriageError):
    """Sensitive values could not be masked unambiguously."""


class AnalysisCancelled(KubeTriageError):
    """The run's cancellation signal was observed at a blocking boundary."""
