"""Report rendering.

Both renderers are pure functions of an :class:`AnalysisRun`.  Results are
sorted by kind and name so the output does not depend on the order in which
analyzers happened to finish.  When the run was anonymized, failure texts
are shown masked.
"""

import json

from kubetriage import masking
from kubetriage.errors import MaskingError
from kubetriage.models import AnalysisRun, Failure, Result


def _sorted(run: AnalysisRun) -> list[Result]:
    return sorted(run.results, key=lambda r: (r.kind, r.name))


def _failure_text(failure: Failure, anonymize: bool) -> str:
    if anonymize and failure.sensitive:
        try:
            return masking.mask(failure.text, failure.sensitive)
        except MaskingError:
            # Never show the raw text of an anonymized run.
            return " ".join(pair.masked for pair in failure.sensitive)
    return failure.text


def _failure_dict(failure: Failure, anonymize: bool) -> dict:
    if not anonymize:
        return failure.to_dict()
    return {
        "text": _failure_text(failure, anonymize),
        "sensitive": [{"masked": pair.masked} for pair in failure.sensitive],
    }


def render_json(run: AnalysisRun) -> str:
    """Render *run* as an indented JSON document.

    The document has ``status``, ``problems``, ``results`` and ``errors``.
    """
    document = run.to_dict()
    document["results"] = []
    for result in _sorted(run):
        item = result.to_dict()
        item["failures"] = [_failure_dict(f, run.anonymize) for f in result.failures]
        document["results"].append(item)
    return json.dumps(document, indent=2)


def render_text(run: AnalysisRun) -> str:
    """Render *run* as plain text, one block per result."""
    if not run.results:
        lines = ["No problems detected"]
    else:
        lines = []
        for index, result in enumerate(_sorted(run)):
            parent = f"({result.parent_object})" if result.parent_object else ""
            lines.append(f"{index} {result.kind} {result.name}{parent}")
            for failure in result.failures:
                lines.append(f"- Error: {_failure_text(failure, run.anonymize)}")
            if result.explanation:
                lines.append(result.explanation)
            lines.append("")

    if run.errors:
        lines.append("Errors:")
        lines.extend(f"- {error}" for error in run.errors)
    if run.cancelled:
        lines.append("Analysis was cancelled; results are partial.")
    return "\n".join(lines).rstrip("\n")
