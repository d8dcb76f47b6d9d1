"""Reversible masking of sensitive literals.

Analyzers record every sensitive literal they embed in a failure text
(namespace, object names, label keys and values) together with a token
derived from it by :func:`mask_string`.  Before a prompt leaves the process
:func:`mask` swaps each literal for its token; :func:`unmask` restores the
literals in the AI response.

Tokens are a hash of the value, so the same object always yields the same
token across runs and the masked prompt stays a stable cache key.
"""

import hashlib
import re
from collections.abc import Iterable

from kubetriage.errors import MaskingError
from kubetriage.models import Sensitive

MASK_PREFIX: str = "masked-"
_DIGEST_LENGTH: int = 10


def mask_string(value: str) -> str:
    """Return the deterministic token for *value*.

    >>> mask_string("default") == mask_string("default")
    True
    """
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return f"{MASK_PREFIX}{digest[:_DIGEST_LENGTH]}"


def sensitive(*values: str) -> tuple[Sensitive, ...]:
    """Build sensitive pairs for *values*, skipping empty strings."""
    return tuple(Sensitive(unmasked=v, masked=mask_string(v)) for v in values if v)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_table(pairs: Iterable[Sensitive]) -> dict[str, str]:
    """Deduplicate *pairs* into an ``unmasked -> masked`` table.

    The first token seen for a value wins.  Two distinct values sharing a
    token would make unmasking ambiguous and are rejected.
    """
    table: dict[str, str] = {}
    owners: dict[str, str] = {}
    for pair in pairs:
        if not pair.unmasked or pair.unmasked in table:
            continue
        if not pair.masked:
            raise MaskingError(f"empty token for a value of length {len(pair.unmasked)}")
        owner = owners.get(pair.masked)
        if owner is not None and owner != pair.unmasked:
            raise MaskingError(f"token {pair.masked!r} is shared by two distinct values")
        table[pair.unmasked] = pair.masked
        owners[pair.masked] = pair.unmasked
    return table


def _alternation(keys: Iterable[str]) -> re.Pattern[str]:
    # Longest first so that overlapping values ("web" / "web-0") resolve to
    # the longest match at any position.
    ordered = sorted(keys, key=len, reverse=True)
    return re.compile("|".join(re.escape(key) for key in ordered))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def mask(text: str, pairs: Iterable[Sensitive]) -> str:
    """Replace every sensitive literal in *text* with its token.

    Args:
        text: Text that may contain sensitive literals.
        pairs: Sensitive pairs; duplicates are collapsed.

    Returns:
        The masked text.

    Raises:
        MaskingError: If the pairs are ambiguous or a token already occurs
            verbatim in *text*.
    """
    table = _build_table(pairs)
    if not table:
        return text

    for token in table.values():
        if token in text:
            raise MaskingError(f"token {token!r} already occurs in the text")

    pattern = _alternation(table)
    return pattern.sub(lambda match: table[match.group(0)], text)


def unmask(text: str, pairs: Iterable[Sensitive]) -> str:
    """Restore sensitive literals in *text*; the inverse of :func:`mask`."""
    table = _build_table(pairs)
    if not table:
        return text

    reverse = {token: value for value, token in table.items()}
    pattern = _alternation(reverse)
    return pattern.sub(lambda match: reverse[match.group(0)], text)


def verify(text: str, pairs: Iterable[Sensitive]) -> None:
    """Check that no unmasked value survives in masked *text*.

    Raises:
        MaskingError: If any sensitive literal is still present.
    """
    table = _build_table(pairs)
    if not table:
        return
    # Values may legitimately occur inside tokens; only check the text between them.
    segments = _alternation(table.values()).split(text)
    for value in table:
        if any(value in segment for segment in segments):
            raise MaskingError("masked text still contains a sensitive value")
