"""Explanation cache.

:class:`ExplanationCache` is the only thing the explanation stage talks to.
It hides the backend behind ``get``/``put``, honours the ``no_cache``
directive, and turns backend errors into cache misses with a warning.
"""

import hashlib
import logging

from kubetriage.cache.base import CacheBackend
from kubetriage.cache.file import FileCache
from kubetriage.cache.s3 import S3Cache
from kubetriage.config import CacheSettings
from kubetriage.errors import CacheError, ConfigurationError
from kubetriage.models import RunContext

logger = logging.getLogger(__name__)

__all__ = [
    "CACHE_BACKENDS",
    "CacheBackend",
    "ExplanationCache",
    "FileCache",
    "S3Cache",
    "cache_key",
    "get_cache_backend",
    "list_backends",
]

CACHE_BACKENDS: dict[str, type[CacheBackend]] = {
    FileCache.name: FileCache,
    S3Cache.name: S3Cache,
}


def list_backends() -> list[str]:
    """Names of every cache backend, for introspection."""
    return list(CACHE_BACKENDS)


def cache_key(masked_prompt: str) -> str:
    """Content hash of a masked prompt."""
    return hashlib.sha256(masked_prompt.encode("utf-8")).hexdigest()


def get_cache_backend(settings: CacheSettings) -> CacheBackend:
    """Instantiate the backend named by *settings*.

    Raises:
        ConfigurationError: If the backend type is unknown or incomplete.
    """
    if settings.type == FileCache.name:
        return FileCache(settings.path)
    if settings.type == S3Cache.name:
        if not settings.bucket:
            raise ConfigurationError("the s3 cache backend needs a bucket")
        return S3Cache(bucket=settings.bucket, region=settings.region, prefix=settings.prefix)
    raise ConfigurationError(
        f"Unknown cache backend {settings.type!r}; expected one of {', '.join(list_backends())}"
    )


class ExplanationCache:
    """Front for a :class:`CacheBackend` used by the explanation stage.

    Args:
        backend: Where entries are stored.
        no_cache: Skip lookups.  Completions are still stored so that later
            cached runs benefit.
    """

    def __init__(self, backend: CacheBackend, no_cache: bool = False) -> None:
        self.backend = backend
        self.no_cache = no_cache

    @property
    def name(self) -> str:
        return self.backend.name

    def get(self, key: str, ctx: RunContext | None = None) -> str | None:
        """Return the cached completion for *key*, or ``None``."""
        if self.no_cache:
            return None
        if ctx is not None:
            ctx.check()
        try:
            entry = self.backend.get(key)
        except CacheError as exc:
            logger.warning("Explanation cache (%s) unavailable, treating as miss: %s", self.name, exc)
            return None
        if entry is None:
            return None
        logger.debug("Cache hit for %s", key[:12])
        return entry.value

    def put(self, key: str, value: str, ctx: RunContext | None = None) -> None:
        """Store *value* under *key*; failures are logged, never raised."""
        if ctx is not None:
            ctx.check()
        try:
            self.backend.put(key, value)
        except CacheError as exc:
            logger.warning("Could not store explanation in cache (%s): %s", self.name, exc)
