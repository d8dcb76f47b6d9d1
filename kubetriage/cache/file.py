"""Local JSON file cache backend (the default)."""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path

from kubetriage.cache.base import CacheBackend
from kubetriage.config import DEFAULT_CACHE_PATH
from kubetriage.errors import CacheError
from kubetriage.models import CacheEntry

logger = logging.getLogger(__name__)


class FileCache(CacheBackend):
    """All entries live in one JSON document::

        {"entries": {"<key>": {"value": "...", "stored_at": "<iso-8601>"}}}

    The file is read on first use and rewritten atomically on every ``put``
    with owner-only permissions.  The lock only guards the in-memory copy;
    file reads and writes happen outside it, so concurrent writers race on
    the file and the last ``os.replace`` wins.
    """

    name = "file"

    def __init__(self, path: str | Path = DEFAULT_CACHE_PATH) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._entries: dict[str, dict] | None = None

    def _read(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise CacheError(f"cannot read cache file {self.path}: {exc}") from exc
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            raise CacheError(f"cache file {self.path} is corrupt")
        return entries

    def _load(self) -> dict[str, dict]:
        with self._lock:
            if self._entries is not None:
                return self._entries
        entries = self._read()
        with self._lock:
            if self._entries is None:
                self._entries = entries
            return self._entries

    def _write(self, entries: dict[str, dict]) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            # mkstemp creates the file with mode 0o600.
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"entries": entries}, fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise CacheError(f"cannot write cache file {self.path}: {exc}") from exc

    def get(self, key: str) -> CacheEntry | None:
        raw = self._load().get(key)
        if raw is None:
            return None
        try:
            return CacheEntry(
                key=key,
                value=raw["value"],
                stored_at=datetime.fromisoformat(raw["stored_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheError(f"corrupt cache entry {key}") from exc

    def put(self, key: str, value: str) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, stored_at=datetime.now(timezone.utc))
        self._load()
        # The in-memory dict is replaced, never mutated, so the snapshot
        # stays stable while it is written.
        with self._lock:
            snapshot = {**(self._entries or {}), key: entry.to_dict()}
            self._entries = snapshot
        self._write(snapshot)
        logger.debug("Stored cache entry %s in %s", key[:12], self.path)
        return entry
