"""
Local cache — synchronous string key/value store for the offline workspace.

Backends:
  - MemoryCache     process-local dict (tests, throwaway sessions)
  - JsonFileCache   one JSON file on disk (the default device cache)
  - RedisCache      a Redis database (shared cache for server-side workers)

``create_local_cache(url)`` picks a backend from LOCAL_CACHE_URL:
``memory://``, ``file:///abs/path.json`` or ``redis://host:port/db``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from urllib.parse import urlparse

import redis

logger = logging.getLogger(__name__)


class CacheKeys:
    """Keys the workspace writes into the local cache."""

    AGENCIES = "project_budget_agencies_v2"
    CURRENT_AGENCY_ID = "project_budget_current_agency_id"
    USER_ROLE = "user_role"
    DEMO_MODE = "is_demo_mode"
    APP_PASSCODE = "app_passcode"

    # Single-agency layout, read once for migration
    LEGACY_PROJECTS = "project_budget_projects"
    LEGACY_CATEGORIES = "project_budget_categories"
    LEGACY_BUDGET = "project_budget_allocated_total"
    LEGACY_KEYS = (LEGACY_PROJECTS, LEGACY_CATEGORIES, LEGACY_BUDGET)


class LocalCache:
    """Interface: ``get`` returns None for missing keys."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryCache(LocalCache):
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = str(value)

    def remove(self, key):
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileCache(LocalCache):
    """Write-through cache persisted as a single JSON object on disk."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._data = self._read()

    def _read(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Local cache file %s unreadable, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.error("Local cache file %s is not a JSON object, starting empty", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get(self, key):
        with self._lock:
            return self._data.get(key)

    def set(self, key, value):
        with self._lock:
            self._data[key] = str(value)
            self._flush()

    def remove(self, key):
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


class RedisCache(LocalCache):
    def __init__(self, client: redis.Redis, prefix: str = "budget_tracker:"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "budget_tracker:") -> "RedisCache":
        return cls(redis.from_url(url, decode_responses=True), prefix=prefix)

    def get(self, key):
        return self._client.get(self._prefix + key)

    def set(self, key, value):
        self._client.set(self._prefix + key, str(value))

    def remove(self, key):
        self._client.delete(self._prefix + key)


def create_local_cache(url: str | None) -> LocalCache:
    """Build the cache backend named by ``url`` (default: memory)."""
    if not url or url.startswith("memory://"):
        return MemoryCache()
    parsed = urlparse(url)
    if parsed.scheme == "file":
        path = (parsed.netloc + parsed.path) if parsed.netloc else parsed.path
        logger.info("Local cache: JSON file at %s", path)
        return JsonFileCache(path)
    if parsed.scheme in ("redis", "rediss", "unix"):
        logger.info("Local cache: Redis at %s", url.split("@")[-1])
        return RedisCache.from_url(url)
    raise ValueError(f"Unsupported LOCAL_CACHE_URL scheme: {parsed.scheme!r}")
