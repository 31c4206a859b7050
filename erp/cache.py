"""
Read-through cache fronting expensive ERP reads.

Purely a throughput optimization: with TTL 0 nothing is stored and every read
goes to the ERP. Values are JSON-compatible structures; callers store
`model_dump(mode="json")` output and rebuild records on every hit, so cached
records are never shared between readers.

Expiry is passive: entries are checked on read, never swept.
"""

import copy
import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from clients.valkey_client import ValkeyClient

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


# =============================================================================
# KEYS
# =============================================================================


def customer_key(customer_id: str) -> str:
    return f"customer:{customer_id}"


def invoice_key(invoice_id: str) -> str:
    return f"invoice:{invoice_id}"


def filters_hash(filters: Mapping[str, Any] | None) -> str:
    """
    Order-independent digest of a filter map.

    {"status": "unpaid", "limit": 10} and {"limit": 10, "status": "unpaid"}
    produce the same digest.
    """
    canonical = json.dumps(dict(filters or {}), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def invoices_prefix(customer_id: str) -> str:
    return f"invoices:{customer_id}:"


def invoices_key(customer_id: str, filters: Mapping[str, Any] | None = None) -> str:
    return f"{invoices_prefix(customer_id)}{filters_hash(filters)}"


# =============================================================================
# CACHE BACKENDS
# =============================================================================


class ReadThroughCache(ABC):
    """Key/value store with per-entry TTL. A miss is never an error."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Stored value, or None if missing or expired."""

    @abstractmethod
    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store `value` for `ttl_seconds`. TTL <= 0 stores nothing."""

    @abstractmethod
    def forget(self, key: str) -> None:
        """Drop one entry."""

    @abstractmethod
    def forget_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with `prefix`. Returns count dropped."""

    def remember(self, key: str, ttl_seconds: int, loader: Callable[[], Any]) -> Any:
        """
        Cached value for `key`, loading and storing it on a miss.

        None results are returned but not stored, so "not found" is re-asked.
        Loader exceptions propagate and nothing is stored.
        """
        value = self.get(key)
        if value is not None:
            return value

        value = loader()
        if value is not None:
            self.put(key, value, ttl_seconds)
        return value


class MemoryCache(ReadThroughCache):
    """
    Process-local cache. Thread-safe, last write wins.

    Args:
        clock: Monotonic seconds source (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        stored = copy.deepcopy(value)
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, stored)

    def forget(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def forget_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ValkeyCache(ReadThroughCache):
    """
    Cache shared by all workers, stored in Valkey as JSON with native TTLs.

    Args:
        valkey: Connected ValkeyClient
        namespace: Key prefix separating this cache from other Valkey users
    """

    def __init__(self, valkey: ValkeyClient, namespace: str = "erpcache:"):
        self._valkey = valkey
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def get(self, key: str) -> Any:
        try:
            return self._valkey.get_json(self._key(key))
        except ValueError:
            # Corrupt entry behaves as a miss; the next put overwrites it
            logger.warning(f"Discarding unreadable cache entry {key}")
            self._valkey.delete(self._key(key))
            return None

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self._valkey.set_json(self._key(key), value, expire_seconds=ttl_seconds)

    def forget(self, key: str) -> None:
        self._valkey.delete(self._key(key))

    def forget_prefix(self, prefix: str) -> int:
        return self._valkey.delete_matching(f"{_escape_glob(self._key(prefix))}*")


def _escape_glob(text: str) -> str:
    """Escape glob metacharacters so ids are matched literally by SCAN MATCH."""
    for char in ("\\", "*", "?", "[", "]"):
        text = text.replace(char, f"\\{char}")
    return text
