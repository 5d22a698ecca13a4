import asyncio
import json
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger(__name__)

TRANSACTIONS_PREFIX = "transactions_"
FILTER_OPTIONS_KEY = "filter_options"
STATS_KEY = "transaction_stats"


@dataclass
class _Entry:
    value: Any
    expires_at: float


class ResponseCache:
    """Process-local key/value cache with a TTL per entry.

    One instance is created when the application starts and handed to the
    request handlers. Expired entries are invisible to `get` straight away and
    are physically removed by `sweep`, which `run_sweeper` calls periodically.
    All operations take a lock since sync routes run on a thread pool.
    """

    def __init__(
        self,
        default_ttl: int = 60,
        check_period: int = 120,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self.check_period = check_period
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        """Returns the cached value, or None if the key is missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Stores a value for `ttl` seconds (the default TTL when omitted)."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def flush(self) -> None:
        """Drops every entry."""
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.info(f"Response cache flushed ({dropped} entries dropped).")

    def sweep(self) -> int:
        """Removes expired entries and returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries.")
        return len(expired)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "keys": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def run_sweeper(self) -> None:
        """Sweeps every `check_period` seconds until cancelled."""
        while True:
            await asyncio.sleep(self.check_period)
            self.sweep()


def query_cache_key(params: Mapping[str, Any], prefix: str = TRANSACTIONS_PREFIX) -> str:
    """Canonical key for a query: identical parameters give the same key in any order."""
    canonical = {key: params[key] for key in sorted(params)}
    return prefix + json.dumps(canonical, separators=(",", ":"), ensure_ascii=False)
