"""In-process TTL cache for computed tenant billing statuses.

Entries expire two ways:
- lazily, when get() finds a stale entry and drops it
- eagerly, when cleanup() sweeps every stale entry (run by CacheSweeper)

The cache is constructed by the application factory and lives on app.state;
mutators reach it through invalidate_tenant_billing_cache().
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from src.services.billing_evaluator import BillingStatus

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 10 * 60

# External callers build this key on their own; keep the format stable
CACHE_KEY_PREFIX = "billing:"


def billing_cache_key(tenant_id: str) -> str:
    """Return the cache key of a tenant's billing status."""
    return f"{CACHE_KEY_PREFIX}{tenant_id}"


@dataclass
class CacheEntry:
    """A cached billing status with its creation instant and time to live."""

    data: BillingStatus
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class BillingCache:
    """Thread-safe key/value store with per-entry TTL."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            default_ttl: TTL in seconds used when set() gets none
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        # Bumped by invalidate() and clear(); lets a slow miss detect a racing write
        self._generations: dict[str, int] = {}
        self._cleared = 0
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[BillingStatus]:
        """Return the cached status, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug("Billing cache entry expired on read: %s", key)
                return None
            return entry.data

    def set(self, key: str, data: BillingStatus, ttl: Optional[float] = None) -> None:
        """Store or overwrite the entry for key, restarting its TTL."""
        entry = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        with self._lock:
            self._entries[key] = entry

    def generation(self, key: str) -> int:
        """Return a counter that grows every time key is invalidated or the cache cleared."""
        with self._lock:
            return self._generations.get(key, 0) + self._cleared

    def set_if_generation(
        self, key: str, data: BillingStatus, generation: int, ttl: Optional[float] = None
    ) -> bool:
        """Store data only if key was not invalidated since generation was read.

        Returns:
            True if the entry was stored
        """
        with self._lock:
            if self.generation(key) != generation:
                return False
            self.set(key, data, ttl)
            return True

    def invalidate(self, key: str) -> None:
        """Remove the entry for key. No-op when absent."""
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()
            self._cleared += 1

    def cleanup(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Billing cache sweep removed %d expired entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


def invalidate_tenant_billing_cache(cache: BillingCache, tenant_id: str) -> None:
    """Drop a tenant's cached billing status so the next check recomputes it."""
    cache.invalidate(billing_cache_key(tenant_id))
    logger.info("Billing cache invalidated for tenant %s", tenant_id)


class CacheSweeper:
    """Background thread that calls cache.cleanup() on a fixed interval."""

    def __init__(self, cache: BillingCache, interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS):
        self.cache = cache
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start sweeping. Calling start() on a running sweeper does nothing."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="billing-cache-sweeper", daemon=True
        )
        self._thread.start()
        logger.info("Billing cache sweeper started (interval=%ss)", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("Billing cache sweeper stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.cache.cleanup()
            except Exception as e:
                logger.error(f"Billing cache sweep failed: {e}", exc_info=True)
