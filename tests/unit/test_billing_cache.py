"""Unit tests for the billing status cache and its sweeper."""

import threading
import time
from decimal import Decimal

from src.services.billing_cache import (
    BillingCache,
    CacheSweeper,
    billing_cache_key,
    invalidate_tenant_billing_cache,
)
from src.services.billing_evaluator import BillingStatus

OVERDUE = BillingStatus(is_overdue=True, days_overdue=3, total_overdue_amount=Decimal("500"))
CURRENT = BillingStatus()


class TestCacheKey:
    def test_key_format(self):
        assert billing_cache_key("T1") == "billing:T1"
        assert billing_cache_key("c1a2b3") == "billing:c1a2b3"


class TestBillingCache:
    """Test get/set/invalidate/clear/cleanup."""

    def test_get_missing_key(self, cache):
        assert cache.get("billing:T1") is None

    def test_set_then_get_returns_same_value(self, cache):
        cache.set("billing:T1", OVERDUE)

        assert cache.get("billing:T1") is OVERDUE

    def test_value_readable_until_ttl_boundary(self, cache, fake_clock):
        cache.set("billing:T1", OVERDUE, ttl=100)

        fake_clock.advance(100)

        assert cache.get("billing:T1") is OVERDUE

    def test_expired_entry_is_absent_and_removed(self, cache, fake_clock):
        cache.set("billing:T1", OVERDUE, ttl=100)

        fake_clock.advance(100.5)

        assert cache.get("billing:T1") is None
        assert "billing:T1" not in cache

    def test_default_ttl_is_five_minutes(self, cache, fake_clock):
        cache.set("billing:T1", OVERDUE)

        fake_clock.advance(299)
        assert cache.get("billing:T1") is OVERDUE

        fake_clock.advance(2)
        assert cache.get("billing:T1") is None

    def test_set_overwrites_and_refreshes_timestamp(self, cache, fake_clock):
        cache.set("billing:T1", OVERDUE, ttl=100)
        fake_clock.advance(80)

        cache.set("billing:T1", CURRENT, ttl=100)
        fake_clock.advance(80)

        assert cache.get("billing:T1") is CURRENT

    def test_invalidate_removes_entry(self, cache):
        cache.set("billing:T1", OVERDUE)

        cache.invalidate("billing:T1")

        assert cache.get("billing:T1") is None

    def test_invalidated_value_stays_gone_after_cleanup(self, cache):
        cache.set("billing:T1", OVERDUE)
        cache.invalidate("billing:T1")

        cache.cleanup()

        assert cache.get("billing:T1") is None

    def test_invalidate_absent_key_is_noop(self, cache):
        cache.set("billing:T2", CURRENT)

        cache.invalidate("billing:T1")
        cache.invalidate("billing:T1")

        assert len(cache) == 1
        assert cache.get("billing:T2") is CURRENT

    def test_clear_removes_everything(self, cache):
        cache.set("billing:T1", OVERDUE)
        cache.set("billing:T2", CURRENT)

        cache.clear()

        assert len(cache) == 0

    def test_set_if_generation_stores_when_untouched(self, cache):
        generation = cache.generation("billing:T1")

        assert cache.set_if_generation("billing:T1", OVERDUE, generation) is True
        assert cache.get("billing:T1") is OVERDUE

    def test_set_if_generation_skips_after_invalidate(self, cache):
        generation = cache.generation("billing:T1")
        cache.invalidate("billing:T1")

        assert cache.set_if_generation("billing:T1", OVERDUE, generation) is False
        assert "billing:T1" not in cache

    def test_set_if_generation_skips_after_clear(self, cache):
        generation = cache.generation("billing:T1")
        cache.clear()

        assert cache.set_if_generation("billing:T1", OVERDUE, generation) is False
        assert len(cache) == 0

    def test_other_key_invalidation_does_not_block_store(self, cache):
        generation = cache.generation("billing:T1")
        cache.invalidate("billing:T2")

        assert cache.set_if_generation("billing:T1", OVERDUE, generation) is True

    def test_cleanup_removes_only_expired_entries(self, cache, fake_clock):
        cache.set("billing:short", OVERDUE, ttl=10)
        cache.set("billing:long", CURRENT, ttl=1000)

        fake_clock.advance(20)
        removed = cache.cleanup()

        assert removed == 1
        assert "billing:short" not in cache
        assert cache.get("billing:long") is CURRENT

    def test_cleanup_without_expired_entries(self, cache):
        cache.set("billing:T1", OVERDUE)

        assert cache.cleanup() == 0
        assert len(cache) == 1

    def test_real_clock_expiry(self):
        """Entry with a 100ms TTL is gone after 150ms."""
        real_cache = BillingCache()
        real_cache.set("billing:T1", OVERDUE, ttl=0.1)

        time.sleep(0.15)

        assert real_cache.get("billing:T1") is None

    def test_invalidate_tenant_helper_uses_key_format(self, cache):
        cache.set("billing:T1", OVERDUE)

        invalidate_tenant_billing_cache(cache, "T1")

        assert cache.get("billing:T1") is None

    def test_concurrent_access_is_safe(self):
        shared = BillingCache(default_ttl=0.001)
        errors = []

        def worker(index):
            try:
                for i in range(200):
                    key = f"billing:T{(index + i) % 5}"
                    shared.set(key, OVERDUE)
                    shared.get(key)
                    if i % 3 == 0:
                        shared.invalidate(key)
                    if i % 7 == 0:
                        shared.cleanup()
            except Exception as e:  # pragma: no cover - surfaced by assertion
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []


class TestCacheSweeper:
    """Background sweep of expired entries."""

    def test_sweeper_removes_expired_entries_without_reads(self, fake_clock):
        cache = BillingCache(clock=fake_clock)
        cache.set("billing:T1", OVERDUE, ttl=10)
        fake_clock.advance(60)
        sweeper = CacheSweeper(cache, interval=0.01)

        sweeper.start()
        try:
            deadline = time.monotonic() + 2
            while "billing:T1" in cache and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            sweeper.stop()

        assert "billing:T1" not in cache

    def test_start_and_stop(self, cache):
        sweeper = CacheSweeper(cache, interval=60)

        sweeper.start()
        assert sweeper.running is True
        sweeper.start()  # second start is a no-op
        assert sweeper.running is True

        sweeper.stop()
        assert sweeper.running is False

    def test_stop_without_start(self, cache):
        CacheSweeper(cache, interval=60).stop()

    def test_sweep_errors_do_not_kill_thread(self, cache):
        calls = []

        def failing_cleanup():
            calls.append(1)
            raise RuntimeError("boom")

        cache.cleanup = failing_cleanup
        sweeper = CacheSweeper(cache, interval=0.01)

        sweeper.start()
        try:
            deadline = time.monotonic() + 2
            while len(calls) < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert sweeper.running is True
        finally:
            sweeper.stop()

        assert len(calls) >= 3
