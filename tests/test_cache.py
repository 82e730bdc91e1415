"""Tests for the expiring memory cache, key builders and invalidation."""
import threading
from datetime import datetime, timedelta

import pytest

from config.app_config import DEFAULT_CONFIG
from services.shared.cache import (
    BULK,
    CacheKeys,
    CachePolicies,
    CachePolicy,
    ExpiringMemoryCache,
    WRITE_AFFECTED_KEYS,
    invalidate_question_caches,
    policies_from_config,
)


class TestExpiration:
    """Sliding and absolute expiry driven by an injected clock."""

    def test_absolute_expiry(self, cache, clock):
        cache.set("k", "v", CachePolicy.minutes(absolute=10))

        clock.advance(minutes=9, seconds=59)
        assert cache.get("k") == (True, "v")

        clock.advance(seconds=1)
        assert cache.get("k") == (False, None)

    def test_sliding_window_renews_on_access(self, cache, clock):
        cache.set("k", "v", CachePolicy.minutes(sliding=5, absolute=15))

        for _ in range(3):
            clock.advance(minutes=4)
            assert cache.get("k") == (True, "v")

        # 16 minutes after storing: the absolute bound wins over the renewed window
        clock.advance(minutes=4)
        assert cache.get("k") == (False, None)

    def test_sliding_window_lapses_without_access(self, cache, clock):
        cache.set("k", "v", CachePolicy.minutes(sliding=5, absolute=15))
        clock.advance(minutes=5)
        assert cache.get("k") == (False, None)

    def test_entry_without_policy_never_expires(self, cache, clock):
        cache.set("k", "v", CachePolicy())
        clock.advance(days=365)
        assert cache.get("k") == (True, "v")

    def test_zero_minutes_expires_immediately(self, cache):
        cache.set("k", "v", CachePolicy.minutes(absolute=0))
        assert cache.get("k") == (False, None)

    def test_falsy_values_are_hits(self, cache):
        cache.set("zero", 0, BULK)
        cache.set("empty", [], BULK)
        assert cache.get("zero") == (True, 0)
        assert cache.get("empty") == (True, [])

    def test_cleanup_expired(self, cache, clock):
        cache.set("short", 1, CachePolicy.minutes(absolute=1))
        cache.set("long", 2, CachePolicy.minutes(absolute=60))
        clock.advance(minutes=2)

        assert cache.cleanup_expired() == 1
        assert cache.keys() == ["long"]
        assert cache.stats()["expirations"] == 1


class TestEviction:

    def test_least_recently_used_entry_is_evicted(self, clock):
        cache = ExpiringMemoryCache(clock=clock, max_entries=2)
        cache.set("a", 1, BULK)
        cache.set("b", 2, BULK)
        cache.get("a")
        cache.set("c", 3, BULK)

        assert sorted(cache.keys()) == ["a", "c"]
        assert cache.stats()["evictions"] == 1

    def test_overwriting_a_key_does_not_evict(self, clock):
        cache = ExpiringMemoryCache(clock=clock, max_entries=2)
        cache.set("a", 1, BULK)
        cache.set("b", 2, BULK)
        cache.set("a", 10, BULK)

        assert cache.size() == 2
        assert cache.get("a") == (True, 10)
        assert cache.stats()["evictions"] == 0


class TestStats:

    def test_hit_rate(self, cache):
        cache.set("k", 1, BULK)
        cache.get("k")
        cache.get("missing")

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)
        assert stats["size"] == 1

    def test_hit_rate_without_requests(self, cache):
        assert cache.stats()["hit_rate"] == 0.0


class TestCacheKeys:

    def test_search_key_ignores_case_order_and_duplicates(self):
        key = CacheKeys.search(["Password", "reset"])
        assert key == 'questions_search_["password", "reset"]'
        assert CacheKeys.search(["reset", " PASSWORD ", "password"]) == key

    def test_search_key_keeps_underscored_terms_distinct(self):
        assert CacheKeys.search(["code_error"]) != CacheKeys.search(["code", "error"])

    def test_normalize_drops_blank_terms(self):
        assert CacheKeys.normalize_terms(["", "  ", "VPN"]) == ("vpn",)

    def test_category_keys_are_case_insensitive(self):
        assert CacheKeys.category(" VPN ") == CacheKeys.category("vpn") == "questions_category_vpn"
        assert CacheKeys.category_count("Vpn") == "count_questions_category_vpn"

    def test_date_range_keys_keep_full_timestamps(self):
        start = datetime(2024, 3, 1, 12, 0, 0)
        same_day = datetime(2024, 3, 1, 13, 0, 0)
        end = datetime(2024, 3, 8, 12, 0, 0)

        assert CacheKeys.question_date_range(start, end) != CacheKeys.question_date_range(same_day, end)
        assert CacheKeys.question_date_range(start, end) != CacheKeys.answer_date_range(start, end)

    def test_question_key(self):
        assert CacheKeys.question(42) == "question_42"


class TestInvalidation:

    def test_write_affected_keys_and_question_key_are_dropped(self, cache):
        for key in WRITE_AFFECTED_KEYS:
            cache.set(key, [], BULK)
        cache.set(CacheKeys.question(7), "q7", BULK)
        cache.set(CacheKeys.question(8), "q8", BULK)
        cache.set(CacheKeys.search(["vpn"]), [], BULK)
        cache.set(CacheKeys.category("vpn"), [], BULK)

        removed = invalidate_question_caches(cache, 7)

        assert removed == len(WRITE_AFFECTED_KEYS) + 1
        assert sorted(cache.keys()) == sorted([
            CacheKeys.question(8), CacheKeys.search(["vpn"]), CacheKeys.category("vpn"),
        ])

    def test_invalidation_on_empty_cache(self, cache):
        assert invalidate_question_caches(cache) == 0


class TestPoliciesFromConfig:

    def test_defaults_match_builtin_policies(self):
        assert policies_from_config(DEFAULT_CONFIG["cache"]) == CachePolicies()

    def test_override(self):
        policies = policies_from_config({"search": {"sliding_minutes": 1, "absolute_minutes": 2}})
        assert policies.search == CachePolicy.minutes(sliding=1, absolute=2)
        assert policies.bulk == BULK

    def test_zero_minutes_from_config(self):
        policies = policies_from_config({"entity": {"sliding_minutes": None, "absolute_minutes": 0}})
        assert policies.entity == CachePolicy(absolute=timedelta(0))


class TestConcurrency:

    def test_parallel_reads_writes_and_invalidation(self):
        cache = ExpiringMemoryCache(max_entries=20)
        errors = []

        def worker(worker_id):
            try:
                for i in range(500):
                    key = f"question_{(worker_id * 7 + i) % 50}"
                    cache.set(key, i, BULK)
                    cache.get(key)
                    if i % 25 == 0:
                        cache.delete_many(WRITE_AFFECTED_KEYS + (key,))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert cache.size() <= 20
        assert cache.stats()["evictions"] > 0
