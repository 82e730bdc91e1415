"""In-process cache with sliding and absolute expiration.

Provides the expiring memory cache that sits in front of the store, the
expiry policies used by the repositories, consistent cache key builders and
the invalidation routine shared by every write path.
"""

import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachePolicy:
    """Entry lifetime.

    An entry expires ``sliding`` after its last access, and in any case
    ``absolute`` after it was stored. Either may be None.
    """
    sliding: Optional[timedelta] = None
    absolute: Optional[timedelta] = None

    @classmethod
    def minutes(cls, sliding: Optional[float] = None, absolute: Optional[float] = None) -> 'CachePolicy':
        return cls(
            sliding=timedelta(minutes=sliding) if sliding is not None else None,
            absolute=timedelta(minutes=absolute) if absolute is not None else None,
        )


# Bulk listings and simple counts
BULK = CachePolicy.minutes(sliding=15, absolute=60)
# Search and category results change more often
SEARCH = CachePolicy.minutes(sliding=5, absolute=15)
# Date range counts
DATE_RANGE = CachePolicy.minutes(absolute=10)
# Single question lookups
ENTITY = CachePolicy.minutes(absolute=30)


@dataclass(frozen=True)
class CachePolicies:
    bulk: CachePolicy = BULK
    search: CachePolicy = SEARCH
    date_range: CachePolicy = DATE_RANGE
    entity: CachePolicy = ENTITY


def policies_from_config(cache_config: Dict[str, Any]) -> CachePolicies:
    """Build policies from the ``cache`` section of the app config."""
    def build(name: str, default: CachePolicy) -> CachePolicy:
        section = cache_config.get(name) or {}
        if not section:
            return default
        return CachePolicy.minutes(
            sliding=section.get('sliding_minutes'),
            absolute=section.get('absolute_minutes'),
        )

    return CachePolicies(
        bulk=build('bulk', BULK),
        search=build('search', SEARCH),
        date_range=build('date_range', DATE_RANGE),
        entity=build('entity', ENTITY),
    )


@dataclass
class CacheStats:
    """Counters for cache monitoring."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hits': self.hits,
            'misses': self.misses,
            'total_requests': self.total_requests,
            'hit_rate': self.hit_rate,
            'evictions': self.evictions,
            'expirations': self.expirations,
            'invalidations': self.invalidations,
        }


@dataclass
class _Entry:
    value: Any
    policy: CachePolicy
    stored_at: datetime
    last_access: Optional[datetime] = None

    def expires_at(self) -> Optional[datetime]:
        candidates = []
        if self.policy.sliding is not None:
            candidates.append(self.last_access + self.policy.sliding)
        if self.policy.absolute is not None:
            candidates.append(self.stored_at + self.policy.absolute)
        return min(candidates) if candidates else None

    def is_expired(self, now: datetime) -> bool:
        expiry = self.expires_at()
        return expiry is not None and now >= expiry


class ExpiringMemoryCache:
    """Thread-safe in-memory cache with per-entry expiration and LRU eviction."""

    def __init__(self, clock: Optional[Clock] = None, max_entries: int = 1000):
        self.clock = clock or SystemClock()
        self.max_entries = max_entries
        self._entries: 'OrderedDict[str, _Entry]' = OrderedDict()
        self._lock = threading.RLock()
        self.metrics = CacheStats()

    def get(self, key: str) -> Tuple[bool, Any]:
        """Look up a key.

        Returns a ``(found, value)`` pair so that cached falsy values such as
        ``0`` or ``[]`` are distinguishable from a miss.
        """
        now = self.clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.metrics.misses += 1
                return False, None
            if entry.is_expired(now):
                del self._entries[key]
                self.metrics.expirations += 1
                self.metrics.misses += 1
                return False, None
            entry.last_access = now
            self._entries.move_to_end(key)
            self.metrics.hits += 1
            return True, entry.value

    def set(self, key: str, value: Any, policy: CachePolicy) -> None:
        now = self.clock.now()
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                lru_key, _ = self._entries.popitem(last=False)
                self.metrics.evictions += 1
                logger.debug(f"Evicted least recently used cache entry {lru_key}")
            self._entries[key] = _Entry(value=value, policy=policy, stored_at=now, last_access=now)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                self.metrics.invalidations += 1
                return True
            return False

    def delete_many(self, keys: Iterable[str]) -> int:
        with self._lock:
            return sum(1 for key in keys if self.delete(key))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove expired entries and return count."""
        now = self.clock.now()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self.metrics.expirations += len(expired)
        return len(expired)

    def keys(self):
        with self._lock:
            return list(self._entries.keys())

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            data = self.metrics.to_dict()
            data.update({
                'size': len(self._entries),
                'max_entries': self.max_entries,
                'utilization': len(self._entries) / self.max_entries if self.max_entries > 0 else 0,
            })
            return data


class CacheKeys:
    """Builders for consistent cache keys."""

    QUESTIONS_LIST_ALL = "questions_list_all"
    QUESTIONS_ALL = "questions_all"
    QUESTIONS_WITH_ANSWERS = "questions_with_answers"
    QUESTIONS_UNANSWERED = "questions_unanswered"
    COUNT_TOTAL = "count_questions_total"
    COUNT_ANSWERED = "count_questions_answered"
    TITLES_ALL = "question_titles_all"
    CONTENTS_ALL = "question_contents_all"

    @staticmethod
    def question(question_id: int) -> str:
        return f"question_{question_id}"

    @staticmethod
    def normalize_terms(terms: Iterable[str]) -> Tuple[str, ...]:
        """Lower-case, strip, de-duplicate and sort search terms."""
        return tuple(sorted({t.strip().lower() for t in terms if t and t.strip()}))

    @staticmethod
    def search(terms: Iterable[str]) -> str:
        # Terms may contain "_", so they are encoded as a JSON list
        return "questions_search_" + json.dumps(list(CacheKeys.normalize_terms(terms)))

    @staticmethod
    def category(category: str) -> str:
        return f"questions_category_{category.strip().lower()}"

    @staticmethod
    def category_count(category: str) -> str:
        return f"count_questions_category_{category.strip().lower()}"

    @staticmethod
    def question_date_range(start: datetime, end: datetime) -> str:
        return f"count_questions_daterange_{start.isoformat()}_{end.isoformat()}"

    @staticmethod
    def answer_date_range(start: datetime, end: datetime) -> str:
        return f"count_answers_daterange_{start.isoformat()}_{end.isoformat()}"


# Everything a question or answer write can change. Search and category keys
# are not listed: they expire on their own.
WRITE_AFFECTED_KEYS = (
    CacheKeys.QUESTIONS_LIST_ALL,
    CacheKeys.QUESTIONS_ALL,
    CacheKeys.QUESTIONS_WITH_ANSWERS,
    CacheKeys.QUESTIONS_UNANSWERED,
    CacheKeys.COUNT_TOTAL,
    CacheKeys.COUNT_ANSWERED,
    CacheKeys.TITLES_ALL,
    CacheKeys.CONTENTS_ALL,
)


def invalidate_question_caches(cache: ExpiringMemoryCache, question_id: Optional[int] = None) -> int:
    """Drop cache entries affected by a question or answer write."""
    keys = list(WRITE_AFFECTED_KEYS)
    if question_id is not None:
        keys.append(CacheKeys.question(question_id))
    removed = cache.delete_many(keys)
    logger.info(f"Invalidated question caches (question_id={question_id}, removed={removed})")
    return removed
