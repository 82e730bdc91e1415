"""Cache-aside plumbing shared by the repositories."""
import logging
from typing import Callable, Optional, TypeVar

from .cache import CachePolicies, CachePolicy, ExpiringMemoryCache
from .results import QueryResult
from .store import Store

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _detached(value):
    """Callers get their own copy of cached lists."""
    return list(value) if isinstance(value, list) else value


class CachedRepository:
    """Base class wiring a store to an injected cache."""

    def __init__(self,
                 store: Store,
                 cache: ExpiringMemoryCache,
                 policies: Optional[CachePolicies] = None):
        self.store = store
        self.cache = cache
        self.policies = policies or CachePolicies()

    def _read_through(self,
                      key: str,
                      policy: CachePolicy,
                      loader: Callable[[], T],
                      empty: T,
                      description: str) -> QueryResult[T]:
        """Serve ``key`` from cache, or load it from the store and cache it.

        Store failures are logged and turned into ``empty``; they are not
        cached, so the next call retries the store.
        """
        found, cached = self.cache.get(key)
        if found:
            logger.debug(f"Returning cached {description}")
            return QueryResult.success(_detached(cached), cached=True)

        try:
            value = loader()
        except Exception as e:
            logger.error(f"Error getting {description}: {e}")
            return QueryResult.failure(empty, str(e))

        self.cache.set(key, value, policy)
        logger.debug(f"Cached {description}")
        return QueryResult.success(_detached(value))
