"""Result wrapper for store-backed operations.

Reads never raise past the repository layer. A failed read carries the
empty/zero value for its operation plus the error text, so callers that only
look at ``value`` see "no data" while callers that care can check ``ok``.
"""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    value: T
    error: Optional[str] = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, cached: bool = False) -> 'QueryResult[T]':
        return cls(value=value, cached=cached)

    @classmethod
    def failure(cls, empty: T, error: str) -> 'QueryResult[T]':
        return cls(value=empty, error=error)
