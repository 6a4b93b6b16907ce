"""Store boundary.

The services only ever talk to these two interfaces:

- ``BackingStore`` is the source of truth (relational or document).
- ``CacheStore`` is the fast, time-limited key-value store.

Records crossing the boundary are plain dicts keyed by the entity field
names. Identifiers are integers assigned by the backing store.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple


class EntityKind(str, Enum):
    USER = "user"
    POST = "post"
    LIKE = "like"
    COMMENT = "comment"


# ============================================================
# Query predicates
# ============================================================


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match."""

    value: str

    def matches(self, candidate: Any) -> bool:
        return candidate is not None and self.value.lower() in str(candidate).lower()


@dataclass(frozen=True)
class AtLeast:
    """Greater than or equal."""

    value: Any

    def matches(self, candidate: Any) -> bool:
        return candidate is not None and candidate >= self.value


@dataclass(frozen=True)
class OneOf:
    """Membership in a fixed set of values."""

    values: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))

    def matches(self, candidate: Any) -> bool:
        return candidate in self.values


Predicate = (Contains, AtLeast, OneOf)

SortDirection = Literal["asc", "desc"]
SortSpec = Sequence[Tuple[str, SortDirection]]


def matches_filters(record: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Evaluate a filter dict against a flat record."""
    for field, expected in (filters or {}).items():
        actual = record.get(field)
        if isinstance(expected, Predicate):
            if not expected.matches(actual):
                return False
        elif actual != expected:
            return False
    return True


# ============================================================
# Interfaces
# ============================================================


class BackingStore(ABC):
    """Source of truth for users, posts, likes and comments."""

    backend_name: str = "abstract"

    @abstractmethod
    async def insert(self, kind: EntityKind, record: Dict[str, Any]) -> int:
        """Insert a record and return its new identifier.

        Raises:
            ConflictError: a uniqueness constraint would be violated.
            NotFoundError: a referenced parent record does not exist.
        """

    @abstractmethod
    async def find_by_id(self, kind: EntityKind, record_id: int) -> Optional[Dict[str, Any]]:
        """Return the record or None."""

    @abstractmethod
    async def update_fields(
        self,
        kind: EntityKind,
        record_id: int,
        changes: Optional[Dict[str, Any]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> bool:
        """Set ``changes`` and add ``increments`` atomically.

        Returns False when the record does not exist.
        """

    @abstractmethod
    async def query(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return matching records in ``sort`` order."""

    @abstractmethod
    async def count(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None) -> int:
        """Return the number of matching records."""

    @abstractmethod
    async def delete(self, kind: EntityKind, record_id: int, cascade: bool = False) -> bool:
        """Physically remove a record.

        Without ``cascade`` a record that is still referenced is refused
        with ConflictError. With ``cascade`` dependents go too.
        """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager:
        """Group operations so they commit or roll back together."""

    async def close(self) -> None:
        return None


class CacheStore(ABC):
    """Time-limited key-value store. All failures raise StoreUnavailableError."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """Add one to a counter; ``ttl_seconds`` applies when the counter is created."""

    @abstractmethod
    async def zset_add(self, key: str, member: str, score: float) -> None:
        ...

    @abstractmethod
    async def zset_remove(self, key: str, member: str) -> None:
        ...

    @abstractmethod
    async def zset_top_n(self, key: str, n: int) -> List[Tuple[str, float]]:
        """Highest-scored members first."""

    async def close(self) -> None:
        return None
