from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..models import SessionRecord, now_ms


class SessionStore(ABC):
    """
    Persistence contract for session records.

    TTLs are in milliseconds. Implementations must treat a record whose
    expiry has passed as absent in get(), whether or not it has been
    physically evicted yet. A deleted id stays reserved (tombstoned) until
    the deleted record's own expiry, so add() cannot hand it out again.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or now_ms

    def now(self) -> int:
        return self._clock()

    @abstractmethod
    async def put(self, session_id: str, record: SessionRecord, ttl_ms: int) -> None:
        """Insert or overwrite the record."""

    @abstractmethod
    async def add(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        """Insert only if no live record or tombstone exists for session_id."""

    @abstractmethod
    async def replace(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        """Overwrite only if a live record exists for session_id."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """Return the live record or None."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """
        Remove the record. Deleting a missing id is not an error.

        Returns True only if a live record was removed by this call.
        """

    @abstractmethod
    async def touch(self, session_id: str, ttl_ms: int) -> bool:
        """Push the expiry of a live record to now + ttl_ms."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record and tombstone."""

    async def purge_expired(self) -> int:
        """Evict expired entries. Backends with native expiry have nothing to do."""
        return 0

    async def close(self) -> None:
        pass
