import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from .base import SessionStore
from ..models import SessionRecord

logger = logging.getLogger(__name__)


class MemorySessionStore(SessionStore):
    """
    In-process store. Reference implementation of the SessionStore contract.

    Every operation runs inside one short critical section and never awaits
    while holding the lock, so the store is safe to share between tasks and
    threads.

    Writes also evict expired records and stale tombstones once something
    is due and at least PRUNE_INTERVAL_MS has passed since the last pass, so
    memory stays bounded without a sweeper.
    """

    PRUNE_INTERVAL_MS = 1000

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        super().__init__(clock)
        self._lock = threading.Lock()
        # session_id -> (record, store-level expiry in epoch ms)
        self._records: Dict[str, Tuple[SessionRecord, int]] = {}
        # session_id -> epoch ms until which the id may not be reissued
        self._tombstones: Dict[str, int] = {}
        # earliest expiry of anything written since the last prune
        self._next_due: Optional[int] = None
        self._last_prune = self.now()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def tombstone_count(self) -> int:
        with self._lock:
            return len(self._tombstones)

    def _due(self, at: int) -> None:
        if self._next_due is None or at < self._next_due:
            self._next_due = at

    def _live(self, session_id: str, now: int) -> Optional[SessionRecord]:
        entry = self._records.get(session_id)
        if entry is None:
            return None
        record, store_expiry = entry
        if now >= store_expiry or record.is_expired(now):
            del self._records[session_id]
            return None
        return record

    def _tombstoned(self, session_id: str, now: int) -> bool:
        until = self._tombstones.get(session_id)
        if until is None:
            return False
        if now >= until:
            del self._tombstones[session_id]
            return False
        return True

    def _prune(self, now: int) -> int:
        expired = [
            session_id
            for session_id, (record, store_expiry) in self._records.items()
            if now >= store_expiry or record.is_expired(now)
        ]
        for session_id in expired:
            del self._records[session_id]
        stale_tombstones = [session_id for session_id, until in self._tombstones.items() if now >= until]
        for session_id in stale_tombstones:
            del self._tombstones[session_id]

        self._last_prune = now
        self._next_due = None
        for record, store_expiry in self._records.values():
            self._due(min(store_expiry, record.expires_at))
        for until in self._tombstones.values():
            self._due(until)
        return len(expired)

    def _maybe_prune(self, now: int) -> None:
        if self._next_due is None or now < self._next_due:
            return
        if now - self._last_prune < self.PRUNE_INTERVAL_MS:
            return
        removed = self._prune(now)
        if removed:
            logger.debug(f"Evicted {removed} expired sessions during write")

    def _store(self, session_id: str, record: SessionRecord, ttl_ms: int, now: int) -> None:
        self._maybe_prune(now)
        self._records[session_id] = (record.model_copy(deep=True), now + ttl_ms)
        self._tombstones.pop(session_id, None)
        self._due(min(now + ttl_ms, record.expires_at))

    async def put(self, session_id: str, record: SessionRecord, ttl_ms: int) -> None:
        now = self.now()
        with self._lock:
            self._store(session_id, record, ttl_ms, now)

    async def add(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        now = self.now()
        with self._lock:
            if self._live(session_id, now) is not None or self._tombstoned(session_id, now):
                return False
            self._store(session_id, record, ttl_ms, now)
            return True

    async def replace(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        now = self.now()
        with self._lock:
            if self._live(session_id, now) is None:
                return False
            self._store(session_id, record, ttl_ms, now)
            return True

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        now = self.now()
        with self._lock:
            record = self._live(session_id, now)
            return record.model_copy(deep=True) if record is not None else None

    async def delete(self, session_id: str) -> bool:
        now = self.now()
        with self._lock:
            self._maybe_prune(now)
            self._tombstoned(session_id, now)
            entry = self._records.pop(session_id, None)
            if entry is None:
                return False
            record, store_expiry = entry
            live = not (now >= store_expiry or record.is_expired(now))
            reserved_until = max(record.expires_at, store_expiry)
            if reserved_until > now:
                self._tombstones[session_id] = reserved_until
                self._due(reserved_until)
        logger.debug(f"Session {session_id[:8]}... deleted")
        return live

    async def touch(self, session_id: str, ttl_ms: int) -> bool:
        now = self.now()
        with self._lock:
            record = self._live(session_id, now)
            if record is None:
                return False
            refreshed = record.model_copy(update={"expires_at": now + ttl_ms})
            self._records[session_id] = (refreshed, now + ttl_ms)
            self._due(now + ttl_ms)
            return True

    async def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._tombstones.clear()
            self._next_due = None

    async def purge_expired(self) -> int:
        now = self.now()
        with self._lock:
            removed = self._prune(now)
        if removed:
            logger.debug(f"Purged {removed} expired sessions")
        return removed
