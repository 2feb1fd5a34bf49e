import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles
from pydantic import BaseModel, ValidationError

from .base import SessionStore
from ..codec import is_valid_part
from ..errors import StoreUnavailable
from ..models import SessionRecord

logger = logging.getLogger(__name__)


class StoredEntry(BaseModel):
    record: SessionRecord
    store_expires_at: int


class FileSessionStore(SessionStore):
    """
    One JSON file per session under a directory.

    Writes go to a temporary file that is renamed over the target, so a
    reader never sees a half-written record. An asyncio lock serialises the
    check-then-write operations (add, replace, touch) within this process.
    """

    RECORD_SUFFIX = ".json"
    TOMBSTONE_SUFFIX = ".tombstone"

    def __init__(self, directory: Union[str, Path] = ".sessions", clock: Optional[Callable[[], int]] = None):
        super().__init__(clock)
        self.directory = Path(directory).resolve()
        self._lock = asyncio.Lock()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable(f"Failed to create session directory {self.directory}: {e}") from e

    def _path(self, session_id: str, suffix: str) -> Path:
        # Identifiers become file names, so only the cookie alphabet is accepted
        if not is_valid_part(session_id):
            raise ValueError("Invalid session identifier")
        return self.directory / f"{session_id}{suffix}"

    async def _read_entry(self, session_id: str) -> Optional[StoredEntry]:
        path = self._path(session_id, self.RECORD_SUFFIX)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"File read error for session {session_id[:8]}...: {e}")
            raise StoreUnavailable("Could not read session file") from e

        try:
            return StoredEntry.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Invalid session file for session {session_id[:8]}...: {e}")
            raise StoreUnavailable("Corrupted session data") from e

    async def _write_entry(self, session_id: str, record: SessionRecord, ttl_ms: int) -> None:
        entry = StoredEntry(record=record, store_expires_at=self.now() + ttl_ms)
        path = self._path(session_id, self.RECORD_SUFFIX)
        tmp_path = path.parent / f"{path.name}.tmp"
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(entry.model_dump_json())
            os.replace(tmp_path, path)
            self._remove(self._path(session_id, self.TOMBSTONE_SUFFIX))
        except OSError as e:
            logger.error(f"File write error for session {session_id[:8]}...: {e}")
            raise StoreUnavailable("Could not write session file") from e

    @staticmethod
    def _remove(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    def _entry_expired(self, entry: StoredEntry, now: int) -> bool:
        return now >= entry.store_expires_at or entry.record.is_expired(now)

    async def _live_entry(self, session_id: str) -> Optional[StoredEntry]:
        entry = await self._read_entry(session_id)
        if entry is None:
            return None
        if self._entry_expired(entry, self.now()):
            self._remove(self._path(session_id, self.RECORD_SUFFIX))
            return None
        return entry

    async def _tombstoned(self, session_id: str) -> bool:
        path = self._path(session_id, self.TOMBSTONE_SUFFIX)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                until = int((await f.read()).strip() or 0)
        except FileNotFoundError:
            return False
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable tombstone for session {session_id[:8]}...: {e}")
            return True
        if self.now() >= until:
            self._remove(path)
            return False
        return True

    async def put(self, session_id: str, record: SessionRecord, ttl_ms: int) -> None:
        async with self._lock:
            await self._write_entry(session_id, record, ttl_ms)

    async def add(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        async with self._lock:
            if await self._live_entry(session_id) is not None or await self._tombstoned(session_id):
                return False
            await self._write_entry(session_id, record, ttl_ms)
            return True

    async def replace(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        async with self._lock:
            if await self._live_entry(session_id) is None:
                return False
            await self._write_entry(session_id, record, ttl_ms)
            return True

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        entry = await self._live_entry(session_id)
        return entry.record if entry is not None else None

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            entry = await self._read_entry(session_id)
            if entry is None:
                return False
            live = not self._entry_expired(entry, self.now())
            try:
                if not self._remove(self._path(session_id, self.RECORD_SUFFIX)):
                    return False
                reserved_until = max(entry.record.expires_at, entry.store_expires_at)
                if reserved_until > self.now():
                    async with aiofiles.open(self._path(session_id, self.TOMBSTONE_SUFFIX), "w", encoding="utf-8") as f:
                        await f.write(str(reserved_until))
            except OSError as e:
                logger.error(f"File delete error for session {session_id[:8]}...: {e}")
                raise StoreUnavailable("Could not delete session file") from e
            return live

    async def touch(self, session_id: str, ttl_ms: int) -> bool:
        async with self._lock:
            entry = await self._live_entry(session_id)
            if entry is None:
                return False
            refreshed = entry.record.model_copy(update={"expires_at": self.now() + ttl_ms})
            await self._write_entry(session_id, refreshed, ttl_ms)
            return True

    async def clear(self) -> None:
        async with self._lock:
            for path in self.directory.iterdir():
                if path.is_file() and path.suffix in (self.RECORD_SUFFIX, self.TOMBSTONE_SUFFIX):
                    self._remove(path)

    async def purge_expired(self) -> int:
        removed = 0
        now = self.now()
        async with self._lock:
            for path in self.directory.glob(f"*{self.RECORD_SUFFIX}"):
                session_id = path.name[: -len(self.RECORD_SUFFIX)]
                try:
                    entry = await self._read_entry(session_id)
                except (StoreUnavailable, ValueError):
                    # Skip unreadable files, the next sweep retries them
                    continue
                if entry is not None and self._entry_expired(entry, now):
                    removed += self._remove(path)
            for path in self.directory.glob(f"*{self.TOMBSTONE_SUFFIX}"):
                try:
                    await self._tombstoned(path.name[: -len(self.TOMBSTONE_SUFFIX)])
                except ValueError:
                    # Not one of ours
                    continue
        if removed:
            logger.debug(f"Purged {removed} expired session files")
        return removed
