import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

from pydantic import ValidationError
from sqlalchemy import JSON, BigInteger, String, delete, insert, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .base import SessionStore
from ..errors import StoreUnavailable
from ..models import SessionRecord

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class SessionRow(Base):
    """One stored session. Timestamps are epoch milliseconds."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    store_expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    @staticmethod
    def values_for(record: SessionRecord, store_expires_at: int) -> Dict[str, Any]:
        return {
            "id": record.id,
            "data": record.data,
            "created_at": record.created_at,
            "expires_at": record.expires_at,
            "store_expires_at": store_expires_at,
        }

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            id=self.id, data=self.data, created_at=self.created_at, expires_at=self.expires_at
        )

    def is_expired(self, now: int) -> bool:
        return now >= self.store_expires_at or now >= self.expires_at

    def __repr__(self) -> str:
        return f"<SessionRow(id={self.id[:8]!r}...)>"


class TombstoneRow(Base):
    """Identifier of a destroyed session, reserved until the session's own expiry."""

    __tablename__ = "session_tombstones"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    reserved_until: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)


class SqlSessionStore(SessionStore):
    """
    Session store backed by a relational database through SQLAlchemy.

    Each operation runs in its own transaction. replace() and touch() are
    single conditional UPDATEs, and add() relies on the primary key, so
    several processes can share one database.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        owns_engine: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ):
        super().__init__(clock)
        self.engine = engine
        self.owns_engine = owns_engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    def _handle_db_error(self, operation: str, session_id: Optional[str], error: Exception) -> None:
        """Centralized error handling for database operations."""
        masked = f"{session_id[:8]}..." if session_id else "*"
        logger.error(f"Database error during {operation} for session {masked}: {error}")
        raise StoreUnavailable(f"Database error during {operation}") from error

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if not self._schema_ready:
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                self._schema_ready = True
                logger.info("Session tables ready")

    @asynccontextmanager
    async def _transaction(
        self, operation: str, session_id: Optional[str], expect_conflict: bool = False
    ) -> AsyncIterator[AsyncSession]:
        try:
            await self._ensure_schema()
            async with self._sessionmaker() as db, db.begin():
                yield db
        except IntegrityError as e:
            if expect_conflict:
                raise
            self._handle_db_error(operation, session_id, e)
        except SQLAlchemyError as e:
            self._handle_db_error(operation, session_id, e)

    @staticmethod
    def _live(now: int):
        return SessionRow.store_expires_at > now, SessionRow.expires_at > now

    @staticmethod
    def _delete_row(session_id: str):
        return (
            delete(SessionRow)
            .where(SessionRow.id == session_id)
            .execution_options(synchronize_session=False)
        )

    async def put(self, session_id: str, record: SessionRecord, ttl_ms: int) -> None:
        now = self.now()
        async with self._transaction("session write", session_id) as db:
            await db.execute(self._delete_row(session_id))
            await db.execute(insert(SessionRow).values(**SessionRow.values_for(record, now + ttl_ms)))
            await db.execute(delete(TombstoneRow).where(TombstoneRow.id == session_id))

    async def add(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        now = self.now()
        try:
            async with self._transaction("session creation", session_id, expect_conflict=True) as db:
                tombstone = await db.get(TombstoneRow, session_id)
                if tombstone is not None and now < tombstone.reserved_until:
                    logger.warning(f"Refusing to reissue recently destroyed session id {session_id[:8]}...")
                    return False
                existing = await db.get(SessionRow, session_id)
                if existing is not None and not existing.is_expired(now):
                    return False

                # clear out whatever is stale, then claim the id
                await db.execute(delete(TombstoneRow).where(TombstoneRow.id == session_id))
                await db.execute(self._delete_row(session_id))
                await db.execute(insert(SessionRow).values(**SessionRow.values_for(record, now + ttl_ms)))
        except IntegrityError:
            logger.debug(f"Session id {session_id[:8]}... claimed by another writer")
            return False
        return True

    async def replace(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        now = self.now()
        async with self._transaction("session update", session_id) as db:
            result = await db.execute(
                update(SessionRow)
                .where(SessionRow.id == session_id, *self._live(now))
                .values(**SessionRow.values_for(record, now + ttl_ms))
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount > 0
        if not updated:
            logger.debug(f"Session {session_id[:8]}... does not exist, cannot update")
        return updated

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        now = self.now()
        async with self._transaction("session read", session_id) as db:
            row = await db.get(SessionRow, session_id)
            if row is None:
                return None
            if row.is_expired(now):
                await db.execute(self._delete_row(session_id))
                return None
            try:
                return row.to_record()
            except ValidationError as e:
                logger.error(f"Invalid session data format for session {session_id[:8]}...: {e}")
                raise StoreUnavailable("Corrupted session data") from e

    async def delete(self, session_id: str) -> bool:
        now = self.now()
        async with self._transaction("session deletion", session_id) as db:
            row = await db.get(SessionRow, session_id)
            if row is None:
                return False
            live = not row.is_expired(now)
            reserved_until = max(row.expires_at, row.store_expires_at)

            result = await db.execute(self._delete_row(session_id))
            if result.rowcount == 0:
                logger.debug(f"Session {session_id[:8]}... was already gone")
                return False
            if reserved_until > now:
                await db.execute(delete(TombstoneRow).where(TombstoneRow.id == session_id))
                await db.execute(insert(TombstoneRow).values(id=session_id, reserved_until=reserved_until))
        logger.debug(f"Session {session_id[:8]}... deleted successfully")
        return live

    async def touch(self, session_id: str, ttl_ms: int) -> bool:
        now = self.now()
        async with self._transaction("session refresh", session_id) as db:
            result = await db.execute(
                update(SessionRow)
                .where(SessionRow.id == session_id, *self._live(now))
                .values(expires_at=now + ttl_ms, store_expires_at=now + ttl_ms)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def clear(self) -> None:
        async with self._transaction("session clear", None) as db:
            await db.execute(delete(SessionRow))
            await db.execute(delete(TombstoneRow))
        logger.info("Cleared all session rows")

    async def purge_expired(self) -> int:
        now = self.now()
        async with self._transaction("session purge", None) as db:
            result = await db.execute(
                delete(SessionRow)
                .where(or_(SessionRow.store_expires_at <= now, SessionRow.expires_at <= now))
                .execution_options(synchronize_session=False)
            )
            removed = result.rowcount
            await db.execute(delete(TombstoneRow).where(TombstoneRow.reserved_until <= now))
        if removed:
            logger.debug(f"Purged {removed} expired session rows")
        return removed

    async def close(self) -> None:
        if self.owns_engine:
            await self.engine.dispose()
