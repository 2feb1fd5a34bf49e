from typing import Callable, Optional
import redis.asyncio as aioredis
from redis import RedisError, ConnectionError as RedisConnectionError
from pydantic import ValidationError
import logging

from .base import SessionStore
from ..errors import StoreUnavailable
from ..models import SessionRecord

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """
    Session store backed by Redis.

    Records are JSON strings written with a PX expiry, so Redis evicts them
    on its own. get() still checks expires_at because the record's expiry
    and the key's TTL are written separately.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        key_prefix: str = "session:",
        owns_client: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the Redis backend with an async Redis client."""
        super().__init__(clock)
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.owns_client = owns_client

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    def _tombstone_key(self, session_id: str) -> str:
        return f"{self.key_prefix}tombstone:{session_id}"

    def _handle_redis_error(self, operation: str, session_id: Optional[str], error: Exception) -> None:
        """Centralized error handling for Redis operations."""
        masked = f"{session_id[:8]}..." if session_id else "*"
        if isinstance(error, RedisConnectionError):
            logger.error(f"Redis connection failed during {operation} for session {masked}: {error}")
            raise StoreUnavailable(f"Database connection error during {operation}") from error
        elif isinstance(error, RedisError):
            logger.error(f"Redis error during {operation} for session {masked}: {error}")
            raise StoreUnavailable(f"Database error during {operation}") from error
        else:
            logger.error(f"Unexpected error during {operation} for session {masked}: {error}")
            raise StoreUnavailable(f"Unexpected error during {operation}") from error

    async def put(self, session_id: str, record: SessionRecord, ttl_ms: int) -> None:
        try:
            await self.redis_client.set(self._key(session_id), record.model_dump_json(), px=ttl_ms)
            await self.redis_client.delete(self._tombstone_key(session_id))
            logger.debug(f"Session {session_id[:8]}... stored")
        except (RedisError, ValueError) as e:
            self._handle_redis_error("session write", session_id, e)

    async def add(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        try:
            if await self.redis_client.exists(self._tombstone_key(session_id)):
                logger.warning(f"Refusing to reissue recently destroyed session id {session_id[:8]}...")
                return False
            created = await self.redis_client.set(
                self._key(session_id), record.model_dump_json(), px=ttl_ms, nx=True
            )
            return bool(created)
        except (RedisError, ValueError) as e:
            self._handle_redis_error("session creation", session_id, e)

    async def replace(self, session_id: str, record: SessionRecord, ttl_ms: int) -> bool:
        try:
            updated = await self.redis_client.set(
                self._key(session_id), record.model_dump_json(), px=ttl_ms, xx=True
            )
            if not updated:
                logger.debug(f"Session {session_id[:8]}... does not exist, cannot update")
            return bool(updated)
        except (RedisError, ValueError) as e:
            self._handle_redis_error("session update", session_id, e)

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        try:
            raw = await self.redis_client.get(self._key(session_id))
        except RedisError as e:
            self._handle_redis_error("session read", session_id, e)

        if not raw:
            return None

        try:
            record = SessionRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Invalid session data format for session {session_id[:8]}...: {e}")
            raise StoreUnavailable("Corrupted session data") from e

        if record.is_expired(self.now()):
            await self.delete(session_id)
            return None
        return record

    async def delete(self, session_id: str) -> bool:
        try:
            remaining_ms = await self.redis_client.pttl(self._key(session_id))
            deleted_count = await self.redis_client.delete(self._key(session_id))

            if deleted_count == 0:
                logger.debug(f"Session {session_id[:8]}... was already gone")
                return False

            if remaining_ms and remaining_ms > 0:
                await self.redis_client.set(self._tombstone_key(session_id), "1", px=remaining_ms)
            logger.debug(f"Session {session_id[:8]}... deleted successfully")
            return True
        except RedisError as e:
            self._handle_redis_error("session deletion", session_id, e)

    async def touch(self, session_id: str, ttl_ms: int) -> bool:
        record = await self.get(session_id)
        if record is None:
            return False
        refreshed = record.model_copy(update={"expires_at": self.now() + ttl_ms})
        return await self.replace(session_id, refreshed, ttl_ms)

    async def clear(self) -> None:
        try:
            keys = [key async for key in self.redis_client.scan_iter(match=f"{self.key_prefix}*")]
            if keys:
                await self.redis_client.delete(*keys)
            logger.info(f"Cleared {len(keys)} session keys")
        except RedisError as e:
            self._handle_redis_error("session clear", None, e)

    async def close(self) -> None:
        if self.owns_client:
            await self.redis_client.aclose()
