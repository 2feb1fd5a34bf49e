import asyncio
import copy
import logging
import math
import secrets
from typing import Any, Dict, Mapping, Optional

from . import codec
from .backends import SessionStore, create_store
from .config import SessionConfig
from .errors import (
    ConfigurationError,
    MalformedTransportValue,
    SessionDestroyed,
    SessionNotFound,
    SignatureMismatch,
    StoreUnavailable,
)
from .models import SessionRecord
from .signing import SessionSigner

logger = logging.getLogger('session.manager')


def _mask(session_id: str) -> str:
    return f"{session_id[:8]}..."


class Session:
    """
    Live handle on one stored session.

    The handle caches the identifier and a copy of the data. Every mutator
    waits for the store write to succeed before it touches the cache, and
    mutators on the same handle run one at a time.
    """

    def __init__(self, manager: "SessionManager", record: SessionRecord):
        self._manager = manager
        self._id = record.id
        self._data: Dict[str, Any] = copy.deepcopy(record.data)
        self._created_at = record.created_at
        self._expires_at = record.expires_at
        self._destroyed = False
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else "active"
        return f"<Session {_mask(self._id)} {state}>"

    @property
    def id(self) -> str:
        return self._id

    @property
    def data(self) -> Dict[str, Any]:
        """A copy of the session data. Use update() to change it."""
        return copy.deepcopy(self._data)

    @property
    def created_at(self) -> int:
        return self._created_at

    @property
    def expires_at(self) -> int:
        return self._expires_at

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def signature(self) -> str:
        return self._manager.signer.sign(self._id)

    @property
    def transport_value(self) -> str:
        """The signed cookie value for this session."""
        return codec.encode(self._id, self.signature)

    def _ensure_active(self) -> None:
        if self._destroyed:
            raise SessionDestroyed(f"Session {_mask(self._id)} has been destroyed")

    async def update(self, partial: Mapping[str, Any]) -> None:
        """Merge partial into the data (last write wins per key) and persist it."""
        async with self._lock:
            self._ensure_active()
            merged = {**self._data, **copy.deepcopy(dict(partial))}
            store = self._manager.store
            record = SessionRecord(
                id=self._id,
                data=merged,
                created_at=self._created_at,
                expires_at=store.now() + self._manager.config.max_age_ms,
            )
            if not await store.replace(self._id, record, self._manager.config.max_age_ms):
                self._destroyed = True
                raise SessionNotFound(f"Session {_mask(self._id)} no longer exists")

            self._data = merged
            self._expires_at = record.expires_at
            logger.debug(f"Session {_mask(self._id)} updated keys: {sorted(partial)}")

    async def destroy(self) -> None:
        """Delete the stored record. Destroying twice is a no-op."""
        async with self._lock:
            if self._destroyed:
                return
            await self._manager.store.delete(self._id)
            self._destroyed = True
            logger.info(f"Session {_mask(self._id)} destroyed")

    async def regenerate(self) -> None:
        """
        Move the session to a fresh identifier, keeping its data.

        The new record is written before the old one is deleted, so a reader
        holding the old identifier sees either the old record or nothing,
        never a gap where neither identifier resolves. If the old record
        disappears in between (destroyed elsewhere, or expired), the new
        record is withdrawn and SessionNotFound is raised.
        """
        async with self._lock:
            self._ensure_active()
            store = self._manager.store
            old_id = self._id

            current = await store.get(old_id)
            if current is None:
                self._destroyed = True
                raise SessionNotFound(f"Session {_mask(old_id)} no longer exists")

            config = self._manager.config
            created_at = None if config.regenerate_resets_created_at else self._created_at
            record = await self._manager._issue(copy.deepcopy(current.data), created_at=created_at)

            try:
                removed = await store.delete(old_id)
            except StoreUnavailable:
                logger.error(f"Could not delete {_mask(old_id)} during regeneration, rolling back")
                await store.delete(record.id)
                raise

            if not removed:
                await store.delete(record.id)
                self._destroyed = True
                logger.warning(f"Session {_mask(old_id)} went away during regeneration, new id withdrawn")
                raise SessionNotFound(f"Session {_mask(old_id)} no longer exists")

            self._id = record.id
            self._data = copy.deepcopy(current.data)
            self._created_at = record.created_at
            self._expires_at = record.expires_at
            logger.info(f"Session {_mask(old_id)} regenerated as {_mask(record.id)}")


class SessionManager:
    """
    Issues, resolves and expires signed sessions.

    Each manager owns its configuration, signer and store, so several
    managers can coexist in one process without sharing state.
    """

    # 32 random bytes rendered as 64 hex characters
    ID_BYTES = 32
    MAX_ID_ATTEMPTS = 5

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        store: Optional[SessionStore] = None,
        **options: Any,
    ):
        if config is None:
            config = SessionConfig.build(**options)
        elif options:
            raise ConfigurationError("Pass either a SessionConfig or keyword options, not both")

        self._config = config
        self._signer = SessionSigner(config.secret)
        self.store = store if store is not None else create_store(config)
        self._sweeper: Optional[asyncio.Task] = None
        logger.info(
            f"Session manager ready: store={type(self.store).__name__}, "
            f"max_age_ms={config.max_age_ms}, rolling={config.rolling}"
        )

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def signer(self) -> SessionSigner:
        return self._signer

    @property
    def cookie_name(self) -> str:
        return self._config.cookie_name

    def generate_session_id(self) -> str:
        return secrets.token_hex(self.ID_BYTES)

    async def _issue(self, data: Dict[str, Any], created_at: Optional[int] = None) -> SessionRecord:
        """Store a new record under a fresh identifier."""
        now = self.store.now()
        for _ in range(self.MAX_ID_ATTEMPTS):
            record = SessionRecord(
                id=self.generate_session_id(),
                data=data,
                created_at=created_at if created_at is not None else now,
                expires_at=now + self._config.max_age_ms,
            )
            if await self.store.add(record.id, record, self._config.max_age_ms):
                return record
            logger.warning("Generated session id already in use, retrying")
        raise StoreUnavailable("Could not allocate a unique session identifier")

    async def create_session(self, initial_data: Optional[Mapping[str, Any]] = None) -> Session:
        record = await self._issue(copy.deepcopy(dict(initial_data or {})))
        logger.info(f"Session {_mask(record.id)} created")
        return Session(self, record)

    async def get_session(self, transport_value: Optional[str]) -> Optional[Session]:
        """
        Resolve a cookie value to a live session.

        Returns None for a missing, malformed, tampered, unknown or expired
        value. Callers cannot tell these apart; the log can. Store failures
        raise StoreUnavailable instead.
        """
        if not transport_value:
            logger.debug("No session cookie provided")
            return None

        try:
            session_id, signature = codec.decode(transport_value)
            self._signer.unsign(session_id, signature)
        except MalformedTransportValue as e:
            logger.info(f"Rejected malformed session cookie: {e}")
            return None
        except SignatureMismatch:
            logger.warning("Rejected session cookie with invalid signature")
            return None

        record = await self.store.get(session_id)
        if record is None:
            logger.debug(f"Session {_mask(session_id)} not found or expired")
            return None

        if self._config.rolling:
            if not await self.store.touch(session_id, self._config.max_age_ms):
                logger.debug(f"Session {_mask(session_id)} expired before it could be refreshed")
                return None
            record = record.model_copy(update={"expires_at": self.store.now() + self._config.max_age_ms})

        return Session(self, record)

    async def destroy_session(self, transport_value: Optional[str]) -> bool:
        """Destroy the session a cookie value resolves to. Returns False if none does."""
        session = await self.get_session(transport_value)
        if session is None:
            return False
        await session.destroy()
        return True

    def rotate_secret(self, new_secret: str) -> None:
        """
        Switch to a new signing secret.

        Every cookie issued under the previous secret stops verifying, which
        logs out every client at once.
        """
        try:
            config = SessionConfig.build(**{**self._config.model_dump(), "secret": new_secret})
        except ConfigurationError:
            logger.error("Refusing to rotate to an invalid session secret")
            raise
        self._config, self._signer = config, SessionSigner(config.secret)
        logger.warning("Session secret rotated, all previously issued session cookies are now invalid")

    def cookie_params(self, session: Session) -> Dict[str, Any]:
        """Keyword arguments for Response.set_cookie carrying this session."""
        remaining_ms = max(session.expires_at - self.store.now(), 0)
        return {
            "key": self._config.cookie_name,
            "value": session.transport_value,
            "max_age": math.ceil(remaining_ms / 1000),
            "path": self._config.cookie_path,
            "domain": self._config.cookie_domain,
            "secure": self._config.secure,
            "httponly": self._config.http_only,
            "samesite": self._config.same_site,
        }

    def expired_cookie_params(self) -> Dict[str, Any]:
        """Keyword arguments for Response.delete_cookie clearing the session cookie."""
        return {
            "key": self._config.cookie_name,
            "path": self._config.cookie_path,
            "domain": self._config.cookie_domain,
            "secure": self._config.secure,
            "httponly": self._config.http_only,
            "samesite": self._config.same_site,
        }

    async def _sweep_periodically(self) -> None:
        interval = self._config.sweep_interval_s
        while True:
            await asyncio.sleep(interval)
            try:
                removed = await self.store.purge_expired()
                if removed:
                    logger.info(f"Session sweep completed: removed {removed} expired sessions")
            except Exception as e:
                logger.error(f"Error during session sweep: {e}", exc_info=True)

    def start_sweeper(self) -> asyncio.Task:
        """Start proactive eviction of expired records. Expiry is enforced on read either way."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_periodically())
            logger.info(f"Session sweeper started, interval {self._config.sweep_interval_s}s")
        return self._sweeper

    async def aclose(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                logger.info("Session sweeper cancelled during shutdown")
            self._sweeper = None
        await self.store.close()

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
