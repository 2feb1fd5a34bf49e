"""Server-side sessions addressed by signed, cookie-safe identifiers."""

from .config import SessionConfig
from .errors import (
    SessionError,
    MalformedTransportValue,
    SignatureMismatch,
    SessionNotFound,
    SessionDestroyed,
    ConfigurationError,
    StoreUnavailable,
)
from .models import SessionRecord
from .signing import SessionSigner
from .backends import (
    SessionStore,
    MemorySessionStore,
    RedisSessionStore,
    FileSessionStore,
    SqlSessionStore,
    register_store,
    create_store,
)
from .manager import Session, SessionManager

__all__ = [
    "SessionConfig",
    "SessionError",
    "MalformedTransportValue",
    "SignatureMismatch",
    "SessionNotFound",
    "SessionDestroyed",
    "ConfigurationError",
    "StoreUnavailable",
    "SessionRecord",
    "SessionSigner",
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "FileSessionStore",
    "SqlSessionStore",
    "register_store",
    "create_store",
    "Session",
    "SessionManager",
]
