"""Session store backends and the registry used to select one by name."""
import logging
from typing import Callable, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from .base import SessionStore
from .memory_backend import MemorySessionStore
from .redis_backend import RedisSessionStore
from .file_backend import FileSessionStore
from .sql_backend import SqlSessionStore
from ..config import SessionConfig
from ..errors import ConfigurationError
from ..redis_client import get_redis_client

logger = logging.getLogger('session.backends')

StoreFactory = Callable[[SessionConfig], SessionStore]


def _memory_store(config: SessionConfig) -> SessionStore:
    return MemorySessionStore()


def _redis_store(config: SessionConfig) -> SessionStore:
    return RedisSessionStore(get_redis_client(config.redis_url), key_prefix=config.redis_key_prefix)


def _file_store(config: SessionConfig) -> SessionStore:
    return FileSessionStore(config.file_dir)


def _database_store(config: SessionConfig) -> SessionStore:
    try:
        engine = create_async_engine(config.database_url)
    except SQLAlchemyError as e:
        raise ConfigurationError(f"Invalid session database URL: {e}") from e
    return SqlSessionStore(engine, owns_engine=True)


store_factories: Dict[str, StoreFactory] = {
    "memory": _memory_store,
    "redis": _redis_store,
    "file": _file_store,
    "database": _database_store,
}


def register_store(name: str, factory: StoreFactory) -> None:
    """Make an external backend selectable through SessionConfig.store."""
    store_factories[name.strip().lower()] = factory
    logger.info(f"Registered session store backend '{name}'")


def create_store(config: SessionConfig) -> SessionStore:
    try:
        factory = store_factories[config.store]
    except KeyError:
        raise ConfigurationError(
            f"Unknown session store '{config.store}', must be one of {sorted(store_factories)}"
        ) from None
    logger.info(f"Using '{config.store}' session store")
    return factory(config)


__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "FileSessionStore",
    "SqlSessionStore",
    "StoreFactory",
    "register_store",
    "create_store",
]
