import logging
from typing import AsyncGenerator
from fastapi import FastAPI
from contextlib import asynccontextmanager

from session import SessionManager
from session.redis_client import close_redis_clients

logger = logging.getLogger("session.service.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    manager: SessionManager = app.state.session_manager
    manager.start_sweeper()

    yield

    # Cleanup during shutdown
    await manager.aclose()
    await close_redis_clients()
    logger.info("Session manager closed")
