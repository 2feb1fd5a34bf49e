import logging
from typing import Optional

from fastapi import FastAPI

from session import SessionManager

from .config import create_session_manager
from .lifecycle import lifespan
from .middleware import setup_middleware
from .routers import misc, session as session_router

logger = logging.getLogger('session.service')


def create_app(manager: Optional[SessionManager] = None) -> FastAPI:
    """
    Build the FastAPI application around one SessionManager.

    Without an explicit manager one is built from the environment.
    """
    app = FastAPI(title="Session Service", lifespan=lifespan)
    app.state.session_manager = manager if manager is not None else create_session_manager()

    setup_middleware(app)

    app.include_router(misc.router)
    app.include_router(session_router.router)

    return app
