import logging as log
from fastapi import FastAPI, HTTPException

from session import SessionNotFound

from .error_handling import ErrorHandlingMiddleware
from .session import SessionMiddleware
from .exception_handlers import custom_http_exception_handler, session_not_found_handler

logger = log.getLogger('session.service.middleware')


def setup_middleware(app: FastAPI):
    """
    Setup all middleware for the FastAPI application.

    Middleware are added in reverse order (last added = first executed).
    Current order of execution:
    1. ErrorHandlingMiddleware (catches unhandled errors)
    2. SessionMiddleware (resolves the cookie, syncs it after the response)

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(HTTPException, custom_http_exception_handler)
    app.add_exception_handler(SessionNotFound, session_not_found_handler)

    app.add_middleware(SessionMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)

    logger.info("Session middleware configured")


__all__ = [
    'setup_middleware',
    'ErrorHandlingMiddleware',
    'SessionMiddleware',
    'custom_http_exception_handler',
    'session_not_found_handler',
]
