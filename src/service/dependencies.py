"""
FastAPI dependencies for the session service.

Route handlers get the application's SessionManager and the session that
SessionMiddleware resolved for the current request.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request

from session import Session, SessionManager


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_optional_session(request: Request) -> Optional[Session]:
    return getattr(request.state, "session", None)


def require_session(session: Optional[Session] = Depends(get_optional_session)) -> Session:
    """Reject the request with 403 unless it carries a live session."""
    if session is None or session.destroyed:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Session required",
                "error_code": "session_invalid",
                "message": "Your session has expired or is invalid. Please start a new session.",
            },
        )
    return session
