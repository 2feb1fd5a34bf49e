import logging
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
from fastapi.responses import JSONResponse

from session import SessionManager, StoreUnavailable

logger = logging.getLogger('session.service.middleware')


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Resolve the session cookie before the request and sync the cookie after it.

    Handlers read and replace request.state.session. After the response is
    built the cookie is re-issued when the session is new, was regenerated or
    had its expiry moved, and cleared when the session was destroyed or the
    incoming cookie did not resolve.
    """

    async def dispatch(self, request: Request, call_next):
        manager: SessionManager = request.app.state.session_manager
        cookie_value = request.cookies.get(manager.cookie_name)

        try:
            session = await manager.get_session(cookie_value)
        except StoreUnavailable as e:
            logger.error(f"Session store unavailable while resolving cookie: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "error": "Session store unavailable",
                    "error_code": "session_store_unavailable",
                    "message": "Your session could not be loaded. Please try again shortly.",
                },
            )

        request.state.session = session
        initial_expiry = session.expires_at if session is not None else None

        response = await call_next(request)

        current = getattr(request.state, "session", None)
        if current is not None and not current.destroyed:
            if current.transport_value != cookie_value or current.expires_at != initial_expiry:
                response.set_cookie(**manager.cookie_params(current))
        elif cookie_value:
            logger.debug("Clearing session cookie that no longer resolves to a session")
            response.delete_cookie(**manager.expired_cookie_params())

        return response
