import logging
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

from session import StoreUnavailable

logger = logging.getLogger('session.service.middleware')


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to turn unhandled errors into JSON responses"""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            # Http Exceptions are handled by fastapi's default handler or the custom one we set up
            raise
        except StoreUnavailable as exc:
            logger.error(f"Session store unavailable for {request.url}: {exc}")
            return JSONResponse(
                status_code=503,
                content={
                    "error": "Session store unavailable",
                    "error_code": "session_store_unavailable",
                    "message": "Your session could not be saved. Please try again shortly.",
                }
            )
        except Exception as exc:
            logger.error(f"Unexpected error for {request.url}: {str(exc)}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error occurred",
                    "error_code": "internal_error",
                    "message": "An unexpected error occurred. Please try again later.",
                }
            )
