import logging
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exception_handlers import http_exception_handler

from session import SessionNotFound

logger = logging.getLogger('session.service.middleware')


async def custom_http_exception_handler(request: Request, exc: HTTPException):
    """Format 403 responses as structured session errors"""
    if exc.status_code == 403:
        if isinstance(exc.detail, dict):
            error_response = exc.detail
        else:
            error_response = {
                "error": "Session required",
                "error_code": "session_invalid",
                "message": str(exc.detail) if exc.detail else "Session invalid or expired",
            }

        logger.info(f"SESSION_ERROR_RESPONSE: {error_response['error_code']} for {request.url.path}")
        return JSONResponse(status_code=403, content=error_response)

    logger.debug(f"OTHER_HTTP_EXCEPTION: {exc.status_code} - {exc.detail}")
    return await http_exception_handler(request, exc)


async def session_not_found_handler(request: Request, exc: SessionNotFound):
    """A handler touched a session that was destroyed or expired mid-request"""
    logger.info(f"Session vanished during {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=403,
        content={
            "error": "Session required",
            "error_code": "session_invalid",
            "message": "Your session has expired or was ended. Please start a new session.",
        },
    )
