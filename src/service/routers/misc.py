from fastapi import APIRouter, Depends
from typing import Any, Optional
import logging

from session import Session
from service.dependencies import get_optional_session

logger = logging.getLogger('session.service.routers.misc')

router = APIRouter()


@router.get("/status")
async def get_status(session: Optional[Session] = Depends(get_optional_session)) -> dict[str, Any]:
    """Health check endpoint, also reports whether the caller holds a session."""
    return {
        "status": "ok",
        "session": session is not None,
    }
