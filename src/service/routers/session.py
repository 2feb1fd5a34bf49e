from typing import Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import PlainTextResponse
import logging

from session import Session, SessionManager
from schema import (
    SessionCreateRequest,
    SessionCreateResponse,
    SessionDataResponse,
    SessionUpdateRequest,
    SessionRegenerateResponse,
)
from service.dependencies import get_session_manager, get_optional_session, require_session

logger = logging.getLogger('session.service.routers.session')

router = APIRouter(
    tags=["session"],
)


@router.post("/create-session")
async def create_session(
    request: Request,
    body: Optional[SessionCreateRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
    existing: Optional[Session] = Depends(get_optional_session),
) -> SessionCreateResponse:
    """
    Create a new session. A session the client already holds is destroyed
    first so an identifier planted before login is never carried over.
    """
    if existing is not None:
        logger.info("create_session - replacing the session the client already holds")
        await existing.destroy()

    session = await manager.create_session(body.data if body else {})
    request.state.session = session

    return SessionCreateResponse(message="Session created", expires_at=session.expires_at)


@router.get("/session")
async def read_session(session: Session = Depends(require_session)) -> SessionDataResponse:
    return SessionDataResponse(
        data=session.data,
        created_at=session.created_at,
        expires_at=session.expires_at,
    )


@router.post("/update-session")
async def update_session(
    body: SessionUpdateRequest,
    session: Session = Depends(require_session),
) -> SessionDataResponse:
    await session.update(body.data)
    return SessionDataResponse(
        data=session.data,
        created_at=session.created_at,
        expires_at=session.expires_at,
    )


@router.post("/regenerate-session")
async def regenerate_session(session: Session = Depends(require_session)) -> SessionRegenerateResponse:
    """Move the session to a new identifier, e.g. after a privilege change."""
    await session.regenerate()
    return SessionRegenerateResponse(message="Session regenerated", expires_at=session.expires_at)


@router.post("/delete-session")
async def delete_session(session: Session = Depends(require_session)) -> PlainTextResponse:
    await session.destroy()
    return PlainTextResponse("session deleted")
