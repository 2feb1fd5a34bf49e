from .schema import (
    SessionCreateRequest,
    SessionCreateResponse,
    SessionDataResponse,
    SessionUpdateRequest,
    SessionRegenerateResponse,
)

__all__ = [
    "SessionCreateRequest",
    "SessionCreateResponse",
    "SessionDataResponse",
    "SessionUpdateRequest",
    "SessionRegenerateResponse",
]
