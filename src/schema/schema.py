from typing import Any

from pydantic import BaseModel, Field


class SessionCreateRequest(BaseModel):
    data: dict[str, Any] = Field(
        description="Initial session data",
        default_factory=dict,
    )


class SessionCreateResponse(BaseModel):
    message: str = Field(
        description="Message about session creation"
    )
    expires_at: int = Field(
        description="Epoch milliseconds when the session expires"
    )


class SessionDataResponse(BaseModel):
    data: dict[str, Any] = Field(
        description="Current session data"
    )
    created_at: int = Field(
        description="Epoch milliseconds when the session was created"
    )
    expires_at: int = Field(
        description="Epoch milliseconds when the session expires"
    )


class SessionUpdateRequest(BaseModel):
    data: dict[str, Any] = Field(
        description="Keys to merge into the session data"
    )


class SessionRegenerateResponse(BaseModel):
    message: str = Field(
        description="Message about session regeneration"
    )
    expires_at: int = Field(
        description="Epoch milliseconds when the regenerated session expires"
    )
