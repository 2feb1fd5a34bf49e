import time
from typing import Any, Dict

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SessionRecord(BaseModel):
    id: str = Field(description="Opaque session identifier")
    data: Dict[str, Any] = Field(default_factory=dict, description="Session payload")
    created_at: int = Field(description="Epoch milliseconds when the session was created")
    expires_at: int = Field(description="Epoch milliseconds after which the record is absent")

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at

    def remaining_ms(self, now: int) -> int:
        return max(self.expires_at - now, 0)
