import os
import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError

logger = logging.getLogger('session.config')

DEFAULT_MAX_AGE_MS = 3_600_000


class SessionConfig(BaseModel):
    """Immutable configuration for one SessionManager."""

    model_config = ConfigDict(frozen=True)

    secret: str = Field(description="Key used to sign session identifiers")
    store: str = Field(default="memory", description="Name of the store backend")
    max_age_ms: int = Field(default=DEFAULT_MAX_AGE_MS, description="Session TTL in milliseconds")

    cookie_name: str = "session"
    secure: bool = True
    http_only: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"
    cookie_domain: Optional[str] = None
    cookie_path: str = "/"

    rolling: bool = Field(default=False, description="Refresh expiry on every successful read")
    regenerate_resets_created_at: bool = Field(
        default=False,
        description="Stamp created_at with the regeneration time instead of keeping the original",
    )
    sweep_interval_s: float = 60.0

    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "session:"
    file_dir: str = ".sessions"
    database_url: str = "sqlite+aiosqlite:///./sessions.db"

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid session configuration: {e}") from e

    @field_validator("secret")
    @classmethod
    def _secret_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("secret must be a non-empty string")
        return value

    @field_validator("max_age_ms")
    @classmethod
    def _max_age_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_age_ms must be greater than 0")
        return value

    @field_validator("sweep_interval_s")
    @classmethod
    def _sweep_interval_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("sweep_interval_s must be greater than 0")
        return value

    @field_validator("store")
    @classmethod
    def _normalise_store(cls, value: str) -> str:
        return value.strip().lower()

    @classmethod
    def build(cls, **kwargs) -> "SessionConfig":
        """Same as calling the class. Invalid values raise ConfigurationError."""
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides) -> "SessionConfig":
        """
        Build a configuration from environment variables.

        SESSION_SECRET_KEY is required. Keyword arguments take precedence over
        the environment.
        """
        values = {
            "secret": os.getenv("SESSION_SECRET_KEY", ""),
            "store": os.getenv("SESSION_STORE", "memory"),
            "max_age_ms": os.getenv("SESSION_MAX_AGE_MS", str(DEFAULT_MAX_AGE_MS)),
            "cookie_name": os.getenv("SESSION_COOKIE_NAME", "session"),
            "secure": os.getenv("SECURE_COOKIES", "true").lower() == "true",
            "same_site": os.getenv("COOKIE_SAMESITE", "lax").lower(),
            "cookie_domain": os.getenv("COOKIE_DOMAIN") or None,
            "rolling": os.getenv("SESSION_ROLLING", "false").lower() == "true",
            "sweep_interval_s": os.getenv("SESSION_SWEEP_INTERVAL", "60"),
            "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379"),
            "file_dir": os.getenv("SESSION_FILE_DIR", ".sessions"),
            "database_url": os.getenv("SESSION_DATABASE_URL", "sqlite+aiosqlite:///./sessions.db"),
        }
        values.update(overrides)

        if not values["secure"]:
            logger.warning("SECURE_COOKIES is disabled, session cookies will be sent over plain HTTP")

        return cls.build(**values)
