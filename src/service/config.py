"""
Configuration setup for the session service.

This module handles configuration initialization:
- Logging from LOG_LEVEL
- Session manager settings from the environment
"""
import os
import logging

from session import SessionConfig, SessionManager

logger = logging.getLogger('session.service.config')

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def setup_logging() -> str:
    """
    Configure root logging from the LOG_LEVEL environment variable.

    Returns:
        The log level that was applied
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    if log_level not in VALID_LOG_LEVELS:
        logger.warning(f"Invalid LOG_LEVEL '{log_level}', using INFO. Valid levels: {', '.join(VALID_LOG_LEVELS)}")
        log_level = 'INFO'

    logging.basicConfig(
        level=getattr(logging, log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return log_level


def create_session_manager() -> SessionManager:
    """
    Build the SessionManager from environment variables.

    Raises:
        ConfigurationError: SESSION_SECRET_KEY is missing or a setting is invalid
    """
    config = SessionConfig.from_env()
    logger.info(f"Session store: {config.store}, max age: {config.max_age_ms}ms, secure cookies: {config.secure}")
    return SessionManager(config)


__all__ = [
    'setup_logging',
    'create_session_manager',
]
