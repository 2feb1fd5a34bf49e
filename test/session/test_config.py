import os
from unittest.mock import patch

import pytest

from session import SessionConfig, SessionManager, MemorySessionStore
from session.errors import ConfigurationError


class TestSessionConfig:
    def test_defaults(self):
        config = SessionConfig(secret="s")
        assert config.store == "memory"
        assert config.max_age_ms == 3_600_000
        assert config.cookie_name == "session"
        assert config.http_only is True
        assert config.rolling is False

    def test_is_frozen(self):
        config = SessionConfig(secret="s")
        with pytest.raises(Exception):
            config.secret = "other"

    @pytest.mark.parametrize("kwargs", [
        {"secret": ""},
        {"secret": "   "},
        {"secret": "s", "max_age_ms": 0},
        {"secret": "s", "max_age_ms": -5},
        {"secret": "s", "sweep_interval_s": 0},
    ])
    def test_build_rejects_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            SessionConfig.build(**kwargs)

    def test_direct_construction_rejects_invalid_values(self):
        with pytest.raises(ConfigurationError, match="secret"):
            SessionConfig(secret="")
        with pytest.raises(ConfigurationError, match="max_age_ms"):
            SessionConfig(secret="s", max_age_ms=0)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            SessionConfig.build(secret="")

    def test_store_name_normalised(self):
        assert SessionConfig(secret="s", store=" Redis ").store == "redis"

    @patch.dict(os.environ, {
        "SESSION_SECRET_KEY": "env-secret",
        "SESSION_STORE": "memory",
        "SESSION_MAX_AGE_MS": "5000",
        "SECURE_COOKIES": "false",
        "COOKIE_DOMAIN": ".example.com",
        "SESSION_ROLLING": "true",
    })
    def test_from_env(self):
        config = SessionConfig.from_env()
        assert config.secret == "env-secret"
        assert config.max_age_ms == 5000
        assert config.secure is False
        assert config.cookie_domain == ".example.com"
        assert config.rolling is True

    @patch.dict(os.environ, {"SESSION_SECRET_KEY": "env-secret"})
    def test_from_env_overrides(self):
        config = SessionConfig.from_env(max_age_ms=42)
        assert config.max_age_ms == 42

    def test_from_env_requires_secret(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError):
                SessionConfig.from_env()


class TestManagerConstruction:
    def test_keyword_options(self):
        manager = SessionManager(secret="s", max_age_ms=1000, store="memory")
        assert manager.config.max_age_ms == 1000
        assert isinstance(manager.store, MemorySessionStore)

    def test_empty_secret_prevents_construction(self):
        with pytest.raises(ConfigurationError):
            SessionManager(secret="")

    def test_non_positive_max_age_prevents_construction(self):
        with pytest.raises(ConfigurationError):
            SessionManager(secret="s", max_age_ms=0)

    def test_unknown_store_prevents_construction(self):
        with pytest.raises(ConfigurationError, match="Unknown session store"):
            SessionManager(secret="s", store="carrier-pigeon")

    def test_config_and_options_are_exclusive(self):
        with pytest.raises(ConfigurationError):
            SessionManager(SessionConfig(secret="s"), max_age_ms=10)
