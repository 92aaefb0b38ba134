"""Configuration objects for the MediHealth site."""
from __future__ import annotations

import os
from typing import Any, Dict, Type


class Config:
    """Base configuration shared by all environments."""

    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    # Embedded backend credentials; blank means the visitor supplies them.
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    APPOINTMENTS_TABLE: str = os.getenv("APPOINTMENTS_TABLE", "appointments")
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

    @classmethod
    def as_dict(cls) -> Dict[str, Any]:
        """Expose configuration values for debugging and introspection."""

        return {key: getattr(cls, key) for key in dir(cls) if key.isupper()}


class DevelopmentConfig(Config):
    """Configuration suitable for local development."""

    DEBUG = True


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    SECRET_KEY = "test-secret-key"
    SUPABASE_URL = ""
    SUPABASE_ANON_KEY = ""


class ProductionConfig(Config):
    """Configuration tailored for production deployments."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True


CONFIG_MAP: Dict[str, Type[Config]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(name: str | None) -> Type[Config]:
    """Retrieve the configuration class matching the supplied name."""

    if not name:
        return DevelopmentConfig
    return CONFIG_MAP.get(name.lower(), DevelopmentConfig)
