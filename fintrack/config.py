# fintrack/config.py

import os
from functools import lru_cache

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime configuration, read from the environment (and a .env file)."""

    def __init__(self, **overrides):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./fintrack.db")
        self.redis_url = os.getenv("REDIS_URL") or None
        self.cache_backend = os.getenv("CACHE_BACKEND") or ("redis" if self.redis_url else "none")

        self.jwt_secret = os.getenv("JWT_SECRET", "change-me")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expire_minutes = int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))

        self.environment = os.getenv("ENVIRONMENT", "production")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.cors_origin = os.getenv("CORS_ORIGIN", "http://localhost:3000")
        self.api_prefix = os.getenv("API_PREFIX", "/api")

        self.rate_limit_enabled = _env_bool("RATE_LIMIT_ENABLED", True)
        self.enforce_category_type_match = _env_bool("ENFORCE_CATEGORY_TYPE_MATCH", False)
        self.allow_admin_signup = _env_bool("ALLOW_ADMIN_SIGNUP", False)
        self.max_body_bytes = int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024)))

        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", "5000"))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown setting: {key}")
            setattr(self, key, value)

        self.cache_backend = self.cache_backend.lower()
        if self.cache_backend not in ("redis", "memory", "none"):
            raise ValueError(f"CACHE_BACKEND must be redis, memory or none, got {self.cache_backend!r}")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    load_dotenv()
    return Settings()
