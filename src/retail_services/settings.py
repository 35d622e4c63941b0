"""Application configuration using Pydantic Settings.

This module centralizes runtime configuration for the service registry.
Values can be provided via environment variables (preferred) or fall back to
the defaults below. A ``Settings`` instance is intended to be retrieved via
``get_settings`` which caches the object for reuse across the process.

Environment variable prefix: ``RETAIL_SERVICES_`` (e.g.
``RETAIL_SERVICES_LOG_LEVEL``). Mapping and list fields are read as JSON, for
example ``RETAIL_SERVICES_LOADERS='{"pricing": "shop.pricing:create_service"}'``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime application settings.

    Attributes map directly to environment variables using the
    ``RETAIL_SERVICES_`` prefix (case-insensitive). For example,
    ``status_poll_interval`` <- ``RETAIL_SERVICES_STATUS_POLL_INTERVAL``.
    """

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Application log level",
    )
    status_poll_interval: float = Field(
        default=0.1,
        gt=0,
        description="Seconds between readiness re-checks of the status poller",
    )  # fmt: skip
    preload_critical: bool = Field(
        default=True,
        description="Load critical services when the application starts",
    )  # fmt: skip

    # Loader table
    # Import paths are resolved lazily, on the first request for a service.
    loaders: dict[str, str] = Field(
        default_factory=dict,
        description="Service name to 'module:attribute' loader import path",
    )  # fmt: skip
    critical_services: list[str] = Field(
        default_factory=list,
        description="Service names from 'loaders' that are preloaded at startup",
    )  # fmt: skip

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str:
        """Normalize and validate log level."""
        if v is None:
            return "INFO"

        # Normalize to uppercase
        v_upper = str(v).upper()

        # Validate against allowed values
        allowed = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(allowed))}")

        return v_upper

    model_config = SettingsConfigDict(
        env_prefix="RETAIL_SERVICES_",  # Prefix for env vars
        case_sensitive=False,
        extra="ignore",  # Ignore unexpected env vars
        env_file=".env",  # Optional .env loading (if present)
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached ``Settings`` instance.

    The first invocation reads environment variables / .env file; subsequent
    calls reuse the same object to ensure consistent config.
    """

    return Settings()


__all__ = ["Settings", "get_settings"]
