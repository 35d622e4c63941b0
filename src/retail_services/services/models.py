"""Data models for the service registry.

This module contains Pydantic models shared by the loader table, the
registry and the consumer hooks.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from .enums import ServiceCategory, ServiceStatus

Loader = Callable[[], Any]
# Receives the resolved service; returns (or resolves to) whether it is healthy
HealthCheck = Callable[[Any], Any]


class LoaderDefinition(BaseModel):
    """A single loader table entry."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    loader: Loader
    category: ServiceCategory = ServiceCategory.DOMAIN
    critical: bool = False
    description: str | None = None
    health_check: HealthCheck | None = None


class ServiceEntryInfo(BaseModel):
    """Point-in-time view of one registry entry, used for monitoring."""

    model_config = {"use_enum_values": True}

    service_name: str
    status: ServiceStatus
    category: ServiceCategory
    critical: bool = False
    resolved_at: str | None = None  # ISO 8601 UTC timestamp
    failed_at: str | None = None  # ISO 8601 UTC timestamp
    load_time_ms: float | None = None
    error: str | None = None
    healthy: bool | None = None  # None until a health check ran


class CategoryHealth(BaseModel):
    """Health summary of all services in one category."""

    model_config = {"use_enum_values": True}

    category: ServiceCategory
    healthy: int = 0
    total: int = 0


class ServiceState(BaseModel):
    """Observable state exposed by the service access hook."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    service: Any = None
    loading: bool = False
    error: BaseException | None = None
    healthy: bool = False
