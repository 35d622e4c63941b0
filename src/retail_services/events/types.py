"""Event type definitions for the service registry.

This module contains the Pydantic event models the registry emits when an
entry settles.
"""

import arrow
from pydantic import BaseModel, Field

from retail_services.services.enums import ServiceCategory


class ServiceResolvedEvent(BaseModel):
    """Event emitted when a service finishes loading and is cached."""

    service_name: str
    category: ServiceCategory
    resolved_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())


class ServiceLoadFailedEvent(BaseModel):
    """Event emitted when a loader raises.

    Carries the error message only; the exception itself is delivered to the
    callers attached to the load.
    """

    service_name: str
    category: ServiceCategory
    error: str
    failed_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())
