"""Registry lifecycle events.

This module provides the event types the service registry emits, for
decoupled observation of service readiness.
"""

from retail_services.events.types import ServiceLoadFailedEvent, ServiceResolvedEvent

__all__ = [
    "ServiceLoadFailedEvent",
    "ServiceResolvedEvent",
]
