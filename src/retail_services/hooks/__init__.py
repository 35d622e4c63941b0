"""Consumer-facing observers over the service registry."""

from .service_access import ServiceAccessHook
from .service_status import ServiceStatusPoller

__all__ = [
    "ServiceAccessHook",
    "ServiceStatusPoller",
]
