"""Core Event Bus Components.

This module contains the fundamental abstractions for the event bus system.
These components are framework-agnostic and can be used in any async Python
application.

## Key Components

- **EventHandler**: Base class for stateful, class-based event handlers
- **EventBusError**: Base exception for all event bus related errors
- **HandlerRegistrationError**: Raised when handler registration fails
- **EventEmissionError**: Raised when event emission fails

## Usage Example

```python
from retail_services.event_bus.core import EventHandler
from retail_services.events import ServiceResolvedEvent

class WarmupTracker(EventHandler[ServiceResolvedEvent]):
    def __init__(self):
        self.ready: set[str] = set()

    async def handle(self, event: ServiceResolvedEvent) -> None:
        self.ready.add(event.service_name)

bus.on(ServiceResolvedEvent, WarmupTracker())
```

"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T_Event = TypeVar("T_Event", bound=BaseModel)


class EventHandler(ABC, Generic[T_Event]):
    """Base class for class-based event handlers.

    Event handlers should inherit from this class and implement the handle method.
    The generic type parameter specifies which event type this handler processes.
    """

    @abstractmethod
    async def handle(self, event: T_Event) -> Any:
        """Handle the event.

        Args:
            event: The event to handle. Must be an instance of the generic type.

        Returns:
            Optional result from handling the event. Can be any type or None.

        Raises:
            Any exception that occurs during handling. Exceptions are caught
            by the event bus and included in the results list.
        """

    def __call__(self, event: T_Event) -> Any:
        """Make the handler callable.

        This allows handler instances to be used directly with the event bus.
        """
        return self.handle(event)


class EventBusError(Exception):
    """Base exception for all event bus related errors."""


class HandlerRegistrationError(EventBusError):
    """Raised when handler registration fails.

    This occurs when:
    - The event type is not a Pydantic BaseModel
    - The handler is not callable
    """


class EventEmissionError(EventBusError):
    """Raised when the emitted object is not a Pydantic BaseModel instance."""
