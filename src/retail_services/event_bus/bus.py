"""Event Bus Implementation.

This module provides the main EventBus class that handles event registration
and emission. The service registry emits its lifecycle notifications through
it, and the status poller listens to them.

## Key Features

- **Async Handler Execution**: All handlers execute concurrently
- **Error Isolation**: Handler failures don't affect other handlers
- **Type Safety**: Strong typing with Pydantic events
- **Singleton Pattern**: Global instance via @lru_cache

## Usage

```python
from retail_services.event_bus import get_event_bus
from retail_services.events import ServiceResolvedEvent

async def announce(event: ServiceResolvedEvent) -> None:
    print(f"{event.service_name} is ready")

bus = get_event_bus()
bus.on(ServiceResolvedEvent, announce)
results = await bus.emit_and_wait(ServiceResolvedEvent(service_name="pricing", category="domain"))
```

"""

import asyncio
import inspect
from collections.abc import Callable
from functools import lru_cache
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

from .core import EventEmissionError, HandlerRegistrationError

T_Event = TypeVar("T_Event", bound=BaseModel)
T_Handler = Callable[..., Any]


class EventBus:
    """Framework-agnostic event bus for async event handling.

    Example:
        ```python
        bus = get_event_bus()
        bus.on(ServiceResolvedEvent, announce)
        bus.emit(ServiceResolvedEvent(service_name="pricing", category="domain"))
        # Or wait for results:
        results = await bus.emit_and_wait(ServiceResolvedEvent(service_name="pricing", category="domain"))
        ```
    """

    def __init__(self) -> None:
        """Initialize a new EventBus instance."""
        self._handlers: dict[type[BaseModel], list[T_Handler]] = {}
        self._background_tasks: set[asyncio.Task] = set()
        logger.debug("EventBus initialized")

    def on(self, event_type: type[T_Event], handler: T_Handler) -> None:
        """Register a handler for an event type.

        Args:
            event_type: The Pydantic BaseModel class to handle
            handler: The handler function or EventHandler instance

        Raises:
            HandlerRegistrationError: If event_type is not BaseModel or handler is not callable
        """
        if not (isinstance(event_type, type) and issubclass(event_type, BaseModel)):
            raise HandlerRegistrationError(f"Event type must be a Pydantic BaseModel subclass, got: {event_type}")

        if not callable(handler):
            raise HandlerRegistrationError(f"Handler must be callable: {handler}")

        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Registered handler for {event_type.__name__}: {handler}")

    def remove_handler(self, event_type: type[T_Event], handler: T_Handler) -> bool:
        """Remove a specific handler for an event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Removed handler for {event_type.__name__}: {handler}")
                return True
            except ValueError:
                pass
        return False

    def clear_handlers(self, event_type: type[T_Event] | None = None) -> None:
        """Clear handlers for a specific event type or all events."""
        if event_type is None:
            self._handlers.clear()
            logger.debug("Cleared all handlers")
        elif event_type in self._handlers:
            del self._handlers[event_type]
            logger.debug(f"Cleared handlers for {event_type.__name__}")

    def get_handler_count(self, event_type: type[T_Event]) -> int:
        """Get the number of handlers registered for an event type."""
        return len(self._handlers.get(event_type, []))

    def get_registered_events(self) -> list[type[BaseModel]]:
        """Get all event types that have registered handlers."""
        return [event_type for event_type, handlers in self._handlers.items() if handlers]

    def emit(self, event: T_Event) -> None:
        """Emit an event without waiting for completion (fire-and-forget).

        This method creates a task for event emission and returns immediately.
        It must be called from inside a running event loop.

        Args:
            event: The event to emit
        """
        if not self._handlers.get(type(event)):
            logger.trace(f"No handlers registered for {type(event).__name__}, skipping emit")
            return

        task = asyncio.create_task(self.emit_and_wait(event))
        # The loop only keeps weak references to tasks
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def emit_and_wait(self, event: T_Event) -> list[Any]:
        """Emit an event and wait for all handlers to complete.

        Args:
            event: The event instance to emit

        Returns:
            List of results from all handlers (including exceptions)

        Raises:
            EventEmissionError: If event is not a BaseModel instance
        """
        if not isinstance(event, BaseModel):
            raise EventEmissionError(f"Event must be a BaseModel instance, got: {type(event).__name__}")

        event_type = type(event)
        # Copy so handlers removing themselves do not disturb this emission
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(f"No handlers registered for {event_type.__name__}")
            return []

        logger.debug(f"Emitting {event_type.__name__} to {len(handlers)} handlers")

        results = await asyncio.gather(*(self._execute_handler(handler, event) for handler in handlers), return_exceptions=True)

        successful = sum(1 for r in results if not isinstance(r, Exception))
        failed = len(results) - successful
        if failed > 0:
            logger.warning(f"Event {event_type.__name__}: {successful} successful, {failed} failed handlers")
        logger.trace(f"Event {event_type.__name__} results: {results}")

        return results

    async def _execute_handler(self, handler: T_Handler, event: T_Event) -> Any:
        """Execute a single handler.

        Both coroutine functions and plain callables are supported.

        Args:
            handler: The handler to execute
            event: The event to pass to the handler

        Returns:
            The handler's result or any exception raised
        """
        try:
            logger.trace(f"Executing handler {handler} for event {type(event).__name__}")
            result = handler(event)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            logger.error(f"Handler {handler} failed: {e}")
            return e


@lru_cache
def get_event_bus() -> EventBus:
    """Get or create the singleton EventBus instance.

    Returns:
        The EventBus instance
    """
    return EventBus()
