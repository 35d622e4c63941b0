"""Event Bus System for Decoupled Component Communication.

This module provides a framework-agnostic event bus that enables loose coupling
between the service registry and whatever observes it. It supports:

- **Pydantic Event Models**: Type-safe event definitions using BaseModel
- **Async Handler Execution**: All handlers run asynchronously and concurrently
- **Error Isolation**: Handler failures don't affect other handlers
- **Singleton Pattern**: Global event bus instance via @lru_cache

For class-based handlers, see `core.py`.
For the API reference, see `bus.py`.
"""

from .bus import EventBus, get_event_bus
from .core import EventHandler

__all__ = [
    "EventBus",
    "EventHandler",
    "get_event_bus",
]
