"""Readiness polling for a single named service.

``ServiceStatusPoller`` answers "is this service ready yet?" without ever
forcing a load. It re-checks ``ServiceRegistry.has`` on a fixed interval and,
when the registry has an event bus, also refreshes as soon as a
``ServiceResolvedEvent`` for its service is emitted.
"""

import asyncio
import contextlib
from collections.abc import Callable

from loguru import logger

from retail_services.event_bus import EventHandler
from retail_services.events.types import ServiceResolvedEvent
from retail_services.services.registry import ServiceRegistry
from retail_services.settings import get_settings

ReadyListener = Callable[[bool], None]


class _ResolvedHandler(EventHandler[ServiceResolvedEvent]):
    """Refresh a poller when its service is resolved."""

    def __init__(self, poller: "ServiceStatusPoller"):
        self._poller = poller

    async def handle(self, event: ServiceResolvedEvent) -> bool | None:
        if event.service_name != self._poller.name:
            return None
        return self._poller.refresh()


class ServiceStatusPoller:
    """Keep a ``ready`` flag for one service up to date.

    Readiness may be reported up to one interval late when no event bus is
    attached to the registry. Failed loads are reported as not ready.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        name: str,
        interval: float | None = None,
        on_change: ReadyListener | None = None,
    ):
        """Create a poller; call ``start`` (or enter it) to begin checking.

        Args:
            registry: Registry to query
            name: Service to watch
            interval: Seconds between checks, defaults to ``Settings.status_poll_interval``
            on_change: Called with the new flag whenever it flips
        """
        self._interval = interval if interval is not None else get_settings().status_poll_interval
        if self._interval <= 0:
            raise ValueError(f"Poll interval must be positive, got: {self._interval}")

        self._registry = registry
        self._name = name
        self._on_change = on_change
        self._ready = registry.has(name)
        self._task: asyncio.Task[None] | None = None
        self._resolved_handler = _ResolvedHandler(self)

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def running(self) -> bool:
        return self._task is not None

    def refresh(self) -> bool:
        """Re-check readiness now and return the current flag."""
        ready = self._registry.has(self._name)
        if ready != self._ready:
            self._ready = ready
            logger.debug(f"Service '{self._name}' ready={ready}")
            if self._on_change is not None:
                self._on_change(ready)
        return ready

    def start(self) -> None:
        """Begin periodic checking. Must be called inside a running event loop."""
        if self._task is not None:
            return

        self.refresh()
        self._task = asyncio.create_task(self._poll(), name=f"poll-service-{self._name}")

        bus = self._registry.event_bus
        if bus is not None:
            bus.on(ServiceResolvedEvent, self._resolved_handler)

    def close(self) -> None:
        """Stop checking and release the timer task."""
        if self._task is None:
            return

        self._task.cancel()
        self._task = None

        bus = self._registry.event_bus
        if bus is not None:
            bus.remove_handler(ServiceResolvedEvent, self._resolved_handler)

    async def __aenter__(self) -> "ServiceStatusPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        task = self._task
        self.close()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.refresh()
