"""Observable access to a single named service.

``ServiceAccessHook`` adapts the registry's ``get_or_load`` coroutine to an
observer interface for presentation code: it exposes ``service``, ``loading``,
``error`` and ``healthy`` and notifies listeners whenever they change. A
listener that raises is logged and skipped.
"""

import asyncio
from collections.abc import Callable

from loguru import logger

from retail_services.exceptions import LoadFailure, UnknownServiceError
from retail_services.services.models import ServiceState
from retail_services.services.registry import ServiceRegistry

StateListener = Callable[[ServiceState], None]


class ServiceAccessHook:
    """Track the loading state of one service at a time.

    Load failures are reported through ``error`` and never raised to the
    consumer. Requesting a name with no registered loader is a programming
    error and raises ``UnknownServiceError`` from ``observe`` directly.

    Example:
        ```python
        async with ServiceAccessHook(registry, "pricing", on_change=render) as hook:
            state = await hook.wait()
            if state.error is None:
                state.service.quote(...)
        ```
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        name: str | None = None,
        on_change: StateListener | None = None,
    ):
        """Create the hook, observing ``name`` right away if given.

        Passing a name starts a load, so it must happen inside a running
        event loop.
        """
        self._registry = registry
        self._name: str | None = None
        self._state = ServiceState()
        self._listeners: list[StateListener] = [on_change] if on_change else []
        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._closed = False

        if name is not None:
            self.observe(name)

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def service(self):
        return self._state.service

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> BaseException | None:
        return self._state.error

    @property
    def healthy(self) -> bool:
        return self._state.healthy

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback receiving every new state."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> bool:
        """Unregister a state callback."""
        try:
            self._listeners.remove(listener)
            return True
        except ValueError:
            return False

    def observe(self, name: str) -> None:
        """Start observing a service, loading it if needed.

        Observing the current name again does nothing. Switching to another
        name drops interest in the previous outcome; the previous load keeps
        running in the registry for its other consumers.

        Raises:
            UnknownServiceError: If no loader is registered for the name
            RuntimeError: If the hook has been closed
        """
        if self._closed:
            raise RuntimeError("Cannot observe a service on a closed hook")
        if name == self._name:
            return
        if name not in self._registry.loaders:
            raise UnknownServiceError(name)

        self._name = name
        self._request()

    def reload(self) -> None:
        """Request the current service again.

        After a failure this retries the loader; for a resolved service the
        registry returns the cached instance.
        """
        if self._closed or self._name is None:
            return
        self._request()

    async def wait(self) -> ServiceState:
        """Wait for the current request to settle and return the resulting state."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self._state

    def close(self) -> None:
        """Stop observing. Results arriving afterwards are discarded."""
        self._closed = True
        self._listeners.clear()
        self._task = None

    async def __aenter__(self) -> "ServiceAccessHook":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self) -> None:
        self._generation += 1
        name = self._name

        if self._registry.has(name):
            # Served from cache right away; the task below only refreshes health
            healthy = self._registry.last_health(name) is True
            self._update(ServiceState(service=self._registry.peek(name), healthy=healthy))
        else:
            self._update(ServiceState(loading=True))

        self._task = asyncio.create_task(self._resolve(name, self._generation), name=f"observe-service-{name}")

    async def _resolve(self, name: str, generation: int) -> None:
        try:
            service = await self._registry.get_or_load(name)
            healthy = await self._registry.check_health(name)
            state = ServiceState(service=service, healthy=healthy)
        except (LoadFailure, UnknownServiceError) as e:
            state = ServiceState(error=e)

        if self._closed or generation != self._generation:
            logger.trace(f"Discarding stale result for service '{name}'")
            return

        if state != self._state:
            self._update(state)

    def _update(self, state: ServiceState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener {listener} failed: {e}")
