"""Service registry with lazy, single-flight service loading."""

import asyncio
import inspect
import time
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

import arrow
from loguru import logger
from pydantic import BaseModel

from retail_services.event_bus import EventBus, get_event_bus
from retail_services.events.types import ServiceLoadFailedEvent, ServiceResolvedEvent
from retail_services.exceptions import LoadFailure, UnknownServiceError
from retail_services.services.enums import ServiceCategory, ServiceStatus
from retail_services.services.loader_table import LoaderTable, build_loader_table
from retail_services.services.models import CategoryHealth, Loader, LoaderDefinition, ServiceEntryInfo
from retail_services.settings import get_settings


class ServiceRegistry:
    """Cache of lazily created services, keyed by service name.

    Each name moves through ``absent -> pending -> resolved`` (or ``failed``,
    from which the next request starts over). While a load is pending the
    in-flight task is kept, and every caller arriving before it settles awaits
    that same task, so a loader never runs twice concurrently. Resolved
    instances are kept for the lifetime of the registry.
    """

    def __init__(
        self,
        loaders: LoaderTable | Mapping[str, Loader | LoaderDefinition],
        event_bus: EventBus | None = None,
    ):
        """Initialize a registry over a loader table.

        Args:
            loaders: Loader table, or a mapping it can be built from
            event_bus: Bus receiving resolved/failed notifications, if any
        """
        self._loaders = loaders if isinstance(loaders, LoaderTable) else LoaderTable(loaders)
        self._event_bus = event_bus
        self._instances: dict[str, Any] = {}
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self._failures: dict[str, LoadFailure] = {}
        self._resolved_at: dict[str, str] = {}
        self._failed_at: dict[str, str] = {}
        self._load_times: dict[str, float] = {}
        self._health: dict[str, bool] = {}

    @property
    def loaders(self) -> LoaderTable:
        """The loader table this registry resolves names against."""
        return self._loaders

    @property
    def event_bus(self) -> EventBus | None:
        """The bus lifecycle events are emitted on, if any."""
        return self._event_bus

    async def get_or_load(self, name: str) -> Any:
        """Get a service instance, loading it on first request.

        Args:
            name: The name of the service to retrieve

        Returns:
            The cached service instance

        Raises:
            UnknownServiceError: If no loader is registered for the name
            LoadFailure: If the loader raised; every caller attached to the
                same attempt receives the same exception instance
        """
        definition = self._definition(name)

        if name in self._instances:
            logger.trace(f"Service '{name}' served from cache")
            return self._instances[name]

        task = self._pending.get(name)
        if task is None:
            self._failures.pop(name, None)
            self._failed_at.pop(name, None)
            task = asyncio.create_task(self._load(name, definition), name=f"load-service-{name}")
            self._pending[name] = task
        else:
            logger.trace(f"Service '{name}' is loading, attaching to in-flight load")

        # Shielded so a cancelled caller does not cancel the load for everyone else
        return await asyncio.shield(task)

    def has(self, name: str) -> bool:
        """Check whether a service is resolved, without triggering a load.

        Pending, failed, never requested and unknown names all report False.
        """
        return name in self._instances

    def peek(self, name: str) -> Any | None:
        """Get a service instance only if it is already resolved."""
        return self._instances.get(name)

    def status(self, name: str) -> ServiceStatus:
        """Get the lifecycle state of a registered service.

        Raises:
            UnknownServiceError: If no loader is registered for the name
        """
        self._definition(name)

        if name in self._instances:
            return ServiceStatus.RESOLVED
        if name in self._pending:
            return ServiceStatus.PENDING
        if name in self._failures:
            return ServiceStatus.FAILED
        return ServiceStatus.ABSENT

    def error(self, name: str) -> LoadFailure | None:
        """Get the failure of the last load attempt, while the entry is failed."""
        return self._failures.get(name)

    def names(self, category: ServiceCategory | None = None) -> list[str]:
        """Get registered service names, optionally restricted to one category."""
        return self._loaders.names(category)

    def snapshot(self) -> list[ServiceEntryInfo]:
        """Get the current state of every registered service.

        Returns:
            One entry per service in loader table order
        """
        entries = []
        for name, definition in self._loaders.items():
            failure = self._failures.get(name)
            entries.append(
                ServiceEntryInfo(
                    service_name=name,
                    status=self.status(name),
                    category=definition.category,
                    critical=definition.critical,
                    resolved_at=self._resolved_at.get(name),
                    failed_at=self._failed_at.get(name),
                    load_time_ms=self._load_times.get(name),
                    error=str(failure.cause) if failure else None,
                    healthy=self._health.get(name),
                )
            )
        return entries

    async def preload_critical(self) -> dict[str, ServiceStatus]:
        """Load every critical service concurrently.

        Failures are logged and reported in the result, never raised.

        Returns:
            Service name to status after the preload settled
        """
        names = self._loaders.critical_names()
        if not names:
            logger.debug("No critical services to preload")
            return {}

        logger.info(f"Preloading {len(names)} critical services: {', '.join(names)}")
        results = await asyncio.gather(*(self.get_or_load(name) for name in names), return_exceptions=True)

        for name, result in zip(names, results, strict=True):
            if isinstance(result, LoadFailure):
                logger.warning(f"Failed to preload service '{name}': {result.cause}")

        return {name: self.status(name) for name in names}

    async def get_or_load_category(self, category: ServiceCategory) -> dict[str, Any]:
        """Get every service of a category, loading them concurrently.

        All loads are allowed to settle before a failure is raised, so one
        broken service does not leave its siblings unrequested.

        Returns:
            Service name to instance, in loader table order

        Raises:
            LoadFailure: The first failure among the category's services
        """
        names = self.names(category)
        logger.debug(f"Loading {len(names)} services of category '{category}'")
        results = await asyncio.gather(*(self.get_or_load(name) for name in names), return_exceptions=True)

        for result in results:
            if isinstance(result, BaseException):
                raise result

        return dict(zip(names, results, strict=True))

    async def check_health(self, name: str) -> bool:
        """Run the health check of a service and record the outcome.

        Services that are not resolved are unhealthy. A resolved service
        without a health check is healthy. A health check that raises reports
        the service as unhealthy.

        Raises:
            UnknownServiceError: If no loader is registered for the name
        """
        definition = self._definition(name)

        if name not in self._instances:
            return False

        if definition.health_check is None:
            healthy = True
        else:
            try:
                result = definition.health_check(self._instances[name])
                if inspect.isawaitable(result):
                    result = await result
                healthy = bool(result)
            except Exception as e:
                logger.warning(f"Health check for service '{name}' failed: {e}")
                healthy = False

        if name in self._instances:
            self._health[name] = healthy
        logger.trace(f"Service '{name}' healthy={healthy}")
        return healthy

    def last_health(self, name: str) -> bool | None:
        """Get the outcome of the last health check, None if none ran."""
        return self._health.get(name)

    async def health_by_category(self) -> list[CategoryHealth]:
        """Load and health check every service, summarized per category.

        Services that fail to load count as unhealthy.

        Returns:
            One summary per category with registered services
        """
        summaries = []
        for category in ServiceCategory:
            names = self.names(category)
            if not names:
                continue

            healthy = 0
            for name in names:
                try:
                    await self.get_or_load(name)
                except LoadFailure:
                    continue
                if await self.check_health(name):
                    healthy += 1

            summaries.append(CategoryHealth(category=category, healthy=healthy, total=len(names)))
        return summaries

    def reset(self) -> None:
        """Forget every cached, pending and failed entry.

        Loads still in flight run to completion for their attached callers but
        are not cached.
        """
        self._instances.clear()
        self._pending.clear()
        self._failures.clear()
        self._resolved_at.clear()
        self._failed_at.clear()
        self._load_times.clear()
        self._health.clear()
        logger.debug("Service registry reset")

    def _definition(self, name: str) -> LoaderDefinition:
        try:
            return self._loaders[name]
        except KeyError:
            raise UnknownServiceError(name) from None

    def _owns_entry(self, name: str) -> bool:
        # False once reset() dropped the entry this load was started for
        return self._pending.get(name) is asyncio.current_task()

    async def _load(self, name: str, definition: LoaderDefinition) -> Any:
        logger.debug(f"Loading service '{name}'")
        started = time.perf_counter()

        try:
            instance = definition.loader()
            if inspect.isawaitable(instance):
                instance = await instance
        except asyncio.CancelledError as e:
            if asyncio.current_task().cancelling():
                if self._owns_entry(name):
                    del self._pending[name]
                raise
            # Raised by something the loader awaited, not by cancelling this load
            raise self._record_failure(name, definition, e) from e
        except Exception as e:
            raise self._record_failure(name, definition, e) from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        if self._owns_entry(name):
            del self._pending[name]
            self._instances[name] = instance
            self._resolved_at[name] = arrow.utcnow().isoformat()
            self._load_times[name] = elapsed_ms
            self._emit(ServiceResolvedEvent(service_name=name, category=definition.category))
        logger.info(f"Service '{name}' loaded in {elapsed_ms:.1f}ms")
        return instance

    def _record_failure(self, name: str, definition: LoaderDefinition, error: BaseException) -> LoadFailure:
        failure = LoadFailure(name, error)
        if self._owns_entry(name):
            del self._pending[name]
            self._failures[name] = failure
            self._failed_at[name] = arrow.utcnow().isoformat()
            self._emit(ServiceLoadFailedEvent(service_name=name, category=definition.category, error=str(failure.cause)))
        logger.warning(f"Service '{name}' failed to load: {error!r}")
        return failure

    def _emit(self, event: BaseModel) -> None:
        if self._event_bus is not None:
            self._event_bus.emit(event)


@lru_cache
def get_service_registry() -> ServiceRegistry:
    """Get the process-wide service registry.

    The loader table is built from settings on first use.

    Returns:
        The global service registry instance
    """
    settings = get_settings()
    loaders = build_loader_table(settings.loaders, settings.critical_services)
    logger.debug(f"Creating service registry with {len(loaders)} loaders")
    return ServiceRegistry(loaders, event_bus=get_event_bus())
