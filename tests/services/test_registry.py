"""Tests for the service registry."""

import asyncio

import pytest

from retail_services.event_bus import EventBus
from retail_services.events import ServiceLoadFailedEvent, ServiceResolvedEvent
from retail_services.exceptions import LoadFailure, UnknownServiceError
from retail_services.services.enums import ServiceCategory, ServiceStatus
from retail_services.services.models import LoaderDefinition
from retail_services.services.registry import ServiceRegistry, get_service_registry


class MockService:
    """A mock service class for testing."""

    def __init__(self, value: str = "default"):
        """Initialize with a value."""
        self.value = value


class CountingLoader:
    """Async loader recording how often it ran, optionally gated on an event."""

    def __init__(self, result=None, error: Exception | None = None, gate: asyncio.Event | None = None):
        self.result = result if result is not None else MockService()
        self.error = error
        self.gate = gate
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_sequential_calls_return_cached_instance():
    """Test that a resolved service is loaded once and then served from cache."""
    loader = CountingLoader(MockService("cached"))
    registry = ServiceRegistry({"products": loader})

    first = await registry.get_or_load("products")
    second = await registry.get_or_load("products")

    assert first is second
    assert first.value == "cached"
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_load():
    """Test that callers arriving while a load is pending attach to it."""
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)
    registry = ServiceRegistry({"inventory": loader})

    first = asyncio.create_task(registry.get_or_load("inventory"))
    second = asyncio.create_task(registry.get_or_load("inventory"))
    await asyncio.sleep(0)

    assert registry.status("inventory") == ServiceStatus.PENDING
    gate.set()
    results = await asyncio.gather(first, second)

    assert loader.calls == 1
    assert results[0] is results[1]


@pytest.mark.asyncio
async def test_pricing_scenario_three_concurrent_requests():
    """Test three concurrent requests for a delayed loader run it exactly once."""
    executions = 0

    async def load_pricing():
        nonlocal executions
        executions += 1
        await asyncio.sleep(0.05)
        return {"rate": 1.2}

    registry = ServiceRegistry({"pricing": load_pricing})

    results = await asyncio.gather(*(registry.get_or_load("pricing") for _ in range(3)))

    assert executions == 1
    assert results == [{"rate": 1.2}] * 3


@pytest.mark.asyncio
async def test_concurrent_failure_delivers_same_error():
    """Test that every attached caller receives the same failure instance."""
    gate = asyncio.Event()
    loader = CountingLoader(error=RuntimeError("boom"), gate=gate)
    registry = ServiceRegistry({"sales": loader})

    tasks = [asyncio.create_task(registry.get_or_load("sales")) for _ in range(2)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert loader.calls == 1
    assert isinstance(results[0], LoadFailure)
    assert results[0] is results[1]


@pytest.mark.asyncio
async def test_catalog_scenario_failure_then_retry():
    """Test that a rejected load reports not ready and is retried on the next request."""
    loader = CountingLoader(error=ConnectionError("network down"))
    registry = ServiceRegistry({"catalog": loader})

    with pytest.raises(LoadFailure, match="network down") as exc_info:
        await registry.get_or_load("catalog")

    assert exc_info.value.service_name == "catalog"
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert str(exc_info.value.cause) == "network down"
    assert exc_info.value.__cause__ is exc_info.value.cause
    assert registry.has("catalog") is False
    assert registry.status("catalog") == ServiceStatus.FAILED
    assert registry.error("catalog") is exc_info.value

    with pytest.raises(LoadFailure):
        await registry.get_or_load("catalog")

    assert loader.calls == 2


@pytest.mark.asyncio
async def test_retry_after_failure_can_succeed():
    """Test that a failed entry becomes resolved once the loader recovers."""
    attempts = 0

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise TimeoutError("slow backend")
        return MockService("recovered")

    registry = ServiceRegistry({"clients": flaky})

    with pytest.raises(LoadFailure):
        await registry.get_or_load("clients")

    service = await registry.get_or_load("clients")

    assert service.value == "recovered"
    assert registry.has("clients")
    assert registry.error("clients") is None


@pytest.mark.asyncio
async def test_unknown_service_never_invokes_loader():
    """Test that requesting an unregistered name fails without running any loader."""
    loader = CountingLoader()
    registry = ServiceRegistry({"products": loader})

    with pytest.raises(UnknownServiceError, match="Service 'suppliers' not registered"):
        await registry.get_or_load("suppliers")

    assert loader.calls == 0
    with pytest.raises(UnknownServiceError):
        registry.status("suppliers")


@pytest.mark.asyncio
async def test_has_and_peek_follow_lifecycle():
    """Test has/peek before, during and after a load."""
    gate = asyncio.Event()
    service = MockService("employees")
    registry = ServiceRegistry({"employees": CountingLoader(service, gate=gate)})

    assert registry.has("employees") is False
    assert registry.peek("employees") is None
    assert registry.status("employees") == ServiceStatus.ABSENT

    task = asyncio.create_task(registry.get_or_load("employees"))
    await asyncio.sleep(0)
    assert registry.has("employees") is False
    assert registry.peek("employees") is None

    gate.set()
    await task
    assert registry.has("employees") is True
    assert registry.peek("employees") is service
    assert registry.status("employees") == ServiceStatus.RESOLVED


def test_has_unknown_name_is_false():
    """Test that has() does not raise for unregistered names."""
    registry = ServiceRegistry({})
    assert registry.has("anything") is False
    assert registry.peek("anything") is None


@pytest.mark.asyncio
async def test_sync_loader_is_accepted():
    """Test that a loader returning a plain value resolves to it."""
    registry = ServiceRegistry({"barcodes": lambda: MockService("sync")})

    service = await registry.get_or_load("barcodes")

    assert service.value == "sync"


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_load():
    """Test that cancelling one waiter leaves the load running for the others."""
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)
    registry = ServiceRegistry({"labels": loader})

    doomed = asyncio.create_task(registry.get_or_load("labels"))
    survivor = asyncio.create_task(registry.get_or_load("labels"))
    await asyncio.sleep(0)

    doomed.cancel()
    with pytest.raises(asyncio.CancelledError):
        await doomed

    gate.set()
    service = await survivor

    assert service is loader.result
    assert registry.has("labels")
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_reset_discards_in_flight_result():
    """Test that a load started before reset() is not cached afterwards."""
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)
    registry = ServiceRegistry({"stores": loader})

    task = asyncio.create_task(registry.get_or_load("stores"))
    await asyncio.sleep(0)
    registry.reset()
    gate.set()

    assert await task is loader.result
    assert registry.has("stores") is False
    assert registry.status("stores") == ServiceStatus.ABSENT


@pytest.mark.asyncio
async def test_reset_forgets_resolved_services():
    """Test that reset() makes the next request load again."""
    loader = CountingLoader()
    registry = ServiceRegistry({"stores": loader})

    await registry.get_or_load("stores")
    registry.reset()
    await registry.get_or_load("stores")

    assert loader.calls == 2


@pytest.mark.asyncio
async def test_snapshot_reports_each_entry():
    """Test the monitoring snapshot for resolved, failed and untouched services."""
    registry = ServiceRegistry(
        {
            "barcodes": LoaderDefinition(loader=CountingLoader(), category=ServiceCategory.SHARED, critical=True),
            "catalog": CountingLoader(error=ConnectionError("network down")),
            "sales": CountingLoader(),
        }
    )

    await registry.get_or_load("barcodes")
    with pytest.raises(LoadFailure):
        await registry.get_or_load("catalog")

    entries = {entry.service_name: entry for entry in registry.snapshot()}

    assert list(entries) == ["barcodes", "catalog", "sales"]
    assert entries["barcodes"].status == ServiceStatus.RESOLVED
    assert entries["barcodes"].category == ServiceCategory.SHARED
    assert entries["barcodes"].critical is True
    assert entries["barcodes"].resolved_at is not None
    assert entries["barcodes"].load_time_ms is not None
    assert entries["catalog"].status == ServiceStatus.FAILED
    assert entries["catalog"].error == "network down"
    assert entries["catalog"].failed_at is not None
    assert entries["sales"].status == ServiceStatus.ABSENT
    assert entries["sales"].resolved_at is None


def test_names_by_category():
    """Test filtering registered names by category."""
    registry = ServiceRegistry(
        {
            "barcodes": LoaderDefinition(loader=CountingLoader(), category=ServiceCategory.SHARED),
            "sales": CountingLoader(),
            "inventory": CountingLoader(),
        }
    )

    assert registry.names() == ["barcodes", "sales", "inventory"]
    assert registry.names(ServiceCategory.SHARED) == ["barcodes"]
    assert registry.names(ServiceCategory.DOMAIN) == ["sales", "inventory"]


@pytest.mark.asyncio
async def test_preload_critical_reports_failures_without_raising():
    """Test that preloading loads critical services only and isolates failures."""
    barcodes = CountingLoader()
    prints = CountingLoader(error=OSError("printer offline"))
    sales = CountingLoader()
    registry = ServiceRegistry(
        {
            "barcodes": LoaderDefinition(loader=barcodes, critical=True),
            "prints": LoaderDefinition(loader=prints, critical=True),
            "sales": sales,
        }
    )

    statuses = await registry.preload_critical()

    assert statuses == {"barcodes": ServiceStatus.RESOLVED, "prints": ServiceStatus.FAILED}
    assert sales.calls == 0


@pytest.mark.asyncio
async def test_preload_without_critical_services():
    """Test that preloading with nothing critical is a no-op."""
    registry = ServiceRegistry({"sales": CountingLoader()})
    assert await registry.preload_critical() == {}


@pytest.mark.asyncio
async def test_lifecycle_events_are_emitted():
    """Test that resolution and failure are announced on the event bus."""
    bus = EventBus()
    received = []

    async def record(event):
        received.append(event)

    bus.on(ServiceResolvedEvent, record)
    bus.on(ServiceLoadFailedEvent, record)
    registry = ServiceRegistry(
        {"sales": CountingLoader(), "catalog": CountingLoader(error=ConnectionError("network down"))},
        event_bus=bus,
    )

    await registry.get_or_load("sales")
    with pytest.raises(LoadFailure):
        await registry.get_or_load("catalog")
    await asyncio.sleep(0.01)

    resolved = [e for e in received if isinstance(e, ServiceResolvedEvent)]
    failed = [e for e in received if isinstance(e, ServiceLoadFailedEvent)]
    assert [e.service_name for e in resolved] == ["sales"]
    assert [e.service_name for e in failed] == ["catalog"]
    assert failed[0].error == "network down"


def test_service_registry_singleton(monkeypatch: pytest.MonkeyPatch):
    """Test that get_service_registry builds one registry from settings."""
    from retail_services.settings import get_settings

    monkeypatch.setenv("RETAIL_SERVICES_LOADERS", '{"ordered": "collections:OrderedDict"}')
    get_settings.cache_clear()
    get_service_registry.cache_clear()
    try:
        registry1 = get_service_registry()
        registry2 = get_service_registry()

        assert registry1 is registry2
        assert registry1.names() == ["ordered"]
        assert registry1.event_bus is not None
    finally:
        get_settings.cache_clear()
        get_service_registry.cache_clear()


@pytest.mark.asyncio
async def test_cancelled_error_from_loader_is_a_load_failure():
    """Test that a loader whose awaited work was cancelled fails like any other loader."""
    attempts = 0

    async def aborted():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            request = asyncio.get_running_loop().create_future()
            request.cancel()
            await request
        return MockService("recovered")

    registry = ServiceRegistry({"suppliers": aborted})

    with pytest.raises(LoadFailure) as exc_info:
        await registry.get_or_load("suppliers")

    assert isinstance(exc_info.value.cause, asyncio.CancelledError)
    assert registry.has("suppliers") is False
    assert registry.status("suppliers") == ServiceStatus.FAILED

    service = await registry.get_or_load("suppliers")
    assert service.value == "recovered"
    assert attempts == 2


@pytest.mark.asyncio
async def test_get_or_load_category():
    """Test that a whole category is loaded concurrently and returned by name."""
    registry = ServiceRegistry(
        {
            "barcodes": LoaderDefinition(loader=CountingLoader(MockService("barcodes")), category=ServiceCategory.SHARED),
            "sales": CountingLoader(MockService("sales")),
            "inventory": CountingLoader(MockService("inventory")),
        }
    )

    services = await registry.get_or_load_category(ServiceCategory.DOMAIN)

    assert list(services) == ["sales", "inventory"]
    assert services["sales"].value == "sales"
    assert registry.has("barcodes") is False


@pytest.mark.asyncio
async def test_get_or_load_category_raises_after_all_settle():
    """Test that one failure is raised only once its siblings finished loading."""
    gate = asyncio.Event()
    slow = CountingLoader(gate=gate)
    registry = ServiceRegistry(
        {
            "catalog": CountingLoader(error=ConnectionError("network down")),
            "sales": slow,
        }
    )

    task = asyncio.create_task(registry.get_or_load_category(ServiceCategory.DOMAIN))
    await asyncio.sleep(0.01)
    assert not task.done()

    gate.set()
    with pytest.raises(LoadFailure, match="network down"):
        await task

    assert registry.has("sales") is True
    assert slow.calls == 1


@pytest.mark.asyncio
async def test_check_health():
    """Test health check outcomes for resolved and unresolved services."""

    async def reachable(service: MockService) -> bool:
        return service.value == "online"

    def broken(service: MockService) -> bool:
        raise OSError("printer offline")

    registry = ServiceRegistry(
        {
            "sales": CountingLoader(),
            "pricing": LoaderDefinition(loader=CountingLoader(MockService("online")), health_check=reachable),
            "inventory": LoaderDefinition(loader=CountingLoader(MockService("offline")), health_check=reachable),
            "prints": LoaderDefinition(loader=CountingLoader(), health_check=broken),
        }
    )

    assert await registry.check_health("sales") is False
    assert registry.last_health("sales") is None

    for name in registry.names():
        await registry.get_or_load(name)

    assert await registry.check_health("sales") is True
    assert await registry.check_health("pricing") is True
    assert await registry.check_health("inventory") is False
    assert await registry.check_health("prints") is False
    assert registry.last_health("inventory") is False

    with pytest.raises(UnknownServiceError):
        await registry.check_health("suppliers")


@pytest.mark.asyncio
async def test_snapshot_reports_health():
    """Test that the snapshot carries the last health check outcome."""
    registry = ServiceRegistry(
        {
            "sales": CountingLoader(),
            "inventory": LoaderDefinition(loader=CountingLoader(), health_check=lambda service: False),
        }
    )
    await registry.get_or_load("sales")
    await registry.get_or_load("inventory")
    await registry.check_health("inventory")

    entries = {entry.service_name: entry for entry in registry.snapshot()}

    assert entries["sales"].healthy is None
    assert entries["inventory"].healthy is False

    registry.reset()
    assert registry.last_health("inventory") is None


@pytest.mark.asyncio
async def test_health_by_category():
    """Test the per-category summary counts failed loads as unhealthy."""
    registry = ServiceRegistry(
        {
            "barcodes": LoaderDefinition(loader=CountingLoader(), category=ServiceCategory.SHARED),
            "sales": CountingLoader(),
            "catalog": CountingLoader(error=ConnectionError("network down")),
            "inventory": LoaderDefinition(loader=CountingLoader(), health_check=lambda service: False),
        }
    )

    summaries = await registry.health_by_category()

    assert [(s.category, s.healthy, s.total) for s in summaries] == [
        ("shared", 1, 1),
        ("domain", 1, 3),
    ]
