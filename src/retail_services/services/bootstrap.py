"""Application startup for the service registry.

This module provides the startup hook shared by applications embedding the
registry and by the CLI.
"""

from loguru import logger

from retail_services.services.enums import ServiceStatus
from retail_services.services.registry import ServiceRegistry, get_service_registry
from retail_services.settings import Settings, get_settings


async def bootstrap_services(
    registry: ServiceRegistry | None = None,
    settings: Settings | None = None,
) -> dict[str, ServiceStatus]:
    """Prepare the registry at application start.

    Critical services are preloaded when ``settings.preload_critical`` is
    enabled. Their failures are logged, not raised: a failed critical service
    is retried on its first request.

    Args:
        registry: Registry to prepare, defaults to the process-wide one
        settings: Settings to apply, defaults to the cached settings

    Returns:
        Status of each preloaded service (empty when preloading is disabled)
    """
    registry = registry or get_service_registry()
    settings = settings or get_settings()

    logger.info(f"Bootstrapping service registry ({len(registry.loaders)} services registered)")

    if not settings.preload_critical:
        logger.debug("Critical service preloading disabled")
        return {}

    statuses = await registry.preload_critical()
    failed = [name for name, status in statuses.items() if status == ServiceStatus.FAILED]
    if failed:
        logger.warning(f"Service registry started with failed critical services: {', '.join(failed)}")
    else:
        logger.info("Service registry initialized")
    return statuses
