"""Common exceptions for the service registry.

This module contains the exception hierarchy raised by the loader table,
the service registry and the consumer hooks.
"""


class RegistryError(Exception):
    """Base exception for all service registry related errors."""


class UnknownServiceError(RegistryError):
    """Raised when a service name has no registered loader.

    This indicates a configuration or programming mistake, not a transient
    condition, so callers should not retry it.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"Service '{service_name}' not registered")


class LoadFailure(RegistryError):
    """Raised when a registered loader fails.

    The same instance is delivered to every caller attached to the failed
    load attempt. The original exception is available as ``cause`` and
    ``__cause__``.
    """

    def __init__(self, service_name: str, cause: BaseException):
        self.service_name = service_name
        self.cause = cause
        super().__init__(f"Service '{service_name}' failed to load: {cause}")


class LoaderTableError(RegistryError):
    """Raised when a loader table definition is invalid.

    This occurs when:
    - A loader is not callable
    - An import path is malformed
    - An import path does not resolve to an attribute
    """
