"""Enums for the service registry.

This module contains basic enums to avoid circular dependencies.
"""

from enum import StrEnum


class ServiceStatus(StrEnum):
    """Lifecycle state of a single registry entry."""

    ABSENT = "absent"
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class ServiceCategory(StrEnum):
    """Grouping used to organize services in the loader table."""

    CORE = "core"  # Database, auth, logging
    SHARED = "shared"  # Barcode, printing, file handling
    DOMAIN = "domain"  # Inventory, sales, clients
    INTEGRATION = "integration"
    UI = "ui"
