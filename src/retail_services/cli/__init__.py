"""CLI module for retail-services.

Provides command-line interface for inspecting and warming the service registry.
"""

from retail_services.cli.app import app

__all__ = ["app"]
