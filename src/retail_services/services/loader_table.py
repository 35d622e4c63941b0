"""Loader table construction.

The loader table maps each service name to the zero-argument factory that
produces it. It is supplied by application configuration and is immutable
once built: the registry only ever reads from it.
"""

import importlib
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from loguru import logger
from pydantic import ValidationError

from retail_services.exceptions import LoaderTableError
from retail_services.services.enums import ServiceCategory
from retail_services.services.models import Loader, LoaderDefinition


class LoaderTable(Mapping[str, LoaderDefinition]):
    """Immutable mapping of service name to loader definition."""

    def __init__(self, entries: Mapping[str, Loader | LoaderDefinition] | None = None):
        """Build the table from plain loaders or full definitions.

        Args:
            entries: Service name to loader callable or ``LoaderDefinition``

        Raises:
            LoaderTableError: If a name is empty or a loader is not callable
        """
        definitions: dict[str, LoaderDefinition] = {}
        for name, entry in (entries or {}).items():
            if not isinstance(name, str) or not name:
                raise LoaderTableError(f"Service name must be a non-empty string, got: {name!r}")
            definitions[name] = self._to_definition(name, entry)

        self._definitions = MappingProxyType(definitions)

    @staticmethod
    def _to_definition(name: str, entry: Loader | LoaderDefinition) -> LoaderDefinition:
        if isinstance(entry, LoaderDefinition):
            return entry
        try:
            return LoaderDefinition(loader=entry)
        except ValidationError as e:
            raise LoaderTableError(f"Loader for service '{name}' must be callable, got: {entry!r}") from e

    def __getitem__(self, name: str) -> LoaderDefinition:
        return self._definitions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f"LoaderTable({list(self._definitions)})"

    def names(self, category: ServiceCategory | None = None) -> list[str]:
        """Get registered service names, optionally restricted to one category."""
        if category is None:
            return list(self._definitions)
        return [name for name, definition in self._definitions.items() if definition.category == category]

    def critical_names(self) -> list[str]:
        """Get the names of services flagged as critical."""
        return [name for name, definition in self._definitions.items() if definition.critical]


def import_loader(path: str) -> Loader:
    """Create a loader that imports its factory on first invocation.

    The module named by ``path`` is not imported until the returned loader
    runs, so services that are never requested never load their code.

    Args:
        path: Import path in ``"package.module:attribute"`` form. The attribute
              may be dotted (``"module:Class.create"``).

    Returns:
        A zero-argument loader calling the imported attribute

    Raises:
        LoaderTableError: If the path is malformed
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise LoaderTableError(f"Invalid loader path '{path}', expected 'module:attribute'")

    def load() -> Any:
        logger.debug(f"Importing loader {path}")
        try:
            target: Any = importlib.import_module(module_name)
            for attr in attr_path.split("."):
                target = getattr(target, attr)
        except (ImportError, AttributeError) as e:
            raise LoaderTableError(f"Cannot resolve loader path '{path}': {e}") from e
        if not callable(target):
            raise LoaderTableError(f"Loader path '{path}' does not point to a callable")
        return target()

    return load


def build_loader_table(
    paths: Mapping[str, str],
    critical: Iterable[str] = (),
    category: ServiceCategory = ServiceCategory.DOMAIN,
) -> LoaderTable:
    """Build a loader table from import paths, as supplied by settings.

    Args:
        paths: Service name to ``"module:attribute"`` import path
        critical: Names of services to flag as critical
        category: Category assigned to every entry

    Returns:
        The immutable loader table

    Raises:
        LoaderTableError: If a path is malformed or a critical name is not in ``paths``
    """
    critical = set(critical)
    unknown = critical - set(paths)
    if unknown:
        raise LoaderTableError(f"Critical services without a loader: {', '.join(sorted(unknown))}")

    return LoaderTable(
        {
            name: LoaderDefinition(
                loader=import_loader(path),
                category=category,
                critical=name in critical,
                description=path,
            )
            for name, path in paths.items()
        }
    )
