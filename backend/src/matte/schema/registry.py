"""Entity registry: the name -> definition context shared by storage and API."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from matte.errors import CompilationError, DuplicateEntityError
from matte.schema.types import EntityDefinition

logger = logging.getLogger(__name__)

# Path segments under /api taken by the auth and metadata routes
RESERVED_ROUTES = frozenset({"auth", "metadata"})


class EntityRegistry:
    """Holds compiled entity definitions for one application.

    Created once at startup and passed to whatever needs entity lookup.
    Registering a name twice is an error unless ``allow_redefinition`` is
    set, in which case the last definition wins (useful for interactive
    sessions and tests that redefine entities).

    Example:
        registry = EntityRegistry()
        entity("Task", [string("title")]).build(registry)
        registry.get("Task")
    """

    def __init__(self, allow_redefinition: bool = False):
        self.allow_redefinition = allow_redefinition
        self._entities: dict[str, EntityDefinition] = {}

    def register(self, definition: EntityDefinition) -> None:
        """Add a definition.

        Raises:
            CompilationError: See :meth:`check`
        """
        self.check(definition)
        if definition.name in self._entities:
            logger.warning("Redefining entity %s", definition.name)
        self._entities[definition.name] = definition

    def check(self, definition: EntityDefinition) -> None:
        """Raise if the definition could not be registered; changes nothing.

        Raises:
            DuplicateEntityError: If the name is taken and redefinition is not
                allowed, or another entity already uses the same table name.
            CompilationError: If the route is one the API reserves.
        """
        name = definition.name
        if name in self._entities and not self.allow_redefinition:
            raise DuplicateEntityError(
                f"Entity '{name}' is already registered",
                code="DUPLICATE_ENTITY",
                entity=name,
            )

        if definition.route_name in RESERVED_ROUTES:
            raise CompilationError(
                f"Entity '{name}' would be served at /api/{definition.route_name}, "
                "which is reserved",
                code="RESERVED_ROUTE",
                entity=name,
            )

        for other in self._entities.values():
            if other.name != name and other.table_name == definition.table_name:
                raise DuplicateEntityError(
                    f"Entities '{other.name}' and '{name}' both map to table "
                    f"'{definition.table_name}'",
                    code="TABLE_COLLISION",
                    entity=name,
                )

    def get(self, name: str) -> EntityDefinition | None:
        """Get a definition by name."""
        return self._entities.get(name)

    def get_by_route(self, route_name: str) -> EntityDefinition | None:
        """Get a definition by its kebab-case API path segment."""
        for definition in self._entities.values():
            if definition.route_name == route_name:
                return definition
        return None

    def list_entities(self) -> list[str]:
        """List all entity names in registration order."""
        return list(self._entities.keys())

    def all(self) -> list[EntityDefinition]:
        return list(self._entities.values())

    def clear(self) -> None:
        """Remove all definitions."""
        self._entities.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[EntityDefinition]:
        return iter(list(self._entities.values()))
