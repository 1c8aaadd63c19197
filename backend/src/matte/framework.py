"""Framework facade: wires the registry, storage and auth together."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from matte.auth.sessions import AuthManager
from matte.errors import CompilationError, StorageSchemaError
from matte.metadata.loader import MetadataLoader
from matte.persistence.adapter import StorageAdapter
from matte.persistence.config import DatabaseConfig, create_adapter
from matte.records.repository import EntityRepository
from matte.schema.entity import EntityBuilder
from matte.schema.registry import EntityRegistry
from matte.schema.types import EntityDefinition

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes"}


@dataclass
class FrameworkConfig:
    """Application configuration.

    Attributes:
        database: Database connection settings
        metadata_path: Directory holding ``entities/*.yaml``
        allow_redefinition: Let a later registration replace an entity
    """

    database: DatabaseConfig = field(default_factory=DatabaseConfig.memory)
    metadata_path: Path | None = None
    allow_redefinition: bool = False

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> FrameworkConfig:
        """Create config from environment variables.

        Reads MATTE_METADATA_PATH (default ``<base_path>/metadata``),
        MATTE_ALLOW_REDEFINITION and the database variables.
        """
        metadata_env = os.environ.get("MATTE_METADATA_PATH")
        if metadata_env:
            metadata_path = Path(metadata_env)
        else:
            metadata_path = (base_path or Path.cwd()) / "metadata"

        return cls(
            database=DatabaseConfig.from_env(base_path),
            metadata_path=metadata_path,
            allow_redefinition=(
                os.environ.get("MATTE_ALLOW_REDEFINITION", "").lower() in _TRUTHY
            ),
        )


class Matte:
    """A running application: compiled entities, storage and sessions.

    Example::

        app = Matte()
        app.register(private_entity("Note", [string("title").required()]))
        app.start()
        notes = app.repository("Note")
    """

    def __init__(
        self,
        config: FrameworkConfig | None = None,
        adapter: StorageAdapter | None = None,
        auth: AuthManager | None = None,
    ):
        self.config = config or FrameworkConfig()
        self.registry = EntityRegistry(allow_redefinition=self.config.allow_redefinition)
        self.adapter = adapter or create_adapter(self.config.database)
        self.auth = auth or AuthManager()
        self.started = False
        self._repositories: dict[str, EntityRepository] = {}

    def register(self, *entities: EntityBuilder | EntityDefinition) -> list[EntityDefinition]:
        """Compile (if needed) and register entities.

        After :meth:`start`, each entity's table is checked before the entity
        is registered, then created or extended with new columns.

        Raises:
            CompilationError: An entity breaks an invariant, clashes with one
                already registered, or no longer fits its existing table
        """
        registered = []
        for item in entities:
            definition = item.build() if isinstance(item, EntityBuilder) else item
            if self.started:
                self.registry.check(definition)
                self._check_storage(definition)
            self.registry.register(definition)
            # A redefinition needs a fresh repository
            self._repositories.pop(definition.name, None)
            if self.started:
                self.adapter.initialize_entity(definition)
            registered.append(definition)
        return registered

    def load_metadata(self, metadata_path: Path | None = None) -> list[EntityDefinition]:
        """Register every entity described in a metadata directory."""
        path = metadata_path or self.config.metadata_path
        if path is None:
            return []
        loaded = MetadataLoader(path).load_all()
        return self.register(*loaded)

    def start(self) -> None:
        """Connect to storage and create tables for every registered entity."""
        if self.started:
            return
        self.adapter.connect()
        for definition in self.registry.all():
            self.adapter.initialize_entity(definition)
        self.started = True
        logger.info("Matte started with %d entities", len(self.registry))

    def repository(self, name: str) -> EntityRepository:
        """Get the repository for a registered entity.

        Raises:
            KeyError: If no entity with that name is registered
            RuntimeError: If the framework has not been started
        """
        if not self.started:
            raise RuntimeError("Matte is not started; call start() first")
        definition = self.registry.get(name)
        if definition is None:
            raise KeyError(f"Unknown entity '{name}'")
        repo = self._repositories.get(name)
        if repo is None or repo.entity is not definition:
            repo = EntityRepository(definition, self.adapter)
            self._repositories[name] = repo
        return repo

    def close(self) -> None:
        """Close the storage connection."""
        self.adapter.close()
        self.started = False
        self._repositories.clear()

    def _check_storage(self, definition: EntityDefinition) -> None:
        try:
            self.adapter.check_compatible(definition)
        except StorageSchemaError as exc:
            raise CompilationError(
                str(exc),
                code="INCOMPATIBLE_TABLE",
                entity=definition.name,
                fields=exc.columns,
            ) from exc
