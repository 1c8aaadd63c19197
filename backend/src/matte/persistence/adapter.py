"""StorageAdapter Protocol - shared interface for all database adapters."""

from typing import Any, Protocol, runtime_checkable

from matte.schema.types import EntityDefinition


@runtime_checkable
class StorageAdapter(Protocol):
    """Interface all storage adapters must implement.

    Adapters work in storage terms: rows are dicts keyed by column name
    (``owner_id``, ``created_at``, snake_case field columns). Translating to
    record keys is the repository's job.
    """

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def check_compatible(self, entity: EntityDefinition) -> None: ...

    def initialize_entity(self, entity: EntityDefinition) -> None: ...

    def insert(self, entity: EntityDefinition, row: dict[str, Any]) -> dict[str, Any]: ...

    def get(self, entity: EntityDefinition, id: str) -> dict[str, Any] | None: ...

    def find_all(
        self,
        entity: EntityDefinition,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]: ...

    def count(
        self,
        entity: EntityDefinition,
        filters: dict[str, Any] | None = None,
    ) -> int: ...

    def update(
        self, entity: EntityDefinition, id: str, row: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    def delete(self, entity: EntityDefinition, id: str) -> bool: ...
