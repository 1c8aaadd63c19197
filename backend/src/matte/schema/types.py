"""Compiled entity definition and its access/lifecycle enums."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from matte.core.naming import to_kebab_case, to_snake_case
from matte.schema.fields import Field
from matte.schema.groups import FieldGroup, SchemaNode


class AccessLevel(Enum):
    """Who may read or write records, from most to least permissive."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    OWNER = "owner"


class Lifecycle(Enum):
    """How many records of an entity may exist.

    DEFAULT: Any number
    INSTANCE_PER_USER: At most one per owner
    SINGLETON: At most one overall
    """

    DEFAULT = "default"
    INSTANCE_PER_USER = "instancePerUser"
    SINGLETON = "singleton"


# Storage columns every table carries, keyed by their record key
SYSTEM_COLUMNS: dict[str, str] = {
    "id": "id",
    "ownerId": "owner_id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


@dataclass(frozen=True)
class EntityDefinition:
    """A compiled, validated, immutable description of one record type.

    Attributes:
        name: Entity name, unique within a registry
        schema: Field name -> field definition (read-only mapping)
        field_order: Field names in declaration order (depth-first over groups)
        owned: Whether every record must carry a creator identity
        read_level: Minimum identity required to read records
        write_level: Minimum identity required to create/update/delete records
        lifecycle: Cardinality policy for records
        groups: Every field group of the declaration, in encounter order
        nodes: The declaration as given (top-level fields and groups)
    """

    name: str
    schema: Mapping[str, Field] = field(hash=False)
    field_order: tuple[str, ...]
    owned: bool = False
    read_level: AccessLevel = AccessLevel.UNAUTHENTICATED
    write_level: AccessLevel = AccessLevel.UNAUTHENTICATED
    lifecycle: Lifecycle = Lifecycle.DEFAULT
    groups: tuple[FieldGroup, ...] = ()
    nodes: tuple[SchemaNode, ...] = ()

    @property
    def table_name(self) -> str:
        return to_snake_case(self.name)

    @property
    def route_name(self) -> str:
        return to_kebab_case(self.name)

    @property
    def fields(self) -> list[Field]:
        """Field definitions in field order."""
        return [self.schema[name] for name in self.field_order]

    @property
    def columns(self) -> dict[str, str]:
        """Field name -> storage column name, in field order."""
        return {name: to_snake_case(name) for name in self.field_order}

    @property
    def requires_owner(self) -> bool:
        """Whether records must be created with an owner identity."""
        return (
            self.owned
            or self.read_level is AccessLevel.OWNER
            or self.write_level is AccessLevel.OWNER
            or self.lifecycle is Lifecycle.INSTANCE_PER_USER
        )

    def to_dict(self) -> dict[str, Any]:
        """Describe the entity for the UI renderer."""
        return {
            "name": self.name,
            "tableName": self.table_name,
            "route": self.route_name,
            "owned": self.owned,
            "readLevel": self.read_level.value,
            "writeLevel": self.write_level.value,
            "lifecycle": self.lifecycle.value,
            "fieldOrder": list(self.field_order),
            "fields": {name: self.schema[name].to_dict() for name in self.field_order},
            "layout": [
                node.to_dict() if isinstance(node, FieldGroup) else {"field": node.name}
                for node in self.nodes
            ],
        }
