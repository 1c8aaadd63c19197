"""Entity schema compiler.

Usage:
    from matte.schema import entity, string, number, group

    Task = (
        entity("Task", [
            string("title").required(),
            group("Details", [number("estimate"), string("notes")]),
        ])
        .read_level("authenticated")
        .write_level("owner")
        .build()
    )

The builder is immutable like the fields: each setter returns a new builder,
so a preset can be specialised without affecting other uses of it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import TYPE_CHECKING

from matte.errors import CompilationError
from matte.schema.fields import Field
from matte.schema.groups import FieldGroup, SchemaNode, flatten, iter_nodes
from matte.schema.types import AccessLevel, EntityDefinition, Lifecycle
from matte.schema.validation import check_entity_name, check_fields, validate

if TYPE_CHECKING:
    from matte.schema.registry import EntityRegistry

logger = logging.getLogger(__name__)


def _coerce(enum_type: type, value: object, setting: str, entity_name: str):
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise CompilationError(
            f"Unknown {setting} {value!r} for {entity_name}. Allowed: {allowed}",
            code="UNKNOWN_SETTING",
            entity=entity_name,
            fields=(setting,),
        ) from None


@dataclass(frozen=True)
class EntityBuilder:
    """Fluent builder for an entity definition.

    Access levels and lifecycle may be set any number of times; only
    :meth:`build` validates.
    """

    name: str
    nodes: tuple[SchemaNode, ...]
    owned: bool = False
    read: AccessLevel | str = AccessLevel.UNAUTHENTICATED
    write: AccessLevel | str = AccessLevel.UNAUTHENTICATED
    mode: Lifecycle | str = Lifecycle.DEFAULT

    def read_level(self, level: AccessLevel | str) -> EntityBuilder:
        return replace(self, read=level)

    def write_level(self, level: AccessLevel | str) -> EntityBuilder:
        return replace(self, write=level)

    def lifecycle(self, mode: Lifecycle | str) -> EntityBuilder:
        return replace(self, mode=mode)

    def build(self, registry: EntityRegistry | None = None) -> EntityDefinition:
        """Compile, validate and (optionally) register the entity.

        Args:
            registry: Registry to add the compiled definition to

        Returns:
            The frozen EntityDefinition

        Raises:
            CompilationError: If the declaration violates any invariant
        """
        definition = compile_entity(
            self.name,
            self.nodes,
            owned=self.owned,
            read_level=_coerce(AccessLevel, self.read, "readLevel", self.name),
            write_level=_coerce(AccessLevel, self.write, "writeLevel", self.name),
            lifecycle=_coerce(Lifecycle, self.mode, "lifecycle", self.name),
        )
        if registry is not None:
            registry.register(definition)
        return definition


def compile_entity(
    name: str,
    nodes: Sequence[SchemaNode],
    owned: bool = False,
    read_level: AccessLevel = AccessLevel.UNAUTHENTICATED,
    write_level: AccessLevel = AccessLevel.UNAUTHENTICATED,
    lifecycle: Lifecycle = Lifecycle.DEFAULT,
) -> EntityDefinition:
    """Flatten a declaration into a validated EntityDefinition."""
    check_entity_name(name)

    for node in iter_nodes(nodes):
        if not isinstance(node, (Field, FieldGroup)):
            raise CompilationError(
                f"Unsupported schema node {node!r} in {name}: expected a field or group",
                code="INVALID_NODE",
                entity=name,
            )

    fields = flatten(nodes)
    check_fields(name, fields)

    definition = EntityDefinition(
        name=name,
        schema=MappingProxyType({f.name: f for f in fields}),
        field_order=tuple(f.name for f in fields),
        owned=owned,
        read_level=read_level,
        write_level=write_level,
        lifecycle=lifecycle,
        groups=tuple(node for node in iter_nodes(nodes) if isinstance(node, FieldGroup)),
        nodes=tuple(nodes),
    )
    validate(definition)

    logger.debug(
        "Compiled entity %s: %d fields, read=%s write=%s lifecycle=%s",
        name,
        len(fields),
        read_level.value,
        write_level.value,
        lifecycle.value,
    )
    return definition


def entity(name: str, fields: Sequence[SchemaNode]) -> EntityBuilder:
    """Public entity: anyone may read and write."""
    return EntityBuilder(name, tuple(fields))


def owned_entity(name: str, fields: Sequence[SchemaNode]) -> EntityBuilder:
    """Like :func:`entity`, but every record carries its creator."""
    return EntityBuilder(name, tuple(fields), owned=True)


def private_entity(name: str, fields: Sequence[SchemaNode]) -> EntityBuilder:
    """Owned entity that only the owner may read and write."""
    return (
        owned_entity(name, fields)
        .read_level(AccessLevel.OWNER)
        .write_level(AccessLevel.OWNER)
    )


def shared_entity(name: str, fields: Sequence[SchemaNode]) -> EntityBuilder:
    """Anyone may read; signed-in users may write."""
    return (
        entity(name, fields)
        .read_level(AccessLevel.UNAUTHENTICATED)
        .write_level(AccessLevel.AUTHENTICATED)
    )


def singleton_entity(name: str, fields: Sequence[SchemaNode]) -> EntityBuilder:
    """A single shared record, readable and writable by signed-in users."""
    return (
        entity(name, fields)
        .lifecycle(Lifecycle.SINGLETON)
        .read_level(AccessLevel.AUTHENTICATED)
        .write_level(AccessLevel.AUTHENTICATED)
    )


PRESETS = {
    "entity": entity,
    "owned": owned_entity,
    "private": private_entity,
    "shared": shared_entity,
    "singleton": singleton_entity,
}
