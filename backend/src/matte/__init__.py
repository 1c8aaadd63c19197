"""Matte - declarative entities with access control and lifecycle rules."""

from matte.errors import (
    AccessDenied,
    CompilationError,
    DuplicateEntityError,
    LifecycleConflict,
    MatteError,
    RecordNotFound,
    RecordValidationError,
)
from matte.framework import FrameworkConfig, Matte
from matte.schema import (
    AccessLevel,
    EntityDefinition,
    EntityRegistry,
    Lifecycle,
    boolean,
    date,
    entity,
    enum,
    file,
    group,
    hgroup,
    number,
    owned_entity,
    private_entity,
    richtext,
    shared_entity,
    singleton_entity,
    string,
)

__all__ = [
    "Matte",
    "FrameworkConfig",
    "AccessLevel",
    "Lifecycle",
    "EntityDefinition",
    "EntityRegistry",
    "entity",
    "owned_entity",
    "private_entity",
    "shared_entity",
    "singleton_entity",
    "string",
    "number",
    "date",
    "enum",
    "richtext",
    "file",
    "boolean",
    "group",
    "hgroup",
    "MatteError",
    "CompilationError",
    "DuplicateEntityError",
    "AccessDenied",
    "RecordNotFound",
    "RecordValidationError",
    "LifecycleConflict",
]
