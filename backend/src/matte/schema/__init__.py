"""Entity schema DSL: field builders, groups, the compiler and registry."""

from matte.schema.entity import (
    EntityBuilder,
    compile_entity,
    entity,
    owned_entity,
    private_entity,
    shared_entity,
    singleton_entity,
)
from matte.schema.fields import (
    BooleanField,
    Constraints,
    DateField,
    EnumField,
    Field,
    FileField,
    NumberField,
    RichTextField,
    StringField,
    UIMetadata,
    boolean,
    date,
    enum,
    file,
    number,
    richtext,
    string,
)
from matte.schema.groups import FieldGroup, GroupLayout, flatten, group, hgroup
from matte.schema.registry import EntityRegistry
from matte.schema.types import AccessLevel, EntityDefinition, Lifecycle
from matte.schema.validation import access_rule_violation, validate

__all__ = [
    # Fields
    "Field",
    "StringField",
    "NumberField",
    "DateField",
    "EnumField",
    "RichTextField",
    "FileField",
    "BooleanField",
    "Constraints",
    "UIMetadata",
    "string",
    "number",
    "date",
    "enum",
    "richtext",
    "file",
    "boolean",
    # Groups
    "FieldGroup",
    "GroupLayout",
    "group",
    "hgroup",
    "flatten",
    # Entities
    "AccessLevel",
    "Lifecycle",
    "EntityDefinition",
    "EntityBuilder",
    "EntityRegistry",
    "compile_entity",
    "entity",
    "owned_entity",
    "private_entity",
    "shared_entity",
    "singleton_entity",
    "validate",
    "access_rule_violation",
]
