"""Validation of compiled entity definitions.

Access/lifecycle rules are evaluated once over every
``(read_level, write_level, lifecycle)`` combination to build
``DECISION_TABLE``; validation is then a lookup, so no combination can slip
through a missed branch. Rules are ordered and the first failure wins.

Structural rules (field names, storage columns) are checked by
:func:`check_fields` before the schema map is assembled, because duplicate
names would otherwise be lost in the mapping.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from matte.core.naming import is_identifier, to_snake_case
from matte.errors import CompilationError
from matte.schema.fields import EnumField, Field
from matte.schema.types import SYSTEM_COLUMNS, AccessLevel, EntityDefinition, Lifecycle

# Ordinal per access level: lower = more permissive
PERMISSIVENESS: dict[AccessLevel, int] = {
    AccessLevel.UNAUTHENTICATED: 0,
    AccessLevel.AUTHENTICATED: 1,
    AccessLevel.OWNER: 2,
}


@dataclass(frozen=True)
class AccessRule:
    """One access/lifecycle invariant.

    Attributes:
        code: Machine-readable error code
        violated: Predicate over (read_level, write_level, lifecycle)
        message: Message template; formatted with entity, read, write, lifecycle
    """

    code: str
    violated: Callable[[AccessLevel, AccessLevel, Lifecycle], bool]
    message: str


ACCESS_RULES: tuple[AccessRule, ...] = (
    AccessRule(
        code="INVALID_ACCESS_LEVELS",
        violated=lambda read, write, _: PERMISSIVENESS[write] < PERMISSIVENESS[read],
        message=(
            "Invalid access levels for {entity}: writeLevel ({write}) must not be "
            "more permissive than readLevel ({read})"
        ),
    ),
    AccessRule(
        code="INSTANCE_PER_USER_REQUIRES_IDENTITY",
        violated=lambda read, _, lifecycle: (
            lifecycle is Lifecycle.INSTANCE_PER_USER and read is AccessLevel.UNAUTHENTICATED
        ),
        message=(
            "Entity {entity} with lifecycle '{lifecycle}' cannot have "
            "readLevel '{read}'"
        ),
    ),
    AccessRule(
        code="SINGLETON_OWNER_SCOPED",
        violated=lambda read, write, lifecycle: (
            lifecycle is Lifecycle.SINGLETON
            and (read is AccessLevel.OWNER or write is AccessLevel.OWNER)
        ),
        message=(
            "Entity {entity} with lifecycle '{lifecycle}' cannot have readLevel "
            "or writeLevel set to 'owner' (readLevel={read}, writeLevel={write})"
        ),
    ),
)


def _first_violation(
    read: AccessLevel, write: AccessLevel, lifecycle: Lifecycle
) -> AccessRule | None:
    for rule in ACCESS_RULES:
        if rule.violated(read, write, lifecycle):
            return rule
    return None


# Every combination -> the first rule it violates, or None when valid
DECISION_TABLE: dict[tuple[AccessLevel, AccessLevel, Lifecycle], AccessRule | None] = {
    combo: _first_violation(*combo)
    for combo in itertools.product(AccessLevel, AccessLevel, Lifecycle)
}


def access_rule_violation(
    read: AccessLevel, write: AccessLevel, lifecycle: Lifecycle
) -> AccessRule | None:
    """Return the first access rule violated by a combination, or None."""
    return DECISION_TABLE[(read, write, lifecycle)]


def valid_combinations() -> list[tuple[AccessLevel, AccessLevel, Lifecycle]]:
    """All (read_level, write_level, lifecycle) combinations that pass validation."""
    return [combo for combo, rule in DECISION_TABLE.items() if rule is None]


def check_entity_name(name: str) -> None:
    """Reject entity names that cannot be turned into a table name."""
    if not isinstance(name, str) or not is_identifier(name):
        raise CompilationError(
            f"Invalid entity name {name!r}: must start with a letter or underscore "
            "and contain only letters, digits and underscores",
            code="INVALID_ENTITY_NAME",
            entity=str(name),
        )


def check_fields(entity_name: str, fields: Sequence[Field]) -> None:
    """Check the flattened field list of an entity.

    Raises:
        CompilationError: On the first invalid, reserved, duplicate or
            colliding field name, or an enum field with no values.
    """
    seen: set[str] = set()
    columns: dict[str, str] = {}
    reserved_columns = {column: key for key, column in SYSTEM_COLUMNS.items()}

    for f in fields:
        if not is_identifier(f.name):
            raise CompilationError(
                f"Invalid field name {f.name!r} in {entity_name}: must start with a "
                "letter or underscore and contain only letters, digits and underscores",
                code="INVALID_FIELD_NAME",
                entity=entity_name,
                fields=(f.name,),
            )

        if f.name in seen:
            raise CompilationError(
                f"Duplicate field '{f.name}' in {entity_name}: "
                "each field may appear only once across all groups",
                code="DUPLICATE_FIELD",
                entity=entity_name,
                fields=(f.name,),
            )
        seen.add(f.name)

        column = to_snake_case(f.name)
        if f.name in SYSTEM_COLUMNS or column in reserved_columns:
            raise CompilationError(
                f"Field '{f.name}' in {entity_name} clashes with the system column "
                f"'{column}'",
                code="RESERVED_FIELD",
                entity=entity_name,
                fields=(f.name,),
            )

        if column in columns:
            raise CompilationError(
                f"Fields '{columns[column]}' and '{f.name}' in {entity_name} both "
                f"map to storage column '{column}'",
                code="COLUMN_COLLISION",
                entity=entity_name,
                fields=(columns[column], f.name),
            )
        columns[column] = f.name

        if isinstance(f, EnumField) and not f.values:
            raise CompilationError(
                f"Enum field '{f.name}' in {entity_name} has no allowed values",
                code="EMPTY_ENUM",
                entity=entity_name,
                fields=(f.name,),
            )


def validate(definition: EntityDefinition) -> None:
    """Validate a compiled entity definition, failing on the first problem.

    Access/lifecycle rules are checked first, in table order; then the
    definition's structure (field order vs. schema, field names).

    Raises:
        CompilationError: If any invariant is violated.
    """
    rule = access_rule_violation(
        definition.read_level, definition.write_level, definition.lifecycle
    )
    if rule is not None:
        raise CompilationError(
            rule.message.format(
                entity=definition.name,
                read=definition.read_level.value,
                write=definition.write_level.value,
                lifecycle=definition.lifecycle.value,
            ),
            code=rule.code,
            entity=definition.name,
            fields=("readLevel", "writeLevel", "lifecycle"),
        )

    check_entity_name(definition.name)

    if len(definition.field_order) != len(definition.schema) or set(
        definition.field_order
    ) != set(definition.schema):
        raise CompilationError(
            f"Field order of {definition.name} does not match its schema",
            code="FIELD_ORDER_MISMATCH",
            entity=definition.name,
        )

    check_fields(definition.name, definition.fields)
