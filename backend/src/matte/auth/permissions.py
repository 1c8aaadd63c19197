"""Access-control decisions for entity records.

The runtime counterpart of ``matte.schema.validation``: given a compiled
entity and a caller, decide whether an operation is allowed.
"""

from __future__ import annotations

from enum import Enum

from matte.auth.types import CallerIdentity
from matte.schema.types import AccessLevel, EntityDefinition


class Operation(Enum):
    """The kind of data access being authorized."""

    READ_LIST = "read-list"
    READ_ONE = "read-one"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def is_read(self) -> bool:
        return self in (Operation.READ_LIST, Operation.READ_ONE)


def required_level(entity: EntityDefinition, operation: Operation) -> AccessLevel:
    """Return the access level governing an operation on an entity."""
    return entity.read_level if operation.is_read else entity.write_level


def requires_authentication(entity: EntityDefinition, operation: Operation) -> bool:
    """Whether anonymous callers are refused outright for this operation."""
    return required_level(entity, operation) is not AccessLevel.UNAUTHENTICATED


def authorize(
    entity: EntityDefinition,
    operation: Operation,
    caller: CallerIdentity,
    record_owner_id: str | None = None,
) -> bool:
    """Decide whether the caller may perform the operation.

    Args:
        entity: The compiled entity definition
        operation: The operation being attempted
        caller: The caller identity from the auth provider
        record_owner_id: Stored owner of the record, for per-record operations

    Returns:
        True if the operation is allowed.

    Owner-level rules:
        - read-list is allowed for any authenticated caller; the result must
          be narrowed with :func:`list_filter`
        - create is allowed for any authenticated caller, who becomes the owner
        - read-one, update and delete require the caller to own the record
    """
    level = required_level(entity, operation)

    if level is AccessLevel.UNAUTHENTICATED:
        return True

    if not caller.authenticated:
        return False

    if level is AccessLevel.AUTHENTICATED:
        return True

    # Owner level
    if operation in (Operation.READ_LIST, Operation.CREATE):
        return True
    return record_owner_id is not None and caller.username == record_owner_id


def list_filter(entity: EntityDefinition, caller: CallerIdentity) -> dict[str, str] | None:
    """Get the owner filter to apply to list queries.

    Returns:
        ``{"ownerId": <username>}`` for owner-level reads, None otherwise.
    """
    if entity.read_level is not AccessLevel.OWNER:
        return None
    return {"ownerId": caller.username or ""}
