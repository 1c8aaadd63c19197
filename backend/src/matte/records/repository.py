"""Entity repository - the runtime gate for all record access.

Every read and write goes through :class:`EntityRepository`, which applies the
entity's access levels and lifecycle rules before touching storage. Records
are plain dicts keyed by declared field names plus the system keys ``id``,
``ownerId``, ``createdAt`` and ``updatedAt``.
"""

from __future__ import annotations

import logging
from typing import Any

from matte.auth.permissions import (
    Operation,
    authorize,
    list_filter,
    requires_authentication,
)
from matte.auth.types import ANONYMOUS, CallerIdentity
from matte.errors import (
    AccessDenied,
    FieldIssue,
    LifecycleConflict,
    RecordNotFound,
    RecordValidationError,
    StorageConflict,
)
from matte.persistence.adapter import StorageAdapter
from matte.records.constraints import check_record
from matte.schema.types import SYSTEM_COLUMNS, EntityDefinition, Lifecycle

logger = logging.getLogger(__name__)

SINGLETON_ID = "singleton"


class EntityRepository:
    """CRUD access to one entity's records on behalf of a caller."""

    def __init__(self, entity: EntityDefinition, adapter: StorageAdapter):
        self.entity = entity
        self.adapter = adapter
        self._key_to_column = {**SYSTEM_COLUMNS, **entity.columns}
        self._column_to_key = {col: key for key, col in self._key_to_column.items()}

    # -- reads --------------------------------------------------------------

    def find_all(
        self,
        caller: CallerIdentity = ANONYMOUS,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """List records visible to the caller, newest first.

        Args:
            caller: Who is asking
            filters: Equality filters keyed by field name or system key

        Raises:
            AccessDenied: Anonymous caller on an entity that needs a login
            RecordValidationError: A filter names an unknown key
        """
        self._require_login(Operation.READ_LIST, caller)

        criteria = dict(filters or {})
        owner_scope = list_filter(self.entity, caller)
        if owner_scope:
            # The owner scope always wins over a caller-supplied ownerId
            criteria.update(owner_scope)

        rows = self.adapter.find_all(self.entity, self._to_columns(criteria))
        return [self._to_record(row) for row in rows]

    def find_by_id(self, id: str, caller: CallerIdentity = ANONYMOUS) -> dict[str, Any]:
        """Fetch one record.

        Raises:
            AccessDenied: Anonymous caller on an entity that needs a login
            RecordNotFound: No such record, or the caller may not see it
        """
        self._require_login(Operation.READ_ONE, caller)
        row = self.adapter.get(self.entity, id)
        if row is None or not authorize(
            self.entity, Operation.READ_ONE, caller, row.get("owner_id")
        ):
            raise RecordNotFound(f"{self.entity.name} '{id}' not found")
        return self._to_record(row)

    def find_one(self, caller: CallerIdentity = ANONYMOUS) -> dict[str, Any] | None:
        """Fetch the caller's instance of a singleton or instancePerUser entity."""
        if self.entity.lifecycle is Lifecycle.SINGLETON:
            try:
                return self.find_by_id(SINGLETON_ID, caller)
            except RecordNotFound:
                return None
        records = self.find_all(caller, self._owner_criteria(caller))
        return records[0] if records else None

    # -- writes -------------------------------------------------------------

    def create(
        self, data: dict[str, Any], caller: CallerIdentity = ANONYMOUS
    ) -> dict[str, Any]:
        """Create a record owned by the caller.

        Defaults fill in omitted fields, then required and constraint checks
        run. Lifecycle cardinality is checked before the insert and enforced
        again by storage.

        Raises:
            AccessDenied: The caller may not create records of this entity
            RecordValidationError: Missing required values or broken constraints
            LifecycleConflict: The lifecycle allows no further instance
        """
        entity = self.entity
        self._require_login(Operation.CREATE, caller)
        if entity.requires_owner and not caller.authenticated:
            raise AccessDenied(f"{entity.name} records need an owner; sign in first")

        values = self._pick_fields(data)
        for field in entity.fields:
            if values.get(field.name) is None and field.has_default:
                values[field.name] = field.default_value

        issues = check_record(entity, values)
        if issues:
            raise RecordValidationError(issues)

        self._check_cardinality(caller)

        row = self._to_columns(values)
        if caller.authenticated:
            row["owner_id"] = caller.username
        if entity.lifecycle is Lifecycle.SINGLETON:
            row["id"] = SINGLETON_ID

        try:
            stored = self.adapter.insert(entity, row)
        except StorageConflict as exc:
            if entity.lifecycle is Lifecycle.DEFAULT:
                raise
            raise LifecycleConflict(self._conflict_message(caller)) from exc

        logger.info(
            "Created %s %s (owner=%s)", entity.name, stored["id"], stored.get("owner_id")
        )
        return self._to_record(stored)

    def update(
        self,
        id: str,
        data: dict[str, Any],
        caller: CallerIdentity = ANONYMOUS,
    ) -> dict[str, Any]:
        """Update the given fields of a record.

        System keys in ``data`` are ignored: ids, owners and timestamps are
        managed by the framework.

        Raises:
            AccessDenied: The caller may see the record but not change it
            RecordNotFound: No such record, or the caller may not see it
            RecordValidationError: Broken constraints in the new values
        """
        self._require_login(Operation.UPDATE, caller)
        row = self._load_for_write(Operation.UPDATE, id, caller)

        changes = self._pick_fields(data)
        if not changes:
            return self._to_record(row)

        issues = check_record(self.entity, changes, partial=True)
        if issues:
            raise RecordValidationError(issues)

        stored = self.adapter.update(self.entity, id, self._to_columns(changes))
        if stored is None:
            raise RecordNotFound(f"{self.entity.name} '{id}' not found")

        logger.info("Updated %s %s", self.entity.name, id)
        return self._to_record(stored)

    def delete(self, id: str, caller: CallerIdentity = ANONYMOUS) -> None:
        """Delete a record.

        Raises:
            AccessDenied: The caller may see the record but not delete it
            RecordNotFound: No such record, or the caller may not see it
        """
        self._require_login(Operation.DELETE, caller)
        self._load_for_write(Operation.DELETE, id, caller)
        if not self.adapter.delete(self.entity, id):
            raise RecordNotFound(f"{self.entity.name} '{id}' not found")
        logger.info("Deleted %s %s", self.entity.name, id)

    # -- gates --------------------------------------------------------------

    def _require_login(self, operation: Operation, caller: CallerIdentity) -> None:
        """Refuse anonymous callers before any lookup happens."""
        if not caller.authenticated and requires_authentication(self.entity, operation):
            logger.info(
                "Denied anonymous %s on %s", operation.value, self.entity.name
            )
            raise AccessDenied(
                f"Authentication required to {operation.value} {self.entity.name}",
                authenticated=False,
            )

    def _load_for_write(
        self, operation: Operation, id: str, caller: CallerIdentity
    ) -> dict[str, Any]:
        row = self.adapter.get(self.entity, id)
        if row is None:
            raise RecordNotFound(f"{self.entity.name} '{id}' not found")

        owner_id = row.get("owner_id")
        if authorize(self.entity, operation, caller, owner_id):
            return row

        # Only admit the record exists to callers who could already read it
        if authorize(self.entity, Operation.READ_ONE, caller, owner_id):
            logger.info(
                "Denied %s on %s %s for %s",
                operation.value, self.entity.name, id, caller.username,
            )
            raise AccessDenied(
                f"Not allowed to {operation.value} this {self.entity.name}",
                authenticated=caller.authenticated,
            )
        raise RecordNotFound(f"{self.entity.name} '{id}' not found")

    def _check_cardinality(self, caller: CallerIdentity) -> None:
        lifecycle = self.entity.lifecycle
        if lifecycle is Lifecycle.DEFAULT:
            return
        if lifecycle is Lifecycle.SINGLETON:
            existing = self.adapter.count(self.entity)
        else:
            existing = self.adapter.count(self.entity, {"owner_id": caller.username})
        if existing > 0:
            logger.info("Lifecycle conflict on %s", self.entity.name)
            raise LifecycleConflict(self._conflict_message(caller))

    def _conflict_message(self, caller: CallerIdentity) -> str:
        if self.entity.lifecycle is Lifecycle.SINGLETON:
            return f"{self.entity.name} is a singleton and already exists"
        return f"{self.entity.name} already exists for user '{caller.username}'"

    def _owner_criteria(self, caller: CallerIdentity) -> dict[str, Any]:
        return {"ownerId": caller.username} if caller.authenticated else {}

    # -- key translation ----------------------------------------------------

    def _pick_fields(self, data: dict[str, Any]) -> dict[str, Any]:
        """Keep only declared fields; system keys and unknown keys are dropped."""
        return {name: data[name] for name in self.entity.field_order if name in data}

    def _to_columns(self, values: dict[str, Any]) -> dict[str, Any]:
        unknown = [key for key in values if key not in self._key_to_column]
        if unknown:
            raise RecordValidationError([
                FieldIssue(
                    message=f"Unknown field '{key}' on {self.entity.name}",
                    code="UNKNOWN_FIELD",
                    field=key,
                )
                for key in unknown
            ])
        return {self._key_to_column[key]: value for key, value in values.items()}

    def _to_record(self, row: dict[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {"id": row.get("id")}
        for name in self.entity.field_order:
            record[name] = row.get(self.entity.columns[name])
        for key in ("ownerId", "createdAt", "updatedAt"):
            record[key] = row.get(SYSTEM_COLUMNS[key])
        return record
