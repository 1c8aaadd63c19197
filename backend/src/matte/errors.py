"""Exception hierarchy for Matte.

Compilation errors surface at application startup; the remaining errors are
raised per request by the record repository and mapped to HTTP status codes
by the API layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class MatteError(Exception):
    """Base exception for all Matte errors."""

    pass


class CompilationError(MatteError):
    """Raised when an entity definition violates a schema or access invariant.

    Attributes:
        message: Human-readable description of the violation
        code: Machine-readable error code (e.g., "INVALID_ACCESS_LEVELS")
        entity: Name of the entity being compiled
        fields: Field names or levels involved in the violation
    """

    def __init__(
        self,
        message: str,
        code: str,
        entity: str | None = None,
        fields: tuple[str, ...] = (),
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.entity = entity
        self.fields = tuple(fields)


class DuplicateEntityError(CompilationError):
    """Raised when a registry already holds an entity with the same name or table."""

    pass


class MetadataError(MatteError):
    """Raised when a YAML entity file cannot be turned into an entity."""

    pass


class AuthError(MatteError):
    """Raised for invalid user registration requests."""

    pass


class AccessDenied(MatteError):
    """The caller is not allowed to perform the operation."""

    def __init__(self, message: str, authenticated: bool = False):
        super().__init__(message)
        self.message = message
        self.authenticated = authenticated


class RecordNotFound(MatteError):
    """The record does not exist, or is hidden from the caller."""

    pass


class LifecycleConflict(MatteError):
    """The entity's lifecycle does not allow another instance right now."""

    pass


class StorageConflict(MatteError):
    """A storage-level uniqueness constraint rejected a write."""

    pass


class StorageSchemaError(MatteError):
    """An existing table cannot hold records of the entity as now defined.

    Attributes:
        columns: Table columns involved, if any
    """

    def __init__(self, message: str, columns: tuple[str, ...] = ()):
        super().__init__(message)
        self.message = message
        self.columns = tuple(columns)


@dataclass(frozen=True)
class FieldIssue:
    """A single field-level problem found while validating record data.

    Attributes:
        message: Human-readable message
        code: Machine-readable code (e.g., "REQUIRED", "MAX_LENGTH")
        field: Field name the issue relates to
    """

    message: str
    code: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "field": self.field,
        }


class RecordValidationError(MatteError):
    """Record data failed required-field or constraint checks."""

    def __init__(self, issues: list[FieldIssue]):
        self.issues = list(issues)
        summary = "; ".join(issue.message for issue in self.issues)
        super().__init__(summary or "Record validation failed")
