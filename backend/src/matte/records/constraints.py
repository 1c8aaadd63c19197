"""Field-level constraint checks for record data.

Builders only store constraints; this module enforces them when records are
written:
- required: Field must have a non-empty value
- type: Value must match the field type (string, number, boolean, ...)
- minLength/maxLength: String length bounds
- min/max: Numeric bounds
- enum values: Value must be one of the declared values
- allowedTypes: File names must match an allowed extension or MIME type
"""

import mimetypes
from datetime import date, datetime
from typing import Any

from matte.errors import FieldIssue
from matte.schema.fields import Field
from matte.schema.types import EntityDefinition


def is_empty(value: Any) -> bool:
    """Check if a value counts as missing."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, list) and len(value) == 0:
        return True
    return False


def check_record(
    entity: EntityDefinition,
    data: dict[str, Any],
    partial: bool = False,
) -> list[FieldIssue]:
    """Check record data against the entity's field constraints.

    Args:
        entity: The compiled entity
        data: Field name -> value (defaults already applied)
        partial: Only check the fields present in ``data`` (updates)

    Returns:
        All issues found, in field order. Empty list means valid.
    """
    issues: list[FieldIssue] = []
    for field in entity.fields:
        if partial and field.name not in data:
            continue
        issues.extend(check_value(field, data.get(field.name)))
    return issues


def check_value(field: Field, value: Any) -> list[FieldIssue]:
    """Check a single value against a field definition."""
    if is_empty(value):
        if field.is_required:
            return [
                FieldIssue(
                    message=f"{field.display_name} is required",
                    code="REQUIRED",
                    field=field.name,
                )
            ]
        return []

    if field.is_array:
        if not isinstance(value, (list, tuple)):
            return [
                FieldIssue(
                    message=f"{field.display_name} must be a list",
                    code="INVALID_ARRAY",
                    field=field.name,
                )
            ]
        issues: list[FieldIssue] = []
        for item in value:
            issues.extend(_check_scalar(field, item))
        return issues

    return _check_scalar(field, value)


def _check_scalar(field: Field, value: Any) -> list[FieldIssue]:
    type_error = _check_type(field, value)
    if type_error:
        return [
            FieldIssue(
                message=type_error,
                code=f"INVALID_{field.type.upper()}",
                field=field.name,
            )
        ]

    rules = field.constraints
    label = field.display_name
    issues: list[FieldIssue] = []

    if field.type in ("string", "richtext"):
        if rules.min_length is not None and len(value) < rules.min_length:
            issues.append(FieldIssue(
                message=f"{label} must be at least {rules.min_length} characters",
                code="MIN_LENGTH",
                field=field.name,
            ))
        if rules.max_length is not None and len(value) > rules.max_length:
            issues.append(FieldIssue(
                message=f"{label} must be at most {rules.max_length} characters",
                code="MAX_LENGTH",
                field=field.name,
            ))

    elif field.type == "number":
        if rules.min is not None and value < rules.min:
            issues.append(FieldIssue(
                message=f"{label} must be at least {rules.min}",
                code="MIN_VALUE",
                field=field.name,
            ))
        if rules.max is not None and value > rules.max:
            issues.append(FieldIssue(
                message=f"{label} must be at most {rules.max}",
                code="MAX_VALUE",
                field=field.name,
            ))

    elif field.type == "enum":
        allowed = getattr(field, "values", ())
        if value not in allowed:
            issues.append(FieldIssue(
                message=f"{label} must be one of: {', '.join(allowed)}",
                code="INVALID_ENUM",
                field=field.name,
            ))

    elif field.type == "file" and rules.allowed_types:
        if not _file_type_allowed(value, rules.allowed_types):
            issues.append(FieldIssue(
                message=f"{label} must be one of the allowed types: {', '.join(rules.allowed_types)}",
                code="FILE_TYPE",
                field=field.name,
            ))

    return issues


def _check_type(field: Field, value: Any) -> str | None:
    """Return an error message if the value has the wrong type."""
    label = field.display_name
    if field.type in ("string", "richtext", "enum", "file"):
        if not isinstance(value, str):
            return f"{label} must be text"
    elif field.type == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"{label} must be a number"
    elif field.type == "boolean":
        if not isinstance(value, bool):
            return f"{label} must be true or false"
    elif field.type == "date":
        if isinstance(value, (date, datetime)):
            return None
        if not isinstance(value, str):
            return f"{label} must be a date"
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return f"{label} must be an ISO date"
    return None


def _file_type_allowed(filename: str, allowed_types: tuple[str, ...]) -> bool:
    """Match a file name against extensions (".pdf") and MIME types ("image/*")."""
    lowered = filename.lower()
    mime_type, _ = mimetypes.guess_type(lowered)
    for allowed in allowed_types:
        allowed = allowed.lower()
        if allowed.startswith("."):
            if lowered.endswith(allowed):
                return True
        elif allowed.endswith("/*"):
            if mime_type and mime_type.startswith(allowed[:-1]):
                return True
        elif mime_type == allowed:
            return True
    return False
