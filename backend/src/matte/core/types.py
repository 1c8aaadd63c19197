"""Built-in field types: storage column type and default UI components."""

from dataclasses import dataclass

# Arrays of any element type are stored as one JSON text column
ARRAY_STORAGE_TYPE = "TEXT"


@dataclass(frozen=True)
class UIDefaults:
    """Renderer components used when a field sets no UI hints of its own."""

    display_component: str
    edit_component: str
    grid_component: str
    alignment: str = "left"
    format: str | None = None


@dataclass(frozen=True)
class FieldType:
    name: str
    storage_type: str
    ui: UIDefaults


def _builtin(
    name: str,
    storage_type: str,
    display: str,
    edit: str,
    grid: str | None = None,
    **ui_options: str,
) -> FieldType:
    return FieldType(
        name=name,
        storage_type=storage_type,
        ui=UIDefaults(
            display_component=display,
            edit_component=edit,
            grid_component=grid or display,
            **ui_options,
        ),
    )


FIELD_TYPES: dict[str, FieldType] = {
    t.name: t
    for t in (
        _builtin("string", "TEXT", "Text", "TextInput"),
        _builtin("number", "REAL", "Text", "NumberInput", alignment="right"),  # 5.0 reads back as 5
        _builtin("date", "TEXT", "Text", "DatePicker", format="MMM D, YYYY"),  # ISO text
        _builtin("enum", "TEXT", "Badge", "Select"),
        _builtin("richtext", "TEXT", "RichText", "RichTextEditor", grid="Text"),
        _builtin("file", "TEXT", "FileLink", "FileInput"),  # URL or path
        _builtin("boolean", "INTEGER", "Badge", "Checkbox", alignment="center"),  # 0/1
    )
}


def get_field_type(type_name: str) -> FieldType:
    """Look up a built-in field type.

    Raises:
        KeyError: If the type is not built in
    """
    try:
        return FIELD_TYPES[type_name]
    except KeyError:
        raise KeyError(f"Unknown field type '{type_name}'") from None


def get_storage_type(type_name: str, is_array: bool = False) -> str:
    """SQLite column type for a field."""
    if is_array:
        return ARRAY_STORAGE_TYPE
    return get_field_type(type_name).storage_type
