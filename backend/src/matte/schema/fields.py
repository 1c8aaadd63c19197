"""Typed field builders.

Every field is a frozen dataclass. Mutators never change the receiver; they
return a copy carrying forward all prior settings, so a partially configured
field can be shared between several chains:

    title = string("title").max_length(120)
    required_title = title.required()     # title.is_required is still False

Constraint values (min/max, lengths, file limits) are stored here and
enforced at write time by ``matte.records.constraints``.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, ClassVar, TypeVar

from matte.core.naming import to_display_name
from matte.core.types import get_field_type

F = TypeVar("F", bound="Field")

# A prefix/suffix/color can be a fixed string or a function of the value
Formatter = str | Callable[[Any], str]


@dataclass(frozen=True)
class UIMetadata:
    """Display hints for a field. Opaque to the compiler."""

    label: str | None = None
    hide_label: bool = False
    floating_label: bool = False
    width: int | None = None
    align: str | None = None  # "left" | "right" | "center"
    placeholder: str | None = None
    help: str | None = None
    prefix: Formatter | None = None
    suffix: Formatter | None = None
    hidden: bool = False
    read_only: bool = False
    bold: bool = False
    large: bool = False
    color: Formatter | None = None
    style: Mapping[str, Any] | None = field(default=None, hash=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the set hints for the UI renderer.

        Callable formatters cannot cross the wire and are reported as
        ``"dynamic"`` so the client knows to fall back to the raw value.
        """
        values = {
            "label": self.label,
            "hideLabel": self.hide_label,
            "floatingLabel": self.floating_label,
            "width": self.width,
            "align": self.align,
            "placeholder": self.placeholder,
            "help": self.help,
            "prefix": self.prefix,
            "suffix": self.suffix,
            "hidden": self.hidden,
            "readOnly": self.read_only,
            "bold": self.bold,
            "large": self.large,
            "color": self.color,
            "style": dict(self.style) if self.style is not None else None,
        }
        result: dict[str, Any] = {}
        for key, value in values.items():
            if value is None or value is False:
                continue
            result[key] = "dynamic" if callable(value) else value
        return result


@dataclass(frozen=True)
class Constraints:
    """Type-specific constraint values. Unused entries stay None."""

    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    max_size: int | None = None
    allowed_types: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        values = {
            "minLength": self.min_length,
            "maxLength": self.max_length,
            "min": self.min,
            "max": self.max,
            "maxSize": self.max_size,
            "allowedTypes": list(self.allowed_types) if self.allowed_types is not None else None,
        }
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class Field:
    """Base class for all field definitions."""

    type: ClassVar[str] = "string"

    name: str
    is_required: bool = False
    is_array: bool = False
    default_value: Any = None
    constraints: Constraints = field(default_factory=Constraints)
    ui: UIMetadata = field(default_factory=UIMetadata)

    @property
    def has_default(self) -> bool:
        return self.default_value is not None

    @property
    def display_name(self) -> str:
        return self.ui.label or to_display_name(self.name)

    # -- common mutators --------------------------------------------------

    def required(self: F) -> F:
        return replace(self, is_required=True)

    def default(self: F, value: Any) -> F:
        return replace(self, default_value=value)

    def _with_ui(self: F, **changes: Any) -> F:
        return replace(self, ui=replace(self.ui, **changes))

    def _with_constraints(self: F, **changes: Any) -> F:
        return replace(self, constraints=replace(self.constraints, **changes))

    def label(self: F, text: str) -> F:
        return self._with_ui(label=text)

    def hide_label(self: F) -> F:
        return self._with_ui(hide_label=True)

    def floating_label(self: F) -> F:
        return self._with_ui(floating_label=True)

    def width(self: F, value: int) -> F:
        return self._with_ui(width=value)

    def align_left(self: F) -> F:
        return self._with_ui(align="left")

    def align_right(self: F) -> F:
        return self._with_ui(align="right")

    def align_center(self: F) -> F:
        return self._with_ui(align="center")

    def placeholder(self: F, text: str) -> F:
        return self._with_ui(placeholder=text)

    def help(self: F, text: str) -> F:
        return self._with_ui(help=text)

    def prefix(self: F, value: Formatter) -> F:
        return self._with_ui(prefix=value)

    def suffix(self: F, value: Formatter) -> F:
        return self._with_ui(suffix=value)

    def hidden(self: F) -> F:
        return self._with_ui(hidden=True)

    def read_only(self: F) -> F:
        return self._with_ui(read_only=True)

    def bold(self: F) -> F:
        return self._with_ui(bold=True)

    def large(self: F) -> F:
        return self._with_ui(large=True)

    def color(self: F, value: Formatter) -> F:
        return self._with_ui(color=value)

    def style(self: F, css: Mapping[str, Any]) -> F:
        return self._with_ui(style=MappingProxyType(dict(css)))

    # -- serialization ----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Describe the field for the UI renderer and metadata endpoint."""
        field_type = get_field_type(self.type)
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "displayName": self.display_name,
            "required": self.is_required,
            "array": self.is_array,
            "default": _json_safe(self.default_value),
            "constraints": self.constraints.to_dict(),
            "ui": {
                "displayComponent": field_type.ui.display_component,
                "editComponent": field_type.ui.edit_component,
                "gridComponent": field_type.ui.grid_component,
                "alignment": self.ui.align or field_type.ui.alignment,
                "format": field_type.ui.format,
                **self.ui.to_dict(),
            },
        }
        return result


@dataclass(frozen=True)
class StringField(Field):
    type: ClassVar[str] = "string"

    def min_length(self, length: int) -> StringField:
        return self._with_constraints(min_length=length)

    def max_length(self, length: int) -> StringField:
        return self._with_constraints(max_length=length)


@dataclass(frozen=True)
class NumberField(Field):
    type: ClassVar[str] = "number"

    def min(self, value: float) -> NumberField:
        return self._with_constraints(min=value)

    def max(self, value: float) -> NumberField:
        return self._with_constraints(max=value)


@dataclass(frozen=True)
class DateField(Field):
    type: ClassVar[str] = "date"


@dataclass(frozen=True)
class EnumField(Field):
    type: ClassVar[str] = "enum"

    values: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["values"] = list(self.values)
        return result


@dataclass(frozen=True)
class RichTextField(Field):
    type: ClassVar[str] = "richtext"


@dataclass(frozen=True)
class FileField(Field):
    type: ClassVar[str] = "file"

    def max_size(self, size_bytes: int) -> FileField:
        return self._with_constraints(max_size=size_bytes)

    def allowed_types(self, types: Iterable[str]) -> FileField:
        return self._with_constraints(allowed_types=tuple(types))

    def array(self) -> FileField:
        return replace(self, is_array=True)


@dataclass(frozen=True)
class BooleanField(Field):
    type: ClassVar[str] = "boolean"


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


# Field factories


def string(name: str) -> StringField:
    return StringField(name)


def number(name: str) -> NumberField:
    return NumberField(name)


def date(name: str) -> DateField:
    return DateField(name)


def enum(name: str, values: Iterable[str]) -> EnumField:
    return EnumField(name, values=tuple(values))


def richtext(name: str) -> RichTextField:
    return RichTextField(name)


def file(name: str) -> FileField:
    return FileField(name)


def boolean(name: str) -> BooleanField:
    return BooleanField(name)


FIELD_FACTORIES: dict[str, Callable[..., Field]] = {
    "string": string,
    "number": number,
    "date": date,
    "enum": enum,
    "richtext": richtext,
    "file": file,
    "boolean": boolean,
}
