"""Field groups: layout containers that flatten into field order."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Union

from matte.schema.fields import Field


@dataclass(frozen=True)
class GroupLayout:
    """Pass-through layout hints for the UI renderer."""

    collapsible: bool = False
    id: str | None = None
    border: str | None = None
    padding: str | None = None


@dataclass(frozen=True)
class FieldGroup:
    """An ordered, possibly nested container of fields.

    Attributes:
        label: Heading shown above the group, or None for a nameless group
        children: Fields and nested groups, in declaration order
        horizontal: Lay children out in a row instead of a column
        layout: Collapsible flag, DOM id, border and padding hints
    """

    label: str | None
    children: tuple[SchemaNode, ...] = ()
    horizontal: bool = False
    layout: GroupLayout = field(default_factory=GroupLayout)

    def collapsible(self) -> FieldGroup:
        return replace(self, layout=replace(self.layout, collapsible=True))

    def id(self, value: str) -> FieldGroup:
        return replace(self, layout=replace(self.layout, id=value))

    def border(self, css: str) -> FieldGroup:
        return replace(self, layout=replace(self.layout, border=css))

    def padding(self, css: str) -> FieldGroup:
        return replace(self, layout=replace(self.layout, padding=css))

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "horizontal": self.horizontal,
            "collapsible": self.layout.collapsible,
            "id": self.layout.id,
            "border": self.layout.border,
            "padding": self.layout.padding,
            "children": [
                child.to_dict() if isinstance(child, FieldGroup) else {"field": child.name}
                for child in self.children
            ],
        }


SchemaNode = Union[Field, FieldGroup]


def _make_group(
    label_or_children: str | None | Sequence[SchemaNode],
    children: Sequence[SchemaNode] | None,
    horizontal: bool,
) -> FieldGroup:
    if isinstance(label_or_children, (list, tuple)):
        return FieldGroup(None, tuple(label_or_children), horizontal)
    return FieldGroup(label_or_children, tuple(children or ()), horizontal)


def group(
    label_or_children: str | None | Sequence[SchemaNode],
    children: Sequence[SchemaNode] | None = None,
) -> FieldGroup:
    """Create a vertical group.

    Accepts either ``group("Label", [...])`` or ``group([...])``.
    """
    return _make_group(label_or_children, children, horizontal=False)


def hgroup(
    label_or_children: str | None | Sequence[SchemaNode],
    children: Sequence[SchemaNode] | None = None,
) -> FieldGroup:
    """Create a horizontal group. Same call forms as :func:`group`."""
    return _make_group(label_or_children, children, horizontal=True)


def iter_nodes(nodes: Sequence[SchemaNode]) -> Iterator[SchemaNode]:
    """Walk a node tree depth-first, pre-order, yielding groups and fields."""
    for node in nodes:
        yield node
        if isinstance(node, FieldGroup):
            yield from iter_nodes(node.children)


def flatten(nodes: Sequence[SchemaNode]) -> list[Field]:
    """Return the leaf fields of a node tree in depth-first pre-order."""
    return [node for node in iter_nodes(nodes) if isinstance(node, Field)]
