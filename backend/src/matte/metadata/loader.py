"""Load entity definitions from YAML files.

Each ``entities/*.yaml`` document is turned into DSL calls, so YAML entities
go through exactly the same compiler and invariants as entities declared in
Python::

    entity: Order
    preset: owned
    readLevel: authenticated
    writeLevel: owner
    fields:
      - name: title
        type: string
        required: true
        maxLength: 120
      - group: Shipping
        horizontal: true
        fields:
          - name: city
            type: string
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from matte.errors import CompilationError, MetadataError
from matte.schema.entity import PRESETS, EntityBuilder
from matte.schema.fields import FIELD_FACTORIES, Field
from matte.schema.groups import FieldGroup, SchemaNode, group, hgroup
from matte.schema.registry import EntityRegistry
from matte.schema.types import EntityDefinition

logger = logging.getLogger(__name__)

# YAML ui key -> Field method taking no argument
_UI_FLAGS = {
    "hideLabel": "hide_label",
    "floatingLabel": "floating_label",
    "hidden": "hidden",
    "readOnly": "read_only",
    "bold": "bold",
    "large": "large",
}

# YAML ui key -> Field method taking the value
_UI_VALUES = {
    "label": "label",
    "width": "width",
    "placeholder": "placeholder",
    "help": "help",
    "prefix": "prefix",
    "suffix": "suffix",
    "color": "color",
    "style": "style",
}

_ALIGN = {"left": "align_left", "right": "align_right", "center": "align_center"}


class MetadataLoader:
    """Loads entity definitions from a metadata directory."""

    def __init__(self, metadata_path: Path, registry: EntityRegistry | None = None):
        self.metadata_path = Path(metadata_path)
        self.registry = registry if registry is not None else EntityRegistry()

    def load_all(self) -> list[EntityDefinition]:
        """Compile and register every entity file, in file name order.

        Raises:
            MetadataError: A document is not a valid entity description
            CompilationError: An entity breaks a schema or access invariant
        """
        entities_path = self.metadata_path / "entities"
        if not entities_path.exists():
            logger.warning("No entities directory at %s", entities_path)
            return []

        loaded = []
        for yaml_file in sorted(entities_path.glob("*.yaml")):
            definition = self.load_file(yaml_file)
            if definition is not None:
                loaded.append(definition)
        return loaded

    def load_file(self, yaml_file: Path) -> EntityDefinition | None:
        """Compile and register a single entity file.

        Returns None for empty documents and documents without ``entity``.
        """
        try:
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise MetadataError(f"{yaml_file.name}: invalid YAML: {exc}") from exc

        if not isinstance(data, dict) or "entity" not in data:
            return None

        try:
            definition = self.build_builder(data, yaml_file.name).build(self.registry)
        except CompilationError:
            logger.error("Entity in %s failed to compile", yaml_file)
            raise

        logger.debug("Loaded %s from %s", definition.name, yaml_file)
        return definition

    def get_entity(self, name: str) -> EntityDefinition | None:
        return self.registry.get(name)

    def list_entities(self) -> list[str]:
        return self.registry.list_entities()

    # -- document -> DSL ----------------------------------------------------

    def build_builder(self, data: dict[str, Any], source: str) -> EntityBuilder:
        """Turn an entity document into an (unbuilt) entity builder."""
        name = data["entity"]
        preset_name = data.get("preset", "entity")
        preset = PRESETS.get(preset_name)
        if preset is None:
            raise MetadataError(
                f"{source}: unknown preset '{preset_name}' "
                f"(expected one of: {', '.join(PRESETS)})"
            )

        raw_fields = data.get("fields") or []
        if not isinstance(raw_fields, list):
            raise MetadataError(f"{source}: 'fields' must be a list")

        builder = preset(name, [self._resolve_node(n, source) for n in raw_fields])
        if "readLevel" in data:
            builder = builder.read_level(data["readLevel"])
        if "writeLevel" in data:
            builder = builder.write_level(data["writeLevel"])
        if "lifecycle" in data:
            builder = builder.lifecycle(data["lifecycle"])
        return builder

    def _resolve_node(self, data: Any, source: str) -> SchemaNode:
        if not isinstance(data, dict):
            raise MetadataError(f"{source}: field entries must be mappings, got {data!r}")
        if "group" in data or ("fields" in data and "name" not in data):
            return self._resolve_group(data, source)
        return self._resolve_field(data, source)

    def _resolve_group(self, data: dict[str, Any], source: str) -> FieldGroup:
        children = [self._resolve_node(n, source) for n in data.get("fields") or []]
        make = hgroup if data.get("horizontal") else group
        node = make(data.get("group"), children)

        if data.get("collapsible"):
            node = node.collapsible()
        if data.get("id"):
            node = node.id(data["id"])
        if data.get("border"):
            node = node.border(data["border"])
        if data.get("padding"):
            node = node.padding(data["padding"])
        return node

    def _resolve_field(self, data: dict[str, Any], source: str) -> Field:
        name = data.get("name")
        if not name:
            raise MetadataError(f"{source}: field is missing 'name'")

        field_type = data.get("type", "string")
        factory = FIELD_FACTORIES.get(field_type)
        if factory is None:
            raise MetadataError(f"{source}: field '{name}' has unknown type '{field_type}'")

        if field_type == "enum":
            field = factory(name, data.get("values") or [])
        else:
            field = factory(name)

        if data.get("required"):
            field = field.required()
        if "default" in data:
            field = field.default(data["default"])

        # Type-specific constraints
        try:
            if "minLength" in data:
                field = field.min_length(data["minLength"])
            if "maxLength" in data:
                field = field.max_length(data["maxLength"])
            if "min" in data:
                field = field.min(data["min"])
            if "max" in data:
                field = field.max(data["max"])
            if "maxSize" in data:
                field = field.max_size(data["maxSize"])
            if "allowedTypes" in data:
                field = field.allowed_types(data["allowedTypes"])
            if data.get("array"):
                field = field.array()
        except AttributeError as exc:
            raise MetadataError(
                f"{source}: field '{name}' of type '{field_type}' "
                f"does not support that constraint ({exc})"
            ) from exc

        return self._apply_ui(field, data.get("ui") or {}, source)

    def _apply_ui(self, field: Field, ui: dict[str, Any], source: str) -> Field:
        for key, value in ui.items():
            if key in _UI_FLAGS:
                if value:
                    field = getattr(field, _UI_FLAGS[key])()
            elif key in _UI_VALUES:
                field = getattr(field, _UI_VALUES[key])(value)
            elif key == "align":
                if value not in _ALIGN:
                    raise MetadataError(
                        f"{source}: field '{field.name}' has invalid align '{value}'"
                    )
                field = getattr(field, _ALIGN[value])()
            else:
                raise MetadataError(f"{source}: field '{field.name}' has unknown ui key '{key}'")
        return field
