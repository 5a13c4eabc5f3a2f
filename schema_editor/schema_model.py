"""
Schema value model for the schema editor.

JsonSchema is a pydantic model over the JSON Schema subset the editor
understands: an object root with named properties, arrays with an item
schema, and the primitive types. Keywords outside that subset (enum,
default, minimum, $schema, ...) are kept verbatim as model extras so that
raw edits survive a trip through the visual editor.
"""

import copy
import logging
from enum import Enum
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator

logger = logging.getLogger(__name__)


class SchemaType(str, Enum):
    """Schema types supported by the editor, for both the root and property rows."""

    OBJECT = 'object'
    ARRAY = 'array'
    STRING = 'string'
    NUMBER = 'number'
    INTEGER = 'integer'
    BOOLEAN = 'boolean'

    @property
    def display_label(self) -> str:
        return self.value.capitalize()

    @property
    def type_description(self) -> str:
        return _TYPE_DESCRIPTIONS[self]

    @property
    def is_primitive(self) -> bool:
        return self not in (SchemaType.OBJECT, SchemaType.ARRAY)


_TYPE_DESCRIPTIONS = {
    SchemaType.OBJECT: "Schema with named properties",
    SchemaType.ARRAY: "List of items",
    SchemaType.STRING: "Text value",
    SchemaType.NUMBER: "Numeric value (decimal)",
    SchemaType.INTEGER: "Numeric value (whole number)",
    SchemaType.BOOLEAN: "True/false value",
}

# Keywords modelled as fields; everything else is carried as an extra
MODELLED_KEYWORDS = ('type', 'title', 'description', 'properties', 'required', 'items')


class JsonSchema(BaseModel):
    """
    One node of a schema.

    Object nodes always carry ``properties`` and ``required`` (empty when
    absent from the input). ``properties`` keeps insertion order, which is
    meaningful to the editor.
    """

    model_config = ConfigDict(extra='allow')

    type: SchemaType
    title: Optional[str] = None
    description: Optional[str] = None
    properties: Optional[Dict[str, 'JsonSchema']] = None
    required: Optional[List[str]] = None
    items: Optional['JsonSchema'] = None

    @field_validator('properties')
    @classmethod
    def _properties_only_on_objects(cls, value, info: ValidationInfo):
        schema_type = info.data.get('type')
        if value is not None and schema_type is not None and schema_type != SchemaType.OBJECT:
            raise ValueError(f"'properties' is only allowed on object schemas, not {schema_type.value}")
        return value

    @field_validator('required')
    @classmethod
    def _required_subset_of_properties(cls, value, info: ValidationInfo):
        if value is None:
            return value
        schema_type = info.data.get('type')
        if schema_type is not None and schema_type != SchemaType.OBJECT:
            raise ValueError(f"'required' is only allowed on object schemas, not {schema_type.value}")

        seen = set()
        for name in value:
            if name in seen:
                raise ValueError(f"'{name}' is listed more than once")
            seen.add(name)

        # properties failed its own validation; that error is already reported
        if 'properties' not in info.data:
            return value
        known = info.data.get('properties') or {}
        missing = [name for name in value if name not in known]
        if missing:
            raise ValueError(f"required properties not found in 'properties': {', '.join(missing)}")
        return value

    @field_validator('items')
    @classmethod
    def _items_only_on_arrays(cls, value, info: ValidationInfo):
        schema_type = info.data.get('type')
        if value is not None and schema_type is not None and schema_type != SchemaType.ARRAY:
            raise ValueError(f"'items' is only allowed on array schemas, not {schema_type.value}")
        return value

    @model_validator(mode='after')
    def _fill_object_defaults(self) -> 'JsonSchema':
        if self.type == SchemaType.OBJECT:
            if self.properties is None:
                self.properties = {}
            if self.required is None:
                self.required = []
        return self

    @property
    def extras(self) -> Dict[str, Any]:
        """Keywords outside the modelled subset, in input order."""
        return dict(self.model_extra or {})

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a plain JSON-compatible dictionary.

        Unset optional fields are omitted; extras are emitted as given.
        """
        data: Dict[str, Any] = {'type': self.type.value}
        if self.title is not None:
            data['title'] = self.title
        if self.description is not None:
            data['description'] = self.description
        if self.properties is not None:
            data['properties'] = {name: prop.to_dict() for name, prop in self.properties.items()}
        if self.required is not None:
            data['required'] = list(self.required)
        if self.items is not None:
            data['items'] = self.items.to_dict()
        for key, value in (self.model_extra or {}).items():
            data[key] = copy.deepcopy(value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JsonSchema':
        """Validate a plain dictionary into a JsonSchema (raises pydantic.ValidationError)."""
        return cls.model_validate(data)


def object_schema(
    title: Optional[str] = None,
    description: Optional[str] = None,
    properties: Optional[Dict[str, JsonSchema]] = None,
    required: Optional[List[str]] = None,
    **extras: Any
) -> JsonSchema:
    """Create an object schema."""
    return JsonSchema(
        type=SchemaType.OBJECT,
        title=title,
        description=description,
        properties=dict(properties or {}),
        required=list(required or []),
        **extras
    )


def array_schema(
    items: Optional[JsonSchema] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    **extras: Any
) -> JsonSchema:
    """Create an array schema; items default to strings."""
    return JsonSchema(
        type=SchemaType.ARRAY,
        title=title,
        description=description,
        items=items if items is not None else primitive_schema(SchemaType.STRING),
        **extras
    )


def primitive_schema(
    schema_type: SchemaType,
    title: Optional[str] = None,
    description: Optional[str] = None,
    **extras: Any
) -> JsonSchema:
    """Create a string, number, integer or boolean schema."""
    schema_type = SchemaType(schema_type)
    if not schema_type.is_primitive:
        raise ValueError(f"{schema_type.value} is not a primitive schema type")
    return JsonSchema(type=schema_type, title=title, description=description, **extras)


def empty_object_schema() -> JsonSchema:
    """The minimal valid schema: an object with no properties."""
    return object_schema()
