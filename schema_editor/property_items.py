"""
Property item model for the visual schema editor.

A schema is edited as an ordered list of PropertyItem rows plus top-level
metadata. The functions here convert between that representation and
JsonSchema values, and provide the row-level helpers the editor uses
(unique names, moving and duplicating rows, switching the root type).
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple, Iterable, TypeVar

from .schema_model import JsonSchema, SchemaType, object_schema, array_schema, primitive_schema

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_PROPERTY_NAME = 'property'


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PropertyItem:
    """
    One editable property row.

    Attributes:
        id: Stable identity of the row, independent of its name
        name: Property name; blank names are skipped when building
        type: Property type
        required: Whether the name is listed in the parent's 'required'
        title: Optional display title
        description: Optional help text
        array_item_type: Type of the array's items (only used for arrays)
        extras: Keywords the visual editor does not edit (enum, default,
            nested properties of an object row, ...), re-emitted on build
        item_extras: Keywords of the array's item schema besides 'type'
    """
    name: str = ''
    type: SchemaType = SchemaType.STRING
    required: bool = False
    title: str = ''
    description: str = ''
    array_item_type: SchemaType = SchemaType.STRING
    extras: Dict[str, Any] = field(default_factory=dict)
    item_extras: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.type = SchemaType(self.type)
        self.array_item_type = SchemaType(self.array_item_type)

    def change_type(self, new_type: SchemaType) -> None:
        """
        Retype the row.

        Opaque keywords belong to the old type (an enum of strings, the
        nested properties of an object) and are dropped.
        """
        new_type = SchemaType(new_type)
        if new_type == self.type:
            return
        if self.extras or self.item_extras:
            logger.debug(f"Retyping '{self.name}' {self.type.value}->{new_type.value} drops {sorted(self.extras)}")
        self.type = new_type
        self.extras = {}
        self.item_extras = {}

    def change_array_item_type(self, new_type: SchemaType) -> None:
        """Change the item type of an array row, dropping the old item keywords."""
        new_type = SchemaType(new_type)
        if new_type == self.array_item_type:
            return
        self.array_item_type = new_type
        self.item_extras = {}

    @property
    def has_opaque_keywords(self) -> bool:
        """True when the row carries keywords only the raw editor can change."""
        return bool(self.extras or self.item_extras)


@dataclass
class SchemaMetadata:
    """Top-level title, description and opaque root keywords."""
    title: str = ''
    description: str = ''
    extras: Dict[str, Any] = field(default_factory=dict)


def property_item_from_schema(name: str, schema: JsonSchema, required: bool = False,
                              item_id: Optional[str] = None) -> PropertyItem:
    """
    Project one property schema into a row.

    An enum (or any other unsupported keyword) keeps the declared type and is
    stored in ``extras``. Nested objects keep their own properties in
    ``extras`` as well; they are edited in raw mode only.
    """
    extras = schema.extras
    if schema.type == SchemaType.OBJECT:
        nested = schema.to_dict()
        extras['properties'] = nested['properties']
        extras['required'] = nested['required']

    array_item_type = SchemaType.STRING
    item_extras: Dict[str, Any] = {}
    if schema.type == SchemaType.ARRAY and schema.items is not None:
        array_item_type = schema.items.type
        item_extras = {k: v for k, v in schema.items.to_dict().items() if k != 'type'}

    item = PropertyItem(
        name=name,
        type=schema.type,
        required=required,
        title=schema.title or '',
        description=schema.description or '',
        array_item_type=array_item_type,
        extras=extras,
        item_extras=item_extras,
    )
    if item_id is not None:
        item.id = item_id
    return item


def property_item_to_schema(item: PropertyItem) -> JsonSchema:
    """
    Build the property schema for one row.

    Raises:
        pydantic.ValidationError: if the row's opaque keywords no longer form
            a valid schema; rows produced by this module never do that
    """
    data: Dict[str, Any] = {'type': item.type.value}
    if item.title:
        data['title'] = item.title
    if item.description:
        data['description'] = item.description
    if item.type == SchemaType.ARRAY:
        items_data = copy.deepcopy(item.item_extras)
        items_data['type'] = item.array_item_type.value
        data['items'] = items_data
    for key, value in item.extras.items():
        data[key] = copy.deepcopy(value)
    return JsonSchema.model_validate(data)


def to_property_items(schema: JsonSchema,
                      existing: Optional[Iterable[PropertyItem]] = None
                      ) -> Tuple[SchemaMetadata, List[PropertyItem]]:
    """
    Flatten a schema into metadata and property rows.

    Args:
        schema: Schema to flatten; only object schemas produce rows
        existing: Rows from a previous projection. A new row whose name
            matches one of them takes over its id so editor focus survives.

    Returns:
        Tuple of (metadata, rows in property order)
    """
    metadata = SchemaMetadata(
        title=schema.title or '',
        description=schema.description or '',
        extras=schema.extras,
    )
    if schema.type != SchemaType.OBJECT:
        return metadata, []

    previous_ids: Dict[str, str] = {}
    for old in existing or ():
        if old.name and old.name not in previous_ids:
            previous_ids[old.name] = old.id

    required = set(schema.required or [])
    items = [
        property_item_from_schema(name, prop, name in required, previous_ids.get(name))
        for name, prop in (schema.properties or {}).items()
    ]
    return metadata, items


def build_schema(metadata: Optional[SchemaMetadata], items: Iterable[PropertyItem]) -> JsonSchema:
    """
    Build an object schema from metadata and rows.

    Rows with a blank name are skipped. When names repeat, the last row wins
    and the property sits where that last row sits. A name is required iff
    the winning row is flagged required.
    """
    metadata = metadata or SchemaMetadata()

    winners: Dict[str, PropertyItem] = {}
    for item in items:
        if not item.name.strip():
            continue
        winners.pop(item.name, None)
        winners[item.name] = item

    properties = {name: property_item_to_schema(item) for name, item in winners.items()}
    required = [name for name, item in winners.items() if item.required]

    return object_schema(
        title=metadata.title or None,
        description=metadata.description or None,
        properties=properties,
        required=required,
        **copy.deepcopy(metadata.extras)
    )


def generate_unique_key(existing_keys: Iterable[str], base_name: str = DEFAULT_PROPERTY_NAME) -> str:
    """Return base_name, or base_name_N with the smallest N >= 1 not already taken."""
    taken = set(existing_keys)
    if base_name not in taken:
        return base_name

    counter = 1
    while f"{base_name}_{counter}" in taken:
        counter += 1
    return f"{base_name}_{counter}"


def create_property_item(existing_keys: Iterable[str], base_name: str = DEFAULT_PROPERTY_NAME,
                         **fields: Any) -> PropertyItem:
    """Create a string row named uniquely unless a name is given in fields."""
    if 'name' not in fields:
        fields['name'] = generate_unique_key(existing_keys, base_name)
    return PropertyItem(**fields)


def duplicate_property_item(item: PropertyItem, existing_keys: Iterable[str]) -> PropertyItem:
    """Copy a row under a fresh id and a unique '<name>_copy' name."""
    duplicate = copy.deepcopy(item)
    duplicate.id = _new_id()
    duplicate.name = generate_unique_key(existing_keys, f"{item.name or DEFAULT_PROPERTY_NAME}_copy")
    return duplicate


def move_item(values: List[T], from_index: int, to_index: int) -> bool:
    """
    Move one element of a list in place.

    Returns:
        False (and leaves the list alone) for out-of-range or equal indexes
    """
    if not (0 <= from_index < len(values)) or not (0 <= to_index < len(values)):
        return False
    if from_index == to_index:
        return False
    values.insert(to_index, values.pop(from_index))
    return True


def create_schema_of_type(root_type: SchemaType, title: Optional[str] = None,
                          description: Optional[str] = None) -> JsonSchema:
    """Create an empty schema of the given root type."""
    root_type = SchemaType(root_type)
    if root_type == SchemaType.OBJECT:
        return object_schema(title=title, description=description)
    if root_type == SchemaType.ARRAY:
        return array_schema(title=title, description=description)
    return primitive_schema(root_type, title=title, description=description)


def convert_schema_type(schema: Optional[JsonSchema], new_type: SchemaType) -> JsonSchema:
    """Create an empty schema of a new type, keeping title and description."""
    title = schema.title if schema is not None else None
    description = schema.description if schema is not None else None
    return create_schema_of_type(new_type, title=title, description=description)
