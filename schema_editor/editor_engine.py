"""
Editor engine keeping the visual and raw JSON representations of a schema in sync.

All mutations go through apply_edit() with one of the intent classes below.
After every accepted mutation the engine recomputes its derived values: in
the visual tab the raw text is regenerated from the rows, in the raw tab the
text is parsed, and in both cases current_schema is refreshed and the host's
on_change callback is called.

While the raw tab is active the text is authoritative: rows are only replaced
when switching back to the visual tab succeeds, and that switch is refused
as long as the text does not parse.
"""

import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Callable, Union

from .config_loader import EditorConfig
from .diff_utils import calculate_schema_diff, has_changes
from .exceptions import UncommittableSchemaError, EmptyInputError, log_error_with_context
from .property_items import (
    PropertyItem,
    SchemaMetadata,
    build_schema,
    convert_schema_type,
    create_property_item,
    duplicate_property_item,
    move_item,
    to_property_items,
)
from .schema_json import parse, schema_from_data, stringify
from .schema_model import JsonSchema, SchemaType
from .schema_validation import validate_items

logger = logging.getLogger(__name__)


class EditorTab(str, Enum):
    """Editor tab modes."""

    VISUAL = 'visual'
    RAW = 'raw'

    @property
    def label(self) -> str:
        return "Visual Editor" if self is EditorTab.VISUAL else "Raw JSON"


@dataclass
class EditorState:
    """
    Everything one editing session owns.

    Hosts read this object; only the engine writes to it.
    """
    title: str = ''
    description: str = ''
    schema_type: SchemaType = SchemaType.OBJECT
    items: List[PropertyItem] = field(default_factory=list)
    array_item_type: SchemaType = SchemaType.STRING
    array_item_extras: Dict[str, Any] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)
    raw_text: str = ''
    active_tab: EditorTab = EditorTab.VISUAL
    raw_parse_error: Optional[str] = None
    current_schema: Optional[JsonSchema] = None

    @property
    def can_switch_tab(self) -> bool:
        """False while the raw tab holds text that does not parse, blank text included."""
        if self.active_tab != EditorTab.RAW:
            return True
        return self.raw_parse_error is None and self.current_schema is not None

    @property
    def item_names(self) -> List[str]:
        return [item.name for item in self.items]


def _new_id() -> str:
    return str(uuid.uuid4())


# Intents

@dataclass(frozen=True)
class AddProperty:
    name: Optional[str] = None
    type: SchemaType = SchemaType.STRING
    required: bool = False
    title: str = ''
    description: str = ''
    array_item_type: SchemaType = SchemaType.STRING
    index: Optional[int] = None
    item_id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class RemoveProperty:
    item_id: str


@dataclass(frozen=True)
class UpdateProperty:
    item_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MoveProperty:
    item_id: str
    to_index: int


@dataclass(frozen=True)
class DuplicateProperty:
    item_id: str


@dataclass(frozen=True)
class SetTitle:
    title: str


@dataclass(frozen=True)
class SetDescription:
    description: str


@dataclass(frozen=True)
class SetSchemaType:
    schema_type: SchemaType


@dataclass(frozen=True)
class SetArrayItemType:
    array_item_type: SchemaType


@dataclass(frozen=True)
class EditRawText:
    text: str


@dataclass(frozen=True)
class SwitchTab:
    tab: EditorTab


@dataclass(frozen=True)
class LoadSchema:
    schema: Optional[Union[JsonSchema, Dict[str, Any]]] = None


EditorIntent = Union[
    AddProperty, RemoveProperty, UpdateProperty, MoveProperty, DuplicateProperty,
    SetTitle, SetDescription, SetSchemaType, SetArrayItemType,
    EditRawText, SwitchTab, LoadSchema,
]

VISUAL_INTENTS = (
    AddProperty, RemoveProperty, UpdateProperty, MoveProperty, DuplicateProperty,
    SetTitle, SetDescription, SetSchemaType, SetArrayItemType,
)
RAW_INTENTS = (EditRawText,)

UPDATABLE_FIELDS = ('name', 'type', 'required', 'title', 'description', 'array_item_type')


def _coerce_schema(schema: Optional[Union[JsonSchema, Dict[str, Any]]]) -> Optional[JsonSchema]:
    if schema is None or isinstance(schema, JsonSchema):
        return schema
    result = schema_from_data(schema)
    if not result.ok:
        raise result.error
    return result.schema


class EditorEngine:
    """
    Structured/raw schema editor for one editing session.

    Args:
        schema: Schema to edit, or None to create a new one
        config: Editor settings; defaults when omitted
        on_change: Called with current_schema after every accepted mutation

    Raises:
        SchemaShapeError: If schema is a dictionary that is not a valid schema
    """

    def __init__(self, schema: Optional[Union[JsonSchema, Dict[str, Any]]] = None,
                 config: Optional[EditorConfig] = None,
                 on_change: Optional[Callable[[Optional[JsonSchema]], None]] = None):
        self.config = config or EditorConfig()
        self._on_change = on_change
        self._lock = threading.RLock()
        self._state = EditorState()
        self._last_edit_accepted = True
        self._handlers: Dict[type, Callable[[Any], bool]] = {
            AddProperty: self._add_property,
            RemoveProperty: self._remove_property,
            UpdateProperty: self._update_property,
            MoveProperty: self._move_property,
            DuplicateProperty: self._duplicate_property,
            SetTitle: self._set_title,
            SetDescription: self._set_description,
            SetSchemaType: self._set_schema_type,
            SetArrayItemType: self._set_array_item_type,
            EditRawText: self._edit_raw_text,
            SwitchTab: self._switch_tab,
            LoadSchema: self._load_schema,
        }

        self._apply_schema(_coerce_schema(schema), reuse_ids=False)
        self._refresh_derived(notify=False)
        self._baseline = self._state.current_schema
        logger.debug(f"EditorEngine created: type={self._state.schema_type.value} items={len(self._state.items)}")

    # Read access

    @property
    def state(self) -> EditorState:
        """The live state; treat it as read-only."""
        return self._state

    def snapshot(self) -> EditorState:
        """A deep copy of the state taken between intents."""
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def current_schema(self) -> Optional[JsonSchema]:
        return self._state.current_schema

    @property
    def can_switch_tab(self) -> bool:
        return self._state.can_switch_tab

    @property
    def last_edit_accepted(self) -> bool:
        """Whether the most recent apply_edit() was accepted."""
        return self._last_edit_accepted

    def find_item(self, item_id: str) -> Optional[PropertyItem]:
        index = self._index_of(item_id)
        return self._state.items[index] if index is not None else None

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self._state.items):
            if item.id == item_id:
                return index
        return None

    # Mutation

    def apply_edit(self, intent: EditorIntent) -> EditorState:
        """
        Apply one user intent and recompute derived values if it was accepted.

        Refused intents (visual edits while the raw tab is active, raw edits
        while the visual tab is active, unknown row ids, a raw->visual switch
        while the text does not parse) leave rows and tab unchanged.

        Raises:
            TypeError: If intent is not one of the editor intents
        """
        handler = self._handlers.get(type(intent))
        if handler is None:
            raise TypeError(f"Unsupported editor intent: {type(intent).__name__}")

        with self._lock:
            active_tab = self._state.active_tab
            if isinstance(intent, VISUAL_INTENTS) and active_tab != EditorTab.VISUAL:
                logger.warning(f"Refused {type(intent).__name__}: raw JSON is being edited")
                accepted = False
            elif isinstance(intent, RAW_INTENTS) and active_tab != EditorTab.RAW:
                logger.warning(f"Refused {type(intent).__name__}: the visual editor is active")
                accepted = False
            else:
                accepted = handler(intent)

            self._last_edit_accepted = accepted
            if accepted:
                self._refresh_derived()
            return self._state

    def commit(self) -> JsonSchema:
        """
        Return the definitive schema for the host to save.

        Raises:
            UncommittableSchemaError: If the raw tab holds text that does not parse
        """
        with self._lock:
            if self._state.active_tab == EditorTab.VISUAL:
                return self._build_from_structure()

            result = parse(self._state.raw_text)
            if not result.ok:
                log_error_with_context(result.error, "Commit")
                raise UncommittableSchemaError(result.error)
            return result.schema

    # Convenience wrappers

    def add_property(self, name: Optional[str] = None, type: SchemaType = SchemaType.STRING,
                     required: bool = False, description: str = '', title: str = '',
                     array_item_type: SchemaType = SchemaType.STRING,
                     index: Optional[int] = None) -> Optional[PropertyItem]:
        """Add a row; returns it, or None if the edit was refused."""
        intent = AddProperty(name=name, type=SchemaType(type), required=required, title=title,
                             description=description, array_item_type=SchemaType(array_item_type),
                             index=index)
        self.apply_edit(intent)
        return self.find_item(intent.item_id) if self._last_edit_accepted else None

    def remove_property(self, item_id: str) -> bool:
        self.apply_edit(RemoveProperty(item_id))
        return self._last_edit_accepted

    def update_property(self, item_id: str, **changes: Any) -> bool:
        self.apply_edit(UpdateProperty(item_id, changes))
        return self._last_edit_accepted

    def move_property(self, item_id: str, to_index: int) -> bool:
        self.apply_edit(MoveProperty(item_id, to_index))
        return self._last_edit_accepted

    def move_property_up(self, item_id: str) -> bool:
        index = self._index_of(item_id)
        return index is not None and self.move_property(item_id, index - 1)

    def move_property_down(self, item_id: str) -> bool:
        index = self._index_of(item_id)
        return index is not None and self.move_property(item_id, index + 1)

    def duplicate_property(self, item_id: str) -> bool:
        self.apply_edit(DuplicateProperty(item_id))
        return self._last_edit_accepted

    def set_title(self, title: str) -> bool:
        self.apply_edit(SetTitle(title))
        return self._last_edit_accepted

    def set_description(self, description: str) -> bool:
        self.apply_edit(SetDescription(description))
        return self._last_edit_accepted

    def set_schema_type(self, schema_type: SchemaType) -> bool:
        self.apply_edit(SetSchemaType(SchemaType(schema_type)))
        return self._last_edit_accepted

    def set_array_item_type(self, array_item_type: SchemaType) -> bool:
        self.apply_edit(SetArrayItemType(SchemaType(array_item_type)))
        return self._last_edit_accepted

    def edit_raw_text(self, text: str) -> bool:
        self.apply_edit(EditRawText(text))
        return self._last_edit_accepted

    def switch_tab(self, tab: EditorTab) -> bool:
        self.apply_edit(SwitchTab(EditorTab(tab)))
        return self._last_edit_accepted

    def load_schema(self, schema: Optional[Union[JsonSchema, Dict[str, Any]]]) -> bool:
        self.apply_edit(LoadSchema(schema))
        return self._last_edit_accepted

    # Validation and change tracking

    def validate(self) -> Dict[str, List[str]]:
        """Advisory name problems per row id; never blocks editing."""
        return validate_items(
            self._state.items,
            self.config.property_key_pattern,
            self.config.max_property_name_length,
        )

    def has_unsaved_changes(self) -> bool:
        """Whether the schema differs from the one the session started from (or was last saved as)."""
        with self._lock:
            current = self._state.current_schema
            if current is None:
                # raw text that does not parse is never saved
                return True
            return has_changes(self._baseline, current)

    def changes_since_load(self) -> Dict[str, List[str]]:
        with self._lock:
            return calculate_schema_diff(self._baseline, self._state.current_schema)

    def mark_saved(self, schema: Optional[JsonSchema] = None) -> None:
        """Record the schema the host just saved as the new baseline."""
        with self._lock:
            self._baseline = schema if schema is not None else self._state.current_schema

    # Handlers: each returns True when it changed the state

    def _add_property(self, intent: AddProperty) -> bool:
        state = self._state
        fields: Dict[str, Any] = {}
        if intent.name is not None:
            fields['name'] = intent.name
        item = create_property_item(
            state.item_names,
            self.config.default_property_name,
            id=intent.item_id,
            type=intent.type,
            required=intent.required,
            title=intent.title,
            description=intent.description,
            array_item_type=intent.array_item_type,
            **fields
        )
        if intent.index is None or not (0 <= intent.index <= len(state.items)):
            state.items.append(item)
        else:
            state.items.insert(intent.index, item)
        logger.debug(f"Added property '{item.name}' ({item.type.value}) id={item.id}")
        return True

    def _remove_property(self, intent: RemoveProperty) -> bool:
        index = self._index_of(intent.item_id)
        if index is None:
            logger.warning(f"Cannot remove property: unknown id {intent.item_id}")
            return False
        removed = self._state.items.pop(index)
        logger.debug(f"Removed property '{removed.name}' at index {index}")
        return True

    def _update_property(self, intent: UpdateProperty) -> bool:
        unknown = [key for key in intent.changes if key not in UPDATABLE_FIELDS]
        if unknown:
            raise ValueError(f"Cannot update property fields: {', '.join(unknown)}")

        item = self.find_item(intent.item_id)
        if item is None:
            logger.warning(f"Cannot update property: unknown id {intent.item_id}")
            return False

        # coerce everything first so a bad value leaves the row untouched
        values: Dict[str, Any] = {}
        for key, value in intent.changes.items():
            if key in ('type', 'array_item_type'):
                values[key] = SchemaType(value)
            elif key == 'required':
                values[key] = bool(value)
            else:
                values[key] = value if value is not None else ''

        for key, value in values.items():
            if key == 'type':
                item.change_type(value)
            elif key == 'array_item_type':
                item.change_array_item_type(value)
            else:
                setattr(item, key, value)
        return True

    def _move_property(self, intent: MoveProperty) -> bool:
        index = self._index_of(intent.item_id)
        if index is None:
            logger.warning(f"Cannot move property: unknown id {intent.item_id}")
            return False
        if not 0 <= intent.to_index < len(self._state.items):
            logger.warning(f"Cannot move property to index {intent.to_index}: out of range")
            return False
        return move_item(self._state.items, index, intent.to_index)

    def _duplicate_property(self, intent: DuplicateProperty) -> bool:
        index = self._index_of(intent.item_id)
        if index is None:
            logger.warning(f"Cannot duplicate property: unknown id {intent.item_id}")
            return False
        items = self._state.items
        duplicate = duplicate_property_item(items[index], self._state.item_names)
        items.insert(index + 1, duplicate)
        logger.debug(f"Duplicated property '{items[index].name}' as '{duplicate.name}'")
        return True

    def _set_title(self, intent: SetTitle) -> bool:
        self._state.title = intent.title or ''
        return True

    def _set_description(self, intent: SetDescription) -> bool:
        self._state.description = intent.description or ''
        return True

    def _set_schema_type(self, intent: SetSchemaType) -> bool:
        new_type = SchemaType(intent.schema_type)
        if new_type == self._state.schema_type:
            return False
        converted = convert_schema_type(self._build_from_structure(), new_type)
        logger.debug(f"Root type {self._state.schema_type.value} -> {new_type.value}")
        self._apply_schema(converted, reuse_ids=False)
        return True

    def _set_array_item_type(self, intent: SetArrayItemType) -> bool:
        state = self._state
        if state.schema_type != SchemaType.ARRAY:
            logger.warning("Cannot set array item type: root schema is not an array")
            return False
        new_type = SchemaType(intent.array_item_type)
        if new_type == state.array_item_type:
            return False
        state.array_item_type = new_type
        state.array_item_extras = {}
        return True

    def _edit_raw_text(self, intent: EditRawText) -> bool:
        self._state.raw_text = intent.text if intent.text is not None else ''
        return True

    def _switch_tab(self, intent: SwitchTab) -> bool:
        state = self._state
        target = EditorTab(intent.tab)
        if target == state.active_tab:
            return False

        if target == EditorTab.RAW:
            state.raw_text = stringify(self._build_from_structure(), indent=self.config.indent)
            state.raw_parse_error = None
            state.active_tab = EditorTab.RAW
            logger.debug("Switched to raw JSON")
            return True

        result = parse(state.raw_text)
        if not result.ok:
            state.raw_parse_error = result.error_message
            logger.info(f"Switch to visual editor refused: {result.error_message}")
            return False

        self._apply_schema(result.schema, reuse_ids=self.config.reuse_item_ids)
        state.raw_parse_error = None
        state.active_tab = EditorTab.VISUAL
        logger.debug(f"Switched to visual editor with {len(state.items)} properties")
        return True

    def _load_schema(self, intent: LoadSchema) -> bool:
        self._apply_schema(_coerce_schema(intent.schema), reuse_ids=False)
        self._state.active_tab = EditorTab.VISUAL
        self._state.raw_parse_error = None
        self._baseline = self._build_from_structure()
        return True

    # Structure <-> schema

    def _apply_schema(self, schema: Optional[JsonSchema], reuse_ids: bool) -> None:
        """Replace rows and metadata with the projection of schema (None resets)."""
        state = self._state
        if schema is None:
            state.schema_type = SchemaType.OBJECT
            state.title = ''
            state.description = ''
            state.extras = {}
            state.items = []
            state.array_item_type = SchemaType.STRING
            state.array_item_extras = {}
            return

        metadata, items = to_property_items(schema, existing=state.items if reuse_ids else None)
        state.schema_type = schema.type
        state.title = metadata.title
        state.description = metadata.description
        state.extras = metadata.extras
        state.items = items

        if schema.type == SchemaType.ARRAY and schema.items is not None:
            state.array_item_type = schema.items.type
            state.array_item_extras = {k: v for k, v in schema.items.to_dict().items() if k != 'type'}
        else:
            state.array_item_type = SchemaType.STRING
            state.array_item_extras = {}

    def _build_from_structure(self) -> JsonSchema:
        state = self._state
        if state.schema_type == SchemaType.OBJECT:
            metadata = SchemaMetadata(state.title, state.description, state.extras)
            return build_schema(metadata, state.items)

        data: Dict[str, Any] = copy.deepcopy(state.extras)
        data['type'] = state.schema_type.value
        if state.title:
            data['title'] = state.title
        if state.description:
            data['description'] = state.description
        if state.schema_type == SchemaType.ARRAY:
            items_data = copy.deepcopy(state.array_item_extras)
            items_data['type'] = state.array_item_type.value
            data['items'] = items_data
        return JsonSchema.model_validate(data)

    def _refresh_derived(self, notify: bool = True) -> None:
        state = self._state
        if state.active_tab == EditorTab.VISUAL:
            schema = self._build_from_structure()
            state.raw_text = stringify(schema, indent=self.config.indent)
            state.raw_parse_error = None
            state.current_schema = schema
        else:
            result = parse(state.raw_text)
            state.current_schema = result.schema
            if result.ok or isinstance(result.error, EmptyInputError):
                state.raw_parse_error = None
            else:
                state.raw_parse_error = result.error_message

        if notify and self._on_change is not None:
            self._on_change(state.current_schema)
