"""
Tests for the editor engine: visual edits, raw edits and tab switching.
"""

import json
from unittest.mock import MagicMock

import pytest

from schema_editor.config_loader import EditorConfig
from schema_editor.editor_engine import (
    AddProperty,
    EditorEngine,
    EditorTab,
    EditRawText,
    LoadSchema,
    RemoveProperty,
    SetTitle,
    SwitchTab,
    UpdateProperty,
)
from schema_editor.exceptions import SchemaShapeError, UncommittableSchemaError
from schema_editor.schema_json import parse, stringify
from schema_editor.schema_model import JsonSchema, SchemaType, empty_object_schema


POSITION_SCHEMA = {
    'type': 'object',
    'title': 'Position',
    'properties': {
        'zone': {'type': 'string', 'enum': ['A', 'B']},
        'aisle': {'type': 'integer'},
        'bins': {'type': 'array', 'items': {'type': 'integer'}}
    },
    'required': ['aisle']
}


@pytest.fixture
def engine():
    return EditorEngine(POSITION_SCHEMA)


@pytest.fixture
def empty_engine():
    return EditorEngine()


def _raw_engine(text):
    engine = EditorEngine(POSITION_SCHEMA)
    engine.switch_tab(EditorTab.RAW)
    engine.edit_raw_text(text)
    return engine


class TestEngineCreation:
    """Seeding the engine in create and edit flows."""

    def test_create_flow_starts_empty(self, empty_engine):
        """A new engine holds an empty object schema."""
        state = empty_engine.state

        assert state.schema_type == SchemaType.OBJECT
        assert state.items == []
        assert state.active_tab == EditorTab.VISUAL
        assert state.raw_parse_error is None
        assert empty_engine.current_schema == empty_object_schema()

    def test_create_flow_raw_text_seeded(self, empty_engine):
        """Raw text is seeded with the serialized schema."""
        assert empty_engine.state.raw_text == stringify(empty_object_schema())

    def test_empty_schema_commits(self, empty_engine):
        """Committing an untouched new schema gives the empty object schema."""
        schema = empty_engine.commit()

        assert stringify(schema, pretty_print=False) == '{"properties":{},"required":[],"type":"object"}'

    def test_edit_flow_projects_rows(self, engine):
        """Rows follow the schema's property order."""
        assert engine.state.item_names == ['zone', 'aisle', 'bins']
        assert engine.state.title == 'Position'
        assert engine.find_item(engine.state.items[1].id).required is True

    def test_edit_flow_accepts_schema_value(self):
        """A JsonSchema can be passed instead of a dictionary."""
        schema = JsonSchema.model_validate(POSITION_SCHEMA)

        assert EditorEngine(schema).commit() == schema

    def test_invalid_schema_dictionary(self):
        """A dictionary that is not a schema is rejected at construction."""
        with pytest.raises(SchemaShapeError):
            EditorEngine({'type': 'object', 'properties': {}, 'required': ['missing']})

    def test_config_indent_used(self):
        """The configured indent is used for the raw text."""
        engine = EditorEngine(config=EditorConfig(indent=4))

        assert engine.state.raw_text.splitlines()[1].startswith('    "')


class TestVisualEdits:
    """Visual edits update the raw text and current schema synchronously."""

    def test_add_property(self, empty_engine):
        """A new row gets the default name and appears in the raw text at once."""
        item = empty_engine.add_property()

        assert item.name == 'property'
        assert item.type == SchemaType.STRING
        assert '"property"' in empty_engine.state.raw_text
        assert list(empty_engine.current_schema.properties) == ['property']

    def test_add_required_property_updates_raw_text(self, empty_engine):
        """The raw text lists a new required row in properties and required."""
        empty_engine.add_property(name='row', type=SchemaType.INTEGER, required=True)

        data = json.loads(empty_engine.state.raw_text)
        assert data['properties'] == {'row': {'type': 'integer'}}
        assert data['required'] == ['row']

    def test_add_property_unique_names(self, empty_engine):
        """Consecutive rows get numbered names."""
        names = [empty_engine.add_property().name for _ in range(3)]

        assert names == ['property', 'property_1', 'property_2']

    def test_add_property_at_index(self, engine):
        item = engine.add_property(name='bay', index=0)

        assert engine.state.item_names[0] == 'bay'
        assert engine.state.items[0] is item

    def test_add_property_uses_configured_name(self):
        engine = EditorEngine(config=EditorConfig(default_property_name='field'))

        assert engine.add_property().name == 'field'

    def test_remove_property(self, engine):
        zone_id = engine.state.items[0].id

        assert engine.remove_property(zone_id) is True
        assert 'zone' not in engine.current_schema.properties

    def test_remove_unknown_property(self, engine):
        """Unknown ids are refused and leave the rows alone."""
        assert engine.remove_property('no-such-id') is False
        assert engine.last_edit_accepted is False
        assert len(engine.state.items) == 3

    def test_update_property(self, engine):
        """Renaming and flagging a row is reflected in the schema."""
        aisle = engine.state.items[1]

        engine.update_property(aisle.id, name='aisle_no', required=False, description='Aisle number')

        schema = engine.current_schema
        assert list(schema.properties) == ['zone', 'aisle_no', 'bins']
        assert schema.required == []
        assert schema.properties['aisle_no'].description == 'Aisle number'

    def test_update_unknown_field(self, engine):
        with pytest.raises(ValueError):
            engine.update_property(engine.state.items[0].id, colour='red')

    def test_rejected_update_leaves_row_unchanged(self, empty_engine):
        """A bad value anywhere in an update rejects the whole update."""
        item = empty_engine.add_property(name='row')
        raw_before = empty_engine.state.raw_text

        with pytest.raises(ValueError):
            empty_engine.update_property(item.id, name='shelf', type='bogus')

        assert item.name == 'row'
        assert item.type == SchemaType.STRING
        assert empty_engine.state.raw_text == raw_before
        assert list(empty_engine.current_schema.properties) == ['row']

    def test_enum_kept_until_retyped(self, engine):
        """The enum survives visual edits of other fields but not a type change."""
        zone = engine.state.items[0]

        engine.update_property(zone.id, description='Storage zone')
        assert engine.commit().properties['zone'].extras == {'enum': ['A', 'B']}

        engine.update_property(zone.id, type=SchemaType.INTEGER)
        assert engine.commit().properties['zone'].to_dict() == {'type': 'integer', 'description': 'Storage zone'}

    def test_update_array_item_type(self, engine):
        bins = engine.state.items[2]

        engine.update_property(bins.id, array_item_type=SchemaType.STRING)

        assert engine.current_schema.properties['bins'].items.type == SchemaType.STRING

    def test_duplicate_names_last_wins(self, empty_engine):
        """Rows sharing a name build one property from the last row."""
        empty_engine.add_property(name='a', type=SchemaType.STRING)
        empty_engine.add_property(name='a', type=SchemaType.INTEGER)

        schema = empty_engine.commit()

        assert list(schema.properties) == ['a']
        assert schema.properties['a'].type == SchemaType.INTEGER
        assert len(empty_engine.validate()) == 2

    def test_blank_name_skipped(self, empty_engine):
        """Rows without a name are kept in the editor but not in the schema."""
        item = empty_engine.add_property(name='')

        assert empty_engine.current_schema.properties == {}
        assert len(empty_engine.state.items) == 1
        assert empty_engine.validate() == {item.id: ["Property name is required"]}

    def test_move_property(self, engine):
        bins = engine.state.items[2]

        assert engine.move_property(bins.id, 0) is True
        assert list(engine.current_schema.properties) == ['bins', 'zone', 'aisle']
        assert engine.state.raw_text.index('"bins"') < engine.state.raw_text.index('"zone"')

    def test_move_property_out_of_range(self, engine):
        """Moving past either end is a no-op."""
        zone = engine.state.items[0]

        assert engine.move_property_up(zone.id) is False
        assert engine.move_property(zone.id, 10) is False
        assert engine.state.item_names == ['zone', 'aisle', 'bins']

    def test_move_property_down(self, engine):
        zone = engine.state.items[0]

        assert engine.move_property_down(zone.id) is True
        assert engine.state.item_names == ['aisle', 'zone', 'bins']

    def test_duplicate_property(self, engine):
        """The copy is inserted after the original with a new id."""
        zone = engine.state.items[0]

        assert engine.duplicate_property(zone.id) is True

        copy = engine.state.items[1]
        assert copy.name == 'zone_copy'
        assert copy.id != zone.id
        assert engine.current_schema.properties['zone_copy'].extras == {'enum': ['A', 'B']}

    def test_set_title_and_description(self, engine):
        engine.set_title('Bin Position')
        engine.set_description('Where a bin is stored')

        schema = engine.current_schema
        assert schema.title == 'Bin Position'
        assert schema.description == 'Where a bin is stored'

    def test_clear_title(self, engine):
        """An empty title is omitted from the schema."""
        engine.set_title('')

        assert 'title' not in engine.current_schema.to_dict()

    def test_set_schema_type(self, engine):
        """Changing the root type keeps the title and drops the rows."""
        assert engine.set_schema_type(SchemaType.ARRAY) is True

        assert engine.state.items == []
        assert engine.current_schema.to_dict() == {
            'type': 'array', 'title': 'Position', 'items': {'type': 'string'}
        }

        engine.set_array_item_type(SchemaType.INTEGER)
        assert engine.commit().items.type == SchemaType.INTEGER

    def test_set_same_schema_type(self, engine):
        assert engine.set_schema_type(SchemaType.OBJECT) is False
        assert len(engine.state.items) == 3

    def test_set_array_item_type_on_object(self, engine):
        """The root item type only applies to array roots."""
        assert engine.set_array_item_type(SchemaType.NUMBER) is False

    def test_primitive_root(self, empty_engine):
        empty_engine.set_title('Count')
        empty_engine.set_schema_type(SchemaType.INTEGER)

        assert empty_engine.commit().to_dict() == {'type': 'integer', 'title': 'Count'}

    def test_raw_edit_refused_in_visual_tab(self, engine):
        """Raw text can only be edited in the raw tab."""
        before = engine.state.raw_text

        assert engine.edit_raw_text('{}') is False
        assert engine.state.raw_text == before


class TestRawEdits:
    """Raw text edits and tab switching."""

    def test_switch_to_raw(self, engine):
        """Switching to raw regenerates the text from the rows."""
        assert engine.switch_tab(EditorTab.RAW) is True

        assert engine.state.active_tab == EditorTab.RAW
        assert parse(engine.state.raw_text).schema == JsonSchema.model_validate(POSITION_SCHEMA)

    def test_switch_to_same_tab(self, engine):
        assert engine.switch_tab(EditorTab.VISUAL) is False

    def test_valid_raw_edit_updates_current_schema(self, engine):
        engine.switch_tab(EditorTab.RAW)

        engine.edit_raw_text('{"type": "object", "properties": {"bay": {"type": "string"}}}')

        assert engine.state.raw_parse_error is None
        assert list(engine.current_schema.properties) == ['bay']
        # rows are only replaced when switching back
        assert engine.state.item_names == ['zone', 'aisle', 'bins']

    def test_invalid_raw_edit(self):
        """Malformed text sets the parse error and clears the current schema."""
        engine = _raw_engine('{invalid json')

        assert engine.state.raw_parse_error.startswith("Invalid JSON")
        assert engine.current_schema is None
        assert engine.can_switch_tab is False

    def test_shape_error_reports_path(self):
        engine = _raw_engine('{"type": "object", "properties": {"shelf": {"type": "strin"}}}')

        assert "properties.shelf.type" in engine.state.raw_parse_error

    def test_switch_back_refused_while_invalid(self):
        """Rows and tab stay unchanged while the raw text does not parse."""
        engine = _raw_engine('{invalid json')
        rows_before = [(item.id, item.name) for item in engine.state.items]

        assert engine.switch_tab(EditorTab.VISUAL) is False

        assert engine.state.active_tab == EditorTab.RAW
        assert [(item.id, item.name) for item in engine.state.items] == rows_before
        assert engine.state.raw_parse_error is not None

    def test_blank_text_is_not_an_error_while_typing(self):
        """Blank text clears the current schema without showing an error."""
        engine = _raw_engine('   ')

        assert engine.state.raw_parse_error is None
        assert engine.current_schema is None

    def test_blank_text_refuses_switch(self):
        engine = _raw_engine('')

        assert engine.switch_tab(EditorTab.VISUAL) is False
        assert engine.state.raw_parse_error == "Schema text is empty"

    def test_blank_text_disables_switch(self):
        """Blank text blocks the switch before it is attempted."""
        engine = _raw_engine('   ')

        assert engine.can_switch_tab is False

    def test_overflowing_number_keeps_raw_tab(self):
        """Numbers that cannot be written back as JSON never reach the rows."""
        engine = _raw_engine('{"type": "object", "properties": {"a": {"type": "number", "maximum": 1e400}}}')

        assert engine.state.raw_parse_error is not None
        assert engine.switch_tab(EditorTab.VISUAL) is False
        assert engine.state.item_names == ['zone', 'aisle', 'bins']

    def test_deeply_nested_raw_text(self):
        """Pathologically nested text is reported as an error instead of raising."""
        engine = _raw_engine('[' * 200000)

        assert "nested too deeply" in engine.state.raw_parse_error
        assert engine.can_switch_tab is False

    def test_fixing_text_allows_switch(self):
        engine = _raw_engine('{invalid json')

        engine.edit_raw_text('{"type": "object"}')

        assert engine.can_switch_tab is True
        assert engine.switch_tab(EditorTab.VISUAL) is True
        assert engine.state.items == []

    def test_switch_back_applies_raw_schema(self, engine):
        """Switching back projects the raw schema into rows."""
        engine.switch_tab(EditorTab.RAW)
        data = dict(POSITION_SCHEMA)
        data['properties'] = dict(POSITION_SCHEMA['properties'], bay={'type': 'boolean'})
        engine.edit_raw_text(json.dumps(data))

        assert engine.switch_tab(EditorTab.VISUAL) is True

        assert engine.state.item_names == ['zone', 'aisle', 'bins', 'bay']
        assert engine.state.items[3].type == SchemaType.BOOLEAN

    def test_switch_back_reuses_row_ids(self, engine):
        """Rows keep their ids across a raw round trip when names match."""
        ids_before = [item.id for item in engine.state.items]

        engine.switch_tab(EditorTab.RAW)
        engine.switch_tab(EditorTab.VISUAL)

        assert [item.id for item in engine.state.items] == ids_before

    def test_switch_back_without_id_reuse(self):
        engine = EditorEngine(POSITION_SCHEMA, EditorConfig(reuse_item_ids=False))
        ids_before = {item.id for item in engine.state.items}

        engine.switch_tab(EditorTab.RAW)
        engine.switch_tab(EditorTab.VISUAL)

        assert not ids_before & {item.id for item in engine.state.items}

    def test_raw_round_trip_is_idempotent(self, engine):
        """Switching back and forth without edits leaves the text unchanged."""
        engine.switch_tab(EditorTab.RAW)
        text = engine.state.raw_text

        engine.switch_tab(EditorTab.VISUAL)
        engine.switch_tab(EditorTab.RAW)

        assert engine.state.raw_text == text

    def test_visual_edit_refused_in_raw_tab(self, engine):
        """Visual intents are refused while raw text is authoritative."""
        engine.switch_tab(EditorTab.RAW)

        assert engine.add_property(name='bay') is None
        assert engine.set_title('Other') is False
        assert engine.state.item_names == ['zone', 'aisle', 'bins']

    def test_commit_raw(self, engine):
        engine.switch_tab(EditorTab.RAW)
        engine.edit_raw_text('{"type": "string", "title": "Code"}')

        assert engine.commit().to_dict() == {'type': 'string', 'title': 'Code'}

    def test_commit_refused_while_invalid(self):
        engine = _raw_engine('{invalid json')

        with pytest.raises(UncommittableSchemaError) as exc_info:
            engine.commit()

        assert exc_info.value.message.startswith("Schema cannot be saved: Invalid JSON")

    def test_enum_survives_raw_round_trip(self, engine):
        """Opaque keywords typed in raw mode survive the visual editor."""
        engine.switch_tab(EditorTab.RAW)
        data = json.loads(engine.state.raw_text)
        data['properties']['aisle']['minimum'] = 1
        engine.edit_raw_text(json.dumps(data))
        engine.switch_tab(EditorTab.VISUAL)

        aisle = engine.state.items[1]
        engine.update_property(aisle.id, description='Aisle number')

        assert engine.commit().properties['aisle'].extras == {'minimum': 1}


class TestApplyEdit:
    """The intent API."""

    def test_apply_edit_returns_state(self, empty_engine):
        state = empty_engine.apply_edit(AddProperty(name='shelf'))

        assert state is empty_engine.state
        assert state.item_names == ['shelf']

    def test_apply_edit_with_item_id(self, empty_engine):
        """Hosts may choose the row id of a new property."""
        empty_engine.apply_edit(AddProperty(name='shelf', item_id='row-1'))
        empty_engine.apply_edit(UpdateProperty('row-1', {'type': SchemaType.NUMBER}))
        empty_engine.apply_edit(RemoveProperty('row-1'))

        assert empty_engine.state.items == []

    def test_unknown_intent(self, engine):
        with pytest.raises(TypeError):
            engine.apply_edit(object())

    def test_on_change_called_for_accepted_edits(self):
        """The callback receives the current schema after each accepted edit."""
        on_change = MagicMock()
        engine = EditorEngine(on_change=on_change)
        on_change.assert_not_called()

        engine.apply_edit(SetTitle('Position'))

        on_change.assert_called_once_with(engine.current_schema)
        assert on_change.call_args[0][0].title == 'Position'

    def test_on_change_not_called_for_refused_edits(self):
        on_change = MagicMock()
        engine = EditorEngine(on_change=on_change)

        engine.apply_edit(EditRawText('{}'))
        engine.apply_edit(RemoveProperty('no-such-id'))

        on_change.assert_not_called()

    def test_on_change_receives_none_for_invalid_raw(self):
        on_change = MagicMock()
        engine = EditorEngine(on_change=on_change)
        engine.apply_edit(SwitchTab(EditorTab.RAW))

        engine.apply_edit(EditRawText('{invalid json'))

        on_change.assert_called_with(None)

    def test_snapshot_is_independent(self, engine):
        """Snapshots do not change with later edits."""
        snapshot = engine.snapshot()

        engine.remove_property(engine.state.items[0].id)

        assert snapshot.item_names == ['zone', 'aisle', 'bins']
        assert engine.state.item_names == ['aisle', 'bins']


class TestChangeTracking:
    """Unsaved change detection."""

    def test_no_changes_after_load(self, engine):
        assert not engine.has_unsaved_changes()
        assert not any(engine.changes_since_load().values())

    def test_changes_after_edit(self, engine):
        engine.add_property(name='bay')

        assert engine.has_unsaved_changes()
        assert engine.changes_since_load()['added'] == ['properties.bay']

    def test_reorder_is_a_change(self, engine):
        engine.move_property_down(engine.state.items[0].id)

        assert engine.changes_since_load()['reordered'] == ['properties']

    def test_mark_saved(self, engine):
        engine.add_property(name='bay')

        engine.mark_saved(engine.commit())

        assert not engine.has_unsaved_changes()

    def test_invalid_raw_counts_as_unsaved(self):
        engine = _raw_engine('{invalid json')

        assert engine.has_unsaved_changes()

    def test_load_schema_resets(self, engine):
        """Loading a schema replaces the rows and the baseline."""
        engine.switch_tab(EditorTab.RAW)
        engine.edit_raw_text('{invalid json')

        assert engine.load_schema({'type': 'object', 'properties': {'bay': {'type': 'string'}}}) is True

        assert engine.state.active_tab == EditorTab.VISUAL
        assert engine.state.raw_parse_error is None
        assert engine.state.item_names == ['bay']
        assert not engine.has_unsaved_changes()

    def test_load_none_resets_to_empty(self, engine):
        engine.apply_edit(LoadSchema(None))

        assert engine.commit() == empty_object_schema()
