"""
Streamlit view for the schema editor.
Renders an EditorEngine kept in session state and turns widget changes into
engine intents. The view holds no schema state of its own.
"""

import streamlit as st
import logging
from typing import Optional

from .config_loader import EditorConfig
from .diff_utils import format_diff_for_display
from .editor_engine import EditorEngine, EditorTab
from .property_items import PropertyItem
from .schema_model import JsonSchema, SchemaType

logger = logging.getLogger(__name__)

ENGINE_KEY = "schema_editor_engine"
RAW_INPUT_KEY = "schema_editor_raw_input"

ROOT_TYPES = list(SchemaType)
PROPERTY_TYPES = list(SchemaType)
ARRAY_ITEM_TYPES = list(SchemaType)


class SchemaEditorView:
    """Streamlit rendering of one schema editing session."""

    @staticmethod
    def get_engine(schema: Optional[JsonSchema] = None,
                   config: Optional[EditorConfig] = None) -> EditorEngine:
        """Return the session's engine, creating it from schema on first use."""
        if ENGINE_KEY not in st.session_state:
            st.session_state[ENGINE_KEY] = EditorEngine(schema, config)
            logger.debug("SchemaEditorView: created editor engine for session")
        return st.session_state[ENGINE_KEY]

    @staticmethod
    def reset(schema: Optional[JsonSchema] = None) -> None:
        """Load a different schema into the session's engine."""
        engine = SchemaEditorView.get_engine()
        engine.load_schema(schema)
        st.session_state[RAW_INPUT_KEY] = engine.state.raw_text

    @staticmethod
    def render(engine: EditorEngine, disabled: bool = False) -> Optional[JsonSchema]:
        """
        Render the editor.

        Returns:
            The engine's current schema (None while raw text does not parse)
        """
        try:
            SchemaEditorView._render_tab_selector(engine, disabled)

            if engine.state.active_tab == EditorTab.VISUAL:
                SchemaEditorView._render_visual_editor(engine, disabled)
            else:
                SchemaEditorView._render_raw_editor(engine, disabled)

            SchemaEditorView._render_change_summary(engine)
            return engine.current_schema

        except Exception as e:
            logger.error(f"Unexpected error in schema editor: {e}", exc_info=True)
            st.error("❌ **Unexpected Error**")
            st.error(f"**Technical Details:** {str(e)}")
            st.info("Refresh the page to restart the editor")
            return None

    @staticmethod
    def _render_tab_selector(engine: EditorEngine, disabled: bool) -> None:
        tabs = list(EditorTab)
        state = engine.state
        selected = st.radio(
            "Editor Mode",
            options=tabs,
            index=tabs.index(state.active_tab),
            format_func=lambda tab: tab.label,
            horizontal=True,
            disabled=disabled or not engine.can_switch_tab,
            help="Fix the JSON errors before switching back to the visual editor"
            if not engine.can_switch_tab else None,
        )

        if selected == state.active_tab:
            return

        if engine.switch_tab(selected):
            if selected == EditorTab.RAW:
                st.session_state[RAW_INPUT_KEY] = engine.state.raw_text
            st.rerun()
        else:
            st.error(engine.state.raw_parse_error or "Cannot switch editor mode")

    @staticmethod
    def _render_visual_editor(engine: EditorEngine, disabled: bool) -> None:
        state = engine.state
        st.subheader("📝 Schema Settings")

        new_type = st.selectbox(
            "Schema Type",
            options=ROOT_TYPES,
            index=ROOT_TYPES.index(state.schema_type),
            format_func=lambda t: f"{t.display_label} - {t.type_description}",
            disabled=disabled,
            key="schema_editor_root_type",
        )
        if new_type != state.schema_type:
            engine.set_schema_type(new_type)
            st.rerun()

        new_title = st.text_input("Title (optional)", value=state.title, disabled=disabled,
                                  key="schema_editor_title")
        if new_title != state.title:
            engine.set_title(new_title)

        new_description = st.text_input("Description (optional)", value=state.description,
                                        disabled=disabled, key="schema_editor_description")
        if new_description != state.description:
            engine.set_description(new_description)

        if state.schema_type == SchemaType.OBJECT:
            SchemaEditorView._render_property_list(engine, disabled)
        elif state.schema_type == SchemaType.ARRAY:
            st.subheader("Array Configuration")
            item_type = st.selectbox(
                "Array Item Type",
                options=ARRAY_ITEM_TYPES,
                index=ARRAY_ITEM_TYPES.index(state.array_item_type),
                format_func=lambda t: t.display_label,
                disabled=disabled,
                key="schema_editor_array_item_type",
            )
            if item_type != state.array_item_type:
                engine.set_array_item_type(item_type)
        else:
            st.caption("This schema type has no additional configuration")

    @staticmethod
    def _render_property_list(engine: EditorEngine, disabled: bool) -> None:
        state = engine.state
        st.subheader("🏷️ Properties")

        col1, col2 = st.columns([2, 1])
        with col1:
            if st.button("➕ Add Property", type="primary", disabled=disabled,
                         key="schema_editor_add_property"):
                item = engine.add_property()
                if item is not None:
                    logger.debug(f"SchemaEditorView: added property '{item.name}'")
                st.rerun()
        with col2:
            st.metric("Properties", len(state.items))

        if not state.items:
            st.info("No properties defined yet. Click 'Add Property' to get started.")
            return

        problems = engine.validate()
        for index, item in enumerate(list(state.items)):
            SchemaEditorView._render_property_editor(engine, index, item, problems.get(item.id, []), disabled)

    @staticmethod
    def _render_property_editor(engine: EditorEngine, index: int, item: PropertyItem,
                                errors: list, disabled: bool) -> None:
        item_id = item.id
        total = len(engine.state.items)
        required_indicator = " 🔴" if item.required else ""
        error_indicator = " ⚠️" if errors else ""
        header = f"{item.name or 'Unnamed property'} ({item.type.value}){required_indicator}{error_indicator}"

        with st.expander(header, expanded=bool(errors)):
            for error in errors:
                st.warning(error)

            col1, col2, col3, col4 = st.columns(4)
            with col1:
                if st.button("🔼", key=f"move_up_{item_id}", help="Move property up",
                             disabled=disabled or index == 0):
                    engine.move_property_up(item_id)
                    st.rerun()
            with col2:
                if st.button("🔽", key=f"move_down_{item_id}", help="Move property down",
                             disabled=disabled or index == total - 1):
                    engine.move_property_down(item_id)
                    st.rerun()
            with col3:
                if st.button("📋", key=f"duplicate_{item_id}", help="Duplicate this property",
                             disabled=disabled):
                    engine.duplicate_property(item_id)
                    st.rerun()
            with col4:
                if st.button("🗑️", key=f"delete_{item_id}", help="Delete this property",
                             disabled=disabled):
                    engine.remove_property(item_id)
                    st.rerun()

            new_name = st.text_input("Property Name", value=item.name, key=f"name_{item_id}",
                                     disabled=disabled, placeholder="e.g., shelf")
            new_type = st.selectbox(
                "Type",
                options=PROPERTY_TYPES,
                index=PROPERTY_TYPES.index(item.type),
                format_func=lambda t: t.display_label,
                key=f"type_{item_id}",
                disabled=disabled,
            )
            new_required = st.checkbox("Required", value=item.required, key=f"required_{item_id}",
                                       disabled=disabled)
            new_description = st.text_input("Description (optional)", value=item.description,
                                            key=f"description_{item_id}", disabled=disabled)

            changes = {}
            if new_name != item.name:
                changes['name'] = new_name
            if new_type != item.type:
                changes['type'] = new_type
            if new_required != item.required:
                changes['required'] = new_required
            if new_description != item.description:
                changes['description'] = new_description

            if item.type == SchemaType.ARRAY and 'type' not in changes:
                item_type = st.selectbox(
                    "Array Item Type",
                    options=ARRAY_ITEM_TYPES,
                    index=ARRAY_ITEM_TYPES.index(item.array_item_type),
                    format_func=lambda t: t.display_label,
                    key=f"array_item_type_{item_id}",
                    disabled=disabled,
                )
                if item_type != item.array_item_type:
                    changes['array_item_type'] = item_type

            if item.has_opaque_keywords:
                keywords = sorted(set(item.extras) | {f"items.{k}" for k in item.item_extras})
                st.caption(f"Also defines {', '.join(keywords)}; edit these in Raw JSON")

            if changes:
                engine.update_property(item_id, **changes)
                if 'type' in changes:
                    st.rerun()

    @staticmethod
    def _render_raw_editor(engine: EditorEngine, disabled: bool) -> None:
        state = engine.state
        if RAW_INPUT_KEY not in st.session_state:
            st.session_state[RAW_INPUT_KEY] = state.raw_text

        text = st.text_area("JSON Schema", key=RAW_INPUT_KEY, height=320, disabled=disabled)
        if text != state.raw_text:
            engine.edit_raw_text(text)

        if state.raw_parse_error:
            st.error(f"⚠️ {state.raw_parse_error}")
        elif state.current_schema is None:
            st.info("Enter a JSON schema to enable saving")

    @staticmethod
    def _render_change_summary(engine: EditorEngine) -> None:
        if not engine.has_unsaved_changes():
            return
        st.caption("Unsaved changes")
        if engine.current_schema is None:
            return
        with st.expander("Changes since load", expanded=False):
            for line in format_diff_for_display(engine.changes_since_load()):
                st.markdown(f"- `{line}`")
