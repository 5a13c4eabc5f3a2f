"""
Main Streamlit application for the position schema editor.
Hosts the schema editor: loads configuration, opens an optional starting
schema and offers the committed schema for download.
"""

import streamlit as st
from pathlib import Path
import logging
from typing import Optional

from schema_editor.config_loader import EditorConfig, load_config, get_config_value
from schema_editor.exceptions import ConfigurationError, UncommittableSchemaError
from schema_editor.schema_editor_view import SchemaEditorView, ENGINE_KEY
from schema_editor.schema_json import parse, stringify
from schema_editor.schema_model import JsonSchema
from schema_editor.schema_validation import validate_schema


def get_logging_level(level_str):
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)


config = load_config()

# Configure logging from config
log_level_str = get_config_value(config, 'logging', 'level', 'INFO')
logging.basicConfig(
    level=get_logging_level(log_level_str),
    format=get_config_value(config, 'logging', 'format', '%(levelname)s - %(message)s')
)
logger = logging.getLogger(__name__)
logger.info(f"Logging configured to level: {log_level_str}")


def load_initial_schema(path: Optional[Path]) -> Optional[JsonSchema]:
    """
    Read the schema the editor should start from.

    Returns:
        The parsed schema, or None (new schema) if no path is configured or
        the file cannot be used
    """
    if path is None:
        return None

    try:
        text = Path(path).read_text(encoding='utf-8')
    except (IOError, OSError) as e:
        logger.error(f"Failed to read initial schema {path}: {e}")
        st.warning(f"Could not open {path}; starting with an empty schema")
        return None

    result = parse(text)
    if not result.ok:
        logger.error(f"Initial schema {path} is invalid: {result.error_message}")
        st.warning(f"{path} is not a valid schema ({result.error_message}); starting with an empty schema")
        return None

    logger.info(f"Loaded initial schema from {path}")
    return result.schema


def render_save_section(engine) -> None:
    """Offer the committed schema as JSON, or explain why it cannot be saved."""
    st.divider()
    st.subheader("💾 Save")

    try:
        schema = engine.commit()
    except UncommittableSchemaError as e:
        st.error(f"❌ {e.message}")
        for suggestion in e.recovery_suggestions:
            st.info(f"• {suggestion}")
        st.button("⬇️ Download schema", disabled=True, key="download_schema_disabled")
        return

    check = validate_schema(schema, engine.config.property_key_pattern,
                            engine.config.max_property_name_length)
    if not check.is_valid:
        st.warning(f"⚠️ {check.error}")

    text = stringify(schema, indent=engine.config.indent)
    if st.download_button("⬇️ Download schema", data=text, file_name="position_schema.json",
                          mime="application/json", key="download_schema"):
        engine.mark_saved(schema)
        st.success("Schema saved")

    with st.expander("Preview", expanded=False):
        st.code(text, language="json")


def main():
    """Main application entry point."""
    st.set_page_config(
        page_title=get_config_value(config, 'ui', 'page_title', 'Schema Editor'),
        page_icon="🗂️",
        layout="wide"
    )

    try:
        editor_config = EditorConfig.from_config(config)
    except ConfigurationError as e:
        logger.error(f"Invalid editor configuration: {e}")
        st.error("❌ **Configuration Error**")
        st.error(e.message)
        for suggestion in e.recovery_suggestions:
            st.info(f"• {suggestion}")
        st.stop()
        return

    st.title(get_config_value(config, 'ui', 'page_title', 'Schema Editor'))
    app_version = get_config_value(config, 'app', 'version', 'Unknown')
    st.caption(f"{get_config_value(config, 'app', 'name', 'Schema Editor')} v{app_version}")

    initial_schema = None
    if ENGINE_KEY not in st.session_state:
        initial_schema = load_initial_schema(editor_config.initial_schema)
    engine = SchemaEditorView.get_engine(initial_schema, editor_config)

    SchemaEditorView.render(engine)
    render_save_section(engine)


if __name__ == "__main__":
    main()
