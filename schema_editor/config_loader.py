"""
Configuration loading utilities for the schema editor.

This module loads the application configuration from YAML with fallback to
defaults, and builds the EditorConfig that is passed explicitly to the
editor engine.
"""

import yaml
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging
from copy import deepcopy

from .exceptions import ConfigurationError
from .property_items import DEFAULT_PROPERTY_NAME
from .schema_validation import DEFAULT_KEY_PATTERN, DEFAULT_MAX_NAME_LENGTH

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get the default configuration.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'Schema Editor',
            'version': '1.0.0',
            'debug': False
        },
        'ui': {
            'page_title': 'Position Schema Editor',
            'sidebar_title': 'Schema'
        },
        'editor': {
            'indent': 2,
            'default_property_name': DEFAULT_PROPERTY_NAME,
            'property_key_pattern': DEFAULT_KEY_PATTERN,
            'max_property_name_length': DEFAULT_MAX_NAME_LENGTH,
            'reuse_item_ids': True,
            'initial_schema': None
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        }
    }


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load application configuration.

    A missing, empty or unreadable file is logged and replaced by defaults.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        return default_config

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)

        if user_config is None:
            logger.warning(f"Configuration file is empty: {config_path}")
            return default_config

        if not isinstance(user_config, dict):
            logger.error(f"Configuration file is not a valid dictionary: {config_path}")
            logger.info("Using default configuration")
            return default_config

        config = deep_merge(default_config, user_config)

        logger.info(f"Successfully loaded configuration from {config_path}")
        return config

    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config

    except (IOError, OSError) as e:
        logger.error(f"Failed to read configuration file {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config


def get_config_value(config: Dict[str, Any], section: str, key: str, default: Any = None) -> Any:
    """Read config[section][key], falling back to default."""
    section_values = config.get(section)
    if not isinstance(section_values, dict):
        return default
    return section_values.get(key, default)


@dataclass(frozen=True)
class EditorConfig:
    """
    Settings injected into the editor engine.

    Attributes:
        indent: Spaces per level in the raw JSON text (at least 2)
        default_property_name: Base name for newly added properties
        property_key_pattern: Regex a property name must fully match
        max_property_name_length: Longest accepted property name
        reuse_item_ids: Keep row ids across raw->visual switches when names match
        initial_schema: Optional path of a JSON schema the host opens on start
    """
    indent: int = 2
    default_property_name: str = DEFAULT_PROPERTY_NAME
    property_key_pattern: str = DEFAULT_KEY_PATTERN
    max_property_name_length: int = DEFAULT_MAX_NAME_LENGTH
    reuse_item_ids: bool = True
    initial_schema: Optional[Path] = None

    def __post_init__(self):
        if isinstance(self.indent, bool) or not isinstance(self.indent, int) or self.indent < 2:
            raise ConfigurationError('indent', self.indent, "must be an integer of at least 2")

        if not isinstance(self.default_property_name, str) or not self.default_property_name.strip():
            raise ConfigurationError('default_property_name', self.default_property_name,
                                     "must be a non-empty string")

        try:
            re.compile(self.property_key_pattern)
        except (re.error, TypeError) as e:
            raise ConfigurationError('property_key_pattern', self.property_key_pattern,
                                     f"is not a valid regular expression ({e})") from e

        if (isinstance(self.max_property_name_length, bool)
                or not isinstance(self.max_property_name_length, int)
                or self.max_property_name_length <= 0):
            raise ConfigurationError('max_property_name_length', self.max_property_name_length,
                                     "must be a positive integer")

        if not isinstance(self.reuse_item_ids, bool):
            raise ConfigurationError('reuse_item_ids', self.reuse_item_ids, "must be true or false")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'EditorConfig':
        """
        Create EditorConfig from a configuration dictionary.

        Args:
            config: Configuration dictionary containing an 'editor' section

        Returns:
            EditorConfig with values from config or defaults

        Raises:
            ConfigurationError: If a configured value is invalid
        """
        editor = config.get('editor') or {}
        if not isinstance(editor, dict):
            raise ConfigurationError('editor', editor, "section must be a mapping")

        defaults = cls()
        initial_schema = editor.get('initial_schema')

        return cls(
            indent=editor.get('indent', defaults.indent),
            default_property_name=editor.get('default_property_name', defaults.default_property_name),
            property_key_pattern=editor.get('property_key_pattern', defaults.property_key_pattern),
            max_property_name_length=editor.get('max_property_name_length',
                                                defaults.max_property_name_length),
            reuse_item_ids=editor.get('reuse_item_ids', defaults.reuse_item_ids),
            initial_schema=Path(initial_schema) if initial_schema else None,
        )


def load_editor_config(config_path: Optional[Path] = None) -> EditorConfig:
    """
    Load config.yaml and build the EditorConfig from it.

    Raises:
        ConfigurationError: If the file holds invalid editor settings
    """
    return EditorConfig.from_config(load_config(config_path))
