"""
Advisory validation for schema property names.

The editor builds schemas leniently (blank names are skipped, repeated names
resolve last-write-wins); these checks report what the user should fix
without blocking any edit.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Iterable

from .property_items import PropertyItem
from .schema_model import JsonSchema, SchemaType

logger = logging.getLogger(__name__)

DEFAULT_KEY_PATTERN = r'^[a-zA-Z_][a-zA-Z0-9_]*$'
DEFAULT_MAX_NAME_LENGTH = 100


@dataclass(frozen=True)
class ValidationResult:
    """Result of a validation check."""
    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def valid(cls) -> 'ValidationResult':
        return cls(True)

    @classmethod
    def invalid(cls, error: str) -> 'ValidationResult':
        return cls(False, error)


def validate_property_key(key: str, pattern: str = DEFAULT_KEY_PATTERN,
                          max_length: int = DEFAULT_MAX_NAME_LENGTH) -> ValidationResult:
    """
    Validate a property name.

    Args:
        key: Property name
        pattern: Regular expression the whole name must match
        max_length: Maximum name length

    Returns:
        ValidationResult
    """
    if not key or not key.strip():
        return ValidationResult.invalid("Property name is required")

    if len(key) > max_length:
        return ValidationResult.invalid(f"Property name is too long (max {max_length} characters)")

    if not re.fullmatch(pattern, key):
        return ValidationResult.invalid(
            "Must start with a letter or underscore, and contain only letters, numbers, and underscores"
        )

    return ValidationResult.valid()


def is_key_unique(key: str, existing_keys: Iterable[str], excluding: Optional[str] = None) -> bool:
    """Check whether key is absent from existing_keys, ignoring the key currently being renamed."""
    others = [k for k in existing_keys if excluding is None or k != excluding]
    return key not in others


def validate_schema(schema: JsonSchema, pattern: str = DEFAULT_KEY_PATTERN,
                    max_length: int = DEFAULT_MAX_NAME_LENGTH) -> ValidationResult:
    """
    Validate the property names of an object schema.

    Non-object schemas are valid by default.
    """
    if schema.type != SchemaType.OBJECT:
        return ValidationResult.valid()

    properties = schema.properties or {}
    for key in properties:
        result = validate_property_key(key, pattern, max_length)
        if not result.is_valid:
            return ValidationResult.invalid(f"Invalid property key '{key}': {result.error}")

    for required_key in schema.required or []:
        if required_key not in properties:
            return ValidationResult.invalid(f"Required property '{required_key}' not found in properties")

    return ValidationResult.valid()


def validate_items(items: List[PropertyItem], pattern: str = DEFAULT_KEY_PATTERN,
                   max_length: int = DEFAULT_MAX_NAME_LENGTH) -> Dict[str, List[str]]:
    """
    Check every row's name.

    Returns:
        Mapping of row id to its problems; rows without problems are omitted
    """
    problems: Dict[str, List[str]] = {}
    for item in items:
        errors = []
        result = validate_property_key(item.name, pattern, max_length)
        if not result.is_valid:
            errors.append(result.error)
        elif not is_key_unique(item.name, [other.name for other in items if other is not item]):
            errors.append(f"Property name '{item.name}' is used more than once; the last one wins")
        if errors:
            problems[item.id] = errors

    if problems:
        logger.debug(f"validate_items: {len(problems)} of {len(items)} rows have problems")
    return problems
