"""
Unit tests for property name validation.
"""

import pytest

from schema_editor.property_items import PropertyItem
from schema_editor.schema_model import JsonSchema, array_schema
from schema_editor.schema_validation import (
    ValidationResult,
    is_key_unique,
    validate_items,
    validate_property_key,
    validate_schema,
)


class TestValidatePropertyKey:
    """Test cases for validate_property_key."""

    @pytest.mark.parametrize("key", ["shelf", "_internal", "bay_2", "A"])
    def test_valid_keys(self, key):
        """Letters, digits and underscores starting with a letter or underscore are valid."""
        assert validate_property_key(key).is_valid

    @pytest.mark.parametrize("key", ["", "   "])
    def test_blank_key(self, key):
        """Blank names are reported as missing."""
        result = validate_property_key(key)

        assert not result.is_valid
        assert result.error == "Property name is required"

    @pytest.mark.parametrize("key", ["2shelf", "shelf name", "shelf-name", "shelf.name"])
    def test_invalid_characters(self, key):
        """Names outside the pattern are rejected."""
        result = validate_property_key(key)

        assert not result.is_valid
        assert result.error.startswith("Must start with a letter or underscore")

    def test_too_long(self):
        """Names longer than the limit are rejected."""
        result = validate_property_key("a" * 11, max_length=10)

        assert not result.is_valid
        assert "too long" in result.error

    def test_custom_pattern(self):
        """A custom pattern replaces the default one."""
        assert validate_property_key("shelf-name", pattern=r"^[a-z-]+$").is_valid
        assert not validate_property_key("Shelf", pattern=r"^[a-z-]+$").is_valid


class TestIsKeyUnique:
    """Test cases for is_key_unique."""

    def test_unique(self):
        assert is_key_unique("bay", ["shelf", "zone"])

    def test_not_unique(self):
        assert not is_key_unique("shelf", ["shelf", "zone"])

    def test_excluding_current_name(self):
        """Renaming a key to itself is not a conflict."""
        assert is_key_unique("shelf", ["shelf", "zone"], excluding="shelf")


class TestValidateSchema:
    """Test cases for validate_schema."""

    def test_valid_schema(self):
        schema = JsonSchema.model_validate({
            'type': 'object',
            'properties': {'shelf': {'type': 'string'}},
            'required': ['shelf']
        })

        assert validate_schema(schema) == ValidationResult.valid()

    def test_invalid_property_name(self):
        """Property names that do not match the pattern are reported."""
        schema = JsonSchema.model_validate({'type': 'object', 'properties': {'shelf name': {'type': 'string'}}})

        result = validate_schema(schema)

        assert not result.is_valid
        assert "'shelf name'" in result.error

    def test_non_object_schema(self):
        """Schemas without properties are valid."""
        assert validate_schema(array_schema()).is_valid


class TestValidateItems:
    """Test cases for validate_items."""

    def test_no_problems(self):
        items = [PropertyItem(name='shelf'), PropertyItem(name='zone')]

        assert validate_items(items) == {}

    def test_blank_name_reported(self):
        """A blank row is reported but does not affect the others."""
        blank = PropertyItem(name='')
        items = [blank, PropertyItem(name='zone')]

        problems = validate_items(items)

        assert problems == {blank.id: ["Property name is required"]}

    def test_duplicate_names_reported_on_every_row(self):
        """Every row sharing a name is flagged."""
        first = PropertyItem(name='shelf')
        second = PropertyItem(name='shelf')

        problems = validate_items([first, second])

        assert set(problems) == {first.id, second.id}
        assert "last one wins" in problems[first.id][0]
