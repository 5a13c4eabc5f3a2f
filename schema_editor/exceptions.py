"""
Custom exception classes for the schema editor.

Parse failures are carried as values by the codec (see schema_json.parse);
the classes here give them a common shape so the host can display message,
context and recovery suggestions the same way for every failure.
"""

import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class SchemaEditorError(Exception):
    """
    Base exception for schema editor errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class SchemaParseError(SchemaEditorError):
    """Base class for failures turning schema text into a schema value."""


class EmptyInputError(SchemaParseError):
    """
    Raised (or returned) when the schema text is blank.

    Treated as "no schema" by the editor: it disables saving but is not
    shown as an error while the user is typing.
    """

    def __init__(self, message: str = "Schema text is empty"):
        super().__init__(message, recovery_suggestions=[
            "Enter a JSON object describing the schema",
            "Switch back to the visual editor to start from the last valid schema"
        ])


class MalformedJSONError(SchemaParseError):
    """
    Text is not syntactically valid JSON.

    Attributes:
        line: 1-based line of the syntax error, when known
        column: 1-based column of the syntax error, when known
    """

    def __init__(self, detail: str, line: Optional[int] = None,
                 column: Optional[int] = None):
        self.detail = detail
        self.line = line
        self.column = column

        if line is not None and column is not None:
            message = f"Invalid JSON: {detail} (line {line}, column {column})"
        else:
            message = f"Invalid JSON: {detail}"

        context = {'detail': detail, 'line': line, 'column': column}
        recovery_suggestions = [
            "Check for missing commas, quotes or closing braces",
            "Keys and string values must use double quotes"
        ]
        super().__init__(message, context, recovery_suggestions)


class SchemaShapeError(SchemaParseError):
    """
    Text is valid JSON but does not describe a supported schema.

    Attributes:
        path: Dot-joined key path of the offending location ('' for the root)
        detail: Description of what is wrong at that location
    """

    def __init__(self, detail: str, path: str = "",
                 problems: Optional[List[str]] = None):
        self.detail = detail
        self.path = path
        self.problems = problems or []

        if path:
            message = f"Invalid schema at '{path}': {detail}"
        else:
            message = f"Invalid schema: {detail}"

        context = {'path': path, 'detail': detail, 'problems': self.problems}
        recovery_suggestions = [
            "Every schema needs a 'type' of object, array, string, number, integer or boolean",
            "'required' may only list names defined in 'properties'"
        ]
        super().__init__(message, context, recovery_suggestions)


class UncommittableSchemaError(SchemaEditorError):
    """
    Raised when the host asks for the schema while the raw text does not parse.

    The host must not continue its own save operation.
    """

    def __init__(self, parse_error: SchemaParseError):
        self.parse_error = parse_error
        message = f"Schema cannot be saved: {parse_error.message}"
        context = {
            'parse_error_type': type(parse_error).__name__,
            'parse_error_message': parse_error.message
        }
        recovery_suggestions = [
            "Fix the JSON shown in the raw editor",
            "Undo the raw edit and switch back to the visual editor"
        ]
        super().__init__(message, context, recovery_suggestions)


class ConfigurationError(SchemaEditorError):
    """
    Raised when an EditorConfig is constructed from invalid settings.

    Attributes:
        key: Name of the offending configuration key
        value: The rejected value
    """

    def __init__(self, key: str, value: Any, reason: str):
        self.key = key
        self.value = value
        message = f"Invalid editor configuration '{key}'={value!r}: {reason}"
        context = {'key': key, 'value': value, 'reason': reason}
        recovery_suggestions = [
            f"Correct or remove 'editor.{key}' in config.yaml",
            "Removed keys fall back to their defaults"
        ]
        super().__init__(message, context, recovery_suggestions)


def log_error_with_context(error: SchemaEditorError, operation: str) -> None:
    """
    Log a schema editor error with its context at warning level.

    Args:
        error: Error to log
        operation: Name of the operation that produced it
    """
    details = error.get_full_details()
    logger.warning(
        f"{operation} failed: {details['error_type']}: {details['message']} "
        f"(context: {details['context']})"
    )
