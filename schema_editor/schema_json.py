"""
JSON codec for schema values.

parse() turns editor text into a JsonSchema and reports failures as values,
never by raising. stringify() produces deterministic text (sorted keywords) so
identical schemas always serialize identically.
"""

import json
import math
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

from pydantic import ValidationError

from .exceptions import EmptyInputError, MalformedJSONError, SchemaParseError, SchemaShapeError
from .schema_model import JsonSchema

logger = logging.getLogger(__name__)

DEFAULT_INDENT = 2
_MIN_INDENT = 2


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parse(): exactly one of schema and error is set."""

    schema: Optional[JsonSchema] = None
    error: Optional[SchemaParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _parse_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        raise ValueError(f"{literal} is out of range for a JSON number")
    return value


def _load_json(text: str) -> Tuple[Any, Optional[SchemaParseError]]:
    if text is None or not text.strip():
        return None, EmptyInputError()
    try:
        return json.loads(text, parse_constant=_reject_constant, parse_float=_parse_float), None
    except json.JSONDecodeError as e:
        return None, MalformedJSONError(e.msg, e.lineno, e.colno)
    except ValueError as e:
        return None, MalformedJSONError(str(e))
    except RecursionError:
        return None, MalformedJSONError("document is nested too deeply")


def format_error_path(loc) -> str:
    """Join a pydantic error location into a dot-separated key path."""
    return '.'.join(str(part) for part in loc)


def _clean_message(message: str) -> str:
    # pydantic prefixes errors raised from validators
    prefix = "Value error, "
    return message[len(prefix):] if message.startswith(prefix) else message


def shape_error_from_validation(error: ValidationError) -> SchemaShapeError:
    """
    Convert a pydantic ValidationError into a SchemaShapeError.

    The first reported location becomes the error path; every problem is kept
    in ``problems`` as ``path: message``.
    """
    problems = []
    first_path = ""
    first_detail = "schema does not match the supported shape"
    for index, err in enumerate(error.errors()):
        path = format_error_path(err.get('loc', ()))
        detail = _clean_message(err.get('msg', ''))
        if index == 0:
            first_path, first_detail = path, detail
        problems.append(f"{path}: {detail}" if path else detail)
    return SchemaShapeError(first_detail, first_path, problems)


def schema_from_data(data: Any) -> ParseResult:
    """
    Validate already-decoded JSON data into a JsonSchema.

    Args:
        data: Decoded JSON value

    Returns:
        ParseResult with the schema, or with a SchemaShapeError
    """
    if not isinstance(data, dict):
        return ParseResult(error=SchemaShapeError(
            f"schema must be a JSON object, got {type(data).__name__}"
        ))
    try:
        return ParseResult(schema=JsonSchema.model_validate(data))
    except ValidationError as e:
        shape_error = shape_error_from_validation(e)
        logger.debug(f"Schema shape rejected: {shape_error.problems}")
        return ParseResult(error=shape_error)
    except RecursionError:
        return ParseResult(error=SchemaShapeError("schema is nested too deeply"))


def parse(text: str) -> ParseResult:
    """
    Parse schema text into a JsonSchema.

    Args:
        text: JSON text typed by the user

    Returns:
        ParseResult holding the schema, or one of EmptyInputError,
        MalformedJSONError, SchemaShapeError
    """
    data, error = _load_json(text)
    if error is not None:
        return ParseResult(error=error)
    return schema_from_data(data)


def parse_to_dict(text: str) -> Tuple[Optional[Dict[str, Any]], Optional[SchemaParseError]]:
    """
    Decode schema text into a dictionary without checking its schema shape.

    Returns:
        Tuple of (dictionary or None, error or None)
    """
    data, error = _load_json(text)
    if error is not None:
        return None, error
    if not isinstance(data, dict):
        return None, SchemaShapeError(f"JSON must be an object, got {type(data).__name__}")
    return data, None


def _sorted_json(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _sorted_json(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [_sorted_json(item) for item in value]
    return value


def order_schema_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sort the keywords of a serialized schema node, recursively.

    Property names under 'properties' keep their order; it is part of the schema.
    """
    ordered: Dict[str, Any] = {}
    for key in sorted(data):
        value = data[key]
        if key == 'properties' and isinstance(value, dict):
            ordered[key] = {
                name: order_schema_keys(sub) if isinstance(sub, dict) else sub
                for name, sub in value.items()
            }
        elif key == 'items' and isinstance(value, dict):
            ordered[key] = order_schema_keys(value)
        else:
            ordered[key] = _sorted_json(value)
    return ordered


def stringify(schema: Optional[JsonSchema], pretty_print: bool = True,
              indent: int = DEFAULT_INDENT) -> str:
    """
    Convert a schema to JSON text with sorted keywords.

    Args:
        schema: Schema to convert; None yields an empty string
        pretty_print: Indent output when True, compact separators otherwise
        indent: Spaces per indentation level in pretty mode (at least 2)

    Returns:
        JSON text, or an empty string if the schema cannot be encoded
    """
    if schema is None:
        return ""

    try:
        data = order_schema_keys(schema.to_dict())
        if pretty_print:
            return json.dumps(data, indent=max(indent, _MIN_INDENT), ensure_ascii=False,
                              allow_nan=False)
        return json.dumps(data, separators=(',', ':'), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as e:
        logger.error(f"Failed to encode schema: {e}", exc_info=True)
        return ""
