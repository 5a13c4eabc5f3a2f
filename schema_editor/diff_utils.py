"""
Diff utilities for the schema editor.
Compares two schema values with DeepDiff so the host can tell whether the
editor holds unsaved changes and show what they are.
"""

from typing import Dict, Any, List, Optional
from deepdiff import DeepDiff
import logging

from .schema_model import JsonSchema

logger = logging.getLogger(__name__)

_ADDED = ('dictionary_item_added', 'iterable_item_added')
_REMOVED = ('dictionary_item_removed', 'iterable_item_removed')
_CHANGED = ('values_changed', 'type_changes')


def _as_dict(schema: Optional[JsonSchema]) -> Dict[str, Any]:
    return schema.to_dict() if schema is not None else {}


def _level_path(level) -> str:
    return '.'.join(str(part) for part in level.path(output_format='list'))


def _reordered_properties(original: Dict[str, Any], current: Dict[str, Any], prefix: str = '') -> List[str]:
    """Paths of 'properties' mappings whose shared keys appear in a different order."""
    paths = []
    orig_props = original.get('properties')
    cur_props = current.get('properties')
    if isinstance(orig_props, dict) and isinstance(cur_props, dict):
        path = f"{prefix}properties"
        shared_before = [k for k in orig_props if k in cur_props]
        shared_after = [k for k in cur_props if k in orig_props]
        if shared_before != shared_after:
            paths.append(path)
        for key in shared_after:
            if isinstance(orig_props[key], dict) and isinstance(cur_props[key], dict):
                paths.extend(_reordered_properties(orig_props[key], cur_props[key], f"{path}.{key}."))

    orig_items = original.get('items')
    cur_items = current.get('items')
    if isinstance(orig_items, dict) and isinstance(cur_items, dict):
        paths.extend(_reordered_properties(orig_items, cur_items, f"{prefix}items."))
    return paths


def calculate_schema_diff(original: Optional[JsonSchema], current: Optional[JsonSchema]) -> Dict[str, List[str]]:
    """
    Calculate differences between two schemas.

    Args:
        original: Schema the editing session started from (None for a new schema)
        current: Schema currently held by the editor

    Returns:
        Dict with 'added', 'removed', 'changed' and 'reordered' lists of
        dot-joined key paths
    """
    result: Dict[str, List[str]] = {'added': [], 'removed': [], 'changed': [], 'reordered': []}

    orig = _as_dict(original)
    cur = _as_dict(current)

    diff = DeepDiff(orig, cur, view='tree')

    for change_type, levels in diff.items():
        if change_type in _ADDED:
            bucket = result['added']
        elif change_type in _REMOVED:
            bucket = result['removed']
        elif change_type in _CHANGED:
            bucket = result['changed']
        else:
            logger.debug(f"calculate_schema_diff: ignoring change type {change_type}")
            continue
        for level in levels:
            bucket.append(_level_path(level))

    result['reordered'] = _reordered_properties(orig, cur)

    for key in result:
        result[key].sort()
    return result


def has_changes(original: Optional[JsonSchema], current: Optional[JsonSchema]) -> bool:
    """Check whether two schemas differ, including property order."""
    diff = calculate_schema_diff(original, current)
    return any(diff.values())


def format_diff_for_display(diff: Dict[str, List[str]]) -> List[str]:
    """
    Format a schema diff as human-readable lines.

    Args:
        diff: Output of calculate_schema_diff

    Returns:
        One line per change, or a single 'No changes' line
    """
    labels = (
        ('added', 'Added'),
        ('removed', 'Removed'),
        ('changed', 'Changed'),
        ('reordered', 'Reordered'),
    )
    lines = []
    for key, label in labels:
        for path in diff.get(key, []):
            lines.append(f"{label}: {path or '(root)'}")
    return lines or ["No changes"]
