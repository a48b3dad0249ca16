"""
Diff utilities for content documents.

Compares two field trees with DeepDiff and reports the changed locations as
canonical field paths (``columns[0].links[1].href``). Used for dirty
detection in the form binder and for activity descriptions.
"""

from typing import Any, Dict, List
from deepdiff import DeepDiff
import logging

from .field_paths import from_deepdiff_path

logger = logging.getLogger(__name__)

# DeepDiff report keys that carry changed locations
CHANGE_TYPES = (
    'values_changed',
    'type_changes',
    'dictionary_item_added',
    'dictionary_item_removed',
    'iterable_item_added',
    'iterable_item_removed',
)


def calculate_diff(original: Any, modified: Any) -> Dict[str, List[str]]:
    """
    Calculate differences between two field trees.

    List order is significant: reordering a repeatable group is a change.

    Args:
        original: Baseline tree
        modified: Working tree

    Returns:
        Mapping of change type to the canonical paths affected by it
    """
    diff = DeepDiff(original, modified, ignore_order=False, verbose_level=0)

    result: Dict[str, List[str]] = {}
    for change_type in CHANGE_TYPES:
        locations = diff.get(change_type)
        if not locations:
            continue
        # verbose_level=0 yields a set-like of paths for added/removed and a dict otherwise
        paths = locations.keys() if hasattr(locations, 'keys') else locations
        result[change_type] = sorted(from_deepdiff_path(path) for path in paths)

    return result


def changed_paths(original: Any, modified: Any) -> List[str]:
    """Return every canonical path that differs between the two trees, sorted."""
    paths = set()
    for locations in calculate_diff(original, modified).values():
        paths.update(locations)
    return sorted(paths)


def has_changes(original: Any, modified: Any) -> bool:
    return bool(DeepDiff(original, modified, ignore_order=False))


def summarize_changes(original: Any, modified: Any, limit: int = 3) -> str:
    """
    Build a short human-readable summary such as ``"3 fields changed: logo.url, tagline, ..."``.

    Returns an empty string if nothing changed.
    """
    paths = changed_paths(original, modified)
    if not paths:
        return ''

    shown = ', '.join(path or '(document)' for path in paths[:limit])
    more = ', ...' if len(paths) > limit else ''
    noun = 'field' if len(paths) == 1 else 'fields'
    return f"{len(paths)} {noun} changed: {shown}{more}"
