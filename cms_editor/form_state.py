"""
Form state binder.

Holds the mutable working copy of one content document. Inputs read and
write single values through field paths; loads and successful saves replace
the whole tree with ``reset``.
"""

import logging
from copy import deepcopy
from typing import Any, Callable, Dict, List, Optional

from .diff_utils import changed_paths, has_changes
from .field_paths import PathLike, format_path, get_value, set_value

logger = logging.getLogger(__name__)

# Called with the affected path, or None after a reset
Listener = Callable[[Optional[str]], None]


class FormStateBinder:
    """
    Working copy of a document plus the baseline it was last reset to.

    Attributes:
        version: Bumped on every reset; widget keys embed it so bound inputs
            re-read their values instead of keeping stale widget state
        generation: Identifies the current baseline; a save that started
            under an older generation must not overwrite a newer load
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = deepcopy(defaults) if defaults else {}
        self._baseline: Dict[str, Any] = deepcopy(self._values)
        self._listeners: List[Listener] = []
        self.version = 0
        self.generation = 0

    def get(self, path: PathLike, default: Any = None) -> Any:
        """Copy of the working value at a path; missing paths give ``default``."""
        return deepcopy(get_value(self._values, path, default))

    def set(self, path: PathLike, value: Any) -> None:
        """
        Write a value at a path, creating missing intermediate objects.

        Raises:
            FieldPathError: If the path crosses a missing list element
        """
        set_value(self._values, path, value)
        self._notify(format_path(path))

    def get_all(self) -> Dict[str, Any]:
        """Deep copy of the whole working tree."""
        return deepcopy(self._values)

    def reset(self, new_defaults: Optional[Dict[str, Any]] = None) -> None:
        """
        Replace the working tree and the baseline wholesale.

        Unsaved edits are discarded; there is no merge.
        """
        self._values = deepcopy(new_defaults) if new_defaults else {}
        self._baseline = deepcopy(self._values)
        self.version += 1
        self.generation += 1
        logger.debug(f"Form state reset (version {self.version})")
        self._notify(None)

    def mark_changed(self, path: PathLike) -> None:
        """Notify listeners after an in-place change made through ``raw()``."""
        self._notify(format_path(path))

    def raw(self) -> Dict[str, Any]:
        """The live working tree, for controllers that edit lists in place."""
        return self._values

    @property
    def baseline(self) -> Dict[str, Any]:
        return deepcopy(self._baseline)

    @property
    def is_dirty(self) -> bool:
        return has_changes(self._baseline, self._values)

    def changed_paths(self) -> List[str]:
        """Canonical paths that differ from the last reset baseline."""
        return changed_paths(self._baseline, self._values)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, path: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(path)
