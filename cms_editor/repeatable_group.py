"""
Repeatable group controller.

Edits one ordered list inside a form binder: navigation items, footer
columns and their links, value propositions, marketing lines. Object
elements carry a local ``id`` and an ordering index field (``order`` unless
the schema names another one).
"""

import logging
from copy import deepcopy
from typing import Any, Dict, List, Optional

from .field_paths import PathLike, format_path, get_value
from .form_state import FormStateBinder
from .id_source import IdentifierSource, get_default_source
from .schema_loader import build_default_object, default_value_for

logger = logging.getLogger(__name__)

DEFAULT_ORDER_FIELD = 'order'


class RepeatableGroupController:
    """
    Append, remove and reorder elements of the list at ``path``.

    Operations change the binder immediately and never validate or save.
    Removing an element leaves the ordering indices of the others as they
    were; call ``renumber()`` for dense 1..n ordering.
    """

    def __init__(self, binder: FormStateBinder, path: PathLike,
                 order_field: Optional[str] = DEFAULT_ORDER_FIELD,
                 id_prefix: str = 'item',
                 id_source: Optional[IdentifierSource] = None,
                 item_config: Optional[Dict[str, Any]] = None):
        self.binder = binder
        self.path = format_path(path)
        self.order_field = order_field
        self.id_prefix = id_prefix
        self.id_source = id_source or get_default_source()
        self.item_config = item_config or {}

    @classmethod
    def from_field_config(cls, binder: FormStateBinder, path: PathLike, field_config: Dict[str, Any],
                          id_source: Optional[IdentifierSource] = None) -> 'RepeatableGroupController':
        """Build a controller using the ``order_field``, ``id_prefix`` and ``items`` of an array rule."""
        items_config = field_config.get('items', {})
        is_object_list = items_config.get('type') == 'object'
        order_field = field_config.get('order_field', DEFAULT_ORDER_FIELD) if is_object_list else None
        if is_object_list and order_field not in items_config.get('properties', {}):
            order_field = None
        return cls(
            binder,
            path,
            order_field=order_field,
            id_prefix=field_config.get('id_prefix', 'item'),
            id_source=id_source,
            item_config=items_config,
        )

    def _list(self, create: bool = False) -> List[Any]:
        current = get_value(self.binder.raw(), self.path)
        if isinstance(current, list):
            return current
        if current is not None:
            raise TypeError(f"Field '{self.path}' is not a list")
        if not create:
            return []
        self.binder.set(self.path, [])
        return get_value(self.binder.raw(), self.path)

    def items(self) -> List[Any]:
        """Deep copy of the current elements."""
        return deepcopy(self._list())

    def __len__(self) -> int:
        return len(self._list())

    def new_record(self) -> Any:
        """Empty element built from the item rule, without id or ordering index."""
        if self.item_config.get('type') == 'object':
            record = build_default_object(self.item_config.get('properties', {}))
            record.pop('id', None)
            if self.order_field:
                record.pop(self.order_field, None)
            return record
        return default_value_for(self.item_config) if self.item_config else ""

    def append(self, record: Any = None) -> Any:
        """
        Add an element at the end of the list.

        Object elements get a fresh local id when they have none, and their
        ordering index is set to the new list length.

        Args:
            record: Element to add; an empty element from the item rule when omitted

        Returns:
            The element as stored
        """
        if record is None:
            record = self.new_record()
        else:
            record = deepcopy(record)

        items = self._list(create=True)
        if isinstance(record, dict):
            if not record.get('id'):
                record['id'] = self.id_source.new_id(self.id_prefix)
            if self.order_field:
                record[self.order_field] = len(items) + 1

        items.append(record)
        self.binder.mark_changed(self.path)
        logger.debug(f"Appended element to '{self.path}' (now {len(items)})")
        return record

    def remove_at(self, index: int) -> Any:
        """
        Delete the element at ``index`` and return it.

        Raises:
            IndexError: If there is no element at ``index``
        """
        items = self._list()
        if not 0 <= index < len(items):
            raise IndexError(f"No element {index} in '{self.path}' (length {len(items)})")

        removed = items.pop(index)
        self.binder.mark_changed(self.path)
        logger.debug(f"Removed element {index} from '{self.path}'")
        return removed

    def can_move(self, from_index: int, to_index: int) -> bool:
        """True when both positions exist and differ; the UI disables moves otherwise."""
        size = len(self._list())
        return 0 <= from_index < size and 0 <= to_index < size and from_index != to_index

    def move_to(self, from_index: int, to_index: int) -> bool:
        """
        Reinsert the element at ``from_index`` at ``to_index``.

        Moving the first element up or the last element down does nothing.
        Ordering indices are left as they are.

        Returns:
            True if the list changed
        """
        if not self.can_move(from_index, to_index):
            return False

        items = self._list()
        element = items.pop(from_index)
        items.insert(to_index, element)
        self.binder.mark_changed(self.path)
        return True

    def move_up(self, index: int) -> bool:
        return self.move_to(index, index - 1)

    def move_down(self, index: int) -> bool:
        return self.move_to(index, index + 1)

    def renumber(self) -> None:
        """Rewrite ordering indices to match list positions, starting at 1."""
        if not self.order_field:
            return
        items = self._list()
        for position, element in enumerate(items, start=1):
            if isinstance(element, dict):
                element[self.order_field] = position
        self.binder.mark_changed(self.path)
