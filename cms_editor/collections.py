"""
Collection management: listing, deleting and lead status changes.

Item creation and editing go through ``ContentEditor``; this module covers
the list-screen actions. Each action updates the cache only after the server
accepted it, records one activity entry and notifies the user.
"""

import logging
from typing import Any, Dict, List, Optional

from .activity_log import ActivityLogEntry, ActivityType, build_entry
from .content_api import ContentAPI
from .content_cache import ContentCache
from .exceptions import ContentEditorError, RemoteAPIError
from .field_paths import get_value
from .id_source import IdentifierSource, get_default_source
from .ui_feedback import Notifier

logger = logging.getLogger(__name__)

STATUS_FIELD = 'status'


class CollectionManager:
    """List-screen operations for one collection document type."""

    def __init__(self, schema: Dict[str, Any], api: ContentAPI, cache: ContentCache, activity_log,
                 notifier: Notifier, user_name: str = 'admin',
                 id_source: Optional[IdentifierSource] = None):
        if schema.get('kind') != 'collection':
            raise ValueError(f"'{schema.get('doc_type')}' is not a collection")
        self.schema = schema
        self.doc_type = schema['doc_type']
        self.api = api
        self.cache = cache
        self.activity_log = activity_log
        self.notifier = notifier
        self.user_name = user_name
        self.id_source = id_source or get_default_source()
        self.last_error: Optional[ContentEditorError] = None

    @property
    def label(self) -> str:
        return self.schema.get('label') or self.schema.get('title') or self.doc_type

    @property
    def status_choices(self) -> List[str]:
        """Allowed lead statuses; empty for collections without a status field."""
        status_config = self.schema.get('fields', {}).get(STATUS_FIELD, {})
        if status_config.get('type') != 'enum':
            return []
        return list(status_config.get('choices', []))

    def items(self) -> List[Dict[str, Any]]:
        """Cached items, newest first."""
        return self.cache.get_collection(self.doc_type)

    def item_name(self, item: Dict[str, Any]) -> str:
        name_field = self.schema.get('name_field')
        if name_field:
            value = get_value(item, name_field)
            if value:
                return str(value)
        return str(item.get('id', 'item'))

    async def refresh(self) -> bool:
        """Replace the cached items with the server's list; returns False on failure."""
        try:
            items = await self.api.list(self.doc_type)
        except RemoteAPIError as e:
            self._fail(f"Could not load {self.label.lower()}", e)
            return False
        self.cache.set_collection(self.doc_type, items)
        logger.info(f"Loaded {len(items)} item(s) of '{self.doc_type}'")
        return True

    async def delete_item(self, item_id: str) -> bool:
        """
        Delete an item on the server, then from the cache.

        Returns:
            True if the item was deleted
        """
        item = self.cache.get_item(self.doc_type, item_id) or {'id': item_id}
        try:
            await self.api.delete(self.doc_type, item_id)
        except RemoteAPIError as e:
            self._fail(f"Failed to delete {self.item_name(item)}", e)
            return False

        self.cache.remove_item(self.doc_type, item_id)
        name = self.item_name(item)
        self._record(ActivityType.DELETE, item_id, name, f"Deleted {self.label.lower()} '{name}'")
        self.notifier.success(f"'{name}' deleted")
        return True

    async def change_status(self, item_id: str, status: str) -> bool:
        """
        Move a lead (inquiry or application) to a new status.

        Statuses outside the schema's choices are refused without a request.

        Returns:
            True if the status was changed
        """
        choices = self.status_choices
        if status not in choices:
            message = f"'{status}' is not a valid status for {self.label.lower()}"
            logger.warning(message)
            self.notifier.error(message)
            return False

        previous = self.cache.get_item(self.doc_type, item_id) or {'id': item_id}
        try:
            updated = await self.api.update_status(self.doc_type, item_id, status)
        except RemoteAPIError as e:
            self._fail(f"Failed to update status of {self.item_name(previous)}", e)
            return False

        updated = updated or dict(previous, status=status)
        self.cache.upsert_item(self.doc_type, updated)
        name = self.item_name(updated)
        old_status = previous.get(STATUS_FIELD, 'unknown')
        self._record(ActivityType.STATUS_CHANGE, item_id, name,
                     f"Changed status of '{name}' from {old_status} to {status}")
        self.notifier.success(f"'{name}' marked as {status}")
        return True

    def _record(self, activity_type: ActivityType, item_id: str, name: str, description: str) -> ActivityLogEntry:
        entry = build_entry(
            activity_type,
            entity=self.doc_type,
            entity_id=item_id,
            entity_name=name,
            description=description,
            user_name=self.user_name,
            id_source=self.id_source,
        )
        self.activity_log.record(entry)
        self.last_error = None
        return entry

    def _fail(self, message: str, error: RemoteAPIError) -> None:
        self.last_error = error
        logger.error(f"{message}: {error}")
        self.notifier.error(f"{message}: {error.message}")
