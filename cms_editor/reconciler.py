"""
Load/reset reconciler.

Moves authoritative content from the server into a form binder. The server
value always wins: when a fetched document differs from the last one applied,
the binder is reset to it and any unsaved edits are dropped. Receiving the
same document again leaves the binder alone. Callers that would rather keep
edits can turn on ``protect_dirty``.
"""

import logging
from copy import deepcopy
from enum import Enum
from typing import Any, Dict, Optional

from .content_api import ContentAPI
from .content_cache import ContentCache
from .diff_utils import has_changes
from .exceptions import NotFoundError, RemoteAPIError
from .form_state import FormStateBinder
from .ui_feedback import Notifier

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    APPLIED = 'applied'
    DISCARDED_EDITS = 'discarded_edits'
    UNCHANGED = 'unchanged'
    KEPT_EDITS = 'kept_edits'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


class LoadReconciler:
    """
    Keeps one binder in step with server content for one document.

    Args:
        binder: Form state to reset
        api: Remote content API
        cache: Process-wide content cache, written on every successful load
        doc_type: Document type being edited
        item_id: Collection item id; None for pages
        notifier: Receives an error message when a load fails
        protect_dirty: Skip resets while the binder has unsaved edits
    """

    def __init__(self, binder: FormStateBinder, api: ContentAPI, cache: ContentCache, doc_type: str,
                 item_id: Optional[str] = None, notifier: Optional[Notifier] = None,
                 protect_dirty: bool = False):
        self.binder = binder
        self.api = api
        self.cache = cache
        self.doc_type = doc_type
        self.item_id = item_id
        self.notifier = notifier
        self.protect_dirty = protect_dirty
        self.not_found = False
        self.last_error: Optional[RemoteAPIError] = None
        self._last_applied: Optional[Dict[str, Any]] = None

    @property
    def has_loaded(self) -> bool:
        return self._last_applied is not None

    async def load(self) -> ReconcileOutcome:
        """
        Fetch the document and reconcile it into the binder.

        A missing document makes this editor terminal: nothing is applied and
        later loads do nothing. When the server cannot be reached the cached
        value is used, if there is one.
        """
        if self.not_found:
            return ReconcileOutcome.NOT_FOUND

        try:
            document = await self._fetch()
        except NotFoundError as e:
            self.not_found = True
            self.last_error = e
            logger.warning(f"Content '{self.doc_type}' not found; editor closed")
            if self.notifier:
                self.notifier.error(e.message)
            return ReconcileOutcome.NOT_FOUND
        except RemoteAPIError as e:
            self.last_error = e
            logger.error(f"Loading '{self.doc_type}' failed: {e}")
            if self.notifier:
                self.notifier.error(f"Could not load content: {e.message}")
            cached = self._cached()
            if cached is not None and not self.has_loaded:
                logger.info(f"Using cached content for '{self.doc_type}'")
                return self.reconcile(cached)
            return ReconcileOutcome.FAILED

        self.last_error = None
        self._write_cache(document)
        return self.reconcile(document)

    async def _fetch(self) -> Dict[str, Any]:
        if self.item_id is None:
            return await self.api.fetch(self.doc_type)

        items = await self.api.list(self.doc_type)
        for item in items:
            if item.get('id') == self.item_id:
                return item
        raise NotFoundError(self.doc_type, self.item_id)

    def _cached(self) -> Optional[Dict[str, Any]]:
        if self.item_id is None:
            return self.cache.get(self.doc_type)
        return self.cache.get_item(self.doc_type, self.item_id)

    def _write_cache(self, document: Dict[str, Any]) -> None:
        if self.item_id is None:
            self.cache.set(self.doc_type, document)
        else:
            self.cache.upsert_item(self.doc_type, document)

    def reconcile(self, document: Dict[str, Any]) -> ReconcileOutcome:
        """
        Apply an authoritative document to the binder.

        Returns:
            What happened to the working copy
        """
        if self._last_applied is not None and not has_changes(self._last_applied, document):
            return ReconcileOutcome.UNCHANGED

        dirty = self.binder.is_dirty
        if dirty and self.protect_dirty and self.has_loaded:
            logger.info(f"Kept unsaved edits to '{self.doc_type}'; newer server content not applied")
            return ReconcileOutcome.KEPT_EDITS

        self.apply(document)
        if dirty:
            logger.warning(f"Unsaved edits to '{self.doc_type}' replaced by server content")
            return ReconcileOutcome.DISCARDED_EDITS
        return ReconcileOutcome.APPLIED

    def apply(self, document: Dict[str, Any]) -> None:
        """Reset the binder to ``document`` unconditionally and remember it as applied."""
        self.binder.reset(document)
        self._last_applied = deepcopy(document)
        logger.debug(f"Applied server content to '{self.doc_type}' form")
