"""
Content editor for one document instance.

Wires a form binder, the document type's validator, repeatable group
controllers, the load reconciler and the submit pipeline together so a
screen only talks to one object.
"""

import logging
from typing import Any, Dict, List, Optional

from .content_api import ContentAPI
from .content_cache import ContentCache
from .field_paths import PathLike, format_path
from .form_state import FormStateBinder
from .id_source import IdentifierSource, get_default_source
from .reconciler import LoadReconciler, ReconcileOutcome
from .repeatable_group import RepeatableGroupController
from .schema_loader import build_default_document
from .schema_validator import SchemaValidator, ValidationResult
from .submit_pipeline import SubmitPipeline, SubmitResult
from .ui_feedback import Notifier

logger = logging.getLogger(__name__)


class ContentEditor:
    """
    Editing session for a page, or for one collection item.

    Args:
        schema: Loaded schema of the document type
        api: Remote content API
        cache: Process-wide content cache
        activity_log: Sink with ``record(entry)``
        notifier: Success/error notification sink
        item_id: Collection item to edit; None for pages and new items
        id_source: Source of local ids and timestamps
        user_name: Recorded on activity entries
        protect_dirty: Keep unsaved edits when newer server content arrives
    """

    def __init__(self, schema: Dict[str, Any], api: ContentAPI, cache: ContentCache, activity_log,
                 notifier: Notifier, item_id: Optional[str] = None,
                 id_source: Optional[IdentifierSource] = None, user_name: str = 'admin',
                 protect_dirty: bool = False):
        self.schema = schema
        self.doc_type = schema['doc_type']
        self.id_source = id_source or get_default_source()
        self.validator = SchemaValidator(schema)

        initial = self._initial_document(cache, item_id)
        self.binder = FormStateBinder(initial)

        self.reconciler = LoadReconciler(
            self.binder, api, cache, self.doc_type,
            item_id=item_id, notifier=notifier, protect_dirty=protect_dirty
        )
        self.pipeline = SubmitPipeline(
            self.doc_type, self.binder, self.validator, api, cache, activity_log, notifier,
            schema=schema, item_id=item_id, user_name=user_name, id_source=self.id_source,
            on_saved=self.reconciler.apply
        )
        self._groups: Dict[str, RepeatableGroupController] = {}

    def _initial_document(self, cache: ContentCache, item_id: Optional[str]) -> Dict[str, Any]:
        # Cached content is shown until the first load finishes
        if self.schema.get('kind') == 'collection':
            cached = cache.get_item(self.doc_type, item_id) if item_id else None
        else:
            cached = cache.get(self.doc_type)
        return cached if cached is not None else build_default_document(self.schema)

    @property
    def item_id(self) -> Optional[str]:
        return self.pipeline.item_id

    @property
    def is_new(self) -> bool:
        return self.schema.get('kind') == 'collection' and not self.pipeline.item_id

    @property
    def is_closed(self) -> bool:
        """True once the document was found missing on the server."""
        return self.reconciler.not_found or self.pipeline.not_found

    @property
    def field_errors(self) -> Dict[str, str]:
        return self.pipeline.field_errors

    def get(self, path: PathLike, default: Any = None) -> Any:
        return self.binder.get(path, default)

    def set(self, path: PathLike, value: Any) -> None:
        self.binder.set(path, value)

    def get_all(self) -> Dict[str, Any]:
        return self.binder.get_all()

    def validate(self) -> ValidationResult:
        """Validate the working copy without saving."""
        return self.validator(self.binder.get_all())

    def group(self, path: PathLike) -> RepeatableGroupController:
        """
        Controller for the list at ``path`` (``navigation`` or ``navigation[2].children``).

        Raises:
            ValueError: If the schema has no array rule for the path
        """
        key = format_path(path)
        if key not in self._groups:
            field_config = self.validator.rule_for_path(key)
            if field_config is None or field_config.get('type') != 'array':
                raise ValueError(f"'{key}' is not a repeatable field of '{self.doc_type}'")
            self._groups[key] = RepeatableGroupController.from_field_config(
                self.binder, key, field_config, id_source=self.id_source
            )
        return self._groups[key]

    def unvalidated_paths(self) -> List[str]:
        return self.validator.find_unvalidated_paths(self.binder.get_all())

    async def load(self) -> ReconcileOutcome:
        if self.is_new:
            return ReconcileOutcome.UNCHANGED
        self.reconciler.item_id = self.pipeline.item_id
        return await self.reconciler.load()

    async def submit(self) -> SubmitResult:
        return await self.pipeline.submit()
