"""
Submit pipeline for one document being edited.

    idle -> validating -> invalid -> idle
                       -> saving -> success -> idle
                                 -> failure -> idle

Validation failures never reach the network. A successful save is written to
the content cache, reset into the form and recorded as exactly one activity
entry. A failed save leaves the cache alone and keeps the user's edits. Every
error is turned into a ``SubmitResult`` and a notification here; nothing
propagates to the screen.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .activity_log import ActivityLogEntry, ActivityType, build_entry
from .content_api import ContentAPI
from .content_cache import ContentCache
from .diff_utils import summarize_changes
from .exceptions import (
    ContentEditorError,
    NotFoundError,
    RemoteValidationError,
    SubmitInProgressError,
    ValidationFailedError,
)
from .field_paths import get_value
from .form_state import FormStateBinder
from .id_source import IdentifierSource, get_default_source
from .schema_validator import ValidationResult
from .ui_feedback import Notifier

# Configure logging
logger = logging.getLogger(__name__)


class SubmitState(str, Enum):
    IDLE = 'idle'
    VALIDATING = 'validating'
    INVALID = 'invalid'
    SAVING = 'saving'
    SUCCESS = 'success'
    FAILURE = 'failure'


class SubmitOutcome(str, Enum):
    SAVED = 'saved'
    INVALID = 'invalid'
    FAILED = 'failed'
    REJECTED = 'rejected'


@dataclass
class SubmitResult:
    """What one call to ``submit()`` did."""
    outcome: SubmitOutcome
    document: Optional[Dict[str, Any]] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[ContentEditorError] = None
    activity: Optional[ActivityLogEntry] = None

    @property
    def ok(self) -> bool:
        return self.outcome == SubmitOutcome.SAVED


def sanitize_for_json(obj: Any) -> Any:
    """
    Recursively sanitize form values for the wire.
    Converts date and datetime to ISO strings and Decimal to float.
    """
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [sanitize_for_json(item) for item in obj]
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return float(obj)
    return obj


class SubmitPipeline:
    """
    Validates and saves the binder's working copy.

    Only one submit runs at a time per pipeline; a second call while one is
    in flight returns ``REJECTED`` without touching the API.
    """

    def __init__(self, doc_type: str, binder: FormStateBinder,
                 validator: Callable[[Dict[str, Any]], ValidationResult],
                 api: ContentAPI, cache: ContentCache, activity_log, notifier: Notifier,
                 schema: Optional[Dict[str, Any]] = None, item_id: Optional[str] = None,
                 user_name: str = 'admin', id_source: Optional[IdentifierSource] = None,
                 on_saved: Optional[Callable[[Dict[str, Any]], None]] = None):
        self.doc_type = doc_type
        self.binder = binder
        self.validator = validator
        self.api = api
        self.cache = cache
        self.activity_log = activity_log
        self.notifier = notifier
        self.schema = schema or {}
        self.item_id = item_id
        self.user_name = user_name
        self.id_source = id_source or get_default_source()
        self.on_saved = on_saved

        self.state = SubmitState.IDLE
        self.transitions: List[SubmitState] = []
        self.field_errors: Dict[str, str] = {}
        self.last_error: Optional[ContentEditorError] = None
        self.not_found = False

    @property
    def is_collection(self) -> bool:
        return self.schema.get('kind') == 'collection'

    @property
    def label(self) -> str:
        return self.schema.get('label') or self.schema.get('title') or self.doc_type

    @property
    def can_submit(self) -> bool:
        """False while a save is in flight or after the document disappeared server-side."""
        return self.state == SubmitState.IDLE and not self.not_found

    def _transition(self, new_state: SubmitState) -> None:
        logger.info(f"Submit '{self.doc_type}': {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.transitions.append(new_state)

    async def submit(self) -> SubmitResult:
        """
        Validate the current form values and save them.

        Returns:
            SubmitResult describing the outcome
        """
        if self.state != SubmitState.IDLE:
            error = SubmitInProgressError(self.doc_type)
            logger.warning(str(error))
            return SubmitResult(SubmitOutcome.REJECTED, error=error)

        if self.not_found:
            error = NotFoundError(self.doc_type, self.item_id)
            self.notifier.error(error.message)
            return SubmitResult(SubmitOutcome.REJECTED, error=error)

        self._transition(SubmitState.VALIDATING)
        baseline = self.binder.baseline
        generation = self.binder.generation
        snapshot = sanitize_for_json(self.binder.get_all())

        try:
            validation = self.validator(snapshot)
        except Exception as e:
            logger.error(f"Validation of '{self.doc_type}' raised: {e}", exc_info=True)
            validation = ValidationResult(valid=False, field_errors={'': f"Validation system error: {e}"})

        if not validation.valid:
            self.field_errors = dict(validation.field_errors)
            logger.warning(f"Validation failed for '{self.doc_type}': {len(self.field_errors)} error(s)")
            self._transition(SubmitState.INVALID)
            self.notifier.error(f"Please correct {len(self.field_errors)} field(s) before saving")
            self._transition(SubmitState.IDLE)
            return SubmitResult(SubmitOutcome.INVALID, field_errors=dict(self.field_errors),
                                error=ValidationFailedError(self.doc_type, self.field_errors))

        self.field_errors = {}
        self._transition(SubmitState.SAVING)

        creating = self.is_collection and not self.item_id
        try:
            saved = await self._save(snapshot, creating)
        except RemoteValidationError as e:
            self.field_errors = dict(e.field_errors)
            return self._fail(e)
        except NotFoundError as e:
            self.not_found = True
            return self._fail(e)
        except ContentEditorError as e:
            return self._fail(e)
        except Exception as e:
            logger.error(f"Unexpected error saving '{self.doc_type}': {e}", exc_info=True)
            return self._fail(ContentEditorError(f"Unexpected error while saving: {e}"))

        saved = saved or snapshot
        entry = None
        try:
            self._write_cache(saved)

            if self.binder.generation == generation:
                if self.on_saved is not None:
                    self.on_saved(saved)
                else:
                    self.binder.reset(saved)
            else:
                logger.info(f"Form for '{self.doc_type}' was reloaded during save; keeping the newer content")

            entry = self._record_activity(saved, baseline, snapshot, creating)
            self.last_error = None
            self._transition(SubmitState.SUCCESS)
            self.notifier.success(f"{self.label} {'created' if creating else 'saved'} successfully")
            return SubmitResult(SubmitOutcome.SAVED, document=saved, activity=entry)
        except Exception as e:
            # The server already holds the document, so the outcome stays SAVED
            logger.error(f"'{self.doc_type}' was saved but follow-up bookkeeping failed: {e}", exc_info=True)
            self.last_error = ContentEditorError(
                f"{self.label} was saved, but updating the editor failed: {e}",
                context={'doc_type': self.doc_type, 'item_id': self.item_id},
                recovery_suggestions=["Reload the page to see the saved content"]
            )
            if self.state != SubmitState.SUCCESS:
                self._transition(SubmitState.SUCCESS)
            self.notifier.error(self.last_error.message)
            return SubmitResult(SubmitOutcome.SAVED, document=saved, error=self.last_error, activity=entry)
        finally:
            self._transition(SubmitState.IDLE)

    async def _save(self, snapshot: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        if not self.is_collection:
            return await self.api.update(self.doc_type, snapshot)
        if creating:
            return await self.api.create(self.doc_type, snapshot)
        return await self.api.update_item(self.doc_type, self.item_id, snapshot)

    def _write_cache(self, saved: Dict[str, Any]) -> None:
        if not self.is_collection:
            self.cache.set(self.doc_type, saved)
            return
        if saved.get('id'):
            self.item_id = saved['id']
            self.cache.upsert_item(self.doc_type, saved)
        else:
            logger.warning(f"Saved '{self.doc_type}' item has no id; cache not updated")

    def _fail(self, error: ContentEditorError) -> SubmitResult:
        self.last_error = error
        logger.error(f"Saving '{self.doc_type}' failed: {error}")
        self._transition(SubmitState.FAILURE)
        self.notifier.error(f"Failed to save {self.label}: {error.message}")
        self._transition(SubmitState.IDLE)
        return SubmitResult(SubmitOutcome.FAILED, field_errors=dict(self.field_errors), error=error)

    def entity_name(self, document: Dict[str, Any]) -> str:
        """Display name for activity entries: the schema's ``name_field`` value, else the label."""
        name_field = self.schema.get('name_field')
        if name_field:
            value = get_value(document, name_field)
            if value:
                return str(value)
        return self.label

    def _record_activity(self, saved: Dict[str, Any], baseline: Dict[str, Any], snapshot: Dict[str, Any],
                         creating: bool) -> ActivityLogEntry:
        name = self.entity_name(saved)
        if creating:
            activity_type = ActivityType.CREATE
            description = f"Created {self.label.lower()} '{name}'"
        else:
            activity_type = ActivityType.UPDATE
            changes = summarize_changes(baseline, snapshot)
            description = f"Updated {name}" + (f" ({changes})" if changes else "")

        entry = build_entry(
            activity_type,
            entity=self.doc_type,
            entity_id=str(saved.get('id') or self.item_id or self.doc_type),
            entity_name=name,
            description=description,
            user_name=self.user_name,
            id_source=self.id_source,
        )
        self.activity_log.record(entry)
        return entry
