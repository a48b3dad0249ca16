"""
Tests for the submit pipeline.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from cms_editor.activity_log import ActivityType, InMemoryActivityLog
from cms_editor.content_api import InMemoryContentAPI
from cms_editor.content_cache import ContentCache
from cms_editor.exceptions import (
    NotFoundError,
    RemoteValidationError,
    SubmitInProgressError,
    TransportError,
    ValidationFailedError,
)
from cms_editor.form_state import FormStateBinder
from cms_editor.id_source import IdentifierSource
from cms_editor.schema_loader import get_schema, reload_schemas
from cms_editor.schema_validator import SchemaValidator
from cms_editor.submit_pipeline import SubmitOutcome, SubmitPipeline, SubmitState, sanitize_for_json
from cms_editor.ui_feedback import LoggingNotifier

BASE_DIR = Path(__file__).parent
SCHEMAS_DIR = BASE_DIR / "schemas"
SEED_FILE = BASE_DIR / "seed" / "content.yaml"
FIXED_TIME = datetime(2025, 4, 1, 12, 0, tzinfo=timezone.utc)


def load_seed():
    with open(SEED_FILE, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


class FailingAPI(InMemoryContentAPI):
    """Backend whose writes raise a chosen error."""

    def __init__(self, error, **kwargs):
        super().__init__(**kwargs)
        self.error = error

    async def update(self, doc_type, document):
        self._log('update', doc_type)
        raise self.error

    async def update_item(self, doc_type, item_id, document):
        self._log('update_item', doc_type)
        raise self.error


class SlowAPI(InMemoryContentAPI):
    """Backend whose page writes wait until released."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def update(self, doc_type, document):
        self.started.set()
        await self.release.wait()
        return await super().update(doc_type, document)


class BrokenActivityLog(InMemoryActivityLog):
    """Activity sink that cannot store entries."""

    def record(self, entry):
        raise RuntimeError('activity sink down')


@pytest.fixture
def seed():
    return load_seed()


@pytest.fixture
def id_source():
    return IdentifierSource(clock=lambda: FIXED_TIME)


@pytest.fixture
def footer_schema():
    reload_schemas()
    return get_schema('footer', SCHEMAS_DIR)


@pytest.fixture
def inquiries_schema():
    reload_schemas()
    return get_schema('inquiries', SCHEMAS_DIR)


@pytest.fixture
def cache():
    return ContentCache()


@pytest.fixture
def activity_log():
    return InMemoryActivityLog()


@pytest.fixture
def notifier():
    return LoggingNotifier()


def make_pipeline(schema, document, api, cache, activity_log, notifier, id_source, item_id=None):
    binder = FormStateBinder(document)
    return SubmitPipeline(
        schema['doc_type'], binder, SchemaValidator(schema), api, cache, activity_log, notifier,
        schema=schema, item_id=item_id, id_source=id_source
    )


@pytest.fixture
def footer_pipeline(footer_schema, seed, cache, activity_log, notifier, id_source):
    api = InMemoryContentAPI(pages=seed['pages'], id_source=id_source)
    return make_pipeline(footer_schema, seed['pages']['footer'], api, cache, activity_log, notifier, id_source)


class TestInvalidSubmit:
    """Validation failures never reach the server."""

    @pytest.mark.asyncio
    async def test_invalid_url_blocks_save(self, footer_pipeline, cache, activity_log, notifier):
        footer_pipeline.binder.set('logo.url', 'not a url')

        result = await footer_pipeline.submit()

        assert result.outcome is SubmitOutcome.INVALID
        assert result.field_errors['logo.url'] == 'Must be a valid URL'
        assert isinstance(result.error, ValidationFailedError)
        assert result.error.context['field_errors'] == result.field_errors
        assert footer_pipeline.api.calls('update') == 0
        assert cache.get('footer') is None
        assert len(activity_log) == 0
        assert footer_pipeline.transitions == [SubmitState.VALIDATING, SubmitState.INVALID, SubmitState.IDLE]
        assert footer_pipeline.state is SubmitState.IDLE
        assert notifier.of_kind('error') == ["Please correct 1 field(s) before saving"]

    @pytest.mark.asyncio
    async def test_edits_survive_failed_validation(self, footer_pipeline):
        footer_pipeline.binder.set('tagline', '')

        await footer_pipeline.submit()

        assert footer_pipeline.binder.get('tagline') == ''
        assert footer_pipeline.binder.is_dirty is True
        assert footer_pipeline.field_errors == {'tagline': 'Tagline is required'}

    @pytest.mark.asyncio
    async def test_errors_clear_after_fix(self, footer_pipeline):
        footer_pipeline.binder.set('tagline', '')
        await footer_pipeline.submit()

        footer_pipeline.binder.set('tagline', 'Fixed')
        result = await footer_pipeline.submit()

        assert result.ok
        assert footer_pipeline.field_errors == {}


class TestSuccessfulSubmit:
    """Test cases for successful saves."""

    @pytest.mark.asyncio
    async def test_save_updates_cache_form_and_log(self, footer_pipeline, cache, activity_log, notifier):
        footer_pipeline.binder.set('tagline', 'Comfort and legacy')
        version = footer_pipeline.binder.version

        result = await footer_pipeline.submit()

        assert result.outcome is SubmitOutcome.SAVED
        assert result.document['tagline'] == 'Comfort and legacy'
        assert result.document['updatedAt'] == FIXED_TIME.isoformat()
        assert cache.get('footer') == result.document
        assert footer_pipeline.binder.get_all() == result.document
        assert footer_pipeline.binder.is_dirty is False
        assert footer_pipeline.binder.version == version + 1
        assert footer_pipeline.transitions == [
            SubmitState.VALIDATING, SubmitState.SAVING, SubmitState.SUCCESS, SubmitState.IDLE
        ]
        assert notifier.messages == [('success', 'Footer settings saved successfully')]

        assert len(activity_log) == 1
        entry = activity_log.entries[0]
        assert entry is result.activity
        assert entry.type is ActivityType.UPDATE
        assert entry.entity == 'footer'
        assert entry.entity_id == 'footer'
        assert entry.entity_name == 'Footer settings'
        assert entry.description == 'Updated Footer settings (1 field changed: tagline)'

    @pytest.mark.asyncio
    async def test_two_saves_log_two_entries_in_order(self, footer_pipeline, activity_log):
        footer_pipeline.binder.set('tagline', 'First')
        await footer_pipeline.submit()
        footer_pipeline.binder.set('copyright.year', '2026')
        await footer_pipeline.submit()

        descriptions = [entry.description for entry in activity_log.entries]
        assert descriptions == [
            'Updated Footer settings (1 field changed: tagline)',
            'Updated Footer settings (1 field changed: copyright.year)',
        ]

    @pytest.mark.asyncio
    async def test_on_saved_hook_replaces_reset(self, footer_schema, seed, cache, activity_log, notifier,
                                                id_source):
        api = InMemoryContentAPI(pages=seed['pages'], id_source=id_source)
        pipeline = make_pipeline(footer_schema, seed['pages']['footer'], api, cache, activity_log, notifier,
                                 id_source)
        received = []
        pipeline.on_saved = received.append
        pipeline.binder.set('tagline', 'Hooked')

        await pipeline.submit()

        assert [document['tagline'] for document in received] == ['Hooked']

    @pytest.mark.asyncio
    async def test_reload_during_save_wins(self, footer_schema, seed, cache, activity_log, notifier, id_source):
        api = SlowAPI(pages=seed['pages'], id_source=id_source)
        pipeline = make_pipeline(footer_schema, seed['pages']['footer'], api, cache, activity_log, notifier,
                                 id_source)
        pipeline.binder.set('tagline', 'Saving')

        task = asyncio.create_task(pipeline.submit())
        await api.started.wait()
        newer = dict(seed['pages']['footer'], tagline='Reloaded')
        pipeline.binder.reset(newer)
        api.release.set()
        result = await task

        assert result.ok
        assert cache.get('footer')['tagline'] == 'Saving'
        assert pipeline.binder.get('tagline') == 'Reloaded'

    @pytest.mark.asyncio
    async def test_activity_sink_failure_unlocks_editor(self, footer_schema, seed, cache, notifier, id_source):
        api = InMemoryContentAPI(pages=seed['pages'], id_source=id_source)
        pipeline = make_pipeline(footer_schema, seed['pages']['footer'], api, cache, BrokenActivityLog(),
                                 notifier, id_source)
        pipeline.binder.set('tagline', 'Stored anyway')

        result = await pipeline.submit()

        assert result.outcome is SubmitOutcome.SAVED
        assert result.activity is None
        assert 'activity sink down' in result.error.message
        assert pipeline.last_error is result.error
        assert cache.get('footer')['tagline'] == 'Stored anyway'
        assert pipeline.state is SubmitState.IDLE
        assert pipeline.can_submit is True
        assert pipeline.transitions[-2:] == [SubmitState.SUCCESS, SubmitState.IDLE]
        assert notifier.of_kind('success') == []
        assert len(notifier.of_kind('error')) == 1

        pipeline.activity_log = InMemoryActivityLog()
        pipeline.binder.set('tagline', 'Second try')
        assert (await pipeline.submit()).error is None


class TestFailedSubmit:
    """Test cases for saves the server refuses."""

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_edits(self, footer_schema, seed, cache, activity_log, notifier,
                                                 id_source):
        cache.set('footer', seed['pages']['footer'])
        api = FailingAPI(TransportError("Could not reach the content server"), id_source=id_source)
        pipeline = make_pipeline(footer_schema, seed['pages']['footer'], api, cache, activity_log, notifier,
                                 id_source)
        pipeline.binder.set('tagline', 'Unsaved')

        result = await pipeline.submit()

        assert result.outcome is SubmitOutcome.FAILED
        assert isinstance(result.error, TransportError)
        assert cache.get('footer') == seed['pages']['footer']
        assert pipeline.binder.get('tagline') == 'Unsaved'
        assert len(activity_log) == 0
        assert pipeline.transitions == [
            SubmitState.VALIDATING, SubmitState.SAVING, SubmitState.FAILURE, SubmitState.IDLE
        ]
        assert notifier.of_kind('error') == [
            "Failed to save Footer settings: Could not reach the content server"
        ]
        assert pipeline.can_submit is True

    @pytest.mark.asyncio
    async def test_server_field_errors(self, footer_schema, seed, cache, activity_log, notifier, id_source):
        error = RemoteValidationError('The given data was invalid.',
                                      {'logo.url': 'The logo url must be a valid URL.'})
        api = FailingAPI(error, id_source=id_source)
        pipeline = make_pipeline(footer_schema, seed['pages']['footer'], api, cache, activity_log, notifier,
                                 id_source)

        result = await pipeline.submit()

        assert result.outcome is SubmitOutcome.FAILED
        assert result.field_errors == {'logo.url': 'The logo url must be a valid URL.'}
        assert pipeline.field_errors == {'logo.url': 'The logo url must be a valid URL.'}

    @pytest.mark.asyncio
    async def test_missing_document_closes_pipeline(self, inquiries_schema, seed, cache, activity_log,
                                                    notifier, id_source):
        item = seed['collections']['inquiries'][0]
        api = InMemoryContentAPI(collections={'inquiries': []}, id_source=id_source)
        pipeline = make_pipeline(inquiries_schema, item, api, cache, activity_log, notifier, id_source,
                                 item_id='inq-1')

        first = await pipeline.submit()
        second = await pipeline.submit()

        assert first.outcome is SubmitOutcome.FAILED
        assert isinstance(first.error, NotFoundError)
        assert pipeline.not_found is True
        assert pipeline.can_submit is False
        assert second.outcome is SubmitOutcome.REJECTED
        assert api.calls('update_item') == 1


class TestConcurrentSubmit:
    """Only one submit runs at a time."""

    @pytest.mark.asyncio
    async def test_second_submit_is_rejected(self, footer_schema, seed, cache, activity_log, notifier,
                                             id_source):
        api = SlowAPI(pages=seed['pages'], id_source=id_source)
        pipeline = make_pipeline(footer_schema, seed['pages']['footer'], api, cache, activity_log, notifier,
                                 id_source)
        pipeline.binder.set('tagline', 'Once')

        task = asyncio.create_task(pipeline.submit())
        await api.started.wait()
        assert pipeline.state is SubmitState.SAVING
        assert pipeline.can_submit is False

        second = await pipeline.submit()
        api.release.set()
        first = await task

        assert second.outcome is SubmitOutcome.REJECTED
        assert isinstance(second.error, SubmitInProgressError)
        assert first.ok
        assert len(activity_log) == 1


class TestCollectionSubmit:
    """Test cases for collection items."""

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, inquiries_schema, seed, cache, activity_log, notifier, id_source):
        api = InMemoryContentAPI(collections={'inquiries': []}, id_source=id_source)
        item = dict(seed['collections']['inquiries'][0])
        for server_field in ('id', 'createdAt', 'updatedAt'):
            item.pop(server_field)
        item['name'] = 'Nadia Islam'
        pipeline = make_pipeline(inquiries_schema, item, api, cache, activity_log, notifier, id_source)

        result = await pipeline.submit()

        assert result.ok
        assert pipeline.item_id == result.document['id']
        assert pipeline.item_id.startswith('inquiries-')
        assert cache.get_item('inquiries', pipeline.item_id)['name'] == 'Nadia Islam'
        assert activity_log.entries[0].type is ActivityType.CREATE
        assert activity_log.entries[0].description == "Created inquiry 'Nadia Islam'"
        assert notifier.of_kind('success') == ['Inquiry created successfully']

    @pytest.mark.asyncio
    async def test_update_existing_item(self, inquiries_schema, seed, cache, activity_log, notifier, id_source):
        api = InMemoryContentAPI(collections=seed['collections'], id_source=id_source)
        item = seed['collections']['inquiries'][0]
        pipeline = make_pipeline(inquiries_schema, item, api, cache, activity_log, notifier, id_source,
                                 item_id='inq-1')
        pipeline.binder.set('status', 'responded')

        result = await pipeline.submit()

        assert result.ok
        assert api.calls('update_item') == 1
        assert activity_log.entries[0].entity_name == 'Rahim Uddin'
        assert activity_log.entries[0].description == 'Updated Rahim Uddin (1 field changed: status)'


def test_sanitize_for_json():
    value = {'visit': datetime(2025, 1, 2, 3, 4, tzinfo=timezone.utc), 'items': [{'n': 1}]}
    assert sanitize_for_json(value) == {'visit': '2025-01-02T03:04:00+00:00', 'items': [{'n': 1}]}
