"""
Main Streamlit application for the Nex CMS admin dashboard.
Schema-driven editor for the site's pages and collections.
"""

import asyncio
import logging
from pathlib import Path

import streamlit as st

from cms_editor.activity_log import JsonlActivityLog
from cms_editor.collections import CollectionManager
from cms_editor.config_loader import configure_logging, get_config, get_config_value, validate_config
from cms_editor.content_api import HttpContentAPI, InMemoryContentAPI
from cms_editor.content_cache import ContentCache
from cms_editor.content_editor import ContentEditor
from cms_editor.exceptions import ContentEditorError, SchemaLoadError
from cms_editor.form_generator import FormGenerator
from cms_editor.reconciler import ReconcileOutcome
from cms_editor.schema_loader import get_schema, list_document_types
from cms_editor.session_manager import SessionManager
from cms_editor.submit_pipeline import SubmitOutcome
from cms_editor.ui_feedback import Notify, StreamlitNotifier, show_error_details, show_field_errors

configure_logging()
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title=get_config_value('ui', 'page_title', 'Content Management'),
    page_icon="🏢",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_content_cache() -> ContentCache:
    return ContentCache.from_seed(get_config_value('content', 'seed_file', 'seed/content.yaml'))


@st.cache_resource
def get_content_api():
    backend = get_config_value('api', 'backend', 'memory')
    if backend == 'http':
        base_url = get_config_value('api', 'base_url')
        logger.info(f"Using HTTP content API at {base_url}")
        return HttpContentAPI(base_url, timeout=float(get_config_value('api', 'timeout', 10.0)))
    logger.info("Using in-memory content API")
    return InMemoryContentAPI.from_seed(get_config_value('content', 'seed_file', 'seed/content.yaml'))


@st.cache_resource
def get_activity_log() -> JsonlActivityLog:
    return JsonlActivityLog(Path(get_config_value('activity_log', 'path', 'audit_logs/activity.jsonl')))


def run(coro):
    """Run one editing-model coroutine to completion inside a script run."""
    return asyncio.run(coro)


def main():
    """Main application entry point."""
    problems = validate_config(get_config())
    if problems:
        st.warning("⚠️ Configuration issues detected, defaults are used where necessary")

    if get_config_value('api', 'backend', 'memory') != 'http':
        Notify.once("Editing seed content in memory; changes are kept until the server restarts",
                    notification_type="info", key="memory_backend_notice")

    doc_types = list_document_types()
    if not doc_types:
        st.error("❌ No content schemas found. Check the schema directory in config.yaml.")
        st.stop()

    SessionManager.initialize(default_doc_type=doc_types[0])
    render_sidebar(doc_types)

    doc_type = SessionManager.get_current_doc_type()
    try:
        schema = get_schema(doc_type)
    except SchemaLoadError as e:
        st.error(f"❌ {e.message}")
        show_error_details(e.get_full_details())
        return

    st.title(schema.get('title', doc_type))

    if schema.get('kind') == 'collection':
        if SessionManager.is_editing_item():
            render_editor(schema, SessionManager.get_current_item_id())
        else:
            render_collection(schema)
    else:
        render_editor(schema, None)


def render_sidebar(doc_types):
    with st.sidebar:
        st.title(get_config_value('ui', 'sidebar_title', 'Content'))

        labels = {}
        for doc_type in doc_types:
            try:
                labels[doc_type] = get_schema(doc_type).get('title', doc_type)
            except SchemaLoadError:
                labels[doc_type] = doc_type

        current = SessionManager.get_current_doc_type()
        selected = st.radio(
            "Document",
            options=doc_types,
            index=doc_types.index(current) if current in doc_types else 0,
            format_func=lambda d: labels.get(d, d),
            label_visibility="collapsed"
        )
        SessionManager.set_current_doc_type(selected)

        st.divider()
        render_recent_activity()


def render_recent_activity():
    st.subheader("Recent activity")
    limit = int(get_config_value('activity_log', 'recent_limit', 100))
    entries = get_activity_log().recent(min(limit, 10))
    if not entries:
        st.caption("No activity yet")
        return
    for entry in entries:
        st.caption(f"{entry.timestamp.strftime('%Y-%m-%d %H:%M')} · {entry.user_name}")
        st.markdown(entry.description)


def get_or_create_editor(schema, item_id):
    doc_type = schema['doc_type']
    editor = SessionManager.get_editor(doc_type, item_id)
    if editor is None:
        editor = ContentEditor(
            schema,
            get_content_api(),
            get_content_cache(),
            get_activity_log(),
            StreamlitNotifier(),
            item_id=item_id,
            user_name=get_config_value('app', 'user_name', 'admin')
        )
        SessionManager.set_editor(doc_type, item_id, editor)
        outcome = run(editor.load())
        logger.info(f"Opened editor for {doc_type}/{item_id or '-'}: {outcome.value}")
    return editor


def render_editor(schema, item_id):
    editor = get_or_create_editor(schema, item_id)
    is_collection = schema.get('kind') == 'collection'

    if is_collection and st.button("← Back to list"):
        SessionManager.close_item()
        st.rerun()

    if editor.is_closed:
        st.error("❌ This content no longer exists on the server.")
        if is_collection and st.button("Return to list"):
            SessionManager.close_item()
            st.rerun()
        return

    if editor.reconciler.last_error is not None:
        st.warning(f"⚠️ {editor.reconciler.last_error.message}. Showing cached content.")
        if st.button("🔄 Retry"):
            outcome = run(editor.load())
            if outcome is ReconcileOutcome.DISCARDED_EDITS:
                Notify.warn("Unsaved edits were replaced by newer content from the server")
            elif outcome is ReconcileOutcome.APPLIED:
                Notify.info("Content reloaded from the server")
            if outcome is not ReconcileOutcome.FAILED:
                st.rerun()

    if editor.binder.is_dirty:
        st.caption(f"Unsaved changes: {', '.join(editor.binder.changed_paths()[:5])}")

    FormGenerator.render_editor(editor)

    if editor.field_errors:
        show_field_errors(editor.field_errors)

    label = "Create" if editor.is_new else "Save changes"
    if st.button(f"💾 {label}", type="primary", disabled=not editor.pipeline.can_submit):
        was_new = editor.is_new
        result = run(editor.submit())
        if result.outcome is SubmitOutcome.SAVED:
            if was_new:
                # The editor now belongs to the created item's id
                SessionManager.drop_editor(schema['doc_type'], None)
                SessionManager.set_editor(schema['doc_type'], editor.item_id, editor)
                SessionManager.open_item(editor.item_id)
            st.rerun()
        elif result.outcome is SubmitOutcome.FAILED and isinstance(result.error, ContentEditorError):
            show_error_details(result.error.get_full_details())


def render_collection(schema):
    manager = CollectionManager(
        schema,
        get_content_api(),
        get_content_cache(),
        get_activity_log(),
        StreamlitNotifier(),
        user_name=get_config_value('app', 'user_name', 'admin')
    )

    loaded_key = f"loaded:{manager.doc_type}"
    if not st.session_state.get(loaded_key):
        st.session_state[loaded_key] = run(manager.refresh())

    col1, col2 = st.columns([1, 1])
    with col1:
        if st.button(f"➕ New {manager.label.lower()}"):
            SessionManager.open_item(None)
            st.rerun()
    with col2:
        if st.button("🔄 Refresh"):
            st.session_state[loaded_key] = run(manager.refresh())

    items = manager.items()
    if not items:
        st.info(f"No {manager.label.lower()} items yet")
        return

    statuses = manager.status_choices
    for item in items:
        item_id = item.get('id')
        with st.container(border=True):
            name_col, status_col, edit_col, delete_col = st.columns([5, 2, 1, 1])
            with name_col:
                st.markdown(f"**{manager.item_name(item)}**")
                st.caption(f"Updated {str(item.get('updatedAt', ''))[:10]}")
            with status_col:
                if statuses:
                    current = item.get('status')
                    new_status = st.selectbox(
                        "Status",
                        options=statuses,
                        index=statuses.index(current) if current in statuses else 0,
                        key=f"status:{manager.doc_type}:{item_id}",
                        label_visibility="collapsed"
                    )
                    if new_status != current:
                        run(manager.change_status(item_id, new_status))
                        st.rerun()
            with edit_col:
                if st.button("✏️", key=f"edit:{manager.doc_type}:{item_id}", help="Edit"):
                    SessionManager.open_item(item_id)
                    st.rerun()
            with delete_col:
                if st.button("🗑️", key=f"delete:{manager.doc_type}:{item_id}", help="Delete"):
                    if run(manager.delete_item(item_id)):
                        SessionManager.drop_editor(manager.doc_type, item_id)
                        st.rerun()


if __name__ == "__main__":
    main()
