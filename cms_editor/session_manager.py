"""
Session state management for the CMS admin dashboard.
Keeps the selected document and its open editors across Streamlit reruns.
"""

import streamlit as st
from typing import Dict, Any, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

DEFAULT_DOC_TYPE = "home"
NEW_ITEM_KEY = "__new__"


class SessionManager:
    """Manages Streamlit session state for the CMS admin dashboard."""

    @staticmethod
    def initialize(default_doc_type: str = DEFAULT_DOC_TYPE):
        """Initialize session state keys that are not set yet."""
        defaults = {
            'current_doc_type': default_doc_type,
            'current_item_id': None,
            'editing_item': False,
            'editors': {},
            'last_activity': datetime.now(),
            'session_id': None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

        if not st.session_state.session_id:
            st.session_state.session_id = f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            logger.info(f"Session initialized: {st.session_state.session_id}")

    @staticmethod
    def get_current_doc_type() -> str:
        return st.session_state.get('current_doc_type', DEFAULT_DOC_TYPE)

    @staticmethod
    def set_current_doc_type(doc_type: str):
        """Switch to another document type and leave any open item."""
        old = st.session_state.get('current_doc_type')
        if old != doc_type:
            logger.info(f"Document type changed: {old} -> {doc_type}")
            st.session_state.current_doc_type = doc_type
            SessionManager.close_item()
            SessionManager.update_activity()

    @staticmethod
    def get_current_item_id() -> Optional[str]:
        return st.session_state.get('current_item_id')

    @staticmethod
    def is_editing_item() -> bool:
        return bool(st.session_state.get('editing_item', False))

    @staticmethod
    def open_item(item_id: Optional[str]):
        """Open a collection item for editing; None opens a new item."""
        st.session_state.current_item_id = item_id
        st.session_state.editing_item = True
        SessionManager.update_activity()

    @staticmethod
    def close_item():
        doc_type = SessionManager.get_current_doc_type()
        if st.session_state.get('editing_item'):
            SessionManager.drop_editor(doc_type, st.session_state.get('current_item_id'))
        st.session_state.current_item_id = None
        st.session_state.editing_item = False

    @staticmethod
    def editor_key(doc_type: str, item_id: Optional[str]) -> str:
        return f"{doc_type}:{item_id or NEW_ITEM_KEY}"

    @staticmethod
    def get_editor(doc_type: str, item_id: Optional[str] = None) -> Optional[Any]:
        editors: Dict[str, Any] = st.session_state.get('editors', {})
        return editors.get(SessionManager.editor_key(doc_type, item_id))

    @staticmethod
    def set_editor(doc_type: str, item_id: Optional[str], editor: Any):
        if 'editors' not in st.session_state:
            st.session_state.editors = {}
        st.session_state.editors[SessionManager.editor_key(doc_type, item_id)] = editor

    @staticmethod
    def drop_editor(doc_type: str, item_id: Optional[str] = None):
        """Forget an editor; its widgets are rebuilt from fresh content next time."""
        editors = st.session_state.get('editors', {})
        if editors.pop(SessionManager.editor_key(doc_type, item_id), None) is not None:
            logger.debug(f"Dropped editor for {doc_type}/{item_id or NEW_ITEM_KEY}")

    @staticmethod
    def get_form_version(editor: Any) -> int:
        """Widget key suffix; changes whenever the editor's values are replaced wholesale."""
        return getattr(editor.binder, 'version', 0)

    @staticmethod
    def update_activity():
        st.session_state.last_activity = datetime.now()

    @staticmethod
    def get_session_info() -> Dict[str, Any]:
        return {
            'session_id': st.session_state.get('session_id'),
            'current_doc_type': SessionManager.get_current_doc_type(),
            'current_item_id': SessionManager.get_current_item_id(),
            'open_editors': len(st.session_state.get('editors', {})),
            'last_activity': st.session_state.get('last_activity'),
        }
