"""
UI feedback utilities for the CMS admin dashboard.

The editing model reports outcomes through a ``Notifier``: anything with
``success(message)`` and ``error(message)``. The dashboard uses the
toast-first ``Notify`` helper; headless callers and tests use
``LoggingNotifier``.
"""

import streamlit as st
import time
from typing import Dict, List, Optional, Protocol
import logging

# Configure logging
logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Fire-and-forget user notifications."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class Notify:
    """
    Toast-first notification helper.
    Prefers st.toast for non-blocking notifications when available.
    Falls back to ephemeral placeholders with auto-dismiss for older versions.

    Usage:
    Notify.success("Footer saved")
    Notify.error("Could not reach the content server")
    Notify.once("Seed content loaded", notification_type="info", key="seed_notice")
    """

    ICONS = {
        'success': '✅',
        'info': 'ℹ️',
        'warning': '⚠️',
        'error': '❌'
    }

    @staticmethod
    def _display_notification(message: str, notification_type: str = 'info') -> None:
        """Internal method to display notification based on type."""
        icon = Notify.ICONS.get(notification_type, 'ℹ️')
        full_message = f"{icon} {message}"

        try:
            if hasattr(st, 'toast'):
                st.toast(message, icon=icon)
            else:
                placeholder = st.empty()
                if notification_type == 'success':
                    placeholder.success(full_message)
                elif notification_type == 'warning':
                    placeholder.warning(full_message)
                elif notification_type == 'error':
                    placeholder.error(full_message)
                else:
                    placeholder.info(full_message)
                time.sleep(3)  # Auto-dismiss after 3 seconds
                placeholder.empty()
        except Exception as e:
            logger.error(f"Error using st.toast: {e}", exc_info=True)
            if notification_type == 'success':
                st.success(full_message)
            elif notification_type == 'warning':
                st.warning(full_message)
            elif notification_type == 'error':
                st.error(full_message)
            else:
                st.info(full_message)

    @staticmethod
    def success(message: str) -> None:
        """Show success notification."""
        Notify._display_notification(message, 'success')

    @staticmethod
    def info(message: str) -> None:
        """Show info notification."""
        Notify._display_notification(message, 'info')

    @staticmethod
    def warn(message: str) -> None:
        """Show warning notification."""
        Notify._display_notification(message, 'warning')

    @staticmethod
    def error(message: str) -> None:
        """Show error notification."""
        Notify._display_notification(message, 'error')

    @staticmethod
    def once(message: str, notification_type: str = 'info', key: str = 'default_once') -> bool:
        """
        Show notification only once per session for the given key.
        Returns True if shown, False if already shown.
        """
        if key not in st.session_state:
            st.session_state[key] = False
        if not st.session_state[key]:
            Notify._display_notification(message, notification_type)
            st.session_state[key] = True
            return True
        return False


class StreamlitNotifier:
    """Notifier that shows toasts in the running Streamlit session."""

    def success(self, message: str) -> None:
        logger.info(f"Notify success: {message}")
        Notify.success(message)

    def error(self, message: str) -> None:
        logger.warning(f"Notify error: {message}")
        Notify.error(message)


class LoggingNotifier:
    """
    Notifier for headless use.

    Messages are logged and kept in ``messages`` as ``(kind, text)`` pairs in
    the order they were sent.
    """

    def __init__(self):
        self.messages: List[tuple] = []

    def success(self, message: str) -> None:
        logger.info(message)
        self.messages.append(('success', message))

    def error(self, message: str) -> None:
        logger.error(message)
        self.messages.append(('error', message))

    def of_kind(self, kind: str) -> List[str]:
        return [text for message_kind, text in self.messages if message_kind == kind]


def show_field_errors(field_errors: Dict[str, str], labels: Optional[Dict[str, str]] = None) -> None:
    """Show validation errors grouped under one heading, one line per field path."""
    if not field_errors:
        return

    labels = labels or {}
    st.error(f"❌ **{len(field_errors)} field(s) need attention:**")
    for path, message in field_errors.items():
        st.error(f"  • {labels.get(path, path)}: {message}")


def show_error_details(details: Dict) -> None:
    """Render ``ContentEditorError.get_full_details()`` output in an expander."""
    with st.expander("Error details"):
        suggestions = details.get('recovery_suggestions') or []
        if suggestions:
            st.markdown("**What you can do:**")
            for suggestion in suggestions:
                st.markdown(f"- {suggestion}")
        st.json(details.get('context', {}))
