"""
Dynamic form generator for the CMS admin dashboard.
Renders Streamlit inputs for a document schema and writes every change
straight into the editor's form binder.
"""

import streamlit as st
from datetime import datetime, date, time as dt_time
from typing import Dict, Any, List, Optional
import logging

from dateutil import parser

from .content_editor import ContentEditor
from .field_paths import join_path
from .schema_validator import SERVER_MANAGED_FIELDS

logger = logging.getLogger(__name__)


class FormGenerator:
    """Generates editing forms for content documents from their schemas."""

    @staticmethod
    def widget_key(editor: ContentEditor, path: str) -> str:
        """
        Streamlit key for the input bound to ``path``.

        The binder version and the layout revision are part of the key, so after
        a load, a save or a list edit every input is recreated with the current
        value instead of keeping its old state.
        """
        revision = st.session_state.get(FormGenerator._layout_key(editor), 0)
        return f"{editor.doc_type}:{editor.item_id or 'new'}:v{editor.binder.version}.{revision}:{path}"

    @staticmethod
    def _layout_key(editor: ContentEditor) -> str:
        return f"layout:{editor.doc_type}:{editor.item_id or 'new'}"

    @staticmethod
    def _bump_layout(editor: ContentEditor) -> None:
        key = FormGenerator._layout_key(editor)
        st.session_state[key] = st.session_state.get(key, 0) + 1

    @staticmethod
    def render_editor(editor: ContentEditor) -> None:
        """Render every field of the editor's schema."""
        fields = editor.schema.get('fields', {})
        for field_name, field_config in fields.items():
            if field_name in SERVER_MANAGED_FIELDS:
                continue
            FormGenerator.render_field(editor, field_name, field_config)

        unvalidated = editor.unvalidated_paths()
        if unvalidated:
            logger.debug(f"{editor.doc_type}: fields without rules: {unvalidated}")

    @staticmethod
    def render_field(editor: ContentEditor, path: str, field_config: Dict[str, Any]) -> None:
        field_type = field_config.get('type', 'string')

        try:
            if field_type == 'object':
                FormGenerator._render_object(editor, path, field_config)
            elif field_type == 'array':
                FormGenerator._render_array(editor, path, field_config)
            else:
                FormGenerator._render_scalar(editor, path, field_config)
        except Exception as e:
            st.error(f"Error rendering field {path}: {str(e)}")
            logger.error(f"Error rendering field {path}: {e}", exc_info=True)
            return

        FormGenerator._show_field_error(editor, path)

    @staticmethod
    def _label(path: str, field_config: Dict[str, Any]) -> str:
        label = field_config.get('label') or path.split('.')[-1]
        if field_config.get('required', False):
            label += " *"
        return label

    @staticmethod
    def _show_field_error(editor: ContentEditor, path: str) -> None:
        message = editor.field_errors.get(path)
        if message:
            st.markdown(f":red[{message}]")

    @staticmethod
    def _write_back(editor: ContentEditor, path: str, value: Any) -> None:
        current = editor.get(path)
        # An untouched empty input must not turn a missing value into ""
        if current is None and value in ("", None):
            return
        if value != current:
            editor.set(path, value)

    @staticmethod
    def _render_scalar(editor: ContentEditor, path: str, field_config: Dict[str, Any]) -> None:
        field_type = field_config.get('type', 'string')
        key = FormGenerator.widget_key(editor, path)
        label = FormGenerator._label(path, field_config)
        help_text = field_config.get('help')
        current = editor.get(path)
        # Writes the change before any button callback of the same rerun runs
        sync = {'on_change': FormGenerator._sync_widget, 'args': (editor, path, key)}

        if field_type == 'string':
            if field_config.get('multiline', False):
                value = st.text_area(label, value=current or "", key=key, help=help_text, height=100, **sync)
            else:
                value = st.text_input(label, value=current or "", key=key, help=help_text, **sync)
        elif field_type in ('number', 'integer'):
            value = FormGenerator._render_number_input(label, field_config, current, key, help_text, sync)
        elif field_type == 'boolean':
            value = st.checkbox(label, value=bool(current), key=key, help=help_text, **sync)
        elif field_type == 'enum':
            value = FormGenerator._render_selectbox(label, field_config, current, key, help_text, sync)
        elif field_type == 'date':
            value = FormGenerator._render_date_input(label, current, key, help_text, sync)
        elif field_type == 'datetime':
            value = FormGenerator._render_datetime_input(label, current, key, help_text)
        else:
            value = st.text_input(label, value=str(current or ""), key=key, help=help_text)

        FormGenerator._write_back(editor, path, value)

    @staticmethod
    def _sync_widget(editor: ContentEditor, path: str, key: str) -> None:
        value = st.session_state.get(key)
        if isinstance(value, date):
            value = value.isoformat()
        FormGenerator._write_back(editor, path, value)

    @staticmethod
    def _render_number_input(label: str, field_config: Dict[str, Any], current: Any,
                             key: str, help_text: Optional[str], sync: Dict[str, Any]) -> Any:
        kwargs: Dict[str, Any] = dict(sync, key=key, help=help_text)
        if field_config.get('type') == 'integer':
            kwargs['step'] = 1
            kwargs['format'] = "%d"
            cast = int
        else:
            kwargs['step'] = float(field_config.get('step', 0.01))
            kwargs['format'] = "%.2f"
            cast = float

        for bound in ('min_value', 'max_value'):
            if field_config.get(bound) is not None:
                kwargs[bound] = cast(field_config[bound])

        value = cast(current) if isinstance(current, (int, float)) and not isinstance(current, bool) else None
        return st.number_input(label, value=value, **kwargs)

    @staticmethod
    def _render_selectbox(label: str, field_config: Dict[str, Any], current: Any,
                          key: str, help_text: Optional[str], sync: Dict[str, Any]) -> Any:
        options: List[Any] = list(field_config.get('choices', []))
        if not field_config.get('required', False):
            options = [None] + options
        index = options.index(current) if current in options else 0
        return st.selectbox(
            label,
            options=options,
            index=index,
            key=key,
            help=help_text,
            format_func=lambda x: "-- Select --" if x is None else str(x),
            **sync
        )

    @staticmethod
    def _parse_date(value: Any) -> Optional[date]:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str) and value:
            try:
                return parser.parse(value).date()
            except (ValueError, OverflowError) as e:
                logger.warning(f"Failed to parse date string '{value}': {e}")
        return None

    @staticmethod
    def _render_date_input(label: str, current: Any, key: str, help_text: Optional[str],
                           sync: Dict[str, Any]) -> Optional[str]:
        """Render a date input; the stored value is an ISO date string."""
        result = st.date_input(label, value=FormGenerator._parse_date(current), key=key, help=help_text, **sync)
        if isinstance(result, date):
            return result.isoformat()
        return None

    @staticmethod
    def _render_datetime_input(label: str, current: Any, key: str, help_text: Optional[str]) -> Optional[str]:
        """Render date and time inputs side by side; the stored value is an ISO datetime string."""
        parsed: Optional[datetime] = None
        if isinstance(current, datetime):
            parsed = current
        elif isinstance(current, str) and current:
            try:
                parsed = parser.parse(current)
            except (ValueError, OverflowError) as e:
                logger.warning(f"Failed to parse datetime string '{current}': {e}")

        col1, col2 = st.columns(2)
        with col1:
            date_value = st.date_input(
                label, value=parsed.date() if parsed else None, key=f"{key}:date", help=help_text
            )
        with col2:
            time_value = st.time_input(
                "Time", value=parsed.time() if parsed else dt_time(9, 0), key=f"{key}:time"
            )

        if not isinstance(date_value, date):
            return None
        return datetime.combine(date_value, time_value or dt_time(0, 0)).isoformat()

    @staticmethod
    def _render_object(editor: ContentEditor, path: str, field_config: Dict[str, Any]) -> None:
        st.markdown(f"**{FormGenerator._label(path, field_config)}**")
        if field_config.get('help'):
            st.caption(field_config['help'])

        with st.container(border=True):
            for name, child_config in field_config.get('properties', {}).items():
                # Local element ids are managed by the group controllers
                if name == 'id' and child_config.get('type', 'string') == 'string':
                    continue
                FormGenerator.render_field(editor, join_path(path, name), child_config)

    @staticmethod
    def _render_array(editor: ContentEditor, path: str, field_config: Dict[str, Any]) -> None:
        group = editor.group(path)
        items_config = field_config.get('items', {})
        item_label = items_config.get('label') or field_config.get('label', path)

        st.markdown(f"**{FormGenerator._label(path, field_config)}** ({len(group)})")
        if field_config.get('help'):
            st.caption(field_config['help'])

        key_base = FormGenerator.widget_key(editor, path)
        count = len(group)

        for index in range(count):
            item_path = join_path(path, index)
            with st.container(border=True):
                header, up, down, remove = st.columns([6, 1, 1, 1])
                with header:
                    st.caption(f"{item_label} {index + 1}")
                with up:
                    st.button("↑", key=f"{key_base}:up:{index}", disabled=index == 0,
                              on_click=FormGenerator._list_edit, args=(editor, group.move_up, index), help="Move up")
                with down:
                    st.button("↓", key=f"{key_base}:down:{index}", disabled=index == count - 1,
                              on_click=FormGenerator._list_edit, args=(editor, group.move_down, index), help="Move down")
                with remove:
                    st.button("✕", key=f"{key_base}:remove:{index}",
                              on_click=FormGenerator._list_edit, args=(editor, group.remove_at, index), help="Remove")

                if items_config.get('type') == 'object':
                    for name, child_config in items_config.get('properties', {}).items():
                        if name == 'id' or name == group.order_field:
                            continue
                        FormGenerator.render_field(editor, join_path(item_path, name), child_config)
                else:
                    FormGenerator.render_field(editor, item_path, dict(items_config, label=item_label))

        max_items = field_config.get('max_items')
        st.button(
            f"➕ Add {item_label}",
            key=f"{key_base}:add",
            disabled=max_items is not None and count >= max_items,
            on_click=FormGenerator._list_edit,
            args=(editor, group.append)
        )

    @staticmethod
    def _list_edit(editor: ContentEditor, operation, *args) -> None:
        """Run a list operation from a button and recreate the inputs below it."""
        try:
            operation(*args)
        except IndexError as e:
            logger.warning(f"List edit ignored: {e}")
        FormGenerator._bump_layout(editor)


def render_editor(editor: ContentEditor) -> None:
    """Convenience wrapper around ``FormGenerator.render_editor``."""
    FormGenerator.render_editor(editor)
