from datetime import date, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from cms_editor.activity_log import InMemoryActivityLog
from cms_editor.content_api import InMemoryContentAPI
from cms_editor.content_cache import ContentCache
from cms_editor.content_editor import ContentEditor
from cms_editor.form_generator import FormGenerator
from cms_editor.schema_loader import get_schema, reload_schemas
from cms_editor.ui_feedback import LoggingNotifier

BASE_DIR = Path(__file__).parent
SCHEMAS_DIR = BASE_DIR / "schemas"
SEED_FILE = BASE_DIR / "seed" / "content.yaml"


class _SessionState:
    def __init__(self, data=None):
        self._data = dict(data or {})

    def get(self, key, default=None):
        return self._data.get(key, default)

    def __contains__(self, key):
        return key in self._data

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._data[key] = value


@pytest.fixture
def session_state():
    state = _SessionState()
    with patch("streamlit.session_state", state):
        yield state


@pytest.fixture
def header_editor():
    reload_schemas()
    cache = ContentCache.from_seed(SEED_FILE)
    return ContentEditor(get_schema("header", SCHEMAS_DIR), InMemoryContentAPI(), cache,
                         InMemoryActivityLog(), LoggingNotifier())


def test_widget_key_tracks_version_and_layout(session_state, header_editor):
    first = FormGenerator.widget_key(header_editor, "brandName")
    assert first == "header:new:v0.0:brandName"

    header_editor.binder.reset(header_editor.get_all())
    assert FormGenerator.widget_key(header_editor, "brandName") == "header:new:v1.0:brandName"

    FormGenerator._bump_layout(header_editor)
    assert FormGenerator.widget_key(header_editor, "brandName") == "header:new:v1.1:brandName"


def test_list_edit_moves_and_bumps_layout(session_state, header_editor):
    navigation = header_editor.group("navigation")
    first_id = header_editor.get("navigation[0].id")

    FormGenerator._list_edit(header_editor, navigation.move_down, 0)

    assert header_editor.get("navigation[1].id") == first_id
    assert FormGenerator.widget_key(header_editor, "navigation[0].name").startswith("header:new:v0.1:")


def test_list_edit_ignores_stale_index(session_state, header_editor):
    navigation = header_editor.group("navigation")
    count = len(navigation)

    FormGenerator._list_edit(header_editor, navigation.remove_at, count + 3)

    assert len(navigation) == count


def test_sync_widget_writes_iso_dates(session_state):
    reload_schemas()
    editor = ContentEditor(get_schema("news", SCHEMAS_DIR), InMemoryContentAPI(), ContentCache(),
                           InMemoryActivityLog(), LoggingNotifier())
    session_state["news-publish-date"] = date(2025, 3, 4)

    FormGenerator._sync_widget(editor, "publishDate", "news-publish-date")

    assert editor.get("publishDate") == "2025-03-04"


def test_write_back_leaves_missing_values_alone(header_editor):
    FormGenerator._write_back(header_editor, "ctaButton.icon", "")
    assert header_editor.get("ctaButton.icon") is None
    assert header_editor.binder.is_dirty is False

    FormGenerator._write_back(header_editor, "brandName", "Nex Homes")
    assert header_editor.get("brandName") == "Nex Homes"


@pytest.mark.parametrize("value,expected", [
    ("2025-03-04", date(2025, 3, 4)),
    ("2025-03-04T10:30:00+00:00", date(2025, 3, 4)),
    (datetime(2025, 3, 4, 10, 30), date(2025, 3, 4)),
    (date(2025, 3, 4), date(2025, 3, 4)),
    ("not a date", None),
    ("", None),
    (None, None),
])
def test_parse_date(value, expected):
    assert FormGenerator._parse_date(value) == expected


@patch("streamlit.markdown")
@patch("streamlit.text_input")
def test_render_text_field_writes_value(mock_text_input, mock_markdown, session_state, header_editor):
    mock_text_input.return_value = "Nex Real Estate Ltd"

    FormGenerator.render_field(header_editor, "brandName", {"type": "string", "label": "Brand name",
                                                            "required": True})

    args, kwargs = mock_text_input.call_args
    assert args == ("Brand name *",)
    assert kwargs["key"] == "header:new:v0.0:brandName"
    assert header_editor.get("brandName") == "Nex Real Estate Ltd"
    mock_markdown.assert_not_called()


@patch("streamlit.markdown")
@patch("streamlit.text_input")
def test_render_shows_field_error(mock_text_input, mock_markdown, session_state, header_editor):
    mock_text_input.return_value = ""
    header_editor.pipeline.field_errors = {"brandName": "Brand name is required"}

    FormGenerator.render_field(header_editor, "brandName", {"type": "string", "label": "Brand name"})

    mock_markdown.assert_called_once_with(":red[Brand name is required]")
