"""
Unit tests for the form state binder.
"""

import pytest

from cms_editor.exceptions import FieldPathError
from cms_editor.form_state import FormStateBinder


@pytest.fixture
def binder():
    return FormStateBinder({
        'logo': {'url': '/images/logo.png', 'alt': 'Logo'},
        'columns': [{'id': 'col-1', 'title': 'Company', 'links': []}],
    })


class TestGetSet:
    """Test cases for single-value access."""

    def test_get_nested(self, binder):
        assert binder.get('logo.url') == '/images/logo.png'
        assert binder.get('columns[0].title') == 'Company'
        assert binder.get('columns.0.title') == 'Company'

    def test_get_missing_uses_default(self, binder):
        assert binder.get('copyright.year') is None
        assert binder.get('copyright.year', '2025') == '2025'

    def test_set_then_get(self, binder):
        binder.set('columns[0].title', 'About Nex')
        assert binder.get('columns[0].title') == 'About Nex'

    def test_set_creates_objects(self, binder):
        binder.set('copyright.text', 'All rights reserved.')
        assert binder.get_all()['copyright'] == {'text': 'All rights reserved.'}

    def test_get_returns_a_copy(self, binder):
        columns = binder.get('columns')
        columns[0]['links'].append({'label': 'Careers'})
        columns.append({'id': 'col-2'})
        binder.get('logo')['alt'] = 'Changed'

        assert binder.get_all() == {
            'logo': {'url': '/images/logo.png', 'alt': 'Logo'},
            'columns': [{'id': 'col-1', 'title': 'Company', 'links': []}],
        }
        assert binder.is_dirty is False

    def test_set_invalid_list_index(self, binder):
        with pytest.raises(FieldPathError):
            binder.set('columns[3].title', 'Legal')


class TestSnapshotAndReset:
    """Test cases for get_all and reset."""

    def test_get_all_is_a_copy(self, binder):
        snapshot = binder.get_all()
        snapshot['logo']['url'] = '/changed.png'
        assert binder.get('logo.url') == '/images/logo.png'

    def test_defaults_are_copied(self):
        defaults = {'tagline': 'Quality'}
        binder = FormStateBinder(defaults)
        binder.set('tagline', 'Comfort')
        assert defaults == {'tagline': 'Quality'}

    def test_reset_replaces_everything(self, binder):
        binder.set('logo.alt', 'Edited')

        binder.reset({'tagline': 'Legacy'})

        assert binder.get_all() == {'tagline': 'Legacy'}
        assert binder.get('logo.alt') is None
        assert binder.is_dirty is False

    def test_reset_without_values_clears(self, binder):
        binder.reset()
        assert binder.get_all() == {}

    def test_reset_bumps_version_and_generation(self, binder):
        assert (binder.version, binder.generation) == (0, 0)
        binder.reset({'a': 1})
        binder.reset({'a': 2})
        assert (binder.version, binder.generation) == (2, 2)


class TestDirtyTracking:
    """Test cases for change detection against the baseline."""

    def test_clean_after_construction(self, binder):
        assert binder.is_dirty is False
        assert binder.changed_paths() == []

    def test_dirty_after_set(self, binder):
        binder.set('logo.url', '/images/logo-dark.png')

        assert binder.is_dirty is True
        assert binder.changed_paths() == ['logo.url']
        assert binder.baseline['logo']['url'] == '/images/logo.png'

    def test_setting_back_is_clean(self, binder):
        binder.set('logo.url', '/x.png')
        binder.set('logo.url', '/images/logo.png')
        assert binder.is_dirty is False

    def test_in_place_list_edit_is_dirty(self, binder):
        binder.raw()['columns'][0]['links'].append({'label': 'About'})
        assert binder.is_dirty is True


class TestListeners:
    """Test cases for change notifications."""

    def test_listener_receives_paths(self, binder):
        seen = []
        binder.subscribe(seen.append)

        binder.set('columns.0.title', 'Explore')
        binder.mark_changed('columns')
        binder.reset({})

        assert seen == ['columns[0].title', 'columns', None]

    def test_unsubscribe(self, binder):
        seen = []
        unsubscribe = binder.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        binder.set('logo.alt', 'x')

        assert seen == []
