"""
Tests for schema-driven document validation.
"""

import copy
from pathlib import Path

import pytest
import yaml

from cms_editor.schema_loader import get_schema, reload_schemas
from cms_editor.schema_validator import (
    SchemaValidator,
    ValidationResult,
    clear_validator_cache,
    get_validator,
    is_valid_email,
    is_valid_url,
)

ROOT = Path(__file__).parent
SCHEMAS_DIR = ROOT / "schemas"


@pytest.fixture(scope="module")
def seed_pages():
    with open(ROOT / "seed" / "content.yaml", encoding='utf-8') as f:
        return yaml.safe_load(f)['pages']


@pytest.fixture
def footer_validator():
    reload_schemas()
    clear_validator_cache()
    return get_validator('footer', SCHEMAS_DIR)


@pytest.fixture
def home_validator():
    reload_schemas()
    clear_validator_cache()
    return get_validator('home', SCHEMAS_DIR)


class TestUrlAndEmail:
    """Test cases for the format helpers."""

    @pytest.mark.parametrize('value', [
        'https://nexkraft.com',
        'http://localhost:8000/api',
        '/images/logo.png',
        'mailto:hello@example.com',
        'tel:+8801677600000',
    ])
    def test_valid_urls(self, value):
        assert is_valid_url(value)

    @pytest.mark.parametrize('value', ['not a url', 'images/logo.png', '//cdn.example.com/x', 'https://', 'mailto:'])
    def test_invalid_urls(self, value):
        assert not is_valid_url(value)

    def test_email(self):
        assert is_valid_email('hello.nexrealestate@gmail.com')
        assert not is_valid_email('hello@')
        assert not is_valid_email('two words@example.com')


class TestShippedContent:
    """The seed content must satisfy its own schemas."""

    def test_every_seed_page_is_valid(self, seed_pages):
        reload_schemas()
        clear_validator_cache()
        for doc_type, document in seed_pages.items():
            result = get_validator(doc_type, SCHEMAS_DIR)(document)
            assert result.valid, f"{doc_type}: {result.field_errors}"


class TestFooterValidation:
    """Footer rules: nested objects, link lists and formats."""

    def test_invalid_logo_url(self, footer_validator, seed_pages):
        footer = copy.deepcopy(seed_pages['footer'])
        footer['logo']['url'] = 'not a url'

        result = footer_validator(footer)

        assert result.valid is False
        assert result.field_errors == {'logo.url': 'Must be a valid URL'}

    def test_missing_nested_link_label(self, footer_validator, seed_pages):
        footer = copy.deepcopy(seed_pages['footer'])
        footer['columns'][1]['links'][0]['label'] = '   '

        result = footer_validator(footer)

        assert result.error_for('columns[1].links[0].label') == 'Label is required'
        assert result.error_for('columns.1.links.0.label') == 'Label is required'

    def test_custom_message_applies_to_every_rule(self, footer_validator, seed_pages):
        footer = copy.deepcopy(seed_pages['footer'])
        footer['copyright']['year'] = '25'
        assert footer_validator(footer).field_errors == {'copyright.year': 'Year must have four digits'}

        footer['copyright']['year'] = ''
        assert footer_validator(footer).field_errors == {'copyright.year': 'Year must have four digits'}

    def test_optional_empty_fields_skip_rules(self, footer_validator, seed_pages):
        footer = copy.deepcopy(seed_pages['footer'])
        footer['socialLinks']['linkedin'] = ''
        del footer['contactInfo']

        assert footer_validator(footer).valid is True

    def test_optional_blank_date_and_number(self, seed_pages):
        reload_schemas()
        clear_validator_cache()
        career_validator = get_validator('career', SCHEMAS_DIR)
        career = copy.deepcopy(seed_pages['career'])
        career['jobOpenings'] = [{
            'id': 'job-1',
            'title': 'Site Engineer',
            'slug': 'site-engineer',
            'department': 'Construction',
            'location': 'Dhaka',
            'type': 'full-time',
            'experience': '3+ years',
            'description': 'Supervise structural work on site.',
            'requirements': ['B.Sc. in Civil Engineering'],
            'responsibilities': ['Daily site inspections'],
            'deadline': '',
            'order': '',
        }]

        result = career_validator(career)

        assert result.valid is True
        assert result.field_errors == {}

        career['jobOpenings'][0]['deadline'] = 'next week'
        assert list(career_validator(career).field_errors) == ['jobOpenings[0].deadline']

    def test_bad_email(self, footer_validator, seed_pages):
        footer = copy.deepcopy(seed_pages['footer'])
        footer['contactInfo']['email'] = 'hello-at-nex'

        assert footer_validator(footer).field_errors == {'contactInfo.email': 'Must be a valid email'}

    def test_wrong_type_reported_once(self, footer_validator, seed_pages):
        footer = copy.deepcopy(seed_pages['footer'])
        footer['columns'][0]['order'] = 'first'

        errors = footer_validator(footer).field_errors

        assert list(errors) == ['columns[0].order']
        assert errors['columns[0].order'] == 'Order must be a whole number'


class TestHomeValidation:
    """Home page rules: value propositions, CEO message, marketing lines."""

    def test_value_propositions_min_items(self, home_validator, seed_pages):
        home = copy.deepcopy(seed_pages['home'])
        home['valuePropositions'] = []

        result = home_validator(home)

        assert result.field_errors == {'valuePropositions': 'At least one value proposition is required'}

    def test_ceo_message_min_length(self, home_validator, seed_pages):
        home = copy.deepcopy(seed_pages['home'])
        home['ceoMessage']['message'] = 'Hello'

        result = home_validator(home)

        assert result.field_errors == {'ceoMessage.message': 'Message must be at least 10 characters'}

    def test_present_list_items_are_required(self, home_validator, seed_pages):
        home = copy.deepcopy(seed_pages['home'])
        home['marketingLines'].append('')

        result = home_validator(home)

        assert result.field_errors == {'marketingLines[3]': 'Marketing line cannot be empty'}

    def test_missing_required_object(self, home_validator, seed_pages):
        home = copy.deepcopy(seed_pages['home'])
        del home['heroBanner']

        assert home_validator(home).field_errors == {'heroBanner': 'Hero banner is required'}

    def test_not_a_document(self, home_validator):
        result = home_validator(['not', 'a', 'dict'])
        assert result == ValidationResult(valid=False, field_errors={'': 'Document must be an object'})


class TestRuleVocabulary:
    """Test cases for individual rules on a small inline schema."""

    @pytest.fixture
    def validator(self):
        return SchemaValidator({
            'doc_type': 'sample',
            'fields': {
                'title': {'type': 'string', 'label': 'Title', 'required': True, 'max_length': 5},
                'floors': {'type': 'integer', 'label': 'Floors', 'min_value': 1, 'max_value': 100},
                'price': {'type': 'number', 'label': 'Price', 'min_value': 0},
                'status': {'type': 'enum', 'label': 'Status', 'choices': ['ongoing', 'completed']},
                'publishDate': {'type': 'date', 'label': 'Publish date'},
                'featured': {'type': 'boolean', 'label': 'Featured'},
                'tags': {'type': 'array', 'label': 'Tags', 'max_items': 2, 'items': {'type': 'string'}},
                'slug': {
                    'type': 'string', 'label': 'Slug', 'pattern': '^[a-z-]+$',
                    'messages': {'pattern': 'Lowercase letters and hyphens only'}
                },
            }
        })

    def test_valid(self, validator):
        result = validator({'title': 'Nex', 'floors': 14, 'price': 2.5, 'status': 'ongoing',
                            'publishDate': '2025-01-15', 'featured': True, 'tags': ['a'], 'slug': 'nex'})
        assert result.valid
        assert result.field_errors == {}

    def test_each_rule_reports_its_message(self, validator):
        result = validator({
            'title': 'Too long title',
            'floors': 0,
            'price': -1,
            'status': 'sold',
            'publishDate': 'yesterday',
            'tags': ['a', 'b', 'c'],
            'slug': 'Not Valid',
        })

        assert result.field_errors == {
            'title': 'Title must be at most 5 characters',
            'floors': 'Floors must be at least 1',
            'price': 'Price must be at least 0',
            'status': 'Status must be one of: ongoing, completed',
            'publishDate': 'Publish date must be a valid date',
            'tags': 'At most 2 items allowed',
            'slug': 'Lowercase letters and hyphens only',
        }

    def test_boolean_is_not_a_number(self, validator):
        result = validator({'title': 'Nex', 'floors': True})
        assert result.field_errors['floors'] == 'Floors must be a whole number'

    def test_rule_for_path(self, validator):
        reload_schemas()
        footer = SchemaValidator(get_schema('footer', SCHEMAS_DIR))

        assert footer.rule_for_path('columns[0].links[2].href')['label'] == 'Link'
        assert footer.rule_for_path('columns')['type'] == 'array'
        assert footer.rule_for_path('columns[0].unknown') is None
        assert footer.rule_for_path('logo[0]') is None
        assert validator.rule_for_path('tags[3]') == {'type': 'string'}

    def test_find_unvalidated_paths(self, validator):
        document = {'id': 'x', 'updatedAt': 'now', 'title': 'Nex', 'legacyField': 'value',
                    'tags': ['a']}
        assert validator.find_unvalidated_paths(document) == ['legacyField']
