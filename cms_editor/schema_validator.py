"""
Schema-driven validation of content documents.

``get_validator(doc_type)`` returns a callable that checks a candidate
document against the rules declared in the document type's schema file and
reports one message per nested field path, e.g.::

    {'logo.url': 'Must be a valid URL',
     'columns[0].links[1].label': 'Label is required'}

Rule checks are followed by a structural pass through a dynamic Pydantic
model; rule messages take precedence when both report the same path.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Type
from urllib.parse import urlparse

from pydantic import BaseModel

from .field_paths import format_path, iter_leaf_paths, parse_path
from .model_builder import create_model_from_schema, validate_model_data
from .schema_loader import get_schema

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_SCHEMES_WITHOUT_HOST = {'mailto', 'tel'}

# Assigned by the content server, never edited in forms
SERVER_MANAGED_FIELDS = {'id', 'createdAt', 'updatedAt'}


@dataclass
class ValidationResult:
    """
    Outcome of validating one candidate document.

    Attributes:
        valid: True when no rule was violated
        field_errors: Canonical field path -> message
    """
    valid: bool
    field_errors: Dict[str, str] = field(default_factory=dict)

    def error_for(self, path: str) -> Optional[str]:
        """Return the message attached to a path, accepting either path style."""
        return self.field_errors.get(format_path(path))


def is_valid_url(value: str) -> bool:
    """Absolute URLs with a scheme, or root-relative paths such as ``/logo.png``."""
    if value.startswith('/') and not value.startswith('//'):
        return True
    parsed = urlparse(value)
    if not parsed.scheme:
        return False
    if parsed.scheme in URL_SCHEMES_WITHOUT_HOST:
        return bool(parsed.path)
    return bool(parsed.netloc)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == '')


def _message(field_config: Dict[str, Any], rule: str, default: str) -> str:
    messages = field_config.get('messages') or {}
    if rule in messages:
        return messages[rule]
    return field_config.get('message', default)


class SchemaValidator:
    """Validator for one document type, built once from its schema."""

    def __init__(self, schema: Dict[str, Any]):
        self.schema = schema
        self.doc_type = schema.get('doc_type', 'document')
        self._model_class: Optional[Type[BaseModel]] = None

    def __call__(self, candidate: Any) -> ValidationResult:
        return self.validate(candidate)

    @property
    def model_class(self) -> Type[BaseModel]:
        if self._model_class is None:
            model_name = ''.join(part.title() for part in self.doc_type.split('_')) + 'Content'
            self._model_class = create_model_from_schema(self.schema, model_name)
        return self._model_class

    def validate(self, candidate: Any) -> ValidationResult:
        """
        Validate a candidate document.

        Args:
            candidate: Document field tree (usually the form binder snapshot)

        Returns:
            ValidationResult with per-path messages
        """
        errors: Dict[str, str] = {}

        if not isinstance(candidate, dict):
            errors[''] = 'Document must be an object'
            return ValidationResult(valid=False, field_errors=errors)

        for field_name, field_config in self.schema.get('fields', {}).items():
            self._validate_field((field_name,), candidate.get(field_name), field_config, errors)

        for path, message in validate_model_data(candidate, self.model_class).items():
            errors.setdefault(path, message)

        if errors:
            logger.debug(f"Validation of '{self.doc_type}' found {len(errors)} error(s)")
        return ValidationResult(valid=not errors, field_errors=errors)

    def _validate_field(self, path: tuple, value: Any, field_config: Dict[str, Any],
                        errors: Dict[str, str]) -> None:
        """Validate a single field value against its configuration."""
        key = format_path(path)
        label = field_config.get('label', str(path[-1]) if path else 'Value')

        if _is_empty(value):
            if field_config.get('required', False):
                errors.setdefault(key, _message(field_config, 'required', f"{label} is required"))
            return

        field_type = field_config.get('type', 'string')

        if field_type == 'string':
            self._validate_string(key, value, field_config, label, errors)
        elif field_type in ('number', 'integer', 'float'):
            self._validate_number(key, value, field_config, label, errors)
        elif field_type == 'boolean':
            if not isinstance(value, bool):
                errors.setdefault(key, _message(field_config, 'type', f"{label} must be true or false"))
        elif field_type == 'enum':
            choices = field_config.get('choices', [])
            if value not in choices:
                choices_str = ', '.join(str(c) for c in choices)
                errors.setdefault(key, _message(field_config, 'choices', f"{label} must be one of: {choices_str}"))
        elif field_type in ('date', 'datetime'):
            self._validate_date(key, value, field_config, label, errors)
        elif field_type == 'array':
            self._validate_array(path, value, field_config, label, errors)
        elif field_type == 'object':
            self._validate_object(path, value, field_config, label, errors)

    def _validate_string(self, key: str, value: Any, field_config: Dict[str, Any], label: str,
                         errors: Dict[str, str]) -> None:
        if not isinstance(value, str):
            errors.setdefault(key, _message(field_config, 'type', f"{label} must be text"))
            return

        min_length = field_config.get('min_length')
        if min_length is not None and len(value) < min_length:
            errors.setdefault(key, _message(
                field_config, 'min_length', f"{label} must be at least {min_length} characters"))
            return

        max_length = field_config.get('max_length')
        if max_length is not None and len(value) > max_length:
            errors.setdefault(key, _message(
                field_config, 'max_length', f"{label} must be at most {max_length} characters"))
            return

        pattern = field_config.get('pattern')
        if pattern:
            try:
                if not re.match(pattern, value):
                    errors.setdefault(key, _message(field_config, 'pattern', f"{label} format is invalid"))
                    return
            except re.error:
                logger.error(f"Invalid regex pattern for field {key}: {pattern}")

        field_format = field_config.get('format')
        if field_format == 'url' and not is_valid_url(value):
            errors.setdefault(key, _message(field_config, 'format', 'Must be a valid URL'))
        elif field_format == 'email' and not is_valid_email(value):
            errors.setdefault(key, _message(field_config, 'format', 'Must be a valid email'))

    def _validate_number(self, key: str, value: Any, field_config: Dict[str, Any], label: str,
                         errors: Dict[str, str]) -> None:
        field_type = field_config.get('type', 'number')

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            expected = 'a whole number' if field_type == 'integer' else 'a number'
            errors.setdefault(key, _message(field_config, 'type', f"{label} must be {expected}"))
            return

        if field_type == 'integer' and isinstance(value, float) and not value.is_integer():
            errors.setdefault(key, _message(field_config, 'type', f"{label} must be a whole number"))
            return

        min_value = field_config.get('min_value')
        max_value = field_config.get('max_value')

        if min_value is not None and value < min_value:
            errors.setdefault(key, _message(field_config, 'min_value', f"{label} must be at least {min_value}"))
        elif max_value is not None and value > max_value:
            errors.setdefault(key, _message(field_config, 'max_value', f"{label} must be at most {max_value}"))

    def _validate_date(self, key: str, value: Any, field_config: Dict[str, Any], label: str,
                       errors: Dict[str, str]) -> None:
        if isinstance(value, (date, datetime)):
            return
        if isinstance(value, str):
            try:
                datetime.fromisoformat(value.replace('Z', '+00:00'))
                return
            except ValueError:
                pass
        errors.setdefault(key, _message(field_config, 'type', f"{label} must be a valid date"))

    def _validate_array(self, path: tuple, value: Any, field_config: Dict[str, Any], label: str,
                        errors: Dict[str, str]) -> None:
        key = format_path(path)

        if not isinstance(value, list):
            errors.setdefault(key, _message(field_config, 'type', f"{label} must be a list"))
            return

        min_items = field_config.get('min_items')
        if min_items is not None and len(value) < min_items:
            noun = 'item' if min_items == 1 else 'items'
            errors.setdefault(key, _message(field_config, 'min_items', f"At least {min_items} {noun} required"))

        max_items = field_config.get('max_items')
        if max_items is not None and len(value) > max_items:
            errors.setdefault(key, _message(field_config, 'max_items', f"At most {max_items} items allowed"))

        items_config = field_config.get('items')
        if not items_config:
            return

        # Present list entries are always required, whatever their own rules say
        item_config = dict(items_config)
        item_config.setdefault('required', True)
        item_config.setdefault('label', label)

        for index, item in enumerate(value):
            self._validate_field(path + (index,), item, item_config, errors)

    def _validate_object(self, path: tuple, value: Any, field_config: Dict[str, Any], label: str,
                         errors: Dict[str, str]) -> None:
        if not isinstance(value, dict):
            errors.setdefault(format_path(path), _message(field_config, 'type', f"{label} must be an object"))
            return

        for prop_name, prop_config in field_config.get('properties', {}).items():
            self._validate_field(path + (prop_name,), value.get(prop_name), prop_config, errors)

    def rule_for_path(self, path: Any) -> Optional[Dict[str, Any]]:
        """
        Find the schema rule that governs a field path.

        Returns:
            The field configuration, or None if the schema has no rule for it
        """
        tokens = parse_path(path)
        if not tokens:
            return None

        rules = self.schema.get('fields', {})
        config: Optional[Dict[str, Any]] = None
        for token in tokens:
            if isinstance(token, int):
                if config is None or config.get('type') != 'array':
                    return None
                config = config.get('items')
                if config is None:
                    return None
                rules = config.get('properties', {})
            else:
                if config is not None and config.get('type') not in (None, 'object'):
                    return None
                config = rules.get(token)
                if config is None:
                    return None
                rules = config.get('properties', {})
        return config

    def find_unvalidated_paths(self, document: Dict[str, Any]) -> List[str]:
        """
        List scalar paths in a document that no schema rule covers.

        Such values pass validation silently; the dashboard logs them so a
        missing rule gets noticed.
        """
        uncovered = []
        for path, _ in iter_leaf_paths(document):
            if parse_path(path)[0] in SERVER_MANAGED_FIELDS:
                continue
            if self.rule_for_path(path) is None and not self._is_open_object(path):
                uncovered.append(path)
        return uncovered

    def _is_open_object(self, path: str) -> bool:
        # Objects declared without properties accept any keys
        tokens = parse_path(path)
        for cut in range(len(tokens) - 1, 0, -1):
            config = self.rule_for_path(tokens[:cut])
            if config is not None:
                return config.get('type') == 'object' and not config.get('properties')
        return False


_validator_cache: Dict[tuple, SchemaValidator] = {}


def get_validator(doc_type: str, schemas_dir: Optional[Path] = None) -> SchemaValidator:
    """
    Produce the validator for a document type.

    Args:
        doc_type: Document type tag
        schemas_dir: Directory to read schemas from (defaults to the configured one)

    Returns:
        Callable validator; ``validator(candidate)`` returns a ValidationResult

    Raises:
        SchemaLoadError: If the document type has no usable schema
    """
    cache_key = (str(schemas_dir), doc_type)
    if cache_key not in _validator_cache:
        _validator_cache[cache_key] = SchemaValidator(get_schema(doc_type, schemas_dir))
    return _validator_cache[cache_key]


def clear_validator_cache() -> None:
    _validator_cache.clear()
