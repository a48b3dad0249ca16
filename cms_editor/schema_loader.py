"""
Schema loader for the CMS admin dashboard.
Handles loading and validation of YAML/JSON content schema definitions.

Each document type has one schema file named ``{doc_type}.yaml`` in the
configured schema directory.
"""

import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging

from .config_loader import get_config_value
from .exceptions import SchemaLoadError

# Configure logging
logger = logging.getLogger(__name__)

# Supported field types
SUPPORTED_FIELD_TYPES = {
    'string', 'number', 'integer', 'float', 'boolean',
    'date', 'datetime', 'enum', 'array', 'object'
}

SUPPORTED_FORMATS = {'url', 'email'}

DOCUMENT_KINDS = {'page', 'collection'}

SCHEMA_EXTENSIONS = ('.yaml', '.yml', '.json')

# Loaded schemas keyed by (directory, doc_type)
_schema_cache: Dict[tuple, Dict[str, Any]] = {}


def get_schemas_dir() -> Path:
    """Return the schema directory from configuration."""
    return Path(get_config_value('schema', 'directory', 'schemas'))


def load_schema(schema_path: str, schemas_dir: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """
    Load a schema from YAML or JSON file.

    Args:
        schema_path: Path to schema file (relative to schemas directory)
        schemas_dir: Directory to read from (defaults to the configured one)

    Returns:
        Schema dictionary or None if loading fails
    """
    base_dir = schemas_dir if schemas_dir is not None else get_schemas_dir()
    full_path = base_dir / schema_path

    if not full_path.exists():
        logger.warning(f"Schema file not found: {full_path}")
        return None

    try:
        with open(full_path, 'r', encoding='utf-8') as f:
            if full_path.suffix.lower() == '.json':
                schema = json.load(f)
            else:
                schema = yaml.safe_load(f)

        if not isinstance(schema, dict):
            logger.error(f"Schema {full_path} is not a mapping")
            return None

        logger.debug(f"Loaded schema from {full_path}")
        return schema

    except (yaml.YAMLError, json.JSONDecodeError) as e:
        logger.error(f"Parsing error in schema {full_path}: {e}")
        return None
    except (IOError, OSError) as e:
        logger.error(f"Error reading schema {full_path}: {e}")
        return None


def validate_schema_definition(schema: Dict[str, Any]) -> List[str]:
    """
    Check a schema definition for structural problems.

    Args:
        schema: Schema dictionary

    Returns:
        List of problems; empty if the schema is usable
    """
    problems = []

    if 'fields' not in schema or not isinstance(schema.get('fields'), dict):
        return ["Schema must contain a 'fields' mapping"]

    kind = schema.get('kind', 'page')
    if kind not in DOCUMENT_KINDS:
        problems.append(f"Unknown document kind '{kind}'")

    for field_name, field_config in schema['fields'].items():
        problems.extend(_validate_field_definition(field_name, field_config))

    return problems


def _validate_field_definition(path: str, field_config: Any) -> List[str]:
    problems = []

    if not isinstance(field_config, dict):
        return [f"{path}: field definition must be a mapping"]

    field_type = field_config.get('type', 'string')
    if field_type not in SUPPORTED_FIELD_TYPES:
        problems.append(f"{path}: unsupported field type '{field_type}'")
        return problems

    field_format = field_config.get('format')
    if field_format is not None and field_format not in SUPPORTED_FORMATS:
        problems.append(f"{path}: unsupported format '{field_format}'")

    if field_type == 'enum' and not field_config.get('choices'):
        problems.append(f"{path}: enum field must declare choices")

    if field_type == 'object':
        properties = field_config.get('properties', {})
        if not isinstance(properties, dict):
            problems.append(f"{path}: properties must be a mapping")
        else:
            for prop_name, prop_config in properties.items():
                problems.extend(_validate_field_definition(f"{path}.{prop_name}", prop_config))

    if field_type == 'array':
        items_config = field_config.get('items')
        if not isinstance(items_config, dict):
            problems.append(f"{path}: array field must declare items")
        else:
            problems.extend(_validate_field_definition(f"{path}[]", items_config))

    return problems


def _find_schema_file(doc_type: str, schemas_dir: Path) -> Optional[str]:
    for extension in SCHEMA_EXTENSIONS:
        candidate = f"{doc_type}{extension}"
        if (schemas_dir / candidate).exists():
            return candidate
    return None


def get_schema(doc_type: str, schemas_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Get the validated schema for a document type.

    Args:
        doc_type: Document type tag (``home``, ``footer``, ``projects`` ...)
        schemas_dir: Directory to read from (defaults to the configured one)

    Returns:
        Schema dictionary with ``doc_type`` filled in

    Raises:
        SchemaLoadError: If the schema is missing or invalid
    """
    base_dir = schemas_dir if schemas_dir is not None else get_schemas_dir()
    cache_key = (str(base_dir), doc_type)
    if cache_key in _schema_cache:
        return _schema_cache[cache_key]

    schema_file = _find_schema_file(doc_type, base_dir)
    if schema_file is None:
        raise SchemaLoadError(doc_type, f"No schema found for document type '{doc_type}' in {base_dir}")

    schema = load_schema(schema_file, base_dir)
    if schema is None:
        raise SchemaLoadError(doc_type, f"Schema for '{doc_type}' could not be read")

    problems = validate_schema_definition(schema)
    if problems:
        for problem in problems:
            logger.error(f"Schema '{doc_type}': {problem}")
        raise SchemaLoadError(doc_type, f"Schema for '{doc_type}' is invalid", problems)

    schema = dict(schema)
    schema['doc_type'] = doc_type
    schema.setdefault('kind', 'page')
    schema.setdefault('title', doc_type.replace('_', ' ').title())
    _schema_cache[cache_key] = schema
    logger.info(f"Loaded schema '{doc_type}' with {len(schema['fields'])} top-level fields")
    return schema


def list_document_types(schemas_dir: Optional[Path] = None, kind: Optional[str] = None) -> List[str]:
    """
    List document types that have a schema file.

    Args:
        schemas_dir: Directory to scan (defaults to the configured one)
        kind: Only return ``page`` or ``collection`` types when given

    Returns:
        Document types ordered by the schema's ``menu_order`` then name
    """
    base_dir = schemas_dir if schemas_dir is not None else get_schemas_dir()
    if not base_dir.exists():
        logger.warning(f"Schema directory not found: {base_dir}")
        return []

    entries = []
    for path in sorted(base_dir.iterdir()):
        if path.suffix.lower() not in SCHEMA_EXTENSIONS:
            continue
        doc_type = path.stem
        try:
            schema = get_schema(doc_type, base_dir)
        except SchemaLoadError as e:
            logger.warning(f"Skipping schema '{doc_type}': {e}")
            continue
        if kind is not None and schema.get('kind') != kind:
            continue
        entries.append((schema.get('menu_order', 100), doc_type))

    return [doc_type for _, doc_type in sorted(entries)]


def reload_schemas() -> None:
    """Clear the schema cache so files are read again."""
    _schema_cache.clear()
    logger.info("Schema cache cleared")


def default_value_for(field_config: Dict[str, Any]) -> Any:
    """
    Get an empty value for a field, respecting its declared default and constraints.

    Dates get no default so an empty editor never invents one.
    """
    if 'default' in field_config:
        return field_config['default']

    field_type = field_config.get('type', 'string')
    if field_type == 'string':
        return ""
    elif field_type in ('number', 'float'):
        min_val = field_config.get('min_value')
        if min_val is not None and min_val > 0:
            return float(min_val)
        return 0.0
    elif field_type == 'integer':
        min_val = field_config.get('min_value')
        if min_val is not None and min_val > 0:
            return int(min_val)
        return 0
    elif field_type == 'boolean':
        return False
    elif field_type == 'enum':
        choices = field_config.get('choices', [])
        return choices[0] if choices else ""
    elif field_type == 'array':
        return []
    elif field_type == 'object':
        return build_default_object(field_config.get('properties', {}))
    return None


def build_default_object(properties: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Create an object with a default value for each property."""
    return {name: default_value_for(config) for name, config in properties.items()}


def build_default_document(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Empty field tree for a new document of the schema's type."""
    return build_default_object(schema.get('fields', {}))
