"""
Dynamic Pydantic model builder for content schemas.
Creates Pydantic models from schema definitions for structural type checking.

The models only check shapes and scalar types. Content rules (required-ness,
lengths, formats, choices) live in the schema validator so that their
messages can be taken verbatim from the schema files.
"""

from typing import Annotated, Dict, Any, Type, Optional, List
from datetime import datetime, date
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, create_model, ValidationError
import logging

from .field_paths import format_path

logger = logging.getLogger(__name__)


def create_model_from_schema(schema: Dict[str, Any], model_name: str = "DynamicModel") -> Type[BaseModel]:
    """
    Create a Pydantic model from a schema definition.

    Args:
        schema: Schema dictionary containing field definitions
        model_name: Name for the generated model class

    Returns:
        Pydantic model class
    """
    if 'fields' not in schema:
        raise ValueError("Schema must contain 'fields' key")

    fields = schema['fields']
    dynamic_model = create_nested_model(fields, model_name)
    logger.debug(f"Created dynamic model '{model_name}' with {len(fields)} fields")
    return dynamic_model


def create_field_from_config(field_name: str, field_config: Dict[str, Any], model_name: str) -> tuple:
    """
    Create a Pydantic field from schema field configuration.

    Args:
        field_name: Name of the field
        field_config: Field configuration from schema
        model_name: Name of the enclosing model, used to name nested models

    Returns:
        Tuple of (field_type, FieldInfo)
    """
    field_type = get_field_type(field_config, f"{model_name}_{field_name}")

    field_kwargs = {}
    if 'label' in field_config:
        field_kwargs['description'] = field_config['label']
    elif 'description' in field_config:
        field_kwargs['description'] = field_config['description']

    if not field_config.get('required', False):
        field_type = Optional[field_type]
        field_kwargs['default'] = None
        if field_config.get('type', 'string') not in ('string', 'enum'):
            # Cleared inputs arrive as "" and mean "no value"
            field_type = Annotated[field_type, BeforeValidator(_blank_to_none)]

    return field_type, Field(**field_kwargs)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def get_field_type(field_config: Dict[str, Any], model_name: str = "Nested") -> Any:
    """
    Map schema field type to Python/Pydantic type.

    Args:
        field_config: Field configuration from schema
        model_name: Name to give a nested model if one is needed

    Returns:
        Python type for the field
    """
    field_type = field_config.get('type', 'string')

    if field_type in ('string', 'enum'):
        return str

    elif field_type == 'integer':
        return int

    elif field_type in ['number', 'float']:
        return float

    elif field_type == 'boolean':
        return bool

    elif field_type == 'date':
        return date

    elif field_type == 'datetime':
        return datetime

    elif field_type == 'array':
        items_config = field_config.get('items', {'type': 'string'})
        item_type = get_field_type(items_config, f"{model_name}_item")
        return List[item_type]

    elif field_type == 'object':
        properties = field_config.get('properties', {})
        if properties:
            return create_nested_model(properties, model_name)
        return Dict[str, Any]

    else:
        logger.warning(f"Unknown field type '{field_type}', defaulting to str")
        return str


def create_nested_model(properties: Dict[str, Any], model_name: str) -> Type[BaseModel]:
    """
    Create a Pydantic model for an object's properties.

    Unknown keys are ignored so that documents may carry server-managed
    fields the schema does not describe.
    """
    nested_fields = {}
    for prop_name, prop_config in properties.items():
        nested_fields[prop_name] = create_field_from_config(prop_name, prop_config, model_name)

    return create_model(
        model_name,
        __config__=ConfigDict(extra='ignore'),
        **nested_fields
    )


def validate_model_data(data: Dict[str, Any], model_class: Type[BaseModel]) -> Dict[str, str]:
    """
    Validate data against a Pydantic model.

    Args:
        data: Data to validate
        model_class: Pydantic model class

    Returns:
        Mapping of canonical field path to the first error message for it
    """
    try:
        model_class.model_validate(data)
        return {}
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for error in e.errors():
            path = format_path(tuple(error.get('loc', ())))
            errors.setdefault(path, error.get('msg', 'Invalid value'))
        return errors
