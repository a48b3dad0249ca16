"""
Configuration loading utilities for the CMS admin dashboard.

This module loads config.yaml, deep-merges it over the built-in defaults and
exposes small helpers for reading values and configuring logging.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
import logging
from copy import deepcopy

from .exceptions import ConfigurationLoadError

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.yaml")

SUPPORTED_BACKENDS = ('memory', 'http')

LOGGING_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}

# Global configuration cache
_config_cache = None


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'Nex CMS Admin',
            'version': '1.0.0',
            'debug': False,
            'user_name': 'admin'
        },
        'api': {
            'backend': 'memory',
            'base_url': 'http://localhost:8000/api',
            'timeout': 10.0
        },
        'schema': {
            'directory': 'schemas'
        },
        'content': {
            'seed_file': 'seed/content.yaml'
        },
        'activity_log': {
            'path': 'audit_logs/activity.jsonl',
            'recent_limit': 100
        },
        'ui': {
            'page_title': 'Content Management',
            'sidebar_title': 'Content'
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        }
    }


def read_config_file(config_path: Path) -> Any:
    """
    Parse a YAML configuration file.

    Raises:
        ConfigurationLoadError: If the file cannot be read or is not valid YAML
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except (yaml.YAMLError, IOError, OSError) as e:
        raise ConfigurationLoadError(config_path, e) from e


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load application configuration.

    A missing, empty or unreadable file is not fatal: the defaults are used
    and a warning is logged.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        config_path = CONFIG_FILE

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        return default_config

    try:
        user_config = read_config_file(config_path)
    except ConfigurationLoadError as e:
        logger.error(f"{e.message} ({e.context['original_error_type']})")
        logger.info("Using default configuration")
        return default_config

    if user_config is None:
        logger.warning(f"Configuration file is empty: {config_path}")
        return default_config

    if not isinstance(user_config, dict):
        logger.error(f"Configuration file is not a valid dictionary: {config_path}")
        logger.info("Using default configuration")
        return default_config

    config = deep_merge(default_config, user_config)

    logger.info(f"Successfully loaded configuration from {config_path}")
    return config


def get_config() -> Dict[str, Any]:
    """Return the cached process configuration, loading it on first use."""
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def reload_config() -> Dict[str, Any]:
    """Drop the cached configuration and load it again."""
    global _config_cache
    _config_cache = None
    return get_config()


def get_config_value(section: str, key: str, default: Any = None,
                     config: Optional[Dict[str, Any]] = None) -> Any:
    """
    Read a single value from a configuration section.

    Args:
        section: Top-level section name
        key: Key inside the section
        default: Value returned when the section or key is missing
        config: Configuration to read from (defaults to the cached config)
    """
    source = config if config is not None else get_config()
    section_values = source.get(section, {})
    if not isinstance(section_values, dict):
        return default
    return section_values.get(key, default)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary to validate

    Returns:
        List of problems; empty when the configuration is usable
    """
    problems = []

    for section in ('app', 'api', 'schema', 'content', 'activity_log', 'ui', 'logging'):
        if not isinstance(config.get(section), dict):
            problems.append(f"Missing required configuration section: {section}")

    api = config.get('api', {}) if isinstance(config.get('api'), dict) else {}
    backend = api.get('backend')
    if backend not in SUPPORTED_BACKENDS:
        problems.append(f"api.backend must be one of {', '.join(SUPPORTED_BACKENDS)}, got {backend!r}")

    if backend == 'http' and not api.get('base_url'):
        problems.append("api.base_url is required when api.backend is 'http'")

    if 'timeout' in api:
        try:
            if float(api['timeout']) <= 0:
                problems.append("api.timeout must be positive")
        except (ValueError, TypeError):
            problems.append("api.timeout must be a valid number")

    activity = config.get('activity_log', {}) if isinstance(config.get('activity_log'), dict) else {}
    if 'recent_limit' in activity:
        try:
            if int(activity['recent_limit']) <= 0:
                problems.append("activity_log.recent_limit must be positive")
        except (ValueError, TypeError):
            problems.append("activity_log.recent_limit must be a valid integer")

    logging_section = config.get('logging', {}) if isinstance(config.get('logging'), dict) else {}
    level = str(logging_section.get('level', 'INFO')).upper()
    if level not in LOGGING_LEVELS:
        problems.append(f"logging.level '{level}' is not a valid logging level")

    for problem in problems:
        logger.warning(problem)

    return problems


def get_logging_level(level_str: str) -> int:
    """Map string logging level to logging constant."""
    return LOGGING_LEVELS.get(str(level_str).upper(), logging.INFO)


def configure_logging(config: Optional[Dict[str, Any]] = None) -> int:
    """
    Configure root logging from the ``logging`` section.

    Returns:
        The numeric level that was applied
    """
    level = get_logging_level(get_config_value('logging', 'level', 'INFO', config))
    log_format = get_config_value('logging', 'format', None, config)
    if log_format:
        logging.basicConfig(level=level, format=log_format)
    else:
        logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)
    logger.info(f"Logging configured to level: {logging.getLevelName(level)}")
    return level
