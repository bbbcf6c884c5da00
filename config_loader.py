"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = 'config.yaml'

DEFAULT_CONFIG: Dict[str, Any] = {
    'payload': {
        'base_url': 'http://localhost:3000',
        'api_key': None,
        'auth_collection': 'users',
        'timeout': 60,
        'max_retries': 3,
        'retry_backoff_factor': 0.5,
        'verify_ssl': True,
    },
    'source': {
        'database_uri': None,
        'dump_path': None,
        'temp_database': 'temp_wemeditate_import',
    },
    'migration': {
        'cache_dir': 'migration/cache/wemeditate',
        'import_tag': 'import-wemeditate',
        'locales': ['en', 'es', 'de', 'it', 'fr', 'ru', 'ro', 'cs', 'uk'],
        'storage_base_url': 'https://assets.wemeditate.com/uploads/',
        'image_quality': 90,
        'find_limit': 100,
        'progress_bars': True,
        'report_path': None,
        'meditation_title_aliases': {},
    },
    'logging': {
        'level': None,
        'file': None,
    },
}

# Environment variables that always win over the config file
ENV_OVERRIDES = {
    'PAYLOAD_SECRET': 'payload.api_key',
    'DATABASE_URI': 'source.database_uri',
    'PAYLOAD_URL': 'payload.base_url',
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        The file is deep-merged over the built-in defaults, then the
        environment overrides are applied.

        Args:
            config_path: Path to YAML configuration file. When omitted, the
                default path is used if present, else only built-in defaults.

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If an explicit config file doesn't exist
            ConfigurationError: If the file does not contain a mapping
            yaml.YAMLError: If YAML parsing fails
        """
        file_data: Dict[str, Any] = {}

        if config_path is not None and not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        path = config_path or DEFAULT_CONFIG_PATH
        if os.path.exists(path):
            with open(path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ConfigurationError("Configuration file must contain a dictionary")
            file_data = cls._substitute_env_vars_recursive(loaded)

        config = cls._deep_merge(DEFAULT_CONFIG, file_data)
        cls._apply_env_overrides(config)
        return config

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigurationError: If validation fails
        """
        cls._validate_required_field(config, 'payload.api_key', 'PAYLOAD_SECRET')
        cls._validate_required_field(config, 'source.database_uri', 'DATABASE_URI')
        cls._validate_required_field(config, 'payload.base_url', 'PAYLOAD_URL')
        cls._validate_url(get_nested(config, 'payload.base_url'), 'payload.base_url')

        storage_base_url = get_nested(config, 'migration.storage_base_url')
        if storage_base_url:
            cls._validate_url(storage_base_url, 'migration.storage_base_url')

        timeout = get_nested(config, 'payload.timeout', 60)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError("payload.timeout must be a positive number")

        max_retries = get_nested(config, 'payload.max_retries', 3)
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise ConfigurationError("payload.max_retries must be a non-negative integer")

        quality = get_nested(config, 'migration.image_quality', 90)
        if isinstance(quality, bool) or not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ConfigurationError("migration.image_quality must be an integer between 1 and 100")

        find_limit = get_nested(config, 'migration.find_limit', 100)
        if isinstance(find_limit, bool) or not isinstance(find_limit, int) or find_limit < 1:
            raise ConfigurationError("migration.find_limit must be a positive integer")

        locales = get_nested(config, 'migration.locales')
        if not locales or not isinstance(locales, list):
            raise ConfigurationError("migration.locales must be a non-empty list")

        if not get_nested(config, 'migration.cache_dir'):
            raise ConfigurationError("Missing required configuration: migration.cache_dir")

        if not get_nested(config, 'migration.import_tag'):
            raise ConfigurationError("Missing required configuration: migration.import_tag")

        aliases = get_nested(config, 'migration.meditation_title_aliases') or {}
        if not isinstance(aliases, dict):
            raise ConfigurationError("migration.meditation_title_aliases must be a mapping")

        dump_path = get_nested(config, 'source.dump_path')
        if dump_path and not os.path.isfile(dump_path):
            raise ConfigurationError(f"source.dump_path '{dump_path}' is not a file")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: Parsed CLI arguments

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        merged.setdefault('migration', {})
        merged.setdefault('logging', {})

        if getattr(args, 'cache_dir', None):
            merged['migration']['cache_dir'] = args.cache_dir

        if getattr(args, 'report', None):
            merged['migration']['report_path'] = args.report

        if getattr(args, 'no_progress', False):
            merged['migration']['progress_bars'] = False

        if getattr(args, 'log_level', None):
            merged['logging']['level'] = args.log_level

        return merged

    @classmethod
    def _deep_merge(cls, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        merged = copy.deepcopy(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = cls._deep_merge(merged[key], value)
            else:
                merged[key] = copy.deepcopy(value)
        return merged

    @staticmethod
    def _apply_env_overrides(config: Dict[str, Any]) -> None:
        for env_var, path in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if not value:
                continue
            section, key = path.split('.')
            config.setdefault(section, {})[key] = value

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @classmethod
    def _validate_required_field(cls, config: dict, field: str, env_var: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ConfigurationError(
                f"Missing required configuration: {field}. "
                f"Set the {env_var} environment variable or provide a value in the config file."
            )

        if isinstance(value, str) and '${' in value:
            match = cls.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ConfigurationError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(str(url))
        if parsed.scheme not in ('http', 'https'):
            raise ConfigurationError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ConfigurationError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "payload.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'get_nested', 'DEFAULT_CONFIG', 'ENV_OVERRIDES']
