"""
Configuration handling for the photo catalog.
"""

import json
import os
import re
from dataclasses import dataclass, field, asdict
from typing import Optional, Any

DEFAULT_ENDPOINT_URL = "https://api.moonshot.cn/v1/chat/completions"
DEFAULT_MODEL = "moonshot-v1-8k-vision-preview"


@dataclass
class ProviderConfig:
    """Vision API configuration."""
    provider_type: str = "moonshot"
    api_key: str = ""
    api_url: str = DEFAULT_ENDPOINT_URL
    model: str = DEFAULT_MODEL
    request_timeout: int = 60
    max_tokens: int = 1024
    temperature: float = 0.3


@dataclass
class AppConfig:
    """Main application configuration."""
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    debug_mode: bool = False
    max_retries: int = 3
    db_busy_timeout: int = 5000
    image_max_resolution: int = 1024
    background_enrichment: bool = True
    memory_limit_mb: int = 1024
    catalog_filename: str = "photo_catalog.db"
    settings_path: Optional[str] = None


ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

PROVIDER_KEYS = ('api_key', 'api_url', 'model', 'request_timeout', 'max_tokens', 'temperature')


def _expand_env(value: Any) -> Any:
    """
    Replace ``${NAME}`` references with environment values, recursively.

    Unset variables expand to an empty string. Non-string scalars are
    returned unchanged.
    """
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(lambda match: os.environ.get(match.group(1), ""), value)
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    return value


def load_config(config_path: str) -> AppConfig:
    """
    Load and validate configuration from JSON file.

    Provider settings are stored as flat keys next to the application
    settings: ``provider``, ``api_key``, ``api_url``, ``model``,
    ``request_timeout``, ``max_tokens`` and ``temperature``.

    Args:
        config_path: Path to the configuration JSON file

    Returns:
        AppConfig object

    Raises:
        ValueError: If the configuration is invalid
        RuntimeError: If the configuration file cannot be loaded
    """
    config_path = os.path.abspath(os.path.expanduser(config_path))

    try:
        with open(config_path, 'r') as cfg:
            config_dict = json.load(cfg)
    except (json.JSONDecodeError, IOError) as e:
        raise RuntimeError(f"Failed to load configuration from {config_path}: {str(e)}")

    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration in {config_path} must be a JSON object")
    config_dict = _expand_env(config_dict)

    provider_type = config_dict.pop('provider', 'moonshot') or 'moonshot'
    if provider_type != 'moonshot':
        raise ValueError(f"Unsupported AI provider: {provider_type}")

    provider_values = {key: config_dict.pop(key) for key in PROVIDER_KEYS if key in config_dict}
    try:
        for key in ('request_timeout', 'max_tokens'):
            if key in provider_values:
                provider_values[key] = int(provider_values[key])
        if 'temperature' in provider_values:
            provider_values['temperature'] = float(provider_values['temperature'])
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid provider setting: {str(e)}")
    if not provider_values.get('api_url'):
        provider_values['api_url'] = DEFAULT_ENDPOINT_URL

    unknown = set(config_dict) - (set(AppConfig.__dataclass_fields__) - {'provider'})
    if unknown:
        raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

    return AppConfig(provider=ProviderConfig(provider_type=provider_type, **provider_values), **config_dict)


def save_config(config: AppConfig, config_path: str) -> None:
    """
    Save configuration to JSON file.

    Args:
        config: AppConfig object
        config_path: Path to save the configuration

    Raises:
        RuntimeError: If the configuration cannot be saved
    """
    try:
        config_dict = asdict(config)

        provider_config = config_dict.pop('provider', {})
        config_dict['provider'] = provider_config.pop('provider_type', 'moonshot')
        config_dict.update(provider_config)

        with open(config_path, 'w') as f:
            json.dump(config_dict, f, indent=2)
    except (IOError, TypeError) as e:
        raise RuntimeError(f"Failed to save configuration: {str(e)}")
