"""
Persistent key-value settings holding the vision API credentials.
"""

import json
import os
from dataclasses import dataclass
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from .config import ProviderConfig, DEFAULT_ENDPOINT_URL
from .logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_SETTINGS_PATH = os.path.join("~", ".photo_catalog", "settings.json")
MIN_API_KEY_LENGTH = 10


@dataclass
class ApiConfig:
    """Credentials and endpoint used for one description request."""
    api_key: str = ""
    endpoint_url: str = DEFAULT_ENDPOINT_URL

    @property
    def effective_endpoint(self) -> str:
        """Endpoint to call; a blank value falls back to the default."""
        return self.endpoint_url.strip() if self.endpoint_url and self.endpoint_url.strip() else DEFAULT_ENDPOINT_URL


def validate_api_key(api_key: Optional[str]) -> Optional[str]:
    """
    Check an API key.

    Returns:
        Error message, or None if the key is acceptable
    """
    if not api_key or not api_key.strip():
        return "API key is required"
    if len(api_key.strip()) < MIN_API_KEY_LENGTH:
        return "API key is too short"
    return None


def validate_endpoint_url(url: Optional[str]) -> Optional[str]:
    """
    Check an endpoint URL. Blank is allowed and means the default endpoint.

    Returns:
        Error message, or None if the URL is acceptable
    """
    if not url or not url.strip():
        return None
    parsed = urlparse(url.strip())
    if parsed.scheme not in ('http', 'https'):
        return "Endpoint URL must start with http:// or https://"
    if not parsed.netloc:
        return "Endpoint URL is not valid"
    return None


class SettingsStore:
    """JSON file backed settings store for the API configuration."""

    def __init__(self, settings_path: Optional[str] = None,
                 defaults: Optional[ProviderConfig] = None):
        """
        Initialize the settings store.

        Args:
            settings_path: Path of the JSON settings file
            defaults: Provider configuration used for values not yet saved
        """
        self.settings_path = os.path.abspath(os.path.expanduser(settings_path or DEFAULT_SETTINGS_PATH))
        self.defaults = defaults or ProviderConfig()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.settings_path):
            return {}
        try:
            with open(self.settings_path, 'r') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Error loading settings file {self.settings_path}: {str(e)}")
            return {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get a stored value."""
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store a value, keeping the other keys."""
        data = self._load()
        data[key] = value
        settings_dir = os.path.dirname(self.settings_path)
        if settings_dir:
            os.makedirs(settings_dir, exist_ok=True)
        try:
            with open(self.settings_path, 'w') as f:
                json.dump(data, f, indent=2)
        except IOError as e:
            raise RuntimeError(f"Failed to save settings: {str(e)}")

    def get_api_config(self) -> ApiConfig:
        """
        Get the current API configuration.

        Saved values take precedence over the application configuration;
        a blank endpoint falls back to the default endpoint.
        """
        stored = self.get('api_config') or {}
        api_key = stored.get('api_key') or self.defaults.api_key or ""
        endpoint_url = stored.get('endpoint_url') or self.defaults.api_url or DEFAULT_ENDPOINT_URL
        return ApiConfig(api_key=api_key, endpoint_url=endpoint_url)

    def set_api_config(self, api_key: str, endpoint_url: Optional[str] = None) -> ApiConfig:
        """
        Validate and save the API configuration.

        Raises:
            ValueError: If the key or endpoint is invalid
        """
        error = validate_api_key(api_key) or validate_endpoint_url(endpoint_url)
        if error:
            raise ValueError(error)

        config = ApiConfig(
            api_key=api_key.strip(),
            endpoint_url=(endpoint_url or "").strip() or DEFAULT_ENDPOINT_URL
        )
        self.set('api_config', {'api_key': config.api_key, 'endpoint_url': config.endpoint_url})
        logger.info(f"API configuration saved (endpoint: {config.endpoint_url})")
        return config
