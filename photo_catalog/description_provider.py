"""
Vision service interface and the Moonshot chat-completions implementation.
"""

import json
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

import requests

from .config import AppConfig
from .exceptions import ProviderFailure
from .image_processor import ImageProcessor
from .logging_setup import get_logger
from .prompt_templates import SYSTEM_PROMPT, get_description_prompt, clean_description
from .settings import ApiConfig

logger = get_logger(__name__)


class DescriptionProvider(ABC):
    """Abstract base class for description services."""

    @staticmethod
    def get_provider(config: AppConfig) -> 'DescriptionProvider':
        """
        Factory method to get the provider named in the configuration.

        Args:
            config: Application configuration

        Returns:
            An instance of the appropriate DescriptionProvider subclass
        """
        provider_type = config.provider.provider_type.lower()

        if provider_type != 'moonshot':
            logger.warning(f"Unknown provider type: {provider_type}, using Moonshot")
        return MoonshotProvider(config)

    def __init__(self, config: AppConfig):
        """
        Initialize the provider.

        Args:
            config: Application configuration
        """
        self.config = config

    def describe(self, file_path: str, api_config: ApiConfig) -> Optional[str]:
        """
        Describe an image file.

        Every failure (missing credentials, unreadable image, network error,
        bad or empty response) is logged and reported as None.

        Args:
            file_path: Path to the image file
            api_config: Credentials and endpoint for this call

        Returns:
            Description text if successful, None otherwise
        """
        try:
            return self._describe(file_path, api_config)
        except ProviderFailure as e:
            logger.error(f"Description failed for {file_path}: {str(e)}")
            return None

    @abstractmethod
    def _describe(self, file_path: str, api_config: ApiConfig) -> str:
        """
        Call the service.

        Raises:
            ProviderFailure: If no usable description was produced
        """


class MoonshotProvider(DescriptionProvider):
    """Moonshot (OpenAI compatible) chat-completions implementation."""

    def __init__(self, config: AppConfig):
        super().__init__(config)

        self.provider_config = config.provider
        self.model = self.provider_config.model
        self.request_timeout = self.provider_config.request_timeout
        self.max_tokens = self.provider_config.max_tokens
        self.temperature = self.provider_config.temperature
        self.image_processor = ImageProcessor(config)

        logger.info(f"Initialized Moonshot provider with model: {self.model}")

    def build_payload(self, img_b64: str) -> Dict[str, Any]:
        """Build the chat-completions request body for one image."""
        messages = [
            {
                "role": "system",
                "content": SYSTEM_PROMPT
            },
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{img_b64}"}},
                    {"type": "text", "text": get_description_prompt()}
                ]
            }
        ]

        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature
        }

    def _describe(self, file_path: str, api_config: ApiConfig) -> str:
        if not api_config.api_key:
            raise ProviderFailure("API key not configured")

        img_b64 = self.image_processor.load_image_b64(file_path)
        if not img_b64:
            raise ProviderFailure("Image could not be prepared")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_config.api_key}"
        }
        endpoint = api_config.effective_endpoint

        try:
            logger.debug(f"Calling {endpoint} with model: {self.model}")
            response = requests.post(
                endpoint,
                headers=headers,
                json=self.build_payload(img_b64),
                timeout=self.request_timeout
            )
        except requests.RequestException as e:
            raise ProviderFailure(f"Network error: {str(e)}")

        if response.status_code != 200:
            raise ProviderFailure(f"API error: {response.status_code} - {response.text[:500]}")

        try:
            response_data = response.json()
        except ValueError:
            raise ProviderFailure("Response body is not JSON")

        if self.config.debug_mode:
            logger.debug(f"API response: {json.dumps(response_data, indent=2, ensure_ascii=False)[:2000]}")

        return self.parse_response(response_data)

    @staticmethod
    def parse_response(response_data: Any) -> str:
        """
        Extract the description from a chat-completions response.

        Raises:
            ProviderFailure: If the response has no non-empty message content
        """
        try:
            content = response_data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError):
            raise ProviderFailure("Invalid response format")

        if not isinstance(content, str):
            raise ProviderFailure("Message content is not text")

        description = clean_description(content)
        if not description:
            raise ProviderFailure("Empty description in response")
        return description
