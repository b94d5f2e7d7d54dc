"""
Base AI Provider Interface for CodeMind.

This module defines the abstract base class that the Gemini provider implements,
together with the provider configuration and the generation error taxonomy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Tuple


@dataclass
class ProviderConfig:
    """Configuration for an AI provider."""
    api_key: str
    model: str
    timeout: Optional[int] = None  # Seconds; None leaves the SDK default in place

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.api_key or not self.api_key.strip():
            raise ApiKeyMissingError()
        if not self.model:
            raise ValueError("Model name is required")


class ProviderError(Exception):
    """Base exception for provider-related errors.

    ``str(error)`` is the message shown to the user.
    """
    pass


class ApiKeyMissingError(ProviderError):
    """No API key is available for the request."""

    def __init__(self, message: str = "API Key is missing. Please add it in settings."):
        super().__init__(message)


class ModelInitializationError(ProviderError):
    """The SDK client or model could not be created."""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to initialize the AI model: {cause}")
        self.cause = cause


class ContentGenerationError(ProviderError):
    """The generation call failed in transport or on the provider side."""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to generate content: {getattr(cause, 'message', None) or cause}")
        self.cause = cause


class InvalidResponseError(ProviderError):
    """The provider answered without usable text."""

    def __init__(self, message: str = "Received an invalid response from the API."):
        super().__init__(message)


class BaseAIProvider(ABC):
    """Abstract base class for AI providers."""

    def __init__(self, config: ProviderConfig):
        """Initialize the provider with configuration.

        Args:
            config: Provider configuration including API key and model.
        """
        self.config = config
        self._client = None  # Will be initialized by concrete implementations
        self._is_initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Create the SDK client.

        Raises:
            ModelInitializationError: If the client cannot be created.
        """
        pass

    @abstractmethod
    async def list_models(self) -> List[Dict[str, Any]]:
        """Get list of available models from the provider.

        Returns:
            List of model information dictionaries with at least
            ``name`` and ``display_name``.
        """
        pass

    @abstractmethod
    async def generate_response(
        self,
        messages: List[Dict[str, Any]],
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Optional[str], Dict[str, Any]]:
        """Generate a single, non-streamed response.

        Args:
            messages: Message dicts with 'role', 'content' and optional 'attachments'.
            params: Optional generation parameters.

        Returns:
            Tuple of (response_text or None, metadata). The metadata holds
            ``token_usage`` when the provider reports it.
        """
        pass

    @abstractmethod
    def get_default_params(self) -> Dict[str, Any]:
        """Get default generation parameters for this provider."""
        pass

    def extract_token_usage(self, response: Any) -> Dict[str, Any]:
        """Extract token usage information from a response.

        Returns an empty dict unless overridden.
        """
        return {}

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def provider_name(self) -> str:
        return self.__class__.__name__.replace('Provider', '').lower()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.config.model}, initialized={self._is_initialized})"
