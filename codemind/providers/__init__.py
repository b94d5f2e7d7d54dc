"""
AI provider interfaces and implementations for CodeMind.
"""

from .base_provider import (
    ApiKeyMissingError,
    BaseAIProvider,
    ContentGenerationError,
    InvalidResponseError,
    ModelInitializationError,
    ProviderConfig,
    ProviderError,
)
from .gemini_provider import GeminiProvider

__all__ = [
    'ApiKeyMissingError',
    'BaseAIProvider',
    'ContentGenerationError',
    'GeminiProvider',
    'InvalidResponseError',
    'ModelInitializationError',
    'ProviderConfig',
    'ProviderError',
]
