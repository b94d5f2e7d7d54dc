#!/usr/bin/env python3
"""
CodeMind Gemini Service - Turns stored conversations into Gemini requests.

Rebuilds the turn-by-turn history from stored entries, issues one
non-streamed generation call, and normalizes the reply into a
``GenerationResult``. Failures are raised as ``ProviderError`` subclasses;
nothing is retried.
"""

import logging
import time
from typing import Callable, Dict, List, Any, Optional, Sequence

from .models import ChatEntry, GenerationResult
from .providers import (
    ApiKeyMissingError,
    BaseAIProvider,
    GeminiProvider,
    InvalidResponseError,
    ProviderConfig,
    ProviderError,
)

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPE = "image/png"

ProviderFactory = Callable[[ProviderConfig], BaseAIProvider]


def count_words(text: str) -> int:
    return len(text.split())


class GeminiService:
    """Gateway between the chat library and the Gemini API."""

    def __init__(self, model_name: str = GeminiProvider.DEFAULT_MODEL,
                 params: Optional[Dict[str, Any]] = None,
                 timeout: Optional[int] = None,
                 provider_factory: ProviderFactory = GeminiProvider):
        self.model_name = model_name
        self.params = dict(params or {})
        self.timeout = timeout
        self.provider_factory = provider_factory
        self._provider: Optional[BaseAIProvider] = None

    @staticmethod
    def build_history(entries: Sequence[ChatEntry]) -> List[Dict[str, Any]]:
        """One user turn per non-empty question and one model turn per non-empty answer."""
        history: List[Dict[str, Any]] = []
        for entry in entries:
            if entry.question:
                history.append({"role": "user", "content": entry.question})
            if entry.answer:
                history.append({"role": "model", "content": entry.answer})
        return history

    def _get_provider(self, api_key: str) -> BaseAIProvider:
        # Reuse the client while the key and model are unchanged.
        provider = self._provider
        if provider is None or provider.config.api_key != api_key or provider.config.model != self.model_name:
            provider = self.provider_factory(ProviderConfig(api_key=api_key, model=self.model_name, timeout=self.timeout))
            provider.initialize()
            self._provider = provider
        return provider

    async def generate_response(self, entries: Sequence[ChatEntry], prompt: str, api_key: Optional[str],
                                image_data: Optional[bytes] = None) -> GenerationResult:
        """Sends the history plus the new prompt and returns the normalized result.

        Raises:
            ApiKeyMissingError: api_key is empty.
            ModelInitializationError: the SDK client could not be created.
            ContentGenerationError: the call failed.
            InvalidResponseError: the reply carried no text.
        """
        if not api_key or not api_key.strip():
            raise ApiKeyMissingError()
        if not prompt.strip() and image_data is None:
            raise ProviderError("Nothing to send: the prompt has neither text nor an image.")

        provider = self._get_provider(api_key)

        new_turn: Dict[str, Any] = {"role": "user", "content": prompt}
        if image_data is not None:
            new_turn["attachments"] = [{"mime_type": IMAGE_MIME_TYPE, "data": image_data}]
        messages = self.build_history(entries) + [new_turn]

        start = time.monotonic()
        text, metadata = await provider.generate_response(messages, self.params)
        response_time_ms = int((time.monotonic() - start) * 1000)

        if not text:
            logger.error("Gemini returned a response without text.")
            raise InvalidResponseError()

        usage = metadata.get("token_usage") or {}
        result = GenerationResult(
            text=text,
            word_count=count_words(text),
            prompt_token_count=usage.get("prompt_tokens"),
            candidates_token_count=usage.get("completion_tokens"),
            total_token_count=usage.get("total_tokens"),
            response_time_ms=response_time_ms,
            model_name=self.model_name,
        )
        logger.info(f"Generated {result.word_count} words with {self.model_name} in {response_time_ms} ms")
        return result

    async def list_models(self, api_key: Optional[str]) -> List[Dict[str, Any]]:
        if not api_key:
            raise ApiKeyMissingError()
        return await self._get_provider(api_key).list_models()
