#!/usr/bin/env python3
"""
Google Gemini AI Provider Implementation.

This module implements the BaseAIProvider interface for Google's Gemini models
using the `google-genai` SDK (`genai.Client()` and its `aio` interface).
"""

import logging
from typing import Dict, List, Any, Optional, Tuple

from google import genai
from google.genai import types as genai_types

from .base_provider import (
    BaseAIProvider,
    ContentGenerationError,
    ModelInitializationError,
    ProviderConfig,
    ProviderError,
)

logger = logging.getLogger(__name__)


class GeminiProvider(BaseAIProvider):
    """Google Gemini AI provider."""

    DEFAULT_MODEL = "gemini-2.0-flash"
    DEFAULT_FALLBACK_MODELS = [  # Used when the model listing call fails
        "gemini-2.0-flash",
        "gemini-1.5-flash-latest",
        "gemini-1.5-pro-latest",
    ]
    VALID_CONFIG_KEYS = ['candidate_count', 'stop_sequences', 'max_output_tokens',
                         'temperature', 'top_p', 'top_k', 'seed']

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self._sdk_client: Optional[genai.Client] = None

    def initialize(self) -> None:
        if self._is_initialized:
            return
        try:
            http_options = None
            if self.config.timeout:
                http_options = genai_types.HttpOptions(timeout=self.config.timeout * 1000)
            self._sdk_client = genai.Client(api_key=self.config.api_key, http_options=http_options)
        except Exception as e:
            logger.error(f"Failed to initialize Gemini client: {e}", exc_info=True)
            self._is_initialized = False
            raise ModelInitializationError(e) from e
        self._is_initialized = True
        logger.info(f"Initialized Gemini provider for model '{self.config.model}'.")

    async def list_models(self) -> List[Dict[str, Any]]:
        if not self._is_initialized or self._sdk_client is None:
            logger.error("Gemini provider not initialized, cannot list models.")
            return self._get_fallback_models()

        try:
            pager = await self._sdk_client.aio.models.list()
            api_models = []
            async for model_obj in pager:
                actions = getattr(model_obj, 'supported_actions', None) or []
                if actions and 'generateContent' not in actions:
                    continue
                name = getattr(model_obj, 'name', '') or ''
                api_models.append({
                    'name': name,
                    'display_name': getattr(model_obj, 'display_name', None) or name.split('/')[-1],
                    'description': getattr(model_obj, 'description', '') or '',
                    'input_token_limit': getattr(model_obj, 'input_token_limit', None),
                    'output_token_limit': getattr(model_obj, 'output_token_limit', None),
                })
        except Exception as e:
            logger.error(f"Listing Gemini models failed: {e}. Using fallback models.")
            return self._get_fallback_models()

        if not api_models:
            logger.warning("No generative models returned by the API. Using fallback.")
            return self._get_fallback_models()
        return api_models

    def _get_fallback_models(self) -> List[Dict[str, Any]]:
        return [{'name': m, 'display_name': m.replace('-', ' ').title(), 'description': 'Fallback model',
                 'input_token_limit': None, 'output_token_limit': None}
                for m in self.DEFAULT_FALLBACK_MODELS]

    async def generate_response(
            self, messages: List[Dict[str, Any]], params: Optional[Dict[str, Any]] = None
    ) -> Tuple[Optional[str], Dict[str, Any]]:
        if not self._is_initialized or self._sdk_client is None:
            raise ProviderError("GeminiProvider not initialized.")

        contents = self.convert_messages_to_gemini_format(messages)
        gen_config = self._build_generation_config_object(params)
        logger.debug(f"Gemini Request: Model='{self.config.model}', Msgs Count={len(contents)}")

        try:
            api_response = await self._sdk_client.aio.models.generate_content(
                model=self.config.model,
                contents=contents,
                config=gen_config,
            )
        except Exception as e:
            logger.error(f"Gemini API error: {e}")
            raise ContentGenerationError(e) from e

        return api_response.text, {'token_usage': self.extract_token_usage(api_response)}

    def convert_messages_to_gemini_format(self, messages: List[Dict[str, Any]]) -> List[genai_types.Content]:
        """Converts role/content/attachments dicts into Gemini Content objects.

        Roles other than 'user' map to 'model'. Messages that end up with no
        parts are skipped.
        """
        gemini_messages: List[genai_types.Content] = []
        for msg in messages:
            api_role = 'user' if msg.get('role', 'user').lower() == 'user' else 'model'
            parts = []
            text = msg.get('content') or ''
            if text.strip():
                parts.append(genai_types.Part(text=text))
            for att in msg.get('attachments') or []:
                mime, data = att.get('mime_type'), att.get('data')
                if not mime or data is None:
                    logger.warning(f"Skipping attachment without mime_type or data: {sorted(att)}")
                    continue
                parts.append(genai_types.Part.from_bytes(data=data, mime_type=mime))
            if not parts:
                continue
            gemini_messages.append(genai_types.Content(role=api_role, parts=parts))

        if gemini_messages and gemini_messages[0].role != 'user':
            logger.warning(f"First message to Gemini is not 'user' (it's '{gemini_messages[0].role}').")
        return gemini_messages

    def _build_generation_config_object(self, params: Optional[Dict[str, Any]] = None) -> Optional[genai_types.GenerateContentConfig]:
        merged_params = self.get_default_params()
        if params:
            merged_params.update(params)
        config_kwargs = {k: v for k, v in merged_params.items() if k in self.VALID_CONFIG_KEYS and v is not None}
        if isinstance(config_kwargs.get('stop_sequences'), str):
            config_kwargs['stop_sequences'] = [config_kwargs['stop_sequences']]
        system_instruction = merged_params.get('system_instruction')
        if system_instruction and system_instruction.strip():
            config_kwargs['system_instruction'] = system_instruction
        if not config_kwargs:
            return None
        return genai_types.GenerateContentConfig(**config_kwargs)

    def get_default_params(self) -> Dict[str, Any]:
        # None leaves the model's own default in effect.
        return {
            "temperature": None,
            "max_output_tokens": None,
            "top_p": None,
            "top_k": None,
        }

    def extract_token_usage(self, response: Any) -> Dict[str, Any]:
        usage: Dict[str, Any] = {}
        meta = getattr(response, 'usage_metadata', None)
        if not meta:
            return usage
        for attr, key in (('prompt_token_count', 'prompt_tokens'),
                          ('candidates_token_count', 'completion_tokens'),
                          ('total_token_count', 'total_tokens')):
            value = getattr(meta, attr, None)
            if value is not None:
                usage[key] = value
        if 'completion_tokens' not in usage and 'prompt_tokens' in usage and 'total_tokens' in usage:
            usage['completion_tokens'] = usage['total_tokens'] - usage['prompt_tokens']
        return usage
