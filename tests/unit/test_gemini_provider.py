"""
Unit tests for GeminiProvider with the google-genai client mocked.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import types as genai_types

from codemind.providers import (
    ApiKeyMissingError,
    ContentGenerationError,
    GeminiProvider,
    ModelInitializationError,
    ProviderConfig,
    ProviderError,
)


@pytest.fixture
def config():
    return ProviderConfig(api_key="test-key", model="gemini-2.0-flash")


@pytest.fixture
def mock_genai_client():
    with patch('codemind.providers.gemini_provider.genai.Client') as client_cls:
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock()
        client.aio.models.list = AsyncMock()
        client_cls.return_value = client
        yield client_cls, client


class _AsyncPager:
    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


class TestProviderConfig:

    def test_blank_key_rejected(self):
        with pytest.raises(ApiKeyMissingError, match="API Key is missing"):
            ProviderConfig(api_key="  ", model="m")

    def test_model_required(self):
        with pytest.raises(ValueError):
            ProviderConfig(api_key="k", model="")


class TestGeminiProvider:
    """Tests for the Gemini provider."""

    def test_initialize_creates_client(self, config, mock_genai_client):
        client_cls, _ = mock_genai_client
        provider = GeminiProvider(config)

        provider.initialize()

        client_cls.assert_called_once_with(api_key="test-key", http_options=None)
        assert provider.is_initialized
        assert provider.provider_name == "gemini"

    def test_initialize_with_timeout(self, mock_genai_client):
        client_cls, _ = mock_genai_client
        provider = GeminiProvider(ProviderConfig(api_key="k", model="m", timeout=30))

        provider.initialize()

        http_options = client_cls.call_args.kwargs["http_options"]
        assert http_options.timeout == 30000

    def test_initialize_failure(self, config):
        with patch('codemind.providers.gemini_provider.genai.Client', side_effect=RuntimeError("bad key format")):
            provider = GeminiProvider(config)
            with pytest.raises(ModelInitializationError, match="Failed to initialize the AI model: bad key format"):
                provider.initialize()
        assert not provider.is_initialized

    def test_generate_before_initialize(self, config):
        with pytest.raises(ProviderError, match="not initialized"):
            asyncio.run(GeminiProvider(config).generate_response([{"role": "user", "content": "hi"}]))

    def test_generate_response(self, config, mock_genai_client):
        _, client = mock_genai_client
        client.aio.models.generate_content.return_value = SimpleNamespace(
            text="Hello!",
            usage_metadata=SimpleNamespace(prompt_token_count=7, candidates_token_count=3, total_token_count=10),
        )
        provider = GeminiProvider(config)
        provider.initialize()

        text, metadata = asyncio.run(provider.generate_response(
            [{"role": "user", "content": "Hi"}, {"role": "model", "content": "Hey"},
             {"role": "user", "content": "How are you?"}],
            {"temperature": 0.2},
        ))

        assert text == "Hello!"
        assert metadata["token_usage"] == {"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10}
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert [c.role for c in kwargs["contents"]] == ["user", "model", "user"]
        assert kwargs["config"].temperature == 0.2

    def test_generate_response_wraps_errors(self, config, mock_genai_client):
        _, client = mock_genai_client
        client.aio.models.generate_content.side_effect = RuntimeError("quota exceeded")
        provider = GeminiProvider(config)
        provider.initialize()

        with pytest.raises(ContentGenerationError, match="Failed to generate content: quota exceeded"):
            asyncio.run(provider.generate_response([{"role": "user", "content": "Hi"}]))

    def test_convert_messages_with_image_and_empty_turns(self, config):
        provider = GeminiProvider(config)

        contents = provider.convert_messages_to_gemini_format([
            {"role": "user", "content": "  "},
            {"role": "assistant", "content": "Earlier answer"},
            {"role": "user", "content": "What is this?",
             "attachments": [{"mime_type": "image/png", "data": b"\x89PNG"}, {"data": b"no mime"}]},
        ])

        assert [c.role for c in contents] == ["model", "user"]
        assert contents[1].parts[0].text == "What is this?"
        assert contents[1].parts[1].inline_data.mime_type == "image/png"
        assert contents[1].parts[1].inline_data.data == b"\x89PNG"
        assert len(contents[1].parts) == 2

    def test_generation_config(self, config):
        provider = GeminiProvider(config)

        assert provider._build_generation_config_object(None) is None
        assert provider._build_generation_config_object({"unknown": 1}) is None

        built = provider._build_generation_config_object(
            {"max_output_tokens": 100, "stop_sequences": "END", "system_instruction": "Be brief."})
        assert isinstance(built, genai_types.GenerateContentConfig)
        assert built.max_output_tokens == 100
        assert built.stop_sequences == ["END"]
        assert built.system_instruction is not None

    def test_extract_token_usage(self, config):
        provider = GeminiProvider(config)

        assert provider.extract_token_usage(SimpleNamespace(usage_metadata=None)) == {}
        usage = provider.extract_token_usage(SimpleNamespace(
            usage_metadata=SimpleNamespace(prompt_token_count=4, candidates_token_count=None, total_token_count=9)))
        assert usage == {"prompt_tokens": 4, "total_tokens": 9, "completion_tokens": 5}

    def test_list_models_filters_generative(self, config, mock_genai_client):
        _, client = mock_genai_client
        client.aio.models.list.return_value = _AsyncPager([
            SimpleNamespace(name="models/gemini-2.0-flash", display_name="Gemini 2.0 Flash",
                            description="fast", supported_actions=["generateContent"],
                            input_token_limit=1000, output_token_limit=100),
            SimpleNamespace(name="models/embedding-001", display_name="Embedding",
                            description="", supported_actions=["embedContent"],
                            input_token_limit=None, output_token_limit=None),
        ])
        provider = GeminiProvider(config)
        provider.initialize()

        models = asyncio.run(provider.list_models())

        assert [m["name"] for m in models] == ["models/gemini-2.0-flash"]
        assert models[0]["display_name"] == "Gemini 2.0 Flash"

    def test_list_models_falls_back(self, config, mock_genai_client):
        _, client = mock_genai_client
        client.aio.models.list.side_effect = RuntimeError("offline")
        provider = GeminiProvider(config)
        provider.initialize()

        models = asyncio.run(provider.list_models())

        assert [m["name"] for m in models] == GeminiProvider.DEFAULT_FALLBACK_MODELS
