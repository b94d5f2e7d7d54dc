"""
Shared fixtures and configurations for pytest.
"""

from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock, patch

import pytest

from codemind.data_manager import DataManager
from codemind.models import GenerationResult
from codemind.providers import BaseAIProvider, ProviderConfig
from codemind.storage import KeyValueStore


@pytest.fixture(autouse=True)
def no_real_keyring():
    """Never touch the credential store of the machine running the tests."""
    with patch('codemind.keychain.keyring') as mock_keyring:
        mock_keyring.get_password.return_value = None
        yield mock_keyring


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(tmp_path / "codemind_data.json")


@pytest.fixture
def data_manager(store):
    return DataManager(store)


@pytest.fixture
def make_result():
    def _make(text: str = "An answer", **kwargs) -> GenerationResult:
        defaults = dict(word_count=len(text.split()), prompt_token_count=10, candidates_token_count=5,
                        total_token_count=15, response_time_ms=120, model_name="gemini-2.0-flash")
        defaults.update(kwargs)
        return GenerationResult(text=text, **defaults)
    return _make


class FakeProvider(BaseAIProvider):
    """In-memory provider that records the messages it receives."""

    reply: Optional[str] = "Fake reply from the model"
    usage: Dict[str, Any] = {"prompt_tokens": 12, "completion_tokens": 4, "total_tokens": 16}
    error: Optional[Exception] = None
    instances: List["FakeProvider"] = []

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.calls: List[Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]] = []
        type(self).instances.append(self)

    def initialize(self) -> None:
        self._is_initialized = True

    async def list_models(self) -> List[Dict[str, Any]]:
        return [{"name": "models/gemini-2.0-flash", "display_name": "Gemini 2.0 Flash"}]

    async def generate_response(self, messages, params=None):
        self.calls.append((messages, params))
        if self.error is not None:
            raise self.error
        return self.reply, {"token_usage": dict(self.usage)}

    def get_default_params(self) -> Dict[str, Any]:
        return {}


@pytest.fixture
def fake_provider_cls():
    """A fresh FakeProvider subclass per test so class-level settings do not leak."""
    class _Provider(FakeProvider):
        instances: List[FakeProvider] = []
    return _Provider


@pytest.fixture
def mock_keychain():
    keychain = MagicMock()
    keychain.load_api_key.return_value = None
    keychain.save_api_key.return_value = True
    keychain.delete_api_key.return_value = True
    return keychain
