"""
Unit tests for the Config class.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from codemind.config import Config


@pytest.fixture
def clean_env():
    """Run without GEMINI_API_KEY/CODEMIND_CONFIG and without reading a .env file."""
    with patch.dict(os.environ, {}, clear=True), patch('codemind.config.load_dotenv'):
        yield


class TestConfig:
    """Tests for configuration loading and API key lookup."""

    def test_defaults_when_file_missing(self, tmp_path, clean_env, mock_keychain):
        config = Config(tmp_path / "missing.json", quiet=True, keychain=mock_keychain)

        assert config.model == "gemini-2.0-flash"
        assert config.get("log_level") == "INFO"
        assert config.get("generation_params") == {}
        assert config.data_file.name == "codemind_data.json"

    def test_loaded_values_merge_over_defaults(self, tmp_path, clean_env, mock_keychain):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "model": "gemini-1.5-pro-latest",
            "data_file": str(tmp_path / "chats.json"),
            "generation_params": {"temperature": 0.3},
        }), encoding='utf-8')

        config = Config(path, quiet=True, keychain=mock_keychain)

        assert config.model == "gemini-1.5-pro-latest"
        assert config.data_file == tmp_path / "chats.json"
        assert config.get("generation_params") == {"temperature": 0.3}
        assert config.get("keychain_service") == "codemind"

    def test_invalid_file_falls_back_to_defaults(self, tmp_path, clean_env, mock_keychain):
        path = tmp_path / "config.json"
        path.write_text("not json", encoding='utf-8')

        config = Config(path, quiet=True, keychain=mock_keychain)

        assert config.model == "gemini-2.0-flash"

    def test_env_var_selects_config_file(self, tmp_path, mock_keychain):
        path = tmp_path / "from_env.json"
        path.write_text(json.dumps({"model": "from-env"}), encoding='utf-8')

        with patch.dict(os.environ, {"CODEMIND_CONFIG": str(path)}, clear=True), \
                patch('codemind.config.load_dotenv'):
            config = Config(quiet=True, keychain=mock_keychain)

        assert config.config_file == Path(path)
        assert config.model == "from-env"

    def test_save_config(self, tmp_path, clean_env, mock_keychain):
        path = tmp_path / "sub" / "config.json"
        config = Config(path, quiet=True, keychain=mock_keychain)
        config.set("model", "gemini-custom")

        assert config.save_config() is True
        assert json.loads(path.read_text(encoding='utf-8'))["model"] == "gemini-custom"

    def test_save_config_failure(self, tmp_path, clean_env, mock_keychain):
        config = Config(tmp_path / "config.json", quiet=True, keychain=mock_keychain)

        with patch('builtins.open', side_effect=OSError("denied")):
            assert config.save_config() is False

    def test_api_key_order(self, tmp_path, mock_keychain):
        mock_keychain.load_api_key.return_value = "from-keychain"
        with patch('codemind.config.load_dotenv'):
            with patch.dict(os.environ, {}, clear=True):
                config = Config(tmp_path / "c.json", quiet=True, keychain=mock_keychain)
                assert config.get_api_key() == "from-keychain"

                with patch.dict(os.environ, {"GEMINI_API_KEY": "from-env"}):
                    assert config.get_api_key() == "from-env"

                    config.override_api_key = "from-cli"
                    assert config.get_api_key() == "from-cli"

    def test_default_keychain_uses_configured_service(self, tmp_path, clean_env):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"keychain_service": "codemind-test"}), encoding='utf-8')

        config = Config(path, quiet=True)

        assert config.keychain.service_name == "codemind-test"

    def test_setup_wizard_saves(self, tmp_path, clean_env, mock_keychain):
        path = tmp_path / "config.json"
        config = Config(path, quiet=True, keychain=mock_keychain)
        answers = iter(["new-key", "gemini-exp", "", "debug", "y"])

        with patch('builtins.input', lambda _prompt: next(answers)):
            assert config.setup_wizard() is True

        mock_keychain.save_api_key.assert_called_once_with("new-key")
        saved = json.loads(path.read_text(encoding='utf-8'))
        assert saved["model"] == "gemini-exp"
        assert saved["log_level"] == "DEBUG"

    def test_setup_wizard_rejects_unknown_log_level(self, tmp_path, clean_env, mock_keychain, capsys):
        path = tmp_path / "config.json"
        config = Config(path, quiet=True, keychain=mock_keychain)
        answers = iter(["", "", "", "foo", "y"])

        with patch('builtins.input', lambda _prompt: next(answers)):
            assert config.setup_wizard() is True

        assert "Unknown log level 'FOO'" in capsys.readouterr().out
        saved = json.loads(path.read_text(encoding='utf-8'))
        assert saved["log_level"] == "INFO"

    def test_setup_wizard_discard(self, tmp_path, clean_env, mock_keychain):
        path = tmp_path / "config.json"
        config = Config(path, quiet=True, keychain=mock_keychain)
        answers = iter(["", "", "", "", "n"])

        with patch('builtins.input', lambda _prompt: next(answers)):
            assert config.setup_wizard() is False

        mock_keychain.save_api_key.assert_not_called()
        assert not path.exists()
