"""
Unit tests for the command-line entry point and logging setup.
"""

import logging
import logging.handlers
import os
from unittest.mock import AsyncMock, patch

import pytest

from codemind import __version__
from codemind.codemind import effective_generation_params, main, parse_arguments
from codemind.config import Config
from codemind.logging_utils import build_logging_config, configure_logging


@pytest.fixture
def isolated_env(tmp_path):
    with patch.dict(os.environ, {}, clear=True), patch('codemind.config.load_dotenv'):
        yield tmp_path


class TestArguments:

    def test_defaults(self):
        args = parse_arguments([])

        assert args.api_key is None
        assert args.model is None
        assert args.setup is False
        assert args.temperature is None

    def test_log_level_is_upper_cased(self):
        assert parse_arguments(["--log-level", "debug"]).log_level == "DEBUG"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            parse_arguments(["--version"])
        assert __version__ in capsys.readouterr().out

    def test_generation_overrides(self, isolated_env, mock_keychain):
        config = Config(isolated_env / "c.json", quiet=True, keychain=mock_keychain)
        config.set("generation_params", {"temperature": 0.9, "top_k": 20})
        args = parse_arguments(["--temp", "0.1", "--max-tokens", "256"])

        assert effective_generation_params(config, args) == {
            "temperature": 0.1, "top_k": 20, "max_output_tokens": 256}


class TestMain:

    def test_runs_loop_with_overrides(self, isolated_env):
        data_file = isolated_env / "chats.json"
        loop = AsyncMock()
        with patch('codemind.codemind.async_command_loop', loop), \
                patch('codemind.codemind.configure_logging') as mock_logging:
            exit_code = main(["--config", str(isolated_env / "c.json"), "--data-file", str(data_file),
                              "--model", "gemini-test", "--log-level", "warning", "--quiet"])

        assert exit_code == 0
        assert mock_logging.call_args.args[1] == "WARNING"
        client = loop.call_args.args[0]
        assert client.current_model_name == "gemini-test"
        assert client.data_manager.storage.path == data_file
        assert data_file.exists()

    def test_api_key_flag_is_stored(self, isolated_env, no_real_keyring):
        with patch('codemind.codemind.async_command_loop', AsyncMock()), \
                patch('codemind.codemind.configure_logging'):
            main(["--config", str(isolated_env / "c.json"), "--data-file", str(isolated_env / "d.json"),
                  "--api-key", "sk-cli", "--quiet"])

        no_real_keyring.set_password.assert_called_once_with("codemind", "gemini_api_key", "sk-cli")

    def test_unknown_log_level_in_config_falls_back_to_info(self, isolated_env, capsys):
        config_path = isolated_env / "c.json"
        config_path.write_text('{"log_level": "foo"}', encoding='utf-8')
        with patch('codemind.codemind.async_command_loop', AsyncMock()), \
                patch('codemind.codemind.configure_logging') as mock_logging:
            main(["--config", str(config_path), "--data-file", str(isolated_env / "d.json"), "--quiet"])

        assert mock_logging.call_args.args[1] == "INFO"
        assert "Ignoring unknown log level 'FOO'" in capsys.readouterr().out

    def test_setup_runs_wizard_only(self, isolated_env):
        loop = AsyncMock()
        with patch('codemind.codemind.async_command_loop', loop), \
                patch('codemind.codemind.configure_logging'), \
                patch.object(Config, 'setup_wizard', return_value=True) as wizard:
            assert main(["--config", str(isolated_env / "c.json"), "--setup"]) == 0

        wizard.assert_called_once_with()
        loop.assert_not_called()

    def test_unwritable_library_exits_with_error(self, isolated_env, capsys):
        blocker = isolated_env / "not_a_dir"
        blocker.write_text("file", encoding='utf-8')
        with patch('codemind.codemind.async_command_loop', AsyncMock()), \
                patch('codemind.codemind.configure_logging'):
            exit_code = main(["--config", str(isolated_env / "c.json"),
                              "--data-file", str(blocker / "chats.json"), "--quiet"])

        assert exit_code == 1
        assert "Error opening chat library" in capsys.readouterr().out


class TestLogging:

    def test_console_only_config(self):
        config = build_logging_config(None, "debug")

        assert set(config['handlers']) == {'console'}
        assert config['handlers']['console']['level'] == "WARNING"
        assert config['loggers']['']['level'] == "DEBUG"
        assert config['loggers']['google_genai']['level'] == "WARNING"

    def test_rotating_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "codemind.log"
        root = logging.getLogger()
        previous = list(root.handlers)
        try:
            configure_logging(log_file, "INFO")
            file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
            assert len(file_handlers) == 1
            assert file_handlers[0].maxBytes == 10485760
            assert file_handlers[0].backupCount == 5
            assert log_file.parent.is_dir()
        finally:
            for handler in list(root.handlers):
                if handler not in previous:
                    root.removeHandler(handler)
                    handler.close()
            for handler in previous:
                if handler not in root.handlers:
                    root.addHandler(handler)
