#!/usr/bin/env python3
"""
CodeMind Configuration - Unified configuration management.

This module provides a centralized configuration system for CodeMind,
handling model selection, storage locations, logging and API key lookup.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional, Union

from dotenv import load_dotenv

from .base_client import Colors
from .keychain import DEFAULT_SERVICE_NAME, KeychainHelper
from .logging_utils import LOG_LEVELS

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".codemind"


class Config:
    """Configuration manager for CodeMind."""

    DEFAULT_CONFIG_FILE = "codemind_config.json"
    DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
    API_KEY_ENV_VAR = "GEMINI_API_KEY"
    CONFIG_ENV_VAR = "CODEMIND_CONFIG"

    def __init__(self, config_file: Optional[Union[str, Path]] = None, override_api_key: Optional[str] = None,
                 quiet: bool = False, keychain: Optional[KeychainHelper] = None):
        """Initialize the configuration manager.

        Args:
            config_file: Path to the configuration file. If None, uses CODEMIND_CONFIG or the default.
            override_api_key: API key that takes precedence over environment and credential store.
            quiet: Suppress informational messages during load/save.
            keychain: Credential store helper; built from the configured service name if None.
        """
        load_dotenv()
        env_config = os.environ.get(self.CONFIG_ENV_VAR)
        self.config_file = Path(config_file or env_config or APP_DIR / self.DEFAULT_CONFIG_FILE).expanduser()

        self.config: Dict[str, Any] = {
            "model": self.DEFAULT_GEMINI_MODEL,
            "data_file": str(APP_DIR / "codemind_data.json"),
            "keychain_service": DEFAULT_SERVICE_NAME,
            "log_level": "INFO",
            "log_file": str(APP_DIR / "logs" / "codemind.log"),
            "request_timeout": None,
            "generation_params": {},
        }
        self.quiet = quiet
        self.override_api_key = override_api_key
        self.load_config()
        self.keychain = keychain or KeychainHelper(service_name=self.config["keychain_service"])

    def _say(self, message: str, color: str = Colors.GREEN) -> None:
        if not self.quiet:
            print(f"{color}{message}{Colors.ENDC}")

    def load_config(self) -> Dict[str, Any]:
        """Loads the configuration file and merges it over the defaults."""
        if not self.config_file.exists():
            self._say(f"Configuration file not found at {self.config_file}. Using default settings.", Colors.WARNING)
            return self.config
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded_config = json.load(f)
            if not isinstance(loaded_config, dict):
                raise ValueError("top-level JSON value is not an object")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration from {self.config_file}: {e}")
            self._say(f"Error loading configuration from {self.config_file}: {e}. Using defaults.", Colors.FAIL)
            return self.config

        for key, value in loaded_config.items():
            if isinstance(value, dict) and isinstance(self.config.get(key), dict):
                self.config[key].update(value)
            else:
                self.config[key] = value
        self._say(f"Configuration loaded from {self.config_file}")
        return self.config

    def save_config(self) -> bool:
        """Saves the current configuration to the JSON file.

        Returns:
            True if saving was successful, False otherwise.
        """
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Error saving configuration to {self.config_file}: {e}")
            self._say(f"Error saving configuration to {self.config_file}: {e}", Colors.FAIL)
            return False
        self._say(f"Configuration saved to {self.config_file}")
        return True

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Sets a configuration value. Does not automatically save."""
        self.config[key] = value

    @property
    def data_file(self) -> Path:
        return Path(self.config["data_file"]).expanduser()

    @property
    def model(self) -> str:
        return self.config.get("model") or self.DEFAULT_GEMINI_MODEL

    def get_api_key(self) -> Optional[str]:
        """Gets the API key, checking the override, then the environment, then the credential store."""
        if self.override_api_key:
            return self.override_api_key
        api_key_env = os.environ.get(self.API_KEY_ENV_VAR)
        if api_key_env:
            return api_key_env
        return self.keychain.load_api_key()

    def setup_wizard(self) -> bool:
        """Runs an interactive setup wizard.

        Returns:
            True if configuration was saved, False otherwise.
        """
        print(f"\n{Colors.CYAN}=== CodeMind Configuration Wizard ==={Colors.ENDC}\n")
        has_key = self.keychain.has_api_key()
        print(f"{Colors.CYAN}Stored API key:{Colors.ENDC} {Colors.GREEN}{'set' if has_key else 'Not set'}{Colors.ENDC}")
        new_key = input("Enter a new Gemini API key (leave blank to keep current): ").strip()
        if new_key and not self.keychain.save_api_key(new_key):
            print(f"{Colors.FAIL}Error Saving Key{Colors.ENDC}")

        for key, label in (("model", "Model"), ("data_file", "Data file"), ("log_level", "Log level")):
            current = self.config.get(key)
            new_val = input(f"{label} [{current}]: ").strip()
            if not new_val:
                continue
            if key == "log_level":
                new_val = new_val.upper()
                if new_val not in LOG_LEVELS:
                    print(f"{Colors.WARNING}Unknown log level '{new_val}'. "
                          f"Choose one of: {', '.join(LOG_LEVELS)}. Keeping {current}.{Colors.ENDC}")
                    continue
            self.config[key] = new_val

        choice = input("Save configuration? (y/n): ").strip().lower()
        if choice in ("y", "yes"):
            return self.save_config()
        print("Exiting wizard without saving changes.")
        return False
