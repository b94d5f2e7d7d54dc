"""
CodeMind Keychain Helper - API key storage in the OS credential store.

`keyring` picks the platform backend (macOS Keychain, Windows Credential
Locker, Secret Service on Linux). Backend failures are logged and reported
through return values.
"""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "codemind"
API_KEY_ACCOUNT = "gemini_api_key"


class KeychainHelper:
    """Reads and writes the single Gemini API key."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME, account: str = API_KEY_ACCOUNT):
        self.service_name = service_name
        self.account = account

    def save_api_key(self, api_key: str) -> bool:
        if not api_key or not api_key.strip():
            logger.warning("Refusing to store an empty API key")
            return False
        try:
            keyring.set_password(self.service_name, self.account, api_key.strip())
        except KeyringError as e:
            logger.error(f"Failed to store API key in credential store: {e}", exc_info=True)
            return False
        logger.info(f"Stored API key under service '{self.service_name}'")
        return True

    def load_api_key(self) -> Optional[str]:
        try:
            api_key = keyring.get_password(self.service_name, self.account)
        except KeyringError as e:
            logger.error(f"Failed to read API key from credential store: {e}")
            return None
        if not api_key:
            logger.debug(f"No API key stored under service '{self.service_name}'")
            return None
        return api_key

    def delete_api_key(self) -> bool:
        try:
            keyring.delete_password(self.service_name, self.account)
        except PasswordDeleteError:
            logger.warning("No stored API key to delete")
            return False
        except KeyringError as e:
            logger.error(f"Failed to delete API key from credential store: {e}", exc_info=True)
            return False
        logger.info("Deleted stored API key")
        return True

    def has_api_key(self) -> bool:
        return self.load_api_key() is not None
