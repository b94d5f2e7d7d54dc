"""
CodeMind - Client Manager Module

Factory that wires configuration, storage, the data manager and the Gemini
service into an AsyncClient.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .async_client import AsyncClient
from .config import Config
from .data_manager import DataManager
from .gemini_service import GeminiService
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class ClientManager:
    """Factory for creating CodeMind clients."""

    @staticmethod
    def create_client(
        config: Config,
        model_override: Optional[str] = None,
        data_file_override: Optional[Path] = None,
        params_override: Optional[Dict[str, Any]] = None,
    ) -> AsyncClient:
        """
        Creates an AsyncClient from the configuration.

        Args:
            config: The main application Config object.
            model_override: Model name that replaces the configured one.
            data_file_override: Storage file that replaces the configured one.
            params_override: Generation parameters that replace the configured ones.

        Returns:
            A ready AsyncClient. The Gemini SDK client itself is created lazily on the first request.
        """
        model_name = model_override or config.model
        data_file = Path(data_file_override) if data_file_override else config.data_file
        logger.info(f"Creating client: model={model_name}, data_file={data_file}")

        data_manager = DataManager(KeyValueStore(data_file))
        service = GeminiService(
            model_name=model_name,
            params=params_override if params_override is not None else config.get("generation_params", {}),
            timeout=config.get("request_timeout"),
        )
        return AsyncClient(data_manager=data_manager, service=service, api_key_lookup=config.get_api_key)
