#!/usr/bin/env python3
"""
CodeMind Local Storage - JSON-file backed key-value store.

Holds the persisted collections of the application under fixed keys, the way
a desktop app keeps small blobs in its user defaults. Every ``set`` rewrites
the whole file synchronously.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Any, Optional, Union

logger = logging.getLogger(__name__)

SESSIONS_KEY = "chatSessions_v1"
FOLDERS_KEY = "chatFolders_v1"


class PersistenceError(Exception):
    """Raised when stored data cannot be read, encoded or written."""
    pass


class KeyValueStore:
    """A small JSON document of top-level keys stored in a single file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read storage file {self.path}: {e}")
            raise PersistenceError(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Storage file {self.path} does not contain a JSON object")
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        # The existing file is only ever replaced by a complete new one.
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile('w', encoding='utf-8', dir=self.path.parent,
                                             prefix=f".{self.path.name}.", suffix=".tmp", delete=False) as f:
                tmp_name = f.name
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write storage file {self.path}: {e}")
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._read_all().get(key, default)

    def _set_aside_unreadable_file(self) -> Path:
        backup = self.path.with_name(self.path.name + ".corrupt")
        try:
            self.path.replace(backup)
        except OSError as e:
            raise PersistenceError(f"Could not move unreadable {self.path} aside: {e}") from e
        logger.warning(f"Unreadable storage file moved to {backup}; starting a new one.")
        return backup

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read_all()
        except PersistenceError:
            # An unreadable file is moved aside, never overwritten.
            self._set_aside_unreadable_file()
            data = {}
        data[key] = value
        self._write_all(data)
        logger.debug(f"Stored key '{key}' in {self.path}")

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def __contains__(self, key: str) -> bool:
        return key in self._read_all()
