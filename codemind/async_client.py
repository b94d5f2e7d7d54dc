#!/usr/bin/env python3
"""
CodeMind Asynchronous Client - Connects the chat library to Gemini.

The client submits questions for the active session, records the answers
through the DataManager, and keeps a status line describing the last
failure. It also renders the library for the terminal.
"""

import logging
from typing import Callable, List, Optional

from tabulate import tabulate

from .base_client import BaseClientFeatures, Colors
from .data_manager import DataManager
from .gemini_service import GeminiService
from .models import ChatEntry, SidebarFilter, color_name
from .providers import ProviderError
from .storage import PersistenceError

logger = logging.getLogger(__name__)

ApiKeyLookup = Callable[[], Optional[str]]


class AsyncClient(BaseClientFeatures):
    """Asynchronous chat client for CodeMind."""

    def __init__(self, data_manager: DataManager, service: GeminiService, api_key_lookup: ApiKeyLookup):
        """
        Args:
            data_manager: Store holding sessions and folders.
            service: Gateway used for generation calls.
            api_key_lookup: Returns the current API key, or None.
        """
        self.data_manager = data_manager
        self.service = service
        self.api_key_lookup = api_key_lookup
        self.status_text: str = ""
        self.is_loading: bool = False
        self.sidebar_filter: SidebarFilter = SidebarFilter.ALL
        self.color_filter: Optional[str] = None

    @property
    def current_model_name(self) -> str:
        return self.service.model_name

    async def submit_query(self, text: str, image_data: Optional[bytes] = None) -> Optional[ChatEntry]:
        """
        Sends a question for the active session and records the answer.

        Returns the new entry, or None when nothing was recorded; in that case
        ``status_text`` explains why.
        """
        if self.data_manager.active_session_id is None:
            self.status_text = "Error: No active chat session."
            return None
        if not text.strip() and image_data is None:
            return None
        if self.is_loading:
            self.status_text = "Error: A response is already being generated."
            return None
        api_key = self.api_key_lookup()
        if not api_key:
            self.status_text = "Error: API Key is missing. Please add it via /apikey or the GEMINI_API_KEY variable."
            return None

        self.is_loading = True
        self.status_text = "Generating response..."
        history = self.data_manager.active_session_entries
        try:
            result = await self.service.generate_response(history, text, api_key, image_data=image_data)
        except ProviderError as e:
            logger.error(f"Generation failed: {e}")
            self.status_text = f"Error: {e}"
            return None
        finally:
            self.is_loading = False

        try:
            entry = self.data_manager.add_entry_to_active_session(text, result)
        except PersistenceError as e:
            # The entry is kept in memory; only the save failed.
            self.status_text = f"Warning: answer received but could not be saved: {e}"
            return self.data_manager.active_session_entries[-1]
        if entry is None:
            self.status_text = "Error: No active chat session."
            return None
        self.status_text = ""
        return entry

    # --- Display ---

    def display_sessions(self, folder_id: Optional[str] = None) -> None:
        """Prints the folders and sessions at one level of the tree, honouring the filters."""
        dm = self.data_manager
        folders = dm.filtered_folders(folder_id, self.sidebar_filter, self.color_filter)
        sessions = dm.filtered_sessions(folder_id, self.sidebar_filter, self.color_filter)
        filter_desc = self.sidebar_filter.value
        if self.color_filter:
            filter_desc += f", {color_name(self.color_filter)}"
        print(f"\n{Colors.HEADER}{dm.folder_path(folder_id)} ({filter_desc}){Colors.ENDC}")

        if not folders and not sessions:
            print(f"{Colors.WARNING}Nothing to show here.{Colors.ENDC}")
            return

        table_data: List[List[str]] = []
        for folder in folders:
            table_data.append(["", "[dir] " + self.truncate(folder.name, 40),
                               color_name(folder.color_hex) if folder.color_hex else "",
                               str(len(dm.sessions_in(folder.id))), self.format_timestamp(folder.created_at),
                               folder.id[:8]])
        for session in sessions:
            marker = ">" if session.id == dm.active_session_id else ""
            table_data.append([marker, self.truncate(session.title, 40), self.session_badges(session),
                               str(len(session.entries)), self.format_timestamp(session.created_at),
                               session.id[:8]])
        headers = ["", "Title", "Tags", "Entries", "Created", "ID"]
        print(tabulate(table_data, headers=headers, tablefmt="pretty"))

    def display_history(self, entries: Optional[List[ChatEntry]] = None) -> None:
        session = self.data_manager.active_session
        if session is None:
            print(f"{Colors.WARNING}No chat selected.{Colors.ENDC}")
            return
        entries = session.entries if entries is None else entries
        print(f"\n{Colors.BOLD}{session.title}{Colors.ENDC}")
        if not entries:
            print(f"{Colors.WARNING}No entries to display.{Colors.ENDC}")
            return
        for entry in entries:
            time_display = self.format_timestamp(entry.timestamp, "%H:%M:%S")
            print(f"{Colors.BLUE}You ({time_display}): {Colors.ENDC}{entry.question}\n")
            print(f"{Colors.GREEN}AI: {Colors.ENDC}{entry.answer}")
            metadata = self.format_entry_metadata(entry)
            if metadata:
                print(f"{Colors.CYAN}[{metadata}] id={entry.id[:8]}{Colors.ENDC}")
            print()
