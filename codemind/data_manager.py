#!/usr/bin/env python3
"""
CodeMind Data Manager - Single source of truth for chat sessions and folders.

Sessions and folders live in two in-memory lists. Every mutation updates the
list in place, notifies the optional observer, and then writes the whole
affected collection to the key-value store. A failed write is logged and
raised as ``PersistenceError``; the in-memory change is kept.
"""

import logging
from typing import Callable, Dict, List, Any, Optional, Set

from .models import ChatEntry, ChatSession, Folder, GenerationResult, SidebarFilter, generate_title
from .storage import FOLDERS_KEY, SESSIONS_KEY, KeyValueStore, PersistenceError

logger = logging.getLogger(__name__)


class DataManager:
    """Manages chat sessions, their entries, and the folder tree."""

    def __init__(self, storage: KeyValueStore, on_change: Optional[Callable[[], None]] = None):
        """
        Args:
            storage: Key-value store the collections are persisted to.
            on_change: Called after every in-memory mutation (before it is saved).
        """
        self.storage = storage
        self.on_change = on_change
        self.chat_sessions: List[ChatSession] = []
        self.folders: List[Folder] = []
        self.active_session_id: Optional[str] = None
        self.load_errors: List[str] = []

        self.load_sessions()
        self.load_folders()

        if not self.chat_sessions:
            logger.info("No sessions found, creating initial session.")
            self.create_session(activate=True)
        else:
            self.active_session_id = self.chat_sessions[0].id
            logger.info(f"Initialized with {len(self.chat_sessions)} sessions and {len(self.folders)} folders. "
                        f"Active ID: {self.active_session_id}")

    # --- Persistence ---

    def load_sessions(self) -> None:
        try:
            raw = self.storage.get(SESSIONS_KEY)
            if raw is None:
                logger.info("No session data found in storage.")
                return
            sessions = [ChatSession.from_dict(item) for item in raw]
            sessions.sort(key=lambda s: s.created_at, reverse=True)
        except (PersistenceError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load sessions: {e}")
            self.load_errors.append(f"sessions: {e}")
            self.chat_sessions = []
            return
        self.chat_sessions = sessions
        logger.info(f"Sessions loaded successfully ({len(sessions)} sessions).")

    def load_folders(self) -> None:
        try:
            raw = self.storage.get(FOLDERS_KEY)
            if raw is None:
                return
            folders = [Folder.from_dict(item) for item in raw]
        except (PersistenceError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load folders: {e}")
            self.load_errors.append(f"folders: {e}")
            self.folders = []
            return
        self.folders = folders
        logger.info(f"Folders loaded successfully ({len(folders)} folders).")

    def save_sessions(self) -> None:
        try:
            self.storage.set(SESSIONS_KEY, [s.to_dict() for s in self.chat_sessions])
        except PersistenceError as e:
            logger.error(f"Failed to save sessions: {e}")
            raise
        logger.debug("Sessions saved successfully.")

    def save_folders(self) -> None:
        try:
            self.storage.set(FOLDERS_KEY, [f.to_dict() for f in self.folders])
        except PersistenceError as e:
            logger.error(f"Failed to save folders: {e}")
            raise
        logger.debug("Folders saved successfully.")

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # --- Lookups ---

    def get_session(self, session_id: Optional[str]) -> Optional[ChatSession]:
        return next((s for s in self.chat_sessions if s.id == session_id), None)

    def get_folder(self, folder_id: Optional[str]) -> Optional[Folder]:
        return next((f for f in self.folders if f.id == folder_id), None)

    def _session_index(self, session_id: Optional[str]) -> Optional[int]:
        for i, session in enumerate(self.chat_sessions):
            if session.id == session_id:
                return i
        return None

    @property
    def active_session(self) -> Optional[ChatSession]:
        return self.get_session(self.active_session_id)

    @property
    def active_session_entries(self) -> List[ChatEntry]:
        session = self.active_session
        return list(session.entries) if session else []

    def set_active_session(self, session_id: str) -> bool:
        if self.get_session(session_id) is None:
            logger.warning(f"Cannot activate unknown session {session_id}")
            return False
        self.active_session_id = session_id
        self._changed()
        return True

    def search_active_entries(self, text: str) -> List[ChatEntry]:
        """Entries of the active session whose question or answer contains text (case-insensitive)."""
        entries = self.active_session_entries
        if not text:
            return entries
        needle = text.casefold()
        return [e for e in entries if needle in e.question.casefold() or needle in e.answer.casefold()]

    # --- Sessions ---

    def create_session(self, activate: bool = True) -> ChatSession:
        session = ChatSession()
        self.chat_sessions.insert(0, session)
        if activate:
            self.active_session_id = session.id
            logger.info(f"Created and activated new session: {session.id}")
        else:
            logger.info(f"Created new session: {session.id}")
        self._changed()
        self.save_sessions()
        return session

    def add_entry_to_active_session(self, question: str, result: GenerationResult) -> Optional[ChatEntry]:
        session = self.active_session
        if session is None:
            logger.error("Cannot add entry, no active session selected.")
            return None

        entry = ChatEntry.from_result(question, result)
        session.entries.append(entry)

        if len(session.entries) == 1 and session.has_placeholder_title and question.strip():
            session.title = generate_title(question)
            logger.info(f"Updated title for session {session.id} to: {session.title}")

        self._changed()
        self.save_sessions()
        logger.info(f"Added entry to session: {session.id}")
        return entry

    def _reselect_active_if_gone(self) -> None:
        if self.active_session_id is not None and self.get_session(self.active_session_id) is None:
            self.active_session_id = self.chat_sessions[0].id if self.chat_sessions else None
            logger.info(f"Active session deleted. New active session: {self.active_session_id or 'None'}")

    def delete_session(self, session_id: str) -> bool:
        index = self._session_index(session_id)
        if index is None:
            return False
        deleted = self.chat_sessions.pop(index)
        logger.info(f"Deleted session: {deleted.id} - {deleted.title}")
        self._reselect_active_if_gone()
        self._changed()
        self.save_sessions()
        return True

    def toggle_favorite(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.is_favorite = not session.is_favorite
        logger.info(f"Toggled favorite for session: {session_id}. New status: {session.is_favorite}")
        self._changed()
        self.save_sessions()
        return True

    def update_title(self, session_id: str, new_title: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        if not new_title.strip():
            logger.warning(f"Rejected empty title for session {session_id}")
            return False
        session.title = new_title
        logger.info(f"Updated title for session: {session_id} to '{new_title}'")
        self._changed()
        self.save_sessions()
        return True

    def update_session_color(self, session_id: str, color_hex: Optional[str]) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.color_hex = color_hex
        self._changed()
        self.save_sessions()
        return True

    def delete_entry(self, entry_id: str) -> bool:
        session = self.active_session
        if session is None:
            logger.error("Cannot delete entry, no active session selected.")
            return False
        for i, entry in enumerate(session.entries):
            if entry.id == entry_id:
                del session.entries[i]
                logger.info(f"Deleted entry {entry_id} from session {session.id}")
                self._changed()
                self.save_sessions()
                return True
        logger.error(f"Cannot find entry with ID {entry_id} in session {session.id}")
        return False

    def clear_entries(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            logger.error(f"Cannot clear entries, session ID {session_id} not found.")
            return False
        if not session.entries:
            logger.info(f"No entries to clear in session {session_id}.")
            return False
        session.entries.clear()
        logger.info(f"Cleared all entries for session {session_id}.")
        self._changed()
        self.save_sessions()
        return True

    def move_session_to_folder(self, session_id: str, folder_id: Optional[str]) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        if folder_id is not None and self.get_folder(folder_id) is None:
            logger.warning(f"Cannot move session {session_id}: folder {folder_id} not found")
            return False
        session.folder_id = folder_id
        self._changed()
        self.save_sessions()
        return True

    @property
    def root_sessions(self) -> List[ChatSession]:
        return self.sessions_in(None)

    def sessions_in(self, folder_id: Optional[str]) -> List[ChatSession]:
        return [s for s in self.chat_sessions if s.folder_id == folder_id]

    # --- Folders ---

    @property
    def root_folders(self) -> List[Folder]:
        return self.subfolders(None)

    def subfolders(self, parent_id: Optional[str]) -> List[Folder]:
        return sorted((f for f in self.folders if f.parent_id == parent_id), key=lambda f: f.name.lower())

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[Folder]:
        if not name.strip():
            logger.warning("Rejected folder with empty name")
            return None
        if parent_id is not None and self.get_folder(parent_id) is None:
            logger.warning(f"Cannot create folder: parent {parent_id} not found")
            return None
        folder = Folder(name=name.strip(), parent_id=parent_id)
        self.folders.append(folder)
        logger.info(f"Created folder '{folder.name}' ({folder.id}) under {parent_id or 'root'}")
        self._changed()
        self.save_folders()
        return folder

    def rename_folder(self, folder_id: str, new_name: str) -> bool:
        folder = self.get_folder(folder_id)
        if folder is None or not new_name.strip():
            return False
        folder.name = new_name.strip()
        self._changed()
        self.save_folders()
        return True

    def update_folder_color(self, folder_id: str, color_hex: Optional[str]) -> bool:
        folder = self.get_folder(folder_id)
        if folder is None:
            return False
        folder.color_hex = color_hex
        self._changed()
        self.save_folders()
        return True

    def _descendant_ids(self, folder_id: str, _seen: Optional[Set[str]] = None) -> List[str]:
        """Depth-first ids of every folder below folder_id (not including it)."""
        seen = _seen if _seen is not None else {folder_id}
        result: List[str] = []
        for child in self.subfolders(folder_id):
            if child.id in seen:
                continue
            seen.add(child.id)
            result.append(child.id)
            result.extend(self._descendant_ids(child.id, seen))
        return result

    def delete_folder(self, folder_id: str, recursive: bool) -> bool:
        """Deletes a folder.

        recursive=True removes every descendant folder and every session held
        by the folder or its descendants. Otherwise the folder's direct child
        folders and sessions move up to the deleted folder's own parent.
        """
        folder = self.get_folder(folder_id)
        if folder is None:
            return False

        if recursive:
            doomed: Set[str] = {folder_id, *self._descendant_ids(folder_id)}
            self.folders = [f for f in self.folders if f.id not in doomed]
            before = len(self.chat_sessions)
            self.chat_sessions = [s for s in self.chat_sessions if s.folder_id not in doomed]
            logger.info(f"Recursively deleted folder {folder_id}: {len(doomed)} folders, "
                        f"{before - len(self.chat_sessions)} sessions")
            self._reselect_active_if_gone()
        else:
            new_parent = folder.parent_id
            for child in self.folders:
                if child.parent_id == folder_id:
                    child.parent_id = new_parent
            for session in self.chat_sessions:
                if session.folder_id == folder_id:
                    session.folder_id = new_parent
            self.folders = [f for f in self.folders if f.id != folder_id]
            logger.info(f"Deleted folder {folder_id}; contents moved to {new_parent or 'root'}")

        self._changed()
        self.save_folders()
        self.save_sessions()
        return True

    def is_descendant(self, folder_id: str, ancestor_id: str) -> bool:
        """True if ancestor_id appears on the parent chain above folder_id."""
        visited: Set[str] = set()
        current = self.get_folder(folder_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id == ancestor_id:
                return True
            if current.parent_id in visited:
                logger.error(f"Cycle detected in folder tree at {current.parent_id}")
                return False
            visited.add(current.parent_id)
            current = self.get_folder(current.parent_id)
        return False

    def move_folder(self, folder_id: str, new_parent_id: Optional[str]) -> bool:
        folder = self.get_folder(folder_id)
        if folder is None:
            return False
        if new_parent_id is not None:
            if new_parent_id == folder_id:
                logger.warning(f"Cannot move folder {folder_id} into itself")
                return False
            if self.get_folder(new_parent_id) is None:
                logger.warning(f"Cannot move folder {folder_id}: target {new_parent_id} not found")
                return False
            if self.is_descendant(new_parent_id, folder_id):
                logger.warning(f"Cannot move folder {folder_id} into its descendant {new_parent_id}")
                return False
        folder.parent_id = new_parent_id
        self._changed()
        self.save_folders()
        return True

    def move_targets(self, folder_id: str) -> List[Folder]:
        """Folders that folder_id may legally be moved into, sorted by name."""
        candidates = [f for f in self.folders
                      if f.id != folder_id and not self.is_descendant(f.id, folder_id)]
        return sorted(candidates, key=lambda f: f.name)

    def folder_contains_favorites(self, folder_id: str) -> bool:
        ids = {folder_id, *self._descendant_ids(folder_id)}
        return any(s.is_favorite for s in self.chat_sessions if s.folder_id in ids)

    # --- Filters ---

    def filtered_sessions(self, parent_id: Optional[str], current_filter: SidebarFilter = SidebarFilter.ALL,
                          color_hex_filter: Optional[str] = None) -> List[ChatSession]:
        result = []
        for session in self.sessions_in(parent_id):
            if current_filter == SidebarFilter.FAVORITES and not session.is_favorite:
                continue
            if color_hex_filter is not None and session.color_hex != color_hex_filter:
                continue
            result.append(session)
        return result

    def filtered_folders(self, parent_id: Optional[str], current_filter: SidebarFilter = SidebarFilter.ALL,
                         color_hex_filter: Optional[str] = None) -> List[Folder]:
        result = []
        for folder in self.subfolders(parent_id):
            if current_filter == SidebarFilter.FAVORITES and not self.folder_contains_favorites(folder.id):
                continue
            if color_hex_filter is not None and folder.color_hex != color_hex_filter:
                continue
            result.append(folder)
        return result

    def folder_path(self, folder_id: Optional[str]) -> str:
        """Slash-joined folder names from the root down to folder_id."""
        names: List[str] = []
        seen: Set[str] = set()
        current = self.get_folder(folder_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            names.append(current.name)
            current = self.get_folder(current.parent_id)
        return "/" + "/".join(reversed(names))

    def stats(self) -> Dict[str, Any]:
        return {
            "sessions": len(self.chat_sessions),
            "folders": len(self.folders),
            "favorites": sum(1 for s in self.chat_sessions if s.is_favorite),
            "entries": sum(len(s.entries) for s in self.chat_sessions),
        }
