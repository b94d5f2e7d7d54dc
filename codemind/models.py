#!/usr/bin/env python3
"""
CodeMind Data Models - Sessions, entries, folders and generation results.

These dataclasses are the in-memory representation of the chat library.
Serialization uses the camelCase keys of the persisted JSON format, with
dates written as ISO-8601 strings.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional

PLACEHOLDER_TITLE_PREFIX = "New Chat"
TITLE_MAX_LENGTH = 30

# Tag colours offered for sessions and folders (None means "no colour").
AVAILABLE_COLORS: List[Optional[str]] = [
    None,
    "#FF3B30",
    "#FF9500",
    "#FFCC00",
    "#34C759",
    "#007AFF",
    "#AF52DE",
    "#8E8E93",
]

COLOR_NAMES: Dict[str, str] = {
    "#FF3B30": "Red",
    "#FF9500": "Orange",
    "#FFCC00": "Yellow",
    "#34C759": "Green",
    "#007AFF": "Blue",
    "#AF52DE": "Purple",
    "#8E8E93": "Grey",
}


def color_name(hex_value: Optional[str]) -> str:
    """Returns the display name of a palette colour, or "Unknown"."""
    if hex_value is None:
        return "Unknown"
    return COLOR_NAMES.get(hex_value.upper(), "Unknown")


def color_from_name(name: str) -> Optional[str]:
    """Resolves a colour name (case-insensitive) or a hex string to a palette hex."""
    wanted = name.strip().lower()
    for hex_value, display in COLOR_NAMES.items():
        if display.lower() == wanted or hex_value.lower() == wanted:
            return hex_value
    return None


class SidebarFilter(Enum):
    ALL = "All Chats"
    FAVORITES = "Favorites"


def _now() -> datetime:
    return datetime.now().astimezone()


def _parse_date(value: Any) -> datetime:
    """Parses an ISO-8601 date; values without an offset are taken as local time.

    Every date in memory is timezone-aware so stored and new dates compare.
    """
    if not isinstance(value, datetime):
        # fromisoformat on older interpreters does not accept a trailing "Z"
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.astimezone()
    return value


def _short_date_time(moment: datetime) -> str:
    return moment.strftime("%m/%d/%y, %H:%M")


def generate_title(question: str) -> str:
    """Builds a session title from the first question of a conversation."""
    if len(question) <= TITLE_MAX_LENGTH:
        return question
    return question[:TITLE_MAX_LENGTH] + "..."


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class GenerationResult:
    """Normalized output of one generation call."""

    text: str
    word_count: int
    prompt_token_count: Optional[int] = None
    candidates_token_count: Optional[int] = None
    total_token_count: Optional[int] = None
    response_time_ms: int = 0
    model_name: str = ""


@dataclass
class ChatEntry:
    """A single question/answer exchange with optional usage metadata."""

    question: str
    answer: str
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)
    word_count: Optional[int] = None
    prompt_token_count: Optional[int] = None
    candidates_token_count: Optional[int] = None
    total_token_count: Optional[int] = None
    response_time_ms: Optional[int] = None
    model_name: Optional[str] = None

    @classmethod
    def from_result(cls, question: str, result: GenerationResult) -> "ChatEntry":
        return cls(
            question=question,
            answer=result.text,
            word_count=result.word_count,
            prompt_token_count=result.prompt_token_count,
            candidates_token_count=result.candidates_token_count,
            total_token_count=result.total_token_count,
            response_time_ms=result.response_time_ms,
            model_name=result.model_name,
        )

    @property
    def has_metadata(self) -> bool:
        return any(v is not None for v in (
            self.word_count, self.prompt_token_count, self.candidates_token_count,
            self.total_token_count, self.response_time_ms, self.model_name,
        ))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "question": self.question,
            "answer": self.answer,
        }
        optional = {
            "wordCount": self.word_count,
            "promptTokenCount": self.prompt_token_count,
            "candidatesTokenCount": self.candidates_token_count,
            "totalTokenCount": self.total_token_count,
            "responseTimeMs": self.response_time_ms,
            "modelName": self.model_name,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatEntry":
        return cls(
            id=data["id"],
            timestamp=_parse_date(data["timestamp"]),
            question=data.get("question", ""),
            answer=data.get("answer", ""),
            word_count=data.get("wordCount"),
            prompt_token_count=data.get("promptTokenCount"),
            candidates_token_count=data.get("candidatesTokenCount"),
            total_token_count=data.get("totalTokenCount"),
            response_time_ms=data.get("responseTimeMs"),
            model_name=data.get("modelName"),
        )


@dataclass(eq=False)
class ChatSession:
    """One chat conversation holding an ordered list of entries.

    Two sessions are equal when their ids match, whatever their contents.
    """

    id: str = field(default_factory=_new_id)
    title: str = ""
    created_at: datetime = field(default_factory=_now)
    entries: List[ChatEntry] = field(default_factory=list)
    is_favorite: bool = False
    color_hex: Optional[str] = None
    folder_id: Optional[str] = None

    def __post_init__(self):
        if not self.title:
            self.title = f"{PLACEHOLDER_TITLE_PREFIX} {_short_date_time(self.created_at)}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChatSession):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def has_placeholder_title(self) -> bool:
        return self.title.startswith(PLACEHOLDER_TITLE_PREFIX)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at.isoformat(),
            "entries": [entry.to_dict() for entry in self.entries],
            "isFavorite": self.is_favorite,
        }
        if self.color_hex is not None:
            data["colorHex"] = self.color_hex
        if self.folder_id is not None:
            data["folderId"] = self.folder_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatSession":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            created_at=_parse_date(data["createdAt"]),
            entries=[ChatEntry.from_dict(e) for e in data.get("entries", [])],
            is_favorite=bool(data.get("isFavorite", False)),
            color_hex=data.get("colorHex"),
            folder_id=data.get("folderId"),
        )


@dataclass
class Folder:
    """A named grouping node; parent_id None places it at the root."""

    name: str
    id: str = field(default_factory=_new_id)
    parent_id: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    color_hex: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at.isoformat(),
        }
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        if self.color_hex is not None:
            data["colorHex"] = self.color_hex
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            parent_id=data.get("parentId"),
            created_at=_parse_date(data["createdAt"]),
            color_hex=data.get("colorHex"),
        )
