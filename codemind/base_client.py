#!/usr/bin/env python3
"""
CodeMind Base Client Features - Shared display helpers.

Terminal colours and provider-agnostic formatting used by the chat client
and the command loop.
"""

import logging
from datetime import datetime
from typing import List, Optional

from colorama import Fore, Style, init

from .models import ChatEntry, ChatSession, color_name

logger = logging.getLogger(__name__)

init(autoreset=True)


class Colors:
    """Terminal colors for better user experience."""
    HEADER = Fore.MAGENTA
    BLUE = Fore.BLUE
    CYAN = Fore.CYAN
    GREEN = Fore.GREEN
    WARNING = Fore.YELLOW
    FAIL = Fore.RED
    ENDC = Style.RESET_ALL
    BOLD = Style.BRIGHT
    UNDERLINE = '\033[4m'


class BaseClientFeatures:
    """Formatting helpers shared by CodeMind clients."""

    @staticmethod
    def format_timestamp(moment: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M") -> str:
        return moment.strftime(fmt) if moment else "N/A"

    @staticmethod
    def truncate(text: str, limit: int) -> str:
        text = " ".join(text.split())
        return text if len(text) <= limit else text[:limit - 3] + "..."

    @staticmethod
    def format_entry_metadata(entry: ChatEntry) -> str:
        """One-line summary of the usage metadata of an entry, or "" if it has none."""
        parts: List[str] = []
        if entry.model_name:
            parts.append(entry.model_name)
        if entry.word_count is not None:
            parts.append(f"{entry.word_count} words")
        if entry.total_token_count is not None:
            parts.append(f"{entry.total_token_count} tokens "
                         f"({entry.prompt_token_count or 0} in / {entry.candidates_token_count or 0} out)")
        if entry.response_time_ms is not None:
            parts.append(f"{entry.response_time_ms / 1000:.2f}s")
        return " | ".join(parts)

    @staticmethod
    def session_badges(session: ChatSession) -> str:
        badges = []
        if session.is_favorite:
            badges.append("*")
        if session.color_hex:
            badges.append(color_name(session.color_hex))
        return " ".join(badges)
