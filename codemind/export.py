"""Export chat sessions as plain text, Markdown and JSON."""

import json
from typing import Optional

from .models import ChatSession

TEXT_SEPARATOR = "-" * 40


def conversation_to_text(session: ChatSession) -> str:
    """Plain-text transcript, the format used when copying a conversation."""
    lines = [session.title, ""]
    for entry in session.entries:
        if entry.question:
            lines.append(f"You: {entry.question}")
            lines.append("")
        if entry.answer:
            lines.append(f"AI: {entry.answer}")
            lines.append("")
        lines.append(TEXT_SEPARATOR)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def conversation_to_markdown(session: ChatSession, folder_path: Optional[str] = None) -> str:
    """Export a session and its entries as Markdown."""
    lines = [f"# {session.title}", ""]
    lines.append(f"**Created:** {session.created_at.isoformat()}")
    if folder_path:
        lines.append(f"**Folder:** {folder_path}")
    if session.is_favorite:
        lines.append("**Favorite:** yes")
    lines.append(f"**Entries:** {len(session.entries)}")
    lines.extend(["", "---", ""])

    for entry in session.entries:
        ts = entry.timestamp.strftime('%Y-%m-%d %H:%M')
        lines.append(f"## You ({ts})")
        lines.append("")
        lines.append(entry.question)
        lines.append("")
        model = f" - {entry.model_name}" if entry.model_name else ""
        lines.append(f"## AI{model}")
        lines.append("")
        lines.append(entry.answer)
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def conversation_to_json(session: ChatSession) -> str:
    """Export a session in the same structure it is persisted with."""
    return json.dumps(session.to_dict(), indent=2, ensure_ascii=False)


EXPORTERS = {
    "txt": conversation_to_text,
    "md": conversation_to_markdown,
    "json": conversation_to_json,
}
