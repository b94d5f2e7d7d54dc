"""
Unit tests for conversation export.
"""

import json
from datetime import datetime

import pytest

from codemind.export import EXPORTERS, TEXT_SEPARATOR, conversation_to_json, conversation_to_markdown, \
    conversation_to_text
from codemind.models import ChatEntry, ChatSession


@pytest.fixture
def session():
    return ChatSession(
        id="s1",
        title="Sorting",
        created_at=datetime(2024, 6, 1, 9, 30),
        is_favorite=True,
        entries=[
            ChatEntry(question="How do I sort a list?", answer="Use sorted().",
                      timestamp=datetime(2024, 6, 1, 9, 31), model_name="gemini-2.0-flash"),
            ChatEntry(question="", answer="Image answer", timestamp=datetime(2024, 6, 1, 9, 32)),
        ],
    )


class TestExport:

    def test_text(self, session):
        text = conversation_to_text(session)

        assert text.startswith("Sorting\n")
        assert "You: How do I sort a list?" in text
        assert "AI: Use sorted()." in text
        assert "AI: Image answer" in text
        assert text.count("You:") == 1
        assert text.count(TEXT_SEPARATOR) == 2
        assert text.endswith(TEXT_SEPARATOR + "\n")

    def test_markdown(self, session):
        md = conversation_to_markdown(session, folder_path="/Work/Python")

        assert md.startswith("# Sorting\n")
        assert "**Folder:** /Work/Python" in md
        assert "**Favorite:** yes" in md
        assert "**Entries:** 2" in md
        assert "## You (2024-06-01 09:31)" in md
        assert "## AI - gemini-2.0-flash" in md

    def test_json_matches_persisted_structure(self, session):
        data = json.loads(conversation_to_json(session))

        assert data == session.to_dict()
        assert data["entries"][0]["modelName"] == "gemini-2.0-flash"

    def test_exporters_registry(self):
        assert set(EXPORTERS) == {"txt", "md", "json"}
