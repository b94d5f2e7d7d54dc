"""
CodeMind - Organised terminal chats with Google Gemini.
"""

__version__ = "1.0.0"
