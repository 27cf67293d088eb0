"""Exceptions raised by the session manager core."""

from __future__ import annotations


class ChatProxyError(Exception):
    """Base class for errors the HTTP layer knows how to report."""


class BrowserLaunchError(ChatProxyError):
    """The shared browser could not be launched within the configured attempts."""


class MaxRetriesExceeded(ChatProxyError):
    """Session initialization used up its retry budget."""

    def __init__(self, chat_id: str, attempts: int):
        super().__init__(f"Could not initialize chat {chat_id} after {attempts} attempts")
        self.chat_id = chat_id
        self.attempts = attempts


class SessionNotFoundError(ChatProxyError):
    def __init__(self, chat_id: str):
        super().__init__(f"Chat session {chat_id} not found")
        self.chat_id = chat_id


class ExtractionTimeout(ChatProxyError):
    """The response turn never rendered past its placeholder."""
