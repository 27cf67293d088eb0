"""Pydantic models for session state."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SessionSnapshot(BaseModel):
    """Point-in-time view of one chat session."""

    chat_id: str
    ready: bool = False
    busy: bool = False
    turn_counter: int = 1
    prompt_count: int = 0
    last_activity: Optional[str] = None


class ManagerStatus(BaseModel):
    """Current state of the browser and all chat sessions."""

    browser_running: bool = False
    active_sessions: int = 0
    error_count: int = 0
    sessions: list[SessionSnapshot] = Field(default_factory=list)
