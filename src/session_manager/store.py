"""In-memory registry of chat sessions and their idle timers."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

from playwright.async_api import Page

from ..models.session import SessionSnapshot
from .browser import BrowserHandle
from .serializer import RequestSerializer

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class ChatSession:
    """One conversation bound to its own browser tab."""

    def __init__(self, chat_id: str, page: Page):
        self.chat_id = chat_id
        self.page = page
        self.turn_counter = 1
        self.prompt_count = 0
        self.last_activity = datetime.utcnow()
        self.ready = False
        self.busy = False
        self.idle_timer: Optional[asyncio.TimerHandle] = None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            chat_id=self.chat_id,
            ready=self.ready,
            busy=self.busy,
            turn_counter=self.turn_counter,
            prompt_count=self.prompt_count,
            last_activity=self.last_activity.isoformat(),
        )


class SessionRegistry:
    """Owns every live ChatSession and its pending request queue.

    Removal drops the store entry and the queue together before the tab is
    closed, so a looked-up session never points at a closed tab.
    """

    def __init__(
        self,
        browser: BrowserHandle,
        serializer: RequestSerializer,
        idle_timeout: float,
    ):
        self._browser = browser
        self._serializer = serializer
        self._idle_timeout = idle_timeout
        self._sessions: dict[str, ChatSession] = {}
        self._teardowns: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._sessions

    def get(self, chat_id: str) -> Optional[ChatSession]:
        return self._sessions.get(chat_id)

    def sessions(self) -> list[ChatSession]:
        return list(self._sessions.values())

    def create_if_absent(self, chat_id: str, page: Page) -> ChatSession:
        """Register a ready session for ``page`` unless ``chat_id`` already has one.

        Returns the registered session; if it is not backed by ``page`` the
        caller still owns that tab.
        """
        existing = self._sessions.get(chat_id)
        if existing is not None:
            return existing

        session = ChatSession(chat_id, page)
        session.ready = True
        self._sessions[chat_id] = session
        self._arm_idle_timer(session)
        logger.info(f"Registered chat session {chat_id}")
        return session

    def touch(self, session: ChatSession):
        """Record activity and rearm the idle timer (cancel then recreate)."""
        session.last_activity = datetime.utcnow()
        self._arm_idle_timer(session)

    def _arm_idle_timer(self, session: ChatSession):
        if session.idle_timer is not None:
            session.idle_timer.cancel()
        loop = asyncio.get_running_loop()
        session.idle_timer = loop.call_later(self._idle_timeout, self._on_idle, session.chat_id)

    def _on_idle(self, chat_id: str):
        session = self._sessions.get(chat_id)
        if session is None:
            return
        if session.busy:
            # Never pull the tab out from under a running operation.
            self._arm_idle_timer(session)
            return
        logger.info(f"Closing chat session {chat_id} due to inactivity")
        task = asyncio.create_task(self.remove(chat_id))
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)

    def _detach(self, chat_id: str) -> Optional[ChatSession]:
        session = self._sessions.pop(chat_id, None)
        if session is None:
            return None
        if session.idle_timer is not None:
            session.idle_timer.cancel()
            session.idle_timer = None
        session.ready = False
        self._serializer.discard(chat_id)
        return session

    async def remove(self, chat_id: str) -> bool:
        """Tear down a session: drop store and queue entries, then close its tab."""
        session = self._detach(chat_id)
        if session is None:
            return False
        await self._browser.close_tab(session.page)
        logger.info(f"Closed chat session {chat_id}")
        return True

    def clear(self) -> list[ChatSession]:
        """Drop every session without touching tabs (used before a browser restart)."""
        dropped = [self._detach(chat_id) for chat_id in list(self._sessions)]
        self._serializer.clear()
        if dropped:
            logger.info(f"Dropped {len(dropped)} chat sessions")
        return dropped

    async def close_all(self):
        for session in self.clear():
            await self._browser.close_tab(session.page)
