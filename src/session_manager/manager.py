"""Chat Proxy HTTP service.

Runs a lightweight web server that relays prompts to ChatGPT through
Camoufox browser tabs, one tab per chat session.

Endpoints:
    GET  /              - Welcome banner
    POST /start         - Open a new chat session
    POST /conversation  - Send a prompt to a chat session
    GET  /status        - Browser and session state
    POST /stop          - Close a chat session
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import sys
from typing import Optional

from aiohttp import web

from ..config import ProxySettings, ensure_dirs
from ..constants import CHAT_ID_LENGTH, CHAT_ID_PREFIX
from ..models.conversation import (
    ConversationOutcome,
    ConversationResponse,
    MessageResponse,
    OutcomeKind,
    StartResponse,
)
from ..models.session import ManagerStatus
from .browser import BrowserHandle
from .driver import ConversationDriver
from .errors import BrowserLaunchError, MaxRetriesExceeded, SessionNotFoundError
from .governor import ErrorGovernor
from .initializer import SessionInitializer
from .serializer import RequestSerializer
from .store import SessionRegistry

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

WELCOME_MESSAGE = "Welcome to ChatGPT API Playwright reverse proxy"
MISSING_FIELDS_MESSAGE = "Chat ID and prompt are required"
MISSING_CHAT_ID_MESSAGE = "Chat ID is required"
NOT_FOUND_MESSAGE = "Chat session not found"
START_FAILED_MESSAGE = "Failed to start chat session, please try again"

_CHAT_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_chat_id() -> str:
    suffix = "".join(random.choices(_CHAT_ID_ALPHABET, k=CHAT_ID_LENGTH))
    return f"{CHAT_ID_PREFIX}{suffix}"


class SessionManager:
    """Wires the browser, session registry, serializer and driver together."""

    def __init__(self, settings: ProxySettings, browser: Optional[BrowserHandle] = None):
        self.settings = settings
        self.browser = browser or BrowserHandle(settings, on_launch_error=self._on_launch_error)
        self.serializer = RequestSerializer()
        self.registry = SessionRegistry(self.browser, self.serializer, settings.idle_timeout_seconds)
        self.governor = ErrorGovernor(settings, self.browser, self.registry)
        self.initializer = SessionInitializer(settings, self.browser, self.registry, self.governor)
        self.driver = ConversationDriver(settings, self.registry, self.governor)

    def _on_launch_error(self):
        self.governor.record()

    async def setup(self):
        """Launch the shared browser before serving requests."""
        ensure_dirs(self.settings)
        await self.browser.ensure_launched()

    async def cleanup(self):
        """Close every chat tab, then the browser."""
        await self.registry.close_all()
        await self.browser.close()

    async def start_chat(self) -> str:
        chat_id = generate_chat_id()
        while chat_id in self.registry:
            chat_id = generate_chat_id()
        await self.initializer.initialize(chat_id)
        return chat_id

    async def run_conversation(self, chat_id: str, prompt: str) -> ConversationOutcome:
        """Serialized body of a /conversation request."""
        session = self.registry.get(chat_id)
        if session is None:
            raise SessionNotFoundError(chat_id)
        self.registry.touch(session)
        session.busy = True
        try:
            return await self.driver.converse(session, prompt)
        finally:
            session.busy = False

    async def stop_chat(self, chat_id: str) -> bool:
        return await self.registry.remove(chat_id)

    def status(self) -> ManagerStatus:
        sessions = [s.snapshot() for s in self.registry.sessions()]
        return ManagerStatus(
            browser_running=self.browser.is_running,
            active_sessions=len(sessions),
            error_count=self.governor.error_count,
            sessions=sessions,
        )


# ── HTTP Handlers ────────────────────────────────────────────────────────────


def _message(message: str, status: int = 200) -> web.Response:
    return web.json_response(MessageResponse(message=message).model_dump(), status=status)


async def _read_body(request: web.Request) -> dict:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _client_gone(request: web.Request) -> bool:
    transport = request.transport
    return transport is None or transport.is_closing()


async def handle_root(request: web.Request) -> web.Response:
    return _message(WELCOME_MESSAGE)


async def handle_start(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        chat_id = await mgr.start_chat()
    except (MaxRetriesExceeded, BrowserLaunchError) as e:
        logger.error(f"Chat start failed: {e}")
        return _message(START_FAILED_MESSAGE, status=503)
    return web.json_response(StartResponse(chatId=chat_id).model_dump())


async def handle_conversation(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    body = await _read_body(request)
    chat_id = body.get("chatId")
    prompt = body.get("prompt")

    if not chat_id or not prompt:
        return _message(MISSING_FIELDS_MESSAGE, status=400)
    chat_id = str(chat_id)
    if chat_id not in mgr.registry:
        return _message(NOT_FOUND_MESSAGE, status=404)

    future = mgr.serializer.enqueue(chat_id, lambda: mgr.run_conversation(chat_id, str(prompt)))
    try:
        # Shielded so a disconnect does not abort the queued operation.
        outcome: ConversationOutcome = await asyncio.shield(future)
    except SessionNotFoundError:
        return _message(NOT_FOUND_MESSAGE, status=404)

    if _client_gone(request):
        logger.info(f"Client disconnected from chat {chat_id}, skipping response")
        return web.Response(status=204)

    if outcome.kind is OutcomeKind.RESPONSE:
        return web.json_response(ConversationResponse(response=outcome.text).model_dump())
    return _message(outcome.text, status=429)


async def handle_status(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    return web.json_response(mgr.status().model_dump())


async def handle_stop(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    body = await _read_body(request)
    chat_id = body.get("chatId")

    if not chat_id:
        return _message(MISSING_CHAT_ID_MESSAGE, status=400)
    chat_id = str(chat_id)
    if chat_id not in mgr.registry:
        return _message(NOT_FOUND_MESSAGE, status=404)

    try:
        await asyncio.shield(mgr.serializer.enqueue(chat_id, lambda: mgr.stop_chat(chat_id)))
    except SessionNotFoundError:
        return _message(NOT_FOUND_MESSAGE, status=404)
    return _message("Chat session closed")


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return _message("Route not found", status=404)
    except web.HTTPException as e:
        return _message(e.reason, status=e.status)
    except Exception as e:
        logger.error(f"Unhandled error on {request.path}: {e}", exc_info=True)
        return _message("Internal server error", status=500)


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_startup(app: web.Application):
    mgr: SessionManager = app["manager"]
    await mgr.setup()
    logger.info(f"Chat proxy started on {mgr.settings.host}:{mgr.settings.port}")


async def on_cleanup(app: web.Application):
    mgr: SessionManager = app["manager"]
    await mgr.cleanup()
    logger.info("Chat proxy stopped.")


def create_app(
    settings: Optional[ProxySettings] = None,
    manager: Optional[SessionManager] = None,
) -> web.Application:
    settings = settings or (manager.settings if manager else ProxySettings.from_env())
    app = web.Application(middlewares=[error_middleware])
    app["manager"] = manager or SessionManager(settings)
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_get("/", handle_root)
    app.router.add_post("/start", handle_start)
    app.router.add_post("/conversation", handle_conversation)
    app.router.add_get("/status", handle_status)
    app.router.add_post("/stop", handle_stop)

    if settings.debug:
        ensure_dirs(settings)
        app.router.add_static("/screenshots", settings.screenshot_dir)

    return app


def main(settings: Optional[ProxySettings] = None):
    """Run the chat proxy as a standalone HTTP service."""
    settings = settings or ProxySettings.from_env()
    app = create_app(settings)
    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
