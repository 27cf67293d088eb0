"""Scripted prompt/response exchange against a chat tab."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from typing import Optional

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import ProxySettings
from ..constants import (
    CHAT_CRASHED_MESSAGE,
    GENERATING_INDICATORS,
    GENERATION_ERROR_MESSAGE,
    MAX_PROMPT_LENGTH,
    MAX_PROMPTS_PER_SESSION,
    MODEL_TAG_PATTERN,
    NETWORK_ERROR_MESSAGE,
    PLACEHOLDER_TEXT,
    RATE_LIMIT_MESSAGE,
    SELECTORS,
    SPEAKER_PREFIXES,
    conversation_turn_selector,
)
from ..models.conversation import ConversationOutcome
from . import debug
from .errors import ExtractionTimeout
from .governor import ErrorGovernor
from .initializer import dismiss_sign_in_prompt
from .store import ChatSession, SessionRegistry

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

_MODEL_TAG_RE = re.compile(MODEL_TAG_PATTERN)

# Banners the page shows instead of an answer, in probe order.
TERMINAL_BANNERS = [
    RATE_LIMIT_MESSAGE,
    GENERATION_ERROR_MESSAGE,
    NETWORK_ERROR_MESSAGE,
]


def truncate_prompt(prompt: str) -> str:
    return prompt[:MAX_PROMPT_LENGTH]


def normalize_turn_text(text: str) -> str:
    """Strip the speaker label, trailing model tag and surrounding whitespace."""
    text = text.strip()
    for prefix in SPEAKER_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    text = _MODEL_TAG_RE.sub("", text)
    return text.strip()


def is_placeholder(text: str) -> bool:
    stripped = text.strip()
    return not stripped or stripped == PLACEHOLDER_TEXT


def match_sentinel(text: str) -> Optional[str]:
    """Return the sentinel ``text`` represents, if any."""
    if text == RATE_LIMIT_MESSAGE:
        return RATE_LIMIT_MESSAGE
    if text == GENERATION_ERROR_MESSAGE:
        return GENERATION_ERROR_MESSAGE
    if NETWORK_ERROR_MESSAGE in text:
        return NETWORK_ERROR_MESSAGE
    return None


class ConversationDriver:
    """Sends prompts through a session's tab and classifies what comes back."""

    def __init__(self, settings: ProxySettings, registry: SessionRegistry, governor: ErrorGovernor):
        self._settings = settings
        self._registry = registry
        self._governor = governor

    async def converse(self, session: ChatSession, prompt: str) -> ConversationOutcome:
        """Run one exchange. Any failure closes the session and yields a crash outcome."""
        prompt = truncate_prompt(prompt)
        logger.info(f"Processing prompt for chat {session.chat_id}: {prompt[:80]!r}")
        try:
            outcome = await self._exchange(session, prompt)
        except Exception as e:
            logger.error(f"Chat {session.chat_id} crashed: {e}", exc_info=True)
            await self._governor.report()
            await self._registry.remove(session.chat_id)
            return ConversationOutcome.crashed(CHAT_CRASHED_MESSAGE)

        if outcome.session_closed:
            await self._registry.remove(session.chat_id)
        logger.info(f"Prompt response for chat {session.chat_id} ({outcome.kind.value}): {outcome.text[:80]!r}")
        return outcome

    async def _exchange(self, session: ChatSession, prompt: str) -> ConversationOutcome:
        page = session.page
        chat_id = session.chat_id
        ui_timeout = self._settings.wait_timeout_ms
        gen_timeout = self._settings.generation_timeout_ms

        session.prompt_count += 1
        if session.prompt_count >= MAX_PROMPTS_PER_SESSION:
            logger.info(f"Chat {chat_id} reached {MAX_PROMPTS_PER_SESSION} prompts")
            return ConversationOutcome.terminal(RATE_LIMIT_MESSAGE)

        await dismiss_sign_in_prompt(page, self._settings.sign_in_probe_timeout_ms)
        await debug.capture(page, self._settings, f"1before-writing-{chat_id}")

        await page.fill(SELECTORS["prompt_input"], prompt, timeout=ui_timeout)
        await debug.capture(page, self._settings, f"2writing-before-clicking-{chat_id}")

        await page.wait_for_selector(SELECTORS["send_button"], timeout=ui_timeout)
        await page.click(SELECTORS["send_button"], timeout=ui_timeout)
        await debug.capture(page, self._settings, f"3after-clicking-{chat_id}")

        await self._wait_for_generation(page, gen_timeout)

        banner = await self._probe_banners(page)
        if banner:
            logger.warning(f"Chat {chat_id} hit terminal banner: {banner[:60]}")
            return ConversationOutcome.terminal(banner)
        await debug.capture(page, self._settings, f"4after-streaming-{chat_id}")

        session.turn_counter += 2
        if session.turn_counter == 3:
            first = await self._read_turn(page, 2)
            if GENERATION_ERROR_MESSAGE in normalize_turn_text(first):
                logger.warning(f"Chat {chat_id} opened on a failed generation")
                return ConversationOutcome.terminal(GENERATION_ERROR_MESSAGE)

        text = normalize_turn_text(await self._extract(page, session.turn_counter))
        if not text:
            text = normalize_turn_text(await self._extract(page, session.turn_counter))
            if not text:
                raise ExtractionTimeout(f"Turn {session.turn_counter} of {chat_id} rendered empty")
        await debug.capture(page, self._settings, f"5parsing-text-{chat_id}")

        sentinel = match_sentinel(text)
        if sentinel:
            return ConversationOutcome.terminal(sentinel)
        return ConversationOutcome.response(text)

    async def _wait_for_generation(self, page: Page, timeout_ms: int):
        # The stop button may come and go before we look; only its
        # disappearance is required.
        try:
            await page.wait_for_selector(
                SELECTORS["stop_button"],
                state="visible",
                timeout=self._settings.indicator_probe_timeout_ms,
            )
        except PlaywrightTimeoutError:
            logger.info("Generating indicator never appeared, checking it is gone")
        for selector in GENERATING_INDICATORS:
            await page.wait_for_selector(selector, state="hidden", timeout=timeout_ms)

    async def _probe_banners(self, page: Page) -> Optional[str]:
        for message in TERMINAL_BANNERS:
            if await page.query_selector(f'text="{message}"'):
                return message
        return None

    async def _read_turn(self, page: Page, turn: int) -> str:
        element = await page.query_selector(conversation_turn_selector(turn))
        if element is None:
            return ""
        return await element.inner_text()

    async def _extract(self, page: Page, turn: int) -> str:
        """Read a transcript turn, waiting out the lazily rendered placeholder."""
        for _ in range(self._settings.extract_max_attempts):
            text = await self._read_turn(page, turn)
            if not is_placeholder(text):
                return text
            await asyncio.sleep(self._settings.extract_interval_ms / 1000)
        raise ExtractionTimeout(f"Turn {turn} never rendered")
