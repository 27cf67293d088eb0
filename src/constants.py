"""ChatGPT URLs, CSS selectors, sentinel messages and browser profile pools."""

# ── URLs ─────────────────────────────────────────────────────────────────────

CHATGPT_URL = "https://chatgpt.com"

# ── Limits ───────────────────────────────────────────────────────────────────

MAX_PROMPT_LENGTH = 4096
MAX_PROMPTS_PER_SESSION = 20
CHAT_ID_PREFIX = "chat_"
CHAT_ID_LENGTH = 9

# ── CSS Selectors ────────────────────────────────────────────────────────────

SELECTORS = {
    # Soft sign-in modal
    "stay_logged_out": 'a:has-text("Stay logged out")',

    # Interstitials shown instead of the chat surface
    "onboarding": "text=Get started",
    "returning_user": "text=Welcome back",

    # Composer
    "prompt_input": "#prompt-textarea",
    "send_button": '[data-testid="send-button"]:not([disabled])',

    # Generation progress
    "stop_button": '[data-testid="stop-button"]',
    "result_thinking": ".result-thinking",
    "result_streaming": ".result-streaming",
}

GENERATING_INDICATORS = [
    SELECTORS["stop_button"],
    SELECTORS["result_thinking"],
    SELECTORS["result_streaming"],
]


def conversation_turn_selector(turn: int) -> str:
    return f'[data-testid="conversation-turn-{turn}"]'


# ── Sentinel Messages ────────────────────────────────────────────────────────

RATE_LIMIT_MESSAGE = "You've reached our limit of messages per hour. Please try again later."
GENERATION_ERROR_MESSAGE = (
    "Something went wrong while generating the response. If this issue persists "
    "please contact us through our help center at help.openai.com."
)
NETWORK_ERROR_MESSAGE = (
    "A network error occurred. Please check your connection and try again. If this "
    "issue persists please contact us through our help center at help.openai.com."
)
CHAT_CRASHED_MESSAGE = "Chat crashed, please create a new chat session"

# ── Transcript Labels ────────────────────────────────────────────────────────

PLACEHOLDER_TEXT = "ChatGPT"
SPEAKER_PREFIXES = [
    "ChatGPT said:",
    "ChatGPT\n\n",
]
# A trailing line holding only the model name, e.g. "GPT-4o" or "o3-mini"
MODEL_TAG_PATTERN = r"\n[ \t]*(?:GPT-\d[\w.\-]*|o\d(?:-mini|-pro)?)[ \t]*$"

# ── Browser Profiles ─────────────────────────────────────────────────────────

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:135.0) Gecko/20100101 Firefox/135.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.6; rv:135.0) Gecko/20100101 Firefox/135.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:135.0) Gecko/20100101 Firefox/135.0",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:134.0) Gecko/20100101 Firefox/134.0",
]

VIEWPORTS = [
    (1366, 768),
    (1440, 900),
    (1536, 864),
    (1600, 900),
    (1680, 1050),
    (1920, 1080),
]

LOCALES = ["en-US", "en-GB", "en-CA", "en-AU"]

TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Berlin",
    "Australia/Sydney",
]

HARDWARE_CONCURRENCY = [4, 6, 8, 12, 16]
DEVICE_MEMORY = [4, 8, 16]
