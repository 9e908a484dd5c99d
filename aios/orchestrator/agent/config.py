"""Configuration for the model gateway.

Environment Variables:
    AI_MODEL: Claude model used for chat and media analysis.
        Defaults to "claude-haiku-4-5-20251001".
    AI_MAX_TOKENS: Output token cap per model step (default 4096).
    AI_THINKING_BUDGET: Extended-thinking token budget. 0 (default)
        disables thinking and therefore reasoning events.
"""

import os

DEFAULT_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_MAX_TOKENS = 4096
MAX_STEPS = 5


def get_model() -> str:
    """Get the Claude model, falling back to the default when unset or blank."""
    model = os.environ.get("AI_MODEL", "").strip()
    return model or DEFAULT_MODEL


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def get_max_tokens() -> int:
    return _int_env("AI_MAX_TOKENS", DEFAULT_MAX_TOKENS)


def get_thinking_budget() -> int:
    """Return the thinking budget; values below the API minimum disable it."""
    budget = _int_env("AI_THINKING_BUDGET", 0)
    return budget if budget >= 1024 else 0
