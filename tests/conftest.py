"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- Environment isolation (no real API keys, file-based SQLite)
- In-memory key-value store installed as the process-global store
- A scripted model gateway standing in for the Anthropic client
"""

import os
import tempfile
from collections.abc import AsyncIterator, Generator
from typing import Any

import pytest

# The engine is created at import time, so point it at a throwaway file first.
_DB_FD, _DB_PATH = tempfile.mkstemp(suffix=".db")
os.close(_DB_FD)
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from aios.orchestrator.agent.events import Finish, GatewayEvent, TextDelta  # noqa: E402
from aios.services import gateway_provider  # noqa: E402
from aios.services.kv_store import MemoryKeyValueStore, set_kv_store  # noqa: E402

_ISOLATED_ENV = (
    "API_KEY",
    "LIMITED_HOSTS",
    "OPEN_ACCESS_DAILY_LIMIT",
    "RATE_LIMIT_TIMEZONE",
    "UPLOAD_SECRET_CODE",
    "GOOGLE_SHEET_ID",
    "VALYU_API_KEY",
    "REDIS_URL",
    "SLACK_SIGNING_SECRET",
    "SLACK_CLIENT_ID",
    "SLACK_CLIENT_SECRET",
    "TRUST_PROXY",
    "WHATSAPP_CLOUD_API_WEBHOOK_VERIFICATION_TOKEN",
    "PRODUCTION_URL",
    "DEVELOPMENT_URL",
    "PLATFORM_NAME",
    "AUTHOR_NAME",
    "AUTHOR_URL",
    "AI_THINKING_BUDGET",
)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Strip deployment env vars so every test starts from defaults."""
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    yield


# ============================================================================
# Key-value store
# ============================================================================


@pytest.fixture
def store() -> Generator[MemoryKeyValueStore, None, None]:
    """Fresh in-memory store, also installed as the global store."""
    memory = MemoryKeyValueStore()
    set_kv_store(memory)
    yield memory
    set_kv_store(None)


# ============================================================================
# Model gateway
# ============================================================================


class FakeGateway:
    """Scripted stand-in for ModelGateway.

    ``stream()`` yields the scripted events (default: one text delta and a
    Finish); ``generate()`` returns ``reply``. Every call is recorded.
    """

    def __init__(
        self,
        events: list[GatewayEvent] | None = None,
        reply: str = "Hello there!",
    ) -> None:
        self.events = events if events is not None else [
            TextDelta("Hello"),
            TextDelta(" there!"),
            Finish(finish_reason="end_turn", steps=1),
        ]
        self.reply = reply
        self.stream_calls: list[dict[str, Any]] = []
        self.generate_calls: list[dict[str, Any]] = []

    async def stream(self, system, messages, tools, max_steps) -> AsyncIterator[GatewayEvent]:
        self.stream_calls.append(
            {"system": system, "messages": messages, "tools": tools, "max_steps": max_steps}
        )
        for event in self.events:
            yield event

    async def generate(self, system, messages, tools, max_steps) -> str:
        self.generate_calls.append(
            {"system": system, "messages": messages, "tools": tools, "max_steps": max_steps}
        )
        return self.reply

    async def analyze_media(self, prompt, mime_type, raw) -> str:
        return f"analysis of {mime_type} ({len(raw)} bytes)"


@pytest.fixture
def fake_gateway() -> Generator[FakeGateway, None, None]:
    """Scripted gateway installed as the process-global model gateway."""
    gateway = FakeGateway()
    gateway_provider.set_model_gateway(gateway)
    yield gateway
    gateway_provider.reset_providers()


class RecordingMailer:
    """Mailer double that records sends and can be told to fail."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_on = fail_on or set()

    async def send_email(self, to, subject, template, context) -> None:
        if subject in self.fail_on:
            raise RuntimeError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "template": template, "context": context})


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()
