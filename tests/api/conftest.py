"""Pytest fixtures for API tests.

Provides a TestClient wired to the in-memory store and the scripted
model gateway, with limiter state cleared between tests.
"""

import json
from collections.abc import Generator

import pytest
import sse_starlette.sse as sse
from fastapi.testclient import TestClient

from aios.api.main import app
from aios.api.middleware.prompt_limit import reset_prompt_limiter


@pytest.fixture
def client(store, fake_gateway) -> Generator[TestClient, None, None]:
    """Create a TestClient backed by the test store and gateway.

    Yields:
        TestClient configured for testing.
    """
    reset_prompt_limiter()
    # The shutdown event binds to the first event loop that touches it.
    app_status = getattr(sse, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    with TestClient(app) as c:
        yield c
    reset_prompt_limiter()


def parse_sse_events(body: str) -> list[dict]:
    """Decode every ``data:`` frame of an SSE response body."""
    return [
        json.loads(line[len("data:"):].strip())
        for line in body.splitlines()
        if line.startswith("data:")
    ]


@pytest.fixture
def sse_events():
    return parse_sse_events
