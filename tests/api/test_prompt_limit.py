"""Tests for the open-access daily prompt limiter."""

from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from aios.api.middleware.prompt_limit import InMemoryCounter, OpenAccessPromptLimiter, normalize_host
from aios.errors import RateLimitExceededError


@pytest.fixture
def limited(monkeypatch):
    """Limit the TestClient host to two prompts per day."""
    monkeypatch.setenv("LIMITED_HOSTS", "testserver, demo.example.com")
    monkeypatch.setenv("OPEN_ACCESS_DAILY_LIMIT", "2")


class TestPromptLimitRoutes:
    def test_limit_then_429(self, client: TestClient, limited):
        for _ in range(2):
            assert client.post("/v1/chat/prompt", json={"prompt": "Hi"}).status_code == 200

        response = client.post("/v1/chat/prompt", json={"prompt": "Hi"})

        assert response.status_code == 429
        body = response.json()
        assert body["statusType"] == "Too Many Requests"
        assert body["message"] == "Open access limit: maximum 2 prompts per day per device."

    def test_all_prompt_endpoints_share_the_count(self, client: TestClient, limited):
        assert client.post("/v1/chat/prompt", json={"prompt": "Hi"}).status_code == 200
        assert client.post("/v1/expose/prompt", json={"prompt": "Hi"}).status_code == 200
        assert client.post("/v1/chat/prompt/stream", json={"prompt": "Hi"}).status_code == 429

    def test_api_key_disables_limit(self, client: TestClient, limited, monkeypatch):
        monkeypatch.setenv("API_KEY", "secret-key")
        headers = {"x-api-key": "secret-key"}

        for _ in range(4):
            assert client.post("/v1/chat/prompt", json={"prompt": "Hi"}, headers=headers).status_code == 200

    def test_unlisted_host_is_unlimited(self, client: TestClient, monkeypatch):
        monkeypatch.setenv("LIMITED_HOSTS", "demo.example.com")
        monkeypatch.setenv("OPEN_ACCESS_DAILY_LIMIT", "1")

        for _ in range(3):
            assert client.post("/v1/chat/prompt", json={"prompt": "Hi"}).status_code == 200

    def test_non_prompt_routes_not_counted(self, client: TestClient, limited):
        for _ in range(5):
            client.get("/health")
            client.post("/v1/chat/rfq/followups")
        assert client.post("/v1/chat/prompt", json={"prompt": "Hi"}).status_code == 200


class TestOpenAccessPromptLimiter:
    def test_counts_per_ip(self, limited):
        limiter = OpenAccessPromptLimiter()
        limiter.check("demo.example.com", "1.1.1.1")
        limiter.check("demo.example.com", "1.1.1.1")
        with pytest.raises(RateLimitExceededError):
            limiter.check("demo.example.com", "1.1.1.1")

        limiter.check("demo.example.com", "2.2.2.2")

    def test_port_is_ignored(self, limited):
        limiter = OpenAccessPromptLimiter()
        limiter.check("DEMO.example.com:443", "1.1.1.1")
        limiter.check("demo.example.com", "1.1.1.1")
        with pytest.raises(RateLimitExceededError):
            limiter.check("demo.example.com:8080", "1.1.1.1")

    def test_new_day_resets(self, limited):
        now = [datetime(2025, 3, 10, 12, 0, tzinfo=UTC)]
        limiter = OpenAccessPromptLimiter(now=lambda: now[0])
        limiter.check("testserver", "ip")
        limiter.check("testserver", "ip")

        now[0] = datetime(2025, 3, 11, 12, 0, tzinfo=UTC)
        limiter.check("testserver", "ip")

    def test_day_boundary_follows_configured_timezone(self, limited):
        # 23:30 UTC on the 10th is already the 11th in Lagos (UTC+1).
        now = [datetime(2025, 3, 10, 22, 0, tzinfo=UTC)]
        limiter = OpenAccessPromptLimiter(now=lambda: now[0])
        limiter.check("testserver", "ip")
        limiter.check("testserver", "ip")

        now[0] = datetime(2025, 3, 10, 23, 30, tzinfo=UTC)
        limiter.check("testserver", "ip")

    def test_no_limited_hosts_means_no_limit(self):
        limiter = OpenAccessPromptLimiter()
        for _ in range(10):
            limiter.check("testserver", "ip")


class TestInMemoryCounter:
    def test_prunes_previous_days(self):
        counter = InMemoryCounter()
        counter.increment("h|ip|2025-03-10")
        counter.increment("h|ip|2025-03-10")

        assert counter.increment("h|ip|2025-03-11") == 1
        assert counter.increment("h|ip|2025-03-10") == 1


@pytest.mark.parametrize(
    "raw,expected",
    [("Demo.Example.com:8443", "demo.example.com"), ("[::1]:8000", "[::1]"), (None, "")],
)
def test_normalize_host(raw, expected):
    assert normalize_host(raw) == expected
