"""Tests for the web chat routes."""

import asyncio
import base64
from datetime import date

from fastapi.testclient import TestClient

from aios.orchestrator.agent.events import StreamError, TextDelta
from aios.services import gateway_provider
from aios.services.rfq_service import (
    build_followup,
    build_line_items,
    build_quote,
    save_followup,
    save_quote,
)

CSV = b"SKU,Name,Price,Unit\nW1,Widget,9.99,ea\n"


class TestPromptStream:
    """Tests for POST /v1/chat/prompt/stream."""

    def test_streams_text_then_done(self, client: TestClient, sse_events):
        response = client.post("/v1/chat/prompt/stream", json={"prompt": "Hi", "history": []})

        assert response.status_code == 200
        assert "text/event-stream" in response.headers.get("content-type", "")
        assert sse_events(response.text) == [
            {"t": "text", "v": "Hello"},
            {"t": "text", "v": " there!"},
            {"t": "done"},
        ]

    def test_provider_error_becomes_error_frame(self, client: TestClient, fake_gateway, sse_events):
        fake_gateway.events = [TextDelta("par"), StreamError(RuntimeError("model overloaded"))]

        events = sse_events(client.post("/v1/chat/prompt/stream", json={"prompt": "Hi"}).text)

        assert events[-1] == {"t": "error", "msg": "model overloaded"}
        assert [e["t"] for e in events].count("done") == 0

    def test_csv_attachment_emits_upload_frame(self, client: TestClient, sse_events):
        response = client.post(
            "/v1/chat/prompt/stream",
            json={
                "prompt": "",
                "attachments": [
                    {"name": "p.csv", "mimeType": "text/csv", "data": base64.b64encode(CSV).decode()}
                ],
            },
        )

        upload = sse_events(response.text)[0]
        assert upload["t"] == "upload"
        assert upload["columns"] == ["SKU", "Name", "Price", "Unit"]


class TestPrompt:
    """Tests for POST /v1/chat/prompt."""

    def test_returns_complete_response(self, client: TestClient, fake_gateway):
        fake_gateway.reply = "Full reply"

        response = client.post("/v1/chat/prompt", json={"prompt": "Hi"})

        assert response.status_code == 200
        assert response.json() == {"response": "Full reply"}

    def test_empty_prompt_rejected(self, client: TestClient):
        response = client.post("/v1/chat/prompt", json={"prompt": ""})

        assert response.status_code == 400
        body = response.json()
        assert body["statusCode"] == 400
        assert body["statusType"] == "Bad Request"
        assert body["path"] == "/v1/chat/prompt"


class TestProductUpload:
    """Tests for POST /v1/chat/products/upload."""

    def test_upload_streams_review(self, client: TestClient, fake_gateway, sse_events):
        response = client.post(
            "/v1/chat/products/upload",
            files={"file": ("products.csv", CSV, "text/csv")},
            data={"history": "[]"},
        )

        assert response.status_code == 200
        events = sse_events(response.text)
        assert events[0]["t"] == "upload"
        assert events[0]["rowCount"] == 2
        assert events[0]["alreadyExists"] is False
        assert events[-1] == {"t": "done"}
        assert "Upload key:" in fake_gateway.stream_calls[0]["messages"][-1].content

    def test_missing_file(self, client: TestClient):
        response = client.post("/v1/chat/products/upload", data={"history": "[]"})

        assert response.status_code == 400
        assert response.json()["message"] == "No file provided"

    def test_disallowed_type(self, client: TestClient):
        response = client.post(
            "/v1/chat/products/upload",
            files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Only CSV, JSON, and Excel files are allowed"

    def test_malformed_history_is_ignored(self, client: TestClient, fake_gateway, sse_events):
        response = client.post(
            "/v1/chat/products/upload",
            files={"file": ("products.csv", CSV, "text/csv")},
            data={"history": "not json"},
        )

        assert sse_events(response.text)[-1] == {"t": "done"}
        assert len(fake_gateway.stream_calls[0]["messages"]) == 1


class TestQuoteDownload:
    """Tests for GET /v1/chat/rfq/{quote_number}/download."""

    def test_unknown_quote_is_404(self, client: TestClient):
        response = client.get("/v1/chat/rfq/RFQ-20250101-ZZZZ/download")

        assert response.status_code == 404
        assert response.json()["message"] == "Quote not found or has expired."

    def test_renders_stored_quote(self, client: TestClient, store):
        items, _, _ = build_line_items([{"sku": "W1", "qty": 2, "unitPrice": 5}], {})
        quote = build_quote(contact_name="Acme", line_items=items, ship_to="Lagos")
        asyncio.run(save_quote(store, quote))

        response = client.get(f"/v1/chat/rfq/{quote.quote_number}/download")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert quote.quote_number in response.text
        assert "10.00" in response.text


class TestFollowupSweep:
    """Tests for POST /v1/chat/rfq/followups."""

    def test_sends_due_reminders(self, client: TestClient, store, mailer):
        gateway_provider.set_mailer(mailer)
        items, _, _ = build_line_items([{"sku": "W1", "qty": 1, "unitPrice": 5}], {})
        quote = build_quote(contact_name="Acme", line_items=items, ship_to="Lagos")
        followup = build_followup(quote, today=date(2020, 1, 1))
        followup.status = "email_sent"
        followup.recipient_email = "buyer@acme.test"
        asyncio.run(save_followup(store, followup))

        response = client.post("/v1/chat/rfq/followups")

        assert response.status_code == 200
        assert response.json() == {"sent": 3, "errors": []}
        assert [m["to"] for m in mailer.sent] == ["buyer@acme.test"] * 3

    def test_nothing_due(self, client: TestClient, mailer):
        gateway_provider.set_mailer(mailer)

        response = client.post("/v1/chat/rfq/followups")

        assert response.json() == {"sent": 0, "errors": []}


class TestPublicEndpoints:
    def test_root_and_health(self, client: TestClient):
        assert client.get("/").text == "Hello World!"
        assert client.get("/health").json() == {"status": "healthy"}

    def test_branding(self, client: TestClient, monkeypatch):
        assert client.get("/v1/branding").json() == {"authorName": None, "authorUrl": None}

        monkeypatch.setenv("AUTHOR_NAME", "Ada")
        monkeypatch.setenv("AUTHOR_URL", "https://ada.test")
        assert client.get("/v1/branding").json() == {"authorName": "Ada", "authorUrl": "https://ada.test"}
