"""Tests for the WhatsApp and Slack channel adapters."""

from unittest.mock import AsyncMock

import pytest

from aios.db.connection import get_db_context, init_db
from aios.db.models import ChatMessage
from aios.services.channels import (
    handle_slack_event,
    handle_whatsapp_message,
    strip_slack_mentions,
    verify_whatsapp_webhook,
)
from aios.services.conversation_history import (
    HISTORY_LIMIT,
    load_history,
    slack_history_key,
    whatsapp_history_key,
)


def _whatsapp_body(text="Hi", msg_type="text", sender="2348000000001"):
    return {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "messages": [
                                {
                                    "from": sender,
                                    "id": "wamid.1",
                                    "type": msg_type,
                                    "text": {"body": text},
                                }
                            ]
                        }
                    }
                ]
            }
        ]
    }


def _slack_body(text="<@U0BOT> hello", event_id="Ev1", **event_overrides):
    event = {
        "type": "app_mention",
        "text": text,
        "channel": "C1",
        "user": "U1",
        "ts": "1700000000.000100",
    }
    event.update(event_overrides)
    return {"type": "event_callback", "event_id": event_id, "event": event}


@pytest.fixture
def orchestrator():
    mock = AsyncMock()
    mock.generate_response.return_value = "Here you go"
    return mock


class TestWhatsAppVerification:
    def test_valid_token_echoes_challenge(self, monkeypatch):
        monkeypatch.setenv("WHATSAPP_CLOUD_API_WEBHOOK_VERIFICATION_TOKEN", "tok")
        assert verify_whatsapp_webhook("subscribe", "tok", "12345") == "12345"

    def test_wrong_token_or_mode(self, monkeypatch):
        monkeypatch.setenv("WHATSAPP_CLOUD_API_WEBHOOK_VERIFICATION_TOKEN", "tok")
        assert verify_whatsapp_webhook("subscribe", "bad", "1") is None
        assert verify_whatsapp_webhook("unsubscribe", "tok", "1") is None

    def test_unconfigured_token_never_verifies(self):
        assert verify_whatsapp_webhook("subscribe", "", "1") is None


class TestWhatsAppMessages:
    @pytest.mark.asyncio
    async def test_text_message_round_trip(self, store, orchestrator):
        init_db()
        whatsapp = AsyncMock()

        handled = await handle_whatsapp_message(_whatsapp_body("Hi"), orchestrator, store, whatsapp)

        assert handled is True
        whatsapp.mark_read_with_typing.assert_awaited_once_with("wamid.1")
        orchestrator.generate_response.assert_awaited_once_with("Hi", [])
        whatsapp.send_message.assert_awaited_once_with("2348000000001", "wamid.1", "Here you go")
        history = await load_history(store, whatsapp_history_key("2348000000001"))
        assert history == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Here you go"},
        ]
        with get_db_context() as db:
            archived = db.query(ChatMessage).filter_by(phone_number="2348000000001").count()
        assert archived >= 2

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, store, orchestrator):
        key = whatsapp_history_key("2348000000001")
        long_history = [{"role": "user", "content": str(i)} for i in range(30)]
        await store.set(key, long_history)

        await handle_whatsapp_message(_whatsapp_body(), orchestrator, store, AsyncMock())

        sent_history = orchestrator.generate_response.await_args.args[1]
        assert len(sent_history) == HISTORY_LIMIT
        assert sent_history[-1]["content"] == "29"
        assert len(await store.get(key)) == HISTORY_LIMIT + 2

    @pytest.mark.asyncio
    async def test_non_text_messages_ignored(self, store, orchestrator):
        whatsapp = AsyncMock()
        assert await handle_whatsapp_message(_whatsapp_body(msg_type="image"), orchestrator, store, whatsapp) is False
        assert await handle_whatsapp_message({"entry": []}, orchestrator, store, whatsapp) is False
        whatsapp.send_message.assert_not_awaited()
        orchestrator.generate_response.assert_not_awaited()


class TestSlackEvents:
    def test_strip_mentions(self):
        assert strip_slack_mentions("<@U0BOT> <@U123ABC>  what's new?") == "what's new?"
        assert strip_slack_mentions("<@U0BOT>") == ""

    @pytest.mark.asyncio
    async def test_mention_answered_in_thread(self, store, orchestrator):
        slack = AsyncMock()

        handled = await handle_slack_event(_slack_body(), orchestrator, store, slack)

        assert handled is True
        orchestrator.generate_response.assert_awaited_once_with("hello", [])
        slack.send_message.assert_awaited_once_with("C1", "Here you go", "1700000000.000100")
        history = await store.get(slack_history_key("C1", "U1"))
        assert history[0] == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_existing_thread_is_kept(self, store, orchestrator):
        slack = AsyncMock()
        await handle_slack_event(_slack_body(thread_ts="1699999999.000001"), orchestrator, store, slack)
        assert slack.send_message.await_args.args[2] == "1699999999.000001"

    @pytest.mark.asyncio
    async def test_duplicate_event_processed_once(self, store, orchestrator):
        slack = AsyncMock()
        body = _slack_body(event_id="EvDup")

        assert await handle_slack_event(body, orchestrator, store, slack) is True
        assert await handle_slack_event(body, orchestrator, store, slack) is False
        assert slack.send_message.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"bot_id": "B1"}, {"subtype": "message_changed"}, {"type": "reaction_added"}],
    )
    async def test_ignored_events(self, store, orchestrator, overrides):
        slack = AsyncMock()
        assert await handle_slack_event(_slack_body(**overrides), orchestrator, store, slack) is False
        slack.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_text_after_mention_is_ignored(self, store, orchestrator):
        slack = AsyncMock()
        assert await handle_slack_event(_slack_body(text="<@U0BOT>"), orchestrator, store, slack) is False
        orchestrator.generate_response.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_reply_not_sent(self, store, orchestrator):
        orchestrator.generate_response.return_value = "  "
        slack = AsyncMock()
        assert await handle_slack_event(_slack_body(), orchestrator, store, slack) is False
        slack.send_message.assert_not_awaited()
