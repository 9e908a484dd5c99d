"""WhatsApp Cloud API client (Graph API messages endpoint)."""

import logging
import os
from typing import Any

import httpx

from aios.errors import ChannelDeliveryError

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"


def get_verification_token() -> str:
    return os.environ.get("WHATSAPP_CLOUD_API_WEBHOOK_VERIFICATION_TOKEN", "")


class WhatsAppClient:
    """Send replies and read receipts through the WhatsApp Cloud API."""

    def __init__(
        self,
        access_token: str | None = None,
        phone_number_id: str | None = None,
        api_version: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token or os.environ.get("WHATSAPP_CLOUD_API_ACCESS_TOKEN", "")
        self._phone_number_id = phone_number_id or os.environ.get(
            "WHATSAPP_CLOUD_API_PHONE_NUMBER_ID", ""
        )
        self._api_version = api_version or os.environ.get("WHATSAPP_CLOUD_API_VERSION", "v21.0")
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{GRAPH_API_BASE}/{self._api_version}/{self._phone_number_id}/messages"

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                resp = await client.post(self.messages_url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                raise ChannelDeliveryError(f"Error posting to WhatsApp Cloud API: {e}") from e
        if resp.status_code >= 400:
            raise ChannelDeliveryError(
                f"WhatsApp Cloud API returned {resp.status_code}: {resp.text}"
            )
        return resp.json()

    async def send_message(self, to: str, reply_to_message_id: str, body: str) -> None:
        """Send a text reply that quotes the inbound message."""
        await self._post(
            {
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": to,
                "context": {"message_id": reply_to_message_id},
                "type": "text",
                "text": {"preview_url": False, "body": body},
            }
        )
        logger.info("WhatsApp reply sent to %s", to)

    async def mark_read_with_typing(self, message_id: str) -> None:
        """Mark the message read and show the typing indicator."""
        await self._post(
            {
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": message_id,
                "typing_indicator": {"type": "text"},
            }
        )
