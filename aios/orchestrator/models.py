"""Conversation message models shared by the API and the orchestrator."""

import base64
import binascii
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Attachment(BaseModel):
    """File attached to a user message. ``data`` is base64 text."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    mime_type: str = Field(default="", alias="mimeType")
    data: str

    @classmethod
    def from_bytes(cls, name: str, mime_type: str, raw: bytes) -> "Attachment":
        return cls(name=name, mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    def raw_bytes(self) -> bytes:
        """Decode ``data``; tolerates a ``data:<mime>;base64,`` prefix."""
        payload = self.data.split(",", 1)[1] if self.data.startswith("data:") else self.data
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Attachment {self.name} is not valid base64") from e


class ConversationMessage(BaseModel):
    """One entry of conversation history."""

    role: Literal["user", "assistant"]
    content: str
    attachments: list[Attachment] | None = None
