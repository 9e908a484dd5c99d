"""Pydantic schemas for API request/response validation."""

from pydantic import BaseModel, Field

from aios.orchestrator.models import Attachment, ConversationMessage


class PromptRequest(BaseModel):
    """Request body for a complete-response prompt."""

    prompt: str = Field(..., min_length=1)


class PromptResponse(BaseModel):
    response: str


class StreamPromptRequest(BaseModel):
    """Request body for a streaming prompt.

    Attachments carry base64 ``data``; product files (csv, json, xlsx,
    xls) are staged for confirmation instead of being sent to the model.
    """

    prompt: str = ""
    history: list[ConversationMessage] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)


class FollowupResponse(BaseModel):
    """Result of one follow-up reminder sweep."""

    sent: int
    errors: list[str] = Field(default_factory=list)


class BrandingResponse(BaseModel):
    authorName: str | None = None
    authorUrl: str | None = None
