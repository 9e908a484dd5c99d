"""Shared internals for assistant tools.

Contains the per-turn ToolContext, the typed result base class and the
success/failure helpers. All tool handler submodules import from here.

Tool handlers never raise: failures are returned as results with
``success=False`` and a user-facing ``message`` the model relays verbatim.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from aios.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class ToolContext:
    """Collaborators and identity available to tools during one turn.

    Attributes:
        store: Key-value store for uploads, catalog and quotes.
        user_id: Current user for account lookups, None when anonymous.
        gateway: Model gateway used for media analysis.
        mailer: Email sender for quotes.
        sheets: Spreadsheet client for logging.
        web_search: Web search client, None when search is disabled.
    """

    store: KeyValueStore
    user_id: str | None = None
    gateway: Any = None
    mailer: Any = None
    sheets: Any = None
    web_search: Any = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ToolResultModel(BaseModel):
    """Base for per-tool results. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        # Unset top-level fields are dropped; nested nulls are kept.
        payload = self.model_dump(by_alias=True, mode="json")
        return {key: value for key, value in payload.items() if value is not None}


R = TypeVar("R", bound=ToolResultModel)


def _ok(result_cls: type[R], **fields: Any) -> R:
    """Build a successful tool result."""
    return result_cls(success=True, **fields)


def _err(result_cls: type[R], message: str, **fields: Any) -> R:
    """Build a failed tool result carrying a user-facing message."""
    return result_cls(success=False, message=message, **fields)


ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[ToolResultModel]]


def _bind_context(
    handler: ToolHandler,
    ctx: ToolContext,
) -> Callable[[dict[str, Any]], Awaitable[ToolResultModel]]:
    """Bind a ToolContext to a tool handler."""

    async def _wrapped(args: dict[str, Any]) -> ToolResultModel:
        return await handler(args, ctx)

    return _wrapped
