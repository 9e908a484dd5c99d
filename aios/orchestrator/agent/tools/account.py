"""Account lookup tool scoped to the current user.

Only fixed retrieval intents are supported; the model never sees table
names or raw rows.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from aios.db.connection import get_db_context
from aios.db.models import User
from aios.orchestrator.agent.tools.core import ToolContext, ToolResultModel, _ok

logger = logging.getLogger(__name__)

ACCOUNT_INTENTS = ("account_created_at", "account_email")

_NO_ACCESS = "I don't have access to that information right now."


class DatabaseResult(ToolResultModel):
    answer: str


def _format_date(iso: str) -> str:
    try:
        d = datetime.fromisoformat(iso)
    except ValueError:
        return iso
    return f"{d:%A, %B} {d.day}, {d.year}"


def _load_user(user_id: str) -> User | None:
    with get_db_context() as db:
        user = db.get(User, user_id)
        if user is not None:
            db.expunge(user)
        return user


def _account_created_at(user_id: str | None) -> str:
    if not user_id:
        return (
            "I can't look up your account date without knowing who you are. "
            "If you're logged in, try asking again from the app."
        )
    try:
        user = _load_user(user_id)
    except SQLAlchemyError as e:
        logger.warning("Account lookup failed: %s", e)
        return _NO_ACCESS
    if user is None or not user.created_at:
        return "I couldn't find an account creation date for you."
    return f"You created your account on {_format_date(user.created_at)}."


def _account_email(user_id: str | None) -> str:
    if not user_id:
        return (
            "I can't look up your email without knowing who you are. "
            "If you're logged in, try asking again from the app."
        )
    try:
        user = _load_user(user_id)
    except SQLAlchemyError as e:
        logger.warning("Account lookup failed: %s", e)
        return _NO_ACCESS
    if user is None or not user.email:
        return "I couldn't find an email on file for your account."
    return f"The email on your account is {user.email}."


async def database_tool(args: dict[str, Any], ctx: ToolContext) -> DatabaseResult:
    """Answer an account question for the current user.

    Args:
        args: Dict with 'intent' (account_created_at | account_email).
        ctx: Tool context carrying the user id.

    Returns:
        DatabaseResult with a ready-to-relay answer.
    """
    intent = args.get("intent")
    if intent == "account_created_at":
        return _ok(DatabaseResult, answer=_account_created_at(ctx.user_id))
    if intent == "account_email":
        return _ok(DatabaseResult, answer=_account_email(ctx.user_id))
    return _ok(DatabaseResult, answer="I don't have a way to look up that information.")
