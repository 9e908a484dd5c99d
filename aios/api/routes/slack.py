"""Slack app routes: OAuth install flow and the Events API webhook."""

import html
import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from aios.errors import AuthenticationError, ValidationError
from aios.services.channels import handle_slack_event
from aios.services.gateway_provider import get_orchestrator, get_slack_client
from aios.services.kv_store import get_kv_store
from aios.services.slack_client import build_install_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat/slack", tags=["slack"])


def _events_url(request: Request) -> str:
    return str(request.url.replace(query="", fragment="")).replace("/slack/add", "/slack/events")


async def _process_event(body: dict[str, Any]) -> None:
    try:
        await handle_slack_event(body, await get_orchestrator(), await get_kv_store(), get_slack_client())
    except Exception:
        logger.error("Error handling Slack event", exc_info=True)


@router.get("/add")
async def add_slack_app(request: Request) -> RedirectResponse:
    """Redirect to Slack's OAuth install page."""
    return RedirectResponse(build_install_url(_events_url(request)))


@router.get("/events")
async def slack_oauth_callback(request: Request, code: str | None = None):
    """Exchange the OAuth code for a bot token."""
    if not code:
        return PlainTextResponse("Missing OAuth code", status_code=400)

    data = await get_slack_client().exchange_oauth_code(code, _events_url(request))
    team = data.get("team") or {}
    logger.info("Slack OAuth success, team: %s (%s)", team.get("name"), team.get("id"))
    return HTMLResponse(
        "<html><body><h2>Slack app installed successfully!</h2>"
        f"<p>Team: {html.escape(str(team.get('name') or ''))}</p></body></html>"
    )


@router.post("/events")
async def slack_events(request: Request, background_tasks: BackgroundTasks) -> dict:
    """Receive an Events API callback.

    The signature is checked against the raw body. Event callbacks are
    acknowledged immediately and answered in the background.

    Raises:
        AuthenticationError: If the signature is invalid or stale.
        ValidationError: If the body is not a JSON object.
    """
    raw_body = await request.body()
    signature = request.headers.get("x-slack-signature", "")
    timestamp = request.headers.get("x-slack-request-timestamp", "")
    if not get_slack_client().verify_request(signature, timestamp, raw_body):
        logger.warning("Rejected Slack request: invalid signature")
        raise AuthenticationError("Invalid Slack signature")

    try:
        body = json.loads(raw_body or b"{}")
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("Slack event body must be a JSON object")

    if body.get("type") == "url_verification":
        return {"challenge": body.get("challenge")}

    if body.get("type") == "event_callback":
        background_tasks.add_task(_process_event, body)

    return {"ok": True}
