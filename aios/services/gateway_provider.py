"""Centralized provider for process-global collaborators.

API routes and channel handlers get the model gateway, mailer, sheets
client, web search client and orchestrator from HERE. Tests replace them
with ``set_model_gateway()`` / ``reset_providers()``.
"""

import logging

from aios.orchestrator.agent.client import ModelGateway
from aios.orchestrator.conversation import ConversationOrchestrator
from aios.services.kv_store import get_kv_store
from aios.services.mailer import Mailer
from aios.services.sheets_client import GoogleSheetsClient
from aios.services.slack_client import SlackClient
from aios.services.web_search_client import WebSearchClient, get_valyu_api_key
from aios.services.whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)

_gateway: ModelGateway | None = None
_mailer: Mailer | None = None
_sheets: GoogleSheetsClient | None = None
_whatsapp: WhatsAppClient | None = None
_slack: SlackClient | None = None


def get_model_gateway() -> ModelGateway:
    """Get or create the process-global model gateway."""
    global _gateway
    if _gateway is None:
        _gateway = ModelGateway()
        logger.info("ModelGateway singleton initialized")
    return _gateway


def set_model_gateway(gateway) -> None:
    """Replace the model gateway. Used by tests."""
    global _gateway
    _gateway = gateway


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer()
    return _mailer


def set_mailer(mailer) -> None:
    global _mailer
    _mailer = mailer


def get_sheets_client() -> GoogleSheetsClient:
    global _sheets
    if _sheets is None:
        _sheets = GoogleSheetsClient()
    return _sheets


def get_web_search_client() -> WebSearchClient | None:
    """Return a search client, or None when VALYU_API_KEY is unset."""
    api_key = get_valyu_api_key()
    return WebSearchClient(api_key) if api_key else None


def get_whatsapp_client() -> WhatsAppClient:
    global _whatsapp
    if _whatsapp is None:
        _whatsapp = WhatsAppClient()
    return _whatsapp


def set_whatsapp_client(client) -> None:
    global _whatsapp
    _whatsapp = client


def get_slack_client() -> SlackClient:
    global _slack
    if _slack is None:
        _slack = SlackClient()
    return _slack


def set_slack_client(client) -> None:
    global _slack
    _slack = client


async def get_orchestrator() -> ConversationOrchestrator:
    """Build an orchestrator wired to the shared collaborators."""
    return ConversationOrchestrator(
        gateway=get_model_gateway(),
        store=await get_kv_store(),
        mailer=get_mailer(),
        sheets=get_sheets_client(),
        web_search=get_web_search_client(),
    )


def reset_providers() -> None:
    """Drop every cached collaborator. Used by tests."""
    global _gateway, _mailer, _sheets, _whatsapp, _slack
    _gateway = None
    _mailer = None
    _sheets = None
    _whatsapp = None
    _slack = None
