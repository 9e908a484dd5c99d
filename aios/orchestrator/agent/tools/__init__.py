"""Assistant tool registration.

Imports handler functions from submodules and assembles the tool
definition list handed to the model gateway.
"""

from typing import Any

from aios.orchestrator.agent.tools.account import ACCOUNT_INTENTS, database_tool
from aios.orchestrator.agent.tools.catalog import get_product_catalog_tool
from aios.orchestrator.agent.tools.core import ToolContext, _bind_context
from aios.orchestrator.agent.tools.media import analyze_media_tool
from aios.orchestrator.agent.tools.rfq import process_rfq_tool, send_rfq_email_tool
from aios.orchestrator.agent.tools.uploads import upload_to_sheet_tool
from aios.orchestrator.agent.tools.web_search import web_search_tool

WEB_SEARCH_TOOL = "webSearch"


def get_all_tool_definitions(ctx: ToolContext) -> list[dict[str, Any]]:
    """Return all tool definitions for one conversation turn.

    Each definition includes name, description, input_schema, and handler.
    ``webSearch`` is included only when the context has a search client.

    Returns:
        List of tool definition dicts.
    """
    definitions = [
        {
            "name": "database",
            "description": (
                "Answer the user's question with information that must come from the "
                "database: when they created their account or what email is on it. "
                "Do NOT list tables, describe schema, or show raw data. Respond to the "
                "user with the returned answer."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "intent": {
                        "type": "string",
                        "enum": list(ACCOUNT_INTENTS),
                        "description": (
                            "account_created_at: when the user created their account. "
                            "account_email: the email on the user's account."
                        ),
                    },
                },
                "required": ["intent"],
            },
            "handler": _bind_context(database_tool, ctx),
        },
        {
            "name": "getProductCatalog",
            "description": (
                "Retrieve the current product catalog. Call this when the user asks about "
                "available products, product names, prices, or SKUs. Returns SKU, name, "
                "price, and unit for each product."
            ),
            "input_schema": {"type": "object", "properties": {}},
            "handler": _bind_context(get_product_catalog_tool, ctx),
        },
        {
            "name": "uploadToSheet",
            "description": (
                "Commit previously uploaded product data after the user provides the secret "
                "confirmation code. Call ONLY when the user has given a code for a pending "
                "product upload. The uploadKey comes from the upload message or the "
                "[UPLOAD_KEY: ...] annotation."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "uploadKey": {
                        "type": "string",
                        "description": "The upload key from the product upload session.",
                    },
                    "secretCode": {
                        "type": "string",
                        "description": "The secret confirmation code the user just provided, verbatim.",
                    },
                },
                "required": ["uploadKey", "secretCode"],
            },
            "handler": _bind_context(upload_to_sheet_tool, ctx),
        },
        {
            "name": "processRfq",
            "description": (
                "Process a Request for Quote. Call when the user wants pricing or a quote "
                "for listed SKUs and quantities. Validates the request, prices items from "
                "the product catalog, stores a draft quote, logs it, and schedules a 3-day "
                "follow-up cadence."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "contactName": {"type": "string", "description": "Full name or company name."},
                    "contactPhone": {"type": "string", "description": "Phone number."},
                    "contactEmail": {"type": "string", "description": "Email address."},
                    "items": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "sku": {"type": "string", "description": "Product SKU or description."},
                                "qty": {"type": "number", "description": "Requested quantity."},
                                "unit": {"type": "string", "description": "Unit of measure."},
                                "unitPrice": {
                                    "type": "number",
                                    "description": "Unit price, only if the user stated one.",
                                },
                            },
                            "required": ["sku", "qty"],
                        },
                    },
                    "shipTo": {"type": "string", "description": "Delivery destination."},
                    "deliveryDate": {"type": "string", "description": "Requested delivery date."},
                    "notes": {"type": "string", "description": "Special requirements or notes."},
                },
                "required": ["contactName", "items", "shipTo"],
            },
            "handler": _bind_context(process_rfq_tool, ctx),
        },
        {
            "name": "sendRfqEmail",
            "description": (
                "Email the draft quote to the customer and start follow-up reminders. Call "
                "ONLY after processRfq succeeded and the user confirmed the recipient email."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "quoteNumber": {
                        "type": "string",
                        "description": "The quote number returned by processRfq.",
                    },
                    "recipientEmail": {
                        "type": "string",
                        "description": "The customer's email address.",
                    },
                },
                "required": ["quoteNumber", "recipientEmail"],
            },
            "handler": _bind_context(send_rfq_email_tool, ctx),
        },
        {
            "name": "analyzeMedia",
            "description": (
                "Fetch and analyze a file at a URL. Use when the user shares a link to an "
                "image, PDF, or document and wants it described, read, or extracted. "
                "Supported: JPEG, PNG, GIF, WebP, SVG, BMP, PDF, TXT, CSV, Markdown, HTML."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "url": {"type": "string", "description": "Public URL of the file."},
                    "prompt": {
                        "type": "string",
                        "description": "What to do with the file, e.g. 'extract all text'.",
                    },
                },
                "required": ["url"],
            },
            "handler": _bind_context(analyze_media_tool, ctx),
        },
    ]

    if ctx.web_search is not None:
        definitions.append(
            {
                "name": WEB_SEARCH_TOOL,
                "description": (
                    "Search the web for current information. Use for recent events or facts "
                    "you are unsure about."
                ),
                "input_schema": {
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query."},
                        "maxResults": {
                            "type": "integer",
                            "description": "Max results (default 5).",
                            "default": 5,
                        },
                    },
                    "required": ["query"],
                },
                "handler": _bind_context(web_search_tool, ctx),
            }
        )

    return definitions
