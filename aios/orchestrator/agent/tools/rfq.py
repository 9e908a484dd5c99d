"""RFQ tools: quote processing and quote email dispatch.

``processRfq`` validates the request, prices it from the catalog,
persists the quote with its follow-up cadence and logs it to the RFQ
sheet. ``sendRfqEmail`` emails an existing quote and arms the follow-up
sweep.
"""

import json
import logging
from typing import Any

from aios.orchestrator.agent.tools.core import ToolContext, ToolResultModel, _err, _ok
from aios.services.product_catalog import load_catalog
from aios.services.rfq_service import (
    build_download_url,
    build_followup,
    build_line_items,
    build_quote,
    get_platform_name,
    load_followup,
    load_quote,
    quote_template_context,
    render_draft_quote,
    save_followup,
    save_quote,
)
from aios.services.sheets_client import RFQ_LOG_RANGE, get_sheet_id

logger = logging.getLogger(__name__)


class ProcessRfqResult(ToolResultModel):
    quote_number: str | None = None
    draft_quote: str | None = None
    total: str | None = None
    has_all_prices: bool | None = None
    missing_price_skus: list[str] | None = None
    not_found_skus: list[str] | None = None
    follow_up_dates: list[str] | None = None
    download_url: str | None = None
    logged_to_sheets: bool | None = None
    contact_email: str | None = None


class SendRfqEmailResult(ToolResultModel):
    follow_up_dates: list[str] | None = None


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_rfq_args(args: dict[str, Any]) -> str | None:
    """Return a validation message, or None when the request is complete."""
    if not _clean(args.get("contactName")):
        return "Contact name is required."
    items = args.get("items")
    if not isinstance(items, list) or not items:
        return "At least one item is required."
    if any(not isinstance(item, dict) or not _clean(item.get("sku")) for item in items):
        return "Every item needs a SKU."
    if not _clean(args.get("shipTo")):
        return "Ship-to destination is required."
    return None


async def process_rfq_tool(args: dict[str, Any], ctx: ToolContext) -> ProcessRfqResult:
    """Turn an extracted RFQ into a persisted quote.

    Args:
        args: Dict with contactName, items [{sku, qty, unit?, unitPrice?}],
            shipTo, and optional contactPhone, contactEmail, deliveryDate, notes.
        ctx: Tool context.

    Returns:
        ProcessRfqResult. On validation failure nothing is persisted.
    """
    problem = validate_rfq_args(args)
    if problem:
        return _err(ProcessRfqResult, problem)

    try:
        catalog = await load_catalog(ctx.store)
        line_items, missing, not_found = build_line_items(args["items"], catalog)
        quote = build_quote(
            contact_name=_clean(args.get("contactName")),
            line_items=line_items,
            ship_to=_clean(args.get("shipTo")),
            contact_phone=_clean(args.get("contactPhone")),
            contact_email=_clean(args.get("contactEmail")),
            delivery_date=_clean(args.get("deliveryDate")),
            notes=_clean(args.get("notes")),
        )
        followup = build_followup(quote)
        await save_quote(ctx.store, quote)
        await save_followup(ctx.store, followup)
    except Exception as e:
        logger.error("RFQ processing failed: %s", e, exc_info=True)
        return _err(ProcessRfqResult, f"Failed to process RFQ: {e}")

    logged = False
    sheet_id = get_sheet_id()
    if sheet_id and ctx.sheets is not None:
        try:
            await ctx.sheets.append(
                sheet_id,
                RFQ_LOG_RANGE,
                [
                    quote.quote_number,
                    quote.quote_date,
                    quote.contact_name,
                    quote.contact_phone or "",
                    quote.contact_email or "",
                    json.dumps([li.to_payload() for li in quote.line_items]),
                    quote.ship_to,
                    quote.delivery_date or "",
                    quote.notes or "",
                    "Pending",
                    quote.total,
                    followup.follow_up_dates[0],
                ],
            )
            logged = True
        except Exception as e:
            logger.warning("RFQ sheet log failed for %s: %s", quote.quote_number, e)

    logger.info(
        "RFQ %s created: %d items, total %s", quote.quote_number, len(line_items), quote.total
    )
    return _ok(
        ProcessRfqResult,
        quote_number=quote.quote_number,
        draft_quote=render_draft_quote(quote),
        total=quote.total,
        has_all_prices=quote.has_all_prices,
        missing_price_skus=missing,
        not_found_skus=not_found,
        follow_up_dates=followup.follow_up_dates,
        download_url=build_download_url(quote.quote_number),
        logged_to_sheets=logged,
        contact_email=quote.contact_email,
    )


async def send_rfq_email_tool(args: dict[str, Any], ctx: ToolContext) -> SendRfqEmailResult:
    """Email an existing quote and switch its follow-ups to ``email_sent``.

    Args:
        args: Dict with 'quoteNumber' and 'recipientEmail'.
        ctx: Tool context.

    Returns:
        SendRfqEmailResult with the follow-up dates.
    """
    quote_number = _clean(args.get("quoteNumber")) or ""
    recipient = _clean(args.get("recipientEmail"))
    if not recipient:
        return _err(SendRfqEmailResult, "A recipient email address is required.")

    quote = await load_quote(ctx.store, quote_number)
    if quote is None:
        return _err(
            SendRfqEmailResult,
            f"Quote {quote_number} not found or has expired. Please re-submit the RFQ.",
        )
    if ctx.mailer is None:
        return _err(SendRfqEmailResult, "Email is not configured on the server.")

    try:
        await ctx.mailer.send_email(
            recipient,
            f"Your Quote: {quote.quote_number}",
            "rfq_quote",
            {
                **quote_template_context(quote, get_platform_name()),
                "download_url": build_download_url(quote.quote_number),
            },
        )
    except Exception as e:
        logger.error("Quote email for %s failed: %s", quote_number, e)
        return _err(SendRfqEmailResult, f"Failed to send quote email: {e}")

    followup = await load_followup(ctx.store, quote_number)
    if followup is not None:
        followup.recipient_email = recipient
        followup.status = "email_sent"
        await save_followup(ctx.store, followup)

    quote.contact_email = recipient
    await save_quote(ctx.store, quote)

    return _ok(
        SendRfqEmailResult,
        message=f"Quote {quote_number} sent to {recipient}.",
        follow_up_dates=followup.follow_up_dates if followup else [],
    )
