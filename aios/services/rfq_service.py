"""RFQ quote building, persistence and the follow-up reminder sweep.

Quotes live under ``rfq:data:<quoteNumber>`` for 30 days so the download
link keeps working. Each quote has a follow-up record under
``rfq:followup:<quoteNumber>`` holding three reminder dates that the
sweep sends strictly in order once the quote has been emailed.
"""

import logging
import os
import secrets
import string
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Literal

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from aios.services.kv_store import KeyValueStore
from aios.services.product_catalog import DEFAULT_UNIT, CatalogEntry

logger = logging.getLogger(__name__)

RFQ_DATA_PREFIX = "rfq:data:"
RFQ_FOLLOWUP_PREFIX = "rfq:followup:"
RFQ_DATA_TTL_SECONDS = 60 * 60 * 24 * 30
RFQ_FOLLOWUP_TTL_SECONDS = 60 * 60 * 24 * 7
QUOTE_VALIDITY_DAYS = 30
FOLLOWUP_OFFSETS_DAYS = (1, 2, 3)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


class CamelModel(BaseModel):
    """Stored and returned with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class RfqLineItem(CamelModel):
    sku: str
    qty: float
    unit: str = DEFAULT_UNIT
    unit_price: float | None = None
    line_total: float | None = None


class RfqQuote(CamelModel):
    quote_number: str
    quote_date: str
    valid_until: str
    contact_name: str
    contact_phone: str | None = None
    contact_email: str | None = None
    line_items: list[RfqLineItem]
    ship_to: str
    delivery_date: str | None = None
    notes: str | None = None
    total: str
    has_all_prices: bool


class RfqFollowup(CamelModel):
    quote_number: str
    recipient_email: str | None = None
    follow_up_dates: list[str]
    follow_up_sent: list[bool] = Field(default_factory=lambda: [False, False, False])
    status: Literal["pending", "email_sent"] = "pending"


class FollowupSweepResult(BaseModel):
    sent: int = 0
    errors: list[str] = Field(default_factory=list)


def today_utc() -> date:
    return datetime.now(UTC).date()


def generate_quote_number(today: date | None = None) -> str:
    """Return ``RFQ-YYYYMMDD-XXXX`` with a random alphanumeric suffix."""
    day = today or today_utc()
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"RFQ-{day.strftime('%Y%m%d')}-{suffix}"


def format_money(value: float) -> str:
    """Two decimals with thousands separators, e.g. 1,299.50."""
    return f"{value:,.2f}"


def format_qty(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def resolve_unit_price(
    sku: str,
    explicit_price: float | None,
    catalog: dict[str, CatalogEntry],
) -> float | None:
    """Pick the unit price for a line item.

    An explicit positive price wins. A missing price, or an explicit 0,
    falls back to the catalog entry for the upper-cased SKU.
    """
    if explicit_price is not None and explicit_price != 0:
        return explicit_price
    entry = catalog.get(sku.strip().upper())
    if entry is not None:
        return entry.price
    return None


def build_line_items(
    items: list[dict],
    catalog: dict[str, CatalogEntry],
) -> tuple[list[RfqLineItem], list[str], list[str]]:
    """Build priced line items.

    Returns:
        (line_items, missing_price_skus, not_found_skus). A SKU is "not
        found" when it had no explicit price and is absent from the
        catalog; "missing price" covers every item left without a price.
    """
    line_items: list[RfqLineItem] = []
    missing: list[str] = []
    not_found: list[str] = []
    for item in items:
        sku = str(item.get("sku", "")).strip()
        qty = float(item.get("qty") or 0)
        explicit = item.get("unitPrice")
        explicit = float(explicit) if explicit is not None else None
        entry = catalog.get(sku.upper())

        unit_price = resolve_unit_price(sku, explicit, catalog)
        if (explicit is None or explicit == 0) and entry is None:
            not_found.append(sku)
        if unit_price is None:
            missing.append(sku)

        unit = item.get("unit") or (entry.unit if entry else None) or DEFAULT_UNIT
        line_total = round(qty * unit_price, 2) if unit_price is not None else None
        line_items.append(
            RfqLineItem(
                sku=sku, qty=qty, unit=unit, unit_price=unit_price, line_total=line_total
            )
        )
    return line_items, missing, not_found


def build_quote(
    *,
    contact_name: str,
    line_items: list[RfqLineItem],
    ship_to: str,
    contact_phone: str | None = None,
    contact_email: str | None = None,
    delivery_date: str | None = None,
    notes: str | None = None,
    today: date | None = None,
) -> RfqQuote:
    day = today or today_utc()
    has_all_prices = all(li.unit_price is not None for li in line_items)
    subtotal = sum(li.line_total or 0 for li in line_items)
    return RfqQuote(
        quote_number=generate_quote_number(day),
        quote_date=day.isoformat(),
        valid_until=(day + timedelta(days=QUOTE_VALIDITY_DAYS)).isoformat(),
        contact_name=contact_name,
        contact_phone=contact_phone or None,
        contact_email=contact_email or None,
        line_items=line_items,
        ship_to=ship_to,
        delivery_date=delivery_date or None,
        notes=notes or None,
        total=f"{subtotal:.2f}" if has_all_prices else "TBD",
        has_all_prices=has_all_prices,
    )


def build_followup(quote: RfqQuote, today: date | None = None) -> RfqFollowup:
    day = today or today_utc()
    return RfqFollowup(
        quote_number=quote.quote_number,
        recipient_email=quote.contact_email,
        follow_up_dates=[
            (day + timedelta(days=offset)).isoformat() for offset in FOLLOWUP_OFFSETS_DAYS
        ],
    )


def render_draft_quote(quote: RfqQuote) -> str:
    """Markdown summary of the quote for the chat reply."""
    lines = []
    for li in quote.line_items:
        if li.unit_price is not None:
            price = f" @ ${format_money(li.unit_price)} = ${format_money(li.line_total or 0)}"
        else:
            price = " (Price: TBD)"
        lines.append(f"- **{li.sku}**: Qty {format_qty(li.qty)} {li.unit}{price}")

    contact = quote.contact_name
    if quote.contact_phone:
        contact += f" · {quote.contact_phone}"
    if quote.contact_email:
        contact += f" · {quote.contact_email}"

    parts = [
        f"**Quote Ref: {quote.quote_number}**",
        f"Date: {quote.quote_date} · Valid Until: {quote.valid_until}",
        "",
        f"**Contact:** {contact}",
        f"**Ship To:** {quote.ship_to}",
    ]
    if quote.delivery_date:
        parts.append(f"**Delivery:** {quote.delivery_date}")
    parts += ["", "**Items:**", *lines, ""]
    parts.append(f"**Total: ${quote.total}**" if quote.has_all_prices else "**Total: TBD**")
    if quote.notes:
        parts += ["", f"**Notes:** {quote.notes}"]
    return "\n".join(parts)


def get_base_url() -> str:
    return (
        os.environ.get("PRODUCTION_URL", "").strip()
        or os.environ.get("DEVELOPMENT_URL", "").strip()
        or "http://localhost:3000"
    ).rstrip("/")


def build_download_url(quote_number: str) -> str:
    return f"{get_base_url()}/v1/chat/rfq/{quote_number}/download"


def get_platform_name() -> str:
    return os.environ.get("PLATFORM_NAME", "").strip() or "Sales Team"


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


async def save_quote(store: KeyValueStore, quote: RfqQuote) -> None:
    await store.set(f"{RFQ_DATA_PREFIX}{quote.quote_number}", quote.to_payload(), RFQ_DATA_TTL_SECONDS)


async def load_quote(store: KeyValueStore, quote_number: str) -> RfqQuote | None:
    payload = await store.get(f"{RFQ_DATA_PREFIX}{quote_number}")
    return RfqQuote.model_validate(payload) if payload else None


async def save_followup(store: KeyValueStore, followup: RfqFollowup) -> None:
    await store.set(
        f"{RFQ_FOLLOWUP_PREFIX}{followup.quote_number}",
        followup.to_payload(),
        RFQ_FOLLOWUP_TTL_SECONDS,
    )


async def load_followup(store: KeyValueStore, quote_number: str) -> RfqFollowup | None:
    payload = await store.get(f"{RFQ_FOLLOWUP_PREFIX}{quote_number}")
    return RfqFollowup.model_validate(payload) if payload else None


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def quote_template_context(quote: RfqQuote, platform_name: str | None = None) -> dict:
    """Template variables shared by the download page and quote emails."""
    line_items = [
        {
            **li.model_dump(),
            "qty_formatted": format_qty(li.qty),
            "unit_price_formatted": format_money(li.unit_price) if li.unit_price is not None else None,
            "line_total_formatted": format_money(li.line_total) if li.line_total is not None else None,
        }
        for li in quote.line_items
    ]
    total_formatted = (
        format_money(float(quote.total)) if quote.has_all_prices else quote.total
    )
    return {
        **quote.model_dump(),
        "line_items": line_items,
        "total_formatted": total_formatted,
        "platform_name": platform_name or get_platform_name(),
    }


def render_quote_html(quote: RfqQuote, platform_name: str | None = None) -> str:
    """Render the printable quote page."""
    template = _env.get_template("rfq_quote.html")
    return template.render(**quote_template_context(quote, platform_name))


# ---------------------------------------------------------------------------
# Follow-up sweep
# ---------------------------------------------------------------------------


async def process_due_followups(
    store: KeyValueStore,
    mailer,
    today: date | None = None,
) -> FollowupSweepResult:
    """Send every due, unsent reminder in date order.

    Only follow-ups whose quote has been emailed are eligible. For each
    record the dates are walked in order; the walk stops at the first
    future date, and also stops after a failed send so a later reminder
    never goes out before an earlier one.

    Args:
        store: Key-value store.
        mailer: Object with ``async send_email(to, subject, template, context)``.
        today: Sweep date, defaults to the current UTC date.

    Returns:
        FollowupSweepResult with the number of reminders sent and any
        per-reminder error messages.
    """
    day = today or today_utc()
    result = FollowupSweepResult()

    for key in await store.scan_prefix(RFQ_FOLLOWUP_PREFIX):
        payload = await store.get(key)
        if not payload:
            continue
        followup = RfqFollowup.model_validate(payload)
        if followup.status != "email_sent" or not followup.recipient_email:
            continue

        quote = await load_quote(store, followup.quote_number)
        for index, due in enumerate(followup.follow_up_dates):
            if followup.follow_up_sent[index]:
                continue
            if date.fromisoformat(due) > day:
                break
            try:
                await mailer.send_email(
                    followup.recipient_email,
                    f"Following up on your quote {followup.quote_number}",
                    "rfq_followup",
                    {
                        **(quote_template_context(quote) if quote else {}),
                        "quote_number": followup.quote_number,
                        "reminder_number": index + 1,
                        "download_url": build_download_url(followup.quote_number),
                        "platform_name": get_platform_name(),
                    },
                )
            except Exception as e:
                logger.error(
                    "Follow-up %d for %s failed: %s", index + 1, followup.quote_number, e
                )
                result.errors.append(f"{followup.quote_number} reminder {index + 1}: {e}")
                break
            followup.follow_up_sent[index] = True
            await save_followup(store, followup)
            result.sent += 1
            logger.info("Sent follow-up %d for %s", index + 1, followup.quote_number)

    return result
