"""Product catalog derived from the most recently uploaded product file.

Column roles are found by synonym lookup on normalized header text. The
catalog is a price/unit lookup table for RFQ processing, stored as one
key and overwritten wholesale on each new upload.
"""

import logging
import re
from enum import Enum

from pydantic import BaseModel

from aios.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CATALOG_KEY = "product-catalog"
CATALOG_TTL_SECONDS = 60 * 60 * 24 * 30
DEFAULT_UNIT = "pcs"


class ColumnRole(str, Enum):
    """Role a product-file column plays in the catalog."""

    SKU = "sku"
    NAME = "name"
    PRICE = "price"
    UNIT = "unit"


_SYNONYMS: dict[ColumnRole, set[str]] = {
    ColumnRole.SKU: {
        "sku", "productid", "productcode", "itemcode", "itemid", "code",
        "partnumber", "partno", "itemno", "itemnumber", "id",
    },
    ColumnRole.NAME: {
        "name", "productname", "itemname", "description", "title",
        "product", "item",
    },
    ColumnRole.PRICE: {
        "price", "unitprice", "cost", "rate", "amount", "priceperunit",
        "sellingprice",
    },
    ColumnRole.UNIT: {
        "unit", "uom", "unitofmeasure", "units", "measure",
    },
}


class CatalogEntry(BaseModel):
    name: str
    price: float | None = None
    unit: str = DEFAULT_UNIT


def normalize_header(text: str) -> str:
    """Lowercase and drop spaces, underscores and hyphens."""
    return re.sub(r"[\s_\-]+", "", (text or "").lower())


def detect_column_role(header: str) -> ColumnRole | None:
    """Map a header cell to its column role, or None when nothing matches."""
    normalized = normalize_header(header)
    for role, synonyms in _SYNONYMS.items():
        if normalized in synonyms:
            return role
    return None


def _detect_columns(header: list[str]) -> dict[ColumnRole, int]:
    columns: dict[ColumnRole, int] = {}
    for index, cell in enumerate(header):
        role = detect_column_role(cell)
        if role is not None and role not in columns:
            columns[role] = index
    return columns


def parse_price(raw: str) -> float | None:
    """Parse '$1,299.50'-style text. Returns None when not numeric."""
    cleaned = re.sub(r"[^\d.\-]", "", raw or "")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def build_product_catalog(rows: list[list[str]]) -> dict[str, CatalogEntry] | None:
    """Build a SKU-keyed catalog from parsed rows.

    Args:
        rows: Parsed rows, header first.

    Returns:
        Mapping of upper-cased SKU to CatalogEntry, or None when the
        header has no SKU-like column.
    """
    if not rows:
        return None
    columns = _detect_columns(rows[0])
    sku_col = columns.get(ColumnRole.SKU)
    if sku_col is None:
        return None

    def cell(row: list[str], role: ColumnRole) -> str:
        index = columns.get(role)
        if index is None or index >= len(row):
            return ""
        return (row[index] or "").strip()

    catalog: dict[str, CatalogEntry] = {}
    for row in rows[1:]:
        sku = cell(row, ColumnRole.SKU).upper()
        if not sku:
            continue
        catalog[sku] = CatalogEntry(
            name=cell(row, ColumnRole.NAME) or sku,
            price=parse_price(cell(row, ColumnRole.PRICE)),
            unit=cell(row, ColumnRole.UNIT) or DEFAULT_UNIT,
        )
    return catalog


async def save_catalog(store: KeyValueStore, catalog: dict[str, CatalogEntry]) -> None:
    payload = {sku: entry.model_dump() for sku, entry in catalog.items()}
    await store.set(CATALOG_KEY, payload, CATALOG_TTL_SECONDS)
    logger.info("Saved product catalog with %d entries", len(payload))


async def load_catalog(store: KeyValueStore) -> dict[str, CatalogEntry]:
    """Return the stored catalog, or an empty dict when none exists."""
    payload = await store.get(CATALOG_KEY)
    if not payload:
        return {}
    return {sku: CatalogEntry(**entry) for sku, entry in payload.items()}
