"""Product catalog retrieval tool."""

import logging
from typing import Any

from pydantic import BaseModel

from aios.orchestrator.agent.tools.core import ToolContext, ToolResultModel, _err, _ok
from aios.services.product_catalog import load_catalog

logger = logging.getLogger(__name__)


class CatalogProduct(BaseModel):
    sku: str
    name: str
    price: float | None = None
    unit: str


class ProductCatalogResult(ToolResultModel):
    count: int | None = None
    products: list[CatalogProduct] | None = None


async def get_product_catalog_tool(args: dict[str, Any], ctx: ToolContext) -> ProductCatalogResult:
    """Return every catalog entry with SKU, name, price and unit."""
    try:
        catalog = await load_catalog(ctx.store)
    except Exception as e:
        logger.error("Catalog load failed: %s", e)
        return _err(ProductCatalogResult, f"Failed to retrieve product catalog: {e}")

    if not catalog:
        return _err(
            ProductCatalogResult,
            "No product catalog found. A product file has not been uploaded yet.",
        )

    products = [
        CatalogProduct(sku=sku, name=entry.name, price=entry.price, unit=entry.unit)
        for sku, entry in catalog.items()
    ]
    return _ok(ProductCatalogResult, count=len(products), products=products)
