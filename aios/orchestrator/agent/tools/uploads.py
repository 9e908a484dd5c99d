"""Upload confirmation tool.

The model calls ``uploadToSheet`` once the user supplies the secret code
for a pending product upload. A matching code consumes the staged rows
(single use) and, when a spreadsheet is configured, appends the data
rows to it.
"""

import logging
import os
from typing import Any

from aios.orchestrator.agent.tools.core import ToolContext, ToolResultModel, _err, _ok
from aios.services.sheets_client import get_product_sheet_range, get_sheet_id
from aios.services.upload_sessions import consume_upload

logger = logging.getLogger(__name__)

# Rows returned to the model; the full set still goes to the sheet.
MAX_RETURNED_ROWS = 200


class UploadToSheetResult(ToolResultModel):
    row_count: int | None = None
    data: list[list[str]] | None = None
    truncated: bool | None = None
    logged_to_sheet: bool | None = None


def get_upload_secret_code() -> str:
    return os.environ.get("UPLOAD_SECRET_CODE", "")


def codes_match(provided: str, expected: str) -> bool:
    """Compare confirmation codes ignoring case and surrounding whitespace."""
    return (provided or "").strip().lower() == (expected or "").strip().lower()


async def upload_to_sheet_tool(args: dict[str, Any], ctx: ToolContext) -> UploadToSheetResult:
    """Commit a staged product upload after the secret code is confirmed.

    Args:
        args: Dict with 'uploadKey' and 'secretCode'.
        ctx: Tool context.

    Returns:
        UploadToSheetResult with the rows on success, or a failure
        message the model must relay verbatim.
    """
    expected = get_upload_secret_code()
    if not expected.strip():
        return _err(UploadToSheetResult, "Upload secret code is not configured on the server.")

    if not codes_match(str(args.get("secretCode", "")), expected):
        logger.warning("Upload confirmation rejected: invalid secret code")
        return _err(UploadToSheetResult, "Invalid secret code. Upload denied.")

    upload_key = str(args.get("uploadKey", "")).strip()
    try:
        rows = await consume_upload(ctx.store, upload_key) if upload_key else None
    except Exception as e:
        logger.error("Upload session lookup failed for %s: %s", upload_key, e)
        return _err(UploadToSheetResult, f"Failed to retrieve data: {e}")
    if not rows:
        return _err(
            UploadToSheetResult,
            "Upload session expired or not found. Please upload the file again.",
        )

    logged = False
    sheet_id = get_sheet_id()
    if sheet_id and ctx.sheets is not None and len(rows) > 1:
        try:
            await ctx.sheets.append_rows(sheet_id, get_product_sheet_range(), rows[1:])
            logged = True
        except Exception as e:
            logger.warning("Product sheet append failed for %s: %s", upload_key, e)

    truncated = len(rows) > MAX_RETURNED_ROWS
    logger.info("Upload %s confirmed (%d rows)", upload_key, len(rows))
    return _ok(
        UploadToSheetResult,
        message=f"Successfully retrieved {len(rows)} rows (including header) from the uploaded file.",
        row_count=len(rows),
        data=rows[:MAX_RETURNED_ROWS],
        truncated=truncated or None,
        logged_to_sheet=logged,
    )
