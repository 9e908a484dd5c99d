"""Tabular product file parsing for chat uploads.

Normalizes CSV, JSON, XLSX and XLS payloads into a list of string rows
whose first row is the header. Uses openpyxl for .xlsx and
python-calamine for legacy .xls, first sheet only, blank rows dropped.
"""

import csv
import hashlib
import io
import json
import logging
from dataclasses import dataclass
from typing import Any

from openpyxl import load_workbook
from python_calamine import CalamineWorkbook

from aios.errors import ProductFileError

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME = "application/vnd.ms-excel"

PRODUCT_MIME_TYPES = {
    "text/csv": "csv",
    "application/json": "json",
    XLSX_MIME: "xlsx",
    XLS_MIME: "xls",
}
PRODUCT_EXTENSIONS = {"csv", "json", "xlsx", "xls"}


@dataclass
class ProductTable:
    """Parsed product file. ``rows[0]`` is the header row."""

    rows: list[list[str]]

    @property
    def columns(self) -> list[str]:
        return self.rows[0] if self.rows else []

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _extension(name: str) -> str:
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def detect_format(name: str, mime_type: str | None) -> str | None:
    """Return 'csv', 'json', 'xlsx' or 'xls', or None for other files.

    The file extension wins over the declared MIME type, since browsers
    report spreadsheets inconsistently.
    """
    ext = _extension(name or "")
    if ext in PRODUCT_EXTENSIONS:
        return ext
    mime = (mime_type or "").split(";")[0].strip().lower()
    return PRODUCT_MIME_TYPES.get(mime)


def is_product_file(name: str, mime_type: str | None) -> bool:
    """Return True when the attachment looks like a tabular product file."""
    return detect_format(name, mime_type) is not None


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _drop_blank(rows: list[list[str]]) -> list[list[str]]:
    return [row for row in rows if any(cell.strip() for cell in row)]


def _parse_csv(data: bytes) -> list[list[str]]:
    text = data.decode("utf-8-sig", errors="replace")
    try:
        rows = [[cell.strip() for cell in row] for row in csv.reader(io.StringIO(text))]
    except csv.Error as e:
        raise ProductFileError(f"Invalid CSV file: {e}") from e
    return _drop_blank(rows)


def _parse_json(data: bytes) -> list[list[str]]:
    try:
        payload = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProductFileError(f"Invalid JSON file: {e}") from e

    if isinstance(payload, dict):
        records = [payload]
    elif isinstance(payload, list) and payload and all(isinstance(r, dict) for r in payload):
        records = payload
    else:
        raise ProductFileError("JSON file must contain an object or an array of objects.")

    header = list(records[0].keys())
    rows = [header]
    for record in records:
        rows.append([_cell_to_str(record.get(key)) for key in header])
    return rows


def _parse_xlsx(data: bytes) -> list[list[str]]:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ProductFileError(f"Could not read Excel file: {e}") from e
    try:
        ws = wb.worksheets[0]
        rows = [[_cell_to_str(v) for v in row] for row in ws.iter_rows(values_only=True)]
    except Exception as e:
        raise ProductFileError(f"Could not read Excel file: {e}") from e
    finally:
        wb.close()
    return _drop_blank(rows)


def _parse_xls(data: bytes) -> list[list[str]]:
    try:
        wb = CalamineWorkbook.from_filelike(io.BytesIO(data))
        sheet = wb.get_sheet_by_index(0).to_python()
    except Exception as e:
        raise ProductFileError(f"Could not read Excel file: {e}") from e
    return _drop_blank([[_cell_to_str(v) for v in row] for row in sheet])


_PARSERS = {
    "csv": _parse_csv,
    "json": _parse_json,
    "xlsx": _parse_xlsx,
    "xls": _parse_xls,
}


def parse_product_file(name: str, mime_type: str | None, data: bytes) -> ProductTable:
    """Parse a product file into a normalized table.

    Args:
        name: Original filename (extension is used for format detection).
        mime_type: Declared MIME type, may be empty.
        data: Raw file bytes.

    Returns:
        ProductTable with at least a header row.

    Raises:
        ProductFileError: If the format is unsupported or the file is empty
            or malformed.
    """
    fmt = detect_format(name, mime_type)
    if fmt is None:
        raise ProductFileError(f"Unsupported product file: {name}")

    rows = _PARSERS[fmt](data)
    if not rows:
        raise ProductFileError(f"{name} contains no rows.")

    width = len(rows[0])
    # Ragged rows are padded/truncated to the header width.
    rows = [(row + [""] * width)[:width] for row in rows]
    logger.info("Parsed product file %s (%s): %d rows, %d columns", name, fmt, len(rows), width)
    return ProductTable(rows=rows)


def compute_rows_hash(rows: list[list[str]]) -> str:
    """Deterministic SHA-256 of the parsed rows."""
    canonical = json.dumps(rows, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def render_preview(rows: list[list[str]], limit: int = 4) -> str:
    """Render the first ``limit`` rows as pipe-joined lines."""
    return "\n".join(" | ".join(row) for row in rows[:limit])
