"""Tests for product file parsing."""

import io
import json

import pytest
from openpyxl import Workbook

from aios.errors import ProductFileError
from aios.services.product_files import (
    XLSX_MIME,
    compute_rows_hash,
    detect_format,
    is_product_file,
    parse_product_file,
    render_preview,
)


def _xlsx_bytes(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestFormatDetection:
    """Extension and MIME based detection."""

    @pytest.mark.parametrize(
        "name,mime,expected",
        [
            ("products.csv", "", "csv"),
            ("products.JSON", "application/octet-stream", "json"),
            ("sheet.xlsx", "", "xlsx"),
            ("legacy.xls", "", "xls"),
            ("upload", "text/csv", "csv"),
            ("upload", XLSX_MIME, "xlsx"),
            ("photo.png", "image/png", None),
        ],
    )
    def test_detect_format(self, name, mime, expected):
        assert detect_format(name, mime) == expected

    def test_is_product_file_rejects_images(self):
        assert is_product_file("photo.jpg", "image/jpeg") is False
        assert is_product_file("items.csv", "text/csv") is True


class TestCsv:
    def test_header_and_rows(self):
        table = parse_product_file(
            "products.csv", "text/csv", b"SKU,Name,Price,Unit\nW1,Widget,9.99,ea\n"
        )
        assert table.columns == ["SKU", "Name", "Price", "Unit"]
        assert table.row_count == 2
        assert table.rows[1] == ["W1", "Widget", "9.99", "ea"]

    def test_bom_and_blank_rows(self):
        data = "\ufeffSKU,Name\n\nA1,Apple\n , \n".encode("utf-8")
        table = parse_product_file("p.csv", "text/csv", data)
        assert table.rows == [["SKU", "Name"], ["A1", "Apple"]]

    def test_ragged_rows_padded_to_header(self):
        table = parse_product_file("p.csv", "", b"SKU,Name,Price\nA1\nB2,Bolt,1,extra\n")
        assert table.rows[1] == ["A1", "", ""]
        assert table.rows[2] == ["B2", "Bolt", "1"]

    def test_empty_file_raises(self):
        with pytest.raises(ProductFileError):
            parse_product_file("p.csv", "text/csv", b"")

    def test_oversized_field_raises_product_file_error(self):
        with pytest.raises(ProductFileError, match="Invalid CSV file"):
            parse_product_file("p.csv", "text/csv", b"SKU,Name\nW1," + b"x" * 200_000)


class TestJson:
    def test_array_of_objects(self):
        data = json.dumps(
            [{"sku": "A1", "price": 2.5, "tags": ["x"]}, {"sku": "B2", "price": None}]
        ).encode()
        table = parse_product_file("p.json", "application/json", data)
        assert table.columns == ["sku", "price", "tags"]
        assert table.rows[1] == ["A1", "2.5", '["x"]']
        assert table.rows[2][:2] == ["B2", ""]

    def test_single_object(self):
        table = parse_product_file("p.json", "", json.dumps({"sku": "A1", "name": "Apple"}).encode())
        assert table.rows == [["sku", "name"], ["A1", "Apple"]]

    def test_invalid_json_raises(self):
        with pytest.raises(ProductFileError):
            parse_product_file("p.json", "", b"{not json")


class TestXlsx:
    def test_first_sheet_parsed(self):
        data = _xlsx_bytes([["SKU", "Price"], ["W1", 9.99], [None, None], ["W2", 3]])
        table = parse_product_file("p.xlsx", XLSX_MIME, data)
        assert table.columns == ["SKU", "Price"]
        assert table.row_count == 3
        assert table.rows[1] == ["W1", "9.99"]


class TestHelpers:
    def test_hash_is_deterministic(self):
        rows = [["SKU"], ["A1"]]
        assert compute_rows_hash(rows) == compute_rows_hash([["SKU"], ["A1"]])
        assert compute_rows_hash(rows) != compute_rows_hash([["SKU"], ["A2"]])

    def test_preview_limits_rows(self):
        rows = [["h1", "h2"]] + [[str(i), "x"] for i in range(10)]
        preview = render_preview(rows)
        assert preview.splitlines() == ["h1 | h2", "0 | x", "1 | x", "2 | x"]
