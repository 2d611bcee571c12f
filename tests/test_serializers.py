# tests/test_serializers.py
from __future__ import annotations

import io

from openpyxl import load_workbook

from reportkit.services import serializers

ROWS = [
    {"symbol": "BTC", "price": 50_000.0, "note": "a, quoted \"value\""},
    {"symbol": "ETH", "price": 3_000.0, "note": None},
]
COLUMNS = ["symbol", "price", "note"]


def test_metadata_optional_keys():
    meta = serializers.build_metadata("fear_greed", "Alternative.me", 1)
    assert set(meta) == {"category", "total", "generatedAt", "source"}

    meta = serializers.build_metadata("fear_greed", "Alternative.me", 1, ["value"], excel=True)
    assert meta["fields"] == ["value"]
    assert meta["excel"] is True


def test_csv_header_and_quoting():
    text = serializers.to_csv(ROWS, COLUMNS)
    lines = text.splitlines()
    assert lines[0] == "symbol,price,note"
    assert lines[1] == 'BTC,50000.0,"a, quoted ""value"""'
    assert lines[2] == "ETH,3000.0,"


def test_empty_csv_keeps_declared_header():
    assert serializers.to_csv([], COLUMNS).strip() == "symbol,price,note"


def test_xlsx_sheets_and_widths():
    meta = serializers.build_metadata("market_overview", "Binance", 2)
    wb = load_workbook(io.BytesIO(serializers.to_xlsx(ROWS, COLUMNS, meta)))
    assert wb.sheetnames == ["Data", "Metadata"]

    data = wb["Data"]
    assert [c.value for c in data[1]] == COLUMNS
    assert data["A2"].value == "BTC"
    assert data["B3"].value == 3000.0
    for letter in ("A", "B", "C"):
        assert data.column_dimensions[letter].width >= serializers.MIN_COLUMN_WIDTH

    meta_sheet = wb["Metadata"]
    assert [c.value for c in meta_sheet[1]] == ["Property", "Value"]
    assert meta_sheet["A2"].value == "Category"
    assert meta_sheet["B2"].value == "market_overview"


def test_empty_xlsx_keeps_declared_header():
    meta = serializers.build_metadata("market_overview", "Binance", 0)
    wb = load_workbook(io.BytesIO(serializers.to_xlsx([], COLUMNS, meta)))
    assert [c.value for c in wb["Data"][1]] == COLUMNS
    assert wb["Data"].max_row == 1


def test_preview_truncates_but_reports_total():
    rows = [{"i": i} for i in range(25)]
    body = serializers.preview_body(rows, "trades", {"total": 25})
    assert len(body["data"]) == 10
    assert body["total"] == 25
    assert body["preview"] is True


def test_iqy_layout():
    assert serializers.to_iqy("https://x.test/api/download?format=csv") == (
        "WEB\n1\nhttps://x.test/api/download?format=csv\n"
    )


def test_xlsx_keeps_formula_like_text_as_plain_strings():
    title = '=HYPERLINK("http://evil.example","click")'
    rows = [{"title": title, "score": 1.0}, {"title": "=1+1", "score": -1.0}]
    meta = serializers.build_metadata("sentiment_reddit", "Reddit", 2)
    wb = load_workbook(io.BytesIO(serializers.to_xlsx(rows, ["title", "score"], meta)))

    data = wb["Data"]
    assert data["A2"].data_type == "s"
    assert data["A2"].value == title
    assert data["A3"].data_type == "s"
    assert data["A3"].value == "=1+1"
    assert data["B3"].value == -1.0
