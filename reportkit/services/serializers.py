"""
serializers.py — render shaped rows as JSON bodies, CSV text, XLSX workbooks
or .iqy Excel web-query pointer files.
"""
from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Optional

import pandas as pd
from openpyxl.utils import get_column_letter

from reportkit.core.config import PREVIEW_ROW_LIMIT, PRODUCT_NAME

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MIN_COLUMN_WIDTH = 15
MAX_COLUMN_WIDTH = 60


def build_metadata(
    category: str,
    source: str,
    total: int,
    fields: Optional[list[str]] = None,
    excel: bool = False,
) -> dict:
    metadata = {
        "category":    category,
        "total":       total,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "source":      source,
    }
    if fields:
        metadata["fields"] = fields
    if excel:
        metadata["excel"] = True
    return metadata


def json_body(rows: list[dict], metadata: dict) -> dict:
    return {"data": rows, "metadata": metadata}


def preview_body(rows: list[dict], category: str, metadata: dict) -> dict:
    """At most PREVIEW_ROW_LIMIT rows; `total` is the untruncated count."""
    return {
        "data":     rows[:PREVIEW_ROW_LIMIT],
        "total":    len(rows),
        "category": category,
        "preview":  True,
        "metadata": metadata,
    }


def _frame(rows: list[dict], columns: list[str]) -> pd.DataFrame:
    """First row's keys drive the header; the declared columns cover an empty export."""
    header = list(rows[0].keys()) if rows else list(columns)
    return pd.DataFrame(rows, columns=header)


def to_csv(rows: list[dict], columns: list[str]) -> str:
    buffer = io.StringIO()
    _frame(rows, columns).to_csv(buffer, index=False)
    return buffer.getvalue()


def _autosize(worksheet, df: pd.DataFrame) -> None:
    for idx, col in enumerate(df.columns, start=1):
        longest = max([len(str(col))] + [len(str(v)) for v in df[col].tolist() if v is not None])
        width = min(max(longest + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)
        worksheet.column_dimensions[get_column_letter(idx)].width = width


def _cells_as_text(worksheet) -> None:
    """Upstream text starting with "=" is stored as a string, never a live formula."""
    for row in worksheet.iter_rows():
        for cell in row:
            if cell.data_type == "f" and isinstance(cell.value, str):
                cell.data_type = "s"


def to_xlsx(rows: list[dict], columns: list[str], metadata: dict) -> bytes:
    """Two sheets: Data (auto-sized columns) and Metadata."""
    df = _frame(rows, columns)
    meta = pd.DataFrame(
        [
            ("Category", metadata.get("category")),
            ("Total Rows", metadata.get("total")),
            ("Generated At", metadata.get("generatedAt")),
            ("Source", metadata.get("source")),
            ("Powered By", PRODUCT_NAME),
        ],
        columns=["Property", "Value"],
    )

    stream = io.BytesIO()
    with pd.ExcelWriter(stream, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Data", index=False)
        meta.to_excel(writer, sheet_name="Metadata", index=False)
        _cells_as_text(writer.sheets["Data"])
        _autosize(writer.sheets["Data"], df)
        _autosize(writer.sheets["Metadata"], meta)
    return stream.getvalue()


def to_iqy(url: str) -> str:
    return f"WEB\n1\n{url}\n"
