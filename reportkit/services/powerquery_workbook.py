"""
powerquery_workbook.py — assemble the live-refresh workbook: a Settings sheet
holding the user's CoinGecko key (named range CRK_ApiKey), a Power Query Setup
sheet with instructions, and one sheet per query carrying its M code.
"""
from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.workbook.defined_name import DefinedName

from reportkit.core.config import PRODUCT_NAME
from reportkit.services.powerquery import (
    API_KEY_NAME,
    REFRESH_PRESETS,
    PowerQueryDefinition,
    RefreshConfig,
    dashboard_title,
)

PURPLE = "FF8B5CF6"
GREEN  = "FF059669"
GREY   = "FF6B7280"
MUTED  = "FF9CA3AF"
BLUE   = "FF3B82F6"

API_KEY_CELL = "B6"
API_KEY_PLACEHOLDER = "PASTE_YOUR_API_KEY_HERE"
HELP_URL = "https://cryptoreportkit.com/learn"
BYOK_NOTICE = (
    "Bring your own key: queries call CoinGecko directly with the key in Settings!B6. "
    "Your key and your data never pass through our servers."
)


def _solid(argb: str) -> PatternFill:
    return PatternFill("solid", fgColor=argb)


def _refresh_lines(refresh: RefreshConfig) -> list[str]:
    interval = f"{refresh.interval_minutes} minutes" if refresh.interval_minutes > 0 else "Manual only"
    return [
        f"   Refresh interval: {interval}",
        f"   Refresh on file open: {'Yes' if refresh.refresh_on_open else 'No'}",
        f"   Background refresh: {'Yes' if refresh.background_refresh else 'No'}",
        "   To change: Right-click any data table > Table > External Data Properties",
    ]


# ---------------------------------------------------------------------------
# Sheets
# ---------------------------------------------------------------------------

def add_settings_sheet(workbook: Workbook, dashboard: str, api_key: Optional[str] = None):
    """Settings sheet with the API key cell bound to the CRK_ApiKey named range."""
    ws = workbook.create_sheet("Settings")
    ws.sheet_properties.tabColor = PURPLE
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 35
    ws.column_dimensions["C"].width = 50

    ws.merge_cells("B2:C2")
    ws["B2"] = PRODUCT_NAME.upper()
    ws["B2"].font = Font(bold=True, size=24, color=PURPLE)
    ws.row_dimensions[2].height = 40
    ws["B3"] = "Live cryptocurrency data for Excel"
    ws["B3"].font = Font(size=12, color=MUTED)

    ws["B5"] = "YOUR COINGECKO API KEY"
    ws["B5"].font = Font(bold=True, size=14, color=PURPLE)

    edge = Side(style="medium", color=PURPLE)
    key_cell = ws[API_KEY_CELL]
    key_cell.value = api_key or API_KEY_PLACEHOLDER
    key_cell.fill = _solid("FFFFF3CD")
    key_cell.border = Border(top=edge, bottom=edge, left=edge, right=edge)
    key_cell.font = Font(size=12)
    ws["C6"] = "<- Paste your key here"
    ws["C6"].font = Font(italic=True, color=MUTED)

    ws["B8"] = "TEMPLATE INFO"
    ws["B8"].font = Font(bold=True, size=12, color=PURPLE)
    ws["B9"] = "Dashboard:"
    ws["C9"] = dashboard_title(dashboard)
    ws["C9"].font = Font(bold=True, color=PURPLE)
    ws["B10"] = "Generated:"
    ws["C10"] = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    workbook.defined_names[API_KEY_NAME] = DefinedName(
        API_KEY_NAME, attr_text=f"'Settings'!${API_KEY_CELL[0]}${API_KEY_CELL[1:]}"
    )
    return ws


def add_power_query_setup_sheet(
    workbook: Workbook,
    queries: list[PowerQueryDefinition],
    refresh_config: Optional[RefreshConfig] = None,
):
    """Human-readable setup instructions plus the list of queries in this workbook."""
    refresh = refresh_config or REFRESH_PRESETS["hourly"]
    ws = workbook.create_sheet("Power Query Setup")
    ws.sheet_properties.tabColor = PURPLE
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 40
    ws.column_dimensions["C"].width = 60

    ws.merge_cells("B2:C2")
    header = ws["B2"]
    header.value = "POWER QUERY LIVE DATA: READY TO USE"
    header.font = Font(bold=True, size=18, color="FFFFFFFF")
    header.fill = _solid(PURPLE)
    header.alignment = Alignment(horizontal="center", vertical="center")
    ws.row_dimensions[2].height = 45

    ws.merge_cells("B3:C3")
    notice = ws["B3"]
    notice.value = BYOK_NOTICE
    notice.font = Font(bold=True, size=10, color=GREEN)
    notice.fill = _solid("FFF0FDF4")

    instructions = [
        "HOW TO GET LIVE DATA:",
        "",
        f"1. Go to the Settings sheet and paste your CoinGecko API key in cell {API_KEY_CELL}",
        "2. Data > Get Data > From Other Sources > Blank Query, then open the Advanced Editor",
        "3. Paste the M code from the query's sheet and name the query after the sheet",
        '4. Close & Load, then click "Refresh All" (Ctrl+Alt+F5) whenever you want fresh data',
        "",
        "FIRST TIME PRIVACY PROMPT:",
        '   Excel may ask about Privacy Levels. Choose "Public" for all sources.',
        '   OR: File > Options > Query Options > Privacy > "Always ignore Privacy Level settings"',
        "",
        "REFRESH SETTINGS:",
        *_refresh_lines(refresh),
        "",
        "GET A FREE API KEY:",
        "   Visit coingecko.com/en/api/pricing",
        "   The free Demo plan is plenty for personal use",
    ]
    for offset, text in enumerate(instructions):
        cell = ws.cell(row=5 + offset, column=2, value=text)
        if text.endswith(":") and not text.startswith(" "):
            cell.font = Font(bold=True, color=PURPLE)
        else:
            cell.font = Font(color=GREY)

    row = 5 + len(instructions) + 2
    ws.cell(row=row, column=2, value="QUERIES IN THIS WORKBOOK:").font = Font(bold=True, color=PURPLE)
    row += 1
    for index, query in enumerate(queries, start=1):
        ws.cell(row=row, column=2, value=f"  {index}. {query.name}").font = Font(bold=True, size=11, color=GREEN)
        ws.cell(row=row, column=3, value=query.description).font = Font(italic=True, color=MUTED)
        row += 1

    row += 1
    ws.cell(row=row, column=2, value="NEED HELP?").font = Font(bold=True)
    ws.cell(row=row, column=3, value=HELP_URL).font = Font(color=BLUE, underline="single")
    return ws


def add_query_sheet(workbook: Workbook, query: PowerQueryDefinition):
    """One sheet per query: its declared output columns and the M code, one line per row."""
    ws = workbook.create_sheet(query.name[:31])
    ws.column_dimensions["A"].width = 120

    ws["A1"] = query.name
    ws["A1"].font = Font(bold=True, size=14, color=PURPLE)
    ws["A2"] = query.description
    ws["A2"].font = Font(italic=True, color=GREY)

    ws["A4"] = "OUTPUT COLUMNS"
    ws["A4"].font = Font(bold=True, color=PURPLE)
    for col, name in enumerate(query.columns, start=1):
        ws.cell(row=5, column=col, value=name).font = Font(bold=True)

    ws["A7"] = "M CODE"
    ws["A7"].font = Font(bold=True, color=PURPLE)
    for offset, line in enumerate(query.code.splitlines()):
        ws.cell(row=8 + offset, column=1, value=line).font = Font(name="Consolas", size=10)
    return ws


# ---------------------------------------------------------------------------
# Workbook
# ---------------------------------------------------------------------------

def build_power_query_workbook(
    dashboard: str,
    queries: list[PowerQueryDefinition],
    refresh_config: Optional[RefreshConfig] = None,
    api_key: Optional[str] = None,
) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    add_settings_sheet(wb, dashboard, api_key)
    add_power_query_setup_sheet(wb, queries, refresh_config)
    for query in queries:
        add_query_sheet(wb, query)

    stream = io.BytesIO()
    wb.save(stream)
    return stream.getvalue()
