"""
Power Query router — dashboard catalogue and live-refresh workbook download.
Routes: GET /api/powerquery/generate, POST /api/powerquery/generate
"""
from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from reportkit.core.config import PRODUCT_NAME
from reportkit.core.errors import ApiError
from reportkit.services.powerquery import (
    DASHBOARD_DESCRIPTIONS,
    REFRESH_PRESETS,
    VALID_DASHBOARDS,
    dashboard_title,
    generate_queries_for_dashboard,
    refresh_config,
)
from reportkit.services.powerquery_workbook import build_power_query_workbook
from reportkit.services.serializers import XLSX_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/powerquery", tags=["powerquery"])

MAX_LIMIT = 250
MAX_DAYS = 365


class GenerateRequest(BaseModel):
    dashboard: str = "complete-suite"
    coins: Optional[list[str]] = None
    limit: int = 100
    days: int = 30
    refreshInterval: Optional[str] = None
    apiKey: Optional[str] = None


@router.get("/generate")
def describe():
    return {
        "name":       f"{PRODUCT_NAME} Power Query Generator",
        "dashboards": [
            {"id": d, "name": dashboard_title(d), "description": DASHBOARD_DESCRIPTIONS[d]}
            for d in VALID_DASHBOARDS
        ],
        "refreshIntervals": {
            name: (f"{preset.interval_minutes} minutes" if preset.interval_minutes else "Only when you click Refresh")
            for name, preset in REFRESH_PRESETS.items()
        },
    }


@router.post("/generate")
def generate(body: GenerateRequest):
    if body.dashboard not in VALID_DASHBOARDS:
        raise ApiError(400, {
            "error": f"Invalid dashboard type. Valid options: {', '.join(VALID_DASHBOARDS)}",
        })

    limit = max(1, min(body.limit, MAX_LIMIT))
    days = max(1, min(body.days, MAX_DAYS))
    queries = generate_queries_for_dashboard(body.dashboard, body.coins, limit=limit, days=days)
    content = build_power_query_workbook(
        body.dashboard, queries, refresh_config(body.refreshInterval), api_key=body.apiKey,
    )

    stamp = datetime.now(timezone.utc).date().isoformat()
    filename = f"{PRODUCT_NAME}_{body.dashboard}_{stamp}.xlsx"
    logger.info("[POWERQUERY] %s workbook with %d queries", body.dashboard, len(queries))
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control":       "no-cache",
        },
    )
