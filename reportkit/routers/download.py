"""
Download router — the data-export pipeline.
Route: GET /api/download

Order of checks: format, rate limit, category, feature gate, parameters and
field selection. Only then is the category's single upstream fetch made.
"""
from __future__ import annotations

import io
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from reportkit.core import config
from reportkit.core.errors import ApiError, export_failed, feature_disabled, rate_limited
from reportkit.services import serializers
from reportkit.services.categories import CATEGORIES, run_category
from reportkit.services.events import log_download_event
from reportkit.services.features import is_download_category_enabled
from reportkit.services.fields import apply_field_selection, select_fields
from reportkit.services.rate_limit import enforce_min_interval, tier_min_interval_ms
from reportkit.services.tiers import resolve_tier_from_bearer_token
from reportkit.services.validation import (
    parse_bool,
    parse_category,
    parse_export_request,
    parse_format,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["download"])

IQY_CACHE_CONTROL   = "public, s-maxage=86400"
EXCEL_CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=300"


def client_ip(request: Request) -> str:
    """Rate-limit identity. Forwarding headers count only when TRUST_PROXY_HEADERS is on."""
    if config.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.headers.get("x-real-ip"):
            return request.headers["x-real-ip"]
    return request.client.host if request.client else "unknown"


def excel_rate_key(tier: str, ip: str, category: str, params) -> str:
    """Distinct live-refresh query shapes are throttled independently."""
    parts = [
        "excel", tier, ip, category,
        params.get("fields") or "",
        params.get("symbols") or "",
        params.get("symbol") or "",
        params.get("interval") or "",
        params.get("limit") or "",
    ]
    return "|".join(parts)


def iqy_target_url(request: Request) -> str:
    """Same endpoint, as live CSV: format=csv, excel=true, preview removed."""
    url = request.url.remove_query_params("preview").include_query_params(format="csv", excel="true")
    if config.PUBLIC_BASE_URL:
        return f"{config.PUBLIC_BASE_URL}{url.path}?{url.query}"
    return str(url)


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _render(
    fmt: str,
    rows: list[dict],
    columns: list[str],
    metadata: dict,
    filename: str,
    excel: bool,
):
    headers = {"Cache-Control": EXCEL_CACHE_CONTROL} if excel else {}
    if fmt == "json":
        return JSONResponse(serializers.json_body(rows, metadata), headers=headers)
    if fmt == "csv":
        return StreamingResponse(
            iter([serializers.to_csv(rows, columns)]),
            media_type="text/csv",
            headers={**headers, **_attachment(f"{filename}.csv")},
        )
    return StreamingResponse(
        io.BytesIO(serializers.to_xlsx(rows, columns, metadata)),
        media_type=serializers.XLSX_MEDIA_TYPE,
        headers=_attachment(f"{filename}.xlsx"),
    )


@router.get("/download")
def download(request: Request, background_tasks: BackgroundTasks):
    """Export one category as xlsx, csv, json or an .iqy web-query pointer."""
    params = request.query_params
    fmt = parse_format(params.get("format"))
    raw_category = params.get("category") or config.DEFAULT_CATEGORY
    excel = parse_bool(params.get("excel"))
    ip = client_ip(request)

    tier: Optional[str] = None
    if excel:
        tier = resolve_tier_from_bearer_token(request)
        min_interval_ms = tier_min_interval_ms(tier)
        key = excel_rate_key(tier, ip, raw_category, params)
    else:
        min_interval_ms = config.DEFAULT_MIN_INTERVAL_MS
        key = f"download|{ip}|{raw_category}|{fmt}"

    result = enforce_min_interval(key, min_interval_ms)
    if not result.ok:
        raise rate_limited(result.retry_after_seconds, min_interval_ms, tier)

    category_id = parse_category(params.get("category"), CATEGORIES)
    if not is_download_category_enabled(category_id):
        logger.info("[DOWNLOAD] %s refused: feature disabled", category_id)
        raise feature_disabled(category_id)

    category = CATEGORIES[category_id]
    req = parse_export_request(params, category_id, fmt)
    fields = select_fields(req.fields, category.fields)

    if fmt == "iqy":
        filename = f"{category.filename(req)}.iqy"
        background_tasks.add_task(
            log_download_event, category_id, fmt, filename, req.filters(),
            None, ip, request.headers.get("user-agent"),
        )
        return PlainTextResponse(
            serializers.to_iqy(iqy_target_url(request)),
            headers={"Cache-Control": IQY_CACHE_CONTROL, **_attachment(filename)},
        )

    try:
        rows = apply_field_selection(run_category(category, req), fields)
        columns = fields or list(category.fields)
        metadata = serializers.build_metadata(category_id, category.source, len(rows), fields, excel)
        filename = category.filename(req)

        if req.preview:
            response = JSONResponse(serializers.preview_body(rows, category_id, metadata))
        else:
            response = _render(fmt, rows, columns, metadata, filename, excel)
    except ApiError:
        raise
    except Exception:
        logger.exception("[DOWNLOAD] %s export failed", category_id)
        raise export_failed(category_id)

    logger.info("[DOWNLOAD] %s as %s: %d rows", category_id, fmt, len(rows))
    background_tasks.add_task(
        log_download_event, category_id, fmt, filename, req.filters(),
        len(rows), ip, request.headers.get("user-agent"),
    )
    return response
