"""
errors.py — structured API errors.

Every refusal the export surface produces carries a JSON body that clients
can branch on, so errors are raised as ApiError and rendered verbatim by the
handler registered in main.py.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    def __init__(self, status_code: int, payload: dict, headers: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=payload.get("error"), headers=headers)
        self.payload = payload


def validation_error(param: str, value, allowed: Iterable) -> ApiError:
    allowed_text = ", ".join(str(a) for a in allowed)
    return ApiError(400, {"error": f"Invalid {param} '{value}'. Allowed values: {allowed_text}"})


def rate_limited(
    retry_after_seconds: int,
    min_interval_ms: int,
    tier: Optional[str] = None,
) -> ApiError:
    min_refresh_seconds = max(1, math.ceil(min_interval_ms / 1000))
    payload = {
        "error": "Too many requests. Please wait before refreshing this export again.",
        "retryAfterSeconds": retry_after_seconds,
    }
    if tier is not None:
        payload["tier"] = tier
        payload["minRefreshSeconds"] = min_refresh_seconds
    headers = {
        "Retry-After": str(retry_after_seconds),
        "X-Min-Refresh-Seconds": str(min_refresh_seconds),
        "Cache-Control": "public, s-maxage=5",
    }
    return ApiError(429, payload, headers=headers)


def feature_disabled(category: str) -> ApiError:
    return ApiError(
        503,
        {
            "error": f"The '{category}' export is temporarily disabled.",
            "category": category,
            "disabled": True,
        },
    )


def export_failed(category: str) -> ApiError:
    return ApiError(
        500,
        {"error": f"Failed to generate the '{category}' export. Please try again or choose a different category."},
    )
