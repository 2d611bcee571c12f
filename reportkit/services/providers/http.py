"""
http.py — shared requests helpers for upstream providers.
Every call carries the configured timeout and raises on non-2xx responses.
"""
from __future__ import annotations

from typing import Optional

import requests

from reportkit.core.config import HTTP_TIMEOUT_SECONDS, USER_AGENT

_HEADERS = {"Accept": "application/json", "User-Agent": USER_AGENT}


def get_json(url: str, params: Optional[dict] = None, headers: Optional[dict] = None):
    response = requests.get(
        url,
        params=params,
        headers={**_HEADERS, **(headers or {})},
        timeout=HTTP_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    return response.json()


def post_json(url: str, payload: dict, headers: Optional[dict] = None):
    response = requests.post(
        url,
        json=payload,
        headers={**_HEADERS, "Content-Type": "application/json", **(headers or {})},
        timeout=HTTP_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    return response.json()


def to_float(value, default: float = 0.0) -> float:
    """Coerce provider numbers (often strings) to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
