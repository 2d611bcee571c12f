"""
db.py — Supabase client wrapper for identity, subscription tiers, the
market_data cache, download_history and the shared rate_limits table.
"""
from __future__ import annotations

import logging
from typing import Optional

from supabase import Client, create_client

from reportkit.core import config

logger = logging.getLogger(__name__)

_client: Optional[Client] = None

_CACHE_SORT_COLUMNS = {
    "market_cap":   "market_cap",
    "volume":       "quote_volume_24h",
    "price_change": "price_change_percent_24h",
    "price":        "price",
}


def get_client() -> Optional[Client]:
    """Lazily create the shared client. None when Supabase is not configured."""
    global _client
    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        return None
    if _client is None:
        _client = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
    return _client


# ---------------------------------------------------------------------------
# Identity / subscriptions
# ---------------------------------------------------------------------------

def get_user_id(client: Client, token: str) -> Optional[str]:
    """Validate a bearer JWT and return the user id it belongs to."""
    try:
        res = client.auth.get_user(token)
        user = getattr(res, "user", None)
        if user is not None:
            return user.id
    except Exception as exc:
        logger.error("get_user_id failed: %s", exc)
    return None


def get_subscription_tier(client: Client, user_id: str) -> Optional[str]:
    try:
        res = (
            client.table("user_profiles")
            .select("subscription_tier")
            .eq("id", user_id)
            .execute()
        )
        if res.data:
            return res.data[0].get("subscription_tier")
    except Exception as exc:
        logger.error("get_subscription_tier failed: %s", exc)
    return None


# ---------------------------------------------------------------------------
# market_data cache
# ---------------------------------------------------------------------------

def get_market_data_cache(
    client: Optional[Client],
    symbols: Optional[list[str]] = None,
    category: Optional[str] = None,
    sort_by: str = "market_cap",
    min_market_cap: float = 0,
) -> list[dict]:
    """
    Cached market rows for the market_overview export.
    Errors propagate: the caller treats any failure as a cache miss.
    """
    if client is None:
        return []
    query = client.table("market_data").select("*")
    if symbols:
        query = query.in_("symbol", symbols)
    if category:
        query = query.eq("category", category)
    if min_market_cap:
        query = query.gte("market_cap", min_market_cap)
    query = query.order(_CACHE_SORT_COLUMNS.get(sort_by, "market_cap"), desc=True)
    res = query.execute()
    return res.data or []


def upsert_market_data(client: Client, rows: list[dict]) -> int:
    """Upsert market rows keyed on symbol. Returns number of rows written."""
    if not rows:
        return 0
    try:
        res = client.table("market_data").upsert(rows, on_conflict="symbol").execute()
        count = len(res.data) if res.data else 0
        logger.info("Upserted %d market_data rows", count)
        return count
    except Exception as exc:
        logger.error("upsert_market_data failed: %s", exc)
        return 0


# ---------------------------------------------------------------------------
# download_history
# ---------------------------------------------------------------------------

def insert_download_event(client: Client, event: dict) -> bool:
    try:
        client.table("download_history").insert(event).execute()
        return True
    except Exception as exc:
        logger.error("insert_download_event failed: %s", exc)
        return False


# ---------------------------------------------------------------------------
# rate_limits
# ---------------------------------------------------------------------------

def get_rate_limit_timestamp(client: Client, key: str) -> Optional[int]:
    try:
        res = client.table("rate_limits").select("last_request_ms").eq("key", key).execute()
        if res.data:
            return int(res.data[0]["last_request_ms"])
    except Exception as exc:
        logger.error("get_rate_limit_timestamp failed: %s", exc)
    return None


def set_rate_limit_timestamp(client: Client, key: str, timestamp_ms: int) -> bool:
    try:
        client.table("rate_limits").upsert(
            {"key": key, "last_request_ms": timestamp_ms}, on_conflict="key"
        ).execute()
        return True
    except Exception as exc:
        logger.error("set_rate_limit_timestamp failed: %s", exc)
        return False
