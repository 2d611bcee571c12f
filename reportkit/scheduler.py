"""
scheduler.py — APScheduler job that keeps the Supabase market_data cache warm.
Runs refresh_market_cache() every MARKET_CACHE_REFRESH_MINS so the
market_overview export can be served from the cache.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from reportkit.core import config
from reportkit.services import db
from reportkit.services.providers import binance

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def market_cache_rows(coins: list[dict]) -> list[dict]:
    """Provider rows -> market_data table rows."""
    updated_at = datetime.now(timezone.utc).isoformat()
    return [
        {
            "symbol":                   c["symbol"],
            "name":                     c.get("name"),
            "category":                 c.get("category"),
            "price":                    c.get("price"),
            "price_change_24h":         c.get("priceChange24h"),
            "price_change_percent_24h": c.get("priceChangePercent24h"),
            "quote_volume_24h":         c.get("quoteVolume24h"),
            "market_cap":               c.get("marketCap"),
            "circulating_supply":       c.get("circulatingSupply"),
            "updated_at":               updated_at,
        }
        for c in coins
    ]


def refresh_market_cache() -> int:
    """Scheduled task: pull the direct market overview and upsert it."""
    client = db.get_client()
    if client is None:
        logger.info("[SCHEDULER] Supabase not configured, skipping cache refresh.")
        return 0
    try:
        coins = binance.get_market_overview()
    except Exception as exc:
        logger.error("[SCHEDULER] market overview fetch failed: %s", exc)
        return 0
    written = db.upsert_market_data(client, market_cache_rows(coins))
    logger.info("[SCHEDULER] market_data cache refreshed (%d rows).", written)
    return written


def start():
    """Start the cache warmer unless it is disabled or has nowhere to write."""
    global _scheduler
    if config.MARKET_CACHE_REFRESH_MINS <= 0 or db.get_client() is None:
        logger.info("[SCHEDULER] Market cache warmer disabled.")
        return
    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        refresh_market_cache,
        trigger=IntervalTrigger(minutes=config.MARKET_CACHE_REFRESH_MINS),
        id="refresh_market_cache",
        name="Market Data Cache Warmer",
        replace_existing=True,
        max_instances=1,
    )
    _scheduler.start()
    logger.info("[SCHEDULER] Started. Refreshing market cache every %d min.", config.MARKET_CACHE_REFRESH_MINS)


def stop():
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("[SCHEDULER] Stopped.")
    _scheduler = None
