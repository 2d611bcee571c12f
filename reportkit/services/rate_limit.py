"""
rate_limit.py — minimum-interval-per-key throttle.

The last accepted request time per key lives behind a small store interface:
process memory by default, or the Supabase rate_limits table when several
instances share traffic. Read-then-write is not atomic; two simultaneous
requests for one key may both pass.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from reportkit import store
from reportkit.core import config
from reportkit.services import db

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    ok: bool
    retry_after_seconds: int = 0


class MemoryIntervalStore:
    def get(self, key: str) -> Optional[int]:
        return store.get_last_request(key)

    def set(self, key: str, timestamp_ms: int) -> None:
        store.set_last_request(key, timestamp_ms)


class SupabaseIntervalStore:
    def __init__(self, client):
        self.client = client

    def get(self, key: str) -> Optional[int]:
        return db.get_rate_limit_timestamp(self.client, key)

    def set(self, key: str, timestamp_ms: int) -> None:
        db.set_rate_limit_timestamp(self.client, key, timestamp_ms)


def get_interval_store():
    if config.RATE_LIMIT_BACKEND == "supabase":
        client = db.get_client()
        if client is not None:
            return SupabaseIntervalStore(client)
        logger.warning("[RATE] supabase backend requested but not configured; using memory")
    return MemoryIntervalStore()


def now_ms() -> int:
    return int(time.time() * 1000)


def enforce_min_interval(
    key: str,
    min_interval_ms: int,
    now: Optional[int] = None,
    interval_store=None,
) -> RateLimitResult:
    """
    Accept and record the request when at least `min_interval_ms` has passed
    since the last accepted one for `key`. Rejections do not reset the clock.
    """
    interval_store = interval_store or get_interval_store()
    now = now if now is not None else now_ms()
    last = interval_store.get(key)
    if last is not None:
        elapsed = now - last
        if elapsed < min_interval_ms:
            retry = max(1, math.ceil((min_interval_ms - elapsed) / 1000))
            logger.info("[RATE] %s throttled, retry in %ds", key, retry)
            return RateLimitResult(ok=False, retry_after_seconds=retry)
    interval_store.set(key, now)
    return RateLimitResult(ok=True)


def tier_min_interval_ms(tier: str) -> int:
    return config.TIER_REFRESH_INTERVAL_MS.get(tier, config.TIER_REFRESH_INTERVAL_MS["free"])
