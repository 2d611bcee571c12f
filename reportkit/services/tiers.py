"""
tiers.py — resolve a caller's subscription tier from its bearer token.

Any failure (no header, Supabase unconfigured, bad token, missing profile,
lookup error) resolves to 'free'. This never raises.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from reportkit.core.config import SUBSCRIPTION_TIERS
from reportkit.services import db

logger = logging.getLogger(__name__)

DEFAULT_TIER = "free"


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_tier_from_bearer_token(request: Request) -> str:
    token = bearer_token(request)
    if not token:
        return DEFAULT_TIER
    try:
        client = db.get_client()
        if client is None:
            return DEFAULT_TIER
        user_id = db.get_user_id(client, token)
        if not user_id:
            return DEFAULT_TIER
        tier = db.get_subscription_tier(client, user_id)
    except Exception as exc:
        logger.warning("[TIER] lookup failed, using %s: %s", DEFAULT_TIER, exc)
        return DEFAULT_TIER
    if tier not in SUBSCRIPTION_TIERS:
        return DEFAULT_TIER
    return tier
