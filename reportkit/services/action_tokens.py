"""
action_tokens.py — short-lived, single-use confirmation tokens for sensitive
actions (downloads, key changes, account deletion, ...).

A token authorizes exactly one (user, action) pair, once, within
ACTION_TOKEN_TTL_SECONDS of issue.
"""
from __future__ import annotations

import logging
import secrets
import time
from typing import Optional

from reportkit import store
from reportkit.core.config import ACTION_TOKEN_TTL_SECONDS

logger = logging.getLogger(__name__)


def issue_action_token(user_id: str, action: str, now: Optional[float] = None) -> dict:
    now = now if now is not None else time.time()
    store.purge_expired_tokens(now)
    token = secrets.token_hex(32)
    expires_at = now + ACTION_TOKEN_TTL_SECONDS
    store.put_action_token(token, {
        "user_id":    user_id,
        "action":     action,
        "expires_at": expires_at,
        "consumed":   False,
    })
    return {"token": token, "action": action, "expires_at": expires_at}


def verify_action_token(user_id: str, token: str, action: str, now: Optional[float] = None) -> bool:
    """
    True at most once per token. A mismatched user or action is refused
    without consuming the token; an expired token is refused and dropped.
    """
    now = now if now is not None else time.time()
    store.purge_expired_tokens(now)
    entry = store.get_action_token(token)
    if entry is None or entry["consumed"]:
        return False
    if entry["user_id"] != user_id or entry["action"] != action:
        logger.info("[ACTION] token presented for wrong user/action (%s)", action)
        return False
    entry["consumed"] = True
    store.drop_action_token(token)
    return True
