"""
In-memory process state — last-request timestamps for the rate limiter and
issued action tokens. Process-local only; horizontally scaled deployments
should use the supabase rate-limit backend instead.
"""

from __future__ import annotations
from typing import Optional

# { rate_limit_key: last_request_ms }
_last_request: dict = {}

# { token: {"user_id": str, "action": str, "expires_at": float, "consumed": bool} }
_action_tokens: dict = {}


def get_last_request(key: str) -> Optional[int]:
    return _last_request.get(key)


def set_last_request(key: str, timestamp_ms: int) -> None:
    _last_request[key] = timestamp_ms


def put_action_token(token: str, entry: dict) -> None:
    _action_tokens[token] = entry


def get_action_token(token: str) -> Optional[dict]:
    return _action_tokens.get(token)


def drop_action_token(token: str) -> None:
    _action_tokens.pop(token, None)


def purge_expired_tokens(now: float) -> int:
    """Remove every token whose expiry has passed. Returns the number removed."""
    expired = [t for t, entry in _action_tokens.items() if entry["expires_at"] <= now]
    for token in expired:
        _action_tokens.pop(token, None)
    return len(expired)


def clear_all() -> None:
    _last_request.clear()
    _action_tokens.clear()
