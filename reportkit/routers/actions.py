"""
Actions router — issue single-use confirmation tokens for sensitive actions.
Route: POST /api/v1/authorize-action
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel

from reportkit.core.config import ACTION_TOKEN_TTL_SECONDS, ACTION_TYPES
from reportkit.core.errors import ApiError, validation_error
from reportkit.services import db
from reportkit.services.action_tokens import issue_action_token
from reportkit.services.features import is_feature_enabled
from reportkit.services.tiers import bearer_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["actions"])


class AuthorizeActionRequest(BaseModel):
    action: str


def _authenticated_user(request: Request) -> str:
    token = bearer_token(request)
    client = db.get_client()
    if not token or client is None:
        raise ApiError(401, {"error": "Authentication required"})
    user_id = db.get_user_id(client, token)
    if not user_id:
        raise ApiError(401, {"error": "Invalid or expired session"})
    return user_id


@router.post("/authorize-action")
def authorize_action(body: AuthorizeActionRequest, request: Request):
    if not is_feature_enabled("action_tokens"):
        raise ApiError(503, {"error": "Action authorization is temporarily disabled.", "disabled": True})

    user_id = _authenticated_user(request)
    if body.action not in ACTION_TYPES:
        raise validation_error("action", body.action, ACTION_TYPES)

    issued = issue_action_token(user_id, body.action)
    logger.info("[ACTION] issued %s token", body.action)
    return {
        "token":            issued["token"],
        "action":           issued["action"],
        "expiresAt":        datetime.fromtimestamp(issued["expires_at"], tz=timezone.utc).isoformat(),
        "expiresInSeconds": ACTION_TOKEN_TTL_SECONDS,
    }
