"""
events.py — fire-and-forget usage logging to download_history.
Runs as a background task after the response; failures are logged and dropped.
"""
from __future__ import annotations

import logging
from typing import Optional

from reportkit.services import db

logger = logging.getLogger(__name__)


def log_download_event(
    category: str,
    fmt: str,
    file_name: str,
    filters: dict,
    row_count: Optional[int] = None,
    client_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    try:
        client = db.get_client()
        if client is None:
            logger.debug("[DOWNLOAD] usage log skipped (no Supabase): %s.%s", file_name, fmt)
            return
        db.insert_download_event(client, {
            "category":   category,
            "format":     fmt,
            "file_name":  file_name,
            "filters":    filters,
            "row_count":  row_count,
            "ip_address": client_ip,
            "user_agent": user_agent,
        })
    except Exception as exc:
        logger.warning("[DOWNLOAD] usage log failed: %s", exc)
