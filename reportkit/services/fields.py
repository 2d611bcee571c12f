"""
fields.py — optional column projection for exports.

Requested names are checked against the category's declared schema. Unknown
names are dropped; surviving columns appear in every row in declared order,
null-filled where a row lacks them.
"""
from __future__ import annotations

import logging
from typing import Optional

from reportkit.core.errors import ApiError

logger = logging.getLogger(__name__)


def select_fields(requested: Optional[list[str]], declared: tuple) -> Optional[list[str]]:
    """Return the projected column list, or None when no projection was asked for."""
    if not requested:
        return None
    wanted = set(requested)
    unknown = [f for f in requested if f not in declared]
    if unknown:
        logger.debug("[DOWNLOAD] ignoring unknown fields: %s", ", ".join(unknown))
    selected = [f for f in declared if f in wanted]
    if not selected:
        raise ApiError(
            400,
            {
                "error": "None of the requested fields exist for this category.",
                "allowedFields": list(declared),
            },
        )
    return selected


def apply_field_selection(rows: list[dict], fields: Optional[list[str]]) -> list[dict]:
    if not fields:
        return rows
    return [{f: row.get(f) for f in fields} for row in rows]
