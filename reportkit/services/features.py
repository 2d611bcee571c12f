"""
features.py — static feature gate for whole category groups.

Risk groups (social sentiment, DeFi aggregators, whale labelling, NFT data)
can be switched off without a deploy. A category in a group whose flag is
missing or off is refused; categories outside every group are always on.
"""
from __future__ import annotations

from typing import Optional

from reportkit.core import config
from reportkit.services.categories import CATEGORIES

CATEGORY_GROUPS: dict[str, str] = {c.id: c.group for c in CATEGORIES.values() if c.group}


def feature_group(category: str) -> Optional[str]:
    return CATEGORY_GROUPS.get(category)


def is_feature_enabled(name: str) -> bool:
    return bool(config.FEATURES.get(name, False))


def is_download_category_enabled(category: str) -> bool:
    group = feature_group(category)
    if group is None:
        return True
    return is_feature_enabled(group)
