# tests/test_features.py
from __future__ import annotations

from reportkit.core import config
from reportkit.services import features


def test_groups_cover_risky_categories():
    assert features.feature_group("sentiment_reddit") == "social_sentiment"
    assert features.feature_group("chain_tvl") == "defi"
    assert features.feature_group("whale_transactions") == "whales"
    assert features.feature_group("nft_stats") == "nft"
    assert features.feature_group("market_overview") is None


def test_disabled_group_blocks_its_categories(monkeypatch):
    monkeypatch.setitem(config.FEATURES, "defi", False)
    assert not features.is_download_category_enabled("defi_yields")
    assert features.is_download_category_enabled("sentiment_news")


def test_missing_flag_counts_as_disabled(monkeypatch):
    monkeypatch.delitem(config.FEATURES, "nft")
    assert not features.is_feature_enabled("nft")
    assert not features.is_download_category_enabled("nft_collections")


def test_ungrouped_category_always_enabled(monkeypatch):
    for name in list(config.FEATURES):
        monkeypatch.setitem(config.FEATURES, name, False)
    assert features.is_download_category_enabled("fear_greed")


def test_env_flag_parsing(monkeypatch):
    monkeypatch.setenv("FEATURE_X", "off")
    assert config._flag("FEATURE_X") is False
    monkeypatch.setenv("FEATURE_X", "1")
    assert config._flag("FEATURE_X") is True
    monkeypatch.delenv("FEATURE_X")
    assert config._flag("FEATURE_X") is True
