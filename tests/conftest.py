# tests/conftest.py
from __future__ import annotations

import dataclasses
from typing import Any, Callable, Dict

import pytest
from fastapi.testclient import TestClient

from reportkit import store
from reportkit.core import config
from reportkit.main import app
from reportkit.services import db
from reportkit.services.categories import CATEGORIES


@pytest.fixture(autouse=True)
def _isolated(monkeypatch):
    """No Supabase, in-memory rate limits, every feature on, empty stores."""
    store.clear_all()
    monkeypatch.setattr(db, "get_client", lambda: None)
    monkeypatch.setattr(config, "RATE_LIMIT_BACKEND", "memory")
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "")
    monkeypatch.setattr(config, "TRUST_PROXY_HEADERS", False)
    for name in list(config.FEATURES):
        monkeypatch.setitem(config.FEATURES, name, True)
    yield
    store.clear_all()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _coin(i: int) -> Dict[str, Any]:
    return {
        "symbol":                f"C{i}",
        "name":                  f"Coin {i}",
        "price":                 100.0 + i,
        "priceChange24h":        1.5,
        "priceChangePercent24h": 1.5,
        "high24h":               110.0 + i,
        "low24h":                90.0 + i,
        "quoteVolume24h":        1_000_000.0,
        "marketCap":             1e9 - i,
        "circulatingSupply":     1e7,
        "bidPrice":              99.0 + i,
        "askPrice":              101.0 + i,
        "spread":                2.0,
        "vwap":                  100.0 + i,
        "tradesCount24h":        5000,
    }


MARKET_COINS = [_coin(i) for i in range(12)]


@pytest.fixture
def fetch_calls(monkeypatch) -> Dict[str, int]:
    """
    Replace every category fetcher with a canned one and count calls.

    market_overview returns 12 provider-shaped coins through the real shaper;
    other categories return one row per declared field set via an identity shaper.
    """
    calls: Dict[str, int] = {}

    def _counting(cid: str, payload: Callable[[], Any]):
        def fetcher(req):
            calls[cid] = calls.get(cid, 0) + 1
            return payload()
        return fetcher

    for cid, category in list(CATEGORIES.items()):
        if cid == "market_overview":
            replaced = dataclasses.replace(
                category, fetcher=_counting(cid, lambda: [dict(c) for c in MARKET_COINS])
            )
        else:
            row = {f: f"{f}-value" for f in category.fields}
            replaced = dataclasses.replace(
                category,
                fetcher=_counting(cid, lambda row=row: [dict(row), dict(row)]),
                shaper=lambda raw: raw,
            )
        monkeypatch.setitem(CATEGORIES, cid, replaced)
    return calls
