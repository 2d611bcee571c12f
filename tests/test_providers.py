# tests/test_providers.py
from __future__ import annotations

from typing import Any, Dict, List

import pytest

from reportkit.core import config
from reportkit.services.providers import binance, http, onchain, sentiment, whales


class _MockResponse:
    def __init__(self, json_data: Any, status_code: int = 200):
        self._json = json_data
        self.status_code = status_code

    def json(self) -> Any:
        return self._json

    def raise_for_status(self) -> None:
        if not (200 <= self.status_code < 300):
            raise RuntimeError(f"HTTP {self.status_code}")


@pytest.fixture
def http_calls(monkeypatch):
    """Route requests.get to queued payloads and record each call."""
    calls: List[Dict[str, Any]] = []
    queue: List[_MockResponse] = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        return queue.pop(0)

    monkeypatch.setattr(http.requests, "get", fake_get)
    return calls, queue


def test_every_call_carries_timeout(http_calls):
    calls, queue = http_calls
    queue.append(_MockResponse({"ok": True}))
    assert http.get_json("https://example.com/x", params={"a": 1}) == {"ok": True}
    assert calls[0]["timeout"] == config.HTTP_TIMEOUT_SECONDS
    assert calls[0]["headers"]["Accept"] == "application/json"


def test_non_2xx_raises(http_calls):
    _, queue = http_calls
    queue.append(_MockResponse({}, status_code=503))
    with pytest.raises(RuntimeError):
        http.get_json("https://example.com/x")


@pytest.mark.parametrize("value,expected", [("1.5", 1.5), (2, 2.0), (None, 0.0), ("n/a", 0.0)])
def test_to_float(value, expected):
    assert http.to_float(value) == expected


def test_fear_greed_current_and_previous(http_calls):
    calls, queue = http_calls
    queue.append(_MockResponse({"data": [
        {"value": "72", "value_classification": "Greed", "timestamp": "1700000000"},
        {"value": "65", "value_classification": "Greed", "timestamp": "1699913600"},
    ]}))
    index = onchain.get_fear_greed()
    assert calls[0]["params"] == {"limit": 2}
    assert index["value"] == 72
    assert index["previousValue"] == 65
    assert index["label"] == "Greed"
    assert index["timestamp"].startswith("2023-11-14T22:13:20")


def test_fear_greed_empty_data_raises(http_calls):
    _, queue = http_calls
    queue.append(_MockResponse({"data": []}))
    with pytest.raises(ValueError):
        onchain.get_fear_greed()


def test_chain_tvl_sorted_and_totalled(http_calls):
    _, queue = http_calls
    queue.append(_MockResponse([
        {"name": "Solana", "tvl": 100},
        {"name": "Ethereum", "tvl": "300"},
        {"name": "Tron", "tvl": None},
    ]))
    payload = onchain.get_chain_tvl(limit=2)
    assert payload["totalTVL"] == 400.0
    assert [c["name"] for c in payload["chains"]] == ["Ethereum", "Solana"]


def test_order_book_spread_and_totals(http_calls):
    calls, queue = http_calls
    queue.append(_MockResponse({
        "bids": [["99", "2"], ["98", "1"]],
        "asks": [["101", "1"], ["102", "3"]],
    }))
    book = binance.get_order_book("btc", depth=5)
    assert calls[0]["params"]["limit"] == 5
    assert book["symbol"] == "BTC"
    assert book["spread"] == 2.0
    assert book["spreadPercent"] == pytest.approx(2.0)
    assert book["totalBidVolume"] == 99 * 2 + 98
    assert book["totalAskVolume"] == 101 + 102 * 3


def test_empty_order_book(http_calls):
    _, queue = http_calls
    queue.append(_MockResponse({"bids": [], "asks": []}))
    book = binance.get_order_book("ETH")
    assert book["spread"] == 0
    assert book["spreadPercent"] == 0


def test_analyze_text_neutral_without_matches():
    assert sentiment.analyze_text("hello world") == {
        "score": 0.0, "label": "neutral", "confidence": 0.0, "keywords": [],
    }


def test_analyze_text_bullish_and_bearish():
    bullish = sentiment.analyze_text("moon")
    assert bullish["score"] == 1.0
    assert bullish["label"] == "very_bullish"
    assert bullish["keywords"] == ["moon"]

    bearish = sentiment.analyze_text("crash")
    assert bearish["score"] == -1.0
    assert bearish["label"] == "very_bearish"


def test_classify_transfer():
    exchange = "0x28c6c06298d514db089934071355e5743bf21d60"
    assert whales.classify_transfer("0xabc", exchange.upper(), 1) == "exchange_inflow"
    assert whales.classify_transfer(exchange, "0xabc", 1) == "exchange_outflow"
    assert whales.classify_transfer("0xabc", "0xdef", 5000) == "whale_transfer"
    assert whales.classify_transfer("0xabc", None, 5) == "unknown"


def _mover(symbol: str, change: float) -> Dict[str, Any]:
    return {"symbol": symbol, "name": symbol, "price": 1.0, "priceChangePercent24h": change,
            "quoteVolume24h": 10.0, "marketCap": 100.0}


MOVERS = [_mover("AAA", 4.0), _mover("BBB", -2.0), _mover("CCC", 9.0), _mover("DDD", -7.0), _mover("EEE", 0.0)]


def test_gainers_only_leaves_losers_empty(monkeypatch):
    monkeypatch.setattr(binance, "get_market_overview", lambda: [dict(m) for m in MOVERS])
    result = binance.get_gainers_losers("gainers", 1)
    assert [c["symbol"] for c in result["gainers"]] == ["CCC"]
    assert result["losers"] == []


def test_losers_only_leaves_gainers_empty(monkeypatch):
    monkeypatch.setattr(binance, "get_market_overview", lambda: [dict(m) for m in MOVERS])
    result = binance.get_gainers_losers("losers", 5)
    assert [c["symbol"] for c in result["losers"]] == ["DDD", "BBB"]
    assert result["gainers"] == []


def test_pair_does_not_double_the_quote_asset():
    assert binance._pair("ABCUSDT") == "ABCUSDT"
    assert binance._pair("abc") == "ABCUSDT"
