# tests/test_indicators.py
from __future__ import annotations

import math

import pandas as pd
import pytest

from reportkit.services import indicators


def _candles(closes):
    return [
        {"timestamp": i, "open": c, "high": c + 1, "low": c - 1, "close": c, "volume": 10}
        for i, c in enumerate(closes)
    ]


def test_sma_window():
    out = indicators.sma(pd.Series([1.0, 2.0, 3.0, 4.0]), 2)
    assert math.isnan(out.iloc[0])
    assert out.tolist()[1:] == [1.5, 2.5, 3.5]


def test_ema_seeded_with_sma():
    out = indicators.ema(pd.Series([2.0, 4.0, 6.0, 8.0]), 3)
    assert math.isnan(out.iloc[1])
    assert out.iloc[2] == pytest.approx(4.0)
    assert out.iloc[3] == pytest.approx(6.0)


def test_rsi_all_gains_is_100():
    out = indicators.rsi(pd.Series([float(i) for i in range(30)]))
    assert out.iloc[-1] == 100.0


def test_rsi_all_losses_is_0():
    out = indicators.rsi(pd.Series([float(30 - i) for i in range(30)]))
    assert out.iloc[-1] == pytest.approx(0.0)


def test_summary_needs_fifty_candles():
    with pytest.raises(ValueError):
        indicators.indicator_summary("BTC", _candles([1.0] * 49))


def test_summary_uptrend_is_bullish_with_overbought_rsi():
    summary = indicators.indicator_summary("BTC", _candles([100.0 + i for i in range(60)]))
    assert summary["symbol"] == "BTC"
    assert summary["price"] == 159.0
    assert summary["rsiSignal"] == "overbought"
    assert summary["sma200"] is None
    assert summary["sma20"] == pytest.approx(149.5)


@pytest.mark.parametrize("score,label", [
    (5, "strongly_bullish"), (2, "bullish"), (0, "neutral"), (-3, "bearish"), (-4, "strongly_bearish"),
])
def test_trend_label(score, label):
    assert indicators.trend_label(score) == label


def test_support_resistance_needs_twenty_candles():
    assert indicators.support_resistance("BTC", _candles([1.0] * 19)) == []


def test_support_resistance_finds_repeated_swing_high():
    closes = [100, 101, 110, 101, 100] * 6
    levels = indicators.support_resistance("BTC", _candles(closes))
    assert levels
    top = levels[0]
    assert top["touches"] >= 2
    assert top["symbol"] == "BTC"
    assert top["type"] in ("support", "resistance")


@pytest.mark.parametrize("value,label", [
    (0.9, "strong_positive"), (0.5, "positive"), (0.0, "neutral"),
    (-0.5, "negative"), (-0.9, "strong_negative"), (None, "neutral"),
])
def test_relationship(value, label):
    assert indicators.relationship(value) == label


def test_correlation_pairs():
    up = [100.0, 102.0, 101.0, 105.0, 107.0]
    pairs = indicators.correlation_pairs({"BTC": up, "ETH": [p * 2 for p in up], "X": [1.0]})
    by_pair = {(p["symbol1"], p["symbol2"]): p for p in pairs}
    assert len(pairs) == 3
    assert by_pair[("BTC", "ETH")]["correlation"] == pytest.approx(1.0)
    assert by_pair[("BTC", "ETH")]["relationship"] == "strong_positive"
    assert by_pair[("BTC", "X")]["correlation"] is None
