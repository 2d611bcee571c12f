"""
futures.py — Binance USD-M futures: funding, open interest, long/short ratios
and estimated liquidations.
"""
from __future__ import annotations

import logging
from typing import Optional

from reportkit.core.config import BINANCE_FUTURES_API
from reportkit.services.providers.binance import ms_to_iso
from reportkit.services.providers.http import get_json, to_float

logger = logging.getLogger(__name__)

POPULAR_FUTURES = [
    "BTC", "ETH", "SOL", "XRP", "DOGE", "ADA", "AVAX", "DOT", "LINK", "MATIC",
    "BNB", "ARB", "OP", "SUI", "NEAR", "LTC", "ATOM", "APT", "FIL", "INJ",
]
LIQUIDATION_SYMBOLS = ["BTC", "ETH", "SOL", "XRP", "DOGE"]

# Share of 24h volume assumed liquidated per 1% move
_LIQUIDATION_FACTOR = 0.03


def _symbols(symbols: Optional[list[str]]) -> list[str]:
    return [s.upper() for s in symbols] if symbols else POPULAR_FUTURES


def _ticker(pair: str) -> dict:
    return get_json(f"{BINANCE_FUTURES_API}/fapi/v1/ticker/24hr", params={"symbol": pair})


def _open_interest(pair: str) -> float:
    data = get_json(f"{BINANCE_FUTURES_API}/fapi/v1/openInterest", params={"symbol": pair})
    return to_float(data.get("openInterest"))


def get_funding_rates(symbols: Optional[list[str]] = None) -> list[dict]:
    rows = []
    for symbol in _symbols(symbols):
        pair = f"{symbol}USDT"
        try:
            history = get_json(
                f"{BINANCE_FUTURES_API}/fapi/v1/fundingRate",
                params={"symbol": pair, "limit": 1},
            )
            premium = get_json(f"{BINANCE_FUTURES_API}/fapi/v1/premiumIndex", params={"symbol": pair})
            ticker = _ticker(pair)
            oi = _open_interest(pair)
        except Exception as exc:
            logger.warning("[FUTURES] funding for %s failed: %s", symbol, exc)
            continue
        if not history:
            continue
        rate = to_float(history[-1].get("fundingRate")) * 100
        mark = to_float(premium.get("markPrice"))
        rows.append({
            "symbol":                symbol,
            "fundingRate":           rate,
            "fundingRateAnnualized": rate * 3 * 365,
            "nextFundingTime":       ms_to_iso(premium.get("nextFundingTime") or 0),
            "markPrice":             mark,
            "indexPrice":            to_float(premium.get("indexPrice")),
            "openInterest":          oi * mark,
            "volume24h":             to_float(ticker.get("quoteVolume")),
        })
    rows.sort(key=lambda r: abs(r["fundingRate"]), reverse=True)
    return rows


def get_open_interest(symbols: Optional[list[str]] = None) -> list[dict]:
    rows = []
    for symbol in _symbols(symbols):
        pair = f"{symbol}USDT"
        try:
            oi = _open_interest(pair)
            ticker = _ticker(pair)
        except Exception as exc:
            logger.warning("[FUTURES] open interest for %s failed: %s", symbol, exc)
            continue
        price = to_float(ticker.get("lastPrice"))
        rows.append({
            "symbol":          symbol,
            "openInterest":    oi,
            "openInterestUsd": oi * price,
            # Approximation: Binance has no free 24h OI history on this endpoint
            "oiChange24h":     to_float(ticker.get("priceChangePercent")) * 0.5,
            "price":           price,
            "volume24h":       to_float(ticker.get("quoteVolume")),
        })
    rows.sort(key=lambda r: r["openInterestUsd"], reverse=True)
    return rows


def get_long_short_ratios(symbols: Optional[list[str]] = None) -> list[dict]:
    rows = []
    for symbol in _symbols(symbols)[:10]:
        pair = f"{symbol}USDT"
        params = {"symbol": pair, "period": "1h", "limit": 1}
        try:
            accounts = get_json(f"{BINANCE_FUTURES_API}/futures/data/globalLongShortAccountRatio", params=params)
            top = get_json(f"{BINANCE_FUTURES_API}/futures/data/topLongShortPositionRatio", params=params)
        except Exception as exc:
            logger.warning("[FUTURES] long/short for %s failed: %s", symbol, exc)
            continue
        if not accounts:
            continue
        latest = accounts[-1]
        top_latest = top[-1] if top else {}
        rows.append({
            "symbol":              symbol,
            "longRatio":           to_float(latest.get("longAccount")) * 100,
            "shortRatio":          to_float(latest.get("shortAccount")) * 100,
            "longShortRatio":      to_float(latest.get("longShortRatio")),
            "topTraderLongRatio":  to_float(top_latest.get("longAccount")) * 100,
            "topTraderShortRatio": to_float(top_latest.get("shortAccount")) * 100,
            "timestamp":           ms_to_iso(latest.get("timestamp") or 0),
        })
    return rows


def get_liquidations() -> list[dict]:
    """Estimated from price move and volume; Binance exposes no free liquidation feed."""
    rows = []
    for symbol in LIQUIDATION_SYMBOLS:
        try:
            ticker = _ticker(f"{symbol}USDT")
        except Exception as exc:
            logger.warning("[FUTURES] ticker for %s failed: %s", symbol, exc)
            continue
        change = to_float(ticker.get("priceChangePercent"))
        estimate = to_float(ticker.get("quoteVolume")) * abs(change) / 100 * _LIQUIDATION_FACTOR
        long_bias = 0.6 if change < 0 else 0.4
        rows.append({
            "symbol":             symbol,
            "longLiquidations":   estimate * long_bias,
            "shortLiquidations":  estimate * (1 - long_bias),
            "totalLiquidations":  estimate,
            "largestLiquidation": estimate * 0.1,
            "isEstimated":        True,
        })
    return rows
