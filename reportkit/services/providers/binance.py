"""
binance.py — Binance spot REST client (tickers, candles, depth, trades).
Market cap is estimated from the static coin catalog.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from reportkit.core.config import BINANCE_API
from reportkit.services.providers.catalog import COIN_CATEGORY_NAMES, coins_for, get_coin
from reportkit.services.providers.http import get_json, to_float

# Binance covers only part of the market; used to scale the catalog total up
_CATALOG_MARKET_SHARE = 0.75


def ms_to_iso(ms) -> str:
    return datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc).isoformat()


def _pair(symbol: str) -> str:
    coin = get_coin(symbol)
    if coin:
        return coin.binance_symbol
    symbol = symbol.upper()
    return symbol if symbol.endswith("USDT") else f"{symbol}USDT"


def _tickers() -> dict[str, dict]:
    data = get_json(f"{BINANCE_API}/ticker/24hr")
    return {t["symbol"]: t for t in data}


# ---------------------------------------------------------------------------
# Market overview
# ---------------------------------------------------------------------------

_SORT_KEYS = {
    "market_cap":   "marketCap",
    "volume":       "quoteVolume24h",
    "price_change": "priceChangePercent24h",
    "price":        "price",
}


def get_market_overview(
    symbols: Optional[list[str]] = None,
    category: Optional[str] = None,
    min_market_cap: float = 0,
    sort_by: str = "market_cap",
) -> list[dict]:
    tickers = _tickers()
    rows = []
    for coin in coins_for(symbols, category):
        t = tickers.get(coin.binance_symbol)
        if not t:
            continue
        price = to_float(t.get("lastPrice"))
        bid = to_float(t.get("bidPrice"))
        ask = to_float(t.get("askPrice"))
        market_cap = price * coin.circulating_supply
        if market_cap < min_market_cap:
            continue
        rows.append({
            "symbol":                coin.symbol,
            "name":                  coin.name,
            "category":              coin.category,
            "price":                 price,
            "priceChange24h":        to_float(t.get("priceChange")),
            "priceChangePercent24h": to_float(t.get("priceChangePercent")),
            "high24h":               to_float(t.get("highPrice")),
            "low24h":                to_float(t.get("lowPrice")),
            "volume24h":             to_float(t.get("volume")),
            "quoteVolume24h":        to_float(t.get("quoteVolume")),
            "marketCap":             market_cap,
            "circulatingSupply":     coin.circulating_supply,
            "maxSupply":             coin.max_supply,
            "bidPrice":              bid,
            "askPrice":              ask,
            "spread":                ask - bid,
            "spreadPercent":         (ask - bid) / price * 100 if price else 0,
            "vwap":                  to_float(t.get("weightedAvgPrice")),
            "tradesCount24h":        int(t.get("count") or 0),
        })
    key = _SORT_KEYS.get(sort_by, "marketCap")
    rows.sort(key=lambda r: r[key], reverse=True)
    return rows


# ---------------------------------------------------------------------------
# Candles, depth, trades
# ---------------------------------------------------------------------------

def get_historical_prices(symbol: str, interval: str = "1d", limit: int = 500) -> list[dict]:
    klines = get_json(
        f"{BINANCE_API}/klines",
        params={"symbol": _pair(symbol), "interval": interval, "limit": limit},
    )
    candles = []
    for k in klines:
        volume = to_float(k[5])
        taker_buy = to_float(k[9])
        candles.append({
            "symbol":         symbol.upper(),
            "timestamp":      ms_to_iso(k[0]),
            "open":           to_float(k[1]),
            "high":           to_float(k[2]),
            "low":            to_float(k[3]),
            "close":          to_float(k[4]),
            "volume":         volume,
            "quoteVolume":    to_float(k[7]),
            "tradesCount":    int(k[8]),
            "takerBuyVolume": taker_buy,
            "takerSellVolume": volume - taker_buy,
        })
    return candles


def get_order_book(symbol: str, depth: int = 20) -> dict:
    data = get_json(f"{BINANCE_API}/depth", params={"symbol": _pair(symbol), "limit": depth})

    def _levels(raw):
        levels = []
        for price, qty in raw:
            p, q = to_float(price), to_float(qty)
            levels.append({"price": p, "quantity": q, "total": p * q})
        return levels

    bids = _levels(data.get("bids", []))
    asks = _levels(data.get("asks", []))
    best_bid = bids[0]["price"] if bids else 0
    best_ask = asks[0]["price"] if asks else 0
    spread = best_ask - best_bid
    mid = (best_ask + best_bid) / 2
    return {
        "symbol":         symbol.upper(),
        "bids":           bids,
        "asks":           asks,
        "spread":         spread,
        "spreadPercent":  spread / mid * 100 if mid else 0,
        "totalBidVolume": sum(b["total"] for b in bids),
        "totalAskVolume": sum(a["total"] for a in asks),
    }


def get_recent_trades(symbol: str, limit: int = 500) -> list[dict]:
    trades = get_json(
        f"{BINANCE_API}/trades",
        params={"symbol": _pair(symbol), "limit": min(limit, 1000)},
    )
    return [
        {
            "symbol":        symbol.upper(),
            "id":            t["id"],
            "price":         to_float(t.get("price")),
            "quantity":      to_float(t.get("qty")),
            "quoteQuantity": to_float(t.get("quoteQty")),
            "timestamp":     ms_to_iso(t["time"]),
            "isBuyerMaker":  bool(t.get("isBuyerMaker")),
            "tradeType":     "SELL" if t.get("isBuyerMaker") else "BUY",
        }
        for t in trades
    ]


# ---------------------------------------------------------------------------
# Aggregates over the catalog
# ---------------------------------------------------------------------------

def get_global_stats() -> dict:
    rows = get_market_overview()
    catalog_cap = sum(r["marketCap"] for r in rows)
    total_cap = catalog_cap / _CATALOG_MARKET_SHARE
    by_symbol = {r["symbol"]: r for r in rows}

    def _dominance(symbol: str) -> float:
        row = by_symbol.get(symbol)
        return row["marketCap"] / total_cap * 100 if row and total_cap else 0

    return {
        "totalMarketCap":         total_cap,
        "totalVolume24h":         sum(r["quoteVolume24h"] for r in rows),
        "btcDominance":           _dominance("BTC"),
        "ethDominance":           _dominance("ETH"),
        "activeCryptocurrencies": len(rows),
    }


def get_gainers_losers(kind: str = "both", limit: int = 20) -> dict:
    rows = get_market_overview()
    result = {"gainers": [], "losers": []}
    if kind in ("both", "gainers"):
        gainers = [r for r in rows if r["priceChangePercent24h"] > 0]
        gainers.sort(key=lambda r: r["priceChangePercent24h"], reverse=True)
        result["gainers"] = gainers[:limit]
    if kind in ("both", "losers"):
        losers = [r for r in rows if r["priceChangePercent24h"] < 0]
        losers.sort(key=lambda r: r["priceChangePercent24h"])
        result["losers"] = losers[:limit]
    return result


def get_category_stats(categories: Optional[list[str]] = None) -> list[dict]:
    rows = get_market_overview()
    grouped: dict[str, list[dict]] = {}
    for r in rows:
        if categories and r["category"] not in categories:
            continue
        grouped.setdefault(r["category"], []).append(r)

    stats = []
    for cat, members in grouped.items():
        top = sorted(members, key=lambda r: r["priceChangePercent24h"], reverse=True)[:3]
        stats.append({
            "category":           COIN_CATEGORY_NAMES.get(cat, cat),
            "coinCount":          len(members),
            "totalMarketCap":     sum(m["marketCap"] for m in members),
            "avgPriceChange24h":  sum(m["priceChangePercent24h"] for m in members) / len(members),
            "totalVolume24h":     sum(m["quoteVolume24h"] for m in members),
            "topPerformers":      [m["symbol"] for m in top],
        })
    stats.sort(key=lambda s: s["totalMarketCap"], reverse=True)
    return stats


def get_exchange_info(symbols: Optional[list[str]] = None) -> list[dict]:
    data = get_json(f"{BINANCE_API}/exchangeInfo")
    wanted = {c.binance_symbol for c in coins_for(symbols)}
    out = []
    for s in data.get("symbols", []):
        if s.get("symbol") not in wanted:
            continue
        filters = {f.get("filterType"): f for f in s.get("filters", [])}
        price_f = filters.get("PRICE_FILTER", {})
        lot_f = filters.get("LOT_SIZE", {})
        notional_f = filters.get("NOTIONAL") or filters.get("MIN_NOTIONAL") or {}
        out.append({
            "symbol":      s["symbol"].replace("USDT", ""),
            "baseAsset":   s.get("baseAsset"),
            "quoteAsset":  s.get("quoteAsset"),
            "status":      s.get("status"),
            "minPrice":    to_float(price_f.get("minPrice")),
            "maxPrice":    to_float(price_f.get("maxPrice")),
            "tickSize":    to_float(price_f.get("tickSize")),
            "minQty":      to_float(lot_f.get("minQty")),
            "maxQty":      to_float(lot_f.get("maxQty")),
            "stepSize":    to_float(lot_f.get("stepSize")),
            "minNotional": to_float(notional_f.get("minNotional")),
        })
    return out
