"""
categories.py — the closed registry of export categories.

Each Category bundles one fetcher, one shaper, a filename builder, the
declared output schema, a source attribution and an optional risk group.
Adding a category is a registry entry, not a new branch in the route.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from reportkit.services import db, indicators, shaping
from reportkit.services.providers import binance, futures, onchain, reference, sentiment, whales
from reportkit.services.validation import ExportRequest

logger = logging.getLogger(__name__)

TECHNICAL_SYMBOLS = ["BTC", "ETH", "SOL", "XRP", "ADA", "AVAX", "DOT", "LINK", "MATIC", "DOGE"]
CORRELATION_SYMBOLS = ["BTC", "ETH", "SOL", "XRP", "ADA", "AVAX", "DOT", "LINK"]
LEVEL_SYMBOLS = ["BTC", "ETH", "SOL", "XRP", "ADA"]
CORRELATION_DAYS = 30


@dataclass(frozen=True)
class Category:
    id: str
    fetcher: Callable[[ExportRequest], Any]
    shaper: Callable[[Any], list[dict]]
    filename: Callable[[ExportRequest], str]
    fields: tuple
    source: str
    group: Optional[str] = None


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def conform_rows(rows: list[dict], fields: tuple) -> list[dict]:
    """Every row gets every declared field, in declared order (missing -> None)."""
    return [{f: row.get(f) for f in fields} for row in rows]


def run_category(category: Category, req: ExportRequest) -> list[dict]:
    raw = category.fetcher(req)
    return conform_rows(category.shaper(raw), category.fields)


# ---------------------------------------------------------------------------
# Fetchers
# ---------------------------------------------------------------------------

def _cached_coin(row: dict) -> dict:
    return {
        "symbol":                row.get("symbol"),
        "name":                  row.get("name"),
        "price":                 row.get("price"),
        "priceChange24h":        row.get("price_change_24h"),
        "priceChangePercent24h": row.get("price_change_percent_24h"),
        "quoteVolume24h":        row.get("quote_volume_24h", row.get("volume_24h")),
        "marketCap":             row.get("market_cap"),
        "circulatingSupply":     row.get("circulating_supply"),
    }


def _fetch_market_overview(req: ExportRequest):
    try:
        cached = db.get_market_data_cache(
            db.get_client(),
            symbols=req.symbols,
            category=req.coin_category,
            sort_by=req.sort_by,
            min_market_cap=req.min_market_cap,
        )
    except Exception as exc:
        logger.warning("[CACHE] market_data lookup failed, falling back to Binance: %s", exc)
        cached = []
    if cached:
        logger.debug("[CACHE] market_overview served %d cached rows", len(cached))
        return [_cached_coin(r) for r in cached]
    return binance.get_market_overview(
        symbols=req.symbols,
        category=req.coin_category,
        min_market_cap=req.min_market_cap,
        sort_by=req.sort_by,
    )


def _fetch_historical(req: ExportRequest):
    return binance.get_historical_prices(req.symbol, req.interval, req.limit)


def _fetch_order_book(req: ExportRequest):
    return binance.get_order_book(req.symbol, req.depth)


def _fetch_trades(req: ExportRequest):
    return binance.get_recent_trades(req.symbol, req.limit)


def _fetch_gainers_losers(req: ExportRequest):
    return binance.get_gainers_losers(req.type, req.limit)


def _fetch_category_stats(req: ExportRequest):
    categories = [req.coin_category] if req.coin_category else None
    return binance.get_category_stats(categories)


def _fetch_technical(req: ExportRequest):
    summaries = []
    for symbol in req.symbols or TECHNICAL_SYMBOLS:
        try:
            candles = binance.get_historical_prices(symbol, "1d", 200)
            summaries.append(indicators.indicator_summary(symbol, candles))
        except Exception as exc:
            logger.warning("[DOWNLOAD] indicators for %s skipped: %s", symbol, exc)
    return summaries


def _fetch_correlation(req: ExportRequest):
    closes = {}
    for symbol in req.symbols or CORRELATION_SYMBOLS:
        try:
            candles = binance.get_historical_prices(symbol, "1d", CORRELATION_DAYS + 1)
        except Exception as exc:
            logger.warning("[DOWNLOAD] candles for %s skipped: %s", symbol, exc)
            continue
        closes[symbol] = [c["close"] for c in candles]
    return indicators.correlation_pairs(closes)


def _fetch_levels(req: ExportRequest):
    levels = []
    for symbol in req.symbols or LEVEL_SYMBOLS:
        try:
            candles = binance.get_historical_prices(symbol, "1d", 100)
        except Exception as exc:
            logger.warning("[DOWNLOAD] candles for %s skipped: %s", symbol, exc)
            continue
        levels.extend(indicators.support_resistance(symbol, candles))
    return levels


# ---------------------------------------------------------------------------
# Declared output schemas
# ---------------------------------------------------------------------------

FIELDS = {
    "market_overview": (
        "symbol", "name", "price", "price_change_24h", "price_change_percent_24h",
        "high_24h", "low_24h", "volume_24h", "market_cap", "circulating_supply",
        "bid_price", "ask_price", "spread", "vwap", "trades_count_24h",
    ),
    "historical_prices": (
        "symbol", "timestamp", "open", "high", "low", "close", "volume",
        "quote_volume", "trades_count", "taker_buy_volume", "taker_sell_volume",
    ),
    "order_book": (
        "symbol", "bid_price", "bid_quantity", "ask_price", "ask_quantity",
        "spread", "spread_percent", "total_bid_volume", "total_ask_volume",
    ),
    "recent_trades": (
        "symbol", "trade_id", "price", "quantity", "quote_quantity",
        "timestamp", "is_buyer_maker", "trade_type",
    ),
    "global_stats": (
        "total_market_cap", "total_volume_24h", "btc_dominance", "eth_dominance",
        "market_cap_change_24h", "active_cryptocurrencies", "active_markets",
    ),
    "gainers_losers": (
        "symbol", "name", "price", "price_change_percent_24h", "volume_24h",
        "market_cap", "rank_type",
    ),
    "categories": (
        "category", "coin_count", "total_market_cap", "avg_price_change_24h",
        "total_volume_24h", "top_performers",
    ),
    "exchange_info": (
        "symbol", "base_asset", "quote_asset", "status", "min_price", "max_price",
        "tick_size", "min_qty", "max_qty", "step_size", "min_notional",
    ),
    "defi_protocols": ("name", "chain", "tvl", "tvl_change_24h", "tvl_change_7d", "category", "symbol"),
    "defi_yields": ("protocol", "chain", "symbol", "tvl", "apy", "apy_base", "apy_reward"),
    "stablecoins": ("name", "symbol", "market_cap", "chain", "peg_deviation"),
    "fear_greed": ("value", "label", "timestamp", "previous_value", "previous_label"),
    "chain_tvl": ("chain", "tvl", "tvl_change_24h", "protocols_count", "dominance"),
    "bitcoin_onchain": (
        "hash_rate", "difficulty", "block_height", "avg_block_time",
        "unconfirmed_txs", "mempool_size",
    ),
    "eth_gas": ("slow_gwei", "standard_gwei", "fast_gwei", "base_fee", "block_number"),
    "sentiment_aggregated": (
        "overall_score", "overall_label", "total_posts", "by_source", "by_coin",
        "top_bullish", "top_bearish", "trending_topics",
    ),
    "sentiment_reddit": (
        "title", "sentiment_score", "sentiment_label", "subreddit", "upvotes",
        "comments", "coins_mentioned", "url",
    ),
    "sentiment_news": (
        "title", "sentiment_score", "sentiment_label", "source", "votes",
        "coins_mentioned", "url",
    ),
    "sentiment_coin": (
        ("coin", "row_type")
        + shaping.SENTIMENT_COIN_SUMMARY_FIELDS
        + shaping.SENTIMENT_COIN_POST_FIELDS
    ),
    "whale_transactions": ("hash", "blockchain", "from", "to", "amount", "amount_usd", "type", "timestamp"),
    "exchange_flows": (
        "exchange", "inflow_24h", "outflow_24h", "net_flow_24h",
        "inflow_usd", "outflow_usd", "net_flow_usd",
    ),
    "funding_rates": (
        "symbol", "funding_rate", "funding_rate_annualized", "next_funding_time",
        "mark_price", "index_price", "open_interest", "volume_24h",
    ),
    "liquidations": (
        "symbol", "long_liquidations", "short_liquidations", "total_liquidations",
        "largest_liquidation", "is_estimated",
    ),
    "open_interest": ("symbol", "open_interest", "open_interest_usd", "oi_change_24h", "price", "volume_24h"),
    "long_short_ratio": (
        "symbol", "long_ratio", "short_ratio", "long_short_ratio",
        "top_trader_long_ratio", "top_trader_short_ratio", "timestamp",
    ),
    "technical_indicators": (
        "symbol", "price", "rsi", "rsi_signal", "macd", "macd_signal", "macd_histogram",
        "sma_20", "sma_50", "sma_200", "ema_12", "ema_26", "bollinger_upper",
        "bollinger_lower", "bollinger_width", "atr", "stoch_k", "stoch_d", "overall_signal",
    ),
    "correlation_matrix": ("symbol_1", "symbol_2", "correlation", "relationship"),
    "support_resistance": ("symbol", "price_level", "type", "strength", "touches", "last_tested"),
    "token_unlocks": (
        "name", "symbol", "unlock_date", "days_until", "unlock_amount", "unlock_value_usd",
        "percent_of_total", "percent_of_circulating", "unlock_type", "risk_level",
    ),
    "staking_rewards": (
        "name", "symbol", "staking_apy", "inflation_rate", "total_staked",
        "staked_percent", "lockup_period", "min_stake",
    ),
    "nft_collections": (
        "name", "chain", "floor_price", "floor_price_usd", "volume_24h", "volume_change_24h",
        "sales_24h", "owners", "total_supply", "listed_percent", "market_cap",
    ),
    "nft_stats": ("metric", "value", "change_24h"),
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def _entry(cid, fetcher, shaper, filename, source, group=None) -> Category:
    return Category(
        id=cid,
        fetcher=fetcher,
        shaper=shaper,
        filename=filename,
        fields=FIELDS[cid],
        source=source,
        group=group,
    )


_REGISTRY = [
    _entry("market_overview", _fetch_market_overview, shaping.shape_market_overview,
           lambda r: f"market_overview_{_today()}", "Binance"),
    _entry("historical_prices", _fetch_historical, shaping.shape_historical_prices,
           lambda r: f"{r.symbol}_{r.interval}_ohlcv", "Binance"),
    _entry("order_book", _fetch_order_book, shaping.shape_order_book,
           lambda r: f"{r.symbol}_order_book", "Binance"),
    _entry("recent_trades", _fetch_trades, shaping.shape_recent_trades,
           lambda r: f"{r.symbol}_recent_trades", "Binance"),
    _entry("global_stats", lambda r: binance.get_global_stats(), shaping.shape_global_stats,
           lambda r: f"global_stats_{_today()}", "Binance (estimated)"),
    _entry("gainers_losers", _fetch_gainers_losers, shaping.shape_gainers_losers,
           lambda r: f"{r.type}_{_today()}", "Binance"),
    _entry("categories", _fetch_category_stats, shaping.shape_categories,
           lambda r: f"category_analysis_{_today()}", "Binance"),
    _entry("exchange_info", lambda r: binance.get_exchange_info(r.symbols), shaping.shape_exchange_info,
           lambda r: "exchange_trading_info", "Binance"),

    _entry("defi_protocols", lambda r: onchain.get_defi_protocols(r.limit), shaping.shape_defi_protocols,
           lambda r: f"defi_protocols_top{r.limit}", "DeFiLlama", "defi"),
    _entry("defi_yields", lambda r: onchain.get_yield_pools(r.limit), shaping.shape_defi_yields,
           lambda r: f"defi_yields_top{r.limit}", "DeFiLlama", "defi"),
    _entry("stablecoins", lambda r: onchain.get_stablecoins(), shaping.shape_stablecoins,
           lambda r: "stablecoin_market", "DeFiLlama", "defi"),
    _entry("chain_tvl", lambda r: onchain.get_chain_tvl(), shaping.shape_chain_tvl,
           lambda r: "chain_tvl_rankings", "DeFiLlama", "defi"),
    _entry("fear_greed", lambda r: onchain.get_fear_greed(), shaping.shape_fear_greed,
           lambda r: "fear_greed_index", "Alternative.me"),
    _entry("bitcoin_onchain", lambda r: onchain.get_bitcoin_stats(), shaping.shape_bitcoin_onchain,
           lambda r: "bitcoin_onchain_stats", "Blockchain.info"),
    _entry("eth_gas", lambda r: onchain.get_eth_gas(), shaping.shape_eth_gas,
           lambda r: "ethereum_gas_prices", "Ethereum JSON-RPC"),
    _entry("token_unlocks", lambda r: onchain.get_token_unlocks(), shaping.shape_token_unlocks,
           lambda r: f"token_unlocks_{_today()}", "DeFiLlama"),

    _entry("sentiment_aggregated", lambda r: sentiment.aggregate_sentiment(), shaping.shape_sentiment_aggregated,
           lambda r: "social_sentiment_aggregated", "Reddit, CryptoPanic, CoinGecko", "social_sentiment"),
    _entry("sentiment_reddit", lambda r: sentiment.get_reddit_posts(), shaping.shape_sentiment_reddit,
           lambda r: "reddit_sentiment", "Reddit", "social_sentiment"),
    _entry("sentiment_news", lambda r: sentiment.get_news_posts(r.filter), shaping.shape_sentiment_news,
           lambda r: f"news_sentiment_{r.filter}", "CryptoPanic", "social_sentiment"),
    _entry("sentiment_coin", lambda r: sentiment.coin_sentiment(r.symbol), shaping.shape_sentiment_coin,
           lambda r: f"{r.symbol.lower()}_sentiment_deep_dive", "Reddit, CryptoPanic, CoinGecko",
           "social_sentiment"),

    _entry("whale_transactions", lambda r: whales.get_whale_transactions(r.blockchain),
           shaping.shape_whale_transactions, lambda r: "whale_transactions", "Etherscan, Blockchair", "whales"),
    _entry("exchange_flows", lambda r: whales.estimate_exchange_flows(), shaping.shape_exchange_flows,
           lambda r: "exchange_flows", "Etherscan (estimated)", "whales"),

    _entry("funding_rates", lambda r: futures.get_funding_rates(r.symbols), shaping.shape_funding_rates,
           lambda r: f"funding_rates_{_today()}", "Binance Futures"),
    _entry("liquidations", lambda r: futures.get_liquidations(), shaping.shape_liquidations,
           lambda r: f"liquidations_{_today()}", "Binance Futures (estimated)"),
    _entry("open_interest", lambda r: futures.get_open_interest(r.symbols), shaping.shape_open_interest,
           lambda r: f"open_interest_{_today()}", "Binance Futures"),
    _entry("long_short_ratio", lambda r: futures.get_long_short_ratios(r.symbols), shaping.shape_long_short_ratio,
           lambda r: f"long_short_ratio_{_today()}", "Binance Futures"),

    _entry("technical_indicators", _fetch_technical, shaping.shape_technical_indicators,
           lambda r: f"technical_indicators_{_today()}", "Binance (computed)"),
    _entry("correlation_matrix", _fetch_correlation, shaping.shape_correlation_matrix,
           lambda r: f"correlation_matrix_{CORRELATION_DAYS}d", "Binance (computed)"),
    _entry("support_resistance", _fetch_levels, shaping.shape_support_resistance,
           lambda r: f"support_resistance_{_today()}", "Binance (computed)"),

    _entry("staking_rewards", lambda r: reference.get_staking_rewards(), shaping.shape_staking_rewards,
           lambda r: "staking_rewards", "Curated snapshot"),
    _entry("nft_collections", lambda r: reference.get_nft_collections(r.limit, r.chain),
           shaping.shape_nft_collections, lambda r: f"nft_collections_{r.chain or 'all'}", "Curated snapshot", "nft"),
    _entry("nft_stats", lambda r: reference.get_nft_market_stats(), shaping.shape_nft_stats,
           lambda r: f"nft_market_stats_{_today()}", "Curated snapshot", "nft"),
]

CATEGORIES: dict[str, Category] = {c.id: c for c in _REGISTRY}