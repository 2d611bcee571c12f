"""
shaping.py — per-category row shapers.

Each shaper maps provider-shaped payloads to flat rows keyed by output field
name. The registry then conforms every row to the category's declared schema,
so shapers only need to name the fields they know about.
"""
from __future__ import annotations

from itertools import zip_longest

# Order-book aggregate columns that only the first row carries
ORDER_BOOK_AGGREGATES = ("spread", "spread_percent", "total_bid_volume", "total_ask_volume")


def _join(values) -> str:
    return ", ".join(str(v) for v in values or [])


# ---------------------------------------------------------------------------
# Spot market
# ---------------------------------------------------------------------------

def shape_market_overview(coins: list[dict]) -> list[dict]:
    return [
        {
            "symbol":                   c.get("symbol"),
            "name":                     c.get("name"),
            "price":                    c.get("price"),
            "price_change_24h":         c.get("priceChange24h"),
            "price_change_percent_24h": c.get("priceChangePercent24h"),
            "high_24h":                 c.get("high24h"),
            "low_24h":                  c.get("low24h"),
            "volume_24h":               c.get("quoteVolume24h", c.get("volume24h")),
            "market_cap":               c.get("marketCap"),
            "circulating_supply":       c.get("circulatingSupply"),
            "bid_price":                c.get("bidPrice"),
            "ask_price":                c.get("askPrice"),
            "spread":                   c.get("spread"),
            "vwap":                     c.get("vwap"),
            "trades_count_24h":         c.get("tradesCount24h"),
        }
        for c in coins
    ]


def shape_historical_prices(candles: list[dict]) -> list[dict]:
    return [
        {
            "symbol":            k.get("symbol"),
            "timestamp":         k.get("timestamp"),
            "open":              k.get("open"),
            "high":              k.get("high"),
            "low":               k.get("low"),
            "close":             k.get("close"),
            "volume":            k.get("volume"),
            "quote_volume":      k.get("quoteVolume"),
            "trades_count":      k.get("tradesCount"),
            "taker_buy_volume":  k.get("takerBuyVolume"),
            "taker_sell_volume": k.get("takerSellVolume"),
        }
        for k in candles
    ]


def shape_order_book(book: dict) -> list[dict]:
    """
    Bids and asks are zipped by index to the longer side. Only row 0 carries
    the book-level aggregates; later rows leave them as "".
    """
    rows = []
    levels = zip_longest(book.get("bids") or [], book.get("asks") or [])
    for i, (bid, ask) in enumerate(levels):
        bid = bid or {}
        ask = ask or {}
        row = {
            "symbol":       book.get("symbol"),
            "bid_price":    bid.get("price"),
            "bid_quantity": bid.get("quantity"),
            "ask_price":    ask.get("price"),
            "ask_quantity": ask.get("quantity"),
        }
        if i == 0:
            row["spread"] = book.get("spread")
            row["spread_percent"] = book.get("spreadPercent")
            row["total_bid_volume"] = book.get("totalBidVolume")
            row["total_ask_volume"] = book.get("totalAskVolume")
        else:
            row.update({field: "" for field in ORDER_BOOK_AGGREGATES})
        rows.append(row)
    return rows


def shape_recent_trades(trades: list[dict]) -> list[dict]:
    return [
        {
            "symbol":         t.get("symbol"),
            "trade_id":       t.get("id"),
            "price":          t.get("price"),
            "quantity":       t.get("quantity"),
            "quote_quantity": t.get("quoteQuantity"),
            "timestamp":      t.get("timestamp"),
            "is_buyer_maker": t.get("isBuyerMaker"),
            "trade_type":     t.get("tradeType"),
        }
        for t in trades
    ]


def shape_global_stats(stats: dict) -> list[dict]:
    return [{
        "total_market_cap":        stats.get("totalMarketCap"),
        "total_volume_24h":        stats.get("totalVolume24h"),
        "btc_dominance":           stats.get("btcDominance"),
        "eth_dominance":           stats.get("ethDominance"),
        "market_cap_change_24h":   stats.get("marketCapChange24h", 0),
        "active_cryptocurrencies": stats.get("activeCryptocurrencies"),
        "active_markets":          stats.get("activeMarkets", 0),
    }]


def shape_gainers_losers(lists: dict) -> list[dict]:
    """Gainers first (largest gain first), then losers (largest loss first)."""
    rows = []
    for key, rank_type in (("gainers", "GAINER"), ("losers", "LOSER")):
        ordered = sorted(
            lists.get(key) or [],
            key=lambda c: c.get("priceChangePercent24h") or 0,
            reverse=(key == "gainers"),
        )
        for c in ordered:
            rows.append({
                "symbol":                   c.get("symbol"),
                "name":                     c.get("name"),
                "price":                    c.get("price"),
                "price_change_percent_24h": c.get("priceChangePercent24h"),
                "volume_24h":               c.get("quoteVolume24h", c.get("volume24h")),
                "market_cap":               c.get("marketCap"),
                "rank_type":                rank_type,
            })
    return rows


def shape_categories(stats: list[dict]) -> list[dict]:
    return [
        {
            "category":             s.get("category"),
            "coin_count":           s.get("coinCount"),
            "total_market_cap":     s.get("totalMarketCap"),
            "avg_price_change_24h": s.get("avgPriceChange24h"),
            "total_volume_24h":     s.get("totalVolume24h"),
            "top_performers":       _join(s.get("topPerformers")),
        }
        for s in stats
    ]


def shape_exchange_info(symbols: list[dict]) -> list[dict]:
    return [
        {
            "symbol":       s.get("symbol"),
            "base_asset":   s.get("baseAsset"),
            "quote_asset":  s.get("quoteAsset"),
            "status":       s.get("status"),
            "min_price":    s.get("minPrice"),
            "max_price":    s.get("maxPrice"),
            "tick_size":    s.get("tickSize"),
            "min_qty":      s.get("minQty"),
            "max_qty":      s.get("maxQty"),
            "step_size":    s.get("stepSize"),
            "min_notional": s.get("minNotional"),
        }
        for s in symbols
    ]


# ---------------------------------------------------------------------------
# DeFi and on-chain
# ---------------------------------------------------------------------------

def shape_defi_protocols(protocols: list[dict]) -> list[dict]:
    return [
        {
            "name":           p.get("name"),
            "chain":          p.get("chain"),
            "tvl":            p.get("tvl"),
            "tvl_change_24h": p.get("change1d"),
            "tvl_change_7d":  p.get("change7d"),
            "category":       p.get("category"),
            "symbol":         p.get("symbol"),
        }
        for p in protocols
    ]


def shape_defi_yields(pools: list[dict]) -> list[dict]:
    return [
        {
            "protocol":   p.get("protocol"),
            "chain":      p.get("chain"),
            "symbol":     p.get("symbol"),
            "tvl":        p.get("tvl"),
            "apy":        p.get("apy"),
            "apy_base":   p.get("apyBase"),
            "apy_reward": p.get("apyReward"),
        }
        for p in pools
    ]


def shape_stablecoins(coins: list[dict]) -> list[dict]:
    return [
        {
            "name":          c.get("name"),
            "symbol":        c.get("symbol"),
            "market_cap":    c.get("marketCap"),
            "chain":         c.get("chain"),
            "peg_deviation": c.get("pegDeviation", 0),
        }
        for c in coins
    ]


def shape_fear_greed(index: dict) -> list[dict]:
    return [{
        "value":          index.get("value"),
        "label":          index.get("label"),
        "timestamp":      index.get("timestamp"),
        "previous_value": index.get("previousValue", index.get("value")),
        "previous_label": index.get("previousLabel", index.get("label")),
    }]


def shape_chain_tvl(payload: dict) -> list[dict]:
    """Dominance is each chain's share of the reported total, in percent."""
    total = payload.get("totalTVL") or 0
    return [
        {
            "chain":           c.get("name"),
            "tvl":             c.get("tvl"),
            "tvl_change_24h":  c.get("change1d", 0),
            "protocols_count": c.get("protocols", 0),
            "dominance":       (c.get("tvl") or 0) / total * 100 if total else 0,
        }
        for c in payload.get("chains") or []
    ]


def shape_bitcoin_onchain(stats: dict) -> list[dict]:
    hash_rate = stats.get("hashRate")
    return [{
        # blockchain.info reports GH/s; exported as EH/s
        "hash_rate":       hash_rate / 1e9 if hash_rate is not None else None,
        "difficulty":      stats.get("difficulty"),
        "block_height":    stats.get("blockHeight"),
        "avg_block_time":  stats.get("avgBlockTime"),
        "unconfirmed_txs": stats.get("unconfirmedTxs"),
        "mempool_size":    stats.get("mempoolSize"),
    }]


def shape_eth_gas(gas: dict) -> list[dict]:
    return [{
        "slow_gwei":     gas.get("slow"),
        "standard_gwei": gas.get("standard"),
        "fast_gwei":     gas.get("fast"),
        "base_fee":      gas.get("baseFee"),
        "block_number":  gas.get("blockNumber", 0),
    }]


def shape_token_unlocks(unlocks: list[dict]) -> list[dict]:
    return [
        {
            "name":                   u.get("name"),
            "symbol":                 u.get("symbol"),
            "unlock_date":            u.get("unlockDate"),
            "days_until":             u.get("daysUntil"),
            "unlock_amount":          u.get("unlockAmount"),
            "unlock_value_usd":       u.get("unlockValueUsd"),
            "percent_of_total":       u.get("percentOfTotal"),
            "percent_of_circulating": u.get("percentOfCirculating"),
            "unlock_type":            u.get("unlockType"),
            "risk_level":             u.get("riskLevel"),
        }
        for u in unlocks
    ]


def shape_staking_rewards(rewards: list[dict]) -> list[dict]:
    return [
        {
            "name":           r.get("name"),
            "symbol":         r.get("symbol"),
            "staking_apy":    r.get("stakingApy"),
            "inflation_rate": r.get("inflationRate"),
            "total_staked":   r.get("totalStaked"),
            "staked_percent": r.get("stakedPercent"),
            "lockup_period":  r.get("lockupPeriod"),
            "min_stake":      r.get("minStake"),
        }
        for r in rewards
    ]


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

def shape_sentiment_aggregated(agg: dict) -> list[dict]:
    by_source = agg.get("bySource") or {}
    by_coin = agg.get("byCoin") or {}
    return [{
        "overall_score":   agg.get("overallScore"),
        "overall_label":   agg.get("overallLabel"),
        "total_posts":     agg.get("totalPosts"),
        "by_source":       _join(f"{s}: {v['posts']} posts ({v['sentiment']})" for s, v in by_source.items()),
        "by_coin":         _join(f"{c}: {v['sentiment']}" for c, v in list(by_coin.items())[:10]),
        "top_bullish":     " | ".join((agg.get("topBullish") or [])[:5]),
        "top_bearish":     " | ".join((agg.get("topBearish") or [])[:5]),
        "trending_topics": _join(agg.get("trendingTopics")),
    }]


def _post_rows(posts: list[dict], source_field: str) -> list[dict]:
    rows = []
    for p in posts:
        row = {
            "title":           (p.get("title") or "")[:100],
            "sentiment_score": round((p.get("score") or 0) * 100),
            "sentiment_label": p.get("label"),
            "coins_mentioned": _join(p.get("coins")),
            "url":             p.get("url"),
        }
        if source_field == "subreddit":
            row["subreddit"] = p.get("platform")
            row["upvotes"] = p.get("likes")
            row["comments"] = p.get("comments")
        else:
            row["source"] = p.get("platform")
            row["votes"] = p.get("votes", p.get("likes"))
        rows.append(row)
    return rows


def shape_sentiment_reddit(posts: list[dict]) -> list[dict]:
    return _post_rows(posts, "subreddit")


def shape_sentiment_news(posts: list[dict]) -> list[dict]:
    return _post_rows(posts, "source")


SENTIMENT_COIN_SUMMARY_FIELDS = (
    "overall_sentiment", "sentiment_label", "social_volume",
    "sources_breakdown", "trending", "keywords",
)
SENTIMENT_COIN_POST_FIELDS = (
    "post_title", "post_source", "post_sentiment_score",
    "post_sentiment_label", "post_url", "post_timestamp",
)


def shape_sentiment_coin(deep: dict) -> list[dict]:
    """
    One summary row followed by one row per recent post, all with the same
    columns. `row_type` tells them apart; columns belonging to the other kind
    of row are "".
    """
    coin = deep.get("coin")
    sources = deep.get("sources") or {}
    summary = {
        "coin":              coin,
        "row_type":          "summary",
        "overall_sentiment": deep.get("overallSentiment"),
        "sentiment_label":   deep.get("sentimentLabel"),
        "social_volume":     deep.get("socialVolume"),
        "sources_breakdown": _join(f"{s}: {v['count']} ({v['sentiment']})" for s, v in sources.items()),
        "trending":          deep.get("trending"),
        "keywords":          _join(deep.get("keywords")),
    }
    summary.update({field: "" for field in SENTIMENT_COIN_POST_FIELDS})

    rows = [summary]
    for post in deep.get("recentPosts") or []:
        row = {"coin": coin, "row_type": "post"}
        row.update({field: "" for field in SENTIMENT_COIN_SUMMARY_FIELDS})
        row.update({
            "post_title":           (post.get("title") or "")[:100],
            "post_source":          post.get("platform"),
            "post_sentiment_score": round((post.get("score") or 0) * 100),
            "post_sentiment_label": post.get("label"),
            "post_url":             post.get("url"),
            "post_timestamp":       post.get("timestamp"),
        })
        rows.append(row)
    return rows


# ---------------------------------------------------------------------------
# Whales
# ---------------------------------------------------------------------------

def shape_whale_transactions(txs: list[dict]) -> list[dict]:
    return [
        {
            "hash":       t.get("hash"),
            "blockchain": t.get("blockchain"),
            "from":       t.get("fromLabel") if t.get("fromLabel") not in (None, "Unknown") else t.get("from"),
            "to":         t.get("toLabel") if t.get("toLabel") not in (None, "Unknown") else t.get("to"),
            "amount":     t.get("amount"),
            "amount_usd": t.get("amountUsd"),
            "type":       t.get("type"),
            "timestamp":  t.get("timestamp"),
        }
        for t in txs
    ]


def shape_exchange_flows(flows: list[dict]) -> list[dict]:
    return [
        {
            "exchange":     f.get("exchange"),
            "inflow_24h":   f.get("inflow24h"),
            "outflow_24h":  f.get("outflow24h"),
            "net_flow_24h": f.get("netFlow24h"),
            "inflow_usd":   f.get("inflowUsd"),
            "outflow_usd":  f.get("outflowUsd"),
            "net_flow_usd": f.get("netFlowUsd"),
        }
        for f in flows
    ]


# ---------------------------------------------------------------------------
# Derivatives
# ---------------------------------------------------------------------------

def shape_funding_rates(rates: list[dict]) -> list[dict]:
    return [
        {
            "symbol":                  r.get("symbol"),
            "funding_rate":            r.get("fundingRate"),
            "funding_rate_annualized": r.get("fundingRateAnnualized"),
            "next_funding_time":       r.get("nextFundingTime"),
            "mark_price":              r.get("markPrice"),
            "index_price":             r.get("indexPrice"),
            "open_interest":           r.get("openInterest"),
            "volume_24h":              r.get("volume24h"),
        }
        for r in rates
    ]


def shape_liquidations(rows: list[dict]) -> list[dict]:
    return [
        {
            "symbol":              r.get("symbol"),
            "long_liquidations":   r.get("longLiquidations"),
            "short_liquidations":  r.get("shortLiquidations"),
            "total_liquidations":  r.get("totalLiquidations"),
            "largest_liquidation": r.get("largestLiquidation"),
            "is_estimated":        r.get("isEstimated", True),
        }
        for r in rows
    ]


def shape_open_interest(rows: list[dict]) -> list[dict]:
    return [
        {
            "symbol":            r.get("symbol"),
            "open_interest":     r.get("openInterest"),
            "open_interest_usd": r.get("openInterestUsd"),
            "oi_change_24h":     r.get("oiChange24h"),
            "price":             r.get("price"),
            "volume_24h":        r.get("volume24h"),
        }
        for r in rows
    ]


def shape_long_short_ratio(rows: list[dict]) -> list[dict]:
    return [
        {
            "symbol":                 r.get("symbol"),
            "long_ratio":             r.get("longRatio"),
            "short_ratio":            r.get("shortRatio"),
            "long_short_ratio":       r.get("longShortRatio"),
            "top_trader_long_ratio":  r.get("topTraderLongRatio"),
            "top_trader_short_ratio": r.get("topTraderShortRatio"),
            "timestamp":              r.get("timestamp"),
        }
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Technical analysis
# ---------------------------------------------------------------------------

def shape_technical_indicators(summaries: list[dict]) -> list[dict]:
    return [
        {
            "symbol":          s.get("symbol"),
            "price":           s.get("price"),
            "rsi":             s.get("rsi"),
            "rsi_signal":      s.get("rsiSignal"),
            "macd":            s.get("macd"),
            "macd_signal":     s.get("macdSignal"),
            "macd_histogram":  s.get("macdHistogram"),
            "sma_20":          s.get("sma20"),
            "sma_50":          s.get("sma50"),
            "sma_200":         s.get("sma200"),
            "ema_12":          s.get("ema12"),
            "ema_26":          s.get("ema26"),
            "bollinger_upper": s.get("bollingerUpper"),
            "bollinger_lower": s.get("bollingerLower"),
            "bollinger_width": s.get("bollingerWidth"),
            "atr":             s.get("atr"),
            "stoch_k":         s.get("stochK"),
            "stoch_d":         s.get("stochD"),
            "overall_signal":  s.get("overallSignal"),
        }
        for s in summaries
    ]


def shape_correlation_matrix(pairs: list[dict]) -> list[dict]:
    return [
        {
            "symbol_1":     p.get("symbol1"),
            "symbol_2":     p.get("symbol2"),
            "correlation":  p.get("correlation"),
            "relationship": p.get("relationship"),
        }
        for p in pairs
    ]


def shape_support_resistance(levels: list[dict]) -> list[dict]:
    return [
        {
            "symbol":      lvl.get("symbol"),
            "price_level": lvl.get("priceLevel"),
            "type":        lvl.get("type"),
            "strength":    lvl.get("strength"),
            "touches":     lvl.get("touches"),
            "last_tested": lvl.get("lastTested"),
        }
        for lvl in levels
    ]


# ---------------------------------------------------------------------------
# NFT
# ---------------------------------------------------------------------------

def shape_nft_collections(collections: list[dict]) -> list[dict]:
    return [
        {
            "name":              c.get("name"),
            "chain":             c.get("chain"),
            "floor_price":       c.get("floorPrice"),
            "floor_price_usd":   c.get("floorPriceUsd"),
            "volume_24h":        c.get("volume24h"),
            "volume_change_24h": c.get("volumeChange24h"),
            "sales_24h":         c.get("sales24h"),
            "owners":            c.get("owners"),
            "total_supply":      c.get("totalSupply"),
            "listed_percent":    c.get("listedPercent"),
            "market_cap":        c.get("marketCap"),
        }
        for c in collections
    ]


def shape_nft_stats(stats: dict) -> list[dict]:
    breakdown = stats.get("chainBreakdown") or []
    rows = [
        {"metric": "Total Market Cap (USD)", "value": stats.get("totalMarketCap"), "change_24h": None},
        {"metric": "Total Volume 24h (USD)", "value": stats.get("totalVolume24h"), "change_24h": stats.get("volumeChange24h")},
        {"metric": "Total Sales 24h", "value": stats.get("totalSales24h"), "change_24h": None},
        {"metric": "Average Sale Price (USD)", "value": stats.get("averagePrice"), "change_24h": None},
        {"metric": "Top Chain by Volume", "value": breakdown[0]["chain"] if breakdown else None, "change_24h": None},
    ]
    for entry in breakdown:
        rows.append({"metric": f"{entry['chain']} Volume %", "value": entry["percentage"], "change_24h": None})
    rows.append({"metric": "Last Updated", "value": stats.get("timestamp"), "change_24h": None})
    return rows
