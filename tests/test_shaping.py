# tests/test_shaping.py
from __future__ import annotations

from reportkit.services import shaping
from reportkit.services.categories import CATEGORIES, conform_rows


def test_order_book_zips_to_longer_side():
    book = {
        "symbol":         "BTCUSDT",
        "bids":           [{"price": 99 - i, "quantity": 1} for i in range(3)],
        "asks":           [{"price": 101 + i, "quantity": 2} for i in range(5)],
        "spread":         2.0,
        "spreadPercent":  2.0,
        "totalBidVolume": 294.0,
        "totalAskVolume": 1030.0,
    }
    rows = shaping.shape_order_book(book)
    assert len(rows) == 5
    assert rows[0]["spread"] == 2.0
    assert rows[0]["total_ask_volume"] == 1030.0
    for row in rows[1:]:
        assert all(row[f] == "" for f in shaping.ORDER_BOOK_AGGREGATES)
    assert rows[4]["bid_price"] is None
    assert rows[4]["ask_price"] == 105


def test_chain_tvl_dominance():
    rows = shaping.shape_chain_tvl({
        "totalTVL": 400.0,
        "chains":   [{"name": "Ethereum", "tvl": 300.0}, {"name": "Solana", "tvl": 100.0}],
    })
    assert [r["chain"] for r in rows] == ["Ethereum", "Solana"]
    assert rows[0]["dominance"] == 75.0
    assert rows[1]["dominance"] == 25.0


def test_chain_tvl_zero_total():
    rows = shaping.shape_chain_tvl({"totalTVL": 0, "chains": [{"name": "X", "tvl": 0}]})
    assert rows[0]["dominance"] == 0


def test_gainers_then_losers_ordered():
    rows = shaping.shape_gainers_losers({
        "gainers": [{"symbol": "A", "priceChangePercent24h": 5}, {"symbol": "B", "priceChangePercent24h": 12}],
        "losers":  [{"symbol": "C", "priceChangePercent24h": -3}, {"symbol": "D", "priceChangePercent24h": -9}],
    })
    assert [r["symbol"] for r in rows] == ["B", "A", "D", "C"]
    assert [r["rank_type"] for r in rows] == ["GAINER", "GAINER", "LOSER", "LOSER"]


def test_sentiment_coin_summary_and_posts_share_columns():
    deep = {
        "coin":             "BTC",
        "overallSentiment": 0.4,
        "sentimentLabel":   "bullish",
        "socialVolume":     2,
        "sources":          {"reddit": {"count": 2, "sentiment": 0.4}},
        "trending":         True,
        "keywords":         ["moon", "hodl"],
        "recentPosts": [
            {"title": "BTC to the moon", "platform": "reddit", "score": 0.756, "label": "bullish",
             "url": "https://reddit.com/x", "timestamp": "2024-01-01T00:00:00+00:00"},
        ],
    }
    rows = conform_rows(shaping.shape_sentiment_coin(deep), CATEGORIES["sentiment_coin"].fields)
    assert [r["row_type"] for r in rows] == ["summary", "post"]
    assert list(rows[0]) == list(rows[1]) == list(CATEGORIES["sentiment_coin"].fields)

    summary, post = rows
    assert summary["sources_breakdown"] == "reddit: 2 (0.4)"
    assert summary["keywords"] == "moon, hodl"
    assert summary["post_title"] == ""
    assert post["overall_sentiment"] == ""
    assert post["post_sentiment_score"] == 76
    assert post["coin"] == "BTC"


def test_bitcoin_hash_rate_reported_in_eh():
    rows = shaping.shape_bitcoin_onchain({"hashRate": 6e11})
    assert rows[0]["hash_rate"] == 600.0


def test_conform_rows_fills_and_orders():
    rows = conform_rows([{"b": 2, "extra": 9}], ("a", "b"))
    assert rows == [{"a": None, "b": 2}]


def test_market_overview_shaper_maps_provider_keys():
    rows = shaping.shape_market_overview([{"symbol": "BTC", "quoteVolume24h": 5.0, "marketCap": 1.0}])
    assert rows[0]["volume_24h"] == 5.0
    assert rows[0]["market_cap"] == 1.0
