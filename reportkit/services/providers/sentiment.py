"""
sentiment.py — social and news sentiment from Reddit, CryptoPanic and
CoinGecko trending, scored locally with a crypto-slang lexicon.
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from reportkit.core.config import COINGECKO_API, CRYPTOPANIC_API, CRYPTOPANIC_API_KEY, REDDIT_URL
from reportkit.services.providers.http import get_json

logger = logging.getLogger(__name__)

DEFAULT_SUBREDDITS = ["cryptocurrency", "bitcoin", "ethtrader", "CryptoMarkets", "altcoin"]

LEXICON = {
    "very_bullish": [
        "moon", "mooning", "rocket", "lambo", "millionaire", "generational",
        "life-changing", "massive", "explosion", "parabolic", "100x", "1000x",
        "guaranteed", "inevitable", "unstoppable", "diamond hands",
        "ath", "all time high", "breakout", "face melting", "send it",
    ],
    "bullish": [
        "buy", "buying", "long", "bull", "bullish", "accumulate", "accumulating",
        "hodl", "hold", "holding", "support", "bounce", "recovery", "reversal",
        "undervalued", "cheap", "discount", "opportunity", "potential", "promising",
        "adoption", "partnership", "institutional", "upgrade", "launch", "mainnet",
        "pump", "green", "up", "gain", "profit", "winner", "gem",
    ],
    "bearish": [
        "sell", "selling", "short", "bear", "bearish", "dump", "dumping",
        "resistance", "rejection", "overbought", "correction", "pullback",
        "overvalued", "expensive", "bubble", "top", "distribution", "weak",
        "concern", "worry", "risk", "careful", "caution", "warning", "down",
        "red", "loss", "losing", "drop", "fall", "decline",
    ],
    "very_bearish": [
        "crash", "crashing", "scam", "fraud", "rug", "rugpull", "ponzi",
        "dead", "dying", "worthless", "zero", "rekt", "liquidated", "bankrupt",
        "collapse", "disaster", "catastrophe", "exit scam", "hack", "hacked",
        "bagholders", "capitulation", "bloodbath", "apocalypse",
    ],
}

KNOWN_COINS = {
    "BTC", "ETH", "BNB", "XRP", "SOL", "ADA", "AVAX", "DOGE", "DOT", "MATIC",
    "SHIB", "TRX", "LINK", "ATOM", "UNI", "XLM", "LTC", "NEAR", "APT", "ARB",
    "OP", "FIL", "HBAR", "VET", "ICP", "ALGO", "QNT", "FTM", "SAND", "MANA",
    "AAVE", "AXS", "EOS", "THETA", "XTZ", "EGLD", "FLOW", "CHZ", "PEPE", "WIF",
    "BONK", "FLOKI", "RENDER", "INJ", "SUI", "SEI", "TIA", "JUP", "PYTH",
}
COIN_NAMES = {
    "bitcoin": "BTC", "ethereum": "ETH", "solana": "SOL",
    "cardano": "ADA", "polkadot": "DOT", "avalanche": "AVAX",
    "polygon": "MATIC", "chainlink": "LINK", "dogecoin": "DOGE",
}
_TICKER_PATTERNS = [
    re.compile(r"\$([A-Z]{2,10})\b"),
    re.compile(r"\b([A-Z]{2,5})/USDT?\b"),
]


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def analyze_text(text: str) -> dict:
    """Lexicon score in [-1, 1] with a five-step label and 0..1 confidence."""
    lower = text.lower()
    words = lower.split()
    counts = Counter()
    keywords = []
    for bucket, terms in LEXICON.items():
        for term in terms:
            if " " in term:
                hits = lower.count(term)
            else:
                hits = sum(1 for w in words if term in w)
            if hits:
                counts[bucket] += hits
                keywords.append(term)

    bull = counts["very_bullish"] * 2 + counts["bullish"]
    bear = counts["very_bearish"] * 2 + counts["bearish"]
    total = bull + bear
    if total == 0:
        return {"score": 0.0, "label": "neutral", "confidence": 0.0, "keywords": []}

    score = (bull - bear) / total
    return {
        "score":      score,
        "label":      _post_label(score, 0.6, 0.2),
        "confidence": min(1.0, total / 10),
        "keywords":   list(dict.fromkeys(keywords))[:10],
    }


def _post_label(score: float, strong: float, weak: float) -> str:
    if score >= strong:
        return "very_bullish"
    if score >= weak:
        return "bullish"
    if score <= -strong:
        return "very_bearish"
    if score <= -weak:
        return "bearish"
    return "neutral"


def extract_coins(text: str) -> list[str]:
    found = []
    for pattern in _TICKER_PATTERNS:
        for match in pattern.finditer(text):
            coin = match.group(1).upper()
            if coin in KNOWN_COINS:
                found.append(coin)
    lower = text.lower()
    found.extend(symbol for name, symbol in COIN_NAMES.items() if name in lower)
    return list(dict.fromkeys(found))


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def get_reddit_posts(subreddits: Optional[list[str]] = None, per_sub: int = 25) -> list[dict]:
    posts = []
    for sub in subreddits or DEFAULT_SUBREDDITS:
        try:
            data = get_json(f"{REDDIT_URL}/r/{sub}/hot.json", params={"limit": per_sub})
        except Exception as exc:
            logger.warning("[SENTIMENT] r/%s failed: %s", sub, exc)
            continue
        for child in (data.get("data") or {}).get("children", []):
            p = child.get("data", {})
            text = f"{p.get('title', '')} {p.get('selftext') or ''}"
            scored = analyze_text(text)
            posts.append({
                "source":     "reddit",
                "platform":   f"r/{sub}",
                "title":      p.get("title", ""),
                "url":        f"https://reddit.com{p.get('permalink', '')}",
                "timestamp":  datetime.fromtimestamp(p.get("created_utc") or 0, tz=timezone.utc).isoformat(),
                "score":      scored["score"],
                "label":      scored["label"],
                "confidence": scored["confidence"],
                "likes":      p.get("ups") or 0,
                "comments":   p.get("num_comments") or 0,
                "coins":      extract_coins(text),
                "keywords":   scored["keywords"],
            })
    return posts


def get_news_posts(news_filter: str = "hot") -> list[dict]:
    try:
        data = get_json(
            f"{CRYPTOPANIC_API}/posts/",
            params={"auth_token": CRYPTOPANIC_API_KEY or "FREE", "filter": news_filter, "public": "true"},
        )
    except Exception as exc:
        logger.warning("[SENTIMENT] CryptoPanic failed: %s", exc)
        return []

    posts = []
    for post in data.get("results", []):
        votes = post.get("votes") or {}
        positive, negative = votes.get("positive", 0), votes.get("negative", 0)
        scored = analyze_text(post.get("title", ""))
        vote_score = (positive - negative) / max(1, positive + negative)
        combined = (scored["score"] + vote_score) / 2
        source = (post.get("source") or {}).get("title") or "News"
        posts.append({
            "source":     "cryptopanic",
            "platform":   source,
            "title":      post.get("title", ""),
            "url":        post.get("url", ""),
            "timestamp":  post.get("published_at", ""),
            "score":      combined,
            "label":      _post_label(combined, 0.4, 0.15),
            "confidence": min(1.0, (positive + negative) / 20),
            "likes":      positive,
            "comments":   0,
            "votes":      positive + negative,
            "coins":      [c.get("code") for c in post.get("currencies") or [] if c.get("code")],
            "keywords":   scored["keywords"],
        })
    return posts


def get_trending_symbols() -> list[str]:
    try:
        data = get_json(f"{COINGECKO_API}/search/trending")
    except Exception as exc:
        logger.warning("[SENTIMENT] CoinGecko trending failed: %s", exc)
        return []
    return [c["item"]["symbol"].upper() for c in data.get("coins", []) if c.get("item")]


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _engagement(post: dict) -> float:
    return (post["likes"] + post["comments"]) * (1 + post["confidence"])


def aggregate_sentiment() -> dict:
    reddit = get_reddit_posts()
    news = get_news_posts("hot")
    trending = get_trending_symbols()
    posts = reddit + news

    overall = round((_avg([p["score"] for p in posts]) + 1) * 50)
    if overall >= 70:
        label = "Very Bullish"
    elif overall >= 55:
        label = "Bullish"
    elif overall <= 30:
        label = "Very Bearish"
    elif overall <= 45:
        label = "Bearish"
    else:
        label = "Neutral"

    by_source = {
        name: {"posts": len(group), "sentiment": round(_avg([p["score"] for p in group]) * 100)}
        for name, group in (("reddit", reddit), ("cryptopanic", news))
    }
    coin_scores: dict[str, list[float]] = {}
    for p in posts:
        for coin in p["coins"]:
            coin_scores.setdefault(coin, []).append(p["score"])
    by_coin = {
        coin: {"sentiment": round(_avg(scores) * 100), "volume": len(scores), "trending": coin in trending}
        for coin, scores in sorted(coin_scores.items(), key=lambda kv: len(kv[1]), reverse=True)[:50]
    }
    ranked = sorted(posts, key=_engagement, reverse=True)
    return {
        "overallScore":   overall,
        "overallLabel":   label,
        "totalPosts":     len(posts),
        "bySource":       by_source,
        "byCoin":         by_coin,
        "topBullish":     [p["title"] for p in ranked if p["score"] > 0.2][:10],
        "topBearish":     [p["title"] for p in ranked if p["score"] < -0.2][:10],
        "trendingTopics": trending,
    }


def coin_sentiment(symbol: str) -> dict:
    symbol = symbol.upper()
    posts = get_reddit_posts(["cryptocurrency", "bitcoin", "ethtrader", "altcoin"], 50) + get_news_posts("hot")
    trending = get_trending_symbols()
    coin_posts = [p for p in posts if symbol in p["coins"] or symbol in p["title"].upper()]

    score = round(_avg([p["score"] for p in coin_posts]) * 100)
    if score >= 40:
        label = "Very Bullish"
    elif score >= 15:
        label = "Bullish"
    elif score <= -40:
        label = "Very Bearish"
    elif score <= -15:
        label = "Bearish"
    else:
        label = "Neutral"

    sources: dict[str, list[float]] = {}
    for p in coin_posts:
        sources.setdefault(p["source"], []).append(p["score"])
    keywords = Counter(kw for p in coin_posts for kw in p["keywords"])

    return {
        "coin":             symbol,
        "overallSentiment": score,
        "sentimentLabel":   label,
        "socialVolume":     len(coin_posts),
        "sources":          {s: {"count": len(v), "sentiment": round(_avg(v) * 100)} for s, v in sources.items()},
        "recentPosts":      sorted(coin_posts, key=lambda p: p["timestamp"], reverse=True)[:20],
        "trending":         symbol in trending,
        "keywords":         [kw for kw, _ in keywords.most_common(10)],
    }
