"""
onchain.py — free on-chain and DeFi sources: Alternative.me fear & greed,
DeFiLlama (protocols, chains, stablecoins, pools, unlocks), blockchain.info
and an Ethereum JSON-RPC node for gas.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone

from reportkit.core.config import BLOCKCHAIN_INFO_API, DEFILLAMA_API, ETH_RPC_URL, FEAR_GREED_API
from reportkit.services.providers.http import get_json, post_json, to_float

_DAY_SECONDS = 86_400
UNLOCK_WINDOW_DAYS = 90
MAX_UNLOCKS_PER_TOKEN = 5


# ---------------------------------------------------------------------------
# Sentiment index
# ---------------------------------------------------------------------------

def get_fear_greed() -> dict:
    data = get_json(FEAR_GREED_API, params={"limit": 2})
    entries = data.get("data") or []
    if not entries:
        raise ValueError("fear & greed response carried no data")
    current = entries[0]
    previous = entries[1] if len(entries) > 1 else current
    return {
        "value":         int(current.get("value", 0)),
        "label":         current.get("value_classification"),
        "timestamp":     datetime.fromtimestamp(int(current.get("timestamp", 0)), tz=timezone.utc).isoformat(),
        "previousValue": int(previous.get("value", 0)),
        "previousLabel": previous.get("value_classification"),
    }


# ---------------------------------------------------------------------------
# DeFiLlama
# ---------------------------------------------------------------------------

def get_defi_protocols(limit: int = 100) -> list[dict]:
    protocols = get_json(f"{DEFILLAMA_API}/protocols")
    protocols = sorted(protocols, key=lambda p: to_float(p.get("tvl")), reverse=True)[:limit]
    return [
        {
            "name":        p.get("name"),
            "chain":       p.get("chain") or "Multi-chain",
            "tvl":         to_float(p.get("tvl")),
            "change1d":    p.get("change_1d"),
            "change7d":    p.get("change_7d"),
            "category":    p.get("category") or "Unknown",
            "symbol":      p.get("symbol"),
        }
        for p in protocols
    ]


def get_chain_tvl(limit: int = 20) -> dict:
    chains = get_json(f"{DEFILLAMA_API}/v2/chains")
    total = sum(to_float(c.get("tvl")) for c in chains)
    top = sorted(chains, key=lambda c: to_float(c.get("tvl")), reverse=True)[:limit]
    return {
        "totalTVL": total,
        "chains": [{"name": c.get("name"), "tvl": to_float(c.get("tvl"))} for c in top],
    }


def get_stablecoins(limit: int = 20) -> list[dict]:
    data = get_json(f"{DEFILLAMA_API}/stablecoins")

    def _cap(asset):
        return to_float((asset.get("circulating") or {}).get("peggedUSD"))

    assets = sorted(data.get("peggedAssets", []), key=_cap, reverse=True)[:limit]
    return [
        {
            "name":      a.get("name"),
            "symbol":    a.get("symbol"),
            "marketCap": _cap(a),
            "chain":     (a.get("chains") or ["Multi-chain"])[0],
        }
        for a in assets
    ]


def get_yield_pools(limit: int = 100) -> list[dict]:
    data = get_json(f"{DEFILLAMA_API}/pools")
    pools = [
        p for p in data.get("data", [])
        if to_float(p.get("tvlUsd")) > 1_000_000 and to_float(p.get("apy")) > 0
    ]
    pools.sort(key=lambda p: to_float(p.get("apy")), reverse=True)
    return [
        {
            "protocol":  p.get("project"),
            "chain":     p.get("chain"),
            "symbol":    p.get("symbol"),
            "tvl":       to_float(p.get("tvlUsd")),
            "apy":       to_float(p.get("apy")),
            "apyBase":   p.get("apyBase"),
            "apyReward": p.get("apyReward"),
        }
        for p in pools[:limit]
    ]


def _unlock_risk(next_30d_percent: float) -> str:
    if next_30d_percent > 10:
        return "critical"
    if next_30d_percent > 5:
        return "high"
    if next_30d_percent > 2:
        return "medium"
    return "low"


def get_token_unlocks(now: float | None = None) -> list[dict]:
    """Upcoming unlock events within the next 90 days, soonest first."""
    now = now if now is not None else time.time()
    horizon = now + UNLOCK_WINDOW_DAYS * _DAY_SECONDS
    tokens = get_json(f"{DEFILLAMA_API}/unlocks")
    if not isinstance(tokens, list):
        return []

    rows = []
    for token in tokens:
        max_supply = to_float(token.get("maxSupply"))
        upcoming = []
        for event in token.get("events") or []:
            ts = to_float(event.get("timestamp"))
            if not now < ts < horizon:
                continue
            amount = to_float(event.get("noOfTokens"))
            upcoming.append({
                "timestamp":      ts,
                "amount":         amount,
                "percentOfTotal": amount / max_supply * 100 if max_supply else 0,
                "description":    event.get("description"),
            })
        if not upcoming:
            continue
        upcoming.sort(key=lambda e: e["timestamp"])
        next_30d = sum(e["percentOfTotal"] for e in upcoming if e["timestamp"] < now + 30 * _DAY_SECONDS)
        risk = _unlock_risk(next_30d)
        for event in upcoming[:MAX_UNLOCKS_PER_TOKEN]:
            rows.append({
                "name":                 token.get("name") or "Unknown",
                "symbol":               token.get("symbol") or "???",
                "unlockDate":           datetime.fromtimestamp(event["timestamp"], tz=timezone.utc).date().isoformat(),
                "daysUntil":            int((event["timestamp"] - now) // _DAY_SECONDS),
                "unlockAmount":         event["amount"],
                "unlockValueUsd":       None,
                "percentOfTotal":       event["percentOfTotal"],
                "percentOfCirculating": None,
                "unlockType":           event["description"] or "unknown",
                "riskLevel":            risk,
            })
    rows.sort(key=lambda r: r["daysUntil"])
    return rows


# ---------------------------------------------------------------------------
# Chain stats
# ---------------------------------------------------------------------------

def get_bitcoin_stats() -> dict:
    data = get_json(f"{BLOCKCHAIN_INFO_API}/stats", params={"format": "json"})
    return {
        "hashRate":       to_float(data.get("hash_rate")),
        "difficulty":     to_float(data.get("difficulty")),
        "blockHeight":    int(data.get("n_blocks_total") or 0),
        "avgBlockTime":   to_float(data.get("minutes_between_blocks")),
        "unconfirmedTxs": data.get("n_tx_unconfirmed"),
        "mempoolSize":    data.get("mempool_size"),
    }


def _rpc(method: str) -> str:
    data = post_json(ETH_RPC_URL, {"jsonrpc": "2.0", "method": method, "params": [], "id": 1})
    result = data.get("result")
    if not result:
        raise ValueError(f"{method} returned no result")
    return result


def get_eth_gas() -> dict:
    gwei = int(_rpc("eth_gasPrice"), 16) / 1e9
    block = int(_rpc("eth_blockNumber"), 16)
    return {
        "slow":        round(gwei * 0.8, 2),
        "standard":    round(gwei, 2),
        "fast":        round(gwei * 1.2, 2),
        "baseFee":     round(gwei, 2),
        "blockNumber": block,
    }
