"""
reference.py — curated snapshot tables for categories without a free live feed
(staking economics and top NFT collections).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# (name, symbol, apy %, inflation %, total staked, staked %, lockup, min stake)
_STAKING = [
    ("Ethereum",  "ETH",   3.8,  0.5, 34_000_000,    28, "Variable (withdrawals enabled)", 32),
    ("Solana",    "SOL",   7.2,  5.5, 390_000_000,   72, "~2-3 days",                      0),
    ("Cardano",   "ADA",   3.5,  2.0, 23_000_000_000, 63, "No lockup",                     0),
    ("Polkadot",  "DOT",  14.5, 10.0, 750_000_000,   52, "28 days",                        10),
    ("Cosmos",    "ATOM", 18.0, 14.0, 250_000_000,   64, "21 days",                        0),
    ("Avalanche", "AVAX",  8.5,  7.0, 260_000_000,   58, "2 weeks - 1 year",               25),
    ("NEAR",      "NEAR",  9.0,  5.0, 550_000_000,   45, "52-65 hours",                    0),
    ("Polygon",   "MATIC", 4.5,  2.5, 4_000_000_000, 39, "80 checkpoints (~2 days)",       1),
    ("Sui",       "SUI",   3.2,  4.0, 7_500_000_000, 75, "~1 day",                         0),
    ("Aptos",     "APT",   7.0,  7.0, 900_000_000,   82, "~30 days",                       10),
]

# (name, chain, floor, floor usd, volume 24h usd, volume change %, sales, owners,
#  supply, listed %, market cap usd)
_NFT_COLLECTIONS = [
    ("CryptoPunks",          "Ethereum", 48.5,  145000, 850000,  -5.2,  8,  3890,  10000, 8.5, 1_450_000_000),
    ("Bored Ape Yacht Club", "Ethereum", 15.2,  45600,  1200000, 12.5,  28, 5621,  10000, 6.8, 456_000_000),
    ("Mutant Ape Yacht Club", "Ethereum", 3.2,  9600,   580000,  8.3,   65, 12850, 20000, 6.0, 192_000_000),
    ("Azuki",                "Ethereum", 5.8,   17400,  420000,  -2.1,  25, 4892,  10000, 5.2, 174_000_000),
    ("Pudgy Penguins",       "Ethereum", 12.5,  37500,  890000,  25.6,  45, 4521,  8888,  4.3, 333_300_000),
    ("Doodles",              "Ethereum", 2.1,   6300,   125000,  -8.5,  18, 5890,  10000, 8.9, 63_000_000),
    ("DeGods",               "Ethereum", 4.5,   13500,  210000,  5.2,   22, 6250,  10000, 7.2, 135_000_000),
    ("Milady Maker",         "Ethereum", 3.8,   11400,  380000,  18.9,  42, 4120,  10000, 6.5, 114_000_000),
    ("Mad Lads",             "Solana",   85.0,  8500,   125000,  15.3,  35, 4520,  10000, 4.2, 85_000_000),
    ("Tensorians",           "Solana",   22.5,  2250,   85000,   8.7,   55, 3890,  10000, 5.8, 22_500_000),
    ("Claynosaurz",          "Solana",   35.0,  3500,   95000,   -3.2,  28, 4250,  10000, 3.8, 35_000_000),
    ("Ordinal Maxi Biz",     "Bitcoin",  0.025, 2450,   180000,  42.5,  85, 2150,  10000, 9.2, 24_500_000),
    ("NodeMonkes",           "Bitcoin",  0.18,  17640,  520000,  28.3,  32, 3850,  10000, 6.5, 176_400_000),
]


def get_staking_rewards() -> list[dict]:
    rows = [
        {
            "name":           name,
            "symbol":         symbol,
            "stakingApy":     apy,
            "inflationRate":  inflation,
            "totalStaked":    staked,
            "stakedPercent":  staked_pct,
            "lockupPeriod":   lockup,
            "minStake":       min_stake,
        }
        for name, symbol, apy, inflation, staked, staked_pct, lockup, min_stake in _STAKING
    ]
    rows.sort(key=lambda r: r["stakingApy"], reverse=True)
    return rows


def get_nft_collections(limit: int = 50, chain: Optional[str] = None) -> list[dict]:
    rows = [
        {
            "name":            c[0],
            "chain":           c[1],
            "floorPrice":      c[2],
            "floorPriceUsd":   c[3],
            "volume24h":       c[4],
            "volumeChange24h": c[5],
            "sales24h":        c[6],
            "owners":          c[7],
            "totalSupply":     c[8],
            "listedPercent":   c[9],
            "marketCap":       c[10],
        }
        for c in _NFT_COLLECTIONS
    ]
    if chain:
        rows = [r for r in rows if r["chain"].lower() == chain.lower()]
    rows.sort(key=lambda r: r["volume24h"], reverse=True)
    return rows[:limit]


def get_nft_market_stats() -> dict:
    collections = get_nft_collections(limit=len(_NFT_COLLECTIONS))
    total_volume = sum(c["volume24h"] for c in collections)
    total_sales = sum(c["sales24h"] for c in collections)

    chain_volumes: dict[str, float] = {}
    for c in collections:
        chain_volumes[c["chain"]] = chain_volumes.get(c["chain"], 0) + c["volume24h"]
    breakdown = [
        {"chain": chain, "volume": vol, "percentage": vol / total_volume * 100 if total_volume else 0}
        for chain, vol in chain_volumes.items()
    ]
    breakdown.sort(key=lambda b: b["volume"], reverse=True)

    return {
        "totalMarketCap":  sum(c["marketCap"] for c in collections),
        "totalVolume24h":  total_volume,
        "volumeChange24h": sum(c["volumeChange24h"] for c in collections) / len(collections),
        "totalSales24h":   total_sales,
        "averagePrice":    total_volume / total_sales if total_sales else 0,
        "chainBreakdown":  breakdown,
        "timestamp":       datetime.now(timezone.utc).isoformat(),
    }
