"""
catalog.py — the coins the export surface supports on Binance spot.

Binance does not report supply, so market cap is estimated from the static
circulating supply below.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Coin:
    symbol: str
    name: str
    category: str
    circulating_supply: float
    max_supply: Optional[float]

    @property
    def binance_symbol(self) -> str:
        return f"{self.symbol}USDT"


# (symbol, name, category, circulating supply, max supply)
_COINS = [
    ("BTC", "Bitcoin", "layer1", 19800000, 21000000),
    ("ETH", "Ethereum", "layer1", 120400000, None),
    ("SOL", "Solana", "layer1", 477000000, None),
    ("ADA", "Cardano", "layer1", 35000000000, 45000000000),
    ("AVAX", "Avalanche", "layer1", 410000000, 720000000),
    ("DOT", "Polkadot", "layer1", 1500000000, None),
    ("NEAR", "NEAR Protocol", "layer1", 1200000000, 1000000000),
    ("ATOM", "Cosmos", "layer1", 390000000, None),
    ("ICP", "Internet Computer", "layer1", 470000000, None),
    ("APT", "Aptos", "layer1", 500000000, None),
    ("SUI", "Sui", "layer1", 2800000000, 10000000000),
    ("ETC", "Ethereum Classic", "layer1", 148000000, 210700000),
    ("FTM", "Fantom", "layer1", 2800000000, 3175000000),
    ("ALGO", "Algorand", "layer1", 8400000000, 10000000000),
    ("XTZ", "Tezos", "layer1", 1000000000, None),
    ("EGLD", "MultiversX", "layer1", 27000000, 31415926),
    ("FLOW", "Flow", "layer1", 1550000000, None),
    ("EOS", "EOS", "layer1", 1150000000, None),
    ("MATIC", "Polygon", "layer2", 10000000000, 10000000000),
    ("ARB", "Arbitrum", "layer2", 4000000000, 10000000000),
    ("OP", "Optimism", "layer2", 1200000000, None),
    ("LRC", "Loopring", "layer2", 1374000000, 1374000000),
    ("UNI", "Uniswap", "defi", 600000000, 1000000000),
    ("LINK", "Chainlink", "defi", 630000000, 1000000000),
    ("AAVE", "Aave", "defi", 15000000, 16000000),
    ("MKR", "Maker", "defi", 900000, 1005577),
    ("CRV", "Curve", "defi", 1350000000, 3030000000),
    ("SNX", "Synthetix", "defi", 340000000, None),
    ("COMP", "Compound", "defi", 10000000, 10000000),
    ("LDO", "Lido DAO", "defi", 890000000, 1000000000),
    ("INJ", "Injective", "defi", 97000000, 100000000),
    ("GRT", "The Graph", "defi", 9500000000, None),
    ("SAND", "The Sandbox", "gaming", 2300000000, 3000000000),
    ("MANA", "Decentraland", "gaming", 1900000000, None),
    ("AXS", "Axie Infinity", "gaming", 150000000, 270000000),
    ("APE", "ApeCoin", "gaming", 600000000, 1000000000),
    ("ENJ", "Enjin Coin", "gaming", 1000000000, 1000000000),
    ("CHZ", "Chiliz", "gaming", 8900000000, 8888888888),
    ("RNDR", "Render", "gaming", 520000000, None),
    ("DOGE", "Dogecoin", "meme", 147000000000, None),
    ("SHIB", "Shiba Inu", "meme", 589000000000000, None),
    ("PEPE", "Pepe", "meme", 420690000000000, 420690000000000),
    ("BONK", "Bonk", "meme", 69000000000000, 100000000000000),
    ("FLOKI", "Floki Inu", "meme", 9700000000000, 10000000000000),
    ("WIF", "dogwifhat", "meme", 998900000, 998900000),
    ("BNB", "BNB", "exchange", 145000000, 200000000),
    ("XRP", "XRP", "payments", 57000000000, 100000000000),
    ("XLM", "Stellar", "payments", 30000000000, 50000000000),
    ("LTC", "Litecoin", "payments", 75000000, 84000000),
    ("TRX", "TRON", "payments", 86000000000, None),
    ("FIL", "Filecoin", "storage", 600000000, None),
    ("ZEC", "Zcash", "privacy", 16500000, 21000000),
    ("FET", "Fetch.ai", "ai", 2630000000, 2630000000),
    ("AGIX", "SingularityNET", "ai", 1280000000, 2000000000),
    ("OCEAN", "Ocean Protocol", "ai", 613000000, 1410000000),
    ("TAO", "Bittensor", "ai", 7000000, 21000000),
    ("ARKM", "Arkham", "ai", 225000000, 1000000000),
    ("BAT", "Basic Attention Token", "other", 1500000000, 1500000000),
    ("ONE", "Harmony", "other", 14000000000, None),
    ("HBAR", "Hedera", "other", 35700000000, 50000000000),
    ("VET", "VeChain", "other", 72700000000, 86700000000),
    ("THETA", "Theta Network", "other", 1000000000, 1000000000),
    ("KAS", "Kaspa", "other", 24000000000, 28700000000),
    ("SEI", "Sei", "layer1", 5800000000, 10000000000),
    ("TIA", "Celestia", "layer1", 206000000, 1000000000),
    ("STX", "Stacks", "layer2", 1500000000, 1818000000),
    ("RUNE", "THORChain", "defi", 336000000, 500000000),
]

SUPPORTED_COINS: list[Coin] = [Coin(*row) for row in _COINS]
_BY_SYMBOL = {c.symbol: c for c in SUPPORTED_COINS}

COIN_CATEGORY_NAMES = {
    "layer1":   "Layer 1",
    "layer2":   "Layer 2",
    "defi":     "DeFi",
    "gaming":   "Gaming/Metaverse",
    "meme":     "Meme Coins",
    "exchange": "Exchange Tokens",
    "payments": "Payments",
    "storage":  "Storage",
    "privacy":  "Privacy",
    "ai":       "AI",
    "other":    "Other",
}


def get_coin(symbol: str) -> Optional[Coin]:
    return _BY_SYMBOL.get(symbol.upper())


def coins_for(symbols: Optional[list[str]] = None, category: Optional[str] = None) -> list[Coin]:
    coins = SUPPORTED_COINS
    if symbols:
        wanted = {s.upper() for s in symbols}
        coins = [c for c in coins if c.symbol in wanted]
    if category:
        coins = [c for c in coins if c.category == category]
    return coins
