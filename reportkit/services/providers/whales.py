"""
whales.py — large on-chain transfers (Etherscan proxy, Blockchair) labelled
against known exchange wallets, plus exchange flow estimates built from them.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from reportkit.core.config import BLOCKCHAIR_API, COINGECKO_API, ETHERSCAN_API, ETHERSCAN_API_KEY
from reportkit.services.providers.http import get_json

logger = logging.getLogger(__name__)

KNOWN_WALLETS = {
    "0x28c6c06298d514db089934071355e5743bf21d60": ("Binance Hot Wallet 1", "exchange"),
    "0x21a31ee1afc51d94c2efccaa2092ad1028285549": ("Binance Hot Wallet 2", "exchange"),
    "0xdfd5293d8e347dfe59e90efd55b2956a1343963d": ("Binance Hot Wallet 3", "exchange"),
    "0x71660c4005ba85c37ccec55d0c4493e66fe775d3": ("Coinbase Hot Wallet", "exchange"),
    "0xa090e606e30bd747d4e6245a1517ebe430f0057e": ("Coinbase Cold Wallet", "exchange"),
    "0x2910543af39aba0cd09dbb2d50200b3e800a63d2": ("Kraken Hot Wallet", "exchange"),
    "0x98ec059dc3adfbdd63429454aeb0c990fba4a128": ("OKX Hot Wallet", "exchange"),
    "0x1151314c646ce4e0efd76d1af4760ae66a9fe30f": ("Bitfinex Hot Wallet", "exchange"),
    "0x2faf487a4414fe77e2327f0bf4ae2a264a776ad2": ("FTX Hot Wallet", "exchange"),
    "0x00000000219ab540356cbb839cbe05303d7705fa": ("ETH 2.0 Deposit Contract", "fund"),
}

ETH_BLOCKS_SCANNED = 10
WHALE_TRANSFER_ETH = 1000


def _usd_price(coin_id: str) -> float:
    data = get_json(f"{COINGECKO_API}/simple/price", params={"ids": coin_id, "vs_currencies": "usd"})
    return float(data[coin_id]["usd"])


def _etherscan(params: dict) -> dict:
    if ETHERSCAN_API_KEY:
        params = {**params, "apikey": ETHERSCAN_API_KEY}
    return get_json(ETHERSCAN_API, params={"module": "proxy", **params})


def _label(address: str | None) -> tuple[str, str | None]:
    name, kind = KNOWN_WALLETS.get((address or "").lower(), ("Unknown", None))
    return name, kind


def classify_transfer(from_addr: str, to_addr: str | None, amount_eth: float) -> str:
    if _label(to_addr)[1] == "exchange":
        return "exchange_inflow"
    if _label(from_addr)[1] == "exchange":
        return "exchange_outflow"
    if amount_eth >= WHALE_TRANSFER_ETH:
        return "whale_transfer"
    return "unknown"


def get_eth_whale_transactions(min_value_eth: float = 100) -> list[dict]:
    eth_usd = _usd_price("ethereum")
    latest = int(_etherscan({"action": "eth_blockNumber"})["result"], 16)

    transactions = []
    for number in range(latest, latest - ETH_BLOCKS_SCANNED, -1):
        try:
            block = _etherscan({"action": "eth_getBlockByNumber", "tag": hex(number), "boolean": "true"})["result"]
        except Exception as exc:
            logger.warning("[WHALES] block %d failed: %s", number, exc)
            continue
        if not block:
            continue
        timestamp = datetime.fromtimestamp(int(block["timestamp"], 16), tz=timezone.utc).isoformat()
        for tx in block.get("transactions", []):
            value = int(tx.get("value", "0x0"), 16) / 1e18
            if value < min_value_eth:
                continue
            transactions.append({
                "hash":       tx["hash"],
                "blockchain": "ethereum",
                "from":       tx["from"],
                "fromLabel":  _label(tx["from"])[0],
                "to":         tx.get("to") or "Contract Creation",
                "toLabel":    _label(tx.get("to"))[0],
                "amount":     value,
                "amountUsd":  value * eth_usd,
                "symbol":     "ETH",
                "timestamp":  timestamp,
                "type":       classify_transfer(tx["from"], tx.get("to"), value),
            })
    transactions.sort(key=lambda t: t["amount"], reverse=True)
    return transactions


def get_btc_whale_transactions(min_value_btc: float = 100) -> list[dict]:
    btc_usd = _usd_price("bitcoin")
    data = get_json(
        f"{BLOCKCHAIR_API}/bitcoin/transactions",
        params={"q": f"output_total({int(min_value_btc * 1e8)}..)", "s": "time(desc)", "limit": 20},
    )
    return [
        {
            "hash":       tx["hash"],
            "blockchain": "bitcoin",
            "from":       "Multiple Inputs",
            "fromLabel":  "Unknown",
            "to":         "Multiple Outputs",
            "toLabel":    "Unknown",
            "amount":     tx["output_total"] / 1e8,
            "amountUsd":  tx["output_total"] / 1e8 * btc_usd,
            "symbol":     "BTC",
            "timestamp":  tx.get("time"),
            "type":       "whale_transfer",
        }
        for tx in data.get("data") or []
    ]


def get_whale_transactions(blockchain: str = "all") -> list[dict]:
    rows = []
    if blockchain in ("all", "ethereum"):
        rows.extend(get_eth_whale_transactions())
    if blockchain in ("all", "bitcoin"):
        rows.extend(get_btc_whale_transactions())
    rows.sort(key=lambda t: t["amountUsd"], reverse=True)
    return rows


def estimate_exchange_flows() -> list[dict]:
    flows: dict[str, dict] = {}

    def _entry(exchange: str) -> dict:
        return flows.setdefault(exchange, {
            "exchange": exchange,
            "inflow24h": 0.0, "outflow24h": 0.0,
            "inflowUsd": 0.0, "outflowUsd": 0.0,
        })

    for tx in get_eth_whale_transactions(min_value_eth=10):
        if tx["type"] == "exchange_inflow":
            entry = _entry(tx["toLabel"])
            entry["inflow24h"] += tx["amount"]
            entry["inflowUsd"] += tx["amountUsd"]
        elif tx["type"] == "exchange_outflow":
            entry = _entry(tx["fromLabel"])
            entry["outflow24h"] += tx["amount"]
            entry["outflowUsd"] += tx["amountUsd"]

    for entry in flows.values():
        entry["netFlow24h"] = entry["inflow24h"] - entry["outflow24h"]
        entry["netFlowUsd"] = entry["inflowUsd"] - entry["outflowUsd"]
    return sorted(flows.values(), key=lambda e: abs(e["netFlowUsd"]), reverse=True)
