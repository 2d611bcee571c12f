"""
validation.py — parse and validate /api/download query parameters.
Anything outside a closed vocabulary is a 400, never a silent default.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from reportkit.core.config import (
    CANDLE_INTERVALS,
    DEFAULT_CATEGORY,
    DEFAULT_DEPTH,
    DEFAULT_FORMAT,
    DEFAULT_INTERVAL,
    DEFAULT_LIMIT,
    DEFAULT_SYMBOL,
    DOWNLOAD_FORMATS,
    GAINER_TYPES,
    MARKET_SORT_FIELDS,
    MAX_LIMIT,
    NEWS_FILTERS,
    ORDER_BOOK_DEPTHS,
)
from reportkit.core.errors import validation_error

WHALE_BLOCKCHAINS = ("all", "ethereum", "bitcoin")

_TRUE = ("1", "true", "yes")

QUOTE_ASSET = "USDT"


@dataclass
class ExportRequest:
    category: str
    format: str
    preview: bool = False
    excel: bool = False
    fields: Optional[list[str]] = None
    symbols: Optional[list[str]] = None
    coin_category: Optional[str] = None
    sort_by: str = "market_cap"
    min_market_cap: float = 0
    symbol: str = DEFAULT_SYMBOL
    interval: str = DEFAULT_INTERVAL
    limit: int = DEFAULT_LIMIT
    depth: int = DEFAULT_DEPTH
    type: str = "both"
    filter: str = "hot"
    chain: Optional[str] = None
    blockchain: str = "all"
    raw: dict = field(default_factory=dict)

    def filters(self) -> dict:
        """Category-specific parameters the caller actually sent (for usage logs)."""
        ignored = {"category", "format", "preview", "excel", "fields"}
        return {k: v for k, v in self.raw.items() if k not in ignored}


def parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE


def parse_csv_list(value: Optional[str], upper: bool = False) -> Optional[list[str]]:
    if not value:
        return None
    items = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        part = part.upper() if upper else part
        if part not in items:
            items.append(part)
    return items or None


def _choice(param: str, value: str, allowed: Iterable) -> str:
    allowed = tuple(allowed)
    if value not in allowed:
        raise validation_error(param, value, allowed)
    return value


def parse_format(value: Optional[str]) -> str:
    return _choice("format", value if value is not None else DEFAULT_FORMAT, DOWNLOAD_FORMATS)


def parse_category(value: Optional[str], allowed: Iterable[str]) -> str:
    return _choice("category", value if value is not None else DEFAULT_CATEGORY, allowed)


def parse_symbol(value: str) -> str:
    """Base asset only; a trailing quote asset ("ethusdt") is dropped."""
    symbol = value.strip().upper()
    if not symbol.isalnum():
        raise validation_error("symbol", value, ["base asset such as BTC or ETH"])
    if symbol.endswith(QUOTE_ASSET) and len(symbol) > len(QUOTE_ASSET):
        symbol = symbol[: -len(QUOTE_ASSET)]
    return symbol


def _parse_int(param: str, value: str, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise validation_error(param, value, [f"integer {low}-{high}"])
    if not low <= number <= high:
        raise validation_error(param, value, [f"integer {low}-{high}"])
    return number


def parse_export_request(params: Mapping[str, str], category: str, fmt: str) -> ExportRequest:
    """Build an ExportRequest from already-validated category/format plus the raw query."""
    req = ExportRequest(
        category=category,
        format=fmt,
        preview=parse_bool(params.get("preview")),
        excel=parse_bool(params.get("excel")),
        fields=parse_csv_list(params.get("fields")),
        symbols=parse_csv_list(params.get("symbols"), upper=True),
        coin_category=params.get("coinCategory") or None,
        chain=params.get("chain") or None,
        raw=dict(params),
    )

    if params.get("symbol"):
        req.symbol = parse_symbol(params["symbol"])
    if params.get("sortBy"):
        req.sort_by = _choice("sortBy", params["sortBy"], MARKET_SORT_FIELDS)
    if params.get("interval"):
        req.interval = _choice("interval", params["interval"], CANDLE_INTERVALS)
    if params.get("type"):
        req.type = _choice("type", params["type"], GAINER_TYPES)
    if params.get("filter"):
        req.filter = _choice("filter", params["filter"], NEWS_FILTERS)
    if params.get("blockchain"):
        req.blockchain = _choice("blockchain", params["blockchain"], WHALE_BLOCKCHAINS)
    if params.get("depth"):
        req.depth = int(_choice("depth", params["depth"], [str(d) for d in ORDER_BOOK_DEPTHS]))
    if params.get("limit"):
        req.limit = _parse_int("limit", params["limit"], 1, MAX_LIMIT)
    if params.get("minMarketCap"):
        try:
            req.min_market_cap = float(params["minMarketCap"])
        except ValueError:
            raise validation_error("minMarketCap", params["minMarketCap"], ["number >= 0"])
        if req.min_market_cap < 0:
            raise validation_error("minMarketCap", params["minMarketCap"], ["number >= 0"])
    return req
