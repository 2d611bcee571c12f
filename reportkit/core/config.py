"""
config.py — Environment-based configuration plus the static export tables.
Secrets are injected as environment variables (or a local .env file).
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Supabase — identity, subscription tiers, market cache, usage log
# ---------------------------------------------------------------------------
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")  # Set via env var — never hardcode

# ---------------------------------------------------------------------------
# Upstream providers
# ---------------------------------------------------------------------------
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
USER_AGENT = "CryptoReportKit/1.0"

BINANCE_API = "https://api.binance.com/api/v3"
BINANCE_FUTURES_API = "https://fapi.binance.com"
COINGECKO_API = "https://api.coingecko.com/api/v3"
DEFILLAMA_API = "https://api.llama.fi"
FEAR_GREED_API = "https://api.alternative.me/fng/"
BLOCKCHAIN_INFO_API = "https://blockchain.info"
BLOCKCHAIR_API = "https://api.blockchair.com"
ETHERSCAN_API = "https://api.etherscan.io/api"
ETH_RPC_URL: str = os.getenv("ETH_RPC_URL", "https://ethereum.publicnode.com")
REDDIT_URL = "https://www.reddit.com"
CRYPTOPANIC_API = "https://cryptopanic.com/api/v1"

CRYPTOPANIC_API_KEY: str = os.getenv("CRYPTOPANIC_API_KEY", "")
ETHERSCAN_API_KEY: str = os.getenv("ETHERSCAN_API_KEY", "")

# ---------------------------------------------------------------------------
# Public surface
# ---------------------------------------------------------------------------
# Optional override for absolute URLs written into .iqy files (e.g. behind a CDN)
PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")
# Only enable behind a proxy that overwrites X-Forwarded-For; clients can set it freely
TRUST_PROXY_HEADERS: bool = _flag("TRUST_PROXY_HEADERS", False)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
PRODUCT_NAME = "CryptoReportKit"

# ---------------------------------------------------------------------------
# Export request vocabulary
# ---------------------------------------------------------------------------
DOWNLOAD_FORMATS = ("xlsx", "csv", "json", "iqy")
DEFAULT_CATEGORY = "market_overview"
DEFAULT_FORMAT = "xlsx"

CANDLE_INTERVALS = ("1m", "5m", "15m", "30m", "1h", "4h", "1d", "1w", "1M")
ORDER_BOOK_DEPTHS = (5, 10, 20, 50, 100, 500, 1000)
GAINER_TYPES = ("both", "gainers", "losers")
NEWS_FILTERS = ("hot", "rising", "bullish", "bearish", "important")
MARKET_SORT_FIELDS = ("market_cap", "volume", "price_change", "price")

DEFAULT_SYMBOL = "BTC"
DEFAULT_INTERVAL = "1d"
DEFAULT_LIMIT = 500
MAX_LIMIT = 1000
DEFAULT_DEPTH = 20

PREVIEW_ROW_LIMIT = 10

# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------
RATE_LIMIT_BACKEND: str = os.getenv("RATE_LIMIT_BACKEND", "memory")  # memory | supabase
DEFAULT_MIN_INTERVAL_MS = 1_000

TIER_REFRESH_INTERVAL_MS: dict[str, int] = {
    "free":     60_000,
    "starter":  60_000,
    "pro":      10_000,
    "business": 10_000,
}
SUBSCRIPTION_TIERS = tuple(TIER_REFRESH_INTERVAL_MS)

# ---------------------------------------------------------------------------
# Feature flags — whole category groups can be switched off without a deploy
# ---------------------------------------------------------------------------
FEATURES: dict[str, bool] = {
    "social_sentiment": _flag("FEATURE_SOCIAL_SENTIMENT"),
    "defi":             _flag("FEATURE_DEFI"),
    "whales":           _flag("FEATURE_WHALES"),
    "nft":              _flag("FEATURE_NFT"),
    "action_tokens":    _flag("FEATURE_ACTION_TOKENS"),
}

# ---------------------------------------------------------------------------
# Action tokens (short-lived confirmation for sensitive actions)
# ---------------------------------------------------------------------------
ACTION_TOKEN_TTL_SECONDS = 90
ACTION_TYPES = (
    "download",
    "report_run",
    "report_schedule",
    "key_update",
    "key_delete",
    "account_delete",
    "data_export",
)

# ---------------------------------------------------------------------------
# Market cache warmer
# ---------------------------------------------------------------------------
MARKET_CACHE_REFRESH_MINS: int = int(os.getenv("MARKET_CACHE_REFRESH_MINS", "5"))
