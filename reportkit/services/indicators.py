"""
Indicator service — moving averages, RSI, MACD, Bollinger, ATR, stochastic,
swing-level clustering and return correlations over OHLCV candles.
"""

import itertools
import math
from typing import Optional

import pandas as pd

MIN_CANDLES = 50


def candles_frame(candles: list[dict]) -> pd.DataFrame:
    """Candle dicts (timestamp/open/high/low/close/volume) -> float DataFrame."""
    df = pd.DataFrame(candles)
    for col in ("open", "high", "low", "close", "volume"):
        if col in df.columns:
            df[col] = df[col].astype(float)
    return df.reset_index(drop=True)


def _last(series: pd.Series) -> Optional[float]:
    if series.empty:
        return None
    value = series.iloc[-1]
    return None if pd.isna(value) else float(value)


# ---------------------------------------------------------------------------
# Core series
# ---------------------------------------------------------------------------

def sma(series: pd.Series, period: int) -> pd.Series:
    return series.rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int) -> pd.Series:
    """EMA seeded with the SMA of the first `period` values."""
    values = series.dropna()
    out = pd.Series(float("nan"), index=series.index)
    if len(values) < period:
        return out
    seeded = values.copy()
    seeded.iloc[: period - 1] = float("nan")
    seeded.iloc[period - 1] = values.iloc[:period].mean()
    out.loc[values.index] = seeded.ewm(span=period, adjust=False, ignore_na=True).mean()
    out.loc[values.index[: period - 1]] = float("nan")
    return out


def rsi(closes: pd.Series, period: int = 14) -> pd.Series:
    change = closes.diff()
    avg_gain = change.clip(lower=0).rolling(period).sum() / period
    avg_loss = (-change.clip(upper=0)).rolling(period).sum() / period
    rs = avg_gain / avg_loss
    out = 100 - 100 / (1 + rs)
    return out.mask(avg_loss == 0, 100.0).where(avg_gain.notna())


def macd(closes: pd.Series, fast: int = 12, slow: int = 26, signal: int = 9) -> pd.DataFrame:
    line = ema(closes, fast) - ema(closes, slow)
    signal_line = ema(line, signal)
    return pd.DataFrame({"macd": line, "signal": signal_line, "histogram": line - signal_line})


def bollinger(closes: pd.Series, period: int = 20, width: float = 2.0) -> pd.DataFrame:
    mid = sma(closes, period)
    sd = closes.rolling(period).std(ddof=0)
    return pd.DataFrame({
        "upper":  mid + width * sd,
        "middle": mid,
        "lower":  mid - width * sd,
        "width":  (width * sd * 2) / mid * 100,
    })


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    prev_close = df["close"].shift(1)
    true_range = pd.concat(
        [
            df["high"] - df["low"],
            (df["high"] - prev_close).abs(),
            (df["low"] - prev_close).abs(),
        ],
        axis=1,
    ).max(axis=1)
    return sma(true_range, period)


def stochastic(df: pd.DataFrame, k_period: int = 14, d_period: int = 3) -> pd.DataFrame:
    highest = df["high"].rolling(k_period).max()
    lowest = df["low"].rolling(k_period).min()
    spread = highest - lowest
    k = ((df["close"] - lowest) / spread * 100).mask(spread == 0, 50.0).where(highest.notna())
    d = sma(k.dropna(), d_period).reindex(k.index)
    return pd.DataFrame({"k": k, "d": d})


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def rsi_signal(value: Optional[float]) -> str:
    if value is None:
        return "neutral"
    if value > 70:
        return "overbought"
    if value < 30:
        return "oversold"
    return "neutral"


def trend_label(score: int) -> str:
    if score >= 4:
        return "strongly_bullish"
    if score >= 2:
        return "bullish"
    if score <= -4:
        return "strongly_bearish"
    if score <= -2:
        return "bearish"
    return "neutral"


def indicator_summary(symbol: str, candles: list[dict]) -> dict:
    """Latest value of every indicator plus an educational trend score."""
    if len(candles) < MIN_CANDLES:
        raise ValueError(f"Insufficient data for technical analysis of {symbol}")

    df = candles_frame(candles)
    closes = df["close"]
    price = float(closes.iloc[-1])

    rsi_now = _last(rsi(closes))
    m = macd(closes)
    bb = bollinger(closes)
    st = stochastic(df)
    sma20, sma50 = _last(sma(closes, 20)), _last(sma(closes, 50))
    histogram = _last(m["histogram"])

    score = 0
    if rsi_now is not None:
        if rsi_now < 30:
            score += 2
        elif rsi_now < 40:
            score += 1
        elif rsi_now > 70:
            score -= 2
        elif rsi_now > 60:
            score -= 1
    if histogram:
        score += 1 if histogram > 0 else -1
    for average in (sma20, sma50):
        if average is not None:
            score += 1 if price > average else -1

    return {
        "symbol":         symbol,
        "price":          price,
        "rsi":            rsi_now,
        "rsiSignal":      rsi_signal(rsi_now),
        "macd":           _last(m["macd"]),
        "macdSignal":     _last(m["signal"]),
        "macdHistogram":  histogram,
        "sma20":          sma20,
        "sma50":          sma50,
        "sma200":         _last(sma(closes, 200)) if len(closes) >= 200 else None,
        "ema12":          _last(ema(closes, 12)),
        "ema26":          _last(ema(closes, 26)),
        "bollingerUpper": _last(bb["upper"]),
        "bollingerLower": _last(bb["lower"]),
        "bollingerWidth": _last(bb["width"]),
        "atr":            _last(atr(df)),
        "stochK":         _last(st["k"]),
        "stochD":         _last(st["d"]),
        "overallSignal":  trend_label(score),
    }


def support_resistance(symbol: str, candles: list[dict], tolerance: float = 0.02, top: int = 10) -> list[dict]:
    """
    Swing highs/lows over a +/-2 candle window, clustered within `tolerance`.
    Levels touched at least twice are kept, nearest to the last close first.
    """
    if len(candles) < 20:
        return []
    df = candles_frame(candles)
    highs, lows = df["high"], df["low"]

    points = []
    for i in range(2, len(df) - 2):
        window = [i - 2, i - 1, i + 1, i + 2]
        if all(highs[i] > highs[j] for j in window):
            points.append((float(highs[i]), "resistance", df["timestamp"][i]))
        if all(lows[i] < lows[j] for j in window):
            points.append((float(lows[i]), "support", df["timestamp"][i]))

    clusters: list[dict] = []
    for price, kind, when in points:
        for cluster in clusters:
            if abs(price - cluster["price"]) / cluster["price"] < tolerance:
                cluster["touches"] += 1
                cluster["price"] += (price - cluster["price"]) / cluster["touches"]
                cluster["last"] = when
                break
        else:
            clusters.append({"price": price, "touches": 1, "last": when, "kind": kind})

    current = float(df["close"].iloc[-1])
    levels = []
    for cluster in clusters:
        if cluster["touches"] < 2:
            continue
        if cluster["touches"] >= 4:
            strength = "strong"
        elif cluster["touches"] >= 3:
            strength = "moderate"
        else:
            strength = "weak"
        levels.append({
            "symbol":     symbol,
            "priceLevel": cluster["price"],
            "type":       "resistance" if cluster["price"] > current else "support",
            "strength":   strength,
            "touches":    cluster["touches"],
            "lastTested": cluster["last"],
        })
    levels.sort(key=lambda lvl: abs(lvl["priceLevel"] - current))
    return levels[:top]


def relationship(correlation: Optional[float]) -> str:
    if correlation is None:
        return "neutral"
    if correlation > 0.7:
        return "strong_positive"
    if correlation > 0.3:
        return "positive"
    if correlation < -0.7:
        return "strong_negative"
    if correlation < -0.3:
        return "negative"
    return "neutral"


def correlation_pairs(closes_by_symbol: dict[str, list[float]]) -> list[dict]:
    """Pearson correlation of period returns for every symbol pair."""
    returns = {
        symbol: pd.Series(closes, dtype=float).pct_change().dropna().reset_index(drop=True)
        for symbol, closes in closes_by_symbol.items()
    }
    pairs = []
    for a, b in itertools.combinations(returns, 2):
        n = min(len(returns[a]), len(returns[b]))
        value = returns[a].iloc[:n].corr(returns[b].iloc[:n]) if n > 1 else float("nan")
        corr = None if value is None or math.isnan(value) else float(value)
        pairs.append({
            "symbol1":      a,
            "symbol2":      b,
            "correlation":  corr,
            "relationship": relationship(corr),
        })
    return pairs
