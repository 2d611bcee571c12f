# tests/test_download_route.py
from __future__ import annotations

import dataclasses
import io
from urllib.parse import parse_qs, urlparse

import pytest
from openpyxl import load_workbook

from reportkit.core import config
from reportkit.services import categories as categories_mod
from reportkit.services.categories import CATEGORIES
from reportkit.services.features import CATEGORY_GROUPS

URL = "/api/download"


# --------------------------- validation --------------------------- #


@pytest.mark.parametrize("fmt", ["pdf", "XLSX", "", "parquet"])
def test_invalid_format_is_400_without_fetch(client, fetch_calls, fmt):
    r = client.get(URL, params={"category": "market_overview", "format": fmt})
    assert r.status_code == 400
    assert "format" in r.json()["error"]
    assert fetch_calls == {}


def test_invalid_category_is_400_and_lists_allowed(client, fetch_calls):
    r = client.get(URL, params={"category": "lottery_numbers", "format": "json"})
    assert r.status_code == 400
    body = r.json()
    assert "lottery_numbers" in body["error"]
    assert "market_overview" in body["error"]
    assert fetch_calls == {}


def test_invalid_interval_is_400(client, fetch_calls):
    r = client.get(URL, params={"category": "historical_prices", "format": "json", "interval": "2h"})
    assert r.status_code == 400
    assert "interval" in r.json()["error"]
    assert fetch_calls == {}


def test_defaults_to_market_overview_xlsx(client, fetch_calls):
    r = client.get(URL)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert "market_overview_" in r.headers["content-disposition"]
    assert fetch_calls == {"market_overview": 1}


# --------------------------- formats --------------------------- #


def test_every_category_serializes_in_every_format(client, fetch_calls):
    for cid, category in CATEGORIES.items():
        for fmt in ("json", "csv", "xlsx"):
            r = client.get(URL, params={"category": cid, "format": fmt})
            assert r.status_code == 200, (cid, fmt, r.text)
            if fmt == "json":
                body = r.json()
                assert body["metadata"]["category"] == cid
                assert body["metadata"]["source"] == category.source
                assert list(body["data"][0].keys()) == list(category.fields)
            elif fmt == "csv":
                assert r.text.splitlines()[0] == ",".join(category.fields)
            else:
                wb = load_workbook(io.BytesIO(r.content))
                assert wb.sheetnames == ["Data", "Metadata"]


def test_json_body_and_metadata(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "json"})
    body = r.json()
    assert body["metadata"]["total"] == 12
    assert "generatedAt" in body["metadata"]
    assert "excel" not in body["metadata"]
    assert body["data"][0]["symbol"] == "C0"
    assert body["data"][0]["volume_24h"] == 1_000_000.0


def test_csv_attachment(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "csv"})
    assert r.headers["content-type"].startswith("text/csv")
    assert r.headers["content-disposition"].endswith('.csv"')
    lines = r.text.strip().splitlines()
    assert len(lines) == 13
    assert lines[0].startswith("symbol,name,price")


def test_xlsx_metadata_sheet(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "xlsx"})
    wb = load_workbook(io.BytesIO(r.content))
    meta = {row[0]: row[1] for row in wb["Metadata"].iter_rows(min_row=2, values_only=True)}
    assert meta["Category"] == "market_overview"
    assert meta["Total Rows"] == 12
    assert meta["Powered By"] == config.PRODUCT_NAME
    assert wb["Data"].column_dimensions["A"].width >= 15


# --------------------------- preview / fields --------------------------- #


@pytest.mark.parametrize("fmt", ["json", "csv", "xlsx"])
def test_preview_returns_at_most_ten_rows_with_full_total(client, fetch_calls, fmt):
    r = client.get(URL, params={"category": "market_overview", "format": fmt, "preview": "true"})
    assert r.status_code == 200
    body = r.json()
    assert body["preview"] is True
    assert len(body["data"]) == 10
    assert body["total"] == 12
    assert body["category"] == "market_overview"


def test_field_projection(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "json", "fields": "price,symbol"})
    body = r.json()
    assert all(list(row.keys()) == ["symbol", "price"] for row in body["data"])
    assert body["metadata"]["fields"] == ["symbol", "price"]


def test_field_projection_ignores_unknown_names(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "json", "fields": "symbol,bogus"})
    assert r.status_code == 200
    assert list(r.json()["data"][0].keys()) == ["symbol"]


def test_field_projection_with_no_known_names_is_400(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "json", "fields": "bogus"})
    assert r.status_code == 400
    assert "symbol" in r.json()["allowedFields"]
    assert fetch_calls == {}


# --------------------------- iqy --------------------------- #


def test_iqy_points_back_at_live_csv(client, fetch_calls):
    r = client.get(URL, params={
        "category": "market_overview", "format": "iqy", "preview": "true", "excel": "false", "symbols": "BTC,ETH",
    })
    assert r.status_code == 200
    assert r.headers["cache-control"] == "public, s-maxage=86400"
    lines = r.text.split("\n")
    assert lines[0] == "WEB"
    assert lines[1] == "1"
    assert r.text.endswith("\n")

    query = parse_qs(urlparse(lines[2]).query)
    assert query["format"] == ["csv"]
    assert query["excel"] == ["true"]
    assert "preview" not in query
    assert query["symbols"] == ["BTC,ETH"]
    assert fetch_calls == {}


def test_iqy_uses_public_base_url(client, fetch_calls, monkeypatch):
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "https://exports.example.com")
    r = client.get(URL, params={"category": "fear_greed", "format": "iqy"})
    assert r.text.split("\n")[2].startswith("https://exports.example.com/api/download?")


# --------------------------- feature gate --------------------------- #


def test_disabled_groups_return_503_then_recover(client, fetch_calls, monkeypatch):
    for cid, group in CATEGORY_GROUPS.items():
        monkeypatch.setitem(config.FEATURES, group, False)
        r = client.get(URL, params={"category": cid, "format": "json"})
        assert r.status_code == 503
        assert r.json() == {"error": r.json()["error"], "category": cid, "disabled": True}
        assert cid not in fetch_calls

        monkeypatch.setitem(config.FEATURES, group, True)
        r = client.get(URL, params={"category": cid, "format": "csv"})
        assert r.status_code == 200
        assert fetch_calls[cid] == 1


def test_ungrouped_category_ignores_flags(client, fetch_calls, monkeypatch):
    for name in list(config.FEATURES):
        monkeypatch.setitem(config.FEATURES, name, False)
    r = client.get(URL, params={"category": "order_book", "format": "json"})
    assert r.status_code == 200


# --------------------------- rate limit --------------------------- #


def test_repeat_request_within_a_second_is_429(client, fetch_calls):
    params = {"category": "market_overview", "format": "json"}
    assert client.get(URL, params=params).status_code == 200
    r = client.get(URL, params=params)
    assert r.status_code == 429
    body = r.json()
    assert body["retryAfterSeconds"] >= 1
    assert "tier" not in body
    assert r.headers["retry-after"] == str(body["retryAfterSeconds"])
    assert r.headers["cache-control"] == "public, s-maxage=5"
    assert fetch_calls["market_overview"] == 1


def test_rate_limit_runs_before_category_validation(client, fetch_calls):
    params = {"category": "not_a_category", "format": "json"}
    assert client.get(URL, params=params).status_code == 400
    assert client.get(URL, params=params).status_code == 429


def test_different_format_is_a_different_key(client, fetch_calls):
    assert client.get(URL, params={"category": "fear_greed", "format": "json"}).status_code == 200
    assert client.get(URL, params={"category": "fear_greed", "format": "csv"}).status_code == 200


def test_forwarded_for_is_ignored_without_trusted_proxy(client, fetch_calls):
    params = {"category": "fear_greed", "format": "json"}
    assert client.get(URL, params=params, headers={"x-forwarded-for": "1.1.1.1"}).status_code == 200
    assert client.get(URL, params=params, headers={"x-forwarded-for": "2.2.2.2"}).status_code == 429


def test_forwarded_for_keys_clients_behind_trusted_proxy(client, fetch_calls, monkeypatch):
    monkeypatch.setattr(config, "TRUST_PROXY_HEADERS", True)
    params = {"category": "fear_greed", "format": "json"}
    assert client.get(URL, params=params, headers={"x-forwarded-for": "1.1.1.1, 10.0.0.1"}).status_code == 200
    assert client.get(URL, params=params, headers={"x-forwarded-for": "2.2.2.2, 10.0.0.1"}).status_code == 200
    assert client.get(URL, params=params, headers={"x-forwarded-for": "2.2.2.2, 10.0.0.1"}).status_code == 429


def test_excel_mode_uses_free_tier_interval(client, fetch_calls):
    params = {"category": "market_overview", "format": "csv", "excel": "true"}
    first = client.get(URL, params=params)
    assert first.status_code == 200
    assert first.headers["cache-control"] == "public, s-maxage=30, stale-while-revalidate=300"

    r = client.get(URL, params=params)
    assert r.status_code == 429
    body = r.json()
    assert body["tier"] == "free"
    assert body["minRefreshSeconds"] == 60
    assert r.headers["x-min-refresh-seconds"] == "60"
    assert 1 <= body["retryAfterSeconds"] <= 60


def test_excel_mode_keys_on_query_shape(client, fetch_calls):
    base = {"category": "market_overview", "format": "json", "excel": "true"}
    assert client.get(URL, params={**base, "symbols": "BTC"}).status_code == 200
    assert client.get(URL, params={**base, "symbols": "ETH"}).status_code == 200
    assert client.get(URL, params={**base, "symbols": "ETH"}).status_code == 429


def test_excel_json_metadata_flag(client, fetch_calls):
    r = client.get(URL, params={"category": "market_overview", "format": "json", "excel": "true"})
    assert r.json()["metadata"]["excel"] is True


# --------------------------- category parameters --------------------------- #


def test_limit_defaults_to_500(client, monkeypatch):
    seen = []

    def protocols(limit):
        seen.append(limit)
        return [{"name": "Aave", "tvl": 1e10}]

    monkeypatch.setattr(categories_mod.onchain, "get_defi_protocols", protocols)
    r = client.get(URL, params={"category": "defi_protocols", "format": "csv"})
    assert r.status_code == 200
    assert seen == [500]
    assert r.headers["content-disposition"] == 'attachment; filename="defi_protocols_top500.csv"'


def test_explicit_limit_reaches_fetcher_and_filename(client, monkeypatch):
    seen = []
    monkeypatch.setattr(categories_mod.onchain, "get_yield_pools", lambda limit: seen.append(limit) or [])
    r = client.get(URL, params={"category": "defi_yields", "format": "csv", "limit": "25"})
    assert seen == [25]
    assert 'filename="defi_yields_top25.csv"' in r.headers["content-disposition"]


@pytest.mark.parametrize("kind,rank_type", [("losers", "LOSER"), ("gainers", "GAINER")])
def test_gainers_losers_type_selects_one_list(client, monkeypatch, kind, rank_type):
    movers = [
        {"symbol": "UP", "priceChangePercent24h": 8.0, "quoteVolume24h": 1.0},
        {"symbol": "DOWN", "priceChangePercent24h": -6.0, "quoteVolume24h": 1.0},
        {"symbol": "DIP", "priceChangePercent24h": -1.0, "quoteVolume24h": 1.0},
    ]
    monkeypatch.setattr(categories_mod.binance, "get_market_overview", lambda: [dict(m) for m in movers])
    r = client.get(URL, params={"category": "gainers_losers", "format": "json", "type": kind})
    assert r.status_code == 200
    rows = r.json()["data"]
    assert rows
    assert {row["rank_type"] for row in rows} == {rank_type}
    if kind == "losers":
        assert [row["symbol"] for row in rows] == ["DOWN", "DIP"]


def test_quoted_symbol_uses_base_asset(client, monkeypatch):
    seen = []

    def trades(symbol, limit):
        seen.append((symbol, limit))
        return []

    monkeypatch.setattr(categories_mod.binance, "get_recent_trades", trades)
    r = client.get(URL, params={"category": "recent_trades", "format": "csv", "symbol": "ethusdt"})
    assert r.status_code == 200
    assert seen == [("ETH", 500)]
    assert 'filename="ETH_recent_trades.csv"' in r.headers["content-disposition"]


def test_malformed_symbol_is_400(client, fetch_calls):
    r = client.get(URL, params={"category": "order_book", "format": "json", "symbol": "BTC/USD"})
    assert r.status_code == 400
    assert "symbol" in r.json()["error"]
    assert fetch_calls == {}


# --------------------------- failures --------------------------- #


def test_fetcher_failure_is_500_with_category_message(client, monkeypatch):
    def boom(req):
        raise RuntimeError("upstream exploded: secret-token-123")

    monkeypatch.setitem(
        CATEGORIES, "order_book", dataclasses.replace(CATEGORIES["order_book"], fetcher=boom)
    )
    r = client.get(URL, params={"category": "order_book", "format": "json"})
    assert r.status_code == 500
    message = r.json()["error"]
    assert "order_book" in message
    assert "different category" in message
    assert "secret-token-123" not in message


def test_market_overview_falls_back_when_cache_fails(client, monkeypatch):
    def broken_cache(*args, **kwargs):
        raise RuntimeError("cache down")

    direct = [{"symbol": "BTC", "name": "Bitcoin", "price": 50000.0}]
    monkeypatch.setattr(categories_mod.db, "get_market_data_cache", broken_cache)
    monkeypatch.setattr(categories_mod.binance, "get_market_overview", lambda **kwargs: direct)

    r = client.get(URL, params={"category": "market_overview", "format": "json"})
    assert r.status_code == 200
    assert r.json()["data"][0]["symbol"] == "BTC"
    assert r.json()["data"][0]["bid_price"] is None


def test_market_overview_prefers_cache_rows(client, monkeypatch):
    cached = [{"symbol": "ETH", "name": "Ethereum", "price": 3000.0, "market_cap": 3.6e11}]
    monkeypatch.setattr(categories_mod.db, "get_market_data_cache", lambda *a, **k: cached)

    def unexpected(**kwargs):
        raise AssertionError("direct provider should not be called")

    monkeypatch.setattr(categories_mod.binance, "get_market_overview", unexpected)
    r = client.get(URL, params={"category": "market_overview", "format": "json"})
    assert r.status_code == 200
    assert r.json()["data"][0]["market_cap"] == 3.6e11


# --------------------------- usage log --------------------------- #


def test_download_is_logged_after_response(client, fetch_calls, monkeypatch):
    from reportkit.routers import download

    logged = []
    monkeypatch.setattr(download, "log_download_event", lambda *args: logged.append(args))
    client.get(URL, params={"category": "market_overview", "format": "csv", "symbols": "BTC"},
               headers={"user-agent": "excel/16"})
    category, fmt, filename, filters, row_count, ip, agent = logged[0]
    assert (category, fmt, row_count, ip, agent) == ("market_overview", "csv", 12, "testclient", "excel/16")
    assert filename.startswith("market_overview_")
    assert filters == {"symbols": "BTC"}


def test_usage_log_failure_is_dropped(monkeypatch):
    from reportkit.services import events

    def broken(client, row):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(events.db, "get_client", lambda: object())
    monkeypatch.setattr(events.db, "insert_download_event", broken)
    events.log_download_event("fear_greed", "json", "fear_greed_index", {}, 1)
