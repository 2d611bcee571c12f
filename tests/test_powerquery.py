# tests/test_powerquery.py
from __future__ import annotations

import io

import pytest
from openpyxl import load_workbook

from reportkit.services import powerquery as pq
from reportkit.services.powerquery_workbook import API_KEY_PLACEHOLDER, build_power_query_workbook

URL = "/api/powerquery/generate"


# --------------------------- query generation --------------------------- #


@pytest.mark.parametrize("dashboard", pq.VALID_DASHBOARDS)
def test_market_query_always_first(dashboard):
    queries = pq.generate_queries_for_dashboard(dashboard)
    assert queries[0].name == "CRK_Market"
    names = [q.name for q in queries]
    assert len(names) == len(set(names))
    for query in queries:
        assert query.columns
        assert query.code.startswith("let")
        if query.name != "CRK_FearGreed":
            assert pq.API_KEY_M in query.code


def test_analytics_dashboards_use_extended_market_query():
    first = pq.generate_queries_for_dashboard("screener", limit=50)[0]
    assert first.columns[-3:] == ["MktShare", "VolMcapRatio", "PerfScore"]
    assert first.description.startswith("Top 50 coins")

    plain = pq.generate_queries_for_dashboard("trending", limit=25)[0]
    assert plain.columns == pq.PQ_COLUMNS["market"]
    assert plain.description == "Top 25 cryptocurrencies with price, market cap, and volume (direct from CoinGecko)"
    assert 'per_page = "25"' in plain.code


def test_unrecognised_dashboard_gets_global():
    names = [q.name for q in pq.generate_queries_for_dashboard("wall-street-bets")]
    assert names == ["CRK_Market", "CRK_Global"]


def test_wallet_tracker_is_generated_but_not_listed():
    names = [q.name for q in pq.generate_queries_for_dashboard("wallet-tracker")]
    assert names == ["CRK_Market", "CRK_Wallet"]
    assert "wallet-tracker" not in pq.VALID_DASHBOARDS


def test_heatmap_is_market_only():
    assert [q.name for q in pq.generate_queries_for_dashboard("heatmap")] == ["CRK_Market"]


def test_custom_watchlist_uses_requested_coins():
    queries = pq.generate_queries_for_dashboard("custom", coins=["dogecoin", "pepe"])
    watch = queries[1]
    assert watch.name == "CRK_Watchlist"
    assert 'CoinIds = "dogecoin,pepe"' in watch.code
    assert watch.description == "Your custom watchlist: dogecoin, pepe"


def test_custom_watchlist_defaults():
    watch = pq.generate_queries_for_dashboard("custom")[1]
    assert 'CoinIds = "bitcoin,ethereum,solana"' in watch.code


def test_technical_analysis_respects_days():
    queries = pq.generate_queries_for_dashboard("technical-analysis", days=7)
    assert [q.name for q in queries][:3] == ["CRK_Market", "CRK_BTC_OHLC", "CRK_BTC_Technical"]
    assert 'days = "7"' in queries[1].code


def test_templates_render_without_placeholders():
    for name, builder in pq.POWER_QUERY_TEMPLATES.items():
        if name == "wallet":
            code = builder("0xabc")
        elif name == "watchlist":
            code = builder(["bitcoin"])
        else:
            code = builder()
        assert code.startswith("let"), name
        assert "$cg_api" not in code and "$api_key" not in code, name


@pytest.mark.parametrize("name,minutes", [("realtime", 5), ("daily", 1440), ("manual", 0)])
def test_refresh_presets(name, minutes):
    assert pq.refresh_config(name).interval_minutes == minutes


def test_unknown_refresh_falls_back_to_hourly():
    assert pq.refresh_config("every-second") == pq.REFRESH_PRESETS["hourly"]
    assert pq.refresh_config(None).interval_minutes == 60


def test_dashboard_title():
    assert pq.dashboard_title("layer1-compare") == "Layer1 Compare"


# --------------------------- workbook --------------------------- #


def test_workbook_binds_api_key_cell():
    queries = pq.generate_queries_for_dashboard("market-overview")
    content = build_power_query_workbook("market-overview", queries, api_key="CG-secret")
    wb = load_workbook(io.BytesIO(content))

    assert wb.sheetnames[:2] == ["Settings", "Power Query Setup"]
    assert wb.sheetnames[2:] == [q.name for q in queries]
    assert wb["Settings"]["B6"].value == "CG-secret"
    assert wb["Settings"]["C9"].value == "Market Overview"
    assert wb.defined_names[pq.API_KEY_NAME].attr_text == "'Settings'!$B$6"


def test_workbook_placeholder_and_query_sheet():
    query = pq.generate_queries_for_dashboard("fear-greed")[1]
    wb = load_workbook(io.BytesIO(build_power_query_workbook("fear-greed", [query])))
    assert wb["Settings"]["B6"].value == API_KEY_PLACEHOLDER

    sheet = wb["CRK_FearGreed"]
    assert sheet["A1"].value == "CRK_FearGreed"
    assert [c.value for c in sheet[5] if c.value] == query.columns
    assert sheet["A8"].value == "let"

    setup_text = [c.value for c in wb["Power Query Setup"]["B"] if c.value]
    assert "  1. CRK_FearGreed" in setup_text
    assert "   Refresh interval: 60 minutes" in setup_text


# --------------------------- routes --------------------------- #


def test_catalogue(client):
    body = client.get(URL).json()
    assert len(body["dashboards"]) == 41
    assert body["dashboards"][0]["id"] == "complete-suite"
    assert body["refreshIntervals"]["manual"] == "Only when you click Refresh"
    assert body["refreshIntervals"]["hourly"] == "60 minutes"


def test_unknown_dashboard_is_400(client):
    r = client.post(URL, json={"dashboard": "moon-tracker"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid dashboard type. Valid options: complete-suite, ")


def test_generate_workbook(client):
    r = client.post(URL, json={"dashboard": "defi-yields", "limit": 9999, "refreshInterval": "daily"})
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-cache"
    disposition = r.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="CryptoReportKit_defi-yields_')
    assert disposition.endswith('.xlsx"')

    wb = load_workbook(io.BytesIO(r.content))
    assert wb.sheetnames == ["Settings", "Power Query Setup", "CRK_Market", "CRK_DeFi", "CRK_Stablecoins"]
    market_code = "\n".join(c.value or "" for c in wb["CRK_Market"]["A"][7:])
    assert 'per_page = "250"' in market_code
    setup_text = [c.value for c in wb["Power Query Setup"]["B"] if c.value]
    assert "   Background refresh: No" in setup_text


def test_generate_defaults_to_complete_suite(client):
    r = client.post(URL, json={})
    assert r.status_code == 200
    assert "CryptoReportKit_complete-suite_" in r.headers["content-disposition"]
