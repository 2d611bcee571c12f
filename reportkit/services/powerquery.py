"""
powerquery.py — Power Query (M language) builders for live-refresh workbooks.

Every query talks to CoinGecko directly with the user's own key, read from
the workbook named range CRK_ApiKey, so the server never proxies the data.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from string import Template
from typing import Optional

CG_API = "https://api.coingecko.com/api/v3"
FEAR_GREED_URL = "https://api.alternative.me/fng/"
API_KEY_NAME = "CRK_ApiKey"
API_KEY_M = f'Excel.CurrentWorkbook(){{[Name="{API_KEY_NAME}"]}}[Content]{{0}}[Column1]'

DEFAULT_COINS = ["bitcoin", "ethereum", "solana"]


@dataclass
class PowerQueryDefinition:
    name: str
    code: str
    description: str
    columns: list[str] = field(default_factory=list)


def _m(template: str, **values) -> str:
    return Template(template).substitute(api_key=API_KEY_M, cg_api=CG_API, **values)


# ---------------------------------------------------------------------------
# M code templates
# ---------------------------------------------------------------------------

_MARKET_FIELDS = """{"market_cap_rank", "name", "symbol", "current_price", "market_cap", "total_volume",
         "price_change_percentage_24h", "price_change_percentage_7d_in_currency", "price_change_percentage_30d_in_currency",
         "ath", "ath_change_percentage", "last_updated"},
        {"Rank", "Name", "Symbol", "Price", "MarketCap", "Volume24h",
         "Change24h", "Change7d", "Change30d", "ATH", "ATHChange", "LastUpdated"}"""

_OHLC_STEPS = """    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/$coin/ohlc", [
        Query = [vs_currency = "usd", days = "$days", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Extracted" = Table.TransformColumns(#"To Table", {{"Column1", each
        [Timestamp = _{0}, Open = _{1}, High = _{2}, Low = _{3}, Close = _{4}]}}),
    #"To Records" = Table.ExpandRecordColumn(#"Extracted", "Column1",
        {"Timestamp", "Open", "High", "Low", "Close"},
        {"Timestamp", "Open", "High", "Low", "Close"}),
    #"Added Date" = Table.AddColumn(#"To Records", "Date",
        each #datetime(1970, 1, 1, 0, 0, 0) + #duration(0, 0, 0, [Timestamp] / 1000),
        type datetime)"""

_MOVERS_SOURCE = """    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", order = "market_cap_desc", per_page = "250", page = "1", sparkline = "false", price_change_percentage = "24h", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"market_cap_rank", "id", "name", "symbol", "current_price", "price_change_percentage_24h", "total_volume", "market_cap"},
        {"Rank", "ID", "Name", "Symbol", "Price", "Change24h", "Volume24h", "MarketCap"})"""


def market(limit: int = 100) -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", order = "market_cap_desc", per_page = "$limit", page = "1", sparkline = "false", price_change_percentage = "24h,7d,30d", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        $fields)
in
    #"Expanded\"""", limit=limit, fields=_MARKET_FIELDS)


def market_with_analytics(limit: int = 100) -> str:
    """Market rows plus market share, volume/market-cap ratio and a 60/40 24h/7d performance score."""
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", order = "market_cap_desc", per_page = "$limit", page = "1", sparkline = "false", price_change_percentage = "24h,7d,30d", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        $fields),
    TotalMCap = List.Sum(#"Expanded"[MarketCap]),
    #"Added MktShare" = Table.AddColumn(#"Expanded", "MktShare", each
        if TotalMCap = 0 or [MarketCap] = null then 0
        else [MarketCap] / TotalMCap * 100,
        type number),
    #"Added VolMcapRatio" = Table.AddColumn(#"Added MktShare", "VolMcapRatio", each
        if [MarketCap] = null or [MarketCap] = 0 then 0
        else ([Volume24h] ?? 0) / [MarketCap] * 100,
        type number),
    #"Added PerfScore" = Table.AddColumn(#"Added VolMcapRatio", "PerfScore", each
        ([Change24h] ?? 0) * 0.6 + ([Change7d] ?? 0) * 0.4,
        type number)
in
    #"Added PerfScore\"""", limit=limit, fields=_MARKET_FIELDS)


def global_stats() -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/global", [
        Query = [x_cg_demo_api_key = ApiKey]
    ])),
    Data = Source[data],
    TotalMCap = Record.FieldOrDefault(Data[total_market_cap], "usd", 0),
    TotalVol = Record.FieldOrDefault(Data[total_volume], "usd", 0),
    BtcDom = Record.FieldOrDefault(Data[market_cap_percentage], "btc", 0),
    EthDom = Record.FieldOrDefault(Data[market_cap_percentage], "eth", 0),
    Result = #table(
        {"Metric", "Value"},
        {
            {"Total Market Cap (USD)", TotalMCap},
            {"24h Volume (USD)", TotalVol},
            {"BTC Dominance %", BtcDom},
            {"ETH Dominance %", EthDom},
            {"Active Cryptocurrencies", Data[active_cryptocurrencies]},
            {"Markets", Data[markets]},
            {"Market Cap Change 24h %", Data[market_cap_change_percentage_24h_usd]}
        }
    )
in
    Result""")


def fear_greed(days: int = 30) -> str:
    # alternative.me is keyless
    return _m("""let
    Source = Json.Document(Web.Contents("$url?limit=$days")),
    Data = Source[data],
    #"To Table" = Table.FromList(Data, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"value", "value_classification", "timestamp"},
        {"Value", "Classification", "Timestamp"}),
    #"Added Date" = Table.AddColumn(#"Expanded", "Date",
        each #datetime(1970, 1, 1, 0, 0, 0) + #duration(0, 0, 0, Number.FromText([Timestamp])),
        type datetime),
    #"Changed Types" = Table.TransformColumnTypes(#"Added Date", {{"Value", Int64.Type}})
in
    #"Changed Types\"""", url=FEAR_GREED_URL, days=days)


def ohlc(coin: str = "bitcoin", days: int = 30) -> str:
    return _m("let\n" + _OHLC_STEPS + '\nin\n    #"Added Date"', coin=coin, days=days)


def coin(coin_id: str = "bitcoin") -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/$coin_id", [
        Query = [localization = "false", tickers = "false", market_data = "true", community_data = "false", developer_data = "false", x_cg_demo_api_key = ApiKey]
    ])),
    MD = Source[market_data],
    Result = #table(
        {"Metric", "Value"},
        {
            {"Name", Source[name]},
            {"Symbol", Text.Upper(Source[symbol])},
            {"Rank", Source[market_cap_rank]},
            {"Price (USD)", Record.FieldOrDefault(MD[current_price], "usd", 0)},
            {"Market Cap", Record.FieldOrDefault(MD[market_cap], "usd", 0)},
            {"24h Volume", Record.FieldOrDefault(MD[total_volume], "usd", 0)},
            {"24h Change %", MD[price_change_percentage_24h]},
            {"7d Change %", MD[price_change_percentage_7d]},
            {"30d Change %", MD[price_change_percentage_30d]},
            {"ATH", Record.FieldOrDefault(MD[ath], "usd", 0)},
            {"ATH Change %", Record.FieldOrDefault(MD[ath_change_percentage], "usd", 0)},
            {"Circulating Supply", MD[circulating_supply]},
            {"Total Supply", MD[total_supply]},
            {"Max Supply", MD[max_supply]}
        }
    )
in
    Result""", coin_id=coin_id)


def trending() -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/search/trending", [
        Query = [x_cg_demo_api_key = ApiKey]
    ])),
    Coins = Source[coins],
    #"To Table" = Table.FromList(Coins, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expand Item" = Table.ExpandRecordColumn(#"To Table", "Column1", {"item"}, {"item"}),
    #"Expand Fields" = Table.ExpandRecordColumn(#"Expand Item", "item",
        {"id", "name", "symbol", "market_cap_rank", "score"},
        {"ID", "Name", "Symbol", "MarketCapRank", "Score"})
in
    #"Expand Fields\"""")


def watchlist(coins: list[str]) -> str:
    return _m("""let
    ApiKey = $api_key,
    CoinIds = "$ids",
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", ids = CoinIds, order = "market_cap_desc", sparkline = "false", price_change_percentage = "24h,7d,30d", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"id", "name", "symbol", "market_cap_rank", "current_price", "market_cap", "total_volume",
         "price_change_percentage_24h", "price_change_percentage_7d_in_currency", "price_change_percentage_30d_in_currency"},
        {"ID", "Name", "Symbol", "Rank", "Price", "MarketCap", "Volume24h", "Change24h", "Change7d", "Change30d"})
in
    #"Expanded\"""", ids=",".join(coins))


def gainers_losers() -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", order = "market_cap_desc", per_page = "250", page = "1", sparkline = "false", price_change_percentage = "24h", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"market_cap_rank", "name", "symbol", "current_price", "price_change_percentage_24h"},
        {"Rank", "Name", "Symbol", "Price", "Change24h"}),
    #"Sorted" = Table.Sort(#"Expanded", {{"Change24h", Order.Descending}})
in
    #"Sorted\"""")


def gainers(limit: int = 20) -> str:
    return _m("let\n" + _MOVERS_SOURCE + """,
    #"Sorted" = Table.Sort(#"Expanded", {{"Change24h", Order.Descending}}),
    #"Top" = Table.FirstN(#"Sorted", $limit)
in
    #"Top\"""", limit=limit)


def losers(limit: int = 20) -> str:
    return _m("let\n" + _MOVERS_SOURCE + """,
    #"Sorted" = Table.Sort(#"Expanded", {{"Change24h", Order.Ascending}}),
    #"Bottom" = Table.FirstN(#"Sorted", $limit)
in
    #"Bottom\"""", limit=limit)


def exchanges() -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/exchanges", [
        Query = [per_page = "50", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"trust_score_rank", "name", "trust_score", "trade_volume_24h_btc", "year_established", "country"},
        {"Rank", "Name", "TrustScore", "Volume24hBTC", "Year", "Country"})
in
    #"Expanded\"""")


def technical(coin: str = "bitcoin", days: int = 30) -> str:
    return _m("let\n" + _OHLC_STEPS + """,
    #"Coin Name" = Table.AddColumn(#"Added Date", "Coin", each "$coin", type text)
in
    #"Coin Name\"""", coin=coin, days=days)


def technical_with_indicators(coin: str = "bitcoin", days: int = 30) -> str:
    """
    OHLC candles with SMA(20/50), EMA(12/26), Wilder RSI(14), MACD with a
    9-period signal line, Bollinger bands (20, 2) and daily return, all
    computed inside Power Query.
    """
    return _m("let\n" + _OHLC_STEPS + """,
    #"Added Index" = Table.AddIndexColumn(#"Added Date", "Idx", 0, 1, Int64.Type),
    CloseList = #"Added Index"[Close],
    RowCount = List.Count(CloseList),

    #"Added SMA20" = Table.AddColumn(#"Added Index", "SMA20", each
        if [Idx] < 19 then null
        else List.Average(List.Range(CloseList, [Idx] - 19, 20)),
        type number),
    #"Added SMA50" = Table.AddColumn(#"Added SMA20", "SMA50", each
        if [Idx] < 49 then null
        else List.Average(List.Range(CloseList, [Idx] - 49, 50)),
        type number),

    EMA12k = 2 / 13,
    EMA12Vals = List.Accumulate(
        {1..RowCount - 1},
        {CloseList{0}},
        (state, i) => state & {CloseList{i} * EMA12k + List.Last(state) * (1 - EMA12k)}
    ),
    #"Added EMA12" = Table.AddColumn(#"Added SMA50", "EMA12", each
        if [Idx] < 11 then null else EMA12Vals{[Idx]},
        type number),
    EMA26k = 2 / 27,
    EMA26Vals = List.Accumulate(
        {1..RowCount - 1},
        {CloseList{0}},
        (state, i) => state & {CloseList{i} * EMA26k + List.Last(state) * (1 - EMA26k)}
    ),
    #"Added EMA26" = Table.AddColumn(#"Added EMA12", "EMA26", each
        if [Idx] < 25 then null else EMA26Vals{[Idx]},
        type number),

    Changes = List.Transform({1..RowCount - 1}, each CloseList{_} - CloseList{_ - 1}),
    Gains = List.Transform(Changes, each if _ > 0 then _ else 0),
    Losses = List.Transform(Changes, each if _ < 0 then Number.Abs(_) else 0),
    RSICalc = List.Accumulate(
        {14..List.Count(Changes) - 1},
        {List.Average(List.Range(Gains, 0, 14)), List.Average(List.Range(Losses, 0, 14)),
         {if List.Average(List.Range(Losses, 0, 14)) = 0 then 100
          else 100 - 100 / (1 + List.Average(List.Range(Gains, 0, 14)) / List.Average(List.Range(Losses, 0, 14)))}},
        (state, i) => let
            ag = (state{0} * 13 + Gains{i}) / 14,
            al = (state{1} * 13 + Losses{i}) / 14,
            rsi = if al = 0 then 100 else 100 - 100 / (1 + ag / al)
        in {ag, al, state{2} & {rsi}}
    ),
    RSIValues = RSICalc{2},
    #"Added RSI14" = Table.AddColumn(#"Added EMA26", "RSI14", each
        if [Idx] < 14 then null
        else if [Idx] - 14 < List.Count(RSIValues) then RSIValues{[Idx] - 14}
        else null,
        type number),

    #"Added MACD" = Table.AddColumn(#"Added RSI14", "MACD", each
        if [Idx] < 25 then null
        else EMA12Vals{[Idx]} - EMA26Vals{[Idx]},
        type number),
    MACDVals = List.Transform({0..RowCount - 1}, each
        if _ < 25 then null else EMA12Vals{_} - EMA26Vals{_}),
    ValidMACDs = List.RemoveNulls(MACDVals),
    SignalK = 2 / 10,
    SignalVals = if List.Count(ValidMACDs) >= 9
        then List.Accumulate(
            {1..List.Count(ValidMACDs) - 1},
            {ValidMACDs{0}},
            (state, i) => state & {ValidMACDs{i} * SignalK + List.Last(state) * (1 - SignalK)}
        )
        else {},
    #"Added Signal" = Table.AddColumn(#"Added MACD", "Signal", each
        let macdIdx = [Idx] - 25 in
        if macdIdx < 0 or macdIdx >= List.Count(SignalVals) then null
        else SignalVals{macdIdx},
        type number),
    #"Added MACD_Hist" = Table.AddColumn(#"Added Signal", "MACD_Hist", each
        if [MACD] = null or [Signal] = null then null
        else [MACD] - [Signal],
        type number),

    #"Added BB_Upper" = Table.AddColumn(#"Added MACD_Hist", "BB_Upper", each
        if [Idx] < 19 then null
        else let
            slice = List.Range(CloseList, [Idx] - 19, 20),
            avg = List.Average(slice),
            stdDev = List.StandardDeviation(slice)
        in avg + 2 * stdDev,
        type number),
    #"Added BB_Lower" = Table.AddColumn(#"Added BB_Upper", "BB_Lower", each
        if [Idx] < 19 then null
        else let
            slice = List.Range(CloseList, [Idx] - 19, 20),
            avg = List.Average(slice),
            stdDev = List.StandardDeviation(slice)
        in avg - 2 * stdDev,
        type number),

    #"Added DailyReturn" = Table.AddColumn(#"Added BB_Lower", "DailyReturn", each
        if [Idx] = 0 then null
        else ([Close] - CloseList{[Idx] - 1}) / CloseList{[Idx] - 1} * 100,
        type number),

    #"Removed Idx" = Table.RemoveColumns(#"Added DailyReturn", {"Idx"}),
    #"Added Coin" = Table.AddColumn(#"Removed Idx", "Coin", each "$coin", type text)
in
    #"Added Coin\"""", coin=coin, days=days)


def defi(limit: int = 20) -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", category = "decentralized-finance-defi", order = "market_cap_desc", per_page = "$limit", page = "1", sparkline = "false", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"market_cap_rank", "name", "symbol", "current_price", "market_cap", "total_volume", "price_change_percentage_24h"},
        {"Rank", "Name", "Symbol", "Price", "MarketCap", "Volume24h", "Change24h"})
in
    #"Expanded\"""", limit=limit)


def derivatives(limit: int = 50) -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/derivatives", [
        Query = [x_cg_demo_api_key = ApiKey]
    ])),
    Limited = List.FirstN(Source, $limit),
    #"To Table" = Table.FromList(Limited, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"market", "symbol", "price", "price_percentage_change_24h", "funding_rate", "open_interest", "volume_24h"},
        {"Market", "Symbol", "Price", "PriceChange24h", "FundingRate", "OpenInterest", "Volume24h"})
in
    #"Expanded\"""", limit=limit)


def stablecoins(limit: int = 20) -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", category = "stablecoins", order = "market_cap_desc", per_page = "$limit", page = "1", sparkline = "false", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"market_cap_rank", "name", "symbol", "current_price", "market_cap", "total_volume", "circulating_supply"},
        {"Rank", "Name", "Symbol", "Price", "MarketCap", "Volume24h", "CirculatingSupply"}),
    #"Added PegDeviation" = Table.AddColumn(#"Expanded", "PegDeviation", each [Price] - 1, type number)
in
    #"Added PegDeviation\"""", limit=limit)


def batch(coins: str = "bitcoin,ethereum,solana") -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/simple/price", [
        Query = [ids = "$coins", vs_currencies = "usd", include_market_cap = "true", include_24hr_vol = "true", include_24hr_change = "true", x_cg_demo_api_key = ApiKey]
    ])),
    Fields = Record.FieldNames(Source),
    #"To Table" = Table.FromList(Fields, Splitter.SplitByNothing(), {"ID"}, null, ExtraValues.Error),
    #"Added Price" = Table.AddColumn(#"To Table", "Price", each Record.FieldOrDefault(Record.Field(Source, [ID]), "usd", 0), type number),
    #"Added MCap" = Table.AddColumn(#"Added Price", "MarketCap", each Record.FieldOrDefault(Record.Field(Source, [ID]), "usd_market_cap", 0), type number),
    #"Added Vol" = Table.AddColumn(#"Added MCap", "Volume24h", each Record.FieldOrDefault(Record.Field(Source, [ID]), "usd_24h_vol", 0), type number),
    #"Added Change" = Table.AddColumn(#"Added Vol", "Change24h", each Record.FieldOrDefault(Record.Field(Source, [ID]), "usd_24h_change", 0), type number)
in
    #"Added Change\"""", coins=coins)


def search(query: str = "bitcoin") -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/search", [
        Query = [query = "$query", x_cg_demo_api_key = ApiKey]
    ])),
    Coins = Source[coins],
    #"To Table" = Table.FromList(Coins, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"id", "name", "symbol", "market_cap_rank"},
        {"ID", "Name", "Symbol", "MarketCapRank"})
in
    #"Expanded\"""", query=query)


def nfts(limit: int = 50) -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/nfts/list", [
        Query = [per_page = "$limit", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"id", "name", "symbol", "contract_address", "asset_platform_id"},
        {"ID", "Name", "Symbol", "ContractAddress", "Platform"})
in
    #"Expanded\"""", limit=limit)


def categories(category_id: Optional[str] = None, limit: int = 50) -> str:
    """Coins of one CoinGecko category, or the category list itself when no id is given."""
    if category_id:
        return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/markets", [
        Query = [vs_currency = "usd", category = "$category_id", order = "market_cap_desc", per_page = "$limit", page = "1", sparkline = "false", price_change_percentage = "24h", x_cg_demo_api_key = ApiKey]
    ])),
    #"To Table" = Table.FromList(Source, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"market_cap_rank", "id", "name", "symbol", "current_price", "market_cap", "total_volume", "price_change_percentage_24h"},
        {"Rank", "ID", "Name", "Symbol", "Price", "MarketCap", "Volume24h", "Change24h"})
in
    #"Expanded\"""", category_id=category_id, limit=limit)
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/coins/categories", [
        Query = [x_cg_demo_api_key = ApiKey]
    ])),
    Limited = List.FirstN(Source, $limit),
    #"To Table" = Table.FromList(Limited, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"id", "name", "market_cap", "market_cap_change_24h", "volume_24h"},
        {"ID", "Name", "MarketCap", "MarketCapChange24h", "Volume24h"}),
    #"Added Rank" = Table.AddIndexColumn(#"Expanded", "Rank", 1, 1, Int64.Type)
in
    #"Added Rank\"""", limit=limit)


def companies(coin: str = "bitcoin") -> str:
    return _m("""let
    ApiKey = $api_key,
    Source = Json.Document(Web.Contents("$cg_api/companies/public_treasury/$coin", [
        Query = [x_cg_demo_api_key = ApiKey]
    ])),
    Companies = Source[companies],
    #"To Table" = Table.FromList(Companies, Splitter.SplitByNothing(), null, null, ExtraValues.Error),
    #"Expanded" = Table.ExpandRecordColumn(#"To Table", "Column1",
        {"name", "symbol", "country", "total_holdings", "total_entry_value_usd", "total_current_value_usd", "percentage_of_total_supply"},
        {"Name", "Symbol", "Country", "TotalHoldings", "TotalEntryValueUSD", "TotalCurrentValueUSD", "PercentOfTotalSupply"}),
    #"Added Rank" = Table.AddIndexColumn(#"Expanded", "Rank", 1, 1, Int64.Type)
in
    #"Added Rank\"""", coin=coin)


def wallet(address: str, chain: str = "ethereum") -> str:
    # Needs a block-explorer key, not the CoinGecko one
    return _m("""let
    ExplorerKey = "YOUR_ETHERSCAN_API_KEY",
    ChainUrl = if "$chain" = "ethereum" then "https://api.etherscan.io/api"
               else if "$chain" = "bsc" then "https://api.bscscan.com/api"
               else "https://api.polygonscan.com/api",
    Source = Json.Document(Web.Contents(ChainUrl, [
        Query = [module = "account", action = "balance", address = "$address", tag = "latest", apikey = ExplorerKey]
    ])),
    Balance = Number.FromText(Source[result]) / 1000000000000000000,
    Result = #table(
        {"Chain", "Address", "Balance"},
        {{"$chain", "$address", Balance}}
    )
in
    Result""", chain=chain, address=address)


POWER_QUERY_TEMPLATES = {
    "market":                  market,
    "marketWithAnalytics":     market_with_analytics,
    "global":                  global_stats,
    "fearGreed":               fear_greed,
    "ohlc":                    ohlc,
    "coin":                    coin,
    "trending":                trending,
    "watchlist":               watchlist,
    "gainersLosers":           gainers_losers,
    "gainers":                 gainers,
    "losers":                  losers,
    "exchanges":               exchanges,
    "technical":               technical,
    "technicalWithIndicators": technical_with_indicators,
    "defi":                    defi,
    "derivatives":             derivatives,
    "stablecoins":             stablecoins,
    "batch":                   batch,
    "search":                  search,
    "nfts":                    nfts,
    "categories":              categories,
    "companies":               companies,
    "wallet":                  wallet,
}

_MARKET_COLUMNS = ["Rank", "Name", "Symbol", "Price", "MarketCap", "Volume24h",
                   "Change24h", "Change7d", "Change30d", "ATH", "ATHChange", "LastUpdated"]
_OHLC_COLUMNS = ["Timestamp", "Open", "High", "Low", "Close", "Date"]
_MOVER_COLUMNS = ["Rank", "ID", "Name", "Symbol", "Price", "Change24h", "Volume24h", "MarketCap"]

# Output columns per template; must match the aliases in the M code.
PQ_COLUMNS = {
    "market":                  _MARKET_COLUMNS,
    "marketWithAnalytics":     _MARKET_COLUMNS + ["MktShare", "VolMcapRatio", "PerfScore"],
    "global":                  ["Metric", "Value"],
    "fearGreed":               ["Value", "Classification", "Timestamp", "Date"],
    "ohlc":                    _OHLC_COLUMNS,
    "coin":                    ["Metric", "Value"],
    "trending":                ["ID", "Name", "Symbol", "MarketCapRank", "Score"],
    "watchlist":               ["ID", "Name", "Symbol", "Rank", "Price", "MarketCap",
                                "Volume24h", "Change24h", "Change7d", "Change30d"],
    "gainersLosers":           ["Rank", "Name", "Symbol", "Price", "Change24h"],
    "gainers":                 _MOVER_COLUMNS,
    "losers":                  _MOVER_COLUMNS,
    "exchanges":               ["Rank", "Name", "TrustScore", "Volume24hBTC", "Year", "Country"],
    "technical":               _OHLC_COLUMNS + ["Coin"],
    "technicalWithIndicators": _OHLC_COLUMNS + ["SMA20", "SMA50", "EMA12", "EMA26", "RSI14", "MACD",
                                                "Signal", "MACD_Hist", "BB_Upper", "BB_Lower",
                                                "DailyReturn", "Coin"],
    "defi":                    ["Rank", "Name", "Symbol", "Price", "MarketCap", "Volume24h", "Change24h"],
    "derivatives":             ["Market", "Symbol", "Price", "PriceChange24h", "FundingRate",
                                "OpenInterest", "Volume24h"],
    "stablecoins":             ["Rank", "Name", "Symbol", "Price", "MarketCap", "Volume24h",
                                "CirculatingSupply", "PegDeviation"],
    "batch":                   ["ID", "Price", "MarketCap", "Volume24h", "Change24h"],
    "search":                  ["ID", "Name", "Symbol", "MarketCapRank"],
    "nfts":                    ["ID", "Name", "Symbol", "ContractAddress", "Platform"],
    "categoriesWithId":        ["Rank", "ID", "Name", "Symbol", "Price", "MarketCap", "Volume24h", "Change24h"],
    "categoriesNoId":          ["ID", "Name", "MarketCap", "MarketCapChange24h", "Volume24h", "Rank"],
    "companies":               ["Name", "Symbol", "Country", "TotalHoldings", "TotalEntryValueUSD",
                                "TotalCurrentValueUSD", "PercentOfTotalSupply", "Rank"],
    "wallet":                  ["Chain", "Address", "Balance"],
}


# ---------------------------------------------------------------------------
# Refresh presets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RefreshConfig:
    interval_minutes: int
    refresh_on_open: bool
    background_refresh: bool


REFRESH_PRESETS = {
    "realtime": RefreshConfig(5,    True,  True),
    "frequent": RefreshConfig(15,   True,  True),
    "hourly":   RefreshConfig(60,   True,  True),
    "daily":    RefreshConfig(1440, True,  False),
    "manual":   RefreshConfig(0,    False, False),
}
DEFAULT_REFRESH = "hourly"


def refresh_config(name: Optional[str]) -> RefreshConfig:
    """Unknown or missing preset names fall back to hourly."""
    return REFRESH_PRESETS.get(name or DEFAULT_REFRESH, REFRESH_PRESETS[DEFAULT_REFRESH])


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------

DASHBOARD_DESCRIPTIONS = {
    "complete-suite":     "Everything in one file - all 40 dashboards included",
    "market-overview":    "Global stats, top coins, and market charts",
    "portfolio-tracker":  "Track your holdings with P/L calculations",
    "technical-analysis": "OHLC data and price indicators",
    "fear-greed":         "Crypto Fear & Greed Index history",
    "gainers-losers":     "Top gainers and losers (24h)",
    "trending":           "Currently trending cryptocurrencies",
    "defi-dashboard":     "DeFi protocols and TVL metrics",
    "nft-tracker":        "NFT collections overview",
    "derivatives":        "Futures and derivatives market data",
    "whale-tracker":      "Large transaction monitoring",
    "on-chain":           "Blockchain analytics and metrics",
    "correlation":        "Asset correlation matrix",
    "heatmap":            "Visual market heatmap by 24h change",
    "screener":           "Full coin screener with filters",
    "etf-tracker":        "Bitcoin and crypto ETF tracking",
    "stablecoins":        "Stablecoin market and peg monitoring",
    "exchanges":          "Exchange volumes and trust scores",
    "categories":         "Crypto sectors and categories",
    "bitcoin-dashboard":  "Complete BTC analysis with halving and dominance",
    "ethereum-dashboard": "ETH ecosystem with DeFi stats and gas tracker",
    "layer1-compare":     "Compare top L1 blockchains side-by-side",
    "layer2-compare":     "L2 scaling solutions comparison",
    "meme-coins":         "Popular meme token tracker",
    "ai-gaming":          "AI and gaming crypto tokens analysis",
    "calculator":         "DCA, profit, and price target calculators",
    "volatility":         "Price volatility and risk analysis",
    "rwa":                "Real World Assets tokenization tracker",
    "liquidations":       "Liquidation zones and leverage risk tracker",
    "funding-rates":      "Perpetual futures funding rates analysis",
    "altcoin-season":     "Altcoin vs Bitcoin season index",
    "token-unlocks":      "Upcoming token unlock schedules",
    "staking-yields":     "PoS staking yields comparison",
    "social-sentiment":   "Social media sentiment analysis",
    "dev-activity":       "Developer and GitHub activity metrics",
    "exchange-reserves":  "Crypto held on exchanges tracker",
    "defi-yields":        "DeFi yield farming opportunities",
    "metaverse":          "Metaverse and virtual world tokens",
    "privacy-coins":      "Privacy-focused cryptocurrencies",
    "mining-calc":        "Mining profitability calculator",
    "custom":             "Custom watchlist with your selected coins",
}
VALID_DASHBOARDS = tuple(DASHBOARD_DESCRIPTIONS)

ANALYTICS_DASHBOARDS = (
    "market-overview", "complete-suite", "screener", "heatmap",
    "gainers-losers", "categories", "correlation", "altcoin-season",
)

LAYER1_COINS = [
    "bitcoin", "ethereum", "solana", "cardano", "avalanche-2",
    "polkadot", "near", "cosmos", "aptos", "sui",
    "the-open-network", "tron", "algorand", "fantom", "hedera-hashgraph",
]
UNLOCK_COINS = [
    "arbitrum", "optimism", "aptos", "sui", "celestia",
    "sei-network", "worldcoin-wld", "starknet", "layerzero", "jito-governance-token",
]
DEV_COINS = [
    "ethereum", "polkadot", "cardano", "solana", "cosmos",
    "near", "internet-computer", "chainlink", "filecoin", "aptos",
]


def dashboard_title(dashboard: str) -> str:
    return " ".join(word.capitalize() for word in dashboard.split("-"))


def _q(name: str, code: str, description: str, columns_key: str) -> PowerQueryDefinition:
    return PowerQueryDefinition(name, code, description, list(PQ_COLUMNS[columns_key]))


def _global_q(description: str = "Global crypto market statistics") -> PowerQueryDefinition:
    return _q("CRK_Global", global_stats(), description, "global")


def _trending_q(description: str = "Currently trending cryptocurrencies") -> PowerQueryDefinition:
    return _q("CRK_Trending", trending(), description, "trending")


def _fear_greed_q(days: int, description: str) -> PowerQueryDefinition:
    return _q("CRK_FearGreed", fear_greed(days), description, "fearGreed")


def _ohlc_q(name: str, coin_id: str, days: int, description: str) -> PowerQueryDefinition:
    return _q(name, ohlc(coin_id, days), description, "ohlc")


def _coin_q(name: str, coin_id: str, description: str) -> PowerQueryDefinition:
    return _q(name, coin(coin_id), description, "coin")


def _indicators_q(name: str, coin_id: str, label: str, days: int) -> PowerQueryDefinition:
    return _q(
        name,
        technical_with_indicators(coin_id, days),
        f"{label} OHLC with SMA, EMA, RSI, MACD, Bollinger Bands (auto-computed)",
        "technicalWithIndicators",
    )


def _category_q(name: str, category_id: str, limit: int, description: str) -> PowerQueryDefinition:
    return _q(name, categories(category_id, limit), description, "categoriesWithId")


def _dashboard_queries(dashboard: str, coins: list[str], days: int) -> list[PowerQueryDefinition]:
    if dashboard == "market-overview":
        return [
            _global_q(),
            _trending_q(),
            _fear_greed_q(30, "Fear & Greed Index (30-day history)"),
        ]
    if dashboard == "complete-suite":
        return [
            _global_q(),
            _trending_q(),
            _fear_greed_q(30, "Fear & Greed Index (30-day history)"),
            _q("CRK_Gainers", gainers(20), "Top 20 gainers by 24h change", "gainers"),
            _q("CRK_Losers", losers(20), "Top 20 losers by 24h change", "losers"),
            _q("CRK_DeFi", defi(20), "Top 20 DeFi protocols by market cap", "defi"),
            _q("CRK_Exchanges", exchanges(), "Top cryptocurrency exchanges", "exchanges"),
            _q("CRK_Stablecoins", stablecoins(10), "Top stablecoins with peg deviation", "stablecoins"),
        ]
    if dashboard == "fear-greed":
        return [_fear_greed_q(90, "Fear & Greed Index with 90-day history")]
    if dashboard == "technical-analysis":
        return [
            _ohlc_q("CRK_BTC_OHLC", "bitcoin", days, f"Bitcoin OHLC candlestick data ({days} days)"),
            _indicators_q("CRK_BTC_Technical", "bitcoin", "Bitcoin", days),
            _indicators_q("CRK_ETH_Technical", "ethereum", "Ethereum", days),
        ]
    if dashboard == "bitcoin-dashboard":
        return [
            _ohlc_q("CRK_BTC_OHLC", "bitcoin", days, f"Bitcoin OHLC candlestick data ({days} days)"),
            _coin_q("CRK_Bitcoin", "bitcoin", "Bitcoin detailed information"),
            _indicators_q("CRK_BTC_Technical", "bitcoin", "Bitcoin", days),
        ]
    if dashboard == "ethereum-dashboard":
        return [
            _ohlc_q("CRK_ETH_OHLC", "ethereum", days, f"Ethereum OHLC candlestick data ({days} days)"),
            _coin_q("CRK_Ethereum", "ethereum", "Ethereum detailed information"),
            _indicators_q("CRK_ETH_Technical", "ethereum", "Ethereum", days),
        ]
    if dashboard in ("portfolio-tracker", "custom"):
        return [_q("CRK_Watchlist", watchlist(coins), f"Your custom watchlist: {', '.join(coins)}", "watchlist")]
    if dashboard == "exchanges":
        return [_q("CRK_Exchanges", exchanges(), "Top cryptocurrency exchanges", "exchanges")]
    if dashboard == "gainers-losers":
        return [
            _q("CRK_Gainers", gainers(20), "Top 20 gaining cryptocurrencies by 24h change", "gainers"),
            _q("CRK_Losers", losers(20), "Top 20 losing cryptocurrencies by 24h change", "losers"),
        ]
    if dashboard == "defi-dashboard":
        return [_q("CRK_DeFi", defi(50), "Top 50 DeFi protocols by market cap", "defi")]
    if dashboard == "derivatives":
        return [_q("CRK_Derivatives", derivatives(50),
                   "Futures & derivatives with funding rates and open interest", "derivatives")]
    if dashboard == "stablecoins":
        return [_q("CRK_Stablecoins", stablecoins(20),
                   "Stablecoin market data with peg deviation tracking", "stablecoins")]
    if dashboard == "nft-tracker":
        return [_q("CRK_NFTs", nfts(50), "NFT collections with contract addresses and platforms", "nfts")]
    if dashboard == "categories":
        return [_q("CRK_Categories", categories(None, 50),
                   "All crypto categories with market cap and volume", "categoriesNoId")]
    if dashboard == "trending":
        return [_trending_q()]
    if dashboard in ("heatmap", "screener"):
        # the market query already covers these
        return []
    if dashboard == "correlation":
        return [_q("CRK_Watchlist", watchlist(coins[:20]), "Coins for correlation analysis", "watchlist")]
    if dashboard == "wallet-tracker":
        return [_q("CRK_Wallet", wallet("YOUR_WALLET_ADDRESS", "ethereum"),
                   "Wallet balance tracker - replace YOUR_WALLET_ADDRESS with your address", "wallet")]
    if dashboard == "whale-tracker":
        return [
            _q("CRK_WhaleCoins", market(50), "Top 50 coins by market cap (whale-watched assets)", "market"),
            _q("CRK_Companies", companies("bitcoin"), "Public companies holding Bitcoin (whale tracker)", "companies"),
        ]
    if dashboard == "on-chain":
        return [
            _coin_q("CRK_Bitcoin_OnChain", "bitcoin", "Bitcoin on-chain metrics (supply, ATH, market data)"),
            _coin_q("CRK_Ethereum_OnChain", "ethereum", "Ethereum on-chain metrics"),
            _global_q(),
        ]
    if dashboard == "etf-tracker":
        return [
            _q("CRK_BTC_Companies", companies("bitcoin"), "Public companies/ETFs holding Bitcoin", "companies"),
            _q("CRK_ETH_Companies", companies("ethereum"), "Public companies/ETFs holding Ethereum", "companies"),
            _coin_q("CRK_BTC_Price", "bitcoin", "Bitcoin price and market data"),
        ]
    if dashboard == "layer1-compare":
        return [_q("CRK_L1_Coins", watchlist(LAYER1_COINS),
                   "Top Layer 1 blockchains side-by-side comparison", "watchlist")]
    if dashboard == "layer2-compare":
        return [_category_q("CRK_L2_Coins", "layer-2", 50,
                            "Layer 2 scaling solutions (Arbitrum, Optimism, Polygon, etc.)")]
    if dashboard == "meme-coins":
        return [
            _category_q("CRK_MemeCoins", "meme-token", 50, "Top 50 meme coins by market cap"),
            _trending_q("Currently trending coins (often memes)"),
        ]
    if dashboard == "ai-gaming":
        return [
            _category_q("CRK_AI_Tokens", "artificial-intelligence", 30, "Top AI tokens by market cap"),
            _category_q("CRK_Gaming_Tokens", "gaming", 30, "Top gaming/GameFi tokens by market cap"),
        ]
    if dashboard == "calculator":
        return [
            _ohlc_q("CRK_BTC_OHLC", "bitcoin", 365, "Bitcoin 1-year OHLC data for DCA/profit calculations"),
            _q("CRK_TopCoins", batch("bitcoin,ethereum,solana,cardano,polkadot"),
               "Current prices for investment calculators", "batch"),
        ]
    if dashboard == "volatility":
        return [
            _ohlc_q("CRK_BTC_OHLC", "bitcoin", 90, "Bitcoin 90-day OHLC for volatility analysis"),
            _ohlc_q("CRK_ETH_OHLC", "ethereum", 90, "Ethereum 90-day OHLC for volatility analysis"),
            _ohlc_q("CRK_SOL_OHLC", "solana", 90, "Solana 90-day OHLC for volatility analysis"),
        ]
    if dashboard == "rwa":
        return [_category_q("CRK_RWA_Tokens", "real-world-assets-rwa", 50,
                            "Real World Asset tokens by market cap")]
    if dashboard == "liquidations":
        return [
            _q("CRK_Derivatives", derivatives(50),
               "Derivatives data with open interest and funding rates", "derivatives"),
            _ohlc_q("CRK_BTC_OHLC", "bitcoin", 30, "Bitcoin 30-day OHLC for liquidation zone analysis"),
        ]
    if dashboard == "funding-rates":
        return [_q("CRK_Derivatives", derivatives(100),
                   "Perpetual futures with funding rates and open interest", "derivatives")]
    if dashboard == "altcoin-season":
        return [
            _q("CRK_AltSeason", market(100), "Top 100 coins, compare altcoin vs BTC performance", "market"),
            _global_q("Global stats with BTC dominance for alt season index"),
        ]
    if dashboard == "token-unlocks":
        return [
            _q("CRK_UnlockCoins", watchlist(UNLOCK_COINS), "Tokens with upcoming unlock events", "watchlist"),
            _global_q("Global market context for unlock impact"),
        ]
    if dashboard == "staking-yields":
        return [_category_q("CRK_StakingCoins", "proof-of-stake", 50,
                            "Proof-of-Stake coins for staking yield comparison")]
    if dashboard == "social-sentiment":
        return [
            _trending_q("Currently trending coins (social signal)"),
            _fear_greed_q(30, "Fear & Greed sentiment index (30-day)"),
            _q("CRK_TopMovers", gainers(20), "Top gainers (social momentum indicator)", "gainers"),
        ]
    if dashboard == "dev-activity":
        return [
            _q("CRK_DevCoins", watchlist(DEV_COINS), "Top developer-active projects by market data", "watchlist"),
            _coin_q("CRK_ETH_Detail", "ethereum", "Ethereum detailed info (developer data reference)"),
        ]
    if dashboard == "exchange-reserves":
        return [
            _q("CRK_Exchanges", exchanges(), "Exchange volumes and trust scores", "exchanges"),
            _coin_q("CRK_BTC_Detail", "bitcoin", "Bitcoin supply data (circulating vs total)"),
        ]
    if dashboard == "defi-yields":
        return [
            _q("CRK_DeFi", defi(50), "Top 50 DeFi protocols for yield analysis", "defi"),
            _q("CRK_Stablecoins", stablecoins(10), "Top stablecoins (yield farming base pairs)", "stablecoins"),
        ]
    if dashboard == "metaverse":
        return [_category_q("CRK_MetaverseTokens", "metaverse", 50, "Metaverse and virtual world tokens")]
    if dashboard == "privacy-coins":
        return [_category_q("CRK_PrivacyCoins", "privacy-coins", 30, "Privacy-focused cryptocurrencies")]
    if dashboard == "mining-calc":
        return [
            _coin_q("CRK_BTC_Detail", "bitcoin", "Bitcoin details (hash rate, supply, difficulty reference)"),
            _ohlc_q("CRK_BTC_OHLC", "bitcoin", 90, "Bitcoin 90-day OHLC for profitability analysis"),
            _category_q("CRK_PoW_Coins", "proof-of-work", 20, "Proof-of-Work mineable coins"),
        ]
    return [_global_q()]


def generate_queries_for_dashboard(
    dashboard: str,
    coins: Optional[list[str]] = None,
    limit: int = 100,
    days: int = 30,
) -> list[PowerQueryDefinition]:
    """
    Ordered Power Query definitions for a dashboard.

    CRK_Market is always first (with the analytics columns for dashboards that
    rank or compare coins); dashboard-specific queries follow. Dashboards with
    no dedicated queries get the global stats query.
    """
    coins = coins or list(DEFAULT_COINS)
    if dashboard in ANALYTICS_DASHBOARDS:
        first = _q(
            "CRK_Market",
            market_with_analytics(limit),
            f"Top {limit} coins with price, market cap, volume + Market Share %, Vol/MCap, Performance Score",
            "marketWithAnalytics",
        )
    else:
        first = _q(
            "CRK_Market",
            market(limit),
            f"Top {limit} cryptocurrencies with price, market cap, and volume (direct from CoinGecko)",
            "market",
        )
    return [first] + _dashboard_queries(dashboard, coins, days)
