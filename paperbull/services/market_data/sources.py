"""
Historical Data Sources

HTTP clients for the upstreams that serve daily history. Each source
normalizes its payload into ``Bar`` objects and reports any failure as
``MarketDataError`` so the provider can fall through to the next one.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from paperbull.config import settings
from paperbull.core.exceptions import MarketDataError
from paperbull.services.market_data.base import Bar, HistoricalDataSource, normalize_bars

logger = logging.getLogger(__name__)


def _epoch(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


class HttpSource(HistoricalDataSource):
    """Shared httpx plumbing; an injected client is reused and never closed."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self.timeout = timeout or settings.market_data_timeout

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise MarketDataError(
                f"{self.name} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise MarketDataError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise MarketDataError(f"{self.name} returned invalid JSON") from e


class YahooChartSource(HttpSource):
    """Yahoo Finance v8 chart endpoint (stocks, ETFs and ``XXX-USD`` crypto)."""

    name = "yahoo"

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = (base_url or settings.yahoo_base_url).rstrip("/")

    async def fetch(self, symbol: str, start: date, end: date) -> List[Bar]:
        data = await self._get_json(
            f"{self.base_url}/v8/finance/chart/{symbol}",
            params={
                "period1": _epoch(start),
                # period2 is exclusive upstream; include the end date
                "period2": _epoch(end + timedelta(days=1)),
                "interval": "1d",
            },
            headers={"User-Agent": "Mozilla/5.0"},
        )

        results = (data.get("chart") or {}).get("result") or []
        if not results or not results[0].get("timestamp"):
            raise MarketDataError(f"No data available for {symbol}")

        result = results[0]
        timestamps = result["timestamp"]
        indicators = result.get("indicators") or {}
        quote = (indicators.get("quote") or [{}])[0]
        adj_series = (indicators.get("adjclose") or [{}])[0].get("adjclose") or []

        def at(series: Optional[list], i: int) -> Any:
            if not series or i >= len(series):
                return None
            return series[i]

        rows = [
            {
                "date": ts,
                "open": at(quote.get("open"), i),
                "high": at(quote.get("high"), i),
                "low": at(quote.get("low"), i),
                "close": at(quote.get("close"), i),
                "adj_close": at(adj_series, i),
                "volume": at(quote.get("volume"), i),
            }
            for i, ts in enumerate(timestamps)
        ]
        return normalize_bars(rows)


class AlphaVantageSource(HttpSource):
    """Alpha Vantage TIME_SERIES_DAILY (stocks only, requires an API key)."""

    name = "alpha_vantage"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else settings.alpha_vantage_api_key
        self.base_url = base_url or settings.alpha_vantage_base_url

    async def fetch(self, symbol: str, start: date, end: date) -> List[Bar]:
        if not self.api_key:
            raise MarketDataError("Alpha Vantage API key is not configured")

        data = await self._get_json(
            self.base_url,
            params={
                "function": "TIME_SERIES_DAILY",
                "symbol": symbol,
                "apikey": self.api_key,
                "outputsize": "full",
            },
        )

        series = data.get("Time Series (Daily)")
        if not series:
            # Rate limiting and bad symbols come back as 200 with a message
            detail = data.get("Note") or data.get("Information") or data.get("Error Message")
            raise MarketDataError(f"No daily data found for {symbol}: {detail or 'empty response'}")

        rows = []
        for day, values in series.items():
            bar_date = date.fromisoformat(day)
            if bar_date < start or bar_date > end:
                continue
            rows.append(
                {
                    "date": bar_date,
                    "open": values.get("1. open"),
                    "high": values.get("2. high"),
                    "low": values.get("3. low"),
                    "close": values.get("4. close"),
                    "volume": values.get("5. volume"),
                }
            )
        return normalize_bars(rows)


class CoinGeckoSource(HttpSource):
    """CoinGecko market_chart/range (close-only daily prices for crypto)."""

    name = "coingecko"

    SYMBOL_TO_ID = {
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "USDT": "tether",
        "BNB": "binancecoin",
        "SOL": "solana",
        "XRP": "ripple",
        "USDC": "usd-coin",
        "ADA": "cardano",
        "DOGE": "dogecoin",
        "AVAX": "avalanche-2",
        "DOT": "polkadot",
        "MATIC": "matic-network",
        "LINK": "chainlink",
        "LTC": "litecoin",
        "TRX": "tron",
        "SHIB": "shiba-inu",
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else settings.coingecko_api_key
        self.base_url = (base_url or settings.coingecko_base_url).rstrip("/")

    def coin_id(self, symbol: str) -> str:
        base = symbol.upper()
        for suffix in ("-USD", "USDT"):
            if base.endswith(suffix) and base != suffix:
                base = base[: -len(suffix)]
                break
        return self.SYMBOL_TO_ID.get(base, base.lower())

    async def fetch(self, symbol: str, start: date, end: date) -> List[Bar]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-pro-api-key"] = self.api_key

        coin_id = self.coin_id(symbol)
        data = await self._get_json(
            f"{self.base_url}/coins/{coin_id}/market_chart/range",
            params={
                "vs_currency": "usd",
                "from": _epoch(start),
                "to": _epoch(end + timedelta(days=1)),
            },
            headers=headers,
        )

        prices = data.get("prices") or []
        if not prices:
            raise MarketDataError(f"No historical data found for {symbol} ({coin_id})")

        volumes = {int(ms): vol for ms, vol in data.get("total_volumes") or []}
        rows = [
            {
                "date": ms / 1000,
                "open": price,
                "high": price,
                "low": price,
                "close": price,
                "volume": int(volumes.get(int(ms)) or 0),
            }
            for ms, price in prices
        ]
        return normalize_bars(rows)
