"""
Market Data Provider

Single entry point the backtesting engine depends on. Routes a symbol to
an ordered list of sources for its asset type, falls through on failure
and optionally caches the normalized bars.
"""

import json
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Union

from paperbull.config import settings
from paperbull.core.exceptions import DataUnavailableError, MarketDataError
from paperbull.services.market_data.base import (
    AssetType,
    Bar,
    BarCache,
    HistoricalDataSource,
    to_utc_date,
    validate_symbol,
)
from paperbull.services.market_data.sources import (
    AlphaVantageSource,
    CoinGeckoSource,
    YahooChartSource,
)

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


class MarketDataProvider:
    """
    Ordered-fallback historical data provider.

    Example usage:
        provider = MarketDataProvider()
        bars = await provider.fetch_historical_data("AAPL", "2024-01-01", "2024-12-31")
    """

    def __init__(
        self,
        sources: Optional[Dict[AssetType, Sequence[HistoricalDataSource]]] = None,
        cache: Optional[BarCache] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.sources = sources if sources is not None else self.default_sources()
        self.cache = cache
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.market_data_cache_ttl

    @staticmethod
    def default_sources() -> Dict[AssetType, List[HistoricalDataSource]]:
        yahoo = YahooChartSource()
        return {
            AssetType.STOCK: [yahoo, AlphaVantageSource()],
            AssetType.CRYPTO: [CoinGeckoSource(), _YahooCryptoSource(yahoo)],
        }

    async def fetch_historical_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        asset_type: Union[AssetType, str] = AssetType.STOCK,
    ) -> List[Bar]:
        """Return ascending daily bars or raise DataUnavailableError."""
        symbol = validate_symbol(symbol)
        asset = AssetType(asset_type)
        start = to_utc_date(start_date)
        end = to_utc_date(end_date)

        cache_key = f"bars:{asset.value}:{symbol}:{start.isoformat()}:{end.isoformat()}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.debug(f"Serving {symbol} bars from cache ({len(cached)} points)")
            return cached

        errors: List[str] = []
        for source in self.sources.get(asset, []):
            try:
                bars = await source.fetch(symbol, start, end)
            except MarketDataError as e:
                logger.warning(f"[{source.name}] {symbol} fetch failed: {e.message}")
                errors.append(f"{source.name}: {e.message}")
                continue

            if not bars:
                logger.warning(f"[{source.name}] {symbol} returned no bars")
                errors.append(f"{source.name}: no bars")
                continue

            logger.info(f"[{source.name}] {symbol}: {len(bars)} bars {start} -> {end}")
            await self._cache_set(cache_key, bars)
            return bars

        detail = "; ".join(errors) if errors else "no sources configured"
        raise DataUnavailableError(f"Failed to fetch historical data for {symbol} ({detail})")

    async def _cache_get(self, key: str) -> Optional[List[Bar]]:
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Market data cache read failed: {e}")
            return None
        if not raw:
            return None
        try:
            return [Bar.from_dict(item) for item in json.loads(raw)]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Discarding unreadable cached bars for {key}: {e}")
            return None

    async def _cache_set(self, key: str, bars: List[Bar]) -> None:
        if self.cache is None:
            return
        payload = json.dumps([bar.to_dict() for bar in bars])
        try:
            await self.cache.set(key, payload, expire=self.cache_ttl)
        except Exception as e:
            logger.warning(f"Market data cache write failed: {e}")


class _YahooCryptoSource(HistoricalDataSource):
    """Yahoo lists crypto as ``BTC-USD``; adapt bare tickers to that form."""

    name = "yahoo_crypto"

    def __init__(self, yahoo: YahooChartSource):
        self.yahoo = yahoo

    async def fetch(self, symbol: str, start: date, end: date) -> List[Bar]:
        pair = symbol if "-" in symbol else f"{symbol}-USD"
        return await self.yahoo.fetch(pair, start, end)
