"""
Market data for backtesting: normalized daily bars with multi-source fallback.
"""

from paperbull.services.market_data.base import (
    AssetType,
    Bar,
    BarCache,
    HistoricalDataSource,
    normalize_bars,
    validate_symbol,
)
from paperbull.services.market_data.provider import MarketDataProvider
from paperbull.services.market_data.sources import (
    AlphaVantageSource,
    CoinGeckoSource,
    YahooChartSource,
)

__all__ = [
    "AssetType",
    "Bar",
    "BarCache",
    "HistoricalDataSource",
    "normalize_bars",
    "validate_symbol",
    "MarketDataProvider",
    "AlphaVantageSource",
    "CoinGeckoSource",
    "YahooChartSource",
]
