"""
Market Data Base - shared bar shape and source interface
"""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from paperbull.core.constants import MAX_SYMBOL_LENGTH
from paperbull.core.exceptions import InvalidSymbolError

_VALID_SYMBOL = re.compile(r"^[A-Za-z0-9\-._:]+$")


class AssetType(str, Enum):
    """Which family of sources serves a symbol."""
    STOCK = "stock"
    CRYPTO = "crypto"


@dataclass(frozen=True)
class Bar:
    """One daily OHLCV bar (UTC calendar date)."""
    date: date
    open: float
    high: float
    low: float
    close: float
    adj_close: float
    volume: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "adjClose": self.adj_close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bar":
        return cls(
            date=date.fromisoformat(data["date"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            adj_close=float(data.get("adjClose", data["close"])),
            volume=int(data.get("volume", 0)),
        )


class BarCache(Protocol):
    """Cache contract accepted by the provider (see ``RedisCache``)."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> None: ...


class HistoricalDataSource(ABC):
    """A single upstream that can serve daily history."""

    name: str = "source"

    @abstractmethod
    async def fetch(self, symbol: str, start: date, end: date) -> List[Bar]:
        """Return bars for [start, end]; raise MarketDataError on failure."""


def validate_symbol(symbol: Optional[str]) -> str:
    """Sanitize a user-supplied symbol before it is placed in a URL.

    Returns the stripped, upper-cased symbol. Raises InvalidSymbolError
    for empty input, over-long input or characters outside
    ``[A-Za-z0-9-._:]``.
    """
    if not symbol or not isinstance(symbol, str):
        raise InvalidSymbolError("Symbol is required")

    cleaned = symbol.strip().upper()
    if not cleaned:
        raise InvalidSymbolError("Symbol is required")
    if len(cleaned) > MAX_SYMBOL_LENGTH:
        raise InvalidSymbolError(
            f"Symbol too long (max {MAX_SYMBOL_LENGTH} characters)"
        )
    if not _VALID_SYMBOL.match(cleaned):
        raise InvalidSymbolError(f"Symbol contains invalid characters: {symbol!r}")
    return cleaned


def to_utc_date(value: Union[date, datetime, int, float, str]) -> date:
    """Coerce an epoch-seconds/ISO/datetime value to a UTC calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).date()
    return date.fromisoformat(str(value)[:10])


def _positive(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def normalize_bars(rows: Iterable[Dict[str, Any]]) -> List[Bar]:
    """Turn raw source rows into a clean ascending bar sequence.

    Rows with a missing or non-positive OHLC value are dropped, duplicate
    dates keep the last row seen, ``adj_close`` falls back to ``close`` and
    ``volume`` to 0.
    """
    by_date: Dict[date, Bar] = {}

    for row in rows:
        o = _positive(row.get("open"))
        h = _positive(row.get("high"))
        l = _positive(row.get("low"))
        c = _positive(row.get("close"))
        if o is None or h is None or l is None or c is None:
            continue

        adj = _positive(row.get("adj_close")) or c
        try:
            volume = int(row.get("volume") or 0)
        except (TypeError, ValueError):
            volume = 0

        bar_date = to_utc_date(row["date"])
        by_date[bar_date] = Bar(
            date=bar_date,
            open=o,
            high=h,
            low=l,
            close=c,
            adj_close=adj,
            volume=max(volume, 0),
        )

    return [by_date[d] for d in sorted(by_date)]
