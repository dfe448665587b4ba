"""Shared test fixtures: synthetic bar series and a stub data provider."""

from datetime import date, timedelta
from typing import List, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from paperbull.services.market_data.base import Bar

START_DATE = date(2024, 1, 1)


def make_bars(closes: Sequence[float], start: date = START_DATE) -> List[Bar]:
    """One bar per close on consecutive calendar days; high/low bracket the close by 1%."""
    return [
        Bar(
            date=start + timedelta(days=i),
            open=close,
            high=close * 1.01,
            low=close * 0.99,
            close=close,
            adj_close=close,
            volume=1_000,
        )
        for i, close in enumerate(closes)
    ]


def ramp_closes(n: int, start: float = 100.0, step: float = 1.0) -> List[float]:
    return [start + step * i for i in range(n)]


def flat_then_ramp_closes(flat: int = 40, ramp: int = 60, price: float = 100.0) -> List[float]:
    """A flat base followed by a steady climb: a single upward MA crossover."""
    return [price] * flat + [price + i + 1 for i in range(ramp)]


def zigzag_closes(n: int, low: float = 90.0, high: float = 110.0, leg: int = 10) -> List[float]:
    """Triangle wave between *low* and *high*, *leg* bars per side."""
    closes = []
    step = (high - low) / leg
    for i in range(n):
        phase = i % (2 * leg)
        closes.append(low + step * phase if phase < leg else high - step * (phase - leg))
    return closes


@pytest.fixture
def bar_factory():
    return make_bars


@pytest.fixture
def ramp_bars() -> List[Bar]:
    return make_bars(flat_then_ramp_closes())


@pytest.fixture
def zigzag_bars() -> List[Bar]:
    return make_bars(zigzag_closes(120))


@pytest.fixture
def stub_provider():
    """Data provider double; set ``stub_provider.bars`` before the run."""

    class _Stub:
        def __init__(self):
            self.bars: Optional[List[Bar]] = []
            self.fetch_historical_data = AsyncMock(side_effect=self._fetch)

        async def _fetch(self, symbol, start_date, end_date, asset_type="stock"):
            return list(self.bars)

    return _Stub()
