"""
Technical Indicator Library

Pure functions over a close series (or bars for ATR). Every output has the
same length as its input; positions inside an indicator's warm-up window
hold ``None`` rather than a number, and consumers must check before use.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from paperbull.core.constants import (
    DEFAULT_ATR_PERIOD,
    DEFAULT_BB_PERIOD,
    DEFAULT_BB_STD_DEV,
    DEFAULT_RSI_PERIOD,
    EMA_PERIODS,
    MACD_FAST_PERIOD,
    MACD_SIGNAL_PERIOD,
    MACD_SLOW_PERIOD,
    SMA_PERIODS,
)
from paperbull.services.backtesting.strategy import param_or_default
from paperbull.services.market_data.base import Bar

logger = logging.getLogger(__name__)

Series = List[Optional[float]]


@dataclass
class MACDSeries:
    line: Series
    signal: Series
    histogram: Series


@dataclass
class BollingerBands:
    upper: Series
    middle: Series
    lower: Series


@dataclass
class IndicatorSet:
    """All indicator series for one run, index-aligned with the bars."""
    sma: Dict[int, Series] = field(default_factory=dict)
    ema: Dict[int, Series] = field(default_factory=dict)
    rsi: Series = field(default_factory=list)
    macd: MACDSeries = field(default_factory=lambda: MACDSeries([], [], []))
    bollinger: BollingerBands = field(default_factory=lambda: BollingerBands([], [], []))
    atr: Series = field(default_factory=list)


# ========================
# Moving averages
# ========================

def sma(data: Sequence[float], period: int) -> Series:
    """Simple moving average of the trailing ``period`` values."""
    result: Series = []
    for i in range(len(data)):
        if i < period - 1:
            result.append(None)
        else:
            window = data[i - period + 1:i + 1]
            result.append(sum(window) / period)
    return result


def ema(data: Sequence[float], period: int) -> Series:
    """Exponential moving average seeded with the SMA of the first ``period`` values."""
    result: Series = []
    multiplier = 2 / (period + 1)

    for i in range(len(data)):
        if i < period - 1:
            result.append(None)
        elif i == period - 1:
            result.append(sum(data[:period]) / period)
        else:
            prev = result[i - 1]
            result.append((data[i] - prev) * multiplier + prev)
    return result


# ========================
# Oscillators
# ========================

def rsi(data: Sequence[float], period: int = DEFAULT_RSI_PERIOD) -> Series:
    """RSI from a simple trailing average of gains/losses (not Wilder-smoothed)."""
    gains: List[float] = []
    losses: List[float] = []
    for i in range(1, len(data)):
        change = data[i] - data[i - 1]
        gains.append(change if change > 0 else 0.0)
        losses.append(-change if change < 0 else 0.0)

    result: Series = []
    for i in range(len(data)):
        if i < period:
            result.append(None)
            continue

        avg_gain = sum(gains[i - period:i]) / period
        avg_loss = sum(losses[i - period:i]) / period
        if avg_loss == 0:
            result.append(100.0)
        else:
            rs = avg_gain / avg_loss
            result.append(100 - (100 / (1 + rs)))
    return result


def macd(
    data: Sequence[float],
    fast_period: int = MACD_FAST_PERIOD,
    slow_period: int = MACD_SLOW_PERIOD,
    signal_period: int = MACD_SIGNAL_PERIOD,
) -> MACDSeries:
    """MACD line, signal and histogram.

    The signal EMA runs over the defined line values only and is then
    left-padded with ``None`` back to the input length.
    """
    ema_fast = ema(data, fast_period)
    ema_slow = ema(data, slow_period)

    line: Series = [
        fast - slow if fast is not None and slow is not None else None
        for fast, slow in zip(ema_fast, ema_slow)
    ]

    compact = [v for v in line if v is not None]
    signal_compact = ema(compact, signal_period)
    signal: Series = [None] * (len(line) - len(signal_compact)) + signal_compact

    histogram: Series = [
        m - s if m is not None and s is not None else None
        for m, s in zip(line, signal)
    ]
    return MACDSeries(line=line, signal=signal, histogram=histogram)


def bollinger_bands(
    data: Sequence[float],
    period: int = DEFAULT_BB_PERIOD,
    std_dev: float = DEFAULT_BB_STD_DEV,
) -> BollingerBands:
    """SMA middle band with bands at ``std_dev`` population standard deviations."""
    middle = sma(data, period)
    upper: Series = []
    lower: Series = []

    for i in range(len(data)):
        mean = middle[i]
        if mean is None:
            upper.append(None)
            lower.append(None)
            continue

        window = data[i - period + 1:i + 1]
        variance = sum((v - mean) ** 2 for v in window) / period
        std = math.sqrt(variance)
        upper.append(mean + std_dev * std)
        lower.append(mean - std_dev * std)

    return BollingerBands(upper=upper, middle=middle, lower=lower)


def true_range(bars: Sequence[Bar]) -> List[float]:
    tr: List[float] = []
    for i, bar in enumerate(bars):
        if i == 0:
            tr.append(bar.high - bar.low)
        else:
            prev_close = bars[i - 1].close
            tr.append(
                max(
                    bar.high - bar.low,
                    abs(bar.high - prev_close),
                    abs(bar.low - prev_close),
                )
            )
    return tr


def atr(bars: Sequence[Bar], period: int = DEFAULT_ATR_PERIOD) -> Series:
    """Average true range: SMA of the true-range series."""
    return sma(true_range(bars), period)


def calculate_indicators(
    bars: Sequence[Bar],
    params: Optional[Dict[str, Any]] = None,
) -> IndicatorSet:
    """Compute the full indicator set for a run.

    ``rsiPeriod``, ``bbPeriod`` and ``bbStdDev`` in *params* override the
    RSI and Bollinger defaults.
    """
    params = params or {}
    closes = [bar.close for bar in bars]

    indicators = IndicatorSet(
        sma={period: sma(closes, period) for period in SMA_PERIODS},
        ema={period: ema(closes, period) for period in EMA_PERIODS},
        rsi=rsi(closes, int(param_or_default(params, "rsiPeriod", DEFAULT_RSI_PERIOD))),
        macd=macd(closes, MACD_FAST_PERIOD, MACD_SLOW_PERIOD, MACD_SIGNAL_PERIOD),
        bollinger=bollinger_bands(
            closes,
            int(param_or_default(params, "bbPeriod", DEFAULT_BB_PERIOD)),
            float(param_or_default(params, "bbStdDev", DEFAULT_BB_STD_DEV)),
        ),
        atr=atr(bars, DEFAULT_ATR_PERIOD),
    )
    logger.debug(f"Calculated indicators over {len(closes)} bars")
    return indicators
