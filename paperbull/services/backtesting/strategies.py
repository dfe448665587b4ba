"""
Built-in Trading Strategies for Backtesting

Each strategy is a pure function ``(bars, indicators, params) -> signals``
producing exactly one Signal per bar. A signal at index ``i`` only looks at
bars and indicator values at indices ``<= i``.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from paperbull.services.backtesting.indicators import IndicatorSet, Series, sma
from paperbull.services.backtesting.strategy import (
    Signal,
    StrategyKind,
    param_or_default,
    resolve_strategy,
)
from paperbull.services.market_data.base import Bar

StrategyHandler = Callable[[Sequence[Bar], IndicatorSet, Mapping[str, Any]], List[Signal]]


def _crossover(
    fast: Series,
    slow: Series,
    i: int,
) -> Optional[int]:
    """+1 for an upward cross into bar ``i``, -1 for a downward cross, 0 for none.

    None when either series is undefined at ``i-1`` or ``i``.
    """
    if i < 1:
        return None
    prev_fast, prev_slow = fast[i - 1], slow[i - 1]
    cur_fast, cur_slow = fast[i], slow[i]
    if prev_fast is None or prev_slow is None or cur_fast is None or cur_slow is None:
        return None
    if prev_fast <= prev_slow and cur_fast > cur_slow:
        return 1
    if prev_fast >= prev_slow and cur_fast < cur_slow:
        return -1
    return 0


def ma_crossover_strategy(
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Mapping[str, Any],
) -> List[Signal]:
    """
    Moving average crossover

    Buy when the fast SMA crosses above the slow SMA, sell on the reverse.
    """
    fast_period = int(param_or_default(params, "fastPeriod", 10))
    slow_period = int(param_or_default(params, "slowPeriod", 30))
    closes = [bar.close for bar in bars]
    fast_ma = sma(closes, fast_period)
    slow_ma = sma(closes, slow_period)

    signals: List[Signal] = []
    for i in range(len(bars)):
        cross = _crossover(fast_ma, slow_ma, i)
        if cross is None:
            signals.append(Signal.hold("Waiting for MA"))
        elif cross > 0:
            signals.append(Signal.buy("Fast MA crossed above Slow MA"))
        elif cross < 0:
            signals.append(Signal.sell("Fast MA crossed below Slow MA"))
        else:
            signals.append(Signal.hold("No crossover"))
    return signals


def rsi_reversal_strategy(
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Mapping[str, Any],
) -> List[Signal]:
    """Buy below the oversold level, sell above the overbought level."""
    oversold = float(param_or_default(params, "oversold", 30))
    overbought = float(param_or_default(params, "overbought", 70))
    rsi = indicators.rsi

    signals: List[Signal] = []
    for i in range(len(bars)):
        value = rsi[i]
        if value is None:
            signals.append(Signal.hold("Waiting for RSI"))
        elif value < oversold:
            signals.append(Signal.buy(f"RSI oversold at {value:.1f}"))
        elif value > overbought:
            signals.append(Signal.sell(f"RSI overbought at {value:.1f}"))
        else:
            signals.append(Signal.hold(f"RSI neutral at {value:.1f}"))
    return signals


def macd_crossover_strategy(
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Mapping[str, Any],
) -> List[Signal]:
    """Buy when the MACD line crosses above its signal line, sell on the reverse."""
    line, signal_line = indicators.macd.line, indicators.macd.signal

    signals: List[Signal] = []
    for i in range(len(bars)):
        cross = _crossover(line, signal_line, i)
        if cross is None:
            signals.append(Signal.hold("Waiting for MACD"))
        elif cross > 0:
            signals.append(Signal.buy("MACD bullish crossover"))
        elif cross < 0:
            signals.append(Signal.sell("MACD bearish crossover"))
        else:
            signals.append(Signal.hold("No MACD crossover"))
    return signals


def bollinger_bands_strategy(
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Mapping[str, Any],
) -> List[Signal]:
    upper, lower = indicators.bollinger.upper, indicators.bollinger.lower

    signals: List[Signal] = []
    for i, bar in enumerate(bars):
        if upper[i] is None or lower[i] is None:
            signals.append(Signal.hold("Waiting for Bollinger Bands"))
        elif bar.close < lower[i]:
            signals.append(Signal.buy("Price below lower band"))
        elif bar.close > upper[i]:
            signals.append(Signal.sell("Price above upper band"))
        else:
            signals.append(Signal.hold("Price within bands"))
    return signals


def breakout_strategy(
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Mapping[str, Any],
) -> List[Signal]:
    """
    Breakout over the prior ``lookbackPeriod`` bars (current bar excluded).

    Buy when close > highest high * threshold, sell when
    close < lowest low / threshold.
    """
    lookback = int(param_or_default(params, "lookbackPeriod", 20))
    threshold = float(param_or_default(params, "breakoutThreshold", 1.02))

    signals: List[Signal] = []
    for i, bar in enumerate(bars):
        if i < lookback:
            signals.append(Signal.hold("Waiting for lookback period"))
            continue

        window = bars[i - lookback:i]
        recent_high = max(b.high for b in window)
        recent_low = min(b.low for b in window)

        if bar.close > recent_high * threshold:
            signals.append(Signal.buy(f"Breakout above {recent_high:.2f}"))
        elif bar.close < recent_low / threshold:
            signals.append(Signal.sell(f"Breakdown below {recent_low:.2f}"))
        else:
            signals.append(Signal.hold("No breakout"))
    return signals


def mean_reversion_strategy(
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Mapping[str, Any],
) -> List[Signal]:
    """
    Proportional deviation from the SMA.

    ``stdDevs`` scales a fixed 2% band (threshold = stdDevs * 0.02); it is
    not a z-score. Kept as-is so stored results stay comparable.
    """
    period = int(param_or_default(params, "period", 20))
    std_devs = float(param_or_default(params, "stdDevs", 2))
    mean = indicators.sma.get(period) or sma([bar.close for bar in bars], period)
    threshold = std_devs * 0.02

    signals: List[Signal] = []
    for i, bar in enumerate(bars):
        if mean[i] is None:
            signals.append(Signal.hold("Waiting for SMA"))
            continue

        deviation = (bar.close - mean[i]) / mean[i]
        if deviation < -threshold:
            signals.append(Signal.buy(f"Price {deviation * 100:.1f}% below mean"))
        elif deviation > threshold:
            signals.append(Signal.sell(f"Price {deviation * 100:.1f}% above mean"))
        else:
            signals.append(Signal.hold("Price near mean"))
    return signals


STRATEGY_HANDLERS: Dict[StrategyKind, StrategyHandler] = {
    StrategyKind.MA_CROSSOVER: ma_crossover_strategy,
    StrategyKind.RSI_REVERSAL: rsi_reversal_strategy,
    StrategyKind.MACD_CROSSOVER: macd_crossover_strategy,
    StrategyKind.BOLLINGER_BANDS: bollinger_bands_strategy,
    StrategyKind.BREAKOUT: breakout_strategy,
    StrategyKind.MEAN_REVERSION: mean_reversion_strategy,
}

_unhandled = set(StrategyKind) - set(STRATEGY_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Strategies without a handler: {sorted(k.value for k in _unhandled)}")


# Available strategies registry
STRATEGY_CATALOG: Dict[StrategyKind, Dict[str, Any]] = {
    StrategyKind.MA_CROSSOVER: {
        "name": "Moving Average Crossover",
        "description": "Buy when fast MA crosses above slow MA, sell when it crosses below",
        "default_params": {"fastPeriod": 10, "slowPeriod": 30},
    },
    StrategyKind.RSI_REVERSAL: {
        "name": "RSI Reversal",
        "description": "Buy when RSI is oversold, sell when overbought",
        "default_params": {"rsiPeriod": 14, "oversold": 30, "overbought": 70},
    },
    StrategyKind.MACD_CROSSOVER: {
        "name": "MACD Crossover",
        "description": "Buy on MACD bullish crossover, sell on bearish crossover",
        "default_params": {},
    },
    StrategyKind.BOLLINGER_BANDS: {
        "name": "Bollinger Bands",
        "description": "Buy below the lower band, sell above the upper band",
        "default_params": {"bbPeriod": 20, "bbStdDev": 2},
    },
    StrategyKind.BREAKOUT: {
        "name": "Breakout Strategy",
        "description": "Buy on breakout above resistance, sell below support",
        "default_params": {"lookbackPeriod": 20, "breakoutThreshold": 1.02},
    },
    StrategyKind.MEAN_REVERSION: {
        "name": "Mean Reversion",
        "description": "Buy when price is far below moving average, sell when above",
        "default_params": {"period": 20, "stdDevs": 2},
    },
}


def generate_signals(
    strategy: Any,
    bars: Sequence[Bar],
    indicators: IndicatorSet,
    params: Optional[Mapping[str, Any]] = None,
) -> List[Signal]:
    """Dispatch to the handler for *strategy*; raises InvalidStrategyError."""
    kind = resolve_strategy(strategy)
    return STRATEGY_HANDLERS[kind](bars, indicators, params or {})
