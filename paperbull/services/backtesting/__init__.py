"""
Backtesting Engine for PaperBull

Replays a single-symbol daily history through one of the built-in signal
strategies and reports trades, an equity curve and performance metrics.
"""

from paperbull.services.backtesting.engine import (
    BacktestConfig,
    BacktestEngine,
    BacktestOptions,
    BacktestResult,
    StrategyComparison,
)
from paperbull.services.backtesting.indicators import IndicatorSet, calculate_indicators
from paperbull.services.backtesting.monthly import MonthlyBucket, calculate_monthly_performance
from paperbull.services.backtesting.performance import PerformanceAnalyzer, PerformanceMetrics
from paperbull.services.backtesting.simulator import (
    EquityCurvePoint,
    Position,
    SimulationResult,
    Trade,
    TradeSimulator,
)
from paperbull.services.backtesting.strategies import (
    STRATEGY_CATALOG,
    STRATEGY_HANDLERS,
    generate_signals,
)
from paperbull.services.backtesting.strategy import Signal, SignalType, StrategyKind, resolve_strategy

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestOptions",
    "BacktestResult",
    "StrategyComparison",
    "IndicatorSet",
    "calculate_indicators",
    "MonthlyBucket",
    "calculate_monthly_performance",
    "PerformanceAnalyzer",
    "PerformanceMetrics",
    "EquityCurvePoint",
    "Position",
    "SimulationResult",
    "Trade",
    "TradeSimulator",
    "STRATEGY_CATALOG",
    "STRATEGY_HANDLERS",
    "generate_signals",
    "Signal",
    "SignalType",
    "StrategyKind",
    "resolve_strategy",
]
