"""
Core Backtesting Engine
"""

import itertools
import logging
import time
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from paperbull.config import settings
from paperbull.core.constants import DEFAULT_INITIAL_CAPITAL, MIN_DATA_POINTS
from paperbull.core.exceptions import InsufficientDataError
from paperbull.core.logging_config import log_context
from paperbull.services.backtesting.indicators import calculate_indicators
from paperbull.services.backtesting.monthly import MonthlyBucket, calculate_monthly_performance
from paperbull.services.backtesting.performance import PerformanceAnalyzer, PerformanceMetrics
from paperbull.services.backtesting.simulator import EquityCurvePoint, Trade, TradeSimulator
from paperbull.services.backtesting.strategies import generate_signals
from paperbull.services.backtesting.strategy import StrategyKind, resolve_strategy
from paperbull.services.market_data.base import AssetType, Bar
from paperbull.services.market_data.provider import MarketDataProvider

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


class HistoricalDataProvider(Protocol):
    async def fetch_historical_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        asset_type: Union[AssetType, str] = AssetType.STOCK,
    ) -> List[Bar]: ...


@dataclass
class BacktestConfig:
    """Trading cost model and data preconditions for a run."""
    commission_rate: float = field(default_factory=lambda: settings.backtest_commission_rate)
    slippage: float = field(default_factory=lambda: settings.backtest_slippage)
    min_data_points: int = MIN_DATA_POINTS


@dataclass
class BacktestOptions:
    """What to backtest."""
    symbol: str
    strategy: Union[StrategyKind, str]
    start_date: DateLike
    end_date: DateLike
    initial_capital: float = DEFAULT_INITIAL_CAPITAL
    parameters: Dict[str, Any] = field(default_factory=dict)
    asset_type: Union[AssetType, str] = AssetType.STOCK


@dataclass
class BacktestResult:
    """Complete backtest results."""
    strategy: StrategyKind
    initial_capital: float
    metrics: PerformanceMetrics
    trades: List[Trade]
    equity_curve: List[EquityCurvePoint]
    monthly_performance: List[MonthlyBucket]
    data_points: int
    symbol: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to the JSON output contract."""
        return {
            "results": self.metrics.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "equityCurve": [p.to_dict() for p in self.equity_curve],
            "monthlyPerformance": [m.to_dict() for m in self.monthly_performance],
            "dataPoints": self.data_points,
        }


@dataclass
class StrategyComparison:
    """Several strategies run on one bar sequence."""
    results: Dict[StrategyKind, BacktestResult]
    ranking: List[Tuple[StrategyKind, float]]

    @property
    def best_strategy(self) -> Optional[StrategyKind]:
        return self.ranking[0][0] if self.ranking else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": {
                kind.value: {
                    "strategy": kind.value,
                    **result.metrics.to_dict(),
                }
                for kind, result in self.results.items()
            },
            "ranking": [
                {"strategy": kind.value, "sharpeRatio": round(value, 2)}
                for kind, value in self.ranking
            ],
            "bestStrategy": self.best_strategy.value if self.best_strategy else None,
        }


class BacktestEngine:
    """
    Main backtesting engine.

    A run is: validate strategy -> fetch bars once -> indicators -> signals
    -> simulate -> metrics -> monthly breakdown. The compute phase is
    synchronous and shares no state between runs.

    Example usage:
        engine = BacktestEngine()
        result = await engine.run_backtest(
            BacktestOptions("AAPL", "ma-crossover", "2023-01-01", "2024-01-01")
        )
    """

    def __init__(
        self,
        provider: Optional[HistoricalDataProvider] = None,
        config: Optional[BacktestConfig] = None,
    ):
        self.provider = provider or MarketDataProvider()
        self.config = config or BacktestConfig()
        self.analyzer = PerformanceAnalyzer()

    async def run_backtest(self, options: BacktestOptions) -> BacktestResult:
        """
        Run a backtest for the given options.

        Raises:
            InvalidStrategyError: before any data is fetched
            InvalidSymbolError / DataUnavailableError: from the data provider
            InsufficientDataError: fewer than ``min_data_points`` bars
        """
        kind = resolve_strategy(options.strategy)
        bars = await self._fetch_bars(options)
        result = self.run_on_bars(
            bars,
            kind,
            initial_capital=options.initial_capital,
            parameters=options.parameters,
        )
        result.symbol = options.symbol
        return result

    def run_on_bars(
        self,
        bars: Sequence[Bar],
        strategy: Union[StrategyKind, str],
        initial_capital: float = DEFAULT_INITIAL_CAPITAL,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> BacktestResult:
        """Synchronous compute phase over already-fetched bars."""
        kind = resolve_strategy(strategy)
        self._check_enough_data(bars)
        parameters = dict(parameters or {})

        started = time.perf_counter()
        indicators = calculate_indicators(bars, parameters)
        signals = generate_signals(kind, bars, indicators, parameters)

        simulator = TradeSimulator(
            commission_rate=self.config.commission_rate,
            slippage=self.config.slippage,
        )
        simulation = simulator.run(bars, signals, initial_capital)

        metrics = self.analyzer.calculate_metrics(
            trades=simulation.trades,
            equity_curve=simulation.equity_curve,
            initial_capital=initial_capital,
            bars=bars,
            final_value=simulation.final_value,
        )
        monthly = calculate_monthly_performance(simulation.trades)

        logger.info(
            f"Backtest {kind.value}: {len(bars)} bars, {metrics.total_trades} round trips, "
            f"return {metrics.total_return_pct:+.2f}%",
            **log_context(
                strategy=kind.value,
                bars=len(bars),
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
            ),
        )

        return BacktestResult(
            strategy=kind,
            initial_capital=initial_capital,
            metrics=metrics,
            trades=simulation.trades,
            equity_curve=simulation.equity_curve,
            monthly_performance=monthly,
            data_points=len(bars),
        )

    async def compare_strategies(
        self,
        options: BacktestOptions,
        strategies: Optional[Sequence[Union[StrategyKind, str]]] = None,
    ) -> StrategyComparison:
        """
        Run several strategies on the same bars (fetched once).

        ``options.strategy`` is ignored; all strategies run when
        *strategies* is None. Ranked by Sharpe ratio, best first.
        """
        kinds = [resolve_strategy(s) for s in strategies] if strategies else list(StrategyKind)
        bars = await self._fetch_bars(options)

        results: Dict[StrategyKind, BacktestResult] = {}
        for kind in kinds:
            result = self.run_on_bars(
                bars,
                kind,
                initial_capital=options.initial_capital,
                parameters=options.parameters,
            )
            result.symbol = options.symbol
            results[kind] = result

        ranking = sorted(
            ((kind, r.metrics.sharpe_ratio) for kind, r in results.items()),
            key=lambda x: x[1],
            reverse=True,
        )
        return StrategyComparison(results=results, ranking=ranking)

    async def optimize_parameters(
        self,
        options: BacktestOptions,
        parameter_grid: Mapping[str, Sequence[Any]],
        metric: str = "sharpe_ratio",
        top_n: int = 10,
    ) -> List[Tuple[Dict[str, Any], PerformanceMetrics]]:
        """
        Grid-search strategy parameters on one bar sequence.

        Every combination of *parameter_grid* is merged over
        ``options.parameters``. Returns the ``top_n`` (params, metrics)
        pairs sorted by *metric* descending.
        """
        kind = resolve_strategy(options.strategy)
        if metric not in {f.name for f in fields(PerformanceMetrics)}:
            raise ValueError(f"Unknown metric: {metric}")
        bars = await self._fetch_bars(options)

        keys = list(parameter_grid.keys())
        scored: List[Tuple[Dict[str, Any], PerformanceMetrics]] = []
        for combo in itertools.product(*(parameter_grid[k] for k in keys)):
            params = {**options.parameters, **dict(zip(keys, combo))}
            result = self.run_on_bars(bars, kind, options.initial_capital, params)
            scored.append((params, result.metrics))

        scored.sort(key=lambda item: getattr(item[1], metric), reverse=True)
        logger.info(f"Optimized {kind.value} over {len(scored)} parameter sets")
        return scored[:top_n]

    async def _fetch_bars(self, options: BacktestOptions) -> List[Bar]:
        logger.info(
            f"Fetching {options.symbol} ({options.asset_type}) "
            f"{options.start_date} -> {options.end_date}"
        )
        bars = await self.provider.fetch_historical_data(
            options.symbol,
            options.start_date,
            options.end_date,
            options.asset_type,
        )
        self._check_enough_data(bars)
        return list(bars)

    def _check_enough_data(self, bars: Sequence[Bar]) -> None:
        if len(bars) < self.config.min_data_points:
            raise InsufficientDataError(
                f"Insufficient data for backtesting (need at least "
                f"{self.config.min_data_points} data points, got {len(bars)})"
            )
