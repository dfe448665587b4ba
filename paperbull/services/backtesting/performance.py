"""
Performance Analysis Module for Backtesting
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from paperbull.core.constants import (
    CALENDAR_DAYS_PER_YEAR,
    PROFIT_FACTOR_CAP,
    RISK_FREE_RATE,
    TRADING_DAYS_PER_YEAR,
)
from paperbull.services.backtesting.simulator import EquityCurvePoint, Trade
from paperbull.services.market_data.base import Bar


def _r2(value: float) -> float:
    return round(float(value), 2)


@dataclass
class PerformanceMetrics:
    """Complete set of performance metrics (raw, unrounded)."""
    # Returns
    final_value: float = 0.0
    total_return: float = 0.0
    total_return_pct: float = 0.0
    annualized_return: float = 0.0  # percent
    benchmark_return: float = 0.0  # percent, buy-and-hold

    # Risk
    volatility: float = 0.0  # annualized percent
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0

    # Risk-adjusted
    sharpe_ratio: float = 0.0
    calmar_ratio: float = 0.0

    # Trading
    total_trades: int = 0
    profitable_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0
    avg_holding_days: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Presentation form: camelCase keys, money and ratios rounded to 2dp."""
        return {
            "finalValue": _r2(self.final_value),
            "totalReturn": _r2(self.total_return),
            "totalReturnPercent": _r2(self.total_return_pct),
            "annualizedReturn": _r2(self.annualized_return),
            "benchmarkReturn": _r2(self.benchmark_return),
            "sharpeRatio": _r2(self.sharpe_ratio),
            "maxDrawdown": _r2(self.max_drawdown),
            "maxDrawdownPercent": _r2(self.max_drawdown_pct),
            "winRate": _r2(self.win_rate),
            "totalTrades": self.total_trades,
            "profitableTrades": self.profitable_trades,
            "losingTrades": self.losing_trades,
            "averageWin": _r2(self.avg_win),
            "averageLoss": _r2(self.avg_loss),
            "largestWin": _r2(self.largest_win),
            "largestLoss": _r2(self.largest_loss),
            "profitFactor": _r2(self.profit_factor),
            "averageHoldingPeriod": _r2(self.avg_holding_days),
            "maxConsecutiveWins": self.max_consecutive_wins,
            "maxConsecutiveLosses": self.max_consecutive_losses,
            "volatility": _r2(self.volatility),
            "calmarRatio": _r2(self.calmar_ratio),
        }


class PerformanceAnalyzer:
    """Analyze simulated trading performance and calculate metrics."""

    TRADING_DAYS_PER_YEAR = TRADING_DAYS_PER_YEAR
    RISK_FREE_RATE = RISK_FREE_RATE

    def calculate_metrics(
        self,
        trades: Sequence[Trade],
        equity_curve: Sequence[EquityCurvePoint],
        initial_capital: float,
        bars: Sequence[Bar],
        final_value: Optional[float] = None,
    ) -> PerformanceMetrics:
        """
        Calculate return, risk and trade-quality metrics.

        Args:
            trades: Full buy/sell ledger from the simulator
            equity_curve: One mark-to-market point per bar
            initial_capital: Starting capital
            bars: Bars the run was simulated over (for the calendar span)
            final_value: Cash after the last fill; derived from the ledger
                when omitted (every run ends flat)

        Returns:
            PerformanceMetrics with all calculated values
        """
        metrics = PerformanceMetrics()

        if final_value is None:
            final_value = trades[-1].portfolio_value if trades else float(initial_capital)

        metrics.final_value = final_value
        metrics.total_return = final_value - initial_capital
        metrics.total_return_pct = (metrics.total_return / initial_capital) * 100

        # Annualized return over the calendar span of the bars
        days = (bars[-1].date - bars[0].date).days if bars else 0
        if days > 0:
            metrics.annualized_return = (
                (final_value / initial_capital) ** (CALENDAR_DAYS_PER_YEAR / days) - 1
            ) * 100

        if equity_curve:
            metrics.benchmark_return = (
                equity_curve[-1].benchmark / initial_capital - 1
            ) * 100

        metrics.max_drawdown, metrics.max_drawdown_pct = self._calculate_max_drawdown(
            equity_curve, initial_capital
        )
        metrics.volatility = self._calculate_volatility(equity_curve)

        # Sharpe Ratio
        if metrics.volatility > 0:
            excess_return = metrics.annualized_return / 100 - self.RISK_FREE_RATE
            metrics.sharpe_ratio = excess_return / (metrics.volatility / 100)

        # Calmar Ratio
        if metrics.max_drawdown_pct > 0:
            metrics.calmar_ratio = metrics.annualized_return / metrics.max_drawdown_pct

        self._calculate_trade_metrics(trades, metrics)

        return metrics

    def _calculate_max_drawdown(
        self,
        equity_curve: Sequence[EquityCurvePoint],
        initial_capital: float,
    ) -> Tuple[float, float]:
        """Largest peak-to-trough decline; the running peak starts at initial capital."""
        peak = float(initial_capital)
        max_dd = 0.0
        max_dd_pct = 0.0

        for point in equity_curve:
            if point.value > peak:
                peak = point.value
            drawdown = peak - point.value
            drawdown_pct = (drawdown / peak) * 100 if peak > 0 else 0.0
            if drawdown_pct > max_dd_pct:
                max_dd = drawdown
                max_dd_pct = drawdown_pct

        return max_dd, max_dd_pct

    def _calculate_volatility(self, equity_curve: Sequence[EquityCurvePoint]) -> float:
        """Annualized stdev (population) of day-over-day equity returns, in percent."""
        values = np.array([point.value for point in equity_curve], dtype=float)
        if len(values) < 2:
            return 0.0

        prev, cur = values[:-1], values[1:]
        valid = prev > 0
        if not valid.any():
            return 0.0
        returns = cur[valid] / prev[valid] - 1
        return float(np.std(returns) * np.sqrt(self.TRADING_DAYS_PER_YEAR) * 100)

    def _calculate_trade_metrics(
        self, trades: Sequence[Trade], metrics: PerformanceMetrics
    ) -> None:
        """Round-trip statistics; only sell records count as closed trades."""
        sells = [t for t in trades if t.is_sell]
        if not sells:
            return

        wins = [t for t in sells if t.profit > 0]
        losses = [t for t in sells if t.profit <= 0]

        metrics.total_trades = len(sells)
        metrics.profitable_trades = len(wins)
        metrics.losing_trades = len(losses)
        metrics.win_rate = (len(wins) / len(sells)) * 100

        if wins:
            metrics.avg_win = float(np.mean([t.profit_percent for t in wins]))
            metrics.largest_win = max(t.profit_percent for t in wins)
        if losses:
            metrics.avg_loss = float(np.mean([t.profit_percent for t in losses]))
            metrics.largest_loss = min(t.profit_percent for t in losses)

        # Profit Factor
        gross_profit = sum(t.profit for t in wins)
        gross_loss = abs(sum(t.profit for t in losses))
        if gross_loss > 0:
            metrics.profit_factor = gross_profit / gross_loss
        elif gross_profit > 0:
            metrics.profit_factor = PROFIT_FACTOR_CAP

        metrics.avg_holding_days = float(np.mean([t.holding_days for t in sells]))
        metrics.max_consecutive_wins, metrics.max_consecutive_losses = (
            self._calculate_consecutive_streaks(sells)
        )

    def _calculate_consecutive_streaks(
        self, sells: List[Trade]
    ) -> Tuple[int, int]:
        """Calculate maximum consecutive wins and losses."""
        max_wins = 0
        max_losses = 0
        current_wins = 0
        current_losses = 0

        for trade in sells:
            if trade.profit > 0:
                current_wins += 1
                current_losses = 0
                max_wins = max(max_wins, current_wins)
            else:
                current_losses += 1
                current_wins = 0
                max_losses = max(max_losses, current_losses)

        return max_wins, max_losses
