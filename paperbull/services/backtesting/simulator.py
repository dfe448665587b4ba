"""
Trade Simulator

Walks the bar sequence applying one signal per bar to a single long-only
position. Two states: flat (no shares) and long (one open position).
No shorting, leverage or partial fills.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from paperbull.core.constants import END_OF_BACKTEST_REASON
from paperbull.services.backtesting.strategy import Signal, SignalType
from paperbull.services.market_data.base import Bar

logger = logging.getLogger(__name__)


@dataclass
class Position:
    """Open long position."""
    entry_date: date
    entry_price: float  # post-slippage
    shares: int
    reason: str


@dataclass
class Trade:
    """Realized ledger entry (one per fill)."""
    date: date
    type: SignalType  # BUY or SELL
    price: float
    shares: int
    value: float
    signal: str
    portfolio_value: float
    profit: Optional[float] = None
    profit_percent: Optional[float] = None
    entry_date: Optional[date] = None

    @property
    def is_sell(self) -> bool:
        return self.type == SignalType.SELL

    @property
    def holding_days(self) -> int:
        if self.entry_date is None:
            return 0
        return (self.date - self.entry_date).days

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "date": self.date.isoformat(),
            "type": self.type.value,
            "price": self.price,
            "shares": self.shares,
            "value": self.value,
            "signal": self.signal,
            "portfolioValue": self.portfolio_value,
        }
        if self.is_sell:
            data["profit"] = self.profit
            data["profitPercent"] = self.profit_percent
            data["entryDate"] = self.entry_date.isoformat() if self.entry_date else None
        return data


@dataclass
class EquityCurvePoint:
    date: date
    value: float
    benchmark: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "value": self.value,
            "benchmark": self.benchmark,
        }


@dataclass
class SimulationResult:
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityCurvePoint] = field(default_factory=list)
    final_value: float = 0.0


class TradeSimulator:
    """
    Single-position cash/shares ledger with commission and slippage.

    Example usage:
        simulator = TradeSimulator(commission_rate=0.001, slippage=0.0005)
        result = simulator.run(bars, signals, initial_capital=10_000)
    """

    def __init__(self, commission_rate: float = 0.001, slippage: float = 0.0005):
        self.commission_rate = commission_rate
        self.slippage = slippage

    def run(
        self,
        bars: Sequence[Bar],
        signals: Sequence[Signal],
        initial_capital: float,
    ) -> SimulationResult:
        if len(signals) != len(bars):
            raise ValueError(
                f"Expected one signal per bar ({len(bars)}), got {len(signals)}"
            )

        result = SimulationResult()
        if not bars:
            result.final_value = initial_capital
            return result

        cash = float(initial_capital)
        position: Optional[Position] = None
        first_close = bars[0].close

        for bar, signal in zip(bars, signals):
            shares = position.shares if position else 0
            result.equity_curve.append(
                EquityCurvePoint(
                    date=bar.date,
                    value=cash + shares * bar.close,
                    benchmark=(bar.close / first_close) * initial_capital,
                )
            )

            if signal.action == SignalType.BUY and position is None:
                position, cash = self._open(bar, signal.reason, cash, result.trades)
            elif signal.action == SignalType.SELL and position is not None:
                cash = self._close(bar, signal.reason, position, cash, result.trades)
                position = None

        if position is not None:
            cash = self._close(bars[-1], END_OF_BACKTEST_REASON, position, cash, result.trades)

        result.final_value = cash
        return result

    def _open(
        self,
        bar: Bar,
        reason: str,
        cash: float,
        trades: List[Trade],
    ):
        execution_price = bar.close * (1 + self.slippage)
        max_shares = math.floor(cash / execution_price)
        commission = max_shares * execution_price * self.commission_rate
        shares = math.floor((cash - commission) / execution_price)
        if shares <= 0:
            logger.debug(f"Skipping buy on {bar.date}: cash {cash:.2f} below one share")
            return None, cash

        # commission is sized on max_shares, not on the final share count
        value = shares * execution_price + commission
        cash -= value

        trades.append(
            Trade(
                date=bar.date,
                type=SignalType.BUY,
                price=execution_price,
                shares=shares,
                value=value,
                signal=reason,
                portfolio_value=cash + shares * bar.close,
            )
        )
        logger.debug(f"BUY {shares} @ {execution_price:.4f} on {bar.date} ({reason})")
        return Position(bar.date, execution_price, shares, reason), cash

    def _close(
        self,
        bar: Bar,
        reason: str,
        position: Position,
        cash: float,
        trades: List[Trade],
    ) -> float:
        execution_price = bar.close * (1 - self.slippage)
        gross = position.shares * execution_price
        commission = gross * self.commission_rate
        cash += gross - commission

        profit = (execution_price - position.entry_price) * position.shares - commission
        profit_percent = (execution_price / position.entry_price - 1) * 100

        trades.append(
            Trade(
                date=bar.date,
                type=SignalType.SELL,
                price=execution_price,
                shares=position.shares,
                value=gross - commission,
                signal=reason,
                portfolio_value=cash,
                profit=profit,
                profit_percent=profit_percent,
                entry_date=position.entry_date,
            )
        )
        logger.debug(
            f"SELL {position.shares} @ {execution_price:.4f} on {bar.date} "
            f"P&L: {profit:+.2f} ({profit_percent:+.2f}%) ({reason})"
        )
        return cash
