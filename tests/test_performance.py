"""Tests for PerformanceAnalyzer and the monthly breakdown."""

import math
from datetime import date, timedelta

import pytest

from paperbull.services.backtesting.monthly import calculate_monthly_performance
from paperbull.services.backtesting.performance import PerformanceAnalyzer
from paperbull.services.backtesting.simulator import EquityCurvePoint, Trade
from paperbull.services.backtesting.strategy import SignalType


def _sell(day, profit, profit_percent, entry=None, portfolio_value=10_000.0):
    return Trade(
        date=day,
        type=SignalType.SELL,
        price=100.0,
        shares=10,
        value=1_000.0,
        signal="test",
        portfolio_value=portfolio_value,
        profit=profit,
        profit_percent=profit_percent,
        entry_date=entry or day - timedelta(days=5),
    )


def _curve(values, start=date(2024, 1, 1)):
    return [
        EquityCurvePoint(date=start + timedelta(days=i), value=v, benchmark=v)
        for i, v in enumerate(values)
    ]


@pytest.fixture
def analyzer():
    return PerformanceAnalyzer()


class TestReturns:
    def test_total_and_annualized_return(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 366)
        trades = [_sell(bars[-1].date, 1_000.0, 10.0, portfolio_value=11_000.0)]
        metrics = analyzer.calculate_metrics(trades, _curve([10_000.0] * 366), 10_000, bars)

        assert metrics.final_value == pytest.approx(11_000)
        assert metrics.total_return == pytest.approx(1_000)
        assert metrics.total_return_pct == pytest.approx(10)
        # 365 calendar days between first and last bar
        assert metrics.annualized_return == pytest.approx(10)

    def test_no_trades(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 60)
        metrics = analyzer.calculate_metrics([], _curve([10_000.0] * 60), 10_000, bars)
        assert metrics.total_trades == 0
        assert metrics.win_rate == 0
        assert metrics.total_return == 0
        assert metrics.sharpe_ratio == 0


class TestDrawdown:
    def test_zero_for_non_decreasing_curve(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 5)
        curve = _curve([10_000, 10_100, 10_100, 10_500, 11_000])
        metrics = analyzer.calculate_metrics([], curve, 10_000, bars)
        assert metrics.max_drawdown == 0
        assert metrics.max_drawdown_pct == 0

    def test_peak_to_trough(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 5)
        curve = _curve([10_000, 12_000, 9_000, 11_000, 10_000])
        metrics = analyzer.calculate_metrics([], curve, 10_000, bars)
        assert metrics.max_drawdown == pytest.approx(3_000)
        assert metrics.max_drawdown_pct == pytest.approx(25)

    def test_peak_starts_at_initial_capital(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 3)
        metrics = analyzer.calculate_metrics([], _curve([9_000, 9_500, 9_800]), 10_000, bars)
        assert metrics.max_drawdown_pct == pytest.approx(10)


class TestRiskAdjusted:
    def _year_with_gain(self, bar_factory):
        bars = bar_factory([100.0] * 366)
        trades = [_sell(bars[-1].date, 1_000.0, 10.0, portfolio_value=11_000.0)]
        return bars, trades

    def test_volatility_sharpe_and_calmar(self, analyzer, bar_factory):
        bars, trades = self._year_with_gain(bar_factory)
        # daily returns +10% then -10%: population stdev 0.1
        curve = _curve([10_000, 11_000, 9_900])
        metrics = analyzer.calculate_metrics(trades, curve, 10_000, bars)

        assert metrics.annualized_return == pytest.approx(10)
        assert metrics.volatility == pytest.approx(0.1 * math.sqrt(252) * 100)
        assert metrics.sharpe_ratio == pytest.approx((0.10 - 0.02) / (0.1 * math.sqrt(252)))
        assert metrics.max_drawdown_pct == pytest.approx(10)
        assert metrics.calmar_ratio == pytest.approx(1.0)

    def test_calmar_zero_without_drawdown(self, analyzer, bar_factory):
        bars, trades = self._year_with_gain(bar_factory)
        # returns +10% then +5%: population stdev 0.025
        curve = _curve([10_000, 11_000, 11_550])
        metrics = analyzer.calculate_metrics(trades, curve, 10_000, bars)

        assert metrics.volatility == pytest.approx(0.025 * math.sqrt(252) * 100)
        assert metrics.sharpe_ratio == pytest.approx(0.08 / (0.025 * math.sqrt(252)))
        assert metrics.sharpe_ratio != 0
        assert metrics.max_drawdown_pct == 0
        assert metrics.calmar_ratio == 0

    def test_sharpe_zero_without_volatility(self, analyzer, bar_factory):
        bars, trades = self._year_with_gain(bar_factory)
        metrics = analyzer.calculate_metrics(trades, _curve([10_000.0] * 10), 10_000, bars)
        assert metrics.volatility == 0
        assert metrics.sharpe_ratio == 0


class TestTradeStatistics:
    def test_win_rate_and_averages(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 60)
        day = bars[-1].date
        trades = [
            _sell(day, 200.0, 4.0),
            _sell(day, -100.0, -2.0),
            _sell(day, 50.0, 1.0),
            _sell(day, 0.0, 0.0),
        ]
        metrics = analyzer.calculate_metrics(trades, _curve([10_000.0] * 60), 10_000, bars)

        assert metrics.total_trades == 4
        assert metrics.profitable_trades == 2
        # break-even counts as a loss
        assert metrics.losing_trades == 2
        assert metrics.win_rate == pytest.approx(50)
        assert 0 <= metrics.win_rate <= 100
        assert metrics.avg_win == pytest.approx(2.5)
        assert metrics.avg_loss == pytest.approx(-1.0)
        assert metrics.largest_win == pytest.approx(4.0)
        assert metrics.largest_loss == pytest.approx(-2.0)
        assert metrics.profit_factor == pytest.approx(2.5)
        assert metrics.avg_holding_days == pytest.approx(5)

    def test_profit_factor_capped_without_losses(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 60)
        trades = [_sell(bars[-1].date, 100.0, 1.0)]
        metrics = analyzer.calculate_metrics(trades, _curve([10_000.0] * 60), 10_000, bars)
        assert metrics.profit_factor == 999

    def test_buys_are_not_round_trips(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 60)
        buy = Trade(
            date=bars[0].date,
            type=SignalType.BUY,
            price=100.0,
            shares=10,
            value=1_000.0,
            signal="test",
            portfolio_value=10_000.0,
        )
        metrics = analyzer.calculate_metrics([buy], _curve([10_000.0] * 60), 10_000, bars)
        assert metrics.total_trades == 0

    def test_consecutive_streaks(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 60)
        day = bars[-1].date
        profits = [10, 10, 10, -5, -5, 10]
        trades = [_sell(day, p, p / 10) for p in profits]
        metrics = analyzer.calculate_metrics(trades, _curve([10_000.0] * 60), 10_000, bars)
        assert metrics.max_consecutive_wins == 3
        assert metrics.max_consecutive_losses == 2

    def test_to_dict_is_rounded_camel_case(self, analyzer, bar_factory):
        bars = bar_factory([100.0] * 60)
        trades = [_sell(bars[-1].date, 123.456, 1.23456, portfolio_value=10_123.456)]
        data = analyzer.calculate_metrics(trades, _curve([10_000.0] * 60), 10_000, bars).to_dict()
        assert data["totalReturn"] == 123.46
        assert data["totalReturnPercent"] == 1.23
        assert data["totalTrades"] == 1
        assert "profitFactor" in data and "maxDrawdownPercent" in data


class TestMonthlyPerformance:
    def test_groups_sells_by_month(self):
        trades = [
            _sell(date(2024, 1, 10), 10.0, 2.0),
            _sell(date(2024, 1, 20), -5.0, -1.0),
            _sell(date(2024, 3, 5), 10.0, 3.0),
        ]
        buckets = calculate_monthly_performance(trades)

        assert [(b.year, b.month) for b in buckets] == [(2024, 1), (2024, 3)]
        jan = buckets[0].to_dict()
        assert jan == {"month": "Jan", "year": 2024, "return": 1.0, "trades": 2, "winRate": 50}
        assert buckets[1].win_rate == 100

    def test_empty(self):
        assert calculate_monthly_performance([]) == []
