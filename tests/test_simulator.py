"""Tests for the single-position trade simulator."""

import math

import pytest

from paperbull.services.backtesting.simulator import TradeSimulator
from paperbull.services.backtesting.strategy import Signal, SignalType


def _signals(n, buys=(), sells=()):
    out = []
    for i in range(n):
        if i in buys:
            out.append(Signal.buy("test buy"))
        elif i in sells:
            out.append(Signal.sell("test sell"))
        else:
            out.append(Signal.hold("test hold"))
    return out


@pytest.fixture
def simulator():
    return TradeSimulator(commission_rate=0.001, slippage=0.0005)


class TestFills:
    def test_buy_fill_arithmetic(self, simulator, bar_factory):
        bars = bar_factory([100.0] * 5)
        result = simulator.run(bars, _signals(5, buys={1}), 10_000)

        buy = result.trades[0]
        price = 100.0 * 1.0005
        max_shares = math.floor(10_000 / price)
        commission = max_shares * price * 0.001
        shares = math.floor((10_000 - commission) / price)

        assert buy.type == SignalType.BUY
        assert buy.price == pytest.approx(price)
        assert buy.shares == shares
        assert buy.value == pytest.approx(shares * price + commission)

    def test_sell_profit_identities(self, simulator, bar_factory):
        bars = bar_factory([100.0, 100.0, 110.0, 120.0, 120.0])
        result = simulator.run(bars, _signals(5, buys={1}, sells={3}), 10_000)

        buy, sell = result.trades
        gross = sell.shares * sell.price
        commission = gross * 0.001
        assert sell.price == pytest.approx(120.0 * 0.9995)
        assert sell.value == pytest.approx(gross - commission)
        assert sell.profit == pytest.approx((sell.price - buy.price) * sell.shares - commission)
        assert sell.profit_percent == pytest.approx((sell.price / buy.price - 1) * 100)
        assert sell.entry_date == buy.date
        assert sell.portfolio_value == pytest.approx(result.final_value)

    def test_buy_portfolio_value_marks_to_close(self, simulator, bar_factory):
        bars = bar_factory([100.0] * 3)
        result = simulator.run(bars, _signals(3, buys={0}), 10_000)
        buy = result.trades[0]
        cash = 10_000 - buy.value
        assert buy.portfolio_value == pytest.approx(cash + buy.shares * 100.0)


class TestStateMachine:
    def test_buy_while_long_and_sell_while_flat_are_ignored(self, simulator, bar_factory):
        bars = bar_factory([100.0] * 10)
        signals = _signals(10, buys={1, 2, 6}, sells={0, 4, 5})
        result = simulator.run(bars, signals, 10_000)
        types = [t.type for t in result.trades]
        assert types == [SignalType.BUY, SignalType.SELL, SignalType.BUY, SignalType.SELL]

    def test_alternation_and_cash_never_negative(self, simulator, zigzag_bars):
        n = len(zigzag_bars)
        signals = _signals(n, buys=set(range(0, n, 7)), sells=set(range(3, n, 5)))
        result = simulator.run(zigzag_bars, signals, 10_000)

        types = [t.type for t in result.trades]
        assert types[0] == SignalType.BUY
        for a, b in zip(types, types[1:]):
            assert a != b
        assert result.final_value >= 0

    def test_forced_close_at_end(self, simulator, bar_factory):
        bars = bar_factory([100.0, 101.0, 102.0, 103.0])
        result = simulator.run(bars, _signals(4, buys={1}), 10_000)
        last = result.trades[-1]
        assert last.type == SignalType.SELL
        assert last.signal == "End of backtest"
        assert last.date == bars[-1].date
        assert len(result.trades) == 2

    def test_no_trades_keeps_capital(self, simulator, bar_factory):
        bars = bar_factory([100.0] * 5)
        result = simulator.run(bars, _signals(5), 10_000)
        assert result.trades == []
        assert result.final_value == 10_000

    def test_unaffordable_buy_skipped(self, simulator, bar_factory):
        bars = bar_factory([500.0] * 3)
        result = simulator.run(bars, _signals(3, buys={0}), 100)
        assert result.trades == []
        assert result.final_value == 100

    def test_signal_count_mismatch(self, simulator, bar_factory):
        with pytest.raises(ValueError):
            simulator.run(bar_factory([100.0] * 3), _signals(2), 10_000)


class TestEquityCurve:
    def test_one_point_per_bar_recorded_before_fill(self, simulator, bar_factory):
        bars = bar_factory([100.0, 100.0, 120.0])
        result = simulator.run(bars, _signals(3, buys={1}), 10_000)
        curve = result.equity_curve

        assert len(curve) == 3
        # the buy bar still shows the pre-trade (all cash) value
        assert curve[1].value == pytest.approx(10_000)
        buy = result.trades[0]
        assert curve[2].value == pytest.approx(10_000 - buy.value + buy.shares * 120.0)

    def test_benchmark_is_buy_and_hold(self, simulator, bar_factory):
        bars = bar_factory([100.0, 150.0, 50.0])
        result = simulator.run(bars, _signals(3), 10_000)
        assert [p.benchmark for p in result.equity_curve] == pytest.approx([10_000, 15_000, 5_000])
