from paperbull.models.backtest import Backtest, BacktestStatus

__all__ = ["Backtest", "BacktestStatus"]
