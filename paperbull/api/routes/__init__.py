from paperbull.api.routes import backtest

__all__ = ["backtest"]
