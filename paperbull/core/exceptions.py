"""Application-wide exception hierarchy."""


class PaperBullError(Exception):
    """Base exception for all PaperBull errors."""

    def __init__(self, message: str = "", code: str = ""):
        self.message = message
        self.code = code
        super().__init__(message)


class MarketDataError(PaperBullError):
    """A single market data source failed to return usable bars."""

    def __init__(self, message: str = "Market data error", code: str = "MARKET_DATA_ERROR"):
        super().__init__(message, code)


class DataUnavailableError(MarketDataError):
    """No market data source returned history for the symbol/range."""

    def __init__(self, message: str = "Historical data unavailable", code: str = "DATA_UNAVAILABLE"):
        super().__init__(message, code)


class InvalidSymbolError(PaperBullError):
    """Symbol is empty, too long or contains URL-dangerous characters."""

    def __init__(self, message: str = "Invalid symbol", code: str = "INVALID_SYMBOL"):
        super().__init__(message, code)


class InsufficientDataError(PaperBullError):
    """Not enough bars to run a meaningful backtest."""

    def __init__(
        self,
        message: str = "Insufficient data for backtesting (need at least 50 data points)",
        code: str = "INSUFFICIENT_DATA",
    ):
        super().__init__(message, code)


class InvalidStrategyError(PaperBullError):
    """Unrecognized strategy key."""

    def __init__(self, message: str = "Unknown strategy", code: str = "INVALID_STRATEGY"):
        super().__init__(message, code)


class BacktestNotFoundError(PaperBullError):
    """Persisted backtest record does not exist."""

    def __init__(self, message: str = "Backtest not found", code: str = "BACKTEST_NOT_FOUND"):
        super().__init__(message, code)
