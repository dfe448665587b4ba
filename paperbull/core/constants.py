"""Application-wide constants.

Centralizes the numbers the backtesting engine and its collaborators
agree on.
"""

# ── Backtest preconditions ──
MIN_DATA_POINTS = 50
DEFAULT_INITIAL_CAPITAL = 10_000

# ── Performance analysis ──
TRADING_DAYS_PER_YEAR = 252
CALENDAR_DAYS_PER_YEAR = 365
RISK_FREE_RATE = 0.02  # 2% annual
PROFIT_FACTOR_CAP = 999  # stands in for "no losing trades"

# ── Indicator periods computed for every run ──
SMA_PERIODS = (10, 20, 50, 200)
EMA_PERIODS = (12, 26)
DEFAULT_RSI_PERIOD = 14
DEFAULT_BB_PERIOD = 20
DEFAULT_BB_STD_DEV = 2
DEFAULT_ATR_PERIOD = 14
MACD_FAST_PERIOD = 12
MACD_SLOW_PERIOD = 26
MACD_SIGNAL_PERIOD = 9

# ── Market data ──
MAX_SYMBOL_LENGTH = 50
END_OF_BACKTEST_REASON = "End of backtest"

MONTH_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
