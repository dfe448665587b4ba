"""
Strategy Base Types
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from paperbull.core.exceptions import InvalidStrategyError


class SignalType(str, Enum):
    """Per-bar trading action."""
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class StrategyKind(str, Enum):
    """Built-in strategy keys accepted by the engine."""
    MA_CROSSOVER = "ma-crossover"
    RSI_REVERSAL = "rsi-reversal"
    MACD_CROSSOVER = "macd-crossover"
    BOLLINGER_BANDS = "bollinger-bands"
    BREAKOUT = "breakout"
    MEAN_REVERSION = "mean-reversion"


@dataclass(frozen=True)
class Signal:
    """One strategy decision for one bar."""
    action: SignalType
    reason: str

    @classmethod
    def buy(cls, reason: str) -> "Signal":
        return cls(SignalType.BUY, reason)

    @classmethod
    def sell(cls, reason: str) -> "Signal":
        return cls(SignalType.SELL, reason)

    @classmethod
    def hold(cls, reason: str) -> "Signal":
        return cls(SignalType.HOLD, reason)

    def to_dict(self) -> Dict[str, Any]:
        return {"signal": self.action.value, "reason": self.reason}


def resolve_strategy(key: Any) -> StrategyKind:
    """Map a user-supplied strategy key to a StrategyKind."""
    if isinstance(key, StrategyKind):
        return key
    try:
        return StrategyKind(key)
    except ValueError:
        available = ", ".join(kind.value for kind in StrategyKind)
        raise InvalidStrategyError(f"Unknown strategy: {key}. Available: {available}") from None


def param_or_default(params: Mapping[str, Any], key: str, default: Any) -> Any:
    """Strategy parameter lookup where a missing or falsy override means "use default"."""
    value = params.get(key) if params else None
    return value if value else default
