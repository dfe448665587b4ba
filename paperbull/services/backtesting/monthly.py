"""
Monthly performance breakdown of realized (sell) trades.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import pandas as pd

from paperbull.core.constants import MONTH_NAMES
from paperbull.services.backtesting.simulator import Trade


@dataclass
class MonthlyBucket:
    year: int
    month: int  # 1-12
    trades: int
    total_return: float  # sum of profitPercent
    win_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": MONTH_NAMES[self.month - 1],
            "year": self.year,
            "return": round(self.total_return, 2),
            "trades": self.trades,
            "winRate": round(self.win_rate),
        }


def calculate_monthly_performance(trades: Sequence[Trade]) -> List[MonthlyBucket]:
    """Group sell trades by calendar month, oldest month first."""
    sells = [t for t in trades if t.is_sell]
    if not sells:
        return []

    df = pd.DataFrame(
        {
            "year": [t.date.year for t in sells],
            "month": [t.date.month for t in sells],
            "profit_percent": [t.profit_percent for t in sells],
        }
    )
    df["win"] = df["profit_percent"] > 0

    grouped = (
        df.groupby(["year", "month"], sort=True)
        .agg(
            trades=("profit_percent", "size"),
            total_return=("profit_percent", "sum"),
            wins=("win", "sum"),
        )
        .reset_index()
    )

    return [
        MonthlyBucket(
            year=int(row.year),
            month=int(row.month),
            trades=int(row.trades),
            total_return=float(row.total_return),
            win_rate=float(row.wins) / int(row.trades) * 100,
        )
        for row in grouped.itertuples(index=False)
    ]
