"""
Backtest Models
"""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Date, DateTime, Enum, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from paperbull.core.database import Base


class BacktestStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Backtest(Base):
    """A requested backtest run and, once finished, its results."""

    __tablename__ = "backtests"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100))

    # Request
    strategy: Mapped[str] = mapped_column(String(50))
    symbol: Mapped[str] = mapped_column(String(50), index=True)
    asset_type: Mapped[str] = mapped_column(String(10), default="stock")
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    initial_capital: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    parameters: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Lifecycle
    status: Mapped[BacktestStatus] = mapped_column(
        Enum(BacktestStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=BacktestStatus.PENDING,
        index=True,
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Results (JSON output contract)
    results: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    trades: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    equity_curve: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    monthly_performance: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    data_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("status", BacktestStatus.PENDING)
        kwargs.setdefault("asset_type", "stock")
        if kwargs.get("symbol"):
            kwargs["symbol"] = kwargs["symbol"].upper()
        if not kwargs.get("name"):
            kwargs["name"] = f"{kwargs.get('strategy')} - {kwargs.get('symbol')}"
        super().__init__(**kwargs)

    def mark_running(self) -> None:
        self.status = BacktestStatus.RUNNING
        self.error = None

    def complete(self, result: Dict[str, Any], processing_time_ms: Optional[int] = None) -> None:
        """Store a ``BacktestResult.to_dict()`` payload and finish the run."""
        self.status = BacktestStatus.COMPLETED
        self.results = result["results"]
        self.trades = result["trades"]
        self.equity_curve = result["equityCurve"]
        self.monthly_performance = result["monthlyPerformance"]
        self.data_points = result.get("dataPoints")
        self.completed_at = datetime.now(timezone.utc)
        self.processing_time_ms = processing_time_ms

    def fail(self, error: str) -> None:
        self.status = BacktestStatus.FAILED
        self.error = error
        self.completed_at = datetime.now(timezone.utc)

    def to_summary(self) -> Dict[str, Any]:
        """List view: request fields and headline metrics, no heavy arrays."""
        return {
            "id": self.id,
            "name": self.name,
            "strategy": self.strategy,
            "symbol": self.symbol,
            "assetType": self.asset_type,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "initialCapital": float(self.initial_capital) if self.initial_capital is not None else None,
            "status": self.status.value if self.status else None,
            "error": self.error,
            "totalReturnPercent": (self.results or {}).get("totalReturnPercent"),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.to_summary(),
            "parameters": self.parameters or {},
            "results": self.results,
            "trades": self.trades or [],
            "equityCurve": self.equity_curve or [],
            "monthlyPerformance": self.monthly_performance or [],
            "dataPoints": self.data_points,
            "processingTime": self.processing_time_ms,
        }

    def __repr__(self) -> str:
        return f"<Backtest {self.id}: {self.strategy} {self.symbol} ({self.status})>"
