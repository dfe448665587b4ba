"""
Backtest Service

Persistence around the backtesting engine: creates backtest records,
drives their pending -> running -> completed/failed lifecycle and
answers history queries.
"""

import logging
import time
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer

from paperbull.core.exceptions import BacktestNotFoundError, PaperBullError
from paperbull.core.logging_config import backtest_scope
from paperbull.models.backtest import Backtest, BacktestStatus
from paperbull.services.backtesting import BacktestEngine, BacktestOptions, resolve_strategy
from paperbull.services.market_data.base import AssetType, validate_symbol

logger = logging.getLogger(__name__)


def options_from_record(record: Backtest) -> BacktestOptions:
    return BacktestOptions(
        symbol=record.symbol,
        strategy=record.strategy,
        start_date=record.start_date,
        end_date=record.end_date,
        initial_capital=float(record.initial_capital),
        parameters=dict(record.parameters or {}),
        asset_type=record.asset_type,
    )


async def execute_record(record: Backtest, engine: BacktestEngine) -> Backtest:
    """Run the engine for *record* and store the outcome on it.

    Engine errors become a ``failed`` status with the error text; they are
    logged and not re-raised. The caller commits.
    """
    with backtest_scope(backtest_id=record.id, strategy=record.strategy, symbol=record.symbol):
        record.mark_running()
        started = time.perf_counter()
        try:
            result = await engine.run_backtest(options_from_record(record))
        except PaperBullError as e:
            logger.warning(f"Backtest {record.id} failed [{e.code}]: {e.message}")
            record.fail(e.message)
            return record
        except Exception as e:
            logger.error(f"Backtest {record.id} crashed", exc_info=True)
            record.fail(str(e) or e.__class__.__name__)
            return record

        record.complete(
            result.to_dict(),
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )
        logger.info(f"Backtest {record.id} completed in {record.processing_time_ms}ms")
        return record


class BacktestService:
    """Async data access for backtest records."""

    def __init__(self, db: AsyncSession, engine: Optional[BacktestEngine] = None):
        self.db = db
        self.engine = engine

    async def create(
        self,
        *,
        strategy: str,
        symbol: str,
        start_date: date,
        end_date: date,
        initial_capital: float,
        parameters: Optional[Dict[str, Any]] = None,
        asset_type: str = AssetType.STOCK.value,
        user_id: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Backtest:
        """Validate the request and persist it as ``pending``."""
        kind = resolve_strategy(strategy)
        record = Backtest(
            user_id=user_id,
            name=name,
            strategy=kind.value,
            symbol=validate_symbol(symbol),
            asset_type=AssetType(asset_type).value,
            start_date=start_date,
            end_date=end_date,
            initial_capital=initial_capital,
            parameters=parameters or {},
        )
        self.db.add(record)
        await self.db.flush()
        logger.info(f"Created backtest {record.id}: {record.name}")
        return record

    async def get(self, backtest_id: int, user_id: Optional[int] = None) -> Backtest:
        stmt = select(Backtest).where(Backtest.id == backtest_id)
        if user_id is not None:
            stmt = stmt.where(Backtest.user_id == user_id)
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise BacktestNotFoundError(f"Backtest {backtest_id} not found")
        return record

    async def list_for_user(
        self,
        user_id: Optional[int] = None,
        limit: int = 20,
    ) -> List[Backtest]:
        """Newest first, without the trade/equity arrays."""
        stmt = (
            select(Backtest)
            .options(
                defer(Backtest.trades),
                defer(Backtest.equity_curve),
                defer(Backtest.monthly_performance),
            )
            .order_by(Backtest.created_at.desc(), Backtest.id.desc())
            .limit(limit)
        )
        if user_id is not None:
            stmt = stmt.where(Backtest.user_id == user_id)
        return list((await self.db.execute(stmt)).scalars().all())

    async def delete(self, backtest_id: int, user_id: Optional[int] = None) -> None:
        record = await self.get(backtest_id, user_id)
        await self.db.execute(delete(Backtest).where(Backtest.id == record.id))
        logger.info(f"Deleted backtest {backtest_id}")

    async def execute(self, backtest_id: int) -> Backtest:
        """Run a stored backtest inline (the Celery task does the same with a sync session)."""
        record = await self.get(backtest_id)
        engine = self.engine or BacktestEngine()
        await execute_record(record, engine)
        await self.db.flush()
        return record

    async def best_strategies(self, user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Average return, Sharpe and win rate per strategy over completed runs."""
        stmt = select(Backtest.strategy, Backtest.results).where(
            Backtest.status == BacktestStatus.COMPLETED
        )
        if user_id is not None:
            stmt = stmt.where(Backtest.user_id == user_id)
        rows = (await self.db.execute(stmt)).all()
        if not rows:
            return []

        df = pd.DataFrame(
            [
                {
                    "strategy": strategy,
                    "return": (results or {}).get("totalReturnPercent", 0.0),
                    "sharpe": (results or {}).get("sharpeRatio", 0.0),
                    "win_rate": (results or {}).get("winRate", 0.0),
                }
                for strategy, results in rows
            ]
        )
        summary = (
            df.groupby("strategy")
            .agg(
                avgReturn=("return", "mean"),
                avgSharpe=("sharpe", "mean"),
                avgWinRate=("win_rate", "mean"),
                count=("return", "size"),
            )
            .sort_values("avgReturn", ascending=False)
            .reset_index()
        )
        return [
            {
                "strategy": row["strategy"],
                "avgReturn": round(float(row["avgReturn"]), 2),
                "avgSharpe": round(float(row["avgSharpe"]), 2),
                "avgWinRate": round(float(row["avgWinRate"]), 2),
                "count": int(row["count"]),
            }
            for row in summary.to_dict("records")
        ]
