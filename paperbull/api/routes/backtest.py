"""
Backtesting API Endpoints
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from paperbull.config import settings
from paperbull.core.database import get_db
from paperbull.core.redis import get_market_data_cache
from paperbull.services.backtest_service import BacktestService
from paperbull.services.backtesting import (
    STRATEGY_CATALOG,
    BacktestEngine,
    BacktestOptions,
    StrategyKind,
)
from paperbull.services.market_data import AssetType, MarketDataProvider

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response Models
class BacktestRequest(BaseModel):
    """Request model for running a backtest."""
    strategy: str = Field(..., description="Strategy key, e.g. ma-crossover")
    symbol: str = Field(..., min_length=1, max_length=50, description="Ticker or crypto symbol")
    start_date: date = Field(..., description="Start date (YYYY-MM-DD)")
    end_date: date = Field(..., description="End date (YYYY-MM-DD)")
    initial_capital: float = Field(
        default_factory=lambda: settings.backtest_initial_capital,
        gt=0,
        description="Initial capital in USD",
    )
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Strategy parameters")
    asset_type: AssetType = Field(default=AssetType.STOCK)

    def to_options(self) -> BacktestOptions:
        return BacktestOptions(
            symbol=self.symbol,
            strategy=self.strategy,
            start_date=self.start_date,
            end_date=self.end_date,
            initial_capital=self.initial_capital,
            parameters=self.parameters,
            asset_type=self.asset_type,
        )


class CompareRequest(BacktestRequest):
    """Same symbol and range, several strategies."""
    strategy: str = StrategyKind.MA_CROSSOVER.value
    strategies: Optional[List[str]] = Field(
        default=None, description="Strategies to compare (all when omitted)"
    )


class OptimizeRequest(BacktestRequest):
    """Grid search over strategy parameters."""
    parameter_ranges: Dict[str, List[Any]] = Field(..., min_length=1)
    metric: str = Field(default="sharpe_ratio")
    top_n: int = Field(default=10, ge=1, le=100)


class StrategyInfo(BaseModel):
    """Information about an available strategy."""
    id: str
    name: str
    description: str
    parameters: Dict[str, Any]


def _require_date_range(request: BacktestRequest) -> None:
    if request.start_date >= request.end_date:
        raise HTTPException(status_code=400, detail="Start date must be before end date")


async def get_backtest_engine() -> BacktestEngine:
    cache = await get_market_data_cache()
    return BacktestEngine(provider=MarketDataProvider(cache=cache))


@router.get("/strategies", response_model=List[StrategyInfo])
async def get_strategies() -> List[StrategyInfo]:
    """Get list of available backtesting strategies."""
    return [
        StrategyInfo(
            id=kind.value,
            name=info["name"],
            description=info["description"],
            parameters=info["default_params"],
        )
        for kind, info in STRATEGY_CATALOG.items()
    ]


@router.post("/run")
async def run_backtest(
    request: BacktestRequest,
    engine: BacktestEngine = Depends(get_backtest_engine),
) -> Dict[str, Any]:
    """Run a backtest synchronously and return the full result."""
    _require_date_range(request)
    result = await engine.run_backtest(request.to_options())
    return result.to_dict()


@router.post("/compare")
async def compare_strategies(
    request: CompareRequest,
    engine: BacktestEngine = Depends(get_backtest_engine),
) -> Dict[str, Any]:
    """Compare multiple strategies on the same data."""
    _require_date_range(request)
    comparison = await engine.compare_strategies(request.to_options(), request.strategies)
    return comparison.to_dict()


@router.post("/optimize")
async def optimize_strategy(
    request: OptimizeRequest,
    engine: BacktestEngine = Depends(get_backtest_engine),
) -> Dict[str, Any]:
    """Grid-search strategy parameters and return the best sets."""
    _require_date_range(request)
    try:
        ranked = await engine.optimize_parameters(
            request.to_options(),
            request.parameter_ranges,
            metric=request.metric,
            top_n=request.top_n,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "strategy": request.strategy,
        "metric": request.metric,
        "results": [
            {"parameters": params, "results": metrics.to_dict()}
            for params, metrics in ranked
        ],
    }


@router.post("/jobs", status_code=202)
async def create_backtest_job(
    request: BacktestRequest,
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Persist a pending backtest and queue it for a worker."""
    _require_date_range(request)
    from paperbull.services.tasks.backtest_tasks import run_backtest_job

    service = BacktestService(db)
    record = await service.create(
        strategy=request.strategy,
        symbol=request.symbol,
        start_date=request.start_date,
        end_date=request.end_date,
        initial_capital=request.initial_capital,
        parameters=request.parameters,
        asset_type=request.asset_type.value,
        user_id=user_id,
    )
    # The worker reads the row from its own session
    await db.commit()
    run_backtest_job.delay(record.id)
    logger.info(f"Queued backtest {record.id} ({record.strategy} {record.symbol})")

    return {
        "success": True,
        "backtest": record.to_summary(),
        "message": f"Backtest started. Check status with GET /jobs/{record.id}",
    }


@router.get("/jobs")
async def list_backtest_jobs(
    user_id: Optional[int] = None,
    limit: int = 20,
    db: AsyncSession = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Backtest history, newest first."""
    records = await BacktestService(db).list_for_user(user_id, limit=min(limit, 100))
    return [r.to_summary() for r in records]


@router.get("/jobs/best-strategies")
async def get_best_strategies(
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Average performance per strategy across completed backtests."""
    return await BacktestService(db).best_strategies(user_id)


@router.get("/jobs/{backtest_id}")
async def get_backtest_job(
    backtest_id: int,
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Backtest status and, when completed, results."""
    record = await BacktestService(db).get(backtest_id, user_id)
    return record.to_dict()


@router.delete("/jobs/{backtest_id}")
async def delete_backtest_job(
    backtest_id: int,
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    await BacktestService(db).delete(backtest_id, user_id)
    return {"success": True, "message": "Backtest deleted"}
