"""Smoke tests for the backtest HTTP routes."""

from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from paperbull.api.routes.backtest import get_backtest_engine
from paperbull.core.database import Base, get_db
from paperbull.core.exceptions import DataUnavailableError
from paperbull.main import app
from paperbull.services.backtesting import BacktestConfig, BacktestEngine

RUN_BODY = {
    "strategy": "ma-crossover",
    "symbol": "aapl",
    "start_date": "2024-01-01",
    "end_date": "2024-12-31",
    "initial_capital": 10000,
}


@pytest_asyncio.fixture
async def client(tmp_path, stub_provider):
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_db():
        async with session_maker() as session:
            yield session
            await session.commit()

    backtest_engine = BacktestEngine(provider=stub_provider, config=BacktestConfig())
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_backtest_engine] = lambda: backtest_engine

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await db_engine.dispose()


class TestMeta:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_strategies(self, client):
        response = await client.get("/api/v1/backtest/strategies")
        assert response.status_code == 200
        ids = {item["id"] for item in response.json()}
        assert ids == {
            "ma-crossover",
            "rsi-reversal",
            "macd-crossover",
            "bollinger-bands",
            "breakout",
            "mean-reversion",
        }


class TestRun:
    @pytest.mark.asyncio
    async def test_run(self, client, stub_provider, ramp_bars):
        stub_provider.bars = ramp_bars
        response = await client.post("/api/v1/backtest/run", json=RUN_BODY)
        assert response.status_code == 200
        body = response.json()
        assert body["results"]["totalTrades"] == 1
        assert body["dataPoints"] == len(ramp_bars)

    @pytest.mark.asyncio
    async def test_unknown_strategy_is_400(self, client, stub_provider):
        response = await client.post(
            "/api/v1/backtest/run", json={**RUN_BODY, "strategy": "made-up-strategy"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STRATEGY"
        stub_provider.fetch_historical_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_reversed_dates_is_400(self, client):
        response = await client.post(
            "/api/v1/backtest/run", json={**RUN_BODY, "start_date": "2025-01-01"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_insufficient_data_is_400(self, client, stub_provider, bar_factory):
        stub_provider.bars = bar_factory([100.0] * 20)
        response = await client.post("/api/v1/backtest/run", json=RUN_BODY)
        assert response.status_code == 400
        assert response.json()["error"] == "INSUFFICIENT_DATA"

    @pytest.mark.asyncio
    async def test_unavailable_data_is_404(self, client, stub_provider):
        stub_provider.fetch_historical_data.side_effect = DataUnavailableError("no source")
        response = await client.post("/api/v1/backtest/run", json=RUN_BODY)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_compare(self, client, stub_provider, zigzag_bars):
        stub_provider.bars = zigzag_bars
        response = await client.post(
            "/api/v1/backtest/compare",
            json={**RUN_BODY, "strategies": ["breakout", "rsi-reversal"]},
        )
        assert response.status_code == 200
        assert set(response.json()["results"]) == {"breakout", "rsi-reversal"}


class TestJobs:
    @pytest.mark.asyncio
    async def test_create_get_list_delete(self, client):
        with patch("paperbull.services.tasks.backtest_tasks.run_backtest_job.delay") as delay:
            response = await client.post("/api/v1/backtest/jobs", json=RUN_BODY)

        assert response.status_code == 202
        backtest = response.json()["backtest"]
        assert backtest["status"] == "pending"
        assert backtest["symbol"] == "AAPL"
        delay.assert_called_once_with(backtest["id"])

        detail = await client.get(f"/api/v1/backtest/jobs/{backtest['id']}")
        assert detail.status_code == 200
        assert detail.json()["parameters"] == {}

        listing = await client.get("/api/v1/backtest/jobs")
        assert [item["id"] for item in listing.json()] == [backtest["id"]]

        deleted = await client.delete(f"/api/v1/backtest/jobs/{backtest['id']}")
        assert deleted.status_code == 200

        missing = await client.get(f"/api/v1/backtest/jobs/{backtest['id']}")
        assert missing.status_code == 404
        assert missing.json()["error"] == "BACKTEST_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_best_strategies_empty(self, client):
        response = await client.get("/api/v1/backtest/jobs/best-strategies")
        assert response.status_code == 200
        assert response.json() == []


class TestOptimize:
    @pytest.mark.asyncio
    async def test_grid_search(self, client, stub_provider, zigzag_bars):
        stub_provider.bars = zigzag_bars
        response = await client.post(
            "/api/v1/backtest/optimize",
            json={
                **RUN_BODY,
                "parameter_ranges": {"fastPeriod": [3, 5], "slowPeriod": [15, 20]},
                "top_n": 3,
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["metric"] == "sharpe_ratio"
        assert len(body["results"]) == 3

    @pytest.mark.asyncio
    async def test_unknown_metric_is_400(self, client):
        response = await client.post(
            "/api/v1/backtest/optimize",
            json={**RUN_BODY, "parameter_ranges": {"fastPeriod": [3]}, "metric": "luck"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_method_name_metric_is_400(self, client, stub_provider, zigzag_bars):
        stub_provider.bars = zigzag_bars
        response = await client.post(
            "/api/v1/backtest/optimize",
            json={**RUN_BODY, "parameter_ranges": {"fastPeriod": [3, 5]}, "metric": "to_dict"},
        )
        assert response.status_code == 400
