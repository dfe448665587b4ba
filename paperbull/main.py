import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paperbull.api.routes import backtest
from paperbull.config import settings
from paperbull.core.database import init_db
from paperbull.core.exceptions import (
    BacktestNotFoundError,
    DataUnavailableError,
    InsufficientDataError,
    InvalidStrategyError,
    InvalidSymbolError,
    PaperBullError,
)
from paperbull.core.logging_config import configure_logging
from paperbull.core.redis import close_redis

configure_logging(
    json_output=settings.is_production,
    level="INFO" if settings.is_production else "DEBUG",
)
logger = logging.getLogger(__name__)

# Most specific first; anything else derived from PaperBullError is a 500.
ERROR_STATUS = (
    (BacktestNotFoundError, 404),
    (DataUnavailableError, 404),
    (InvalidStrategyError, 400),
    (InvalidSymbolError, 400),
    (InsufficientDataError, 400),
)


def status_for(exc: PaperBullError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager."""
    await init_db()
    yield
    await close_redis()


app = FastAPI(
    title=settings.app_name,
    description="Backtesting engine for the PaperBull paper-trading platform",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)


# ── Global exception handlers ──


@app.exception_handler(PaperBullError)
async def paperbull_error_handler(request: Request, exc: PaperBullError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("PaperBullError [%s]: %s", exc.code, exc.message, exc_info=True)
    else:
        logger.info("PaperBullError [%s] on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."},
    )


# ── CORS Middleware ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)

# ── Routers ──

app.include_router(backtest.router, prefix="/api/v1/backtest", tags=["Backtesting"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
