"""ASGI app for the staking backend, plus the ``xrpflr-api`` launcher."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.dependencies import get_api_key, get_ledger_client, get_payout_client
from app.routes import positions, rewards, staking, stats
from app.routes.health import get_db_info, get_ledger_info
from app.schemas.common import ErrorResponse, HealthResponse
from config import Settings, get_settings
from db.connection import dispose_engine
from migrations.migrate import migrate
from xrpflr.services._types import DbInfoDict, LedgerInfoDict
from xrpflr.services.errors import LedgerError, PayoutError, StakingError
from xrpflr.services.ledger_client import LedgerClient
from xrpflr.services.updater import RewardUpdater

logger: logging.Logger = logging.getLogger(__name__)

DomainError = StakingError | LedgerError | PayoutError

ROUTERS = (positions.router, rewards.router, staking.router, stats.router)

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code: {"model": ErrorResponse} for code in (400, 404, 409, 502, 503)
}


def error_body(exc: DomainError) -> dict[str, object]:
    """JSON body for a domain error: message, class, category and any extra context."""
    extra: dict[str, object] = getattr(exc, "extra", {})
    return {
        "detail": getattr(exc, "message", None) or str(exc),
        "type": type(exc).__name__,
        "category": exc.category.value,
        **extra,
    }


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StakingError)
    @app.exception_handler(LedgerError)
    @app.exception_handler(PayoutError)
    async def _domain_error(request: Request, exc: DomainError) -> JSONResponse:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(status_code=exc.http_status, content=error_body(exc))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": str(exc), "type": type(exc).__name__})


async def _reward_loop(updater: RewardUpdater, interval: float) -> None:
    while True:
        try:
            await asyncio.to_thread(updater.run_once)
        except Exception:
            logger.exception("Reward update pass failed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = get_settings()
    logger.info("Bookkeeping store: %s", settings.database.describe())
    logger.info("Pool address: %s", settings.ledger.pool_address)
    logger.info("Payout wallet: %s", get_payout_client().admin_address or "not configured")

    migrate()

    updater_task: asyncio.Task[None] | None = None
    if settings.staking.reward_updater_enabled:
        updater_task = asyncio.create_task(
            _reward_loop(RewardUpdater(), settings.staking.reward_update_interval)
        )
    try:
        yield
    finally:
        if updater_task is not None:
            updater_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await updater_task
        dispose_engine()


def create_app() -> FastAPI:
    settings: Settings = get_settings()
    app: FastAPI = FastAPI(title="XRP-FLR Staking Backend", version="1.0.0", lifespan=_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/health/db", dependencies=[Depends(get_api_key)])
    def health_db() -> DbInfoDict:
        return get_db_info()

    @app.get("/health/ledger")
    def health_ledger(ledger: LedgerClient = Depends(get_ledger_client)) -> LedgerInfoDict:
        return get_ledger_info(ledger)

    for router in ROUTERS:
        app.include_router(router, responses=_ERROR_RESPONSES)
    return app


app: FastAPI = create_app()


def start() -> None:
    """Run the API under uvicorn using XRPFLR_HOST / PORT / XRPFLR_RELOAD."""
    settings: Settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.reload)
