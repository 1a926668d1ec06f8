"""FastAPI application factory for the relay HTTP API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException
from web3 import Web3

from inferno import __version__
from inferno.api.routes import admin, checkin, payments, quests, security, withdrawals
from inferno.cli.config import InfernoConfig
from inferno.db.session import create_db_engine, init_db
from inferno.sdk.ratelimit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


def _http_web3(rpc_url: str) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    paystack = getattr(app.state, "paystack_client", None)
    if paystack is not None:
        paystack.close()
        logger.info("Paystack client closed")


def create_app(
    config: InfernoConfig | None = None,
    engine: Engine | None = None,
    web3_factory: Callable[[str], Web3] | None = None,
) -> FastAPI:
    """Build the API with its configuration, database engine and RPC factory."""
    config = config or InfernoConfig()
    engine = engine or create_db_engine(config.database_url)
    init_db(engine)

    app = FastAPI(title="P2E Inferno Relay", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.engine = engine
    app.state.web3_factory = web3_factory or _http_web3
    app.state.csp_limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60)

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": jsonable_errors(exc)})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    app.include_router(quests.router)
    app.include_router(checkin.router)
    app.include_router(withdrawals.router)
    app.include_router(admin.router)
    app.include_router(payments.router)
    app.include_router(security.router)
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]
