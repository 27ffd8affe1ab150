import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from batch_fetcher import BatchAccountFetcher
from config import BlocksConfig, settings
from database import Base, engine
from domain_cache import DomainCache
from engagement import EngagementReconciler, EngagementStore
from errors import (
    EngagementRejected,
    LedgerError,
    NotFound,
    RateLimited,
    WriteInFlight,
    WriteRejected,
)
from instructions import TransactionSubmitter
from ledger_client import LedgerClient
from pinning import PinningClient
from routes import (
    communities_router,
    media_router,
    posts_router,
    profiles_router,
    session_router,
)
from telemetry import read_ledger_telemetry_summary

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)


def create_app(
    config: BlocksConfig = settings,
    ledger: Optional[LedgerClient] = None,
    submitter: Optional[TransactionSubmitter] = None,
    store: Optional[EngagementStore] = None,
    pinning: Optional[PinningClient] = None,
    fetcher: Optional[BatchAccountFetcher] = None,
) -> FastAPI:
    """Wire one ledger client, cache and reconciler into a FastAPI app.

    Without a submitter the API stays read-only for likes: toggles answer 502.
    """
    ledger = ledger or LedgerClient(config.rpc_url, timeout=config.rpc_timeout_sec)
    fetcher = fetcher or BatchAccountFetcher(
        ledger,
        batch_size=config.fetch_batch_size,
        base_delay=config.fetch_base_delay_sec,
        max_delay=config.fetch_max_delay_sec,
        max_retries=config.fetch_max_retries,
    )
    cache = DomainCache(ledger, fetcher, config.program_id, max_age=config.scan_max_age_sec)
    reconciler = EngagementReconciler(
        store or EngagementStore(), cache, submitter, config.program_id, config
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Blocks API on %s, program %s", config.network, config.program_id)
        yield
        await ledger.aclose()

    app = FastAPI(
        title="Blocks API",
        description="Read-through API over the Blocks social ledger program",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.ledger = ledger
    app.state.cache = cache
    app.state.reconciler = reconciler
    app.state.pinning = pinning or PinningClient(config)

    # CORS settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:8000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(session_router)
    app.include_router(profiles_router)
    app.include_router(posts_router)
    app.include_router(communities_router)
    app.include_router(media_router)

    @app.middleware("http")
    async def utf8_charset_middleware(request: Request, call_next):
        response = await call_next(request)
        ct = response.headers.get("content-type", "")
        if "application/json" in ct and "charset" not in ct:
            response.headers["content-type"] = ct + "; charset=utf-8"
        return response

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(WriteInFlight)
    async def in_flight_handler(request: Request, exc: WriteInFlight):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(EngagementRejected)
    async def rejected_handler(request: Request, exc: EngagementRejected):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(RateLimited)
    async def rate_limited_handler(request: Request, exc: RateLimited):
        headers = {"Retry-After": str(int(exc.retry_after))} if exc.retry_after else None
        return JSONResponse(status_code=429, content={"detail": "Ledger rate limit reached"}, headers=headers)

    @app.exception_handler(WriteRejected)
    async def write_rejected_handler(request: Request, exc: WriteRejected):
        return JSONResponse(
            status_code=502,
            content={"detail": f"Transaction rejected: {exc}", "signature": exc.signature},
        )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        logger.warning("ledger unavailable for %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": "Ledger unavailable"})

    @app.get("/")
    async def root():
        return {
            "message": "Blocks API - decentralized social network reader",
            "version": "1.0.0",
        }

    @app.get("/health")
    async def health_check():
        last = cache.last_scan
        return {
            "status": "healthy",
            "network": config.network,
            "program_id": config.program_id,
            "last_scan": last.counts() if last else None,
            "last_scan_partial": last.partial if last else None,
        }

    @app.get("/api/telemetry/summary")
    async def get_ledger_telemetry_summary(hours: int = 24, limit: int = 6):
        """Return telemetry counters and recent events for ledger reads and writes."""
        return read_ledger_telemetry_summary(hours=hours, limit=limit)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
