# main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config.logging_config import configure_logging
from config.settings import Settings, load_settings
from database import build_engine, build_session_factory, create_tables
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.auth_routes import router as auth_router
from routers.holdings_routes import router as holdings_router
from routers.market_routes import router as market_router
from services.price_sync_service import PriceSynchronizer
from services.quote_client import DEFAULT_HEADERS, YahooQuoteClient
from services.rate_service import RateProvider
from services.scheduler import PeriodicTask, keepalive_job, price_refresh_job

logger = logging.getLogger(__name__)


def _background_tasks(app: FastAPI, settings: Settings) -> List[PeriodicTask]:
    tasks: List[PeriodicTask] = []
    if settings.price_refresh_interval_sec > 0:
        tasks.append(
            PeriodicTask(
                "price_refresh",
                settings.price_refresh_interval_sec,
                price_refresh_job(app.state.session_factory, app.state.price_synchronizer),
            )
        )
    if settings.keepalive_url:
        tasks.append(
            PeriodicTask(
                "keepalive",
                settings.keepalive_interval_sec,
                keepalive_job(app.state.http_client, settings.keepalive_url),
                initial_delay=settings.keepalive_initial_delay_sec,
            )
        )
    return tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.quote_timeout_sec, connect=2.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        headers=DEFAULT_HEADERS,
    )
    quote_client = YahooQuoteClient(
        http_client,
        base_url=settings.quote_base_url,
        timeout=settings.quote_timeout_sec,
    )
    app.state.http_client = http_client
    app.state.price_synchronizer = PriceSynchronizer(
        quote_client, max_concurrency=settings.quote_max_concurrency
    )
    app.state.rate_provider = RateProvider(
        quote_client,
        fallbacks={"INR": settings.fallback_inr_rate, "SGD": settings.fallback_sgd_rate},
        ttl_seconds=settings.rates_cache_ttl_sec,
    )

    tasks = _background_tasks(app, settings)
    for task in tasks:
        task.start()

    try:
        yield
    finally:
        for task in tasks:
            await task.stop()
        await http_client.aclose()
        app.state.engine.dispose()
        logger.info("shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Holdings Tracker", lifespan=lifespan)
    app.state.settings = settings

    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    if settings.db_create_all:
        create_tables(engine)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(holdings_router, prefix="/api")
    app.include_router(market_router, prefix="/api")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


configure_logging()
app = create_app()
