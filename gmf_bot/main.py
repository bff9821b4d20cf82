import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from gmf_bot.api.exports import router as exports_router
from gmf_bot.api.groups import router as groups_router
from gmf_bot.api.webhook import router as webhook_router
from gmf_bot.bot import BotServices
from gmf_bot.config import Settings, get_settings
from gmf_bot.logging_config import bot_logger, setup_logging
from gmf_bot.services.analyzer import MessageAnalyzer
from gmf_bot.services.dedup import MessageDeduplicator
from gmf_bot.services.export import CsvExporter
from gmf_bot.services.storage import GroupStore
from gmf_bot.services.token_cache import AccessTokenCache
from gmf_bot.services.zalo import ZaloClient
from gmf_bot.supabase_client import get_supabase_admin

SERVICE_NAME = "Zalo OA Bot Webhook Server"
VERSION = "0.1.0"


def build_services(settings: Settings, http_client: httpx.AsyncClient) -> BotServices:
    """Wire the process-wide services from settings."""
    token_cache = AccessTokenCache(
        http_client,
        settings.zalo_oauth_url,
        safety_margin=settings.token_safety_margin_seconds,
    )
    token_cache.initialize(settings.zalo_access_token)

    return BotServices(
        settings=settings,
        token_cache=token_cache,
        deduplicator=MessageDeduplicator(max_age=settings.dedup_max_age_seconds),
        zalo=ZaloClient(
            http_client,
            token_cache,
            settings.zalo_api_base_url,
            refresh_token=settings.zalo_refresh_token,
            fallback_token=settings.zalo_access_token,
        ),
        analyzer=MessageAnalyzer(settings),
        store=GroupStore(get_supabase_admin(settings)),
        exporter=CsvExporter(
            Path(settings.exports_dir),
            settings.public_base_url,
            keep_count=settings.exports_keep_count,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services on startup; stop the sweeper and close HTTP on shutdown."""
    services: Optional[BotServices] = getattr(app.state, "services", None)
    http_client: Optional[httpx.AsyncClient] = None

    if services is None:
        settings = get_settings()
        logger = setup_logging(settings.log_level)
        logger.info("[STARTUP] Initializing services...")
        http_client = httpx.AsyncClient(timeout=settings.zalo_request_timeout)
        services = build_services(settings, http_client)
        app.state.services = services
    else:
        logger = setup_logging(services.settings.log_level)

    sweeper = services.deduplicator.start_sweeper(services.settings.dedup_sweep_interval_seconds)
    logger.info(f"[STARTUP] {SERVICE_NAME} ready, webhook URL: {services.settings.public_base_url}/webhook")

    try:
        yield
    finally:
        logger.info("[SHUTDOWN] Stopping services...")
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        if http_client is not None:
            await http_client.aclose()
        logger.info("[SHUTDOWN] Stopped")


def create_app(services: Optional[BotServices] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Tests pass a ready BotServices; otherwise the lifespan builds one
    from settings.
    """
    app = FastAPI(
        title="Zalo OA Bot API",
        description="Zalo GMF group bot: /p saves analyzed messages, /t answers questions",
        version=VERSION,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        bot_logger.debug(f"{request.method} {request.url.path}")
        return await call_next(request)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "status": "running",
            "endpoints": {
                "webhook": "GET/POST /webhook",
                "health": "GET /health",
                "info": "GET /api/info",
                "docs": "GET /docs",
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(webhook_router)
    app.include_router(groups_router)
    app.include_router(exports_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
