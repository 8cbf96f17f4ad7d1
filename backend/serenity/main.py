"""
Serenity API
============
FastAPI application entry point. Mount routers here.

The lifespan owns the service graph: it opens the local cache, starts the
connectivity monitor, wires reconnects to the sync engine and restores any
persisted session. On shutdown it stops live updates and connectivity
monitoring, drains outstanding mirror writes and closes the cache.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from serenity.config import get_settings
from serenity.db.local import LocalCacheError
from serenity.db.supabase import get_supabase_client
from serenity.dependencies import AppServices, build_services, get_services
from serenity.models.sync import RecordKind
from serenity.routers import auth, chat, journal, mood, sync
from serenity.services.connectivity import InterfaceConnectivitySource

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services = build_services(
        settings,
        get_supabase_client(),
        InterfaceConnectivitySource(settings.connectivity_poll_interval_seconds),
    )
    await services.cache.open()
    await services.connectivity.open()

    engine = services.engine
    services.connectivity.add_reconnect_listener(engine.request_sweep)
    services.auth.on_sign_in(lambda _user: engine.follow(RecordKind.CONVERSATION))
    services.auth.on_sign_out(engine.unfollow_all)
    await services.auth.restore_session()

    app.state.services = services
    logger.info("Serenity started (%s)", settings.environment)
    try:
        yield
    finally:
        engine.unfollow_all()
        await services.connectivity.close()
        await engine.drain()
        await services.cache.close()
        logger.info("Serenity stopped")


app = FastAPI(
    title="Serenity API",
    description="Offline-first mental wellness companion — local API",
    version="0.1.0",
    docs_url="/api/docs" if settings.environment != "production" else None,
    redoc_url="/api/redoc" if settings.environment != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(journal.router)
app.include_router(mood.router)
app.include_router(chat.router)
app.include_router(sync.router)


@app.exception_handler(LocalCacheError)
async def local_cache_error_handler(request: Request, exc: LocalCacheError) -> JSONResponse:
    logger.error("Local cache error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "detail": {
                "message": "Your data could not be saved on this device. Please try again.",
                "code": "local_cache_error",
                "retryable": True,
            }
        },
    )


@app.get("/api/v1/health")
async def health_check(services: AppServices = Depends(get_services)) -> dict:
    pending = await services.engine.pending_counts()
    return {
        "status": "ok",
        "service": "serenity-api",
        "online": services.connectivity.is_online,
        "pending": {kind.value: counts.unsynced for kind, counts in pending.items()},
    }
