import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from .auth import SupabaseAuth
from .cache import NeoCache
from .config import settings
from .database import engine
from .errors import install_error_handlers
from .logging_utils import configure_logging, log_event
from .metrics import REQUEST_COUNT, REQUEST_LATENCY
from .routes import neos_router, watchlist_router
from .services import NasaClient
from . import models

logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    if settings.cache_enabled:
        cache = NeoCache.from_url(
            settings.redis_url,
            ttl_seconds=settings.cache_ttl_seconds,
            socket_timeout=settings.redis_socket_timeout,
        )
    else:
        cache = NeoCache.disabled()
    app.state.cache = cache
    app.state.nasa = NasaClient.from_settings(settings, cache)
    app.state.auth = SupabaseAuth.from_settings(settings)
    if app.state.auth is None:
        logger.warning("SUPABASE_URL/SUPABASE_ANON_KEY not set; user endpoints will reject requests")
    try:
        yield
    finally:
        await app.state.nasa.aclose()
        await cache.aclose()
        if app.state.auth is not None:
            await app.state.auth.aclose()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=settings.cors_origins, allow_methods=["*"], allow_headers=["*"])
install_error_handlers(app)
app.include_router(neos_router)
app.include_router(watchlist_router)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    method = request.method
    endpoint = request.url.path
    start_time = time.monotonic()
    response = await call_next(request)
    duration = time.monotonic() - start_time
    REQUEST_COUNT.labels(method=method, endpoint=endpoint, http_status=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)
    log_event(
        logger,
        "http.request",
        f"{method} {endpoint}",
        status=response.status_code,
        duration_ms=round(duration * 1000, 1),
    )
    return response


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "neo-monitoring-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
