from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from api.routes_http import router as http_router
from ephemeris.cache import EphemerisCacheLayer, TtlPolicy, create_redis_client
from ephemeris.events import LoggingEventSink
from ephemeris.fallback import FallbackCatalog
from ephemeris.horizons_client import HorizonsClient, RateLimiter
from ephemeris.resolver import EphemerisResolver, RetryPolicy

logger = logging.getLogger("orrery")
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

# Loaded once, read-only for the life of the process
fallback_catalog = FallbackCatalog.load()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: wire the ephemeris pipeline. Shutdown: close connections."""
    events = LoggingEventSink()
    http = httpx.AsyncClient(timeout=settings.horizons_timeout_s)
    cache = EphemerisCacheLayer(
        create_redis_client(), ttl_policy=TtlPolicy.from_settings(), events=events,
    )
    client = HorizonsClient(
        http, RateLimiter(settings.horizons_min_interval_s), events=events,
    )
    app.state.cache = cache
    app.state.resolver = EphemerisResolver(
        client, cache, fallback_catalog, retry=RetryPolicy.from_settings(), events=events,
    )
    logger.info("Ephemeris pipeline ready — cache %s, fallback v%s",
                "enabled" if cache.enabled else "disabled", fallback_catalog.version)
    yield
    await http.aclose()
    await cache.close()
    logger.info("Shutting down Orrery")


app = FastAPI(
    title="Orrery — Solar System Ephemeris Service",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(http_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.reload)
