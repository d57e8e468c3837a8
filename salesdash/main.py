"""
Sales dashboard service entrypoint.

The lifespan is the composition root: it builds the gateway client, the
record fetcher and the cache coordinator, and tears them down in reverse.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from salesdash.config import settings
from salesdash.infrastructure.observability.logging import get_logger, log_request, setup_logging
from salesdash.routes import dashboard, health
from salesdash.services.cache.coordinator import CacheCoordinator
from salesdash.services.gateway.client import GatewayClient
from salesdash.services.gateway.fetchers import RecordFetcher

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


def build_cache_coordinator(gateway: GatewayClient | None) -> CacheCoordinator:
    tz = settings.timezone()
    fetcher = RecordFetcher(gateway, tz=tz) if gateway is not None else None
    return CacheCoordinator(fetcher, tz=tz, **settings.get_cache_config())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    gateway = None
    if settings.is_gateway_configured():
        logger.info("Initializing gateway client")
        gateway = GatewayClient(**settings.get_gateway_config())
    else:
        logger.warning("Gateway not configured, running in demo mode")

    app.state.cache = build_cache_coordinator(gateway)
    logger.info("All services initialized successfully", demo_mode=gateway is None)

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await app.state.cache.close()
    except Exception as e:
        logger.error("Error closing cache coordinator", error=str(e))
        shutdown_errors.append(f"Cache: {e}")

    if gateway is not None:
        try:
            logger.info("Closing gateway client")
            await gateway.close()
        except Exception as e:
            logger.error("Error closing gateway client", error=str(e))
            shutdown_errors.append(f"Gateway: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Sales Dashboard",
    description="Cached CRM data and KPIs for the sales dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(dashboard.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(request.method, request.url.path, response.status_code, round(process_time, 2))
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
