"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import error_handler_middleware
from src.api.middleware.latency_logging import latency_logging_with_stats_middleware
from src.api.middleware.request_size import request_size_limit_middleware
from src.api.routes import admin, auth, health, orders, products, webhooks
from src.core.config import get_settings
from src.core.mural import create_mural_client
from src.core.runtime import set_payment_runtime
from src.services.lifecycle_worker import init_lifecycle_workers, shutdown_lifecycle_workers
from src.services.settlement_discovery_service import SettlementDiscoveryService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Resolves the settlement account once, freezes it into the payment
    runtime and starts the lifecycle workers. Unfinished orders from a
    previous run are queued again when recovery is enabled.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    # Startup
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    mural = create_mural_client(settings)

    runtime = await SettlementDiscoveryService(mural, settings).discover()
    set_payment_runtime(runtime)
    logger.info(
        "Payment runtime ready (account=%s, network=%s)",
        runtime.config.account_id or "none",
        runtime.config.network,
    )

    workers = await init_lifecycle_workers(runtime, settings.lifecycle_worker_count)
    if settings.lifecycle_recover_on_startup:
        await workers.recover()

    yield
    # Shutdown
    await shutdown_lifecycle_workers()
    logger.info("Lifecycle workers shutdown")
    if runtime.mural is not None:
        await runtime.mural.aclose()
        logger.info("Mural client closed")
    set_payment_runtime(None)
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Stablecoin Checkout API",
        description="Stablecoin checkout with automatic fiat payout",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware added last runs first. Error handler sits closest to the routes
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Latency logging sees the rendered error status
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_with_stats_middleware)

    # Size limit runs first and rejects oversized bodies early
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    # Create API v1 router for versioned endpoints
    api_v1_router = APIRouter(prefix="/api/v1")

    api_v1_router.include_router(auth.router)
    api_v1_router.include_router(products.router)
    api_v1_router.include_router(orders.router)
    api_v1_router.include_router(admin.router)

    # Webhook routes
    api_v1_router.include_router(webhooks.router)

    app.include_router(api_v1_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
