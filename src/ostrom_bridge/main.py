"""
Main application entry point for the Ostrom spot-price bridge.
Initializes the FastAPI app, the meter store and the device session.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ostrom_bridge.api.routes import router as api_router
from ostrom_bridge.client import rate_limiter
from ostrom_bridge.config import settings
from ostrom_bridge.database import meter_store
from ostrom_bridge.exceptions import OstromBridgeError
from ostrom_bridge.logging_config import get_logger, setup_logging
from ostrom_bridge.services import bridge_service

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown procedures.
    """
    # Startup
    setup_logging()
    logger.info("Starting server", api_url=settings.api_url, auth_url=settings.auth_url)
    await meter_store.init()
    try:
        await bridge_service.start()
    except OstromBridgeError as e:
        # Passthrough routes stay available; session routes answer 404
        logger.error("Failed to activate device session", error=str(e))

    yield

    # Shutdown
    await bridge_service.stop()
    await rate_limiter.close()
    await meter_store.close()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title="Ostrom Price Bridge",
        description="Spot prices, smart-meter consumption and price triggers for one Ostrom contract",
        version="1.0.0",
        docs_url="/docs" if settings.api_debug else None,
        redoc_url="/redoc" if settings.api_debug else None,
        lifespan=lifespan,
    )

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "ostrom_bridge.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
