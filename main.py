"""
FastAPI Application Entry Point

Integrates:
  - Session HTTP API (/api/...)
  - Push channel (/ws)
  - Middleware for CORS, logging & error handling

Run: uvicorn main:app --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from config import Config
from infra import GatewayBootstrap, bootstrap_gateway
from transport.api import router as api_router
from transport.push import router as push_router

# Setup logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(bootstrap: Optional[GatewayBootstrap] = None) -> FastAPI:
    """
    Build the application around one session registry.

    Args:
        bootstrap: Prepared backends (tests pass their own); defaults to
            the process singleton built from the environment
    """
    bootstrap = bootstrap or bootstrap_gateway()
    registry = bootstrap.get_registry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan: startup and shutdown handlers.
        """
        # Startup
        logger.info("=" * 60)
        logger.info("WhatsApp session gateway starting up...")
        logger.info(f"Environment: {Config.ENVIRONMENT}")
        logger.info(f"Backends: {bootstrap!r}")
        logger.info(f"Credential root: {bootstrap.config.auth_folder}")
        logger.info("=" * 60)
        if not Config.validate():
            logger.warning("Configuration has problems, see warnings above")

        yield

        # Shutdown: close connections, keep credentials for the next boot
        logger.info("WhatsApp session gateway shutting down...")
        await registry.shutdown()

    app = FastAPI(
        title="WhatsApp Session Gateway",
        description="Multi-tenant WhatsApp session lifecycle over HTTP and WebSocket",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.environment = Config.ENVIRONMENT
    app.state.pairing_timeout_s = bootstrap.pairing_timeout_s

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # Middleware for logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests."""
        logger.debug(f"{request.method} {request.url.path}")
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"Request error: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"},
            )

    # Include routers
    app.include_router(api_router)
    app.include_router(push_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=Config.PORT,
    )
