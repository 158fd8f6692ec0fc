"""mentortrust FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from mentortrust.api.auth import request_logging_middleware
from mentortrust.config import get_config
from mentortrust.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle handler."""
    config = get_config()
    setup_logging(config.log_level, config.log_file)

    if not config.demo_mode and not config.api_key:
        logger.critical("MENTORTRUST_API_KEY is not set. Set it in .env or export it. Use MENTORTRUST_DEMO_MODE=true to skip.")
        sys.exit(1)

    logger.info(
        "mentortrust API starting - store=%s, weights=%s",
        config.store_backend, config.weights_version,
    )
    yield

    from mentortrust.api.routes.verification import close_service

    await close_service()
    logger.info("mentortrust API shutdown - verifier clients closed")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    app = FastAPI(
        title="mentortrust API",
        description="Mentor verification and trust scoring",
        version="0.1.0",
        lifespan=lifespan,
    )

    config = get_config()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", config.user_header],
    )

    app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)

    from mentortrust.api.routes.health import router as health_router
    from mentortrust.api.routes.verification import router as verification_router

    app.include_router(verification_router)
    app.include_router(health_router)

    return app


app = create_app()
