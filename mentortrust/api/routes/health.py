"""Health check endpoint."""

import logging

from fastapi import APIRouter

from mentortrust.api.models import HealthResponse
from mentortrust.api.routes.verification import _get_service
from mentortrust.config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health():
    """Check store reachability and report the active weight table."""
    status = "healthy"
    store_ok = False
    weights_version = ""

    try:
        info = _get_service().health()
        store_ok = bool(info["store_connected"])
        weights_version = info["weights_version"]
    except Exception:
        logger.warning("Store health check failed")

    if not store_ok:
        status = "degraded"

    return HealthResponse(
        status=status,
        store_connected=store_ok,
        github_token_configured=bool(get_config().github_token),
        weights_version=weights_version,
    )
