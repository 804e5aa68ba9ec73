"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check with configuration diagnostics).
"""

from fastapi import APIRouter

from bitsettler import __version__
from bitsettler.config import get_config_status

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint showing API identity and current version."""
    return {"message": "Bitsettler API", "version": __version__}


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    status = get_config_status()
    return {
        "status": "ok",
        "version": __version__,
        "game_data_enabled": status["game_data_enabled"],
    }
