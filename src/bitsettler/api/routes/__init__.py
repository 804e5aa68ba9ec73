"""API route registration."""

from fastapi import FastAPI

from bitsettler.api.routes import health, settlement


def register_routes(app: FastAPI) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(settlement.router())
