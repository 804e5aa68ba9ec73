"""
FastAPI backend server for the settlement flows.

Sets up:
- CORS middleware from ``config.security``
- Exception handlers producing the ``{"success": false, "error", "code"}``
  envelope for every failure
- All API route endpoints

Run with ``bitsettler run`` or ``python -m bitsettler.api.server``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bitsettler import __version__
from bitsettler.api.routes import register_routes
from bitsettler.config import config, configure_logging
from bitsettler.db.errors import DatabaseOperationError

logger = logging.getLogger(__name__)


# ============================================================================
# ERROR ENVELOPE
# ============================================================================


def error_response(status_code: int, error: str, code: str | None = None) -> JSONResponse:
    body: dict[str, object] = {"success": False, "error": error}
    if code:
        body["code"] = code
    return JSONResponse(status_code=status_code, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Convert ``HTTPException(detail=str | {"error", "code"})`` to the envelope."""
    detail = exc.detail
    if isinstance(detail, dict):
        return error_response(exc.status_code, str(detail.get("error", "")), detail.get("code"))
    return error_response(exc.status_code, str(detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request data")
    return error_response(400, f"Invalid request data: {field} {message}".strip())


async def database_exception_handler(request: Request, exc: DatabaseOperationError) -> JSONResponse:
    logger.error(
        "Database failure in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    return error_response(500, "Database error")


# ============================================================================
# APPLICATION FACTORY
# ============================================================================


def create_app() -> FastAPI:
    """Build the FastAPI application from the current configuration."""
    docs_enabled = config.docs_should_be_enabled
    app = FastAPI(
        title="Bitsettler API",
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_origins,
        allow_credentials=config.security.cors_allow_credentials,
        allow_methods=config.security.cors_allow_methods,
        allow_headers=config.security.cors_allow_headers,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DatabaseOperationError, database_exception_handler)

    register_routes(app)
    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Run the API under uvicorn using configured defaults."""
    import uvicorn

    configure_logging()
    host = host or config.server.host
    port = port or config.server.port
    logger.info("Starting Bitsettler API on %s:%s", host, port)
    uvicorn.run(create_app(), host=host, port=port, log_level=config.logging.level.lower())


if __name__ == "__main__":
    start_server()
