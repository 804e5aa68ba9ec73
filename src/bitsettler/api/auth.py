"""Bearer-token authentication for API routes."""

from typing import Any

from fastapi import Header, HTTPException

from bitsettler.db import accounts_repo

BEARER_PREFIX = "bearer "


def extract_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None


def require_account(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    """
    FastAPI dependency resolving the calling account.

    Raises:
        HTTPException: 401 when the header is missing or the token is unknown.
    """
    token = extract_token(authorization)
    account = accounts_repo.get_account_by_token(token) if token else None
    if account is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return account
