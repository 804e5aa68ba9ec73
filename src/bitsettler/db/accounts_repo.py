"""Account repository operations for the SQLite backend.

Accounts authenticate with an opaque bearer token. Only a SHA-256 digest of
the token is stored; the plaintext is returned once, at creation.
"""

from __future__ import annotations

import hashlib
import secrets
import sqlite3
from typing import Any

from bitsettler.db.connection import connection_scope, utc_timestamp
from bitsettler.db.errors import raise_read_error, raise_write_error

TOKEN_BYTES = 32


def hash_token(token: str) -> str:
    """Return the stored digest for a bearer token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_account(username: str) -> tuple[int, str] | None:
    """Create an account and return ``(account_id, token)``.

    Returns:
        ``None`` when the username is already taken.
    """
    token = secrets.token_urlsafe(TOKEN_BYTES)
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO accounts (username, token_hash, created_at)
                VALUES (?, ?, ?)
                """,
                (username, hash_token(token), utc_timestamp()),
            )
            account_id = cursor.lastrowid
            if account_id is None:
                raise ValueError("Failed to create account.")
        return int(account_id), token
    except sqlite3.IntegrityError:
        return None
    except Exception as exc:
        raise_write_error("accounts.create_account", exc, details=f"username={username!r}")


def rotate_token(username: str) -> str | None:
    """Issue a fresh token for an existing account, invalidating the old one."""
    token = secrets.token_urlsafe(TOKEN_BYTES)
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE accounts SET token_hash = ? WHERE username = ?",
                (hash_token(token), username),
            )
            if cursor.rowcount == 0:
                return None
        return token
    except Exception as exc:
        raise_write_error("accounts.rotate_token", exc, details=f"username={username!r}")


def get_account_by_token(token: str) -> dict[str, Any] | None:
    """Return the active account owning ``token`` and stamp ``last_seen_at``."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, username, created_at
                FROM accounts
                WHERE token_hash = ? AND is_active = 1
                """,
                (hash_token(token),),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            cursor.execute(
                "UPDATE accounts SET last_seen_at = ? WHERE id = ?",
                (utc_timestamp(), row["id"]),
            )
        return dict(row)
    except Exception as exc:
        raise_read_error("accounts.get_account_by_token", exc)


def deactivate_account(username: str) -> bool:
    """Disable an account so its token stops authenticating."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE accounts SET is_active = 0 WHERE username = ?", (username,))
            return cursor.rowcount > 0
    except Exception as exc:
        raise_write_error("accounts.deactivate_account", exc, details=f"username={username!r}")
