"""Treasury history repository operations."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from bitsettler.db.connection import connection_scope, utc_timestamp
from bitsettler.db.errors import raise_read_error, raise_write_error


def record_snapshot(
    settlement_id: str,
    balance: int,
    previous_balance: int | None,
    *,
    recorded_at: str | None = None,
) -> dict[str, Any]:
    """Append a balance snapshot and return it."""
    change = balance - previous_balance if previous_balance is not None else 0
    snapshot = {
        "settlement_id": settlement_id,
        "balance": balance,
        "previous_balance": previous_balance,
        "change": change,
        "recorded_at": recorded_at or utc_timestamp(),
    }
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO treasury_history (
                    settlement_id, balance, previous_balance, change, recorded_at
                )
                VALUES (:settlement_id, :balance, :previous_balance, :change, :recorded_at)
                """,
                snapshot,
            )
        return snapshot
    except Exception as exc:
        raise_write_error(
            "treasury.record_snapshot", exc, details=f"settlement_id={settlement_id!r}"
        )


def get_latest_snapshot(settlement_id: str) -> dict[str, Any] | None:
    try:
        with connection_scope() as conn:
            row = conn.execute(
                """
                SELECT settlement_id, balance, previous_balance, change, recorded_at
                FROM treasury_history
                WHERE settlement_id = ?
                ORDER BY recorded_at DESC, id DESC
                LIMIT 1
                """,
                (settlement_id,),
            ).fetchone()
        return dict(row) if row else None
    except Exception as exc:
        raise_read_error(
            "treasury.get_latest_snapshot", exc, details=f"settlement_id={settlement_id!r}"
        )


def list_history(settlement_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
    """Newest-first treasury history for one settlement."""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT settlement_id, balance, previous_balance, change, recorded_at
                FROM treasury_history
                WHERE settlement_id = ?
                ORDER BY recorded_at DESC, id DESC
                LIMIT ?
                """,
                (settlement_id, limit),
            ).fetchall()
        return [dict(row) for row in rows]
    except Exception as exc:
        raise_read_error("treasury.list_history", exc, details=f"settlement_id={settlement_id!r}")


def delete_older_than(days: int) -> int:
    """Delete snapshots older than ``days``. Returns the number removed."""
    cutoff = (datetime.now(UTC) - timedelta(days=days)).isoformat()
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute("DELETE FROM treasury_history WHERE recorded_at < ?", (cutoff,))
            return cursor.rowcount
    except Exception as exc:
        raise_write_error("treasury.delete_older_than", exc, details=f"days={days}")
