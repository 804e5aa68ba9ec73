"""Settlement, invite-code and sync-log repository operations."""

from __future__ import annotations

import sqlite3
from typing import Any

from bitsettler.db.connection import connection_scope, utc_timestamp
from bitsettler.db.errors import raise_read_error, raise_write_error

SETTLEMENT_COLUMNS = (
    "id, name, tier, treasury, supplies, tiles, population, leader_name, "
    "is_established, last_synced_at"
)


def upsert_settlement(settlement: dict[str, Any]) -> None:
    """Insert or refresh a settlement row from upstream data.

    ``settlement`` uses column names; missing numeric fields default to 0.
    """
    now = utc_timestamp()
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO settlements (
                    id, name, tier, treasury, supplies, tiles, population, leader_name,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    tier = excluded.tier,
                    treasury = excluded.treasury,
                    supplies = excluded.supplies,
                    tiles = excluded.tiles,
                    population = excluded.population,
                    leader_name = excluded.leader_name,
                    updated_at = excluded.updated_at
                """,
                (
                    str(settlement["id"]),
                    settlement["name"],
                    int(settlement.get("tier") or 0),
                    int(settlement.get("treasury") or 0),
                    int(settlement.get("supplies") or 0),
                    int(settlement.get("tiles") or 0),
                    int(settlement.get("population") or 0),
                    settlement.get("leader_name"),
                    now,
                    now,
                ),
            )
    except Exception as exc:
        raise_write_error(
            "settlements.upsert_settlement", exc, details=f"id={settlement.get('id')!r}"
        )


def mark_synced(settlement_id: str) -> None:
    """Flag a settlement as established and stamp its sync time."""
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                UPDATE settlements
                SET is_established = 1, last_synced_at = ?
                WHERE id = ?
                """,
                (utc_timestamp(), settlement_id),
            )
    except Exception as exc:
        raise_write_error("settlements.mark_synced", exc, details=f"id={settlement_id!r}")


def update_treasury(settlement_id: str, balance: int) -> None:
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                "UPDATE settlements SET treasury = ?, updated_at = ? WHERE id = ?",
                (balance, utc_timestamp(), settlement_id),
            )
    except Exception as exc:
        raise_write_error("settlements.update_treasury", exc, details=f"id={settlement_id!r}")


def get_settlement(settlement_id: str) -> dict[str, Any] | None:
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"SELECT {SETTLEMENT_COLUMNS} FROM settlements WHERE id = ?",  # nosec B608
                (settlement_id,),
            ).fetchone()
        return dict(row) if row else None
    except Exception as exc:
        raise_read_error("settlements.get_settlement", exc, details=f"id={settlement_id!r}")


def list_settlement_ids() -> list[str]:
    """Return ids of every known settlement, for batch jobs."""
    try:
        with connection_scope() as conn:
            rows = conn.execute("SELECT id FROM settlements ORDER BY id").fetchall()
        return [row["id"] for row in rows]
    except Exception as exc:
        raise_read_error("settlements.list_settlement_ids", exc)


def search_settlements(
    query: str, *, limit: int = 20, offset: int = 0
) -> tuple[list[dict[str, Any]], int]:
    """Case-insensitive substring search on name. Returns ``(rows, total)``."""
    pattern = f"%{query}%"
    try:
        with connection_scope() as conn:
            total_row = conn.execute(
                "SELECT COUNT(*) AS total FROM settlements WHERE name LIKE ? COLLATE NOCASE",
                (pattern,),
            ).fetchone()
            rows = conn.execute(
                f"""
                SELECT {SETTLEMENT_COLUMNS}
                FROM settlements
                WHERE name LIKE ? COLLATE NOCASE
                ORDER BY population DESC, name
                LIMIT ? OFFSET ?
                """,  # nosec B608
                (pattern, limit, offset),
            ).fetchall()
        return [dict(row) for row in rows], int(total_row["total"])
    except Exception as exc:
        raise_read_error("settlements.search_settlements", exc, details=f"query={query!r}")


# =============================================================================
# Invite codes
# =============================================================================


def get_invite_code(settlement_id: str) -> dict[str, Any] | None:
    try:
        with connection_scope() as conn:
            row = conn.execute(
                """
                SELECT settlement_id, code, generated_at, last_regenerated_at
                FROM settlement_invite_codes
                WHERE settlement_id = ?
                """,
                (settlement_id,),
            ).fetchone()
        return dict(row) if row else None
    except Exception as exc:
        raise_read_error(
            "settlements.get_invite_code", exc, details=f"settlement_id={settlement_id!r}"
        )


def create_invite_code(settlement_id: str, code: str, *, account_id: int | None = None) -> bool:
    """Store the first code for a settlement.

    Returns:
        ``False`` when the code collides with another settlement's code or
        the settlement already has one.
    """
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO settlement_invite_codes (
                    settlement_id, code, generated_at, generated_by_account_id
                )
                VALUES (?, ?, ?, ?)
                """,
                (settlement_id, code, utc_timestamp(), account_id),
            )
        return True
    except sqlite3.IntegrityError:
        return False
    except Exception as exc:
        raise_write_error(
            "settlements.create_invite_code", exc, details=f"settlement_id={settlement_id!r}"
        )


def replace_invite_code(settlement_id: str, code: str, *, account_id: int | None = None) -> bool:
    """Swap in a new code; the old one stops resolving immediately.

    Returns:
        ``False`` when ``code`` is already used by another settlement.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                UPDATE settlement_invite_codes
                SET code = ?, last_regenerated_at = ?, generated_by_account_id = ?
                WHERE settlement_id = ?
                """,
                (code, utc_timestamp(), account_id, settlement_id),
            )
            return cursor.rowcount > 0
    except sqlite3.IntegrityError:
        return False
    except Exception as exc:
        raise_write_error(
            "settlements.replace_invite_code", exc, details=f"settlement_id={settlement_id!r}"
        )


def get_settlement_by_invite_code(code: str) -> dict[str, Any] | None:
    try:
        with connection_scope() as conn:
            row = conn.execute(
                """
                SELECT s.id, s.name, s.tier, s.treasury, s.supplies, s.tiles, s.population,
                       s.leader_name, s.is_established, s.last_synced_at
                FROM settlement_invite_codes c
                JOIN settlements s ON s.id = c.settlement_id
                WHERE c.code = ?
                """,
                (code,),
            ).fetchone()
        return dict(row) if row else None
    except Exception as exc:
        raise_read_error("settlements.get_settlement_by_invite_code", exc)


# =============================================================================
# Sync log
# =============================================================================


def record_sync(
    settlement_id: str,
    *,
    mode: str,
    triggered_by: str,
    success: bool,
    stats: dict[str, int] | None = None,
    error_message: str | None = None,
) -> None:
    """Append one row to the sync audit log."""
    stats = stats or {}
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO settlement_sync_log (
                    settlement_id, mode, triggered_by, success,
                    members_found, members_added, members_updated, members_deactivated,
                    citizens_found, citizens_updated, api_calls_made, duration_ms,
                    error_message, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    settlement_id,
                    mode,
                    triggered_by,
                    int(success),
                    stats.get("members_found", 0),
                    stats.get("members_added", 0),
                    stats.get("members_updated", 0),
                    stats.get("members_deactivated", 0),
                    stats.get("citizens_found", 0),
                    stats.get("citizens_updated", 0),
                    stats.get("api_calls_made", 0),
                    stats.get("duration_ms", 0),
                    error_message,
                    utc_timestamp(),
                ),
            )
    except Exception as exc:
        raise_write_error(
            "settlements.record_sync", exc, details=f"settlement_id={settlement_id!r}"
        )


def list_sync_log(settlement_id: str, *, limit: int = 20) -> list[dict[str, Any]]:
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT * FROM settlement_sync_log
                WHERE settlement_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (settlement_id, limit),
            ).fetchall()
        return [dict(row) for row in rows]
    except Exception as exc:
        raise_read_error(
            "settlements.list_sync_log", exc, details=f"settlement_id={settlement_id!r}"
        )
