"""Settlement member repository operations.

A member row is one in-game character of one settlement. Rows are written
by roster sync and claimed by accounts. Ownership changes only through the
conditional updates in this module, so two accounts racing for the same
character resolve to exactly one winner.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from typing import Any

from bitsettler.db.connection import connection_scope, utc_timestamp
from bitsettler.db.errors import raise_read_error, raise_write_error

MEMBER_COLUMNS = (
    "id, settlement_id, entity_id, name, skills_json, top_profession, total_level, "
    "highest_level, inventory_permission, build_permission, officer_permission, "
    "co_owner_permission, is_active, owner_account_id, display_name, "
    "primary_profession, secondary_profession, claimed_at, last_synced_at"
)


def _row_to_member(row: sqlite3.Row) -> dict[str, Any]:
    member = dict(row)
    member["skills"] = json.loads(member.pop("skills_json") or "{}")
    member["is_active"] = bool(member["is_active"])
    return member


def _select_members(cursor: Any, where: str, params: tuple[Any, ...], order: str) -> list[Any]:
    cursor.execute(
        f"SELECT {MEMBER_COLUMNS} FROM settlement_members WHERE {where} ORDER BY {order}",  # nosec
        params,
    )
    return cursor.fetchall()


# =============================================================================
# Roster sync
# =============================================================================


def apply_roster(
    settlement_id: str,
    members: Iterable[dict[str, Any]],
    citizens: Iterable[dict[str, Any]],
    *,
    deactivate_missing: bool = True,
) -> dict[str, int]:
    """Write one roster snapshot in a single transaction.

    ``members`` carry identity and permissions, ``citizens`` carry skills.
    Both use column names and are keyed by ``id`` (the player entity id).
    Members missing from a non-empty snapshot are deactivated, never deleted, so a
    claimed character keeps its owner if it reappears later.

    Returns:
        Counters: members_found, members_added, members_updated,
        members_deactivated, citizens_found, citizens_updated.
    """
    now = utc_timestamp()
    stats = dict.fromkeys(
        (
            "members_found",
            "members_added",
            "members_updated",
            "members_deactivated",
            "citizens_found",
            "citizens_updated",
        ),
        0,
    )
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            seen: list[str] = []
            for member in members:
                stats["members_found"] += 1
                member_id = str(member["id"])
                seen.append(member_id)
                cursor.execute(
                    "SELECT 1 FROM settlement_members WHERE id = ?", (member_id,)
                )
                existed = cursor.fetchone() is not None
                cursor.execute(
                    """
                    INSERT INTO settlement_members (
                        id, settlement_id, entity_id, name,
                        inventory_permission, build_permission, officer_permission,
                        co_owner_permission, is_active, last_synced_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        settlement_id = excluded.settlement_id,
                        entity_id = excluded.entity_id,
                        name = excluded.name,
                        inventory_permission = excluded.inventory_permission,
                        build_permission = excluded.build_permission,
                        officer_permission = excluded.officer_permission,
                        co_owner_permission = excluded.co_owner_permission,
                        is_active = 1,
                        last_synced_at = excluded.last_synced_at
                    """,
                    (
                        member_id,
                        settlement_id,
                        str(member.get("entity_id") or member_id),
                        member["name"],
                        int(member.get("inventory_permission") or 0),
                        int(member.get("build_permission") or 0),
                        int(member.get("officer_permission") or 0),
                        int(member.get("co_owner_permission") or 0),
                        now,
                    ),
                )
                stats["members_updated" if existed else "members_added"] += 1

            # An empty roster is treated as an upstream glitch, not a mass departure.
            if deactivate_missing and seen:
                placeholders = ",".join("?" for _ in seen)
                cursor.execute(
                    "UPDATE settlement_members SET is_active = 0 "
                    "WHERE settlement_id = ? AND is_active = 1 "
                    f"AND id NOT IN ({placeholders})",  # nosec B608
                    (settlement_id, *seen),
                )
                stats["members_deactivated"] = cursor.rowcount

            for citizen in citizens:
                stats["citizens_found"] += 1
                cursor.execute(
                    """
                    UPDATE settlement_members
                    SET skills_json = ?, top_profession = ?, total_level = ?,
                        highest_level = ?, last_synced_at = ?
                    WHERE id = ? AND settlement_id = ?
                    """,
                    (
                        json.dumps(citizen.get("skills") or {}, sort_keys=True),
                        citizen.get("top_profession"),
                        int(citizen.get("total_level") or 0),
                        int(citizen.get("highest_level") or 0),
                        now,
                        str(citizen["id"]),
                        settlement_id,
                    ),
                )
                stats["citizens_updated"] += cursor.rowcount
        return stats
    except Exception as exc:
        raise_write_error(
            "members.apply_roster", exc, details=f"settlement_id={settlement_id!r}"
        )


# =============================================================================
# Queries
# =============================================================================


def get_member(member_id: str) -> dict[str, Any] | None:
    try:
        with connection_scope() as conn:
            rows = _select_members(conn.cursor(), "id = ?", (member_id,), "id")
        return _row_to_member(rows[0]) if rows else None
    except Exception as exc:
        raise_read_error("members.get_member", exc, details=f"id={member_id!r}")


def list_unclaimed_members(settlement_id: str, *, by_level: bool = False) -> list[dict[str, Any]]:
    """Active members nobody owns, by name (or by total level, highest first)."""
    order = "total_level DESC, name" if by_level else "name COLLATE NOCASE"
    try:
        with connection_scope() as conn:
            rows = _select_members(
                conn.cursor(),
                "settlement_id = ? AND is_active = 1 AND owner_account_id IS NULL",
                (settlement_id,),
                order,
            )
        return [_row_to_member(row) for row in rows]
    except Exception as exc:
        raise_read_error(
            "members.list_unclaimed_members", exc, details=f"settlement_id={settlement_id!r}"
        )


def list_members(settlement_id: str, *, include_inactive: bool = False) -> list[dict[str, Any]]:
    """Settlement roster for the member directory, highest total level first."""
    where = "settlement_id = ?"
    if not include_inactive:
        where += " AND is_active = 1"
    try:
        with connection_scope() as conn:
            rows = _select_members(
                conn.cursor(), where, (settlement_id,), "total_level DESC, name COLLATE NOCASE"
            )
        return [_row_to_member(row) for row in rows]
    except Exception as exc:
        raise_read_error("members.list_members", exc, details=f"settlement_id={settlement_id!r}")


def get_settlement_member(settlement_id: str, member_id: str) -> dict[str, Any] | None:
    """Find one member of a settlement by player id or entity id."""
    try:
        with connection_scope() as conn:
            rows = _select_members(
                conn.cursor(),
                "settlement_id = ? AND (id = ? OR entity_id = ?)",
                (settlement_id, member_id, member_id),
                "id",
            )
        return _row_to_member(rows[0]) if rows else None
    except Exception as exc:
        raise_read_error(
            "members.get_settlement_member",
            exc,
            details=f"settlement_id={settlement_id!r}, member_id={member_id!r}",
        )


def get_account_member(account_id: int, settlement_id: str | None = None) -> dict[str, Any] | None:
    """Return the account's claimed character (most recent claim first)."""
    where = "owner_account_id = ? AND is_active = 1"
    params: tuple[Any, ...] = (account_id,)
    if settlement_id is not None:
        where += " AND settlement_id = ?"
        params = (account_id, settlement_id)
    try:
        with connection_scope() as conn:
            rows = _select_members(conn.cursor(), where, params, "claimed_at DESC")
        return _row_to_member(rows[0]) if rows else None
    except Exception as exc:
        raise_read_error("members.get_account_member", exc, details=f"account_id={account_id}")


# =============================================================================
# Ownership
# =============================================================================


def claim_member(
    member_id: str,
    account_id: int,
    *,
    display_name: str | None = None,
    primary_profession: str | None = None,
    secondary_profession: str | None = None,
) -> bool:
    """Assign an unowned member to ``account_id``.

    Returns:
        ``False`` when the member is gone, inactive, or already owned.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            claimed = _claim(
                cursor,
                member_id,
                account_id,
                display_name=display_name,
                primary_profession=primary_profession,
                secondary_profession=secondary_profession,
            )
        return claimed
    except Exception as exc:
        raise_write_error(
            "members.claim_member",
            exc,
            details=f"member_id={member_id!r}, account_id={account_id}",
        )


def switch_member(
    account_id: int,
    current_member_id: str,
    new_member_id: str,
    *,
    display_name: str | None = None,
    primary_profession: str | None = None,
    secondary_profession: str | None = None,
) -> bool:
    """Release the current character and claim a new one atomically.

    Returns:
        ``False`` when the account does not own ``current_member_id`` or the
        new member is no longer claimable. Nothing changes in that case.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE settlement_members
                SET owner_account_id = NULL, claimed_at = NULL, display_name = NULL,
                    primary_profession = NULL, secondary_profession = NULL
                WHERE id = ? AND owner_account_id = ?
                """,
                (current_member_id, account_id),
            )
            if cursor.rowcount == 0:
                return False
            claimed = _claim(
                cursor,
                new_member_id,
                account_id,
                display_name=display_name,
                primary_profession=primary_profession,
                secondary_profession=secondary_profession,
            )
            if not claimed:
                conn.rollback()
                return False
        return True
    except Exception as exc:
        raise_write_error(
            "members.switch_member",
            exc,
            details=f"current={current_member_id!r}, new={new_member_id!r}",
        )


def _claim(
    cursor: Any,
    member_id: str,
    account_id: int,
    *,
    display_name: str | None,
    primary_profession: str | None,
    secondary_profession: str | None,
) -> bool:
    cursor.execute(
        """
        UPDATE settlement_members
        SET owner_account_id = ?, claimed_at = ?, display_name = ?,
            primary_profession = ?, secondary_profession = ?
        WHERE id = ? AND is_active = 1 AND owner_account_id IS NULL
        """,
        (
            account_id,
            utc_timestamp(),
            display_name,
            primary_profession,
            secondary_profession,
            member_id,
        ),
    )
    return cursor.rowcount > 0


def update_professions(
    member_id: str,
    account_id: int,
    primary_profession: str | None,
    secondary_profession: str | None,
) -> bool:
    """Change the chosen professions of a character the account owns."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE settlement_members
                SET primary_profession = ?, secondary_profession = ?
                WHERE id = ? AND owner_account_id = ?
                """,
                (primary_profession, secondary_profession, member_id, account_id),
            )
            return cursor.rowcount > 0
    except Exception as exc:
        raise_write_error(
            "members.update_professions", exc, details=f"member_id={member_id!r}"
        )
