"""Schema creation for the SQLite backend.

Settlement rows mirror the upstream game-data API; member rows add the
local ownership columns (``owner_account_id``, chosen professions) that the
claim and switch flows write.
"""

from __future__ import annotations

from bitsettler.db.connection import connection_scope

# Hot-path index rationale:
# 1. claim/switch lookups are always (settlement, owner) scoped.
# 2. settlement search filters on name.
# 3. treasury history reads newest-first per settlement.
HOT_PATH_INDEX_STATEMENTS = (
    (
        "CREATE INDEX IF NOT EXISTS idx_members_settlement_owner "
        "ON settlement_members(settlement_id, owner_account_id)"
    ),
    "CREATE INDEX IF NOT EXISTS idx_members_owner ON settlement_members(owner_account_id)",
    "CREATE INDEX IF NOT EXISTS idx_settlements_name ON settlements(name COLLATE NOCASE)",
    (
        "CREATE INDEX IF NOT EXISTS idx_treasury_history_settlement_recorded "
        "ON treasury_history(settlement_id, recorded_at DESC)"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_sync_log_settlement_created "
        "ON settlement_sync_log(settlement_id, created_at DESC)"
    ),
)

TABLE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        token_hash TEXT UNIQUE NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0, 1)),
        created_at TIMESTAMP NOT NULL,
        last_seen_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settlements (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        tier INTEGER NOT NULL DEFAULT 0,
        treasury INTEGER NOT NULL DEFAULT 0,
        supplies INTEGER NOT NULL DEFAULT 0,
        tiles INTEGER NOT NULL DEFAULT 0,
        population INTEGER NOT NULL DEFAULT 0,
        leader_name TEXT,
        is_established INTEGER NOT NULL DEFAULT 0 CHECK (is_established IN (0, 1)),
        last_synced_at TIMESTAMP,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settlement_members (
        id TEXT PRIMARY KEY,
        settlement_id TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        name TEXT NOT NULL,
        skills_json TEXT NOT NULL DEFAULT '{}',
        top_profession TEXT,
        total_level INTEGER NOT NULL DEFAULT 0,
        highest_level INTEGER NOT NULL DEFAULT 0,
        inventory_permission INTEGER NOT NULL DEFAULT 0,
        build_permission INTEGER NOT NULL DEFAULT 0,
        officer_permission INTEGER NOT NULL DEFAULT 0,
        co_owner_permission INTEGER NOT NULL DEFAULT 0,
        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0, 1)),
        owner_account_id INTEGER,
        display_name TEXT,
        primary_profession TEXT,
        secondary_profession TEXT,
        claimed_at TIMESTAMP,
        last_synced_at TIMESTAMP,
        FOREIGN KEY(settlement_id) REFERENCES settlements(id) ON DELETE CASCADE,
        FOREIGN KEY(owner_account_id) REFERENCES accounts(id) ON DELETE SET NULL,
        CHECK (
            primary_profession IS NULL
            OR secondary_profession IS NULL
            OR primary_profession <> secondary_profession
        )
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settlement_invite_codes (
        settlement_id TEXT PRIMARY KEY,
        code TEXT UNIQUE NOT NULL,
        generated_at TIMESTAMP NOT NULL,
        last_regenerated_at TIMESTAMP,
        generated_by_account_id INTEGER,
        FOREIGN KEY(settlement_id) REFERENCES settlements(id) ON DELETE CASCADE,
        FOREIGN KEY(generated_by_account_id) REFERENCES accounts(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settlement_sync_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        settlement_id TEXT NOT NULL,
        mode TEXT NOT NULL,
        triggered_by TEXT NOT NULL,
        success INTEGER NOT NULL CHECK (success IN (0, 1)),
        members_found INTEGER NOT NULL DEFAULT 0,
        members_added INTEGER NOT NULL DEFAULT 0,
        members_updated INTEGER NOT NULL DEFAULT 0,
        members_deactivated INTEGER NOT NULL DEFAULT 0,
        citizens_found INTEGER NOT NULL DEFAULT 0,
        citizens_updated INTEGER NOT NULL DEFAULT 0,
        api_calls_made INTEGER NOT NULL DEFAULT 0,
        duration_ms INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS treasury_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        settlement_id TEXT NOT NULL,
        balance INTEGER NOT NULL,
        previous_balance INTEGER,
        change INTEGER NOT NULL DEFAULT 0,
        recorded_at TIMESTAMP NOT NULL,
        FOREIGN KEY(settlement_id) REFERENCES settlements(id) ON DELETE CASCADE
    )
    """,
)


def init_database() -> None:
    """Create required tables and indexes if missing. Safe to call repeatedly."""
    with connection_scope(write=True) as conn:
        cursor = conn.cursor()
        for statement in TABLE_STATEMENTS:
            cursor.execute(statement)
        for statement in HOT_PATH_INDEX_STATEMENTS:
            cursor.execute(statement)
