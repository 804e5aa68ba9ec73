"""
Treasury polling: refresh a settlement's balance from the game-data API and
keep a sparse history of it.

A snapshot is written when there is no previous one, when the balance moved
by at least ``treasury.significant_change``, or when the last snapshot is
older than ``treasury.snapshot_interval_hours``. Unchanged balances inside
that window leave the history alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from bitsettler.config import config
from bitsettler.db import settlements_repo, treasury_repo
from bitsettler.db.errors import DatabaseError
from bitsettler.services import game_data

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TreasuryPollResult:
    """
    Outcome of one treasury poll.

    Attributes:
        success: True when a fresh balance was read upstream.
        reason: ``recorded``, ``unchanged``, ``upstream_unavailable`` or
            ``database_error``.
        message: Human-readable status message.
        snapshot: The latest snapshot after the poll, if any.
    """

    success: bool
    reason: str
    message: str
    snapshot: dict[str, Any] | None = None


def should_record(
    previous: dict[str, Any] | None,
    balance: int,
    *,
    now: datetime | None = None,
) -> bool:
    """Decide whether ``balance`` deserves a new history row."""
    if previous is None:
        return True
    if abs(balance - int(previous["balance"])) >= config.treasury.significant_change:
        return True
    now = now or datetime.now(UTC)
    recorded_at = datetime.fromisoformat(previous["recorded_at"])
    if recorded_at.tzinfo is None:
        recorded_at = recorded_at.replace(tzinfo=UTC)
    return now - recorded_at >= timedelta(hours=config.treasury.snapshot_interval_hours)


def poll_treasury(settlement_id: str) -> TreasuryPollResult:
    """Read the current balance upstream and record it when it is news."""
    claim, error = game_data.fetch_claim(settlement_id)
    if claim is None:
        logger.warning("Treasury poll for %s failed: %s", settlement_id, error)
        return TreasuryPollResult(
            success=False,
            reason="upstream_unavailable",
            message=error or "Game data API unavailable.",
        )

    balance = int(claim["treasury"])
    try:
        settlements_repo.update_treasury(settlement_id, balance)
        previous = treasury_repo.get_latest_snapshot(settlement_id)
        if not should_record(previous, balance):
            return TreasuryPollResult(
                success=True,
                reason="unchanged",
                message="Treasury balance unchanged",
                snapshot=previous,
            )
        previous_balance = int(previous["balance"]) if previous else None
        snapshot = treasury_repo.record_snapshot(settlement_id, balance, previous_balance)
    except DatabaseError:
        logger.exception("Database error while recording treasury for %s", settlement_id)
        return TreasuryPollResult(
            success=False, reason="database_error", message="Failed to save treasury data"
        )

    logger.info(
        "Treasury of %s: %d (change %+d)", settlement_id, balance, snapshot["change"]
    )
    return TreasuryPollResult(
        success=True, reason="recorded", message="Treasury snapshot recorded", snapshot=snapshot
    )


def cleanup_history() -> int:
    """Drop snapshots past the retention window."""
    removed = treasury_repo.delete_older_than(config.treasury.retention_days)
    if removed:
        logger.info(
            "Removed %d treasury snapshots older than %d days",
            removed,
            config.treasury.retention_days,
        )
    return removed
