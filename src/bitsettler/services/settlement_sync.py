"""
Roster sync: pull a settlement's members and citizens from the game-data
API into the local database.

The sync is authoritative for the onboarding flow. A ``success=False``
result carries a reason that is shown to the user verbatim, so messages
here are written for players, not operators.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Literal

from bitsettler.db import members_repo, settlements_repo
from bitsettler.db.errors import DatabaseError
from bitsettler.services import game_data

logger = logging.getLogger(__name__)

SyncMode = Literal["full", "incremental"]


@dataclass(slots=True)
class SettlementSyncResult:
    """
    Outcome of one settlement sync.

    Attributes:
        success: True when members and citizens were written.
        reason: Stable reason key (``ok``, ``upstream_unavailable``,
            ``settlement_not_found``, ``database_error``).
        message: Human-readable status message.
        stats: Counters keyed like the sync log columns.
    """

    success: bool
    reason: str
    message: str
    stats: dict[str, int] = field(default_factory=dict)


def sync_settlement(
    settlement_id: str,
    *,
    mode: SyncMode = "full",
    triggered_by: str = "system",
    settlement_name: str | None = None,
) -> SettlementSyncResult:
    """Fetch roster and citizens for one settlement and store them.

    Members missing from the roster are deactivated in ``full`` mode only.
    Every attempt, failed or not, is written to the sync log.
    """
    started = time.monotonic()
    api_calls = 0

    def _finish(result: SettlementSyncResult) -> SettlementSyncResult:
        result.stats["api_calls_made"] = api_calls
        result.stats["duration_ms"] = int((time.monotonic() - started) * 1000)
        try:
            settlements_repo.record_sync(
                settlement_id,
                mode=mode,
                triggered_by=triggered_by,
                success=result.success,
                stats=result.stats,
                error_message=None if result.success else result.message,
            )
        except DatabaseError:
            logger.exception("Could not write sync log for settlement %s", settlement_id)
        return result

    try:
        settlement = settlements_repo.get_settlement(settlement_id)
        if settlement is None:
            claim, error = game_data.fetch_claim(settlement_id)
            api_calls += 1
            if claim is None:
                logger.warning("Settlement %s not found upstream: %s", settlement_id, error)
                return _finish(
                    SettlementSyncResult(
                        success=False,
                        reason="settlement_not_found",
                        message=f"Settlement not found: {error}",
                    )
                )
            if settlement_name:
                claim["name"] = settlement_name
            settlements_repo.upsert_settlement(claim)

        members, roster_error = game_data.fetch_roster(settlement_id)
        api_calls += 1
        citizens, citizens_error = game_data.fetch_citizens(settlement_id)
        api_calls += 1
        if members is None or citizens is None:
            message = (
                f"Failed to fetch settlement data: roster={roster_error or 'ok'}, "
                f"citizens={citizens_error or 'ok'}"
            )
            logger.warning("Sync of %s failed: %s", settlement_id, message)
            return _finish(
                SettlementSyncResult(
                    success=False, reason="upstream_unavailable", message=message
                )
            )

        stats = members_repo.apply_roster(
            settlement_id,
            members,
            citizens,
            deactivate_missing=(mode == "full"),
        )
        settlements_repo.mark_synced(settlement_id)
    except DatabaseError:
        logger.exception("Database error while syncing settlement %s", settlement_id)
        return _finish(
            SettlementSyncResult(
                success=False,
                reason="database_error",
                message="Failed to save settlement data",
            )
        )

    logger.info(
        "Synced settlement %s (%s): %d members (%d new), %d citizens, %d deactivated",
        settlement_id,
        mode,
        stats["members_found"],
        stats["members_added"],
        stats["citizens_found"],
        stats["members_deactivated"],
    )
    return _finish(
        SettlementSyncResult(
            success=True,
            reason="ok",
            message="Settlement synced",
            stats=stats,
        )
    )
