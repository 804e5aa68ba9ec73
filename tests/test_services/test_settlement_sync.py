"""Tests for the roster sync service."""

from __future__ import annotations

import pytest

from bitsettler.db import members_repo, settlements_repo
from bitsettler.db.errors import DatabaseOperationContext, DatabaseWriteError
from bitsettler.services import game_data
from bitsettler.services.settlement_sync import sync_settlement
from tests.constants import SETTLEMENT_ID

ROSTER = [
    {"id": "p-alice", "entity_id": "e-alice", "name": "Alice"},
    {"id": "p-bob", "entity_id": "e-bob", "name": "Bob"},
]
CITIZENS = [
    {"id": "p-bob", "skills": {"Fishing": 22}, "top_profession": "Fishing", "total_level": 40},
]


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch) -> dict:
    """Stub the game-data fetches; tests edit the returned dict."""
    state = {
        "claim": ({"id": "s-new", "name": "Upstream Name", "tier": 1}, None),
        "roster": (ROSTER, None),
        "citizens": (CITIZENS, None),
    }
    monkeypatch.setattr(game_data, "fetch_claim", lambda sid: state["claim"])
    monkeypatch.setattr(game_data, "fetch_roster", lambda sid: state["roster"])
    monkeypatch.setattr(game_data, "fetch_citizens", lambda sid: state["citizens"])
    return state


class TestSuccessfulSync:
    def test_full_sync_writes_roster(self, seeded_settlement, upstream):
        result = sync_settlement(SETTLEMENT_ID, triggered_by="user_onboarding")

        assert result.success is True
        assert result.reason == "ok"
        assert result.stats["members_found"] == 2
        assert result.stats["members_deactivated"] == 2
        assert result.stats["citizens_updated"] == 1
        assert result.stats["api_calls_made"] == 2
        assert members_repo.get_member("p-bob")["skills"] == {"Fishing": 22}
        assert members_repo.get_member("p-dan")["is_active"] is False

    def test_incremental_sync_keeps_missing_members(self, seeded_settlement, upstream):
        result = sync_settlement(SETTLEMENT_ID, mode="incremental")

        assert result.success is True
        assert result.stats["members_deactivated"] == 0
        assert members_repo.get_member("p-dan")["is_active"] is True

    def test_sync_is_logged(self, seeded_settlement, upstream):
        sync_settlement(SETTLEMENT_ID, triggered_by="cli")

        log = settlements_repo.list_sync_log(SETTLEMENT_ID)
        assert len(log) == 1
        assert log[0]["success"] == 1
        assert log[0]["triggered_by"] == "cli"
        assert log[0]["members_found"] == 2

    def test_unknown_settlement_is_created_from_upstream(self, test_db, upstream):
        result = sync_settlement("s-new", settlement_name="Chosen Name")

        assert result.success is True
        assert result.stats["api_calls_made"] == 3
        settlement = settlements_repo.get_settlement("s-new")
        assert settlement["name"] == "Chosen Name"
        assert settlement["is_established"] == 1


class TestFailedSync:
    def test_settlement_not_found(self, test_db, upstream):
        upstream["claim"] = (None, "Game data API returned HTTP 404.")

        result = sync_settlement("s-missing")

        assert result.success is False
        assert result.reason == "settlement_not_found"
        assert result.message == "Settlement not found: Game data API returned HTTP 404."
        assert settlements_repo.list_sync_log("s-missing")[0]["success"] == 0

    def test_upstream_unavailable(self, seeded_settlement, upstream):
        upstream["roster"] = (None, "Game data API unavailable.")

        result = sync_settlement(SETTLEMENT_ID)

        assert result.success is False
        assert result.reason == "upstream_unavailable"
        assert result.message == (
            "Failed to fetch settlement data: roster=Game data API unavailable., citizens=ok"
        )
        assert members_repo.get_member("p-dan")["is_active"] is True
        log = settlements_repo.list_sync_log(SETTLEMENT_ID)
        assert log[0]["error_message"] == result.message

    def test_database_error(self, seeded_settlement, upstream, monkeypatch):
        def broken(*args, **kwargs):
            raise DatabaseWriteError(
                context=DatabaseOperationContext(operation="members.apply_roster")
            )

        monkeypatch.setattr(members_repo, "apply_roster", broken)

        result = sync_settlement(SETTLEMENT_ID)

        assert result.success is False
        assert result.reason == "database_error"
        assert result.message == "Failed to save settlement data"
