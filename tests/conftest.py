"""
Shared pytest fixtures for the Bitsettler test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary test databases
- A seeded settlement with members, citizens and accounts
- A FastAPI TestClient bound to the temporary database
- An in-memory ``SettlementGateway`` for flow controller tests

The upstream game-data integration is disabled for every test unless a test
turns it back on explicitly.
"""

import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from bitsettler.config import FlowSettings, config, use_test_database
from bitsettler.db import accounts_repo, members_repo, settlements_repo
from bitsettler.db.schema import init_database
from tests.constants import SETTLEMENT_ID, SETTLEMENT_NAME
from tests.fakes import FakeGateway

# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def offline_game_data(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests from reaching the real game-data API."""
    monkeypatch.setattr(config.integrations, "game_data_enabled", False)


@pytest.fixture
def fast_flow_settings() -> FlowSettings:
    """Flow timings short enough for tests to wait them out."""
    return FlowSettings(
        search_debounce_ms=20,
        min_query_length=2,
        progress_tick_ms=5,
        connecting_seconds=0.01,
        syncing_members_seconds=0.02,
        syncing_citizens_seconds=0.02,
    )


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """
    Create a temporary database file for testing.

    Each test function gets its own database through the config system's
    use_test_database context manager.

    Yields:
        Path to temporary database file
    """
    temp_dir = tempfile.mkdtemp()
    temp_db = Path(temp_dir) / "test_bitsettler.db"

    with use_test_database(temp_db):
        yield temp_db

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def test_db(temp_db_path: Path) -> Generator[None, None, None]:
    """Initialize a test database with schema but no data."""
    init_database()
    yield


@pytest.fixture
def seeded_settlement(test_db) -> dict[str, Any]:
    """
    Create one synced settlement with four members.

    - ``p-alice``: officer, highest total level
    - ``p-bob`` and ``p-cara``: plain members
    - ``p-dan``: plain member, lowest total level

    Returns:
        The settlement row as stored.
    """
    settlements_repo.upsert_settlement(
        {
            "id": SETTLEMENT_ID,
            "name": SETTLEMENT_NAME,
            "tier": 3,
            "treasury": 1500,
            "supplies": 40,
            "tiles": 120,
            "population": 4,
            "leader_name": "Alice",
        }
    )
    members = [
        {"id": "p-alice", "entity_id": "e-alice", "name": "Alice", "officer_permission": 1},
        {"id": "p-bob", "entity_id": "e-bob", "name": "Bob"},
        {"id": "p-cara", "entity_id": "e-cara", "name": "Cara"},
        {"id": "p-dan", "entity_id": "e-dan", "name": "Dan"},
    ]
    citizens = [
        {
            "id": "p-alice",
            "skills": {"Carpentry": 40, "Forestry": 35, "Masonry": 12},
            "top_profession": "Carpentry",
            "total_level": 87,
            "highest_level": 40,
        },
        {
            "id": "p-bob",
            "skills": {"Fishing": 20, "Cooking": 18},
            "top_profession": "Fishing",
            "total_level": 38,
            "highest_level": 20,
        },
        {
            "id": "p-cara",
            "skills": {"Mining": 25, "Smithing": 25},
            "top_profession": "Mining",
            "total_level": 50,
            "highest_level": 25,
        },
        {
            "id": "p-dan",
            "skills": {"Farming": 5},
            "top_profession": "Farming",
            "total_level": 5,
            "highest_level": 5,
        },
    ]
    members_repo.apply_roster(SETTLEMENT_ID, members, citizens)
    settlements_repo.mark_synced(SETTLEMENT_ID)
    return settlements_repo.get_settlement(SETTLEMENT_ID)


@pytest.fixture
def accounts(test_db) -> dict[str, dict[str, Any]]:
    """
    Create accounts ``alice``, ``bob`` and ``newbie``.

    Returns:
        ``{username: {"id": ..., "token": ...}}``
    """
    created = {}
    for username in ("alice", "bob", "newbie"):
        account_id, token = accounts_repo.create_account(username)
        created[username] = {"id": account_id, "token": token}
    return created


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def test_client(test_db) -> TestClient:
    """FastAPI TestClient bound to the temporary database."""
    from bitsettler.api.server import create_app

    return TestClient(create_app())


# ============================================================================
# FLOW FIXTURES
# ============================================================================


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
