"""
Unit tests for the CLI module (bitsettler/cli.py).

Tests cover:
- Command parsing and help
- init-db, create-account and rotate-token against a temporary database
- sync and poll-treasury output and exit codes
- cleanup-treasury and run
"""

import argparse
from unittest.mock import patch

import pytest

from bitsettler import cli
from bitsettler.config import config
from bitsettler.db import accounts_repo, treasury_repo
from bitsettler.services.settlement_sync import SettlementSyncResult
from bitsettler.services.treasury import TreasuryPollResult
from tests.constants import SETTLEMENT_ID


@pytest.fixture
def quiet_logging():
    """Keep ``configure_logging`` from replacing pytest's log handlers."""
    with patch("bitsettler.config.configure_logging") as mock_configure:
        yield mock_configure


def _token_from(output: str) -> str:
    for line in output.splitlines():
        if line.startswith("Token: "):
            return line.removeprefix("Token: ")
    raise AssertionError(f"no token in output: {output!r}")


# ============================================================================
# PARSING
# ============================================================================


@pytest.mark.unit
def test_no_command_prints_help(capsys):
    """Test that running without a command shows help and succeeds."""
    assert cli.main([]) == 0
    assert "init-db" in capsys.readouterr().out


@pytest.mark.unit
def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.main(["explode"])


# ============================================================================
# DATABASE AND ACCOUNTS
# ============================================================================


@pytest.mark.db
def test_init_db(temp_db_path, capsys):
    assert cli.main(["init-db"]) == 0

    assert "Database initialized successfully." in capsys.readouterr().out
    assert temp_db_path.exists()


@pytest.mark.unit
def test_cmd_init_db_error(capsys):
    """Test init-db command handles errors."""
    with patch("bitsettler.db.schema.init_database", side_effect=Exception("DB error")):
        result = cli.cmd_init_db(argparse.Namespace())

    assert result == 1
    assert "Error initializing database: DB error" in capsys.readouterr().err


@pytest.mark.db
def test_create_account_prints_working_token(test_db, capsys):
    assert cli.main(["create-account", "alice"]) == 0

    output = capsys.readouterr().out
    assert "Account 'alice' created." in output
    account = accounts_repo.get_account_by_token(_token_from(output))
    assert account["username"] == "alice"


@pytest.mark.db
@pytest.mark.parametrize("username", ["a", "x" * 33, "   "])
def test_create_account_rejects_bad_username(test_db, capsys, username):
    assert cli.main(["create-account", username]) == 1

    assert "Username must be 2-32 characters." in capsys.readouterr().err


@pytest.mark.db
def test_create_account_duplicate(accounts, capsys):
    assert cli.main(["create-account", "alice"]) == 1

    assert "Account 'alice' already exists." in capsys.readouterr().err


@pytest.mark.db
def test_rotate_token(accounts, capsys):
    assert cli.main(["rotate-token", "bob"]) == 0

    token = _token_from(capsys.readouterr().out)
    assert accounts_repo.get_account_by_token(token)["username"] == "bob"
    assert accounts_repo.get_account_by_token(accounts["bob"]["token"]) is None


@pytest.mark.db
def test_rotate_token_unknown_account(test_db, capsys):
    assert cli.main(["rotate-token", "nobody"]) == 1

    assert "Account 'nobody' not found." in capsys.readouterr().err


# ============================================================================
# SYNC AND TREASURY
# ============================================================================


@pytest.mark.unit
def test_sync_success(quiet_logging, capsys):
    result = SettlementSyncResult(
        success=True,
        reason="ok",
        message="Settlement synced",
        stats={
            "members_found": 4,
            "members_added": 1,
            "members_deactivated": 0,
            "citizens_found": 4,
            "duration_ms": 37,
        },
    )
    with patch(
        "bitsettler.services.settlement_sync.sync_settlement", return_value=result
    ) as mock_sync:
        assert cli.main(["sync", SETTLEMENT_ID, "--mode", "incremental"]) == 0

    mock_sync.assert_called_once_with(SETTLEMENT_ID, mode="incremental", triggered_by="cli")
    assert capsys.readouterr().out.strip() == (
        "Synced 4 members (1 new, 0 deactivated), 4 citizens in 37ms."
    )


@pytest.mark.unit
def test_sync_failure(quiet_logging, capsys):
    result = SettlementSyncResult(
        success=False, reason="upstream_unavailable", message="Game data API unavailable."
    )
    with patch("bitsettler.services.settlement_sync.sync_settlement", return_value=result):
        assert cli.main(["sync", SETTLEMENT_ID]) == 1

    assert "Sync failed: Game data API unavailable." in capsys.readouterr().err


@pytest.mark.unit
def test_poll_treasury_once(quiet_logging, capsys):
    result = TreasuryPollResult(
        success=True,
        reason="recorded",
        message="Treasury snapshot recorded",
        snapshot={"balance": 1500},
    )
    with patch("bitsettler.services.treasury.poll_treasury", return_value=result):
        assert cli.main(["poll-treasury", SETTLEMENT_ID]) == 0

    assert capsys.readouterr().out.strip() == "Treasury snapshot recorded: balance 1500"


@pytest.mark.unit
def test_poll_treasury_failure(quiet_logging, capsys):
    result = TreasuryPollResult(
        success=False, reason="upstream_unavailable", message="Game data API unavailable."
    )
    with patch("bitsettler.services.treasury.poll_treasury", return_value=result):
        assert cli.main(["poll-treasury", SETTLEMENT_ID]) == 1

    assert "Game data API unavailable." in capsys.readouterr().err


@pytest.mark.unit
def test_poll_treasury_watch_stops_on_interrupt(quiet_logging):
    result = TreasuryPollResult(success=True, reason="unchanged", message="unchanged")
    with (
        patch("bitsettler.services.treasury.poll_treasury", return_value=result) as mock_poll,
        patch("bitsettler.cli.time.sleep", side_effect=[None, KeyboardInterrupt]),
    ):
        assert cli.main(["poll-treasury", SETTLEMENT_ID, "--watch"]) == 0

    assert mock_poll.call_count == 2


@pytest.mark.db
def test_cleanup_treasury(seeded_settlement, capsys):
    treasury_repo.record_snapshot(SETTLEMENT_ID, 1, None, recorded_at="2000-01-01T00:00:00+00:00")

    assert cli.main(["cleanup-treasury"]) == 0

    days = config.treasury.retention_days
    assert f"Removed 1 snapshots older than {days} days." in capsys.readouterr().out


# ============================================================================
# RUN
# ============================================================================


@pytest.mark.unit
def test_run_passes_host_and_port():
    with patch("bitsettler.api.server.start_server") as mock_start:
        assert cli.main(["run", "--host", "127.0.0.1", "--port", "9001"]) == 0

    mock_start.assert_called_once_with(host="127.0.0.1", port=9001)


@pytest.mark.unit
def test_run_keyboard_interrupt(capsys):
    with patch("bitsettler.api.server.start_server", side_effect=KeyboardInterrupt):
        assert cli.main(["run"]) == 0

    assert "Server stopped." in capsys.readouterr().out
