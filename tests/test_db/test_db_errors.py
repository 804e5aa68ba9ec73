"""Tests for typed repository errors."""

from __future__ import annotations

import sqlite3
from unittest.mock import patch

import pytest

from bitsettler.db import members_repo, settlements_repo
from bitsettler.db.errors import (
    DatabaseError,
    DatabaseOperationContext,
    DatabaseReadError,
    DatabaseWriteError,
    raise_read_error,
    raise_write_error,
)


def test_read_error_wraps_cause():
    cause = sqlite3.OperationalError("disk I/O error")

    with pytest.raises(DatabaseReadError) as excinfo:
        raise_read_error("settlements.get_settlement", cause, details="id='s-1'")

    assert str(excinfo.value) == "settlements.get_settlement: id='s-1'"
    assert excinfo.value.cause is cause
    assert excinfo.value.__cause__ is cause


def test_write_error_without_details():
    with pytest.raises(DatabaseWriteError, match="^members.claim_member$"):
        raise_write_error("members.claim_member", sqlite3.OperationalError("locked"))


def test_existing_database_error_is_not_rewrapped():
    original = DatabaseReadError(context=DatabaseOperationContext(operation="inner"))

    with pytest.raises(DatabaseReadError) as excinfo:
        raise_write_error("outer", original)

    assert excinfo.value is original


def test_repository_surfaces_connection_failure(test_db):
    """A broken connection becomes a typed error, never a ``None`` result."""
    with patch(
        "bitsettler.db.settlements_repo.connection_scope",
        side_effect=sqlite3.OperationalError("unable to open database file"),
    ):
        with pytest.raises(DatabaseReadError) as excinfo:
            settlements_repo.get_settlement("s-1")

    assert excinfo.value.context.operation == "settlements.get_settlement"
    assert isinstance(excinfo.value, DatabaseError)


def test_write_failure_is_typed(test_db):
    with patch(
        "bitsettler.db.members_repo.connection_scope",
        side_effect=sqlite3.OperationalError("database is locked"),
    ):
        with pytest.raises(DatabaseWriteError):
            members_repo.claim_member("p-bob", 1)
