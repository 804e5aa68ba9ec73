"""Focused tests for ``bitsettler.db.accounts_repo``."""

from __future__ import annotations

from bitsettler.db import accounts_repo
from bitsettler.db.connection import connection_scope


def test_create_account_returns_id_and_token(test_db):
    created = accounts_repo.create_account("alice")

    assert created is not None
    account_id, token = created
    assert account_id > 0
    assert len(token) >= 32


def test_only_token_digest_is_stored(test_db):
    """The plaintext token must never reach the database."""
    _, token = accounts_repo.create_account("alice")

    with connection_scope() as conn:
        row = conn.execute("SELECT token_hash FROM accounts WHERE username = 'alice'").fetchone()

    assert row["token_hash"] == accounts_repo.hash_token(token)
    assert row["token_hash"] != token


def test_duplicate_username_returns_none(accounts):
    assert accounts_repo.create_account("alice") is None


def test_token_lookup(accounts):
    account = accounts_repo.get_account_by_token(accounts["bob"]["token"])

    assert account is not None
    assert account["id"] == accounts["bob"]["id"]
    assert account["username"] == "bob"


def test_token_lookup_stamps_last_seen(accounts):
    accounts_repo.get_account_by_token(accounts["bob"]["token"])

    with connection_scope() as conn:
        row = conn.execute("SELECT last_seen_at FROM accounts WHERE username = 'bob'").fetchone()
    assert row["last_seen_at"] is not None


def test_unknown_token_returns_none(accounts):
    assert accounts_repo.get_account_by_token("not-a-token") is None


def test_rotate_token_invalidates_old_token(accounts):
    old_token = accounts["alice"]["token"]

    new_token = accounts_repo.rotate_token("alice")

    assert new_token is not None
    assert new_token != old_token
    assert accounts_repo.get_account_by_token(old_token) is None
    assert accounts_repo.get_account_by_token(new_token)["username"] == "alice"


def test_rotate_token_for_unknown_user(test_db):
    assert accounts_repo.rotate_token("nobody") is None


def test_deactivated_account_cannot_authenticate(accounts):
    assert accounts_repo.deactivate_account("newbie") is True

    assert accounts_repo.get_account_by_token(accounts["newbie"]["token"]) is None


def test_deactivate_unknown_user(test_db):
    assert accounts_repo.deactivate_account("nobody") is False
