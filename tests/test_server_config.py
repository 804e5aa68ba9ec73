"""Tests for bitsettler.config loading, overrides and test helpers."""

import configparser
from pathlib import Path

import pytest

from bitsettler.config import (
    FlowSettings,
    ServerConfig,
    _load_from_ini,
    _parse_list,
    config,
    get_config_status,
    load_config,
    print_config_summary,
    use_test_database,
)


@pytest.mark.unit
def test_defaults():
    cfg = ServerConfig()

    assert cfg.server.port == 8000
    assert cfg.flow.search_debounce_ms == 300
    assert cfg.treasury.significant_change == 100
    assert cfg.integrations.game_data_enabled is True


@pytest.mark.unit
def test_env_overrides(monkeypatch):
    monkeypatch.setenv("BITSETTLER_HOST", "127.0.0.1")
    monkeypatch.setenv("BITSETTLER_PORT", "9100")
    monkeypatch.setenv("BITSETTLER_PRODUCTION", "yes")
    monkeypatch.setenv("BITSETTLER_CORS_ORIGINS", "https://a.test, https://b.test")
    monkeypatch.setenv("BITSETTLER_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("BITSETTLER_LOG_LEVEL", "debug")
    monkeypatch.setenv("BITSETTLER_GAME_DATA_URL", "https://game.test/api")
    monkeypatch.setenv("BITSETTLER_GAME_DATA_ENABLED", "false")

    cfg = load_config()

    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 9100
    assert cfg.is_production is True
    assert cfg.security.cors_origins == ["https://a.test", "https://b.test"]
    assert cfg.database.absolute_path == Path("/tmp/other.db")
    assert cfg.logging.level == "DEBUG"
    assert cfg.integrations.game_data_base_url == "https://game.test/api"
    assert cfg.integrations.game_data_enabled is False


@pytest.mark.unit
def test_flow_and_treasury_ini_sections():
    """Flow timings and treasury policy should load from their INI sections."""
    parser = configparser.ConfigParser()
    parser.read_dict(
        {
            "flow": {
                "search_debounce_ms": "150",
                "min_query_length": "3",
                "progress_tick_ms": "100",
                "syncing_members_seconds": "2.5",
            },
            "treasury": {
                "poll_interval_seconds": "60",
                "significant_change": "25",
                "retention_days": "30",
            },
            "integrations": {"public_base_url": "https://settle.test"},
        }
    )

    cfg = ServerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.flow.search_debounce_seconds == 0.15
    assert cfg.flow.min_query_length == 3
    assert cfg.flow.progress_tick_seconds == 0.1
    assert cfg.flow.syncing_members_seconds == 2.5
    assert cfg.flow.connecting_seconds == 1.0
    assert cfg.treasury.poll_interval_seconds == 60.0
    assert cfg.treasury.significant_change == 25
    assert cfg.treasury.retention_days == 30
    assert cfg.treasury.snapshot_interval_hours == 24
    assert cfg.integrations.public_base_url == "https://settle.test"


@pytest.mark.unit
def test_invalid_enum_values_are_ignored():
    parser = configparser.ConfigParser()
    parser.read_dict({"logging": {"format": "xml"}, "security": {"docs_enabled": "maybe"}})

    cfg = ServerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.logging.format == "detailed"
    assert cfg.security.docs_enabled == "auto"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("docs_enabled", "production", "expected"),
    [
        ("auto", False, True),
        ("auto", True, False),
        ("enabled", True, True),
        ("disabled", False, False),
    ],
)
def test_docs_should_be_enabled(docs_enabled, production, expected):
    cfg = ServerConfig()
    cfg.security.docs_enabled = docs_enabled
    cfg.security.production = production

    assert cfg.docs_should_be_enabled is expected


@pytest.mark.unit
def test_parse_list():
    assert _parse_list(" a, ,b ") == ["a", "b"]
    assert _parse_list("  ") == []


@pytest.mark.unit
def test_flow_settings_seconds():
    settings = FlowSettings(search_debounce_ms=300, progress_tick_ms=250)

    assert settings.search_debounce_seconds == 0.3
    assert settings.progress_tick_seconds == 0.25


@pytest.mark.unit
def test_use_test_database_restores_path(tmp_path):
    original = config.database.path

    with use_test_database(tmp_path / "scratch.db") as path:
        assert config.database.absolute_path == tmp_path / "scratch.db"
        assert path == tmp_path / "scratch.db"

    assert config.database.path == original


@pytest.mark.unit
def test_config_status_and_summary(capsys):
    status = get_config_status()

    assert status["game_data_enabled"] is False
    assert "docs_enabled" in status

    print_config_summary()
    assert "BITSETTLER CONFIGURATION" in capsys.readouterr().out
