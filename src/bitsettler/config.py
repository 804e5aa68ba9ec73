"""
Server configuration management.

This module handles loading and accessing configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from bitsettler.config import config

    print(config.server.port)
    print(config.flow.search_debounce_seconds)
    print(config.treasury.poll_interval_seconds)

Environment Variable Mapping:
    BITSETTLER_HOST               -> server.host
    BITSETTLER_PORT               -> server.port
    BITSETTLER_PRODUCTION         -> security.production
    BITSETTLER_CORS_ORIGINS       -> security.cors_origins
    BITSETTLER_DB_PATH            -> database.path
    BITSETTLER_LOG_LEVEL          -> logging.level
    BITSETTLER_GAME_DATA_URL      -> integrations.game_data_base_url
    BITSETTLER_GAME_DATA_ENABLED  -> integrations.game_data_enabled
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

ENV_PREFIX = "BITSETTLER_"


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 8000


@dataclass
class SecuritySettings:
    """Security-related configuration."""

    production: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = field(default_factory=lambda: ["*"])
    cors_allow_headers: list[str] = field(default_factory=lambda: ["*"])
    docs_enabled: Literal["auto", "enabled", "disabled"] = "auto"


@dataclass
class DatabaseSettings:
    """Database configuration."""

    path: str = "data/bitsettler.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class IntegrationSettings:
    """Upstream game-data API used for settlement search and roster sync."""

    game_data_enabled: bool = True
    game_data_base_url: str = "https://bitjita.com/api"
    game_data_timeout_seconds: float = 15.0
    game_data_app_identifier: str = "bitsettler"
    public_base_url: str = "http://localhost:3000"


@dataclass
class FlowSettings:
    """Timing knobs for the onboarding / claim / switch flows."""

    search_debounce_ms: int = 300
    min_query_length: int = 2
    progress_tick_ms: int = 250
    connecting_seconds: float = 1.0
    syncing_members_seconds: float = 6.0
    syncing_citizens_seconds: float = 3.0

    @property
    def search_debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000

    @property
    def progress_tick_seconds(self) -> float:
        return self.progress_tick_ms / 1000


@dataclass
class TreasurySettings:
    """Treasury polling and snapshot retention."""

    poll_interval_seconds: float = 300.0
    significant_change: int = 100
    snapshot_interval_hours: int = 24
    retention_days: int = 180


@dataclass
class ServerConfig:
    """
    Complete configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    integrations: IntegrationSettings = field(default_factory=IntegrationSettings)
    flow: FlowSettings = field(default_factory=FlowSettings)
    treasury: TreasurySettings = field(default_factory=TreasurySettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.production

    @property
    def docs_should_be_enabled(self) -> bool:
        """Determine if API docs should be enabled based on settings."""
        if self.security.docs_enabled == "enabled":
            return True
        if self.security.docs_enabled == "disabled":
            return False
        # "auto" - follow production setting
        return not self.is_production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Security section
    if parser.has_section("security"):
        if parser.has_option("security", "production"):
            cfg.security.production = _parse_bool(parser.get("security", "production"))
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "cors_allow_credentials"):
            cfg.security.cors_allow_credentials = _parse_bool(
                parser.get("security", "cors_allow_credentials")
            )
        if parser.has_option("security", "docs_enabled"):
            val = parser.get("security", "docs_enabled").lower()
            if val in ("auto", "enabled", "disabled"):
                cfg.security.docs_enabled = val  # type: ignore[assignment]

    # Database section
    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]

    # Integrations section
    if parser.has_section("integrations"):
        if parser.has_option("integrations", "game_data_enabled"):
            cfg.integrations.game_data_enabled = _parse_bool(
                parser.get("integrations", "game_data_enabled")
            )
        if parser.has_option("integrations", "game_data_base_url"):
            cfg.integrations.game_data_base_url = parser.get("integrations", "game_data_base_url")
        if parser.has_option("integrations", "game_data_timeout_seconds"):
            cfg.integrations.game_data_timeout_seconds = parser.getfloat(
                "integrations", "game_data_timeout_seconds"
            )
        if parser.has_option("integrations", "game_data_app_identifier"):
            cfg.integrations.game_data_app_identifier = parser.get(
                "integrations", "game_data_app_identifier"
            )
        if parser.has_option("integrations", "public_base_url"):
            cfg.integrations.public_base_url = parser.get("integrations", "public_base_url")

    # Flow section
    if parser.has_section("flow"):
        if parser.has_option("flow", "search_debounce_ms"):
            cfg.flow.search_debounce_ms = parser.getint("flow", "search_debounce_ms")
        if parser.has_option("flow", "min_query_length"):
            cfg.flow.min_query_length = parser.getint("flow", "min_query_length")
        if parser.has_option("flow", "progress_tick_ms"):
            cfg.flow.progress_tick_ms = parser.getint("flow", "progress_tick_ms")
        if parser.has_option("flow", "connecting_seconds"):
            cfg.flow.connecting_seconds = parser.getfloat("flow", "connecting_seconds")
        if parser.has_option("flow", "syncing_members_seconds"):
            cfg.flow.syncing_members_seconds = parser.getfloat("flow", "syncing_members_seconds")
        if parser.has_option("flow", "syncing_citizens_seconds"):
            cfg.flow.syncing_citizens_seconds = parser.getfloat("flow", "syncing_citizens_seconds")

    # Treasury section
    if parser.has_section("treasury"):
        if parser.has_option("treasury", "poll_interval_seconds"):
            cfg.treasury.poll_interval_seconds = parser.getfloat(
                "treasury", "poll_interval_seconds"
            )
        if parser.has_option("treasury", "significant_change"):
            cfg.treasury.significant_change = parser.getint("treasury", "significant_change")
        if parser.has_option("treasury", "snapshot_interval_hours"):
            cfg.treasury.snapshot_interval_hours = parser.getint(
                "treasury", "snapshot_interval_hours"
            )
        if parser.has_option("treasury", "retention_days"):
            cfg.treasury.retention_days = parser.getint("treasury", "retention_days")


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv(f"{ENV_PREFIX}HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv(f"{ENV_PREFIX}PORT"):
        cfg.server.port = int(env_port)

    # Security settings
    if env_production := os.getenv(f"{ENV_PREFIX}PRODUCTION"):
        cfg.security.production = _parse_bool(env_production)
    if env_cors := os.getenv(f"{ENV_PREFIX}CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)

    # Database settings
    if env_db := os.getenv(f"{ENV_PREFIX}DB_PATH"):
        cfg.database.path = env_db

    # Logging settings
    if env_log := os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
        cfg.logging.level = env_log.upper()

    # Integration settings
    if env_url := os.getenv(f"{ENV_PREFIX}GAME_DATA_URL"):
        cfg.integrations.game_data_base_url = env_url
    if env_enabled := os.getenv(f"{ENV_PREFIX}GAME_DATA_ENABLED"):
        cfg.integrations.game_data_enabled = _parse_bool(env_enabled)


def load_config() -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Use sparingly as it
    doesn't update already-running server middleware.

    Returns:
        ServerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    "json": (
        '{"time": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
    ),
}


def configure_logging() -> None:
    """Apply the configured log level and format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, config.logging.level, logging.INFO),
        format=LOG_FORMATS[config.logging.format],
        force=True,
    )


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information,
    useful for debugging and the health endpoint.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "production_mode": config.is_production,
        "cors_origins_count": len(config.security.cors_origins),
        "docs_enabled": config.docs_should_be_enabled,
        "game_data_enabled": config.integrations.game_data_enabled,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("BITSETTLER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Production:  {config.is_production}")
    print(f"Docs enabled: {config.docs_should_be_enabled}")
    print(f"Database:    {config.database.absolute_path}")
    print(f"Game data:   {config.integrations.game_data_base_url}")
    print(f"Log level:   {config.logging.level}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from bitsettler.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                init_database()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
