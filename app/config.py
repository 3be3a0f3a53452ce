"""
Configuration for the Chamber Edge Node
=======================================
Runtime settings for the gateway client, coordinator sync, network time and
the periodic drivers. Values come from environment variables with defaults
suitable for a single Home Assistant box.
Setups the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.domain.exceptions import ConfigurationError

DEFAULT_CHAMBER_SUFFIXES = "room1,room2,room3,galo,sb4,oreol,sb1"
DEFAULT_NTP_SERVERS = "ru.pool.ntp.org,europe.pool.ntp.org,0.ru.pool.ntp.org,1.ru.pool.ntp.org,pool.ntp.org"

# Fixed delay after the last scheduled end before an experiment is completed.
COMPLETION_GRACE_SECONDS = 300


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("EDGE_ENV", "development"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("EDGE_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("EDGE_LOG_FILE", "logs/chamber_edge.log"))

    host: str = field(default_factory=lambda: os.getenv("EDGE_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 8090))
    database_path: str = field(default_factory=lambda: os.getenv("EDGE_DATABASE_PATH", "database/chamber_edge.db"))

    # Device gateway (Home Assistant)
    ha_url: str = field(default_factory=lambda: os.getenv("HA_URL", "http://localhost:8123"))
    ha_token: str = field(default_factory=lambda: os.getenv("HA_TOKEN", ""))
    ha_timeout_seconds: int = field(default_factory=lambda: _env_int("HA_TIMEOUT", 10))
    ha_connect_retry_seconds: int = field(default_factory=lambda: _env_int("HA_CONNECT_RETRY", 10))

    # Remote coordinator
    backend_url: str = field(default_factory=lambda: os.getenv("BACKEND_URL", "http://localhost:8080/api"))
    backend_api_key: str = field(default_factory=lambda: os.getenv("BACKEND_API_KEY", ""))
    backend_timeout_seconds: int = field(default_factory=lambda: _env_int("BACKEND_TIMEOUT", 30))

    # Chamber identity
    chamber_name: str = field(default_factory=lambda: os.getenv("CHAMBER_NAME", "Climate Chamber"))
    local_ip: str = field(default_factory=lambda: os.getenv("LOCAL_IP", ""))
    chamber_suffixes: list[str] = field(
        default_factory=lambda: _env_list("CHAMBER_SUFFIXES", DEFAULT_CHAMBER_SUFFIXES)
    )

    # Periodic drivers (seconds)
    heartbeat_interval: int = field(default_factory=lambda: _env_int("HEARTBEAT_INTERVAL", 30))
    sync_interval: int = field(default_factory=lambda: _env_int("SYNC_INTERVAL", 60))
    execution_interval: int = field(default_factory=lambda: _env_int("EXECUTION_INTERVAL", 60))
    tracker_interval: int = field(default_factory=lambda: _env_int("TRACKER_INTERVAL", 120))
    registration_retry_interval: int = field(default_factory=lambda: _env_int("REGISTRATION_RETRY_INTERVAL", 60))
    heartbeat_timeout: int = field(default_factory=lambda: _env_int("HEARTBEAT_TIMEOUT", 120))
    completion_grace_seconds: int = COMPLETION_GRACE_SECONDS
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("EDGE_SCHEDULER_WORKERS", 4))

    # Network time
    ntp_enabled: bool = field(default_factory=lambda: _env_bool("NTP_ENABLED", True))
    ntp_servers: list[str] = field(default_factory=lambda: _env_list("NTP_SERVERS", DEFAULT_NTP_SERVERS))
    ntp_timeout_seconds: int = field(default_factory=lambda: _env_int("NTP_TIMEOUT", 5))
    ntp_sync_interval: int = field(default_factory=lambda: _env_int("NTP_SYNC_INTERVAL", 300))
    timezone: str = field(default_factory=lambda: os.getenv("TIMEZONE", "Europe/Moscow"))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        intervals = {
            "HEARTBEAT_INTERVAL": self.heartbeat_interval,
            "SYNC_INTERVAL": self.sync_interval,
            "EXECUTION_INTERVAL": self.execution_interval,
            "TRACKER_INTERVAL": self.tracker_interval,
            "REGISTRATION_RETRY_INTERVAL": self.registration_retry_interval,
            "NTP_SYNC_INTERVAL": self.ntp_sync_interval,
            "HA_TIMEOUT": self.ha_timeout_seconds,
            "BACKEND_TIMEOUT": self.backend_timeout_seconds,
            "NTP_TIMEOUT": self.ntp_timeout_seconds,
        }
        for name, value in intervals.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

        if self.heartbeat_timeout <= self.heartbeat_interval:
            raise ConfigurationError("HEARTBEAT_TIMEOUT must be greater than HEARTBEAT_INTERVAL")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown timezone: {self.timezone}") from None

        if self.ntp_enabled and not self.ntp_servers:
            raise ConfigurationError("NTP_ENABLED is set but NTP_SERVERS is empty")

        # The gateway rejects every call without a long-lived token.
        if self.environment == "production" and not self.ha_token:
            raise ConfigurationError("HA_TOKEN must be set in production")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "DEBUG": self.DEBUG,
            "DATABASE_PATH": self.database_path,
            "CHAMBER_NAME": self.chamber_name,
            "JSON_AS_ASCII": False,
        }


def setup_logging(debug: bool = False, log_level: str = "INFO", log_file: str = "logs/chamber_edge.log") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    level = logging.DEBUG if debug else logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(level)

    # Keep existing handlers but avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "edge_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "edge_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "edge_console"
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "edge_file"
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"edge_console", "edge_file"}:
            handler.setLevel(level)

    if added_handler:
        root.info(f"Logging initialized at level: {logging.getLevelName(level)}")

    if _env_bool("EDGE_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # urllib3 logs every pooled connection at DEBUG; the gateway is polled every minute
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
