"""
Centralized configuration with environment variable overrides.

Credentials, upstream endpoints, transport settings and display limits are
configurable here. Nothing is hardcoded in the client or conversation logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from resy_bot.logging_context import TurnIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ResyConfig:
    """Reservation API credentials and request settings."""

    api_key: str = os.getenv("RESY_API_KEY", "")
    auth_token: str = os.getenv("RESY_AUTH_TOKEN", "")
    base_url: str = os.getenv("RESY_BASE_URL", "https://api.resy.com")
    timeout_sec: float = _safe_float("RESY_TIMEOUT", "15.0")
    strict_venue_match: bool = _safe_bool("RESY_STRICT_VENUE_MATCH", "false")
    default_latitude: float = _safe_float("DEFAULT_LATITUDE", "40.7128")
    default_longitude: float = _safe_float("DEFAULT_LONGITUDE", "-74.006")


@dataclass(frozen=True)
class ModelConfig:
    """Intent extraction model settings."""

    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")


@dataclass(frozen=True)
class TransportConfig:
    """Message transport and gateway settings."""

    recipient_id: str = os.getenv("MY_PHONE") or os.getenv("MY_EMAIL") or ""
    poll_interval_sec: float = _safe_float("POLL_INTERVAL", "2.0")
    imessage_db_path: str = os.path.expanduser(
        os.getenv("IMESSAGE_DB_PATH", "~/Library/Messages/chat.db")
    )
    echo_prefix_length: int = _safe_int("ECHO_PREFIX_LENGTH", "200")


@dataclass(frozen=True)
class DisplayConfig:
    """How many results are fetched and shown at each step."""

    max_venues: int = _safe_int("MAX_VENUES", "5")
    search_per_page: int = _safe_int("SEARCH_PER_PAGE", "20")
    max_slots: int = _safe_int("MAX_SLOTS", "10")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    resy: ResyConfig = field(default_factory=ResyConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = _safe_bool("DEBUG", "false")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.resy.timeout_sec <= 0:
        raise ValueError(f"RESY_TIMEOUT must be > 0, got {config.resy.timeout_sec}")
    if not -90.0 <= config.resy.default_latitude <= 90.0:
        raise ValueError(
            f"DEFAULT_LATITUDE must be between -90 and 90, got {config.resy.default_latitude}"
        )
    if not -180.0 <= config.resy.default_longitude <= 180.0:
        raise ValueError(
            "DEFAULT_LONGITUDE must be between -180 and 180, "
            f"got {config.resy.default_longitude}"
        )
    if config.transport.poll_interval_sec <= 0:
        raise ValueError(
            f"POLL_INTERVAL must be > 0, got {config.transport.poll_interval_sec}"
        )
    if config.transport.echo_prefix_length < 1:
        raise ValueError(
            f"ECHO_PREFIX_LENGTH must be >= 1, got {config.transport.echo_prefix_length}"
        )

    for name, value in [
        ("MAX_VENUES", config.display.max_venues),
        ("SEARCH_PER_PAGE", config.display.search_per_page),
        ("MAX_SLOTS", config.display.max_slots),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    if config.display.search_per_page < config.display.max_venues:
        raise ValueError(
            "SEARCH_PER_PAGE must be >= MAX_VENUES, "
            f"got {config.display.search_per_page} < {config.display.max_venues}"
        )


def require_credentials(config: AppConfig) -> None:
    """Fail fast when a network mode is started without API credentials."""
    missing = [
        env_var
        for env_var, value in [
            ("RESY_API_KEY", config.resy.api_key),
            ("RESY_AUTH_TOKEN", config.resy.auth_token),
            ("OPENAI_API_KEY", config.model.openai_api_key),
        ]
        if not value
    ]
    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    level = logging.DEBUG if config.debug else getattr(
        logging, config.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s [%(turn_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, TurnIdFilter) for f in handler.filters):
            handler.addFilter(TurnIdFilter())
    logger.info("Configuration loaded (model=%s)", config.model.llm_model)
    return config


# Singleton instance
settings = load_config()
