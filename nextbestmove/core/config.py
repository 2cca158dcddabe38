"""Configuration management for NextBestMove.

Loads configuration from environment variables and .env file.
Provides validation and sensible defaults.

Usage:
    from nextbestmove.core.config import get_config, validate_config

    config = get_config()
    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"Config issue: {issue}")
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from nextbestmove.core.exceptions import ConfigurationError

SUPPORTED_CALENDAR_PROVIDERS = ("google", "outlook")


@dataclass
class Config:
    """Application configuration.

    Attributes:
        db_path: Path to SQLite database file
        log_path: Directory for log files
        timezone: Default IANA timezone for calendar lookups
        work_start_hour: Start of the working window (0-23)
        work_end_hour: End of the working window (1-24)
        max_actions_per_day: Max pending actions per relationship per day
        calendar_provider: google or outlook (optional)
        calendar_access_token: OAuth access token for the provider (optional)
        calendar_timeout: HTTP timeout for free/busy calls, in seconds
        debug: Enable debug mode
    """

    db_path: Path = field(
        default_factory=lambda: Path.home() / ".nextbestmove" / "nextbestmove.db"
    )
    log_path: Path = field(default_factory=lambda: Path.home() / ".nextbestmove" / "logs")
    timezone: str = "UTC"
    work_start_hour: int = 9
    work_end_hour: int = 17
    max_actions_per_day: int = 2

    calendar_provider: Optional[str] = None
    calendar_access_token: Optional[str] = None
    calendar_timeout: int = 10

    debug: bool = False


def load_env_file(path: Path) -> dict[str, str]:
    """Parse .env file.

    Handles:
        - KEY=VALUE format
        - Comments (lines starting with #)
        - Blank lines
        - Quoted values

    Args:
        path: Path to .env file

    Returns:
        Dictionary of environment variables
    """
    env_vars: dict[str, str] = {}

    if not path.exists():
        return env_vars

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()

                if value and value[0] in ('"', "'") and value[-1] == value[0]:
                    value = value[1:-1]

                if key:
                    env_vars[key] = value

    return env_vars


def _get_path(key: str, default: Path, env_vars: dict[str, str]) -> Path:
    """Get path from environment, expanding ~ and resolving."""
    value = os.environ.get(key) or env_vars.get(key)
    if value:
        return Path(value).expanduser().resolve()
    return default


def _get_str(key: str, env_vars: dict[str, str]) -> Optional[str]:
    """Get string from environment."""
    return os.environ.get(key) or env_vars.get(key) or None


def _get_bool(key: str, default: bool, env_vars: dict[str, str]) -> bool:
    """Get boolean from environment."""
    value = os.environ.get(key) or env_vars.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_int(key: str, default: int, env_vars: dict[str, str]) -> int:
    """Get integer from environment.

    Raises:
        ConfigurationError: If the value is not an integer
    """
    value = os.environ.get(key) or env_vars.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e


DEFAULT_DB_PATH = Path.home() / ".nextbestmove" / "nextbestmove.db"
DEFAULT_LOG_PATH = Path.home() / ".nextbestmove" / "logs"


def load_config(env_file: Optional[Path] = None) -> Config:
    """Load configuration from environment and .env file.

    Priority:
        1. Environment variables (highest)
        2. .env file
        3. Default values (lowest)

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Loaded configuration
    """
    if env_file is None:
        env_file = Path.cwd() / ".env"

    env_vars = load_env_file(Path(env_file))

    provider = _get_str("CALENDAR_PROVIDER", env_vars)

    return Config(
        db_path=_get_path("NEXTMOVE_DB_PATH", DEFAULT_DB_PATH, env_vars),
        log_path=_get_path("NEXTMOVE_LOG_PATH", DEFAULT_LOG_PATH, env_vars),
        timezone=_get_str("NEXTMOVE_TIMEZONE", env_vars) or "UTC",
        work_start_hour=_get_int("NEXTMOVE_WORK_START_HOUR", 9, env_vars),
        work_end_hour=_get_int("NEXTMOVE_WORK_END_HOUR", 17, env_vars),
        max_actions_per_day=_get_int("NEXTMOVE_MAX_ACTIONS_PER_DAY", 2, env_vars),
        calendar_provider=provider.lower() if provider else None,
        calendar_access_token=_get_str("CALENDAR_ACCESS_TOKEN", env_vars),
        calendar_timeout=_get_int("CALENDAR_TIMEOUT", 10, env_vars),
        debug=_get_bool("NEXTMOVE_DEBUG", False, env_vars),
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration.

    Checks:
        - Database and log directories exist or can be created
        - Working window is a sane range of hours
        - Calendar provider and token are supplied together

    Args:
        config: Configuration to validate

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    db_dir = config.db_path.parent
    try:
        db_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(db_dir, os.W_OK):
            issues.append(f"Database directory not writable: {db_dir}")
    except OSError as e:
        issues.append(f"Cannot create database directory {db_dir}: {e}")

    try:
        config.log_path.mkdir(parents=True, exist_ok=True)
        if not os.access(config.log_path, os.W_OK):
            issues.append(f"Log directory not writable: {config.log_path}")
    except OSError as e:
        issues.append(f"Cannot create log directory {config.log_path}: {e}")

    if not (0 <= config.work_start_hour < config.work_end_hour <= 24):
        issues.append(
            f"Invalid working window: {config.work_start_hour}:00-{config.work_end_hour}:00"
        )

    if config.max_actions_per_day < 1:
        issues.append(
            f"NEXTMOVE_MAX_ACTIONS_PER_DAY must be at least 1, got {config.max_actions_per_day}"
        )

    if config.calendar_provider and config.calendar_provider not in SUPPORTED_CALENDAR_PROVIDERS:
        issues.append(
            f"Unknown CALENDAR_PROVIDER {config.calendar_provider!r}. "
            f"Expected one of: {', '.join(SUPPORTED_CALENDAR_PROVIDERS)}."
        )

    if config.calendar_provider and not config.calendar_access_token:
        issues.append(
            "CRITICAL: CALENDAR_PROVIDER is set but CALENDAR_ACCESS_TOKEN is missing. "
            "Capacity will fall back to the default level."
        )
    if config.calendar_access_token and not config.calendar_provider:
        issues.append(
            "CALENDAR_ACCESS_TOKEN is set without CALENDAR_PROVIDER. The token is ignored."
        )

    return issues


_config: Optional[Config] = None


def get_config() -> Config:
    """Return cached configuration singleton.

    Loads configuration on first call, returns cached version thereafter.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset cached configuration.

    Used primarily for testing.
    """
    global _config
    _config = None
