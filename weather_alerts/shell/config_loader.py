"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, RateLimitConfig, CooldownConfig) are defined in
weather_alerts/core/config.py to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from weather_alerts.core.config import Config, CooldownConfig, RateLimitConfig


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/config.yaml"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _resolve_value(value: Any) -> Any:
    """Resolve a value that may be a ${ENV_VAR} placeholder.

    Unset variables are left as the literal placeholder and a warning is
    logged.

    Args:
        value: Value to resolve

    Returns:
        Resolved value
    """
    if not isinstance(value, str):
        return value

    if value.startswith("${") and value.endswith("}"):
        var_name = value[2:-1]
        env_value = os.environ.get(var_name)
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", var_name)

    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _optional_str(value: Any) -> str | None:
    value = _resolve_value(value)
    if value is None or value == "":
        return None
    # Unset placeholder means "use the default"
    if isinstance(value, str) and value.startswith("${"):
        return None
    return str(value)


def _parse_rate_limit(data: dict[str, Any]) -> RateLimitConfig:
    """Parse the provider request budget from config data."""
    defaults = RateLimitConfig()
    return RateLimitConfig(
        per_second=int(_resolve_value(data.get("per_second", defaults.per_second))),
        per_hour=int(_resolve_value(data.get("per_hour", defaults.per_hour))),
        per_day=int(_resolve_value(data.get("per_day", defaults.per_day))),
        max_wait_ms=int(_resolve_value(data.get("max_wait_ms", defaults.max_wait_ms))),
    )


def _parse_cooldown(data: dict[str, Any]) -> CooldownConfig:
    """Parse cooldown settings from config data."""
    defaults = CooldownConfig()
    return CooldownConfig(
        window_minutes=int(_resolve_value(data.get("window_minutes", defaults.window_minutes))),
        retention_minutes=int(
            _resolve_value(data.get("retention_minutes", defaults.retention_minutes))
        ),
    )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    This is a pure-ish function (only env var expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    defaults = Config()
    firestore = data.get("firestore", {}) or {}
    push = data.get("push", {}) or {}

    return Config(
        dispatch_interval_minutes=int(
            _resolve_value(data.get("dispatch_interval_minutes", defaults.dispatch_interval_minutes))
        ),
        coordinate_precision=int(
            _resolve_value(data.get("coordinate_precision", defaults.coordinate_precision))
        ),
        cycle_deadline_seconds=int(
            _resolve_value(data.get("cycle_deadline_seconds", defaults.cycle_deadline_seconds))
        ),
        weather_timeout_seconds=int(
            _resolve_value(data.get("weather_timeout_seconds", defaults.weather_timeout_seconds))
        ),
        rate_limit=_parse_rate_limit(data.get("rate_limit", {}) or {}),
        cooldown=_parse_cooldown(data.get("cooldown", {}) or {}),
        firestore_database=_optional_str(firestore.get("database")),
        users_collection=firestore.get("users_collection", defaults.users_collection),
        devices_collection=firestore.get("devices_collection", defaults.devices_collection),
        cooldown_collection=firestore.get("cooldown_collection", defaults.cooldown_collection),
        firebase_credentials_path=_optional_str(push.get("credentials_path")),
        push_dry_run=_as_bool(_resolve_value(push.get("dry_run", False))),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: every %d min, budget %d/s %d/h %d/day, cooldown %d min",
        config.dispatch_interval_minutes,
        config.rate_limit.per_second,
        config.rate_limit.per_hour,
        config.rate_limit.per_day,
        config.cooldown.window_minutes,
    )

    return config


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Useful for deployments without a YAML file. Unset variables keep
    their defaults.

    Environment variables:
        DISPATCH_INTERVAL_MINUTES: Scheduler interval
        COORDINATE_PRECISION: Decimal places kept when clustering
        CYCLE_DEADLINE_SECONDS: Per-cycle deadline (0 = none)
        RATE_LIMIT_PER_SECOND / RATE_LIMIT_PER_HOUR / RATE_LIMIT_PER_DAY: Provider budget
        RATE_LIMIT_MAX_WAIT_MS: Longest wait for budget
        COOLDOWN_MINUTES: Notification suppression window
        COOLDOWN_RETENTION_MINUTES: How long cooldown records are kept
        WEATHER_TIMEOUT_SECONDS: Timeout for each weather provider request
        FIRESTORE_DATABASE: Firestore database name
        USERS_COLLECTION / DEVICES_COLLECTION / COOLDOWN_COLLECTION: Firestore collections
        FIREBASE_CREDENTIALS_PATH: Service account JSON for FCM
        PUSH_DRY_RUN: Validate push messages without delivering

    Returns:
        Config object from environment
    """
    env = os.environ

    def env_int(name: str, default: int) -> int:
        raw = env.get(name)
        return int(raw) if raw else default

    defaults = Config()
    rate_defaults = RateLimitConfig()
    cooldown_defaults = CooldownConfig()

    return Config(
        dispatch_interval_minutes=env_int(
            "DISPATCH_INTERVAL_MINUTES", defaults.dispatch_interval_minutes,
        ),
        coordinate_precision=env_int("COORDINATE_PRECISION", defaults.coordinate_precision),
        cycle_deadline_seconds=env_int("CYCLE_DEADLINE_SECONDS", defaults.cycle_deadline_seconds),
        rate_limit=RateLimitConfig(
            per_second=env_int("RATE_LIMIT_PER_SECOND", rate_defaults.per_second),
            per_hour=env_int("RATE_LIMIT_PER_HOUR", rate_defaults.per_hour),
            per_day=env_int("RATE_LIMIT_PER_DAY", rate_defaults.per_day),
            max_wait_ms=env_int("RATE_LIMIT_MAX_WAIT_MS", rate_defaults.max_wait_ms),
        ),
        cooldown=CooldownConfig(
            window_minutes=env_int("COOLDOWN_MINUTES", cooldown_defaults.window_minutes),
            retention_minutes=env_int(
                "COOLDOWN_RETENTION_MINUTES", cooldown_defaults.retention_minutes,
            ),
        ),
        weather_timeout_seconds=env_int(
            "WEATHER_TIMEOUT_SECONDS", defaults.weather_timeout_seconds,
        ),
        firestore_database=env.get("FIRESTORE_DATABASE") or None,
        users_collection=env.get("USERS_COLLECTION") or defaults.users_collection,
        devices_collection=env.get("DEVICES_COLLECTION") or defaults.devices_collection,
        cooldown_collection=env.get("COOLDOWN_COLLECTION") or defaults.cooldown_collection,
        firebase_credentials_path=env.get("FIREBASE_CREDENTIALS_PATH") or None,
        push_dry_run=_as_bool(env.get("PUSH_DRY_RUN", "false")),
    )
