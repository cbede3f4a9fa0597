"""Tests for the Configuration Loader module.

Tests configuration loading from YAML files and environment variables.
"""

import os
import tempfile
from pathlib import Path
from unittest.mock import patch

from weather_alerts.core.config import Config
from weather_alerts.shell.config_loader import (
    _resolve_value,
    load_config,
    load_config_from_dict,
    load_config_from_env,
)


class TestResolveValue:
    """Tests for _resolve_value function."""

    def test_returns_non_string_unchanged(self):
        """Non-string values are returned unchanged."""
        assert _resolve_value(123) == 123
        assert _resolve_value(None) is None
        assert _resolve_value(True) is True

    def test_returns_plain_string_unchanged(self):
        assert _resolve_value("hello") == "hello"

    def test_resolves_env_var_placeholder(self):
        """Resolves ${VAR} placeholders from environment."""
        with patch.dict(os.environ, {"TEST_VAR": "test_value"}):
            assert _resolve_value("${TEST_VAR}") == "test_value"

    def test_returns_placeholder_if_env_var_not_set(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _resolve_value("${UNDEFINED_VAR}") == "${UNDEFINED_VAR}"


class TestLoadConfigFromDict:
    """Tests for load_config_from_dict function."""

    def test_empty_dict_gives_defaults(self):
        assert load_config_from_dict({}) == Config()

    def test_full_config(self):
        config = load_config_from_dict({
            "dispatch_interval_minutes": 15,
            "coordinate_precision": 3,
            "cycle_deadline_seconds": 0,
            "rate_limit": {"per_second": 2, "per_hour": 20, "per_day": 400, "max_wait_ms": 1000},
            "cooldown": {"window_minutes": 30, "retention_minutes": 90},
            "firestore": {"database": "alerts", "users_collection": "people"},
            "push": {"credentials_path": "/secrets/sa.json", "dry_run": True},
        })

        assert config.dispatch_interval_minutes == 15
        assert config.coordinate_precision == 3
        assert config.cycle_deadline_seconds == 0
        assert config.rate_limit.per_hour == 20
        assert config.rate_limit.max_wait_ms == 1000
        assert config.cooldown.window_minutes == 30
        assert config.firestore_database == "alerts"
        assert config.users_collection == "people"
        assert config.devices_collection == "devices"
        assert config.firebase_credentials_path == "/secrets/sa.json"
        assert config.push_dry_run is True

    def test_partial_rate_limit_keeps_defaults(self):
        config = load_config_from_dict({"rate_limit": {"per_day": 1000}})

        assert config.rate_limit.per_second == 3
        assert config.rate_limit.per_hour == 25
        assert config.rate_limit.per_day == 1000

    def test_env_placeholders_resolved(self):
        with patch.dict(os.environ, {"DB_NAME": "prod", "HOURLY": "40"}):
            config = load_config_from_dict({
                "firestore": {"database": "${DB_NAME}"},
                "rate_limit": {"per_hour": "${HOURLY}"},
            })

        assert config.firestore_database == "prod"
        assert config.rate_limit.per_hour == 40

    def test_unset_optional_placeholder_is_none(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_dict({
                "push": {"credentials_path": "${FIREBASE_CREDENTIALS_PATH}"},
            })

        assert config.firebase_credentials_path is None

    def test_dry_run_string(self):
        assert load_config_from_dict({"push": {"dry_run": "yes"}}).push_dry_run is True
        assert load_config_from_dict({"push": {"dry_run": "false"}}).push_dry_run is False


class TestLoadConfig:
    """Tests for load_config function."""

    def test_missing_file_gives_defaults(self):
        assert load_config("/nonexistent/config.yaml") == Config()

    def test_empty_file_gives_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("")

            assert load_config(path) == Config()

    def test_reads_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text(
                "dispatch_interval_minutes: 5\n"
                "rate_limit:\n"
                "  per_hour: 50\n"
                "cooldown:\n"
                "  window_minutes: 45\n"
            )

            config = load_config(path)

        assert config.dispatch_interval_minutes == 5
        assert config.rate_limit.per_hour == 50
        assert config.cooldown.window_minutes == 45

    def test_uses_config_path_env(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "custom.yaml"
            path.write_text("coordinate_precision: 1\n")

            with patch.dict(os.environ, {"CONFIG_PATH": str(path)}):
                config = load_config()

        assert config.coordinate_precision == 1


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env function."""

    def test_defaults_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert load_config_from_env() == Config()

    def test_reads_variables(self):
        env = {
            "DISPATCH_INTERVAL_MINUTES": "20",
            "RATE_LIMIT_PER_HOUR": "30",
            "COOLDOWN_MINUTES": "90",
            "COOLDOWN_RETENTION_MINUTES": "180",
            "FIRESTORE_DATABASE": "alerts",
            "PUSH_DRY_RUN": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config_from_env()

        assert config.dispatch_interval_minutes == 20
        assert config.rate_limit.per_hour == 30
        assert config.rate_limit.per_second == 3
        assert config.cooldown.window_minutes == 90
        assert config.cooldown.retention_minutes == 180
        assert config.firestore_database == "alerts"
        assert config.push_dry_run is True

    def test_reads_timeout_and_collections(self):
        env = {
            "WEATHER_TIMEOUT_SECONDS": "25",
            "USERS_COLLECTION": "people",
            "DEVICES_COLLECTION": "phones",
            "COOLDOWN_COLLECTION": "recent_alerts",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config_from_env()

        assert config.weather_timeout_seconds == 25
        assert config.users_collection == "people"
        assert config.devices_collection == "phones"
        assert config.cooldown_collection == "recent_alerts"
