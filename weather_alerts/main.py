"""Cloud Function Entry Point.

This module provides the entry points for Google Cloud Functions.
They are thin wrappers that load configuration and invoke the dispatcher.

The dispatcher (and with it the rate limiter) is created once per
instance and reused across invocations, so the provider budget is
tracked for the lifetime of the instance.
"""

import logging
import os
import json
import threading
from typing import Any

import functions_framework
from flask import Request

from weather_alerts.core.config import Config, validate_config
from weather_alerts.orchestrator import AlertDispatcher, CycleSummary
from weather_alerts.shell.config_loader import load_config, load_config_from_env


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


_dispatcher: AlertDispatcher | None = None
_dispatcher_lock = threading.Lock()


class ConfigurationError(Exception):
    """Configuration failed validation."""


def _get_config() -> Config:
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("CONFIG_FROM_ENV"):
        return load_config_from_env()
    else:
        # Try default config path
        return load_config()


def get_dispatcher() -> AlertDispatcher:
    """Get the instance-wide dispatcher, creating it on first use.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    global _dispatcher

    with _dispatcher_lock:
        if _dispatcher is None:
            config = _get_config()

            result = validate_config(config)
            for warning in result.warnings:
                logger.warning("Config warning: %s: %s", warning.field, warning.message)
            if not result.valid:
                messages = [f"{e.field}: {e.message}" for e in result.critical_errors]
                raise ConfigurationError("; ".join(messages))

            _dispatcher = AlertDispatcher(config)

        return _dispatcher


def _status_code(summary: CycleSummary) -> int:
    if summary.cycle_skipped:
        return 409
    return 200 if summary.success else 207  # 207 = Multi-Status


@functions_framework.http
def weather_alert_dispatch(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point (manual trigger).

    Runs a dispatch cycle immediately.

    Args:
        request: Flask request object (not used, but required by framework)

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    logger.info("Starting weather alert dispatch (HTTP trigger)")

    try:
        dispatcher = get_dispatcher()
        summary = dispatcher.trigger_now()
    except Exception as e:
        logger.exception("Dispatch cycle could not run")
        return {
            "status": "error",
            "message": str(e),
        }, 500

    if summary.errors:
        for error in summary.errors:
            logger.error("Error: %s", error)

    logger.info("Completed: %s", summary.summary)
    return summary.to_dict(), _status_code(summary)


@functions_framework.cloud_event
def weather_alert_dispatch_pubsub(cloud_event: Any) -> None:
    """Pub/Sub Cloud Function entry point.

    Scheduled trigger: Cloud Scheduler publishes every
    dispatch_interval_minutes.

    Args:
        cloud_event: CloudEvent from Pub/Sub
    """
    logger.info("Starting weather alert dispatch (Pub/Sub trigger)")

    try:
        dispatcher = get_dispatcher()
        summary = dispatcher.run_dispatch_cycle()

        logger.info("Completed: %s", summary.summary)

        if summary.errors:
            for error in summary.errors:
                logger.error("Error: %s", error)

    except Exception:
        logger.exception("Unexpected error in weather alert dispatch")
        raise


@functions_framework.http
def rate_limiter_stats(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point (read-only).

    Reports the provider request budget usage of this instance.

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    try:
        dispatcher = get_dispatcher()
    except Exception as e:
        logger.exception("Failed to initialise dispatcher")
        return {
            "status": "error",
            "message": str(e),
        }, 500

    stats = dispatcher.get_rate_limiter_stats()
    return {
        "status": "ok",
        "running": dispatcher.is_running,
        "rate_limits": {
            name: {
                "current": s.current,
                "limit": s.limit,
                "available": s.available,
                "percentage": s.percentage,
            }
            for name, s in stats.items()
        },
    }, 200


# For local testing
if __name__ == "__main__":
    import sys

    from weather_alerts.scheduler import DispatchScheduler

    if "--schedule" in sys.argv:
        print("Running weather alert scheduler locally (Ctrl+C to stop)...")
        scheduler = DispatchScheduler(get_dispatcher())
        try:
            scheduler.run_forever()
        except KeyboardInterrupt:
            scheduler.stop()
        sys.exit(0)

    print("Running one weather alert dispatch cycle locally...")

    # Mock request for local testing
    class MockRequest:
        pass

    response, status = weather_alert_dispatch(MockRequest())
    print(f"\nResponse ({status}):")
    print(json.dumps(response, indent=2))
