"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Open-Meteo weather client (HTTP)
- Firebase Cloud Messaging client (push)
- Firestore client (database)
- Cooldown store (window enforcement over Firestore)
- Configuration loading (environment/files)

Keep this layer thin and simple. All business logic should be in core.
"""

from weather_alerts.shell.weather_client import OpenMeteoClient, WeatherDataError
from weather_alerts.shell.push_client import FCMClient, PushErrorClass, PushOutcome
from weather_alerts.shell.firestore_client import FirestoreClient, FirestoreConfig
from weather_alerts.shell.cooldown_store import CooldownStore
from weather_alerts.shell.config_loader import load_config, Config

__all__ = [
    "OpenMeteoClient",
    "WeatherDataError",
    "FCMClient",
    "PushErrorClass",
    "PushOutcome",
    "FirestoreClient",
    "FirestoreConfig",
    "CooldownStore",
    "load_config",
    "Config",
]
