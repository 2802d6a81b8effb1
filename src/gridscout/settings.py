"""Static configuration for gridscout.

All user-editable settings (database, retention, notifications, logging)
live in a single JSON file for quick edits without touching Python. Secrets
stay in the environment (.env).
"""

import json
import os
from datetime import timedelta

from dotenv import load_dotenv

from gridscout.core.config import NotificationConfig, RetryConfig, StoreConfig

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

CONFIG_PATH = os.getenv("GRIDSCOUT_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Where to store the SQLite blob database.
_database = _CONFIG.get("database", {})
DB_PATH = _resolve_path(_database.get("path", "gridscout.db"))

# Retention for scout liveness and local reports.
_store = _CONFIG.get("store", {})
STORE_CONFIG = StoreConfig(
    liveness_window=timedelta(seconds=int(_store.get("liveness_window_seconds", 300))),
    max_local_reports=int(_store.get("max_local_reports", 5000)),
)

# Cooldowns and retry policy for notifications.
# - DELIVERY_METHOD: "client" (Telethon session) or "bot" (Bot API)
_notifications = _CONFIG.get("notifications", {})
DELIVERY_METHOD = _notifications.get("delivery_method", "bot")
_cooldowns = _notifications.get("cooldown_seconds", {})
_retry = _notifications.get("retry", {})
NOTIFICATION_CONFIG = NotificationConfig(
    scout_login_cooldown=timedelta(seconds=int(_cooldowns.get("scout_login", 300))),
    enemy_sighting_cooldown=timedelta(seconds=int(_cooldowns.get("enemy_sighting", 600))),
    on_grid_threat_cooldown=timedelta(seconds=int(_cooldowns.get("on_grid_threat", 120))),
    spy_behavior_cooldown=timedelta(seconds=int(_cooldowns.get("spy_behavior", 600))),
    retry=RetryConfig(
        max_attempts=int(_retry.get("max_attempts", 3)),
        base_delay=float(_retry.get("base_delay_ms", 200)) / 1000,
        max_jitter=float(_retry.get("max_jitter_ms", 75)) / 1000,
    ),
)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
