"""Configuration loading: YAML file defaults overlaid with environment values."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from stockwatch.errors import ConfigError
from stockwatch.logging_config import get_logger
from stockwatch.storefront.catalog import COLLECTION_URL
from stockwatch.storefront.modal import DEFAULT_LOCATION_CODE

LOGGER = get_logger(__name__)

CONFIG_ENV = "STOCKWATCH_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.yml")

DEFAULT_CONFIG: dict[str, Any] = {
    "schedule": {"minutes": 5},
    "alerts": {"cooldown_minutes": 30, "enabled": True},
    "location": {"default_code": DEFAULT_LOCATION_CODE},
    "output": {"sqlite_path": "stockwatch.sqlite"},
    "catalog": {
        "path": "catalog/products.yml",
        "collection_url": COLLECTION_URL,
    },
    "dashboard": {"host": "0.0.0.0", "port": 8000},
}


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    if path is None:
        path = Path(os.getenv(CONFIG_ENV, str(DEFAULT_CONFIG_PATH)))
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    else:
        LOGGER.warning("Configuration file %s not found; using defaults", path)
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    return _deep_merge(DEFAULT_CONFIG, data) if data else deepcopy(DEFAULT_CONFIG)


def _positive_number(raw: Any, name: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    telegram_token: str | None
    admin_chat_id: str | None
    check_interval_minutes: float
    cooldown_minutes: float
    notifications_enabled: bool
    default_location_code: str
    sqlite_path: str
    catalog_path: str
    collection_url: str
    dashboard_host: str
    dashboard_port: int


def load_settings(config: dict[str, Any] | None = None, *, require_token: bool = True) -> Settings:
    """Resolve runtime settings; environment variables win over the YAML file.

    Raises :class:`ConfigError` when ``TELEGRAM_BOT_TOKEN`` is missing and
    *require_token* is set, or when a numeric value is invalid.
    """

    config = config if config is not None else load_config()

    token = os.getenv("TELEGRAM_BOT_TOKEN") or None
    if require_token and not token:
        raise ConfigError("TELEGRAM_BOT_TOKEN is required")

    interval = _positive_number(
        os.getenv("CHECK_INTERVAL_MINUTES", config["schedule"].get("minutes", 5)),
        "CHECK_INTERVAL_MINUTES",
    )
    cooldown = _positive_number(
        os.getenv("NOTIFICATION_COOLDOWN_MINUTES", config["alerts"].get("cooldown_minutes", 30)),
        "NOTIFICATION_COOLDOWN_MINUTES",
    )
    location = str(
        os.getenv("DEFAULT_LOCATION_CODE")
        or config["location"].get("default_code")
        or DEFAULT_LOCATION_CODE
    ).strip()

    try:
        port = int(config["dashboard"].get("port", 8000))
    except (TypeError, ValueError) as exc:
        raise ConfigError("dashboard.port must be an integer") from exc

    return Settings(
        telegram_token=token,
        admin_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
        check_interval_minutes=interval,
        cooldown_minutes=cooldown,
        notifications_enabled=_as_bool(config["alerts"].get("enabled", True)),
        default_location_code=location,
        sqlite_path=os.getenv("STOCKWATCH_DB") or config["output"].get("sqlite_path", "stockwatch.sqlite"),
        catalog_path=config["catalog"].get("path", "catalog/products.yml"),
        collection_url=config["catalog"].get("collection_url", COLLECTION_URL),
        dashboard_host=str(config["dashboard"].get("host", "0.0.0.0")),
        dashboard_port=port,
    )
