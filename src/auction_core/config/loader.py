"""Config loader — reads YAML, applies AUCTION_* env var overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from auction_core.config.schema import AppConfig

# env var -> (section, key)
_ENV_OVERRIDES = {
    "AUCTION_DATABASE_URL": ("database", "url"),
    "AUCTION_LOG_LEVEL": ("logging", "level"),
    "AUCTION_LOG_FORMAT": ("logging", "format"),
    "AUCTION_ANTI_SNIPE_WINDOW_SECONDS": ("auction", "anti_snipe_window_s"),
    "AUCTION_ANTI_SNIPE_EXTENSION_SECONDS": ("auction", "anti_snipe_extension_s"),
    "AUCTION_SCHEDULER_TICK_SECONDS": ("scheduler", "tick_interval_s"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults.

    Environment variable overrides:
        AUCTION_DATABASE_URL                  -> database.url
        AUCTION_REDIS_URL                     -> rank_store.redis_url, events.redis_url
        AUCTION_LOG_LEVEL                     -> logging.level
        AUCTION_LOG_FORMAT                    -> logging.format
        AUCTION_ANTI_SNIPE_WINDOW_SECONDS     -> auction.anti_snipe_window_s
        AUCTION_ANTI_SNIPE_EXTENSION_SECONDS  -> auction.anti_snipe_extension_s
        AUCTION_SCHEDULER_TICK_SECONDS        -> scheduler.tick_interval_s
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value

    redis_url = os.environ.get("AUCTION_REDIS_URL")
    if redis_url:
        data.setdefault("rank_store", {})["redis_url"] = redis_url
        data.setdefault("events", {})["redis_url"] = redis_url

    return AppConfig.model_validate(data)
