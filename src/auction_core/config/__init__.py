"""Configuration system."""

from auction_core.config.loader import load_config
from auction_core.config.schema import AppConfig

__all__ = ["AppConfig", "load_config"]
