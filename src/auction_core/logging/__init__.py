"""Structured logging."""

from auction_core.logging.setup import bound_round, get_logger, setup_logging

__all__ = ["bound_round", "get_logger", "setup_logging"]
