"""Bid book — one open bid per user per auction, its amount, round and status."""

from auction_core.bids.book import (
    carry_over,
    create_bid,
    find_open_bid,
    mark_cancelled,
    mark_refunded,
    mark_won,
    open_bids_for_auction,
    open_bids_for_round,
    raise_bid,
    ranking_key,
)

__all__ = [
    "carry_over",
    "create_bid",
    "find_open_bid",
    "mark_cancelled",
    "mark_refunded",
    "mark_won",
    "open_bids_for_auction",
    "open_bids_for_round",
    "raise_bid",
    "ranking_key",
]
