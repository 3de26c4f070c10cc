"""Auction and round state, plus administrative lifecycle."""

from auction_core.auctions.admin import AuctionAdmin
from auction_core.auctions.state import (
    accepts_bids,
    find_expired_rounds,
    get_auction,
    get_round,
    list_active_auctions,
)

__all__ = [
    "AuctionAdmin",
    "accepts_bids",
    "find_expired_rounds",
    "get_auction",
    "get_round",
    "list_active_auctions",
]
