"""Lifecycle states for auctions, rounds and bids."""

from __future__ import annotations

from enum import Enum


class AuctionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RoundStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


class BidStatus(str, Enum):
    ACTIVE = "active"
    CARRIED_OVER = "carried_over"
    WON = "won"
    LOST = "lost"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# A bid in one of these states holds escrow and competes in a round.
OPEN_BID_STATUSES: tuple[str, ...] = (BidStatus.ACTIVE.value, BidStatus.CARRIED_OVER.value)
