"""Pydantic domain models and lifecycle enums."""

from auction_core.models.results import (
    Balance,
    LeaderboardEntry,
    PlaceBidResult,
    SettlementResult,
    UserRank,
)
from auction_core.models.status import (
    OPEN_BID_STATUSES,
    AuctionStatus,
    BidStatus,
    RoundStatus,
)

__all__ = [
    "OPEN_BID_STATUSES",
    "AuctionStatus",
    "Balance",
    "BidStatus",
    "LeaderboardEntry",
    "PlaceBidResult",
    "RoundStatus",
    "SettlementResult",
    "UserRank",
]
