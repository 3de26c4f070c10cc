"""Import all table modules so Base.metadata knows about them."""

from auction_core.db.tables.auctions import AuctionRow, ItemRow, RoundRow, RoundWinnerRow
from auction_core.db.tables.bids import BidRow
from auction_core.db.tables.users import UserRow

__all__ = [
    "AuctionRow",
    "BidRow",
    "ItemRow",
    "RoundRow",
    "RoundWinnerRow",
    "UserRow",
]
