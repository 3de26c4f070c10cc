"""Caller-correctable auction errors.

Each error carries a stable ``code`` so a transport layer can map it to a
response without string matching. None of these are retried by the core.
"""

from __future__ import annotations


class AuctionError(Exception):
    """Base class for all domain errors raised by the engine."""

    code = "AUCTION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InsufficientFunds(AuctionError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, message: str = "Insufficient funds") -> None:
        super().__init__(message)


class UserNotFound(AuctionError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class AuctionNotFound(AuctionError):
    code = "AUCTION_NOT_FOUND"

    def __init__(self, auction_id: int) -> None:
        super().__init__(f"Auction not found: {auction_id}")
        self.auction_id = auction_id


class AuctionNotActive(AuctionError):
    code = "AUCTION_NOT_ACTIVE"

    def __init__(self, auction_id: int) -> None:
        super().__init__(f"Auction is not active: {auction_id}")
        self.auction_id = auction_id


class RoundNotActive(AuctionError):
    code = "ROUND_NOT_ACTIVE"

    def __init__(self, auction_id: int, round_number: int) -> None:
        super().__init__(f"Round {round_number} is not active for auction: {auction_id}")
        self.auction_id = auction_id
        self.round_number = round_number


class InvalidBidAmount(AuctionError):
    code = "INVALID_BID_AMOUNT"

    def __init__(self, message: str = "Bid amount must be positive") -> None:
        super().__init__(message)


class DuplicateBid(AuctionError):
    code = "DUPLICATE_BID"

    def __init__(self, message: str = "User already has an active bid in this auction") -> None:
        super().__init__(message)
