"""Result models returned by the bidding, settlement and query operations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class Balance(BaseModel):
    """A user's wallet as seen by the ledger."""

    user_id: int
    balance: Decimal
    frozen_funds: Decimal
    available: Decimal


class PlaceBidResult(BaseModel):
    """Outcome of one accepted bid (initial or increment)."""

    bid_id: int
    amount: Decimal
    round_number: int
    round_extended: bool = False
    new_end_time: datetime | None = None


class SettlementResult(BaseModel):
    """Counts produced by settling one round; all zero for a no-op."""

    winners_count: int = 0
    losers_carried_over: int = 0
    losers_refunded: int = 0
    settled: bool = False


class LeaderboardEntry(BaseModel):
    user_id: int
    amount: Decimal
    rank: int


class UserRank(BaseModel):
    rank: int | None = None
    amount: Decimal | None = None
