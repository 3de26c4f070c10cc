"""Bid book — exclusive owner of bid records and their lifecycle.

Like the ledger, these helpers only stage changes on the caller's session;
the workflows decide where the transaction boundary is.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from auction_core.clock import as_utc
from auction_core.db.tables.bids import BidRow
from auction_core.models.status import OPEN_BID_STATUSES, BidStatus


def ranking_key(bid: BidRow) -> tuple:
    """Sort key for winner selection: amount desc, earliest placed_at, lowest user id."""
    return (-Decimal(str(bid.amount)), as_utc(bid.placed_at), bid.user_id)


def find_open_bid(session: Session, user_id: int, auction_id: int) -> BidRow | None:
    """The user's escrow-holding bid in this auction, if any (row-locked where supported)."""
    return session.execute(
        select(BidRow)
        .where(
            BidRow.user_id == user_id,
            BidRow.auction_id == auction_id,
            BidRow.status.in_(OPEN_BID_STATUSES),
        )
        .with_for_update()
    ).scalar_one_or_none()


def open_bids_for_round(session: Session, auction_id: int, round_number: int) -> list[BidRow]:
    """All bids competing in a round, in winner order."""
    rows = session.execute(
        select(BidRow)
        .where(
            BidRow.auction_id == auction_id,
            BidRow.round_number == round_number,
            BidRow.status.in_(OPEN_BID_STATUSES),
        )
        .with_for_update()
    ).scalars().all()
    return sorted(rows, key=ranking_key)


def open_bids_for_auction(session: Session, auction_id: int) -> list[BidRow]:
    return list(
        session.execute(
            select(BidRow).where(
                BidRow.auction_id == auction_id,
                BidRow.status.in_(OPEN_BID_STATUSES),
            )
        ).scalars().all()
    )


def create_bid(
    session: Session,
    user_id: int,
    auction_id: int,
    amount: Decimal,
    round_number: int,
    now: datetime,
) -> BidRow:
    bid = BidRow(
        user_id=user_id,
        auction_id=auction_id,
        amount=amount,
        status=BidStatus.ACTIVE.value,
        round_number=round_number,
        original_round=round_number,
        is_carried_over=False,
        placed_at=now,
        created_at=now,
        updated_at=now,
    )
    session.add(bid)
    return bid


def raise_bid(bid: BidRow, increment: Decimal, now: datetime) -> BidRow:
    """Add *increment* to an open bid; the new total is timestamped for tie-breaks."""
    bid.amount = Decimal(str(bid.amount)) + increment
    bid.placed_at = now
    bid.updated_at = now
    return bid


def mark_won(bid: BidRow, now: datetime) -> None:
    bid.status = BidStatus.WON.value
    bid.won_at = now
    bid.updated_at = now


def mark_refunded(bid: BidRow, now: datetime) -> None:
    bid.status = BidStatus.REFUNDED.value
    bid.refunded_at = now
    bid.updated_at = now


def mark_cancelled(bid: BidRow, now: datetime) -> None:
    bid.status = BidStatus.CANCELLED.value
    bid.cancelled_at = now
    bid.updated_at = now


def carry_over(bid: BidRow, next_round: int, now: datetime) -> None:
    """Move a losing bid into the next round; amount and placed_at are untouched."""
    bid.status = BidStatus.CARRIED_OVER.value
    bid.round_number = next_round
    bid.is_carried_over = True
    bid.updated_at = now
