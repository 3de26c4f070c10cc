"""Bidding workflow — one bid placement as a single atomic unit.

Order of work inside the transaction:

1. auction must exist and be Active
2. the active round is row-locked and must contain *now*
3. the round version is bumped (and the deadline extended inside the
   anti-snipe window) conditioned on status/version
4. funds are escrowed with a conditional update
5. the open bid is raised, or a new one created

After commit the rank store is updated and events are published; both are
best-effort.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auction_core.auctions import state
from auction_core.bids.book import create_bid, find_open_bid, raise_bid
from auction_core.clock import as_utc, utcnow
from auction_core.db.tables.auctions import AuctionRow, RoundRow
from auction_core.errors import (
    AuctionError,
    AuctionNotActive,
    AuctionNotFound,
    DuplicateBid,
    InvalidBidAmount,
    RoundNotActive,
)
from auction_core.events.models import NewBid, RoundExtended
from auction_core.events.publisher import EventPublisher, publish_safely
from auction_core.ledger import ledger
from auction_core.models.results import PlaceBidResult
from auction_core.models.status import AuctionStatus
from auction_core.ranking.store import RankEntry, RankStore

log = structlog.get_logger("bidding")

# Retries when a concurrent bid bumped the round version between read and write.
_CLAIM_ATTEMPTS = 5


def anti_snipe_extension(auction: AuctionRow, rnd: RoundRow, now: datetime) -> datetime | None:
    """New deadline if a bid at *now* falls inside the anti-snipe window, else None."""
    end = as_utc(rnd.end_time)
    remaining = (end - now).total_seconds()
    if not 0 < remaining <= auction.anti_snipe_window_s:
        return None
    if auction.anti_snipe_extension_s <= 0:
        return None
    if auction.max_extensions is not None and rnd.extended_count >= auction.max_extensions:
        return None
    return end + timedelta(seconds=auction.anti_snipe_extension_s)


class BiddingWorkflow:
    """Accepts bids under the escrow and round-status constraints."""

    def __init__(self, rank_store: RankStore, publisher: EventPublisher | None = None) -> None:
        self.rank_store = rank_store
        self.publisher = publisher

    def _claim_round(
        self,
        session: Session,
        auction: AuctionRow,
        now: datetime,
    ) -> tuple[RoundRow, datetime | None]:
        for attempt in range(_CLAIM_ATTEMPTS):
            if attempt:
                session.refresh(auction)
            rnd = state.lock_active_round(session, auction)
            if rnd is None or not state.accepts_bids(rnd, now):
                raise RoundNotActive(auction.id, rnd.round_number if rnd is not None else auction.current_round)
            new_end = anti_snipe_extension(auction, rnd, now)
            if state.claim_round_for_bid(session, rnd, new_end):
                return rnd, new_end
            log.debug("round_claim_retry", auction_id=auction.id, round_number=rnd.round_number)
        raise RoundNotActive(auction.id, auction.current_round)

    def place_bid(
        self,
        session: Session,
        user_id: int,
        auction_id: int,
        amount: Decimal | float,
        now: datetime | None = None,
    ) -> PlaceBidResult:
        """Place an initial bid, or raise the user's open bid by *amount*."""
        amount = ledger.to_money(amount)
        if amount <= 0:
            raise InvalidBidAmount("Bid amount must be positive")
        now = as_utc(now) if now is not None else utcnow()

        try:
            auction = state.get_auction(session, auction_id)
            if auction is None:
                raise AuctionNotFound(auction_id)
            if auction.status != AuctionStatus.ACTIVE.value:
                raise AuctionNotActive(auction_id)

            rnd, new_end = self._claim_round(session, auction, now)

            bid = find_open_bid(session, user_id, auction_id)
            ledger.escrow(session, user_id, amount)
            if bid is not None:
                raise_bid(bid, amount, now)
            else:
                bid = create_bid(session, user_id, auction_id, amount, rnd.round_number, now)
            session.flush()

            result = PlaceBidResult(
                bid_id=bid.id,
                amount=Decimal(str(bid.amount)),
                round_number=rnd.round_number,
                round_extended=new_end is not None,
                new_end_time=new_end,
            )
            entry = RankEntry(user_id=user_id, amount=result.amount, placed_at=now)
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateBid() from exc
        except AuctionError as exc:
            session.rollback()
            log.info("bid_rejected", user_id=user_id, auction_id=auction_id, code=exc.code)
            raise
        except Exception:
            session.rollback()
            raise

        try:
            self.rank_store.upsert(auction_id, result.round_number, entry)
        except Exception:
            log.exception(
                "rank_store_update_failed",
                auction_id=auction_id,
                round_number=result.round_number,
                user_id=user_id,
            )

        log.info(
            "bid_placed",
            bid_id=result.bid_id,
            user_id=user_id,
            auction_id=auction_id,
            round_number=result.round_number,
            increment=float(amount),
            total=float(result.amount),
        )
        publish_safely(
            self.publisher,
            NewBid(auction_id=auction_id, user_id=user_id, amount=result.amount, round_number=result.round_number),
        )
        if new_end is not None:
            log.info(
                "round_extended",
                auction_id=auction_id,
                round_number=result.round_number,
                new_end_time=new_end.isoformat(),
            )
            publish_safely(
                self.publisher,
                RoundExtended(auction_id=auction_id, round_number=result.round_number, new_end_time=new_end),
            )
        return result
