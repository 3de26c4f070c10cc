"""Administrative auction lifecycle — creation and retirement of the running auction."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from auction_core.auctions import state
from auction_core.bids.book import mark_cancelled, open_bids_for_auction
from auction_core.clock import as_utc, utcnow
from auction_core.config.schema import AuctionDefaults
from auction_core.db.tables.auctions import AuctionRow
from auction_core.events.models import AuctionCreated
from auction_core.events.publisher import EventPublisher, publish_safely
from auction_core.ledger import ledger
from auction_core.ranking.store import RankStore

log = structlog.get_logger("auction_admin")


class AuctionAdmin:
    """Creates auctions; only one auction runs at a time, so creation retires the previous one."""

    def __init__(
        self,
        defaults: AuctionDefaults,
        rank_store: RankStore,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.defaults = defaults
        self.rank_store = rank_store
        self.publisher = publisher

    def retire_active_auctions(self, session: Session, now: datetime) -> list[AuctionRow]:
        """Cancel every Active auction: open bids are cancelled and their escrow released.

        Stages changes on *session* without committing.
        """
        retired = state.list_active_auctions(session)
        for auction in retired:
            released = Decimal("0")
            bids = open_bids_for_auction(session, auction.id)
            for bid in bids:
                ledger.release(session, bid.user_id, bid.amount)
                released += Decimal(str(bid.amount))
                mark_cancelled(bid, now)
            state.cancel_auction(auction, now)
            log.info(
                "auction_retired",
                auction_id=auction.id,
                bids_cancelled=len(bids),
                released=float(released),
            )
        return retired

    def create_auction(
        self,
        session: Session,
        title: str,
        items_per_round: int | None = None,
        total_rounds: int | None = None,
        round_duration_minutes: float | None = None,
        description: str = "",
        now: datetime | None = None,
    ) -> AuctionRow:
        """Create an Active auction with its items and round schedule."""
        now = as_utc(now) if now is not None else utcnow()
        if items_per_round is None:
            items_per_round = self.defaults.items_per_round
        if total_rounds is None:
            total_rounds = self.defaults.total_rounds
        if round_duration_minutes is None:
            round_duration_minutes = self.defaults.round_duration_minutes
        if not title:
            raise ValueError("Auction title is required")
        if items_per_round < 1 or total_rounds < 1 or round_duration_minutes <= 0:
            raise ValueError("itemsPerRound, totalRounds and roundDurationMinutes must be positive")

        try:
            retired = self.retire_active_auctions(session, now)
            retired_keys = [(a.id, r.round_number) for a in retired for r in a.rounds]
            auction = state.build_auction(
                session,
                title=title,
                items_per_round=items_per_round,
                total_rounds=total_rounds,
                round_duration_minutes=round_duration_minutes,
                now=now,
                description=description,
                anti_snipe_window_s=self.defaults.anti_snipe_window_s,
                anti_snipe_extension_s=self.defaults.anti_snipe_extension_s,
                max_extensions=self.defaults.max_extensions,
            )
            session.commit()
        except Exception:
            session.rollback()
            raise

        for auction_id, round_number in retired_keys:
            try:
                self.rank_store.clear(auction_id, round_number)
            except Exception:
                log.exception("rank_store_clear_failed", auction_id=auction_id, round_number=round_number)

        log.info(
            "auction_created",
            auction_id=auction.id,
            title=auction.title,
            total_items=auction.total_items,
            total_rounds=auction.total_rounds,
        )
        publish_safely(
            self.publisher,
            AuctionCreated(auction_id=auction.id, title=auction.title, total_items=auction.total_items),
        )
        return auction
