"""AuctionService — the operation surface a transport layer calls into.

Wires the workflows to one rank store and one event publisher. Every
write operation takes the caller's session and owns its transaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from auction_core.auctions import state
from auction_core.auctions.admin import AuctionAdmin
from auction_core.bidding.workflow import BiddingWorkflow
from auction_core.config.schema import AppConfig
from auction_core.db.tables.auctions import AuctionRow
from auction_core.errors import AuctionNotFound
from auction_core.events.publisher import EventPublisher, build_publisher
from auction_core.ledger import ledger
from auction_core.models.results import (
    Balance,
    LeaderboardEntry,
    PlaceBidResult,
    SettlementResult,
    UserRank,
)
from auction_core.ranking.factory import build_rank_store
from auction_core.ranking.rebuild import rebuild_round
from auction_core.ranking.store import RankStore
from auction_core.settlement.workflow import SettlementWorkflow


class AuctionService:
    def __init__(
        self,
        config: AppConfig | None = None,
        rank_store: RankStore | None = None,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.rank_store = rank_store if rank_store is not None else build_rank_store(self.config.rank_store)
        self.publisher = publisher if publisher is not None else build_publisher(self.config.events)
        self.bidding = BiddingWorkflow(self.rank_store, self.publisher)
        self.settlement = SettlementWorkflow(self.rank_store, self.publisher)
        self.admin = AuctionAdmin(self.config.auction, self.rank_store, self.publisher)

    # ── Writes ────────────────────────────────────────────────

    def place_bid(
        self,
        session: Session,
        user_id: int,
        auction_id: int,
        amount: Decimal | float,
        now: datetime | None = None,
    ) -> PlaceBidResult:
        return self.bidding.place_bid(session, user_id, auction_id, amount, now=now)

    def settle_round(
        self,
        session: Session,
        auction_id: int,
        round_number: int,
        now: datetime | None = None,
        force: bool = False,
    ) -> SettlementResult:
        return self.settlement.settle_round(session, auction_id, round_number, now=now, force=force)

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
        return self.admin.create_auction(
            session,
            title,
            items_per_round=items_per_round,
            total_rounds=total_rounds,
            round_duration_minutes=round_duration_minutes,
            description=description,
            now=now,
        )

    def rebuild_rank_store(self, session: Session, auction_id: int, round_number: int) -> int:
        count = rebuild_round(session, self.rank_store, auction_id, round_number)
        session.commit()
        return count

    # ── Reads ─────────────────────────────────────────────────

    def get_leaderboard(self, auction_id: int, round_number: int, limit: int = 100) -> list[LeaderboardEntry]:
        """Top *limit* bidders of a round, served from the rank store."""
        entries = self.rank_store.top(auction_id, round_number, limit)
        return [
            LeaderboardEntry(user_id=e.user_id, amount=e.amount, rank=i)
            for i, e in enumerate(entries, start=1)
        ]

    def get_user_rank(self, user_id: int, auction_id: int, round_number: int) -> UserRank:
        rank, amount = self.rank_store.rank_of(auction_id, round_number, user_id)
        return UserRank(rank=rank, amount=amount)

    def get_balance(self, session: Session, user_id: int) -> Balance:
        return ledger.query(session, user_id)

    def get_auction(self, session: Session, auction_id: int) -> AuctionRow:
        auction = state.get_auction(session, auction_id)
        if auction is None:
            raise AuctionNotFound(auction_id)
        return auction

    def list_active_auctions(self, session: Session) -> list[AuctionRow]:
        return state.list_active_auctions(session)
