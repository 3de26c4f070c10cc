"""Settlement workflow — close one round and distribute its items.

Everything from the Active → Finalizing claim to the final status
transition runs in a single transaction, so a crash leaves the round
Active and the next scheduler tick settles it again. Rounds that are not
Active (already settled, or claimed by a concurrent settler) produce a
zero result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from auction_core.auctions import state
from auction_core.bids.book import carry_over, mark_refunded, mark_won, open_bids_for_round
from auction_core.clock import as_utc, utcnow
from auction_core.db.tables.auctions import AuctionRow, ItemRow, RoundRow, RoundWinnerRow
from auction_core.db.tables.bids import BidRow
from auction_core.errors import AuctionNotFound
from auction_core.events.models import ItemWon, RoundEnd
from auction_core.events.publisher import EventPublisher, publish_safely
from auction_core.ledger import ledger
from auction_core.models.results import SettlementResult
from auction_core.ranking.rebuild import entries_from_bids, reconcile_round
from auction_core.ranking.store import RankStore

log = structlog.get_logger("settlement")


@dataclass(frozen=True)
class _Award:
    user_id: int
    amount: Decimal
    rank: int
    serial_number: int


def item_serial(round_number: int, items_per_round: int, rank: int) -> int:
    """Serial of the item a winner of *rank* (1-based) receives in *round_number*."""
    return (round_number - 1) * items_per_round + rank


class SettlementWorkflow:
    """Selects winners, charges them, and carries over or refunds everyone else."""

    def __init__(self, rank_store: RankStore, publisher: EventPublisher | None = None) -> None:
        self.rank_store = rank_store
        self.publisher = publisher

    def _ranked(self, auction_id: int, round_number: int, bids: list[BidRow]) -> list[BidRow]:
        """Participants in winner order, read through the rank store."""
        by_user = {b.user_id: b for b in bids}
        try:
            reconcile_round(self.rank_store, auction_id, round_number, bids)
            return [by_user[e.user_id] for e in self.rank_store.top(auction_id, round_number)]
        except Exception:
            log.exception("rank_store_unavailable", auction_id=auction_id, round_number=round_number)
            # open_bids_for_round already returns winner order
            return bids

    def _assign_item(
        self,
        session: Session,
        auction: AuctionRow,
        rnd: RoundRow,
        bid: BidRow,
        rank: int,
        now: datetime,
    ) -> int:
        serial = item_serial(rnd.round_number, auction.items_per_round, rank)
        item = session.execute(
            select(ItemRow)
            .where(ItemRow.auction_id == auction.id, ItemRow.serial_number == serial)
            .with_for_update()
        ).scalar_one_or_none()
        if item is None:
            item = ItemRow(
                auction_id=auction.id,
                serial_number=serial,
                name=f"{auction.title} #{serial}",
            )
            session.add(item)
        elif item.owner_id is not None:
            raise RuntimeError(f"Item {serial} of auction {auction.id} is already owned")
        item.owner_id = bid.user_id
        item.round_won = rnd.round_number
        item.won_at = now
        item.bid_id = bid.id
        return serial

    def settle_round(
        self,
        session: Session,
        auction_id: int,
        round_number: int,
        now: datetime | None = None,
        force: bool = False,
    ) -> SettlementResult:
        """Settle one round.

        Without *force* the round must be past its deadline when the
        Finalizing claim is made; an anti-snipe extension that committed
        first therefore makes this call a no-op.
        """
        now = as_utc(now) if now is not None else utcnow()

        try:
            auction = state.get_auction(session, auction_id)
            if auction is None:
                raise AuctionNotFound(auction_id)
            rnd = state.begin_finalizing(session, auction_id, round_number, now, require_due=not force)
            if rnd is None:
                session.rollback()
                log.debug("settlement_skipped", auction_id=auction_id, round_number=round_number)
                return SettlementResult()

            bids = open_bids_for_round(session, auction_id, round_number)
            ranked = self._ranked(auction_id, round_number, bids)
            winners = ranked[:rnd.items_in_round]
            losers = ranked[rnd.items_in_round:]

            next_rnd = None
            if round_number < auction.total_rounds:
                next_rnd = state.get_round(session, auction_id, round_number + 1)
            is_final = next_rnd is None

            awards: list[_Award] = []
            for rank, bid in enumerate(winners, start=1):
                amount = Decimal(str(bid.amount))
                mark_won(bid, now)
                ledger.settle(session, bid.user_id, amount)
                serial = self._assign_item(session, auction, rnd, bid, rank, now)
                session.add(RoundWinnerRow(
                    round_id=rnd.id,
                    user_id=bid.user_id,
                    bid_id=bid.id,
                    amount=amount,
                    rank=rank,
                    won_at=now,
                ))
                awards.append(_Award(user_id=bid.user_id, amount=amount, rank=rank, serial_number=serial))

            for bid in losers:
                if is_final:
                    mark_refunded(bid, now)
                    ledger.release(session, bid.user_id, bid.amount)
                else:
                    carry_over(bid, next_rnd.round_number, now)

            state.complete_round(auction, rnd, now)
            if is_final:
                state.complete_auction(auction, now)
            else:
                state.activate_round(auction, next_rnd, now)

            next_round = None if is_final else next_rnd.round_number
            carried = [] if is_final else entries_from_bids(losers)
            session.commit()
        except Exception:
            session.rollback()
            raise

        result = SettlementResult(
            winners_count=len(awards),
            losers_carried_over=len(carried),
            losers_refunded=len(losers) if is_final else 0,
            settled=True,
        )

        try:
            self.rank_store.clear(auction_id, round_number)
            if next_round is not None:
                self.rank_store.replace(auction_id, next_round, carried)
        except Exception:
            log.exception("rank_store_update_failed", auction_id=auction_id, round_number=round_number)

        log.info(
            "round_settled",
            auction_id=auction_id,
            round_number=round_number,
            winners=result.winners_count,
            carried_over=result.losers_carried_over,
            refunded=result.losers_refunded,
            auction_completed=is_final,
        )
        for award in awards:
            publish_safely(self.publisher, ItemWon(
                auction_id=auction_id,
                round_number=round_number,
                user_id=award.user_id,
                item_serial_number=award.serial_number,
                amount=award.amount,
                rank=award.rank,
            ))
        publish_safely(self.publisher, RoundEnd(
            auction_id=auction_id,
            round_number=round_number,
            winners_count=result.winners_count,
            next_round=next_round,
        ))
        return result
