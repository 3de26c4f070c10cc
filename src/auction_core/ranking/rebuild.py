"""Rebuild procedure: replay open bids from the bid book into the rank store."""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from auction_core.bids.book import open_bids_for_round
from auction_core.db.tables.auctions import RoundRow
from auction_core.db.tables.bids import BidRow
from auction_core.models.status import RoundStatus
from auction_core.ranking.store import RankEntry, RankStore

log = structlog.get_logger("rank_rebuild")


def entries_from_bids(bids: list[BidRow]) -> list[RankEntry]:
    return [
        RankEntry(user_id=b.user_id, amount=Decimal(str(b.amount)), placed_at=b.placed_at)
        for b in bids
    ]


def rebuild_round(session: Session, store: RankStore, auction_id: int, round_number: int) -> int:
    """Replace a round's index with its Active/CarriedOver bids. Returns the entry count."""
    entries = entries_from_bids(open_bids_for_round(session, auction_id, round_number))
    store.replace(auction_id, round_number, entries)
    log.info("rank_store_rebuilt", auction_id=auction_id, round_number=round_number, entries=len(entries))
    return len(entries)


def reconcile_round(
    store: RankStore,
    auction_id: int,
    round_number: int,
    bids: list[BidRow],
) -> bool:
    """Make the index match *bids* exactly. Returns True if it had drifted."""
    expected = {b.user_id: Decimal(str(b.amount)) for b in bids}
    actual = {e.user_id: e.amount for e in store.top(auction_id, round_number)}
    if actual == expected:
        return False
    log.warning(
        "rank_store_drift",
        auction_id=auction_id,
        round_number=round_number,
        expected=len(expected),
        actual=len(actual),
    )
    store.replace(auction_id, round_number, entries_from_bids(bids))
    return True


def rebuild_active_rounds(session: Session, store: RankStore) -> int:
    """Rebuild every active round's index. Returns how many rounds were rebuilt."""
    rounds = session.execute(
        select(RoundRow).where(RoundRow.status == RoundStatus.ACTIVE.value)
    ).scalars().all()
    for rnd in rounds:
        rebuild_round(session, store, rnd.auction_id, rnd.round_number)
    session.commit()
    return len(rounds)
