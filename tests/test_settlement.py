"""Tests for round settlement: winners, carry-over, refunds and idempotency."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from auction_core.auctions import state
from auction_core.clock import as_utc
from auction_core.db.tables.auctions import ItemRow, RoundWinnerRow
from auction_core.db.tables.bids import BidRow
from auction_core.events.models import ItemWon, RoundEnd
from auction_core.ledger import ledger
from auction_core.models.status import AuctionStatus, BidStatus, RoundStatus
from auction_core.ranking.store import MemoryRankStore
from auction_core.settlement.workflow import SettlementWorkflow, item_serial

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
ROUND_MINUTES = 5
ROUND_END = NOW + timedelta(minutes=ROUND_MINUTES)


class _BrokenRankStore(MemoryRankStore):
    def top(self, auction_id, round_number, limit=None):
        raise ConnectionError("rank store down")


# ── Helpers ───────────────────────────────────────────────────


def _auction(service, session, items_per_round=3, total_rounds=2):
    return service.create_auction(
        session,
        "Genesis drop",
        items_per_round=items_per_round,
        total_rounds=total_rounds,
        round_duration_minutes=ROUND_MINUTES,
        now=NOW,
    ).id


def _bidders(service, session, auction_id, amounts, balance=1000):
    """One user per amount, bidding one second apart in the given order."""
    users = []
    for i, amount in enumerate(amounts):
        uid = ledger.create_user(session, balance=balance)
        service.place_bid(session, uid, auction_id, amount, now=NOW + timedelta(seconds=10 + i))
        users.append(uid)
    return users


def _bid_of(session, user_id, auction_id) -> BidRow:
    session.expire_all()
    return session.execute(
        select(BidRow).where(BidRow.user_id == user_id, BidRow.auction_id == auction_id)
    ).scalar_one()


def _items(session, auction_id) -> list[ItemRow]:
    session.expire_all()
    return list(
        session.execute(
            select(ItemRow).where(ItemRow.auction_id == auction_id).order_by(ItemRow.serial_number)
        ).scalars().all()
    )


# ── Non-final round ───────────────────────────────────────────


class TestSettleIntermediateRound:
    def test_top_three_win_and_rest_carry_over(self, db_session, service):
        aid = _auction(service, db_session)
        users = _bidders(service, db_session, aid, [900, 800, 700, 600, 500])

        result = service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert result.settled is True
        assert result.winners_count == 3
        assert result.losers_carried_over == 2
        assert result.losers_refunded == 0

        for uid, amount in zip(users[:3], [900, 800, 700]):
            bid = _bid_of(db_session, uid, aid)
            assert bid.status == BidStatus.WON.value
            bal = ledger.query(db_session, uid)
            assert bal.balance == Decimal(1000 - amount)
            assert bal.frozen_funds == Decimal("0")

        for uid, amount in zip(users[3:], [600, 500]):
            bid = _bid_of(db_session, uid, aid)
            assert bid.status == BidStatus.CARRIED_OVER.value
            assert bid.round_number == 2
            assert bid.original_round == 1
            assert bid.is_carried_over is True
            assert bid.amount == Decimal(amount)
            bal = ledger.query(db_session, uid)
            assert bal.balance == Decimal("1000")
            assert bal.frozen_funds == Decimal(amount)

    def test_items_and_winner_records_in_rank_order(self, db_session, service):
        aid = _auction(service, db_session)
        users = _bidders(service, db_session, aid, [700, 900, 800, 600])

        service.settle_round(db_session, aid, 1, now=ROUND_END)

        items = _items(db_session, aid)
        assert [i.owner_id for i in items[:3]] == [users[1], users[2], users[0]]
        assert all(i.round_won == 1 for i in items[:3])
        assert all(i.owner_id is None for i in items[3:])

        rnd = state.get_round(db_session, aid, 1)
        assert [(w.rank, w.user_id, w.amount) for w in rnd.winners] == [
            (1, users[1], Decimal("900")),
            (2, users[2], Decimal("800")),
            (3, users[0], Decimal("700")),
        ]
        assert items[0].bid_id == rnd.winners[0].bid_id

    def test_next_round_becomes_active(self, db_session, service):
        aid = _auction(service, db_session)
        _bidders(service, db_session, aid, [900])

        service.settle_round(db_session, aid, 1, now=ROUND_END)

        db_session.expire_all()
        auction = state.get_auction(db_session, aid)
        first, second = auction.rounds
        assert first.status == RoundStatus.COMPLETED.value
        assert first.settled_at is not None
        assert second.status == RoundStatus.ACTIVE.value
        assert auction.current_round == 2
        assert auction.active_round_id == second.id
        assert auction.status == AuctionStatus.ACTIVE.value

    def test_late_activation_keeps_full_duration(self, db_session, service):
        aid = _auction(service, db_session)
        late = ROUND_END + timedelta(minutes=2)

        service.settle_round(db_session, aid, 1, now=late)

        second = state.get_round(db_session, aid, 2)
        assert as_utc(second.start_time) == late
        assert as_utc(second.end_time) == late + timedelta(minutes=ROUND_MINUTES)

    def test_round_without_bids_still_advances(self, db_session, service):
        aid = _auction(service, db_session)

        result = service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert result.settled is True
        assert result.winners_count == 0
        assert state.get_auction(db_session, aid).current_round == 2

    def test_rank_store_reseeded_with_carried_bids(self, db_session, service, rank_store):
        aid = _auction(service, db_session, items_per_round=1)
        users = _bidders(service, db_session, aid, [900, 600, 500])

        service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert rank_store.top(aid, 1) == []
        board = service.get_leaderboard(aid, 2)
        assert [(e.user_id, e.amount, e.rank) for e in board] == [
            (users[1], Decimal("600"), 1),
            (users[2], Decimal("500"), 2),
        ]

    def test_events_published(self, db_session, service, publisher):
        aid = _auction(service, db_session)
        users = _bidders(service, db_session, aid, [900, 800])

        service.settle_round(db_session, aid, 1, now=ROUND_END)

        won = publisher.of_type(ItemWon)
        assert [(e.user_id, e.item_serial_number, e.rank) for e in won] == [
            (users[0], 1, 1),
            (users[1], 2, 2),
        ]
        (end,) = publisher.of_type(RoundEnd)
        assert end.winners_count == 2
        assert end.next_round == 2
        assert end.to_wire()["data"]["nextRound"] == 2


# ── Final round ───────────────────────────────────────────────


class TestSettleFinalRound:
    def test_losers_refunded_and_auction_completed(self, db_session, service, publisher):
        aid = _auction(service, db_session, total_rounds=1)
        users = _bidders(service, db_session, aid, [900, 800, 700, 600, 500])

        result = service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert result.winners_count == 3
        assert result.losers_carried_over == 0
        assert result.losers_refunded == 2
        for uid in users[3:]:
            bid = _bid_of(db_session, uid, aid)
            assert bid.status == BidStatus.REFUNDED.value
            assert bid.refunded_at is not None
            bal = ledger.query(db_session, uid)
            assert bal.balance == Decimal("1000")
            assert bal.frozen_funds == Decimal("0")
            assert bal.available == Decimal("1000")

        db_session.expire_all()
        auction = state.get_auction(db_session, aid)
        assert auction.status == AuctionStatus.COMPLETED.value
        assert auction.active_round_id is None
        (end,) = publisher.of_type(RoundEnd)
        assert end.next_round is None

    def test_carried_bid_can_win_later_round(self, db_session, service):
        aid = _auction(service, db_session, items_per_round=1, total_rounds=2)
        first, second = _bidders(service, db_session, aid, [900, 600])
        service.settle_round(db_session, aid, 1, now=ROUND_END)

        raised = service.place_bid(db_session, second, aid, 100, now=ROUND_END + timedelta(minutes=1))
        assert raised.amount == Decimal("700")
        assert raised.round_number == 2

        service.settle_round(db_session, aid, 2, now=ROUND_END + timedelta(minutes=ROUND_MINUTES))

        bid = _bid_of(db_session, second, aid)
        assert bid.status == BidStatus.WON.value
        assert bid.original_round == 1
        items = _items(db_session, aid)
        assert items[1].serial_number == item_serial(2, 1, 1)
        assert items[1].owner_id == second
        assert ledger.query(db_session, second).balance == Decimal("300")


# ── Idempotency and guards ────────────────────────────────────


class TestSettlementGuards:
    def test_second_settlement_is_a_noop(self, db_session, service):
        aid = _auction(service, db_session)
        _bidders(service, db_session, aid, [900, 800, 700, 600])
        service.settle_round(db_session, aid, 1, now=ROUND_END)

        again = service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert again.settled is False
        assert (again.winners_count, again.losers_carried_over, again.losers_refunded) == (0, 0, 0)
        assert len(state.get_round(db_session, aid, 1).winners) == 3

    def test_pending_round_is_a_noop(self, db_session, service):
        aid = _auction(service, db_session)
        result = service.settle_round(db_session, aid, 2, now=ROUND_END, force=True)
        assert result.settled is False

    def test_round_not_due_is_skipped_unless_forced(self, db_session, service):
        aid = _auction(service, db_session)
        _bidders(service, db_session, aid, [900])

        early = service.settle_round(db_session, aid, 1, now=NOW + timedelta(minutes=1))
        assert early.settled is False
        assert state.get_round(db_session, aid, 1).status == RoundStatus.ACTIVE.value

        forced = service.settle_round(db_session, aid, 1, now=NOW + timedelta(minutes=1), force=True)
        assert forced.winners_count == 1

    def test_extension_committed_first_defers_settlement(self, db_session, service):
        aid = _auction(service, db_session)
        uid = ledger.create_user(db_session, balance=1000)
        service.place_bid(db_session, uid, aid, 100, now=ROUND_END - timedelta(seconds=5))

        result = service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert result.settled is False
        assert state.get_round(db_session, aid, 1).status == RoundStatus.ACTIVE.value

    def test_failure_rolls_back_everything(self, db_session, service, monkeypatch):
        aid = _auction(service, db_session)
        users = _bidders(service, db_session, aid, [900, 800])

        def _boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(state, "complete_round", _boom)
        with pytest.raises(RuntimeError):
            service.settle_round(db_session, aid, 1, now=ROUND_END)

        db_session.expire_all()
        assert state.get_round(db_session, aid, 1).status == RoundStatus.ACTIVE.value
        assert _bid_of(db_session, users[0], aid).status == BidStatus.ACTIVE.value
        assert ledger.query(db_session, users[0]).frozen_funds == Decimal("900")
        assert all(i.owner_id is None for i in _items(db_session, aid))


# ── Ranking ───────────────────────────────────────────────────


class TestWinnerOrdering:
    def test_tie_goes_to_earlier_bid(self, db_session, service):
        aid = _auction(service, db_session, items_per_round=1, total_rounds=1)
        early, late = _bidders(service, db_session, aid, [500, 500])

        service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert _bid_of(db_session, early, aid).status == BidStatus.WON.value
        assert _bid_of(db_session, late, aid).status == BidStatus.REFUNDED.value

    def test_raising_to_a_tie_loses_it(self, db_session, service):
        aid = _auction(service, db_session, items_per_round=1, total_rounds=1)
        first, second = _bidders(service, db_session, aid, [500, 400])
        # second reaches 500 later than first did
        service.place_bid(db_session, second, aid, 100, now=NOW + timedelta(minutes=1))

        service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert _bid_of(db_session, first, aid).status == BidStatus.WON.value

    def test_lost_rank_store_is_rebuilt_from_bid_book(self, db_session, service, rank_store):
        aid = _auction(service, db_session, items_per_round=1)
        users = _bidders(service, db_session, aid, [300, 900, 600])
        rank_store.clear(aid, 1)

        result = service.settle_round(db_session, aid, 1, now=ROUND_END)

        assert result.winners_count == 1
        assert result.losers_carried_over == 2
        assert _bid_of(db_session, users[1], aid).status == BidStatus.WON.value

    def test_unavailable_rank_store_falls_back_to_bid_book(self, db_session, service):
        aid = _auction(service, db_session, items_per_round=2)
        users = _bidders(service, db_session, aid, [300, 900, 600])
        settlement = SettlementWorkflow(_BrokenRankStore())

        result = settlement.settle_round(db_session, aid, 1, now=ROUND_END)

        assert result.winners_count == 2
        assert _bid_of(db_session, users[0], aid).status == BidStatus.CARRIED_OVER.value
        rnd = state.get_round(db_session, aid, 1)
        assert [w.user_id for w in rnd.winners] == [users[1], users[2]]
