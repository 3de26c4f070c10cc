"""Auction / round state — timing, status transitions and the active-round reference."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from auction_core.clock import as_utc
from auction_core.db.tables.auctions import AuctionRow, ItemRow, RoundRow
from auction_core.models.status import AuctionStatus, RoundStatus


def _rarity(index: int, total_items: int) -> str:
    if index < 3:
        return "legendary"
    if index < int(total_items * 0.3):
        return "epic"
    return "rare"


# ── Reads ─────────────────────────────────────────────────────


def get_auction(session: Session, auction_id: int) -> AuctionRow | None:
    return session.get(AuctionRow, auction_id)


def list_active_auctions(session: Session) -> list[AuctionRow]:
    return list(
        session.execute(
            select(AuctionRow)
            .where(AuctionRow.status == AuctionStatus.ACTIVE.value)
            .order_by(AuctionRow.created_at.desc(), AuctionRow.id.desc())
        ).scalars().all()
    )


def get_round(session: Session, auction_id: int, round_number: int) -> RoundRow | None:
    return session.execute(
        select(RoundRow).where(
            RoundRow.auction_id == auction_id,
            RoundRow.round_number == round_number,
        )
    ).scalar_one_or_none()


def lock_active_round(session: Session, auction: AuctionRow) -> RoundRow | None:
    """Load and row-lock the auction's active round through its explicit reference."""
    if auction.active_round_id is None:
        return None
    return session.execute(
        select(RoundRow)
        .where(RoundRow.id == auction.active_round_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def accepts_bids(rnd: RoundRow, now: datetime) -> bool:
    """True while the round is Active and ``start_time <= now < end_time``."""
    return (
        rnd.status == RoundStatus.ACTIVE.value
        and as_utc(rnd.start_time) <= now < as_utc(rnd.end_time)
    )


def find_expired_rounds(session: Session, now: datetime) -> list[tuple[int, int]]:
    """``(auction_id, round_number)`` for every Active round of an Active auction past its deadline."""
    rows = session.execute(
        select(RoundRow.auction_id, RoundRow.round_number)
        .join(AuctionRow, AuctionRow.id == RoundRow.auction_id)
        .where(
            AuctionRow.status == AuctionStatus.ACTIVE.value,
            RoundRow.status == RoundStatus.ACTIVE.value,
            RoundRow.end_time <= now,
        )
        .order_by(RoundRow.end_time)
    ).all()
    return [(r.auction_id, r.round_number) for r in rows]


# ── Guarded transitions ───────────────────────────────────────


def claim_round_for_bid(
    session: Session,
    rnd: RoundRow,
    new_end_time: datetime | None = None,
) -> bool:
    """Bump the round version, optionally extending its deadline.

    Conditioned on the status and version that were read, so a bid can
    never land on a round that a settlement has already moved to
    Finalizing. Returns False when the condition no longer holds.
    """
    values: dict = {"version": RoundRow.version + 1}
    if new_end_time is not None:
        values["end_time"] = new_end_time
        values["extended_count"] = RoundRow.extended_count + 1
    result = session.execute(
        update(RoundRow)
        .where(
            RoundRow.id == rnd.id,
            RoundRow.status == RoundStatus.ACTIVE.value,
            RoundRow.version == rnd.version,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def begin_finalizing(
    session: Session,
    auction_id: int,
    round_number: int,
    now: datetime,
    require_due: bool = True,
) -> RoundRow | None:
    """Move an Active round to Finalizing; None if it is not (or no longer) eligible.

    With *require_due* the round must also be past its deadline, so a bid
    whose extension committed first turns this settlement into a no-op.
    """
    conditions = [
        RoundRow.auction_id == auction_id,
        RoundRow.round_number == round_number,
        RoundRow.status == RoundStatus.ACTIVE.value,
    ]
    if require_due:
        conditions.append(RoundRow.end_time <= now)
    result = session.execute(
        update(RoundRow)
        .where(*conditions)
        .values(status=RoundStatus.FINALIZING.value, version=RoundRow.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return session.execute(
        select(RoundRow)
        .where(RoundRow.auction_id == auction_id, RoundRow.round_number == round_number)
        .execution_options(populate_existing=True)
    ).scalar_one()


def activate_round(auction: AuctionRow, rnd: RoundRow, now: datetime) -> None:
    """Make *rnd* the auction's active round, keeping its full duration if it starts late."""
    start = as_utc(rnd.start_time)
    if start < now:
        duration = as_utc(rnd.end_time) - start
        rnd.start_time = now
        rnd.end_time = now + duration
    rnd.status = RoundStatus.ACTIVE.value
    auction.current_round = rnd.round_number
    auction.active_round_id = rnd.id
    auction.updated_at = now


def complete_round(auction: AuctionRow, rnd: RoundRow, now: datetime) -> None:
    rnd.status = RoundStatus.COMPLETED.value
    rnd.settled_at = now
    if auction.active_round_id == rnd.id:
        auction.active_round_id = None
    auction.updated_at = now


def complete_auction(auction: AuctionRow, now: datetime) -> None:
    auction.status = AuctionStatus.COMPLETED.value
    auction.active_round_id = None
    auction.updated_at = now


def cancel_auction(auction: AuctionRow, now: datetime) -> None:
    """Terminal cancel: every unfinished round is closed out."""
    for rnd in auction.rounds:
        if rnd.status != RoundStatus.COMPLETED.value:
            rnd.status = RoundStatus.COMPLETED.value
            rnd.settled_at = now
    auction.status = AuctionStatus.CANCELLED.value
    auction.active_round_id = None
    auction.updated_at = now


# ── Construction ──────────────────────────────────────────────


def build_auction(
    session: Session,
    title: str,
    items_per_round: int,
    total_rounds: int,
    round_duration_minutes: float,
    now: datetime,
    description: str = "",
    anti_snipe_window_s: int = 30,
    anti_snipe_extension_s: int = 30,
    max_extensions: int | None = None,
) -> AuctionRow:
    """Insert an Active auction with its round schedule and items; round 1 is live."""
    total_items = items_per_round * total_rounds
    duration = timedelta(minutes=round_duration_minutes)

    auction = AuctionRow(
        title=title,
        description=description,
        status=AuctionStatus.ACTIVE.value,
        items_per_round=items_per_round,
        total_rounds=total_rounds,
        total_items=total_items,
        current_round=1,
        anti_snipe_window_s=anti_snipe_window_s,
        anti_snipe_extension_s=anti_snipe_extension_s,
        max_extensions=max_extensions,
        created_at=now,
        updated_at=now,
    )
    for i in range(total_rounds):
        start = now + i * duration
        auction.rounds.append(RoundRow(
            round_number=i + 1,
            start_time=start,
            end_time=start + duration,
            status=RoundStatus.ACTIVE.value if i == 0 else RoundStatus.PENDING.value,
            items_in_round=items_per_round,
            extended_count=0,
            version=0,
        ))
    session.add(auction)
    session.flush()

    auction.active_round_id = auction.rounds[0].id
    session.add_all([
        ItemRow(
            auction_id=auction.id,
            serial_number=i + 1,
            name=f"{title} #{i + 1}",
            rarity=_rarity(i, total_items),
        )
        for i in range(total_items)
    ])
    session.flush()
    return auction
