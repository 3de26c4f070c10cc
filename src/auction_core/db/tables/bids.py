"""SQLAlchemy ORM model for the bid book."""

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from auction_core.db.base import Base
from auction_core.db.tables.users import MONEY, SCHEMA

_OPEN_PREDICATE = "status IN ('active', 'carried_over')"


class BidRow(Base):
    __tablename__ = "bids"
    __table_args__ = (
        # At most one open (escrow-holding) bid per user per auction.
        Index(
            "uq_bids_one_open_per_user",
            "user_id",
            "auction_id",
            unique=True,
            postgresql_where=text(_OPEN_PREDICATE),
            sqlite_where=text(_OPEN_PREDICATE),
        ),
        Index("ix_bids_auction_round_status", "auction_id", "round_number", "status"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.users.id"),
        nullable=False,
    )
    auction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.auctions.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    original_round: Mapped[int] = mapped_column(Integer, nullable=False)
    is_carried_over: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # When the bid reached its current amount; earlier wins ties.
    placed_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    won_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
