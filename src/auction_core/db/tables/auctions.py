"""SQLAlchemy ORM models for auctions, their rounds, round winners and items."""

from sqlalchemy import ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import DateTime

from auction_core.db.base import Base
from auction_core.db.tables.users import MONEY, SCHEMA


class AuctionRow(Base):
    __tablename__ = "auctions"
    __table_args__ = (
        Index("ix_auctions_status", "status"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    items_per_round: Mapped[int] = mapped_column(Integer, nullable=False)
    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False)
    current_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Plain column rather than a FK: rounds already reference auctions.
    active_round_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    anti_snipe_window_s: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    anti_snipe_extension_s: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    max_extensions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rounds: Mapped[list["RoundRow"]] = relationship(
        back_populates="auction",
        order_by="RoundRow.round_number",
        cascade="all, delete-orphan",
    )


class RoundRow(Base):
    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("auction_id", "round_number", name="uq_rounds_auction_round"),
        Index("ix_rounds_status_end_time", "status", "end_time"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.auctions.id", ondelete="CASCADE"),
        nullable=False,
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    items_in_round: Mapped[int] = mapped_column(Integer, nullable=False)
    extended_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    settled_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    auction: Mapped[AuctionRow] = relationship(back_populates="rounds")
    winners: Mapped[list["RoundWinnerRow"]] = relationship(
        back_populates="round",
        order_by="RoundWinnerRow.rank",
        cascade="all, delete-orphan",
    )


class RoundWinnerRow(Base):
    __tablename__ = "round_winners"
    __table_args__ = (
        UniqueConstraint("round_id", "rank", name="uq_round_winners_rank"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.rounds.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.users.id"),
        nullable=False,
    )
    bid_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.bids.id"),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(MONEY, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    won_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)

    round: Mapped[RoundRow] = relationship(back_populates="winners")


class ItemRow(Base):
    __tablename__ = "items"
    __table_args__ = (
        UniqueConstraint("auction_id", "serial_number", name="uq_items_auction_serial"),
        Index("ix_items_owner", "auction_id", "owner_id"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.auctions.id", ondelete="CASCADE"),
        nullable=False,
    )
    serial_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    rarity: Mapped[str] = mapped_column(Text, nullable=False, default="rare")
    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.users.id"),
        nullable=True,
    )
    round_won: Mapped[int | None] = mapped_column(Integer, nullable=True)
    won_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    bid_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.bids.id"),
        nullable=True,
    )
