"""SQLAlchemy ORM model for user wallets (the ledger rows)."""

from sqlalchemy import CheckConstraint, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from auction_core.db.base import Base

SCHEMA = "auction"

MONEY = Numeric(18, 2)


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_nonnegative"),
        CheckConstraint("frozen_funds >= 0", name="ck_users_frozen_nonnegative"),
        CheckConstraint("frozen_funds <= balance", name="ck_users_frozen_within_balance"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    balance: Mapped[float] = mapped_column(MONEY, nullable=False, default=0)
    frozen_funds: Mapped[float] = mapped_column(MONEY, nullable=False, default=0)
    created_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
