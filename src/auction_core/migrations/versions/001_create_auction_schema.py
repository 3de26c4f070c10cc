"""Create auction schema: users, auctions, rounds, bids, items, round winners.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "auction"
MONEY = sa.Numeric(18, 2)


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # users (ledger)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("frozen_funds", MONEY, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("balance >= 0", name="ck_users_balance_nonnegative"),
        sa.CheckConstraint("frozen_funds >= 0", name="ck_users_frozen_nonnegative"),
        sa.CheckConstraint("frozen_funds <= balance", name="ck_users_frozen_within_balance"),
        schema=SCHEMA,
    )

    # auctions
    op.create_table(
        "auctions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("items_per_round", sa.Integer, nullable=False),
        sa.Column("total_rounds", sa.Integer, nullable=False),
        sa.Column("total_items", sa.Integer, nullable=False),
        sa.Column("current_round", sa.Integer, nullable=False, server_default="0"),
        sa.Column("active_round_id", sa.Integer, nullable=True),
        sa.Column("anti_snipe_window_s", sa.Integer, nullable=False, server_default="30"),
        sa.Column("anti_snipe_extension_s", sa.Integer, nullable=False, server_default="30"),
        sa.Column("max_extensions", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema=SCHEMA,
    )
    op.create_index("ix_auctions_status", "auctions", ["status"], schema=SCHEMA)

    # rounds
    op.create_table(
        "rounds",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "auction_id", sa.Integer,
            sa.ForeignKey(f"{SCHEMA}.auctions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("round_number", sa.Integer, nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("items_in_round", sa.Integer, nullable=False),
        sa.Column("extended_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("auction_id", "round_number", name="uq_rounds_auction_round"),
        schema=SCHEMA,
    )
    op.create_index("ix_rounds_status_end_time", "rounds", ["status", "end_time"], schema=SCHEMA)

    # bids
    op.create_table(
        "bids",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey(f"{SCHEMA}.users.id"), nullable=False),
        sa.Column(
            "auction_id", sa.Integer,
            sa.ForeignKey(f"{SCHEMA}.auctions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("round_number", sa.Integer, nullable=False),
        sa.Column("original_round", sa.Integer, nullable=False),
        sa.Column("is_carried_over", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("won_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        schema=SCHEMA,
    )
    op.create_index(
        "uq_bids_one_open_per_user", "bids", ["user_id", "auction_id"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("status IN ('active', 'carried_over')"),
    )
    op.create_index(
        "ix_bids_auction_round_status", "bids", ["auction_id", "round_number", "status"],
        schema=SCHEMA,
    )

    # round_winners
    op.create_table(
        "round_winners",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "round_id", sa.Integer,
            sa.ForeignKey(f"{SCHEMA}.rounds.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer, sa.ForeignKey(f"{SCHEMA}.users.id"), nullable=False),
        sa.Column("bid_id", sa.Integer, sa.ForeignKey(f"{SCHEMA}.bids.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("rank", sa.Integer, nullable=False),
        sa.Column("won_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("round_id", "rank", name="uq_round_winners_rank"),
        schema=SCHEMA,
    )

    # items
    op.create_table(
        "items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "auction_id", sa.Integer,
            sa.ForeignKey(f"{SCHEMA}.auctions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("serial_number", sa.Integer, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("rarity", sa.Text, nullable=False, server_default="rare"),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey(f"{SCHEMA}.users.id"), nullable=True),
        sa.Column("round_won", sa.Integer, nullable=True),
        sa.Column("won_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bid_id", sa.Integer, sa.ForeignKey(f"{SCHEMA}.bids.id"), nullable=True),
        sa.UniqueConstraint("auction_id", "serial_number", name="uq_items_auction_serial"),
        schema=SCHEMA,
    )
    op.create_index("ix_items_owner", "items", ["auction_id", "owner_id"], schema=SCHEMA)


def downgrade() -> None:
    op.drop_table("items", schema=SCHEMA)
    op.drop_table("round_winners", schema=SCHEMA)
    op.drop_table("bids", schema=SCHEMA)
    op.drop_table("rounds", schema=SCHEMA)
    op.drop_table("auctions", schema=SCHEMA)
    op.drop_table("users", schema=SCHEMA)
    op.execute(f"DROP SCHEMA IF EXISTS {SCHEMA}")
