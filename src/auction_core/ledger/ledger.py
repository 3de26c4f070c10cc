"""Ledger — atomic escrow / settle / release primitives over user wallets.

Every mutation is a single conditional ``UPDATE ... WHERE <precondition>``
so two concurrent callers can never both pass a stale balance check. The
functions only add statements to the caller's transaction; committing or
rolling back is the caller's job, which is what lets the bidding and
settlement workflows bundle ledger movements with bid-book writes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from auction_core.db.tables.users import UserRow
from auction_core.errors import InsufficientFunds, InvalidBidAmount, UserNotFound
from auction_core.models.results import Balance

log = structlog.get_logger("ledger")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


CENT = Decimal("0.01")
# Numeric(18, 2) leaves sixteen integer digits
MAX_MONEY = Decimal("1e16")


def to_money(value, what: str = "Bid") -> Decimal:
    """Parse a caller-supplied amount into a two-place Decimal.

    Wallet and bid columns hold cents, so finer amounts are refused rather
    than rounded; NaN, infinities and unparseable input are refused too.
    """
    try:
        amount = _to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidBidAmount(f"{what} amount is not a number: {value!r}") from None
    if not amount.is_finite() or abs(amount) >= MAX_MONEY:
        raise InvalidBidAmount(f"{what} amount is out of range: {value!r}")
    cents = amount.quantize(CENT)
    if cents != amount:
        raise InvalidBidAmount(f"{what} amount has more than two decimal places")
    return cents


def _require_positive(amount: Decimal, what: str) -> Decimal:
    amount = to_money(amount, what)
    if amount <= 0:
        raise InvalidBidAmount(f"{what} amount must be positive")
    return amount


def _conditional_update(session: Session, user_id: int, conditions: list, values: dict) -> bool:
    """Run one guarded UPDATE on a user row; True if the row matched."""
    stmt = (
        update(UserRow)
        .where(UserRow.id == user_id, *conditions)
        .values(**values, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount == 1


def _load(session: Session, user_id: int) -> UserRow:
    row = session.execute(
        select(UserRow).where(UserRow.id == user_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        raise UserNotFound(user_id)
    return row


# ── Provisioning ──────────────────────────────────────────────


def create_user(session: Session, balance: Decimal | float = 0, name: str | None = None) -> int:
    """Insert a wallet with an opening balance and return its id."""
    balance = to_money(balance, "Opening balance")
    if balance < 0:
        raise InvalidBidAmount("Opening balance cannot be negative")
    now = datetime.now(timezone.utc)
    row = UserRow(name=name, balance=balance, frozen_funds=Decimal("0"), created_at=now, updated_at=now)
    session.add(row)
    session.commit()
    session.refresh(row)
    log.info("user_created", user_id=row.id, balance=float(balance))
    return row.id


def deposit(session: Session, user_id: int, amount: Decimal | float) -> Balance:
    """Credit *amount* to a wallet's balance (not escrowed)."""
    amount = _require_positive(amount, "Deposit")
    if not _conditional_update(session, user_id, [], {"balance": UserRow.balance + amount}):
        raise UserNotFound(user_id)
    return _balance_of(_load(session, user_id))


# ── Escrow primitives ─────────────────────────────────────────


def escrow(session: Session, user_id: int, amount: Decimal | float) -> Balance:
    """Freeze *amount* if ``balance - frozen_funds >= amount``."""
    amount = _require_positive(amount, "Escrow")
    matched = _conditional_update(
        session,
        user_id,
        [UserRow.balance - UserRow.frozen_funds >= amount],
        {"frozen_funds": UserRow.frozen_funds + amount},
    )
    if not matched:
        row = _load(session, user_id)
        available = _to_decimal(row.balance) - _to_decimal(row.frozen_funds)
        raise InsufficientFunds(f"Insufficient funds. Available: {available}, Required: {amount}")
    return _balance_of(_load(session, user_id))


def settle(session: Session, user_id: int, amount: Decimal | float) -> Balance:
    """Permanently debit escrowed funds: both frozen_funds and balance drop by *amount*."""
    amount = _require_positive(amount, "Settle")
    matched = _conditional_update(
        session,
        user_id,
        [UserRow.frozen_funds >= amount, UserRow.balance >= amount],
        {
            "frozen_funds": UserRow.frozen_funds - amount,
            "balance": UserRow.balance - amount,
        },
    )
    if not matched:
        row = _load(session, user_id)
        raise InsufficientFunds(
            f"Cannot settle {amount}: frozen funds {row.frozen_funds}, balance {row.balance}"
        )
    return _balance_of(_load(session, user_id))


def release(session: Session, user_id: int, amount: Decimal | float) -> Balance:
    """Return escrowed funds to the available balance."""
    amount = _require_positive(amount, "Release")
    matched = _conditional_update(
        session,
        user_id,
        [UserRow.frozen_funds >= amount],
        {"frozen_funds": UserRow.frozen_funds - amount},
    )
    if not matched:
        row = _load(session, user_id)
        raise InsufficientFunds(
            f"Cannot release {amount}: frozen funds ({row.frozen_funds}) less than amount"
        )
    return _balance_of(_load(session, user_id))


# ── Queries ───────────────────────────────────────────────────


def _balance_of(row: UserRow) -> Balance:
    balance = _to_decimal(row.balance)
    frozen = _to_decimal(row.frozen_funds)
    return Balance(user_id=row.id, balance=balance, frozen_funds=frozen, available=balance - frozen)


def query(session: Session, user_id: int) -> Balance:
    """Return ``(balance, frozen_funds, available)`` for a wallet."""
    return _balance_of(_load(session, user_id))
