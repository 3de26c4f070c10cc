"""Ledger — exclusive owner of wallet balance and escrow state."""

from auction_core.ledger.ledger import create_user, deposit, escrow, query, release, settle, to_money

__all__ = ["create_user", "deposit", "escrow", "query", "release", "settle", "to_money"]
