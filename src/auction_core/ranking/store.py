"""Rank store — derived, non-authoritative leaderboard index per (auction, round).

The bid book is the source of truth; this index exists so top-k and rank
lookups stay O(log n). Anything here can be rebuilt with
``auction_core.ranking.rebuild.rebuild_round``.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from bisect import bisect_left, insort
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from auction_core.clock import as_utc


@dataclass(frozen=True)
class RankEntry:
    """One bidder's position: current total amount and when it was reached."""

    user_id: int
    amount: Decimal
    placed_at: datetime

    @property
    def sort_key(self) -> tuple:
        # amount desc, then earliest placed_at, then lowest user id
        return (-self.amount, as_utc(self.placed_at), self.user_id)


class RankStore(ABC):
    """Ordered user → amount index scoped per auction round."""

    @abstractmethod
    def upsert(self, auction_id: int, round_number: int, entry: RankEntry) -> None:
        """Insert or move a bidder to *entry*'s amount."""

    @abstractmethod
    def top(self, auction_id: int, round_number: int, limit: int | None = None) -> list[RankEntry]:
        """Entries in rank order; all of them when *limit* is None."""

    @abstractmethod
    def rank_of(self, auction_id: int, round_number: int, user_id: int) -> tuple[int | None, Decimal | None]:
        """1-based rank and amount, or ``(None, None)`` if the user is absent."""

    @abstractmethod
    def clear(self, auction_id: int, round_number: int) -> None:
        """Drop every entry for a round."""

    @abstractmethod
    def replace(self, auction_id: int, round_number: int, entries: list[RankEntry]) -> None:
        """Atomically swap a round's contents for *entries*."""


class _Board:
    """Sorted sort-key list plus user lookup for one round."""

    def __init__(self) -> None:
        self.order: list[tuple] = []
        self.entries: dict[int, RankEntry] = {}

    def put(self, entry: RankEntry) -> None:
        old = self.entries.get(entry.user_id)
        if old is not None:
            del self.order[bisect_left(self.order, old.sort_key)]
        insort(self.order, entry.sort_key)
        self.entries[entry.user_id] = entry

    def rank(self, user_id: int) -> int | None:
        entry = self.entries.get(user_id)
        if entry is None:
            return None
        return bisect_left(self.order, entry.sort_key) + 1

    def top(self, limit: int | None) -> list[RankEntry]:
        keys = self.order if limit is None else self.order[:max(limit, 0)]
        return [self.entries[k[2]] for k in keys]


class MemoryRankStore(RankStore):
    """In-process rank store. Lost on restart; the scheduler rebuilds it on startup."""

    def __init__(self) -> None:
        self._boards: dict[tuple[int, int], _Board] = {}
        self._lock = threading.Lock()

    def upsert(self, auction_id: int, round_number: int, entry: RankEntry) -> None:
        with self._lock:
            self._boards.setdefault((auction_id, round_number), _Board()).put(entry)

    def top(self, auction_id: int, round_number: int, limit: int | None = None) -> list[RankEntry]:
        with self._lock:
            board = self._boards.get((auction_id, round_number))
            return board.top(limit) if board is not None else []

    def rank_of(self, auction_id: int, round_number: int, user_id: int) -> tuple[int | None, Decimal | None]:
        with self._lock:
            board = self._boards.get((auction_id, round_number))
            if board is None or user_id not in board.entries:
                return None, None
            return board.rank(user_id), board.entries[user_id].amount

    def clear(self, auction_id: int, round_number: int) -> None:
        with self._lock:
            self._boards.pop((auction_id, round_number), None)

    def replace(self, auction_id: int, round_number: int, entries: list[RankEntry]) -> None:
        board = _Board()
        for entry in entries:
            board.put(entry)
        with self._lock:
            if entries:
                self._boards[(auction_id, round_number)] = board
            else:
                self._boards.pop((auction_id, round_number), None)
