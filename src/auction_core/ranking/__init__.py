"""Rank store — derived leaderboard index and its rebuild procedure."""

from auction_core.ranking.factory import build_rank_store
from auction_core.ranking.rebuild import (
    entries_from_bids,
    rebuild_active_rounds,
    rebuild_round,
    reconcile_round,
)
from auction_core.ranking.redis_store import RedisRankStore
from auction_core.ranking.store import MemoryRankStore, RankEntry, RankStore

__all__ = [
    "MemoryRankStore",
    "RankEntry",
    "RankStore",
    "RedisRankStore",
    "build_rank_store",
    "entries_from_bids",
    "rebuild_active_rounds",
    "rebuild_round",
    "reconcile_round",
]
