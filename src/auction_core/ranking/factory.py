"""Build the configured rank store backend."""

from __future__ import annotations

from auction_core.config.schema import RankStoreConfig
from auction_core.ranking.redis_store import RedisRankStore
from auction_core.ranking.store import MemoryRankStore, RankStore


def build_rank_store(config: RankStoreConfig) -> RankStore:
    if config.backend == "redis":
        return RedisRankStore(redis_url=config.redis_url, key_prefix=config.key_prefix)
    return MemoryRankStore()
