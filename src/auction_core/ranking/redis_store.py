"""Redis-backed rank store: one sorted set per round plus a tie-break hash."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import redis

from auction_core.clock import as_utc
from auction_core.ranking.store import RankEntry, RankStore


class RedisRankStore(RankStore):
    """Scores live in ``{prefix}:{auction}:round:{n}``; placed_at epochs in ``...:placed``.

    Redis orders equal scores lexicographically by member, so ties are
    resolved client-side from the placed_at hash.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", key_prefix: str = "auction",
                 client: "redis.Redis | None" = None) -> None:
        self.redis = client if client is not None else redis.from_url(redis_url, decode_responses=True)
        self._prefix = key_prefix

    def _key(self, auction_id: int, round_number: int) -> str:
        return f"{self._prefix}:{auction_id}:round:{round_number}"

    def _placed_key(self, auction_id: int, round_number: int) -> str:
        return self._key(auction_id, round_number) + ":placed"

    def _hydrate(self, auction_id: int, round_number: int, pairs: list) -> list[RankEntry]:
        if not pairs:
            return []
        members = [m for m, _ in pairs]
        stamps = self.redis.hmget(self._placed_key(auction_id, round_number), members)
        entries = []
        for (member, score), stamp in zip(pairs, stamps):
            placed = datetime.fromtimestamp(float(stamp) if stamp is not None else 0.0, tz=timezone.utc)
            entries.append(RankEntry(user_id=int(member), amount=Decimal(str(score)), placed_at=placed))
        entries.sort(key=lambda e: e.sort_key)
        return entries

    def upsert(self, auction_id: int, round_number: int, entry: RankEntry) -> None:
        member = str(entry.user_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.zadd(self._key(auction_id, round_number), {member: float(entry.amount)})
        pipe.hset(self._placed_key(auction_id, round_number), member, as_utc(entry.placed_at).timestamp())
        pipe.execute()

    def top(self, auction_id: int, round_number: int, limit: int | None = None) -> list[RankEntry]:
        key = self._key(auction_id, round_number)
        if limit is None:
            pairs = self.redis.zrevrange(key, 0, -1, withscores=True)
            return self._hydrate(auction_id, round_number, pairs)
        if limit <= 0:
            return []
        head = self.redis.zrevrange(key, 0, limit - 1, withscores=True)
        if not head:
            return []
        # Members tied with the last slot may sort ahead of it once placed_at is considered.
        boundary = head[-1][1]
        pairs = [(m, s) for m, s in head if s > boundary]
        pairs += self.redis.zrangebyscore(key, boundary, boundary, withscores=True)
        return self._hydrate(auction_id, round_number, pairs)[:limit]

    def rank_of(self, auction_id: int, round_number: int, user_id: int) -> tuple[int | None, Decimal | None]:
        key = self._key(auction_id, round_number)
        score = self.redis.zscore(key, str(user_id))
        if score is None:
            return None, None
        higher = self.redis.zcount(key, f"({score}", "+inf")
        tied = self._hydrate(auction_id, round_number, self.redis.zrangebyscore(key, score, score, withscores=True))
        position = next(i for i, e in enumerate(tied) if e.user_id == user_id)
        return higher + position + 1, Decimal(str(score))

    def clear(self, auction_id: int, round_number: int) -> None:
        self.redis.delete(self._key(auction_id, round_number), self._placed_key(auction_id, round_number))

    def replace(self, auction_id: int, round_number: int, entries: list[RankEntry]) -> None:
        key = self._key(auction_id, round_number)
        placed_key = self._placed_key(auction_id, round_number)
        pipe = self.redis.pipeline(transaction=True)
        pipe.delete(key, placed_key)
        if entries:
            pipe.zadd(key, {str(e.user_id): float(e.amount) for e in entries})
            pipe.hset(placed_key, mapping={str(e.user_id): as_utc(e.placed_at).timestamp() for e in entries})
        pipe.execute()
