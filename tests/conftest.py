"""Shared test fixtures."""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from auction_core.config.schema import AppConfig
from auction_core.db.base import Base
from auction_core.events.publisher import MemoryEventPublisher
from auction_core.ranking.store import MemoryRankStore
from auction_core.service import AuctionService

# Import all table modules so Base.metadata sees them
import auction_core.db.tables  # noqa: F401


def make_sqlite_engine(url: str, **kwargs):
    """SQLite engine with every auction table created.

    SQLite has no schemas, so tables are moved to the default one.
    """
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    for table in Base.metadata.tables.values():
        table.schema = None

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = make_sqlite_engine("sqlite:///:memory:")
    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'auction.db'}"


@pytest.fixture
def session_factory(sqlite_url):
    """File-backed SQLite sessions that can be used from several threads."""
    engine = make_sqlite_engine(
        sqlite_url,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def rank_store():
    return MemoryRankStore()


@pytest.fixture
def publisher():
    return MemoryEventPublisher()


@pytest.fixture
def service(rank_store, publisher):
    return AuctionService(AppConfig(), rank_store=rank_store, publisher=publisher)


# ── In-process stand-in for the redis client calls the backends make ──


class _FakePipeline:
    def __init__(self, client):
        self._client = client
        self._ops = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self._ops.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        ops, self._ops = self._ops, []
        return [getattr(self._client, name)(*args, **kwargs) for name, args, kwargs in ops]


class FakeRedis:
    def __init__(self):
        self.zsets: dict[str, dict[str, float]] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.published: list[tuple[str, str]] = []

    def pipeline(self, transaction=True):
        return _FakePipeline(self)

    def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update({m: float(s) for m, s in mapping.items()})

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hashes.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        if mapping:
            h.update({k: str(v) for k, v in mapping.items()})

    def hmget(self, key, fields):
        h = self.hashes.get(key, {})
        return [h.get(f) for f in fields]

    def delete(self, *keys):
        for key in keys:
            self.zsets.pop(key, None)
            self.hashes.pop(key, None)

    def _ascending(self, key):
        return sorted(self.zsets.get(key, {}).items(), key=lambda kv: (kv[1], kv[0]))

    def zrevrange(self, key, start, end, withscores=False):
        items = list(reversed(self._ascending(key)))
        items = items[start:] if end == -1 else items[start:end + 1]
        return items if withscores else [m for m, _ in items]

    def zrangebyscore(self, key, lo, hi, withscores=False):
        items = [(m, s) for m, s in self._ascending(key) if float(lo) <= s <= float(hi)]
        return items if withscores else [m for m, _ in items]

    def zscore(self, key, member):
        return self.zsets.get(key, {}).get(member)

    def zcount(self, key, lo, hi):
        exclusive = isinstance(lo, str) and lo.startswith("(")
        floor = float(lo[1:]) if exclusive else float(lo)
        ceiling = float("inf") if hi == "+inf" else float(hi)
        return sum(
            1 for s in self.zsets.get(key, {}).values()
            if (s > floor if exclusive else s >= floor) and s <= ceiling
        )

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 1


@pytest.fixture
def fake_redis():
    return FakeRedis()
