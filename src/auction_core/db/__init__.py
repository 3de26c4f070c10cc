"""Database layer — engine, session, ORM base."""

from auction_core.db.base import Base
from auction_core.db.engine import get_engine, init_engine, session_scope

__all__ = ["Base", "get_engine", "init_engine", "session_scope"]
