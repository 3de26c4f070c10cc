"""Outbound notifications: payload models and publishers."""

from auction_core.events.models import (
    AuctionCreated,
    AuctionEvent,
    ItemWon,
    NewBid,
    RoundEnd,
    RoundExtended,
)
from auction_core.events.publisher import (
    EventPublisher,
    LogEventPublisher,
    MemoryEventPublisher,
    RedisEventPublisher,
    build_publisher,
    publish_safely,
)

__all__ = [
    "AuctionCreated",
    "AuctionEvent",
    "EventPublisher",
    "ItemWon",
    "LogEventPublisher",
    "MemoryEventPublisher",
    "NewBid",
    "RedisEventPublisher",
    "RoundEnd",
    "RoundExtended",
    "build_publisher",
    "publish_safely",
]
