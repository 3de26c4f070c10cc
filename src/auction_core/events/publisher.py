"""Event publishers — commit durable state first, then notify best-effort."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

import redis
import structlog

from auction_core.config.schema import EventsConfig
from auction_core.events.models import AuctionEvent

log = structlog.get_logger("events")


class EventPublisher(ABC):
    @abstractmethod
    def publish(self, event: AuctionEvent) -> None:
        """Hand one event to the fan-out channel."""


class LogEventPublisher(EventPublisher):
    """Writes each event to the structured log; the default when no channel is wired."""

    def publish(self, event: AuctionEvent) -> None:
        log.info("event_published", event_name=event.name, **event.model_dump(mode="json"))


class MemoryEventPublisher(EventPublisher):
    """Keeps events in a list, in emission order."""

    def __init__(self) -> None:
        self.events: list[AuctionEvent] = []

    def publish(self, event: AuctionEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[AuctionEvent]) -> list[AuctionEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


class RedisEventPublisher(EventPublisher):
    """Publishes JSON envelopes on a redis pub/sub channel for the socket gateway."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0", channel: str = "auction-events",
                 client: "redis.Redis | None" = None) -> None:
        self.redis = client if client is not None else redis.from_url(redis_url, decode_responses=True)
        self.channel = channel

    def publish(self, event: AuctionEvent) -> None:
        self.redis.publish(self.channel, json.dumps(event.to_wire()))


def publish_safely(publisher: EventPublisher | None, event: AuctionEvent) -> None:
    """Publish, logging and swallowing any failure; durable state is already committed."""
    if publisher is None:
        return
    try:
        publisher.publish(event)
    except Exception:
        log.exception("event_publish_failed", event_name=event.name, auction_id=event.auction_id)


def build_publisher(config: EventsConfig) -> EventPublisher:
    if config.backend == "redis":
        return RedisEventPublisher(redis_url=config.redis_url, channel=config.channel)
    if config.backend == "memory":
        return MemoryEventPublisher()
    return LogEventPublisher()
