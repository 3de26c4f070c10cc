"""Tests for event payloads and publishers."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal

from auction_core.config.schema import EventsConfig
from auction_core.events import (
    AuctionCreated,
    ItemWon,
    LogEventPublisher,
    MemoryEventPublisher,
    NewBid,
    RedisEventPublisher,
    RoundEnd,
    RoundExtended,
    build_publisher,
    publish_safely,
)


class _FailingPublisher(MemoryEventPublisher):
    def publish(self, event):
        raise ConnectionError("channel down")


class TestPayloads:
    def test_new_bid_wire_format(self):
        event = NewBid(auction_id=1, user_id=2, amount=Decimal("150.50"), round_number=3)
        assert event.to_wire() == {
            "event": "newBid",
            "data": {"auctionId": 1, "userId": 2, "amount": "150.50", "roundNumber": 3},
        }

    def test_round_extended_serialises_end_time(self):
        end = datetime(2026, 3, 1, 12, 5, 30, tzinfo=timezone.utc)
        wire = RoundExtended(auction_id=1, round_number=2, new_end_time=end).to_wire()
        assert wire["event"] == "roundExtended"
        assert datetime.fromisoformat(wire["data"]["newEndTime"].replace("Z", "+00:00")) == end

    def test_final_round_end_has_null_next_round(self):
        wire = RoundEnd(auction_id=1, round_number=5, winners_count=3).to_wire()
        assert wire["data"] == {"auctionId": 1, "roundNumber": 5, "winnersCount": 3, "nextRound": None}

    def test_item_won_fields(self):
        data = ItemWon(
            auction_id=1, round_number=2, user_id=9, item_serial_number=14, amount=Decimal("700"), rank=4,
        ).to_wire()["data"]
        assert data["itemSerialNumber"] == 14
        assert data["rank"] == 4

    def test_accepts_camel_case_input(self):
        event = AuctionCreated.model_validate({"auctionId": 3, "title": "Drop", "totalItems": 50})
        assert event.auction_id == 3
        assert event.total_items == 50


class TestPublishers:
    def test_memory_publisher_keeps_order(self):
        pub = MemoryEventPublisher()
        pub.publish(NewBid(auction_id=1, user_id=1, amount=Decimal("1"), round_number=1))
        pub.publish(RoundEnd(auction_id=1, round_number=1, winners_count=0))
        assert [e.name for e in pub.events] == ["newBid", "roundEnd"]
        assert len(pub.of_type(RoundEnd)) == 1

    def test_redis_publisher_sends_json_envelope(self, fake_redis):
        pub = RedisEventPublisher(channel="auction-events", client=fake_redis)
        pub.publish(AuctionCreated(auction_id=4, title="Drop", total_items=20))

        ((channel, message),) = fake_redis.published
        assert channel == "auction-events"
        assert json.loads(message) == {
            "event": "auctionCreated",
            "data": {"auctionId": 4, "title": "Drop", "totalItems": 20},
        }

    def test_log_publisher_does_not_raise(self):
        LogEventPublisher().publish(RoundEnd(auction_id=1, round_number=1, winners_count=2))

    def test_publish_safely_swallows_failures(self):
        publish_safely(_FailingPublisher(), RoundEnd(auction_id=1, round_number=1, winners_count=0))

    def test_publish_safely_without_publisher(self):
        publish_safely(None, RoundEnd(auction_id=1, round_number=1, winners_count=0))

    def test_build_publisher(self):
        assert isinstance(build_publisher(EventsConfig()), LogEventPublisher)
        assert isinstance(build_publisher(EventsConfig(backend="memory")), MemoryEventPublisher)
        assert isinstance(build_publisher(EventsConfig(backend="redis")), RedisEventPublisher)
