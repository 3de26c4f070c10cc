"""Outbound event payloads for the real-time fan-out channel."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AuctionEvent(BaseModel):
    """Base payload; ``name`` is the channel event type."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: ClassVar[str] = "event"

    auction_id: int

    def to_wire(self) -> dict:
        """Envelope sent over the channel, camelCase fields as clients expect."""
        return {"event": self.name, "data": self.model_dump(mode="json", by_alias=True)}


class NewBid(AuctionEvent):
    name: ClassVar[str] = "newBid"

    user_id: int
    amount: Decimal
    round_number: int


class RoundExtended(AuctionEvent):
    name: ClassVar[str] = "roundExtended"

    round_number: int
    new_end_time: datetime


class RoundEnd(AuctionEvent):
    name: ClassVar[str] = "roundEnd"

    round_number: int
    winners_count: int
    next_round: int | None = None


class ItemWon(AuctionEvent):
    name: ClassVar[str] = "itemWon"

    round_number: int
    user_id: int
    item_serial_number: int
    amount: Decimal
    rank: int


class AuctionCreated(AuctionEvent):
    name: ClassVar[str] = "auctionCreated"

    title: str
    total_items: int
