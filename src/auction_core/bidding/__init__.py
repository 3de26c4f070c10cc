"""Bidding workflow — escrow, bid-book upsert, anti-snipe extension."""

from auction_core.bidding.workflow import BiddingWorkflow, anti_snipe_extension

__all__ = ["BiddingWorkflow", "anti_snipe_extension"]
