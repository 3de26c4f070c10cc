"""Settlement workflow — winners, charges, carry-over and refunds."""

from auction_core.settlement.workflow import SettlementWorkflow, item_serial

__all__ = ["SettlementWorkflow", "item_serial"]
