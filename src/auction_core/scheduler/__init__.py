"""Round scheduler — periodic settlement of expired rounds."""

from auction_core.scheduler.runner import RoundScheduler, run_loop

__all__ = ["RoundScheduler", "run_loop"]
