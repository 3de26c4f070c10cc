"""Round scheduler — settles every round whose deadline has passed, on a tick."""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from auction_core.auctions.state import find_expired_rounds
from auction_core.clock import as_utc, utcnow
from auction_core.config.loader import load_config
from auction_core.config.schema import AppConfig
from auction_core.db.engine import init_engine, session_scope
from auction_core.events.publisher import build_publisher
from auction_core.logging.setup import bound_round, setup_logging
from auction_core.models.results import SettlementResult
from auction_core.ranking.factory import build_rank_store
from auction_core.ranking.rebuild import rebuild_active_rounds
from auction_core.settlement.workflow import SettlementWorkflow

log = structlog.get_logger("scheduler")


class RoundScheduler:
    """Finds expired rounds and hands each to the settlement workflow.

    Ticks never overlap: a tick that starts while another is running
    returns immediately. One auction failing does not stop the others.
    """

    def __init__(self, settlement: SettlementWorkflow) -> None:
        self.settlement = settlement
        self._guard = threading.Lock()

    def tick(self, session: Session, now: datetime | None = None) -> dict[tuple[int, int], SettlementResult]:
        """Run one pass. Returns the result per settled ``(auction_id, round_number)``."""
        if not self._guard.acquire(blocking=False):
            log.debug("tick_skipped")
            return {}
        try:
            now = as_utc(now) if now is not None else utcnow()
            expired = find_expired_rounds(session, now)
            session.rollback()

            results: dict[tuple[int, int], SettlementResult] = {}
            for auction_id, round_number in expired:
                with bound_round(auction_id, round_number):
                    try:
                        result = self.settlement.settle_round(session, auction_id, round_number, now=now)
                    except Exception:
                        log.exception("settlement_failed")
                        continue
                if result.settled:
                    results[(auction_id, round_number)] = result
            return results
        finally:
            self._guard.release()


async def run_loop(config: AppConfig, stop: asyncio.Event | None = None) -> None:
    """Scheduler loop — rebuild the rank store, then settle expired rounds every tick."""
    init_engine(config.database.url)
    rank_store = build_rank_store(config.rank_store)
    publisher = build_publisher(config.events)
    scheduler = RoundScheduler(SettlementWorkflow(rank_store, publisher))

    with session_scope() as session:
        rebuilt = rebuild_active_rounds(session, rank_store)

    log.info(
        "scheduler_started",
        tick_interval_s=config.scheduler.tick_interval_s,
        rank_store=config.rank_store.backend,
        rounds_rebuilt=rebuilt,
    )

    stop = stop or asyncio.Event()
    while not stop.is_set():
        try:
            with session_scope() as session:
                settled = scheduler.tick(session)
            if settled:
                log.info("tick_complete", rounds_settled=len(settled))
        except Exception:
            log.exception("tick_error")

        try:
            await asyncio.wait_for(stop.wait(), timeout=config.scheduler.tick_interval_s)
        except asyncio.TimeoutError:
            pass

    log.info("scheduler_stopped")


def main(config_path: str | None = None) -> None:
    """Entry point — load config, set up logging, run the async loop."""
    config = load_config(config_path)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    asyncio.run(run_loop(config))
