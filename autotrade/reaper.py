"""Staleness reaper: evicts exit cycles that stopped receiving updates."""
from datetime import datetime, timedelta
from typing import List, Optional

from .events import EngineEvent
from .logging_setup import logger
from .orchestrator import DecisionEngine
from .state_store import DEFAULT_MAX_AGE
from .tracker import utc_now


class StalenessReaper:
    def __init__(self, engine: DecisionEngine, max_age: timedelta = DEFAULT_MAX_AGE):
        self.engine = engine
        self.max_age = max_age

    def reap(self, now: Optional[datetime] = None) -> List[EngineEvent]:
        """Remove trackers idle for longer than ``max_age`` and log each one."""
        events = self.engine.reap_stale(now or utc_now(), self.max_age)
        for event in events:
            logger.warning(
                f"Tracker evicted | symbol={event.symbol} last_update={event.data['lastUpdate']} "
                f"profit={event.data['profitPercent']} max_profit={event.data['maxProfitPercent']}"
            )
        return events

    async def run_once(self) -> List[EngineEvent]:
        return self.reap()
