"""Events emitted alongside engine decisions for observers to consume."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class EventName(Enum):
    DECISION_MADE = "decision_made"
    LEVEL_EXECUTED = "level_executed"
    TRAILING_STOP_EXECUTED = "trailing_stop_executed"
    STRATEGY_COMPLETE = "strategy_complete"
    TRACKER_EVICTED = "tracker_evicted"


@dataclass(frozen=True)
class EngineEvent:
    name: EventName
    symbol: str
    data: Dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def describe(self) -> str:
        details = " ".join(f"{k}={v}" for k, v in self.data.items())
        return f"{self.name.value} | symbol={self.symbol} {details}".rstrip()
