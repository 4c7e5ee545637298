"""Tracker state store shared by scheduled and manual flows.

Exit-cycle state lives behind ``TrackerStore`` so the decision engine, the
manual-override path and the staleness reaper all go through one explicit
interface. The store also hands out one ``asyncio.Lock`` per symbol; callers
hold it across a full decide/execute/confirm cycle so that two concurrent
invocations for the same symbol cannot both open a cycle or race on the
remaining amount.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional, Tuple

from .tracker import PartialExitState

DEFAULT_MAX_AGE = timedelta(hours=24)


class TrackerStore(ABC):
    """Keyed container of ``PartialExitState`` objects."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    @abstractmethod
    def get(self, symbol: str) -> Optional[PartialExitState]:
        pass

    @abstractmethod
    def set(self, symbol: str, state: PartialExitState) -> None:
        pass

    @abstractmethod
    def delete(self, symbol: str) -> Optional[PartialExitState]:
        """Remove and return the state for ``symbol`` (None if absent)."""
        pass

    @abstractmethod
    def items(self) -> List[Tuple[str, PartialExitState]]:
        pass

    def reset_cycle(self, symbol: str) -> Optional[PartialExitState]:
        """Abandon the current exit cycle so the next sell starts a new one."""
        return self.delete(symbol)

    def sweep(
        self, now: datetime, max_age: timedelta = DEFAULT_MAX_AGE
    ) -> List[PartialExitState]:
        """Remove every state whose last update is older than ``max_age``.

        Returns:
            The removed states, untouched
        """
        stale = [sym for sym, state in self.items() if now - state.last_update > max_age]
        removed = []
        for sym in stale:
            state = self.delete(sym)
            if state is not None:
                removed.append(state)
        return removed

    def lock(self, symbol: str) -> asyncio.Lock:
        """Per-symbol lock serializing mutations of that symbol's cycle."""
        key = symbol.upper()
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def __contains__(self, symbol: str) -> bool:
        return self.get(symbol) is not None

    def __iter__(self) -> Iterator[str]:
        return iter([sym for sym, _ in self.items()])

    def __len__(self) -> int:
        return len(self.items())


class InMemoryTrackerStore(TrackerStore):
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        super().__init__()
        self._states: Dict[str, PartialExitState] = {}

    def get(self, symbol: str) -> Optional[PartialExitState]:
        return self._states.get(symbol.upper())

    def set(self, symbol: str, state: PartialExitState) -> None:
        self._states[symbol.upper()] = state

    def delete(self, symbol: str) -> Optional[PartialExitState]:
        return self._states.pop(symbol.upper(), None)

    def items(self) -> List[Tuple[str, PartialExitState]]:
        return list(self._states.items())
