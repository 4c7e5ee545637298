"""Tracker store, sweep and staleness reaper."""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from autotrade.events import EventName
from autotrade.orchestrator import DecisionEngine
from autotrade.reaper import StalenessReaper
from autotrade.state_store import InMemoryTrackerStore
from autotrade.strategies import get_strategy
from autotrade.tracker import PartialExitState

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_state(symbol, last_update):
    state = PartialExitState.open(
        symbol, get_strategy("security"), Decimal("1000"), Decimal("100"), Decimal("300"), now=last_update
    )
    return state


def test_keys_are_case_insensitive():
    store = InMemoryTrackerStore()
    store.set("mog_brl", make_state("MOG_BRL", T0))
    assert "MOG_BRL" in store
    assert store.get("Mog_Brl") is not None
    assert list(store) == ["MOG_BRL"]


def test_reset_cycle_removes_state():
    store = InMemoryTrackerStore()
    store.set("MOG_BRL", make_state("MOG_BRL", T0))
    removed = store.reset_cycle("MOG_BRL")
    assert removed.symbol == "MOG_BRL"
    assert len(store) == 0
    assert store.reset_cycle("MOG_BRL") is None


def test_sweep_removes_only_stale_states():
    store = InMemoryTrackerStore()
    now = T0 + timedelta(days=2)
    stale = make_state("OLD_BRL", now - timedelta(hours=24, seconds=1))
    edge = make_state("EDGE_BRL", now - timedelta(hours=24))
    fresh = make_state("NEW_BRL", now - timedelta(hours=1))
    fresh.observe_price(Decimal("130"), now - timedelta(hours=1))
    fresh_before = fresh.to_dict()
    for state in (stale, edge, fresh):
        store.set(state.symbol, state)

    removed = store.sweep(now)

    assert [s.symbol for s in removed] == ["OLD_BRL"]
    assert sorted(store) == ["EDGE_BRL", "NEW_BRL"]
    assert store.get("NEW_BRL").to_dict() == fresh_before


def test_reaper_emits_eviction_events():
    store = InMemoryTrackerStore()
    store.set("OLD_BRL", make_state("OLD_BRL", T0))
    store.set("NEW_BRL", make_state("NEW_BRL", T0 + timedelta(hours=30)))
    reaper = StalenessReaper(DecisionEngine(store))

    events = reaper.reap(T0 + timedelta(hours=31))

    assert [(e.name, e.symbol) for e in events] == [(EventName.TRACKER_EVICTED, "OLD_BRL")]
    assert events[0].data["remainingAmount"] == "700.0"
    assert events[0].data["maxProfitPercent"] == "0.00"
    assert "NEW_BRL" in store


def test_reaper_custom_max_age():
    store = InMemoryTrackerStore()
    store.set("MOG_BRL", make_state("MOG_BRL", T0))
    reaper = StalenessReaper(DecisionEngine(store), max_age=timedelta(minutes=30))
    assert len(reaper.reap(T0 + timedelta(minutes=31))) == 1


@pytest.mark.asyncio
async def test_lock_is_per_symbol():
    store = InMemoryTrackerStore()
    assert store.lock("mog_brl") is store.lock("MOG_BRL")
    assert store.lock("MOG_BRL") is not store.lock("BTC_BRL")

    order = []

    async def hold(symbol, tag, delay):
        async with store.lock(symbol):
            order.append(f"{tag}-in")
            await asyncio.sleep(delay)
            order.append(f"{tag}-out")

    await asyncio.gather(hold("MOG_BRL", "a", 0.02), hold("MOG_BRL", "b", 0))
    assert order == ["a-in", "a-out", "b-in", "b-out"]
