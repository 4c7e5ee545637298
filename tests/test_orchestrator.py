from datetime import datetime, timezone
from decimal import Decimal

import pytest

from autotrade.errors import ErrorKind
from autotrade.events import EventName
from autotrade.models import Balances, OrderResult, OrderSide, OrderStatus, PriceSnapshot, SymbolConfig
from autotrade.orchestrator import (
    NO_CONDITION_REASON,
    BuyRequest,
    DecisionEngine,
    NoAction,
    SellRequest,
)
from autotrade.state_store import InMemoryTrackerStore
from autotrade.tracker import ExitKind

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def snap(price, change="0"):
    return PriceSnapshot(Decimal(price), Decimal(change), taken_at=T0)


def bal(base="0", quote="0"):
    return Balances(base=Decimal(base), quote=Decimal(quote))


def filled(price):
    return OrderResult(OrderStatus.SUCCESS, execution_price=Decimal(price), order_id="x")


@pytest.fixture
def engine():
    return DecisionEngine(InMemoryTrackerStore())


def seller(strategy="security", **kw):
    return SymbolConfig("MOG_BRL", buy_threshold=kw.pop("buy", 5), sell_threshold=kw.pop("sell", 5), sell_strategy=strategy, **kw)


def test_disabled_symbol(engine):
    cfg = seller(enabled=False)
    decision = engine.decide(cfg, snap("100", "50"), bal("1000", "1000"))
    assert isinstance(decision, NoAction)
    assert decision.kind is ErrorKind.DISABLED
    assert decision.reason == "Symbol is disabled"


def test_no_condition(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=-5, sell_threshold=5)
    decision = engine.decide(cfg, snap("100", "0"), bal("1000", "1000"))
    assert decision.kind is ErrorKind.NO_CONDITION
    assert decision.reason == NO_CONDITION_REASON
    assert decision.events[-1].name is EventName.DECISION_MADE


def test_buy_uses_whole_floored_quote_balance(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=-5, sell_threshold=-5)
    decision = engine.decide(cfg, snap("100", "-6"), bal(quote="123.99"))
    assert isinstance(decision, BuyRequest)
    assert decision.amount == Decimal("123")
    assert decision.metadata["strategy"] == "Security"


def test_buy_rejected_by_price_gate(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=-5, sell_threshold=-10, last_sell_price=100)
    decision = engine.decide(cfg, snap("91", "-6"), bal(quote="500"))
    assert decision.kind is ErrorKind.INELIGIBLE
    assert "price not below limit 90" in decision.reason


def test_buy_proceeds_below_limit(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=-5, sell_threshold=-10, last_sell_price=100)
    decision = engine.decide(cfg, snap("89", "-6"), bal(quote="500"))
    assert isinstance(decision, BuyRequest)


def test_buy_gate_rejects_non_negative_sell_threshold(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=-5, sell_threshold=0)
    decision = engine.decide(cfg, snap("1", "-90"), bal(quote="100000"))
    assert decision.kind is ErrorKind.INELIGIBLE
    assert decision.reason == "Buy not allowed: sellThreshold must be negative"


def test_both_denials_are_reported(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=0, sell_threshold=0)
    decision = engine.decide(cfg, snap("100", "0"), bal("100", "100"))
    assert "sellThreshold must be negative" in decision.reason
    assert "buyThreshold must be positive" in decision.reason


def test_sell_gate_scenario(engine):
    cfg = seller(buy=10, last_buy_price=100)
    denied = engine.decide(cfg, snap("109", "6"), bal("100"))
    assert "price not above limit 110" in denied.reason
    allowed = engine.decide(cfg, snap("120", "6"), bal("100"))
    assert isinstance(allowed, SellRequest)


def test_first_sell_opens_cycle_on_confirm(engine):
    cfg = seller("security")
    decision = engine.decide(cfg, snap("100", "10"), bal("1000"))
    assert isinstance(decision, SellRequest)
    assert decision.exit.kind is ExitKind.INITIAL
    assert decision.amount == Decimal("300")
    assert decision.metadata["trailingStop"] == "95.00"
    # nothing is tracked until the fill is confirmed
    assert "MOG_BRL" not in engine.store

    events = engine.confirm(decision, filled("100"), T0)
    state = engine.store.get("MOG_BRL")
    assert state.remaining_amount == Decimal("700")
    assert state.levels[0].executed
    assert [e.name for e in events] == [EventName.LEVEL_EXECUTED]


def test_failed_fill_leaves_state_untouched(engine):
    cfg = seller("security")
    decision = engine.decide(cfg, snap("100", "10"), bal("1000"))
    assert engine.confirm(decision, OrderResult(OrderStatus.FAILED), T0) == []
    assert len(engine.store) == 0


def test_aggressive_completes_in_one_sell(engine):
    cfg = seller("aggressive")
    decision = engine.decide(cfg, snap("50", "10"), bal("10"))
    assert decision.amount == Decimal("10")
    events = engine.confirm(decision, filled("50"), T0)
    assert [e.name for e in events] == [EventName.LEVEL_EXECUTED, EventName.STRATEGY_COMPLETE]
    assert "MOG_BRL" not in engine.store


def test_existing_cycle_advances_then_trailing_stop_closes(engine):
    cfg = seller("security")
    first = engine.decide(cfg, snap("100", "10"), bal("1000"))
    engine.confirm(first, filled("100"), T0)

    nothing = engine.decide(cfg, snap("101", "10"), bal("700"))
    assert nothing.reason == "No partial exit condition met"

    level = engine.decide(cfg, snap("110", "10"), bal("700"))
    assert level.exit.kind is ExitKind.LEVEL
    assert level.amount == Decimal("300")
    assert level.metadata["trailingStop"] == "104.50"
    engine.confirm(level, filled("110"), T0)

    stop = engine.decide(cfg, snap("104", "10"), bal("400"))
    assert stop.exit.kind is ExitKind.TRAILING_STOP
    assert stop.amount == Decimal("400")
    events = engine.confirm(stop, filled("104"), T0)
    assert [e.name for e in events] == [EventName.TRAILING_STOP_EXECUTED, EventName.STRATEGY_COMPLETE]
    assert "MOG_BRL" not in engine.store


def test_level_sell_capped_by_balance(engine):
    cfg = seller("security")
    engine.confirm(engine.decide(cfg, snap("100", "10"), bal("1000")), filled("100"), T0)
    decision = engine.decide(cfg, snap("106", "10"), bal("250.5"))
    assert decision.exit.kind is ExitKind.LEVEL
    assert decision.amount == Decimal("250")


def test_first_sell_below_minimum_notional(engine):
    cfg = seller("security")
    decision = engine.decide(cfg, snap("1", "10"), bal("100"))
    assert decision.kind is ErrorKind.BELOW_MINIMUM_NOTIONAL
    assert decision.required_value == Decimal("50")


def test_manual_buy_skips_gates_but_checks_balance(engine):
    cfg = SymbolConfig("MOG_BRL", buy_threshold=5, sell_threshold=5)
    decision = engine.decide(cfg, snap("100", "0"), bal(quote="40"), manual=OrderSide.BUY)
    assert isinstance(decision, BuyRequest) and decision.manual
    poor = engine.decide(cfg, snap("100", "0"), bal(quote="10"), manual=OrderSide.BUY)
    assert poor.kind is ErrorKind.INSUFFICIENT_FUNDS


def test_manual_sell_resets_cycle(engine):
    cfg = seller("security")
    engine.confirm(engine.decide(cfg, snap("100", "10"), bal("1000")), filled("100"), T0)
    decision = engine.decide(cfg, snap("90", "-20"), bal("700.7"), manual=OrderSide.SELL)
    assert decision.exit.kind is ExitKind.MANUAL
    assert decision.amount == Decimal("700")
    engine.confirm(decision, filled("90"), T0)
    assert "MOG_BRL" not in engine.store


def test_manual_sell_requires_balance(engine):
    cfg = seller()
    decision = engine.decide(cfg, snap("100"), bal("1"), manual=OrderSide.SELL)
    assert decision.kind is ErrorKind.INSUFFICIENT_FUNDS


def test_active_trackers_snapshot(engine):
    cfg = seller("basic")
    engine.confirm(engine.decide(cfg, snap("100", "10"), bal("1000")), filled("100"), T0)
    [tracker] = engine.get_active_trackers()
    assert tracker["symbol"] == "MOG_BRL"
    assert tracker["strategy"] == "basic"
    assert tracker["remainingTargets"] == ["105.00", "110.00"]
    assert tracker["state"]["remaining_amount"] == "600.0"
