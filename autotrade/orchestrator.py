"""
Decision orchestrator: one buy/sell/no-op decision per invocation.

``DecisionEngine.decide()`` combines the threshold gate, the partial-exit
tracker and the caller-supplied price and balance snapshots into a single
``Decision``. It performs no I/O. The caller executes the requested order and
hands the outcome back to ``DecisionEngine.confirm()``, which is the only
place tracker cycles are opened, advanced or closed.

Flow:
    1. Disabled symbol -> NoAction
    2. Existing tracker observes the price (high-water mark, trailing stop)
    3. Manual request -> skip candidacy and price gates, keep balance checks
    4. Buy candidate and gate allows -> BuyRequest (at most one action)
    5. Sell candidate and gate allows -> SellRequest (open or advance cycle)
    6. Otherwise -> NoAction with every denial reason collected

Examples:
    >>> from decimal import Decimal
    >>> from autotrade.models import Balances, PriceSnapshot, SymbolConfig
    >>> from autotrade.state_store import InMemoryTrackerStore
    >>> engine = DecisionEngine(InMemoryTrackerStore())
    >>> cfg = SymbolConfig("MOG_BRL", buy_threshold=10, sell_threshold=10)
    >>> decision = engine.decide(
    ...     cfg, PriceSnapshot(Decimal("100"), Decimal("15")),
    ...     Balances(base=Decimal("1000"), quote=Decimal("0")),
    ... )
    >>> decision.action, decision.amount
    ('sell', Decimal('300'))
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from .errors import ErrorKind
from .events import EngineEvent, EventName
from .gate import (
    MIN_BASE_BALANCE,
    MIN_ORDER_VALUE,
    GateVerdict,
    check_buy_price,
    check_sell_price,
    is_buy_candidate,
    is_sell_candidate,
)
from .models import Balances, OrderResult, OrderSide, PriceSnapshot, SymbolConfig
from .quantize import floor_to_step
from .state_store import DEFAULT_MAX_AGE, TrackerStore
from .strategies import SellStrategy, describe_rules, get_strategy
from .tracker import (
    ExitKind,
    ExitRejection,
    ExitSignal,
    PartialExitState,
    plan_initial_exit,
    utc_now,
)

NO_CONDITION_REASON = "No buy or sell condition met. Price is outside buy/sell thresholds."


@dataclass(frozen=True)
class EngineLimits:
    """Order sizing limits.

    Attributes:
        min_order_value: Minimum quote amount of a buy (and quote balance to consider one)
        min_base_balance: Base balance that must be exceeded to consider a sell
        amount_step: Base-currency order granularity
        quote_step: Quote-currency order granularity
    """

    min_order_value: Decimal = MIN_ORDER_VALUE
    min_base_balance: Decimal = MIN_BASE_BALANCE
    amount_step: Decimal = Decimal("1")
    quote_step: Decimal = Decimal("1")


@dataclass(frozen=True)
class NoAction:
    symbol: str
    reason: str
    kind: ErrorKind = ErrorKind.NO_CONDITION
    attempted_value: Optional[Decimal] = None
    required_value: Optional[Decimal] = None
    metadata: Dict = field(default_factory=dict)
    events: Tuple[EngineEvent, ...] = ()

    action = "none"


@dataclass(frozen=True)
class BuyRequest:
    """Buy ``amount`` of quote currency worth of the base currency."""

    symbol: str
    reason: str
    amount: Decimal
    price: Decimal
    manual: bool = False
    metadata: Dict = field(default_factory=dict)
    events: Tuple[EngineEvent, ...] = ()

    action = "buy"


@dataclass(frozen=True)
class SellRequest:
    """Sell ``amount`` of the base currency.

    ``exit`` tells which level or stop fired; ``initial_amount`` is set when
    the sell opens a new exit cycle.
    """

    symbol: str
    reason: str
    amount: Decimal
    price: Decimal
    exit: ExitSignal
    strategy: SellStrategy
    initial_amount: Optional[Decimal] = None
    manual: bool = False
    metadata: Dict = field(default_factory=dict)
    events: Tuple[EngineEvent, ...] = ()

    action = "sell"


Decision = Union[NoAction, BuyRequest, SellRequest]


class DecisionEngine:
    """Stateless decision logic over a shared ``TrackerStore``."""

    def __init__(self, store: TrackerStore, limits: Optional[EngineLimits] = None):
        self.store = store
        self.limits = limits or EngineLimits()

    # --- decisions ---
    def decide(
        self,
        cfg: SymbolConfig,
        snapshot: PriceSnapshot,
        balances: Balances,
        manual: Optional[OrderSide] = None,
        now: Optional[datetime] = None,
    ) -> Decision:
        symbol = cfg.symbol
        if not cfg.enabled:
            return self._finish(cfg, NoAction(symbol, "Symbol is disabled", ErrorKind.DISABLED))

        price = snapshot.last_price
        tracker = self.store.get(symbol)
        if tracker is not None:
            tracker.observe_price(price, now)

        if manual is OrderSide.BUY:
            return self._finish(cfg, self._plan_buy(cfg, price, balances, "Manual buy", manual=True), tracker)
        if manual is OrderSide.SELL:
            return self._finish(cfg, self._plan_manual_sell(cfg, price, balances), tracker)

        denials: List[GateVerdict] = []
        if is_buy_candidate(cfg, snapshot.change_24h, balances, self.limits.min_order_value):
            verdict = check_buy_price(cfg, price)
            if verdict.allowed:
                return self._finish(cfg, self._plan_buy(cfg, price, balances, verdict.reason), tracker)
            denials.append(verdict)

        if is_sell_candidate(cfg, snapshot.change_24h, balances, self.limits.min_base_balance):
            verdict = check_sell_price(cfg, price)
            if verdict.allowed:
                return self._finish(cfg, self._plan_sell(cfg, price, balances, tracker), tracker)
            denials.append(verdict)

        if denials:
            decision = NoAction(
                symbol,
                "; ".join(v.reason for v in denials),
                denials[0].kind or ErrorKind.INELIGIBLE,
            )
        else:
            decision = NoAction(symbol, NO_CONDITION_REASON)
        return self._finish(cfg, decision, tracker)

    def _plan_buy(
        self, cfg: SymbolConfig, price: Decimal, balances: Balances, reason: str, manual: bool = False
    ) -> Decision:
        floored = floor_to_step(balances.quote, Decimal("1"))
        amount = floor_to_step(max(floored, self.limits.min_order_value), self.limits.quote_step)
        if amount <= 0:
            return NoAction(cfg.symbol, "Buy amount is zero", ErrorKind.ZERO_AMOUNT)
        if amount > balances.quote:
            return NoAction(
                cfg.symbol,
                f"Insufficient {cfg.quote_currency} balance: {balances.quote} < {amount}",
                ErrorKind.INSUFFICIENT_FUNDS,
                attempted_value=balances.quote,
                required_value=self.limits.min_order_value,
            )
        if amount < self.limits.min_order_value:
            return NoAction(
                cfg.symbol,
                f"Buy amount {amount} below minimum order value {self.limits.min_order_value}",
                ErrorKind.BELOW_MINIMUM_NOTIONAL,
                attempted_value=amount,
                required_value=self.limits.min_order_value,
            )
        return BuyRequest(cfg.symbol, reason, amount=amount, price=price, manual=manual)

    def _plan_sell(
        self,
        cfg: SymbolConfig,
        price: Decimal,
        balances: Balances,
        tracker: Optional[PartialExitState],
    ) -> Decision:
        step = self.limits.amount_step
        if tracker is None:
            definition = get_strategy(cfg.sell_strategy)
            planned = plan_initial_exit(definition, balances.base, price, step)
            if isinstance(planned, ExitRejection):
                return self._rejected(cfg.symbol, planned)
            return SellRequest(
                cfg.symbol,
                f"Sell order ({_pct(planned.percentage)}) - {planned.reason}",
                amount=planned.amount,
                price=price,
                exit=planned,
                strategy=definition.key,
                initial_amount=balances.base,
            )

        planned = tracker.evaluate(price, step)
        if planned is None:
            return NoAction(cfg.symbol, "No partial exit condition met")
        if isinstance(planned, ExitRejection):
            return self._rejected(cfg.symbol, planned)
        amount = min(planned.amount, floor_to_step(balances.base, step))
        if amount <= 0:
            return NoAction(cfg.symbol, "Sell amount is zero", ErrorKind.ZERO_AMOUNT)
        return SellRequest(
            cfg.symbol,
            f"Sell order executed: {planned.reason}",
            amount=amount,
            price=price,
            exit=planned,
            strategy=tracker.strategy,
        )

    def _plan_manual_sell(self, cfg: SymbolConfig, price: Decimal, balances: Balances) -> Decision:
        if balances.base <= self.limits.min_base_balance:
            return NoAction(
                cfg.symbol,
                f"Insufficient {cfg.base_currency} balance: {balances.base}",
                ErrorKind.INSUFFICIENT_FUNDS,
                attempted_value=balances.base,
                required_value=self.limits.min_base_balance,
            )
        amount = floor_to_step(balances.base, self.limits.amount_step)
        if amount <= 0:
            return NoAction(cfg.symbol, "Sell amount is zero", ErrorKind.ZERO_AMOUNT)
        signal = ExitSignal(kind=ExitKind.MANUAL, amount=amount, price=price, reason="Manual sell")
        return SellRequest(
            cfg.symbol,
            "Manual sell",
            amount=amount,
            price=price,
            exit=signal,
            strategy=cfg.sell_strategy,
            manual=True,
        )

    @staticmethod
    def _rejected(symbol: str, rejection: ExitRejection) -> NoAction:
        return NoAction(
            symbol,
            rejection.reason,
            rejection.kind,
            attempted_value=rejection.attempted_value,
            required_value=rejection.required_value,
        )

    def _finish(self, cfg: SymbolConfig, decision: Decision, tracker: Optional[PartialExitState] = None) -> Decision:
        """Attach strategy metadata and the decision_made event."""
        metadata = self._metadata(cfg, decision, tracker)
        data = {"action": decision.action, "reason": decision.reason}
        if isinstance(decision, (BuyRequest, SellRequest)):
            data.update(amount=str(decision.amount), price=str(decision.price))
        if isinstance(decision, NoAction):
            data["kind"] = decision.kind.value
            if decision.attempted_value is not None:
                data.update(
                    attempted=str(decision.attempted_value),
                    required=str(decision.required_value),
                )
        event = EngineEvent(EventName.DECISION_MADE, decision.symbol, data)
        return replace(decision, metadata=metadata, events=decision.events + (event,))

    def _metadata(self, cfg: SymbolConfig, decision: Decision, tracker: Optional[PartialExitState]) -> Dict:
        if tracker is not None:
            definition = get_strategy(tracker.strategy)
            return {
                "strategy": definition.name,
                "strategyType": definition.key.value,
                "ruleDescription": describe_rules(definition),
                "remainingTargets": [str(p) for p in tracker.pending_targets()],
                "trailingStop": str(tracker.trailing_stop_price),
                "remainingAmount": str(tracker.remaining_amount),
                "highestPrice": str(tracker.highest_price_seen),
            }
        selling = isinstance(decision, SellRequest)
        definition = get_strategy(decision.strategy if selling else cfg.sell_strategy)
        meta = {
            "strategy": definition.name,
            "strategyType": definition.key.value,
            "ruleDescription": describe_rules(definition),
        }
        if selling and decision.exit.kind is ExitKind.INITIAL:
            meta["remainingTargets"] = [
                str(decision.price * (1 + level.price_increase)) for level in definition.levels[1:]
            ]
            meta["trailingStop"] = str(decision.price * (1 - definition.trailing_stop_fraction))
        return meta

    # --- state transitions ---
    def confirm(
        self, decision: Decision, fill: OrderResult, now: Optional[datetime] = None
    ) -> List[EngineEvent]:
        """Apply the tracker transition for an executed order.

        Nothing changes unless ``fill`` reports a successful execution.

        Returns:
            Events describing the transition
        """
        if not isinstance(decision, SellRequest) or not fill.ok:
            return []

        now = now or utc_now()
        symbol = decision.symbol
        price = fill.execution_price
        exit_ = decision.exit
        events: List[EngineEvent] = []

        if exit_.kind is ExitKind.MANUAL:
            self.store.reset_cycle(symbol)
            return events

        if exit_.kind is ExitKind.INITIAL:
            state = PartialExitState.open(
                symbol,
                get_strategy(decision.strategy),
                initial_amount=decision.initial_amount,
                execution_price=price,
                sold_amount=decision.amount,
                now=now,
            )
            events.append(self._level_event(state, 0, decision.amount, price))
        else:
            state = self.store.get(symbol)
            if state is None:
                # cycle was reset or evicted while the order was in flight
                return events
            if exit_.kind is ExitKind.LEVEL:
                state.apply_level(exit_.level_index, decision.amount, price, now)
                events.append(self._level_event(state, exit_.level_index, decision.amount, price))
            else:
                state.apply_trailing_exit(decision.amount, price, now)
                events.append(
                    EngineEvent(
                        EventName.TRAILING_STOP_EXECUTED,
                        symbol,
                        {
                            "amount": str(decision.amount),
                            "price": str(price),
                            "trailingStop": str(state.trailing_stop_price),
                            "highestPrice": str(state.highest_price_seen),
                        },
                    )
                )

        if state.is_complete():
            self.store.delete(symbol)
            events.append(
                EngineEvent(EventName.STRATEGY_COMPLETE, symbol, state.profit_metrics().to_dict())
            )
        else:
            self.store.set(symbol, state)
        return events

    @staticmethod
    def _level_event(state: PartialExitState, index: int, amount: Decimal, price: Decimal) -> EngineEvent:
        return EngineEvent(
            EventName.LEVEL_EXECUTED,
            state.symbol,
            {
                "level": index + 1,
                "percentage": _pct(state.levels[index].percentage),
                "amount": str(amount),
                "price": str(price),
                "remainingAmount": str(state.remaining_amount),
            },
        )

    # --- reporting and maintenance ---
    def get_active_trackers(self) -> List[Dict]:
        """Snapshot of every open exit cycle for status reporting."""
        out = []
        for symbol, state in self.store.items():
            definition = get_strategy(state.strategy)
            out.append(
                {
                    "symbol": symbol,
                    "strategy": definition.key.value,
                    "strategyName": definition.name,
                    "state": state.to_dict(),
                    "remainingTargets": [str(p) for p in state.pending_targets()],
                    "profit": state.profit_metrics().to_dict(),
                }
            )
        return out

    def reset_cycle(self, symbol: str) -> Optional[PartialExitState]:
        return self.store.reset_cycle(symbol)

    def reap_stale(
        self, now: Optional[datetime] = None, max_age: timedelta = DEFAULT_MAX_AGE
    ) -> List[EngineEvent]:
        """Evict trackers idle for longer than ``max_age``."""
        now = now or utc_now()
        events = []
        for state in self.store.sweep(now, max_age):
            data = state.profit_metrics().to_dict()
            data.update(
                lastUpdate=state.last_update.isoformat(),
                remainingAmount=str(state.remaining_amount),
            )
            events.append(EngineEvent(EventName.TRACKER_EVICTED, state.symbol, data))
        return events


def _pct(fraction: Optional[Decimal]) -> str:
    if fraction is None:
        return "-"
    return f"{(fraction * 100).normalize():f}%"

