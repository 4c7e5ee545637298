"""Trading job: fetch, decide, execute, confirm for one symbol at a time.

``TradingJob`` is the I/O shell around ``DecisionEngine``. For each symbol it
holds the store's per-symbol lock for the whole cycle:

    1. read the SymbolConfig
    2. fetch the price snapshot and both balances
    3. ask the engine for a decision
    4. execute the order (if any)
    5. confirm the fill with the engine, write back the reference price and
       journal the operation

Upstream failures (exchange errors, timeouts, OS errors) are reported as
``ErrorKind.UPSTREAM_FAILURE`` results; tracker state is left untouched.
"""
import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .config_store import ConfigStore
from .errors import AutotradeError, ErrorKind
from .events import EngineEvent
from .exchange import BalanceProvider, MarketDataProvider, OrderExecutor
from .logging_setup import logger
from .models import Balances, Operation, OrderResult, OrderSide, OrderStatus, SymbolConfig
from .orchestrator import BuyRequest, Decision, DecisionEngine, NoAction
from .pnl import profit_for_sell
from .strategies import list_strategies, strategy_info

UPSTREAM_ERRORS: Tuple = (AutotradeError, OSError, asyncio.TimeoutError)


@dataclass
class RunResult:
    """Outcome of one job invocation for a symbol."""

    symbol: str
    action: str
    success: bool
    reason: str
    kind: Optional[ErrorKind] = None
    amount: Optional[Decimal] = None
    price: Optional[Decimal] = None
    order_id: Optional[str] = None
    operation: Optional[Operation] = None
    metadata: Dict = field(default_factory=dict)
    events: List[EngineEvent] = field(default_factory=list)

    @classmethod
    def upstream_failure(cls, symbol: str, action: str, error: Exception) -> "RunResult":
        return cls(symbol, action, False, f"Upstream failure: {error}", ErrorKind.UPSTREAM_FAILURE)

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "kind": self.kind.value if self.kind else None,
            "amount": str(self.amount) if self.amount is not None else None,
            "price": str(self.price) if self.price is not None else None,
            "orderId": self.order_id,
            "metadata": self.metadata,
            "events": [e.name.value for e in self.events],
        }


class TradingJob:
    """Runs decision cycles against an exchange and a config store."""

    def __init__(
        self,
        market: MarketDataProvider,
        balances: BalanceProvider,
        orders: OrderExecutor,
        configs: ConfigStore,
        engine: DecisionEngine,
    ):
        self.market = market
        self.balances = balances
        self.orders = orders
        self.configs = configs
        self.engine = engine

    async def run_symbol(
        self, symbol: str, manual: Optional[OrderSide] = None, now: Optional[datetime] = None
    ) -> RunResult:
        """Run one full cycle for ``symbol``.

        Raises:
            ConfigNotFoundError: If the symbol has no configuration
        """
        cfg = self.configs.require_symbol_config(symbol)
        async with self.engine.store.lock(cfg.symbol):
            try:
                snapshot = await self.market.get_price_snapshot(cfg.symbol)
                balances = Balances(
                    base=await self.balances.get_available_balance(cfg.base_currency),
                    quote=await self.balances.get_available_balance(cfg.quote_currency),
                )
            except UPSTREAM_ERRORS as e:
                logger.error(f"Market data failed | symbol={cfg.symbol} error={e}")
                return RunResult.upstream_failure(cfg.symbol, "none", e)

            decision = self.engine.decide(cfg, snapshot, balances, manual=manual, now=now)
            self._log_events(decision.events)
            if isinstance(decision, NoAction):
                return RunResult(
                    cfg.symbol,
                    "none",
                    False,
                    decision.reason,
                    decision.kind,
                    metadata=decision.metadata,
                    events=list(decision.events),
                )
            return await self._execute(cfg, decision, now)

    async def _execute(self, cfg: SymbolConfig, decision: Decision, now: Optional[datetime]) -> RunResult:
        is_buy = isinstance(decision, BuyRequest)
        side = OrderSide.BUY if is_buy else OrderSide.SELL
        try:
            if is_buy:
                fill = await self.orders.execute_buy(cfg.symbol, decision.amount)
            else:
                fill = await self.orders.execute_sell(cfg.symbol, decision.amount)
        except UPSTREAM_ERRORS as e:
            logger.error(f"Order failed | symbol={cfg.symbol} side={side.value} amount={decision.amount} error={e}")
            self.configs.record_operation(
                Operation(cfg.symbol, side, decision.amount, OrderStatus.FAILED, response={"error": str(e)})
            )
            return RunResult.upstream_failure(cfg.symbol, side.value, e)

        if fill.status is OrderStatus.SUCCESS and fill.execution_price is None:
            logger.warning(f"Fill without price | symbol={cfg.symbol} using ticker price {decision.price}")
            fill = replace(fill, execution_price=decision.price)

        events = list(decision.events) + self.engine.confirm(decision, fill, now)
        self._log_events(events[len(decision.events):])
        operation = self._journal(cfg, side, decision, fill)

        if not fill.ok:
            logger.warning(f"Order not executed | symbol={cfg.symbol} side={side.value} amount={decision.amount}")
            return RunResult(
                cfg.symbol,
                side.value,
                False,
                f"{side.value.capitalize()} order failed",
                ErrorKind.UPSTREAM_FAILURE,
                amount=decision.amount,
                order_id=fill.order_id,
                operation=operation,
                metadata=decision.metadata,
                events=events,
            )

        if is_buy:
            self.configs.write_back_prices(cfg.symbol, last_buy_price=fill.execution_price)
        else:
            self.configs.write_back_prices(cfg.symbol, last_sell_price=fill.execution_price)
        logger.info(
            f"Order executed | symbol={cfg.symbol} side={side.value} amount={decision.amount} "
            f"price={fill.execution_price} order_id={fill.order_id}"
        )
        return RunResult(
            cfg.symbol,
            side.value,
            True,
            decision.reason,
            amount=decision.amount,
            price=fill.execution_price,
            order_id=fill.order_id,
            operation=operation,
            metadata=decision.metadata,
            events=events,
        )

    def _journal(self, cfg: SymbolConfig, side: OrderSide, decision: Decision, fill: OrderResult) -> Operation:
        op = Operation(
            symbol=cfg.symbol,
            side=side,
            amount=decision.amount,
            status=OrderStatus.SUCCESS if fill.ok else OrderStatus.FAILED,
            price=fill.execution_price,
            order_id=fill.order_id,
            response=fill.raw,
        )
        if side is OrderSide.SELL and fill.ok:
            # Realized profit is measured against the most recent successful buy.
            last_buy = self.configs.last_successful_operation(cfg.symbol, OrderSide.BUY)
            op.buy_price = last_buy.price if last_buy else cfg.last_buy_price
            op.profit = profit_for_sell(fill.execution_price, decision.amount, op.buy_price)
        return self.configs.record_operation(op)

    @staticmethod
    def _log_events(events) -> None:
        for event in events:
            logger.info(event.describe())

    async def run_all(self, now: Optional[datetime] = None) -> List[RunResult]:
        """Run every enabled symbol concurrently; one symbol's failure does not stop the rest."""
        configs = self.configs.list_symbol_configs(enabled_only=True)
        results = await asyncio.gather(
            *(self.run_symbol(cfg.symbol, now=now) for cfg in configs), return_exceptions=True
        )
        out = []
        for cfg, res in zip(configs, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                logger.error(f"Job run failed | symbol={cfg.symbol} error={res}")
                out.append(RunResult(cfg.symbol, "none", False, str(res), ErrorKind.UPSTREAM_FAILURE))
            else:
                out.append(res)
        return out

    async def manual_buy(self, symbol: str, now: Optional[datetime] = None) -> RunResult:
        return await self.run_symbol(symbol, manual=OrderSide.BUY, now=now)

    async def manual_sell(self, symbol: str, now: Optional[datetime] = None) -> RunResult:
        return await self.run_symbol(symbol, manual=OrderSide.SELL, now=now)

    def strategy_status(self) -> Dict:
        """Active exit cycles plus the catalog of available strategies."""
        trackers = self.engine.get_active_trackers()
        return {
            "activeTrackers": len(trackers),
            "trackers": trackers,
            "strategies": [strategy_info(d.key) for d in list_strategies()],
        }

    def status_detailed(self) -> Dict:
        """Per-symbol configuration joined with its active tracker, if any."""
        trackers = {t["symbol"]: t for t in self.engine.get_active_trackers()}
        symbols = []
        for cfg in self.configs.list_symbol_configs():
            entry = cfg.to_dict()
            entry["strategy"] = strategy_info(cfg.sell_strategy)
            entry["tracker"] = trackers.get(cfg.symbol)
            symbols.append(entry)
        return {
            "symbols": symbols,
            "enabledCount": sum(1 for s in symbols if s["enabled"]),
            "activeTrackers": len(trackers),
        }
