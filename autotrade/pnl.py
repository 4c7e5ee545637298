"""Realized profit accounting over the operations journal."""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from .models import Operation, OrderSide, OrderStatus


def profit_for_sell(sell_price: Decimal, amount: Decimal, buy_price: Optional[Decimal]) -> Optional[Decimal]:
    """Quote-currency profit of selling ``amount`` at ``sell_price``.

    Returns None when there is no buy to compare against.
    """
    if buy_price is None:
        return None
    return (sell_price - buy_price) * amount


def attribute_profits(operations: List[Operation]) -> List[Operation]:
    """Fill ``buy_price``/``profit`` of successful sells from the most recent earlier buy.

    Operations may be passed in any order; they are processed oldest first.
    """
    last_buy: Dict[str, Decimal] = {}
    for op in sorted(operations, key=lambda o: (o.created_at, o.id or 0)):
        if op.status is not OrderStatus.SUCCESS or op.price is None:
            continue
        if op.side is OrderSide.BUY:
            last_buy[op.symbol] = op.price
        elif op.profit is None:
            op.buy_price = last_buy.get(op.symbol)
            op.profit = profit_for_sell(op.price, op.amount, op.buy_price)
    return operations


def profit_summary(operations: List[Operation]) -> Dict[str, Dict]:
    """Aggregate realized profit per symbol.

    Returns:
        Dict keyed by symbol with total_profit, sells, wins, losses and
        win_rate_percent
    """
    out: Dict[str, Dict] = defaultdict(
        lambda: {"total_profit": Decimal("0"), "sells": 0, "wins": 0, "losses": 0}
    )
    for op in operations:
        if op.side is not OrderSide.SELL or op.status is not OrderStatus.SUCCESS:
            continue
        row = out[op.symbol]
        row["sells"] += 1
        if op.profit is None:
            continue
        row["total_profit"] += op.profit
        if op.profit > 0:
            row["wins"] += 1
        elif op.profit < 0:
            row["losses"] += 1
    for row in out.values():
        row["win_rate_percent"] = row["wins"] / row["sells"] * 100 if row["sells"] else 0
    return dict(out)


RECENT_WINDOW = 10


def _average(prices: List[Decimal]) -> Optional[Decimal]:
    return sum(prices, Decimal("0")) / len(prices) if prices else None


def price_stats(operations: List[Operation], window: int = RECENT_WINDOW) -> Dict:
    """Execution-price statistics for one symbol's journal.

    ``last_buy_price``/``last_sell_price`` come from the whole history; the
    averages and counts cover the ``window`` most recent successful operations.
    """
    successful = sorted(
        (op for op in operations if op.status is OrderStatus.SUCCESS and op.price is not None),
        key=lambda o: (o.created_at, o.id or 0),
        reverse=True,
    )
    last = {side: next((op.price for op in successful if op.side is side), None) for side in OrderSide}
    recent = successful[:window]
    buys = [op.price for op in recent if op.side is OrderSide.BUY]
    sells = [op.price for op in recent if op.side is OrderSide.SELL]
    return {
        "last_buy_price": last[OrderSide.BUY],
        "last_sell_price": last[OrderSide.SELL],
        "avg_buy_price": _average(buys),
        "avg_sell_price": _average(sells),
        "total_operations": len(recent),
        "buy_operations": len(buys),
        "sell_operations": len(sells),
    }
