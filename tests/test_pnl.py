from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from autotrade.config_store import InMemoryConfigStore
from autotrade.errors import ConfigNotFoundError
from autotrade.models import Operation, OrderSide, OrderStatus, SymbolConfig
from autotrade.pnl import attribute_profits, price_stats, profit_for_sell, profit_summary

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def op(side, amount, price, minutes, status=OrderStatus.SUCCESS, symbol="MOG_BRL"):
    return Operation(
        symbol, side, Decimal(amount), status,
        price=Decimal(price) if price is not None else None,
        created_at=T0 + timedelta(minutes=minutes),
    )


def test_profit_for_sell():
    assert profit_for_sell(Decimal("120"), Decimal("10"), Decimal("100")) == Decimal("200")
    assert profit_for_sell(Decimal("90"), Decimal("10"), Decimal("100")) == Decimal("-100")
    assert profit_for_sell(Decimal("90"), Decimal("10"), None) is None


def test_sells_use_most_recent_earlier_buy():
    ops = [
        op(OrderSide.SELL, "5", "130", 30),
        op(OrderSide.BUY, "1000", "100", 0),
        op(OrderSide.SELL, "5", "110", 10),
        op(OrderSide.BUY, "1000", "120", 20),
        op(OrderSide.BUY, "1000", "1", 25, status=OrderStatus.FAILED),
    ]
    attribute_profits(ops)
    first_sell, second_sell = ops[2], ops[0]
    assert first_sell.buy_price == Decimal("100")
    assert first_sell.profit == Decimal("50")
    assert second_sell.buy_price == Decimal("120")
    assert second_sell.profit == Decimal("50")


def test_sell_without_buy_has_no_profit():
    ops = attribute_profits([op(OrderSide.SELL, "5", "110", 0)])
    assert ops[0].profit is None


def test_recorded_profit_is_kept():
    sell = op(OrderSide.SELL, "5", "110", 10)
    sell.profit = Decimal("7")
    attribute_profits([op(OrderSide.BUY, "100", "100", 0), sell])
    assert sell.profit == Decimal("7")


def test_summary_per_symbol():
    ops = attribute_profits([
        op(OrderSide.BUY, "100", "100", 0),
        op(OrderSide.SELL, "5", "110", 1),
        op(OrderSide.SELL, "5", "90", 2),
        op(OrderSide.SELL, "5", "200", 3, status=OrderStatus.FAILED),
        op(OrderSide.BUY, "100", "10", 0, symbol="BTC_BRL"),
        op(OrderSide.SELL, "1", "20", 1, symbol="BTC_BRL"),
    ])
    summary = profit_summary(ops)

    mog = summary["MOG_BRL"]
    assert mog["sells"] == 2
    assert mog["wins"] == 1 and mog["losses"] == 1
    assert mog["total_profit"] == Decimal("0")
    assert mog["win_rate_percent"] == 50
    assert summary["BTC_BRL"]["total_profit"] == Decimal("10")
    assert summary["BTC_BRL"]["win_rate_percent"] == 100


def test_price_stats_over_recent_window():
    ops = [op(OrderSide.BUY, "100", str(90 + i), i) for i in range(12)]
    ops.append(op(OrderSide.SELL, "5", "120", 20))
    ops.append(op(OrderSide.SELL, "5", "130", 21))
    ops.append(op(OrderSide.SELL, "5", "999", 22, status=OrderStatus.FAILED))

    stats = price_stats(ops)

    assert stats["last_buy_price"] == Decimal("101")
    assert stats["last_sell_price"] == Decimal("130")
    # ten most recent successes: two sells and the buys priced 94..101
    assert stats["total_operations"] == 10
    assert stats["sell_operations"] == 2
    assert stats["buy_operations"] == 8
    assert stats["avg_sell_price"] == Decimal("125")
    assert stats["avg_buy_price"] == Decimal("97.5")


def test_price_stats_without_history():
    stats = price_stats([])
    assert stats["last_buy_price"] is None
    assert stats["avg_sell_price"] is None
    assert stats["total_operations"] == 0


def test_store_price_stats_requires_config():
    store = InMemoryConfigStore([SymbolConfig("MOG_BRL", 1, 1)])
    store.record_operation(op(OrderSide.BUY, "100", "10", 0))
    stats = store.price_stats("mog_brl")
    assert stats["symbol"] == "MOG_BRL"
    assert stats["avg_buy_price"] == Decimal("10")
    with pytest.raises(ConfigNotFoundError):
        store.price_stats("BTC_BRL")
