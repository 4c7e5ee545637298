from decimal import Decimal

import pytest

from autotrade.config_store import InMemoryConfigStore
from autotrade.errors import ConfigNotFoundError, UnknownStrategyError
from autotrade.events import EngineEvent, EventName
from autotrade.models import OrderResult, OrderStatus, SymbolConfig, split_symbol
from autotrade.quantize import floor_to_step, normalize_price, to_decimal
from autotrade.strategies import SellStrategy


def test_floor_to_step_never_rounds_up():
    assert floor_to_step(Decimal("123.99"), Decimal("1")) == Decimal("123")
    assert floor_to_step(Decimal("0.129"), Decimal("0.01")) == Decimal("0.12")
    assert floor_to_step(Decimal("-3"), Decimal("1")) == Decimal("0")
    assert floor_to_step(Decimal("7.5"), Decimal("0")) == Decimal("7.5")


def test_normalize_price_and_to_decimal():
    assert normalize_price(Decimal("1.000000000049")) == Decimal("1.0000000000")
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("2.50") == Decimal("2.50")


def test_split_symbol():
    assert split_symbol("mog_brl") == ("MOG", "BRL")
    with pytest.raises(ValueError):
        split_symbol("MOGBRL")


def test_symbol_config_coerces_fields():
    cfg = SymbolConfig("mog_brl", buy_threshold=-5, sell_threshold="2.5")
    assert cfg.symbol == "MOG_BRL"
    assert cfg.buy_threshold == Decimal("-5")
    assert cfg.sell_strategy is SellStrategy.SECURITY
    assert (cfg.base_currency, cfg.quote_currency) == ("MOG", "BRL")


def test_symbol_config_rejects_unknown_strategy():
    with pytest.raises(UnknownStrategyError):
        SymbolConfig("MOG_BRL", 1, 1, sell_strategy="moonshot")


def test_from_dict_accepts_camel_case():
    cfg = SymbolConfig.from_dict({
        "symbol": "MOG_BRL",
        "buyThreshold": "-4",
        "sellThreshold": "-6",
        "lastBuyPrice": "0.5",
        "sellStrategy": "aggressive",
        "checkIntervalSeconds": 90,
    })
    assert cfg.last_buy_price == Decimal("0.5")
    assert cfg.sell_strategy is SellStrategy.AGGRESSIVE
    assert cfg.check_interval_seconds == 90.0
    assert SymbolConfig.from_dict(cfg.to_dict()) == cfg


def test_with_prices_keeps_unset_price():
    cfg = SymbolConfig("MOG_BRL", 1, 1, last_buy_price="10", last_sell_price="12")
    updated = cfg.with_prices(last_sell_price=Decimal("15"))
    assert updated.last_buy_price == Decimal("10")
    assert updated.last_sell_price == Decimal("15")


def test_order_result_needs_price_to_be_ok():
    assert OrderResult(OrderStatus.SUCCESS, execution_price=Decimal("1")).ok
    assert not OrderResult(OrderStatus.SUCCESS).ok
    assert not OrderResult(OrderStatus.FAILED, execution_price=Decimal("1")).ok


def test_event_describe():
    event = EngineEvent(EventName.LEVEL_EXECUTED, "MOG_BRL", {"amount": "300"})
    assert event.describe() == "level_executed | symbol=MOG_BRL amount=300"


def test_in_memory_store_returns_copies():
    store = InMemoryConfigStore([SymbolConfig("MOG_BRL", 1, 1)])
    cfg = store.read_symbol_config("mog_brl")
    cfg.enabled = False
    assert store.read_symbol_config("MOG_BRL").enabled is True
    with pytest.raises(ConfigNotFoundError):
        store.require_symbol_config("BTC_BRL")
