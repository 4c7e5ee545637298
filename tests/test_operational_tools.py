"""Tests for operational CLI tools: symbols and trade_history."""
import subprocess
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from autotrade.models import Operation, OrderSide, OrderStatus, SymbolConfig
from autotrade.persistence_sqlite import SQLiteStore

ROOT = Path(__file__).resolve().parents[1]
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def run_tool(script, db, *args):
    cmd = [sys.executable, str(ROOT / "scripts" / script)]
    if db is not None:
        cmd += ["--db", str(db)]
    res = subprocess.run(cmd + list(args), capture_output=True, text=True, stdin=subprocess.DEVNULL)
    return res.returncode, res.stdout


@pytest.fixture
def temp_db(tmp_path: Path):
    """Create a temporary database with test data."""
    db_path = tmp_path / "test.db"
    store = SQLiteStore(db_path)
    store.upsert_symbol_config(SymbolConfig("MOG_BRL", buy_threshold=-5, sell_threshold=-5, sell_strategy="basic"))
    store.record_operation(Operation("MOG_BRL", OrderSide.BUY, Decimal("1000"), OrderStatus.SUCCESS, price=Decimal("100"), created_at=T0))
    store.record_operation(
        Operation("MOG_BRL", OrderSide.SELL, Decimal("4"), OrderStatus.SUCCESS, price=Decimal("110"), created_at=T0 + timedelta(hours=1))
    )
    store.close()
    return db_path


def test_symbols_add_list_toggle_remove(tmp_path: Path):
    db = tmp_path / "symbols.db"
    code, out = run_tool("symbols.py", db, "add", "btc_brl", "--buy", "-3", "--sell", "-2", "--strategy", "aggressive")
    assert code == 0 and "Saved BTC_BRL" in out

    code, out = run_tool("symbols.py", db, "list")
    assert "BTC_BRL" in out and "aggressive" in out

    code, out = run_tool("symbols.py", db, "toggle", "BTC_BRL")
    assert "BTC_BRL disabled" in out

    code, out = run_tool("symbols.py", db, "show", "BTC_BRL")
    assert "enabled: False" in out

    code, out = run_tool("symbols.py", db, "remove", "BTC_BRL")
    assert "Removed BTC_BRL" in out
    code, out = run_tool("symbols.py", db, "list")
    assert "No symbols configured" in out


def test_symbols_unknown_strategy_fails(tmp_path: Path):
    code, out = run_tool("symbols.py", tmp_path / "x.db", "add", "MOG_BRL", "--buy", "1", "--sell", "1", "--strategy", "yolo")
    assert code == 1
    assert "Error:" in out


def test_symbols_strategy_catalog():
    code, out = run_tool("symbols.py", None, "strategies")
    assert code == 0
    for key in ("security", "basic", "aggressive"):
        assert f"({key})" in out


def test_trade_history_summary(temp_db):
    code, out = run_tool("trade_history.py", temp_db, "summary")
    assert code == 0
    assert "MOG_BRL" in out
    assert "Total profit: 40.00" in out


def test_trade_history_list(temp_db):
    code, out = run_tool("trade_history.py", temp_db, "list", "--symbol", "MOG_BRL", "--limit", "1")
    assert code == 0
    assert "sell" in out
    assert "Total operations: 1" in out


def test_trade_history_missing_db(tmp_path: Path):
    code, out = run_tool("trade_history.py", tmp_path / "missing.db", "summary")
    assert code == 1
    assert "Database not found" in out


def test_trade_history_price_stats(temp_db):
    code, out = run_tool("trade_history.py", temp_db, "stats", "mog_brl")
    assert code == 0
    assert "Price Stats: MOG_BRL" in out
    assert "Last buy price:   100.00000000" in out
    assert "Avg sell price:   110.00000000 (1 sells)" in out
    assert "Recent operations: 2" in out


def test_trade_history_price_stats_unknown_symbol(temp_db):
    code, out = run_tool("trade_history.py", temp_db, "stats", "BTC_BRL")
    assert code == 1
    assert "No configuration for symbol BTC_BRL" in out
