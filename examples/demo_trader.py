"""End-to-end demo of the trading job against the in-memory exchange.

Shows:
1. Structured logging
2. Configuring symbols in a SQLite store
3. A buy on a 24h dip, then a laddered exit as the price recovers
4. Trailing stop closing the remaining position
5. Strategy status and profit summary

Pass ``--live`` to run a single cycle per configured symbol against NovaDAX
instead (requires NOVADAX_API_KEY / NOVADAX_API_SECRET).
"""
import argparse
import asyncio
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from autotrade.config import AutotradeConfig
from autotrade.exchange import InMemoryExchange
from autotrade.logging_setup import logger, setup_logging
from autotrade.models import SymbolConfig
from autotrade.novadax_adapter import NovaDaxAdapter
from autotrade.orchestrator import DecisionEngine
from autotrade.persistence_sqlite import SQLiteStore
from autotrade.pnl import profit_summary
from autotrade.secrets import load_credentials
from autotrade.service import TradingJob
from autotrade.state_store import InMemoryTrackerStore

SYMBOL = "MOG_BRL"

# (last price, 24h change %)
PRICE_PATH = [
    ("100", "-8"),
    ("101", "3"),
    ("106", "6"),
    ("111", "9"),
    ("116", "12"),
    ("110", "8"),
]


async def simulate(db_path: str):
    exchange = InMemoryExchange()
    exchange.set_balance("BRL", "1000")
    exchange.set_balance("MOG", "0")

    store = SQLiteStore(db_path)
    store.upsert_symbol_config(
        SymbolConfig(SYMBOL, buy_threshold="-5", sell_threshold="-5", sell_strategy="basic")
    )
    job = TradingJob(exchange, exchange, exchange, store, DecisionEngine(InMemoryTrackerStore()))

    for price, change in PRICE_PATH:
        exchange.set_ticker(SYMBOL, price, change)
        # Sells need a positive buy threshold; switch once the position is open.
        if store.require_symbol_config(SYMBOL).last_buy_price is not None:
            cfg = store.require_symbol_config(SYMBOL)
            cfg.buy_threshold, cfg.sell_threshold = cfg.buy_threshold.copy_abs(), cfg.sell_threshold.copy_abs()
            store.upsert_symbol_config(cfg)
        result = await job.run_symbol(SYMBOL)
        logger.info(f"Cycle | price={price} change={change}% action={result.action} reason={result.reason}")

    logger.info(f"Strategy status: {job.strategy_status()['activeTrackers']} active tracker(s)")
    for symbol, row in profit_summary(store.list_operations()).items():
        logger.info(f"Profit | symbol={symbol} total={row['total_profit']:.2f} sells={row['sells']}")
    store.close()


async def live(config: AutotradeConfig):
    creds = load_credentials()
    store = SQLiteStore(config.persistence.db_path)
    for cfg in config.symbols:
        store.upsert_symbol_config(cfg)
    async with NovaDaxAdapter.from_credentials(
        creds, base_url=config.exchange.base_url, timeout=config.exchange.timeout
    ) as adapter:
        job = TradingJob(adapter, adapter, adapter, store, DecisionEngine(InMemoryTrackerStore(), config.engine.limits()))
        for result in await job.run_all():
            logger.info(f"Cycle | symbol={result.symbol} action={result.action} reason={result.reason}")
    store.close()


def main():
    parser = argparse.ArgumentParser(description="Auto-trading demo")
    parser.add_argument("--live", action="store_true", help="Run one cycle against NovaDAX")
    parser.add_argument("--config", default="config.yaml", help="YAML config (live mode)")
    args = parser.parse_args()

    if args.live:
        config = AutotradeConfig.from_yaml(args.config) if Path(args.config).exists() else AutotradeConfig()
        setup_logging(log_file=config.persistence.log_file, level=config.persistence.log_level)
        logger.info("=== Auto-Trading Live Cycle ===")
        try:
            asyncio.run(live(config))
        except ValueError as e:
            logger.error(f"Failed to load credentials: {e}")
        return

    setup_logging(log_file=None, level="INFO", enable_console=True)
    logger.info("=== Auto-Trading Demo ===")
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(simulate(str(Path(tmp) / "demo.db")))


if __name__ == "__main__":
    main()
