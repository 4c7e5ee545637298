#!/usr/bin/env python
"""Symbol configuration CLI.

Usage:
    python scripts/symbols.py --db autotrade.db list
    python scripts/symbols.py --db autotrade.db add MOG_BRL --buy -5 --sell -5 --strategy basic
    python scripts/symbols.py --db autotrade.db toggle MOG_BRL
    python scripts/symbols.py --db autotrade.db remove MOG_BRL
    python scripts/symbols.py --db autotrade.db show MOG_BRL
    python scripts/symbols.py strategies
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from autotrade.errors import ConfigNotFoundError, UnknownStrategyError
from autotrade.models import SymbolConfig
from autotrade.persistence_sqlite import SQLiteStore
from autotrade.strategies import describe_rules, list_strategies


def list_symbols(store):
    configs = store.list_symbol_configs()
    if not configs:
        print("No symbols configured")
        return

    print(f"\n{'Symbol':<14} {'Enabled':<8} {'Buy %':<8} {'Sell %':<8} {'Strategy':<11} {'Last Buy':<14} {'Last Sell':<14}")
    print("-" * 80)
    for cfg in configs:
        print(
            f"{cfg.symbol:<14} {'yes' if cfg.enabled else 'no':<8} {str(cfg.buy_threshold):<8} "
            f"{str(cfg.sell_threshold):<8} {cfg.sell_strategy.value:<11} "
            f"{str(cfg.last_buy_price or '-'):<14} {str(cfg.last_sell_price or '-'):<14}"
        )


def show_symbol(store, symbol):
    cfg = store.require_symbol_config(symbol)
    print(f"\n=== {cfg.symbol} ===")
    for key, value in cfg.to_dict().items():
        print(f"{key}: {value}")


def list_strategy_catalog():
    for definition in list_strategies():
        print(f"\n{definition.name} ({definition.key.value})")
        print(f"  {definition.description}")
        print(f"  {describe_rules(definition)}")


def main():
    parser = argparse.ArgumentParser(description="Manage symbol configurations")
    parser.add_argument("--db", default="autotrade.db", help="Path to SQLite database")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("list")
    sub.add_parser("strategies")
    add = sub.add_parser("add")
    add.add_argument("symbol")
    add.add_argument("--buy", required=True, help="Buy threshold (24h change %%)")
    add.add_argument("--sell", required=True, help="Sell threshold (24h change %%)")
    add.add_argument("--strategy", default=None, help="Sell strategy (security, basic, aggressive)")
    add.add_argument("--interval", type=float, default=None, help="Check interval in seconds")
    add.add_argument("--disabled", action="store_true", help="Store the symbol disabled")
    for name in ("toggle", "remove", "show"):
        cmd = sub.add_parser(name)
        cmd.add_argument("symbol")

    args = parser.parse_args()
    if args.cmd == "strategies":
        list_strategy_catalog()
        return
    if args.cmd is None:
        parser.print_help()
        return

    store = SQLiteStore(args.db)
    try:
        if args.cmd == "list":
            list_symbols(store)
        elif args.cmd == "add":
            existing = store.read_symbol_config(args.symbol)
            cfg = SymbolConfig(
                symbol=args.symbol,
                buy_threshold=args.buy,
                sell_threshold=args.sell,
                last_buy_price=existing.last_buy_price if existing else None,
                last_sell_price=existing.last_sell_price if existing else None,
                enabled=not args.disabled,
                sell_strategy=args.strategy,
                check_interval_seconds=args.interval,
            )
            store.upsert_symbol_config(cfg)
            print(f"Saved {cfg.symbol}")
        elif args.cmd == "toggle":
            cfg = store.toggle_symbol(args.symbol)
            print(f"{cfg.symbol} {'enabled' if cfg.enabled else 'disabled'}")
        elif args.cmd == "remove":
            if store.remove_symbol(args.symbol):
                print(f"Removed {args.symbol.upper()}")
            else:
                print(f"Symbol not found: {args.symbol.upper()}")
        elif args.cmd == "show":
            show_symbol(store, args.symbol)
    except (ConfigNotFoundError, UnknownStrategyError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
