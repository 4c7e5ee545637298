#!/usr/bin/env python
"""Trade history and profit reporter.

Usage:
    python scripts/trade_history.py --db autotrade.db summary
    python scripts/trade_history.py --db autotrade.db list [--symbol MOG_BRL] [--limit 50]
    python scripts/trade_history.py --db autotrade.db stats MOG_BRL
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from autotrade.errors import ConfigNotFoundError
from autotrade.persistence_sqlite import SQLiteStore
from autotrade.pnl import attribute_profits, profit_summary


def summary(store):
    """Show realized profit per symbol."""
    operations = attribute_profits(store.list_operations())
    rows = profit_summary(operations)
    if not rows:
        print("No completed sells found")
        return

    print("\n=== Profit Summary ===")
    print(f"{'Symbol':<14} {'Sells':<7} {'Wins':<6} {'Losses':<7} {'Win %':<8} {'Profit':<14}")
    print("-" * 60)
    total = 0
    for symbol, row in sorted(rows.items()):
        total += row["total_profit"]
        print(
            f"{symbol:<14} {row['sells']:<7} {row['wins']:<6} {row['losses']:<7} "
            f"{row['win_rate_percent']:<8.1f} {row['total_profit']:<14.2f}"
        )
    print(f"\nTotal profit: {total:.2f}")


def list_operations(store, symbol=None, limit=None):
    """List journaled operations, newest first."""
    operations = store.list_operations(symbol=symbol, limit=limit)
    if not operations:
        print("No operations found")
        return

    print(f"\n{'Time':<26} {'Symbol':<12} {'Side':<5} {'Status':<8} {'Amount':<14} {'Price':<14} {'Profit':<12}")
    print("-" * 95)
    for op in operations:
        print(
            f"{op.created_at.isoformat():<26} {op.symbol:<12} {op.side.value:<5} {op.status.value:<8} "
            f"{str(op.amount):<14} {str(op.price or '-'):<14} {str(op.profit if op.profit is not None else '-'):<12}"
        )
    print(f"\nTotal operations: {len(operations)}")


def stats(store, symbol):
    """Show last and recent average execution prices for a symbol."""
    row = store.price_stats(symbol)

    def fmt(value):
        return f"{value:.8f}" if value is not None else "-"

    print(f"\n=== Price Stats: {row['symbol']} ===")
    print(f"Last buy price:   {fmt(row['last_buy_price'])}")
    print(f"Last sell price:  {fmt(row['last_sell_price'])}")
    print(f"Avg buy price:    {fmt(row['avg_buy_price'])} ({row['buy_operations']} buys)")
    print(f"Avg sell price:   {fmt(row['avg_sell_price'])} ({row['sell_operations']} sells)")
    print(f"Recent operations: {row['total_operations']}")


def main():
    parser = argparse.ArgumentParser(description="Trade history and profit reporter")
    parser.add_argument("--db", required=True, help="Path to SQLite database")

    sub = parser.add_subparsers(dest="cmd")
    sub.add_parser("summary")
    list_cmd = sub.add_parser("list")
    list_cmd.add_argument("--symbol", help="Only show this symbol")
    list_cmd.add_argument("--limit", type=int, help="Maximum rows to show")
    stats_cmd = sub.add_parser("stats")
    stats_cmd.add_argument("symbol", help="Symbol to report on")

    args = parser.parse_args()

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        sys.exit(1)

    store = SQLiteStore(db_path)
    if args.cmd == "summary":
        summary(store)
    elif args.cmd == "list":
        list_operations(store, symbol=args.symbol, limit=args.limit)
    elif args.cmd == "stats":
        try:
            stats(store, args.symbol)
        except ConfigNotFoundError as e:
            print(f"Error: {e}")
            store.close()
            sys.exit(1)
    else:
        parser.print_help()
    store.close()


if __name__ == "__main__":
    main()
