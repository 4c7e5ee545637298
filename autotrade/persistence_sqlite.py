import json
import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Union

from .config_store import ConfigStore
from .models import Operation, OrderSide, OrderStatus, SymbolConfig


def _dec(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _str(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


class SQLiteStore(ConfigStore):
    """SQLite-backed symbol configurations and operations journal.

    APIs:
    - `upsert_symbol_config(cfg)` / `read_symbol_config(symbol)` / `list_symbol_configs()`
    - `remove_symbol(symbol)` / `toggle_symbol(symbol)`
    - `record_operation(op)` / `list_operations(symbol)` / `last_successful_operation(symbol, side)`

    All writes use transactions for atomicity.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.path), timeout=30, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self):
        from .db_migrations import apply_migrations

        apply_migrations(self.conn)

    # --- Symbol config APIs ---
    def read_symbol_config(self, symbol: str) -> Optional[SymbolConfig]:
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM symbol_configs WHERE symbol = ?", (symbol.upper(),))
        row = cur.fetchone()
        if not row:
            return None
        return SymbolConfig.from_dict(json.loads(row[0]))

    def list_symbol_configs(self, enabled_only: bool = False) -> List[SymbolConfig]:
        cur = self.conn.cursor()
        if enabled_only:
            cur.execute("SELECT value FROM symbol_configs WHERE enabled = 1 ORDER BY symbol")
        else:
            cur.execute("SELECT value FROM symbol_configs ORDER BY symbol")
        return [SymbolConfig.from_dict(json.loads(r[0])) for r in cur.fetchall()]

    def upsert_symbol_config(self, cfg: SymbolConfig) -> None:
        data = json.dumps(cfg.to_dict())
        cur = self.conn.cursor()
        cur.execute("BEGIN IMMEDIATE")
        cur.execute(
            "INSERT OR REPLACE INTO symbol_configs(symbol, value, enabled, updated_at) VALUES(?, ?, ?, strftime('%s','now'))",
            (cfg.symbol, data, int(cfg.enabled)),
        )
        self.conn.commit()

    def remove_symbol(self, symbol: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("BEGIN IMMEDIATE")
        cur.execute("DELETE FROM symbol_configs WHERE symbol = ?", (symbol.upper(),))
        removed = cur.rowcount > 0
        self.conn.commit()
        return removed

    # --- Operations journal ---
    def record_operation(self, op: Operation) -> Operation:
        cur = self.conn.cursor()
        cur.execute("BEGIN IMMEDIATE")
        cur.execute(
            "INSERT INTO operations(symbol, side, amount, price, status, order_id, buy_price, profit, response, created_at) "
            "VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                op.symbol.upper(),
                op.side.value,
                str(op.amount),
                _str(op.price),
                op.status.value,
                op.order_id,
                _str(op.buy_price),
                _str(op.profit),
                json.dumps(op.response, default=str) if op.response is not None else None,
                op.created_at.isoformat(),
            ),
        )
        op.id = cur.lastrowid
        self.conn.commit()
        return op

    def list_operations(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> List[Operation]:
        query = "SELECT * FROM operations"
        params: list = []
        if symbol is not None:
            query += " WHERE symbol = ?"
            params.append(symbol.upper())
        query += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        cur = self.conn.cursor()
        cur.execute(query, params)
        return [self._row_to_operation(r) for r in cur.fetchall()]

    def last_successful_operation(self, symbol: str, side: OrderSide) -> Optional[Operation]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM operations WHERE symbol = ? AND side = ? AND status = ? "
            "ORDER BY created_at DESC, id DESC LIMIT 1",
            (symbol.upper(), side.value, OrderStatus.SUCCESS.value),
        )
        row = cur.fetchone()
        return self._row_to_operation(row) if row else None

    @staticmethod
    def _row_to_operation(row) -> Operation:
        return Operation(
            id=row["id"],
            symbol=row["symbol"],
            side=OrderSide(row["side"]),
            amount=Decimal(row["amount"]),
            price=_dec(row["price"]),
            status=OrderStatus(row["status"]),
            order_id=row["order_id"],
            buy_price=_dec(row["buy_price"]),
            profit=_dec(row["profit"]),
            response=json.loads(row["response"]) if row["response"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def close(self):
        self.conn.close()
