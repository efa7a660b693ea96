"""Ledger store interface and its SQLite cache implementation."""

import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, NamedTuple

from .errors import StoreError
from .models import (
    Account,
    BudgetHistorySnapshot,
    BudgetTarget,
    FXRate,
    HistoricalNetWorthEntry,
    Transaction,
)


logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS account_balances (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    date_updated            TEXT NOT NULL,   -- ISO timestamp
    institution             TEXT NOT NULL,
    account_name            TEXT NOT NULL,
    category                TEXT NOT NULL,
    currency                TEXT NOT NULL,   -- 'GBP','USD','EUR'
    balance_personal_local  REAL DEFAULT 0,
    balance_family_local    REAL DEFAULT 0,
    balance_total_local     REAL
);

CREATE TABLE IF NOT EXISTS transaction_log (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    date          TEXT NOT NULL,   -- 'YYYY-MM-DD'
    category      TEXT NOT NULL,
    counterparty  TEXT,
    amount_usd    REAL,            -- negative = expense
    amount_gbp    REAL,
    currency      TEXT             -- original currency, NULL treated as USD for burn
);

CREATE TABLE IF NOT EXISTS budget_targets (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    category           TEXT NOT NULL UNIQUE,
    annual_budget_gbp  REAL DEFAULT 0,   -- negative for expense categories
    tracking_est_gbp   REAL DEFAULT 0,
    ytd_gbp            REAL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS budget_history (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    date            TEXT NOT NULL,
    category        TEXT NOT NULL,
    annual_budget   REAL,
    forecast_spend  REAL,
    UNIQUE(date, category)
);

CREATE TABLE IF NOT EXISTS historical_net_worth (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    date        TEXT NOT NULL,
    category    TEXT NOT NULL,   -- 'Personal','Family','Trust'
    amount_usd  REAL,
    amount_gbp  REAL,
    UNIQUE(date, category)
);

CREATE TABLE IF NOT EXISTS fx_rates (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    date         TEXT NOT NULL UNIQUE,
    gbpusd_rate  REAL,
    eurusd_rate  REAL
);

CREATE TABLE IF NOT EXISTS fx_rate_current (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    date         TEXT NOT NULL UNIQUE,
    gbpusd_rate  REAL NOT NULL
);
"""

INDEXES = """
CREATE INDEX IF NOT EXISTS idx_account_balances_date ON account_balances(date_updated);
CREATE INDEX IF NOT EXISTS idx_transaction_log_date ON transaction_log(date);
CREATE INDEX IF NOT EXISTS idx_transaction_log_category ON transaction_log(category);
CREATE INDEX IF NOT EXISTS idx_budget_history_date ON budget_history(date);
CREATE INDEX IF NOT EXISTS idx_historical_net_worth_date ON historical_net_worth(date);
CREATE INDEX IF NOT EXISTS idx_fx_rates_date ON fx_rates(date);
"""

TABLE_COLUMNS = {
    "account_balances": (
        "date_updated", "institution", "account_name", "category", "currency",
        "balance_personal_local", "balance_family_local", "balance_total_local",
    ),
    "transaction_log": ("date", "category", "counterparty", "amount_usd", "amount_gbp", "currency"),
    "budget_targets": ("category", "annual_budget_gbp", "tracking_est_gbp", "ytd_gbp"),
    "budget_history": ("date", "category", "annual_budget", "forecast_spend"),
    "historical_net_worth": ("date", "category", "amount_usd", "amount_gbp"),
    "fx_rates": ("date", "gbpusd_rate", "eurusd_rate"),
    "fx_rate_current": ("date", "gbpusd_rate"),
}


class Filter(NamedTuple):
    """Column predicate. ``op`` is one of eq, gte, lte, ilike (substring)."""

    column: str
    op: str
    value: Any


class Order(NamedTuple):
    column: str
    descending: bool = False


class LedgerStore:
    """Read interface over the ledger tables.

    Subclasses implement ``fetch_page`` and ``get_net_burn``; everything
    else is built on ``fetch_all``, which pages until the store returns a
    short page so results are never truncated at the store's page size.
    """

    page_size: int = 1000

    def fetch_page(
        self,
        table: str,
        filters: list[Filter],
        order: Order | None,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def get_net_burn(self, start: date, end: date, excluded: tuple[str, ...]) -> dict[str, float]:
        raise NotImplementedError

    def fetch_all(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order: Order | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every matching row, one page at a time."""
        filters = filters or []
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = self.fetch_page(table, filters, order, offset, self.page_size)
            rows.extend(page)
            logger.debug("Fetched %d rows from %s at offset %d", len(page), table, offset)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return rows

    def fetch_first(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order: Order | None = None,
    ) -> dict[str, Any] | None:
        page = self.fetch_page(table, filters or [], order, 0, 1)
        return page[0] if page else None

    # -------------------------------------------------------------------------
    # Typed queries
    # -------------------------------------------------------------------------

    def get_account_balances(self) -> list[Account]:
        """All balance rows, newest first (older rows are history)."""
        rows = self.fetch_all("account_balances", order=Order("date_updated", descending=True))
        return [Account.from_row(row) for row in rows]

    def get_current_fx_rate(self) -> float | None:
        """Most recent current GBPUSD rate, or None when the table is empty."""
        row = self.fetch_first("fx_rate_current", order=Order("date", descending=True))
        if row and row.get("gbpusd_rate"):
            return float(row["gbpusd_rate"])
        return None

    def get_current_eur_rate(self) -> float | None:
        row = self.fetch_first(
            "fx_rates",
            [Filter("eurusd_rate", "gte", 0)],
            Order("date", descending=True),
        )
        if row and row.get("eurusd_rate"):
            return float(row["eurusd_rate"])
        return None

    def get_fx_rates_up_to(self, day: date) -> list[FXRate]:
        rows = self.fetch_all(
            "fx_rates",
            [Filter("date", "lte", day.isoformat())],
            Order("date", descending=True),
        )
        return [FXRate.from_row(row) for row in rows]

    def get_transactions(
        self,
        start: date,
        end: date,
        category: str | None = None,
        merchant: str | None = None,
    ) -> list[Transaction]:
        """Transactions in [start, end], newest first."""
        filters = [
            Filter("date", "gte", start.isoformat()),
            Filter("date", "lte", end.isoformat()),
        ]
        if category:
            filters.append(Filter("category", "eq", category))
        if merchant:
            filters.append(Filter("counterparty", "ilike", merchant))
        rows = self.fetch_all("transaction_log", filters, Order("date", descending=True))
        return [Transaction.from_row(row) for row in rows]

    def get_budget_targets(self, category: str | None = None) -> list[BudgetTarget]:
        filters = [Filter("category", "eq", category)] if category else []
        rows = self.fetch_all("budget_targets", filters, Order("category"))
        return [BudgetTarget.from_row(row) for row in rows]

    def get_budget_history(self, day: date) -> list[BudgetHistorySnapshot]:
        rows = self.fetch_all(
            "budget_history",
            [Filter("date", "eq", day.isoformat())],
            Order("category"),
        )
        return [BudgetHistorySnapshot.from_row(row) for row in rows]

    def get_latest_budget_history_date(self, on_or_before: date) -> date | None:
        row = self.fetch_first(
            "budget_history",
            [Filter("date", "lte", on_or_before.isoformat())],
            Order("date", descending=True),
        )
        return BudgetHistorySnapshot.from_row(row).date if row else None

    def get_budget_history_between(self, start: date, end: date) -> list[BudgetHistorySnapshot]:
        rows = self.fetch_all(
            "budget_history",
            [Filter("date", "gte", start.isoformat()), Filter("date", "lte", end.isoformat())],
            Order("date"),
        )
        return [BudgetHistorySnapshot.from_row(row) for row in rows]

    def get_historical_net_worth(
        self,
        start: date,
        end: date,
        entity: str | None = None,
    ) -> list[HistoricalNetWorthEntry]:
        """Net worth entries dated within [start, end]; pass start == end for one date."""
        if start == end:
            filters = [Filter("date", "eq", start.isoformat())]
        else:
            filters = [
                Filter("date", "gte", start.isoformat()),
                Filter("date", "lte", end.isoformat()),
            ]
        if entity:
            filters.append(Filter("category", "eq", entity))
        rows = self.fetch_all("historical_net_worth", filters, Order("date"))
        return [HistoricalNetWorthEntry.from_row(row) for row in rows]


SQL_OPERATORS = {"eq": "=", "gte": ">=", "lte": "<="}


class Database(LedgerStore):
    """SQLite cache of the ledger tables."""

    def __init__(self, db_path: str | Path | None = None, page_size: int = 1000):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite file, or None/":memory:" for in-memory DB.
            page_size: Rows per page for paginated reads.
        """
        if db_path is None:
            db_path = ":memory:"
        self.db_path = str(db_path)
        self.page_size = page_size
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.create_function("casefold", 1, _casefold, deterministic=True)
            # Enable WAL mode for better concurrency (only for file-based DBs)
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def init_schema(self) -> None:
        """Create all tables and indexes."""
        conn = self.connect()
        conn.executescript(SCHEMA)
        conn.executescript(INDEXES)
        conn.commit()

    # -------------------------------------------------------------------------
    # Cache loading
    # -------------------------------------------------------------------------

    def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert rows into a ledger table, replacing on unique conflicts.

        Unknown keys are ignored; missing columns are stored as NULL.
        """
        columns = self._columns(table)
        conn = self.connect()
        placeholders = ", ".join("?" * len(columns))
        sql = f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608
        count = 0
        try:
            for row in rows:
                conn.execute(sql, tuple(_to_sql(row.get(column)) for column in columns))
                count += 1
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Insert into {table} failed: {e}") from e
        return count

    def count_table(self, table: str) -> int:
        """Count rows in a table."""
        self._columns(table)
        conn = self.connect()
        row = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}").fetchone()  # noqa: S608
        return row["cnt"]

    # -------------------------------------------------------------------------
    # LedgerStore primitives
    # -------------------------------------------------------------------------

    def fetch_page(
        self,
        table: str,
        filters: list[Filter],
        order: Order | None,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        columns = self._columns(table)
        clauses = []
        params: list[Any] = []

        for flt in filters:
            if flt.column not in columns:
                raise StoreError(f"Unknown column {flt.column!r} for {table}")
            if flt.op == "ilike":
                clauses.append(f"casefold({flt.column}) LIKE ?")
                params.append(f"%{str(flt.value).casefold()}%")
            elif flt.op in SQL_OPERATORS:
                clauses.append(f"{flt.column} {SQL_OPERATORS[flt.op]} ?")
                params.append(flt.value)
            else:
                raise StoreError(f"Unsupported filter operator: {flt.op}")

        query = f"SELECT * FROM {table}"  # noqa: S608
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        # id keeps page boundaries stable between rows sharing a sort value
        if order is not None:
            if order.column not in columns:
                raise StoreError(f"Unknown column {order.column!r} for {table}")
            direction = "DESC" if order.descending else "ASC"
            query += f" ORDER BY {order.column} {direction}, id ASC"
        else:
            query += " ORDER BY id ASC"

        query += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        try:
            rows = self.connect().execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Query on {table} failed: {e}") from e
        return [dict(row) for row in rows]

    def get_net_burn(self, start: date, end: date, excluded: tuple[str, ...]) -> dict[str, float]:
        """Signed net spend per currency over [start, end], aggregated in SQL.

        GBP sums amount_gbp for GBP-denominated rows; USD sums amount_usd for
        USD rows and rows without a currency.
        """
        placeholders = ",".join("?" * len(excluded)) or "''"
        query = f"""
            SELECT
                COALESCE(SUM(CASE WHEN UPPER(TRIM(COALESCE(currency, ''))) = 'GBP'
                                  THEN amount_gbp END), 0) AS gbp_net,
                COALESCE(SUM(CASE WHEN currency IS NULL OR UPPER(TRIM(currency)) = 'USD'
                                  THEN amount_usd END), 0) AS usd_net
            FROM transaction_log
            WHERE date >= ? AND date <= ?
              AND category NOT IN ({placeholders})
        """  # noqa: S608
        params = [start.isoformat(), end.isoformat(), *excluded]
        try:
            row = self.connect().execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Net burn aggregation failed: {e}") from e
        return {"GBP": float(row["gbp_net"]), "USD": float(row["usd_net"])}

    @staticmethod
    def _columns(table: str) -> tuple[str, ...]:
        if table not in TABLE_COLUMNS:
            raise StoreError(f"Unknown table: {table}")
        return TABLE_COLUMNS[table]


def _to_sql(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _casefold(value: Any) -> str | None:
    # SQLite's LOWER() only folds ASCII
    return None if value is None else str(value).casefold()
