"""Tests for the SQLite ledger store."""

from datetime import date

import pytest

from wealthdash_mcp.config import DEFAULT_CONFIG
from wealthdash_mcp.database import Database, Filter, Order
from wealthdash_mcp.errors import StoreError


class TestSchema:
    """Tests for schema creation."""

    def test_init_schema_creates_tables(self, db: Database):
        conn = db.connect()
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        }
        for table in (
            "account_balances", "transaction_log", "budget_targets", "budget_history",
            "historical_net_worth", "fx_rates", "fx_rate_current",
        ):
            assert table in tables

    def test_init_schema_idempotent(self, db: Database):
        db.init_schema()
        db.init_schema()

    def test_insert_and_count(self, db: Database):
        count = db.insert_rows("transaction_log", [
            {"date": "2026-01-01", "category": "Food", "amount_gbp": -5, "ignored": "x"},
            {"date": date(2026, 1, 2), "category": "Food", "amount_gbp": -6},
        ])
        assert count == 2
        assert db.count_table("transaction_log") == 2

    def test_budget_target_replaced_on_category(self, db: Database):
        db.insert_rows("budget_targets", [{"category": "Food", "ytd_gbp": -100}])
        db.insert_rows("budget_targets", [{"category": "Food", "ytd_gbp": -200}])
        targets = db.get_budget_targets()
        assert len(targets) == 1
        assert targets[0].ytd_gbp == -200

    def test_unknown_table(self, db: Database):
        with pytest.raises(StoreError, match="Unknown table"):
            db.count_table("users")

    def test_unknown_column_in_filter(self, db: Database):
        with pytest.raises(StoreError, match="Unknown column"):
            db.fetch_page("transaction_log", [Filter("password", "eq", "x")], None, 0, 10)

    def test_unsupported_operator(self, db: Database):
        with pytest.raises(StoreError, match="Unsupported"):
            db.fetch_page("transaction_log", [Filter("date", "neq", "x")], None, 0, 10)


class TestPagination:
    """fetch_all must never stop at a page boundary."""

    def test_fetch_all_reads_every_page(self):
        store = Database(":memory:", page_size=3)
        store.init_schema()
        store.insert_rows("transaction_log", [
            {"date": f"2026-01-{day:02d}", "category": "Food", "amount_gbp": -day}
            for day in range(1, 11)
        ])

        rows = store.fetch_all("transaction_log", order=Order("date", descending=True))
        assert len(rows) == 10
        assert rows[0]["date"] == "2026-01-10"
        assert rows[-1]["date"] == "2026-01-01"

    def test_exact_multiple_of_page_size(self):
        store = Database(":memory:", page_size=5)
        store.init_schema()
        store.insert_rows("transaction_log", [
            {"date": "2026-01-01", "category": "Food", "amount_gbp": -1} for _ in range(10)
        ])
        assert len(store.fetch_all("transaction_log", order=Order("date"))) == 10

    def test_typed_query_uses_pagination(self):
        store = Database(":memory:", page_size=2)
        store.init_schema()
        store.insert_rows("transaction_log", [
            {"date": "2026-02-01", "category": "Food", "amount_gbp": -1} for _ in range(7)
        ])
        assert len(store.get_transactions(date(2026, 1, 1), date(2026, 12, 31))) == 7


class TestTypedQueries:
    """Tests for LedgerStore query helpers against seeded data."""

    def test_account_balances_newest_first(self, populated_db: Database):
        accounts = populated_db.get_account_balances()
        assert len(accounts) == 6
        assert accounts[0].date_updated >= accounts[-1].date_updated

    def test_current_fx_rate(self, populated_db: Database):
        assert populated_db.get_current_fx_rate() == 1.25
        assert populated_db.get_current_eur_rate() == 1.05

    def test_current_fx_rate_empty(self, db: Database):
        assert db.get_current_fx_rate() is None
        assert db.get_current_eur_rate() is None

    def test_transactions_filters(self, populated_db: Database):
        start, end = date(2026, 1, 1), date(2026, 2, 28)
        assert len(populated_db.get_transactions(start, end)) == 7
        assert len(populated_db.get_transactions(start, end, category="Groceries")) == 3

        tesco = populated_db.get_transactions(start, end, merchant="tesco")
        assert {tx.counterparty for tx in tesco} == {"TESCO STORES 123", "Tesco Stores Limited"}

    def test_merchant_filter_ignores_non_ascii_case(self, db: Database):
        db.insert_rows("transaction_log", [
            {"date": "2026-01-03", "category": "Dining", "counterparty": "CAFÉ NERO", "amount_gbp": -4},
            {"date": "2026-01-04", "category": "Dining", "counterparty": "Costa", "amount_gbp": -3},
        ])
        found = db.get_transactions(date(2026, 1, 1), date(2026, 1, 31), merchant="café")
        assert [tx.counterparty for tx in found] == ["CAFÉ NERO"]

    def test_transaction_currency_normalized(self, populated_db: Database):
        uber = populated_db.get_transactions(date(2026, 1, 15), date(2026, 1, 15))
        assert uber[0].currency == "USD"
        assert uber[0].amount_gbp is None

    def test_budget_history_dates(self, populated_db: Database):
        assert populated_db.get_latest_budget_history_date(date(2026, 1, 20)) == date(2026, 1, 1)
        assert populated_db.get_latest_budget_history_date(date(2025, 12, 31)) is None
        assert len(populated_db.get_budget_history(date(2026, 2, 1))) == 3
        assert len(populated_db.get_budget_history_between(date(2026, 1, 1), date(2026, 3, 1))) == 6

    def test_historical_net_worth(self, populated_db: Database):
        day = date(2026, 1, 31)
        assert len(populated_db.get_historical_net_worth(day, day)) == 3
        trust = populated_db.get_historical_net_worth(day, day, entity="Trust")
        assert [e.amount_gbp for e in trust] == [2000]
        assert len(populated_db.get_historical_net_worth(date(2026, 1, 1), date(2026, 3, 1))) == 6

    def test_fx_rates_up_to(self, populated_db: Database):
        rates = populated_db.get_fx_rates_up_to(date(2026, 1, 15))
        assert [r.gbpusd_rate for r in rates] == [1.30]


class TestNetBurn:
    """Tests for the SQL net burn aggregate."""

    def test_net_burn_per_currency(self, populated_db: Database):
        burn = populated_db.get_net_burn(
            date(2025, 12, 1), date(2026, 2, 28), ("Excluded", "Income", "Gift Money", "Other Income")
        )
        assert burn["GBP"] == pytest.approx(-165.0)
        assert burn["USD"] == pytest.approx(-60.0)

    def test_other_income_counts_toward_burn(self, db: Database):
        db.insert_rows("transaction_log", [
            {"date": "2026-01-05", "category": "Groceries", "amount_gbp": -900, "currency": "GBP"},
            {"date": "2026-01-20", "category": "Other Income", "amount_gbp": 300, "currency": "GBP"},
        ])
        burn = db.get_net_burn(
            date(2026, 1, 1), date(2026, 1, 31), DEFAULT_CONFIG.burn_excluded_categories
        )
        assert burn["GBP"] == pytest.approx(-600.0)

    def test_missing_currency_counts_as_usd(self, db: Database):
        db.insert_rows("transaction_log", [
            {"date": "2026-01-05", "category": "Food", "amount_usd": -10, "amount_gbp": -8},
        ])
        burn = db.get_net_burn(date(2026, 1, 1), date(2026, 1, 31), ("Excluded",))
        assert burn == {"GBP": 0.0, "USD": -10.0}

    def test_refunds_reduce_burn(self, db: Database):
        db.insert_rows("transaction_log", [
            {"date": "2026-01-05", "category": "Food", "amount_gbp": -100, "currency": "GBP"},
            {"date": "2026-01-06", "category": "Food", "amount_gbp": 30, "currency": "gbp"},
        ])
        burn = db.get_net_burn(date(2026, 1, 1), date(2026, 1, 31), ("Excluded",))
        assert burn["GBP"] == pytest.approx(-70.0)
