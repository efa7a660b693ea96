"""Test fixtures for wealthdash MCP server tests."""

from datetime import date

import pytest

from wealthdash_mcp.config import DEFAULT_CONFIG, EngineConfig
from wealthdash_mcp.database import Database
from wealthdash_mcp.tools import ToolContext


@pytest.fixture
def db() -> Database:
    """Create in-memory database with schema."""
    database = Database(":memory:")
    database.init_schema()
    return database


@pytest.fixture
def config() -> EngineConfig:
    return DEFAULT_CONFIG


@pytest.fixture
def now() -> date:
    """Fixed reference date; last full month is February 2026."""
    return date(2026, 3, 15)


@pytest.fixture
def populated_db(db: Database) -> Database:
    """Create in-memory database populated with a small household ledger."""
    db.insert_rows("account_balances", [
        {
            "date_updated": "2026-03-01T09:00:00", "institution": "Barclays",
            "account_name": "Current", "category": "Cash", "currency": "GBP",
            "balance_personal_local": 1000, "balance_family_local": 0, "balance_total_local": 1000,
        },
        # Older row for the same account: history only
        {
            "date_updated": "2026-02-01T09:00:00", "institution": "Barclays",
            "account_name": "Current", "category": "Cash", "currency": "GBP",
            "balance_personal_local": 800, "balance_family_local": 0, "balance_total_local": 800,
        },
        {
            "date_updated": "2026-03-02T10:30:00Z", "institution": "Chase",
            "account_name": "Checking", "category": "Checking", "currency": "USD",
            "balance_personal_local": 2000, "balance_family_local": 0, "balance_total_local": 2000,
        },
        {
            "date_updated": "2026-03-01T09:00:00", "institution": "Coutts",
            "account_name": "Family Trust", "category": "Trust", "currency": "GBP",
            "balance_personal_local": 0, "balance_family_local": 500, "balance_total_local": 500,
        },
        {
            "date_updated": "2026-03-01T09:00:00", "institution": "Vanguard",
            "account_name": "ISA", "category": "Brokerage", "currency": "GBP",
            "balance_personal_local": 3000, "balance_family_local": 0, "balance_total_local": 3000,
        },
        {
            "date_updated": "2026-03-01T09:00:00", "institution": "Moonfare",
            "account_name": "Fund I", "category": "Alternative Investment", "currency": "USD",
            "balance_personal_local": 1000, "balance_family_local": 0, "balance_total_local": 1000,
        },
    ])

    db.insert_rows("transaction_log", [
        {"date": "2025-12-10", "category": "Groceries", "counterparty": "Tesco",
         "amount_gbp": -25, "currency": "GBP"},
        {"date": "2026-01-10", "category": "Groceries", "counterparty": "TESCO STORES 123",
         "amount_gbp": -50, "currency": "GBP"},
        {"date": "2026-01-15", "category": "Travel", "counterparty": "Uber",
         "amount_usd": -60, "currency": "USD"},
        {"date": "2026-01-20", "category": "Groceries", "counterparty": "Tesco Stores Limited",
         "amount_gbp": -30, "currency": "GBP"},
        {"date": "2026-02-05", "category": "Groceries", "counterparty": "Sainsbury's",
         "amount_gbp": -20, "currency": "GBP"},
        {"date": "2026-02-12", "category": "Dining", "counterparty": "Dishoom",
         "amount_gbp": -40, "currency": "GBP"},
        {"date": "2026-02-14", "category": "Income", "counterparty": "Employer Ltd",
         "amount_gbp": 5000, "currency": "GBP"},
        {"date": "2026-02-25", "category": "Excluded", "counterparty": "Transfer to savings",
         "amount_gbp": -1000, "currency": "GBP"},
        {"date": "2026-03-02", "category": "Groceries", "counterparty": "Tesco",
         "amount_gbp": -15, "currency": "GBP"},
    ])

    db.insert_rows("budget_targets", [
        {"category": "Groceries", "annual_budget_gbp": -1200, "tracking_est_gbp": -1000, "ytd_gbp": -250},
        {"category": "Dining", "annual_budget_gbp": -600, "tracking_est_gbp": -700, "ytd_gbp": -150},
        {"category": "Travel", "annual_budget_gbp": -2400, "tracking_est_gbp": -2000, "ytd_gbp": -500},
        {"category": "Income", "annual_budget_gbp": 60000, "tracking_est_gbp": 62000, "ytd_gbp": 12000},
        {"category": "Gift Money", "annual_budget_gbp": 1000, "tracking_est_gbp": 500, "ytd_gbp": 0},
    ])

    db.insert_rows("budget_history", [
        {"date": "2026-01-01", "category": "Groceries", "annual_budget": -1200, "forecast_spend": -1100},
        {"date": "2026-01-01", "category": "Dining", "annual_budget": -600, "forecast_spend": -500},
        {"date": "2026-01-01", "category": "Income", "annual_budget": 60000, "forecast_spend": 60000},
        {"date": "2026-02-01", "category": "Groceries", "annual_budget": -1200, "forecast_spend": -1000},
        {"date": "2026-02-01", "category": "Dining", "annual_budget": -600, "forecast_spend": -650},
        {"date": "2026-02-01", "category": "Travel", "annual_budget": -2400, "forecast_spend": -2000},
    ])

    db.insert_rows("historical_net_worth", [
        {"date": "2026-01-31", "category": "Personal", "amount_gbp": 10000, "amount_usd": 12700},
        {"date": "2026-01-31", "category": "Family", "amount_gbp": 5000, "amount_usd": 6350},
        {"date": "2026-01-31", "category": "Trust", "amount_gbp": 2000, "amount_usd": 2540},
        {"date": "2026-02-28", "category": "Personal", "amount_gbp": 11000, "amount_usd": 13970},
        {"date": "2026-02-28", "category": "Family", "amount_gbp": 5000, "amount_usd": 6350},
        {"date": "2026-02-28", "category": "Trust", "amount_gbp": 2500, "amount_usd": 3175},
    ])

    db.insert_rows("fx_rates", [
        {"date": "2026-01-01", "gbpusd_rate": 1.30, "eurusd_rate": 1.10},
        {"date": "2026-02-01", "gbpusd_rate": 1.20, "eurusd_rate": 1.05},
    ])
    db.insert_rows("fx_rate_current", [
        {"date": "2026-03-14", "gbpusd_rate": 1.25},
    ])

    return db


@pytest.fixture
def ctx(populated_db: Database, config: EngineConfig, now: date) -> ToolContext:
    return ToolContext(store=populated_db, config=config, now=now)


@pytest.fixture
def empty_ctx(db: Database, config: EngineConfig, now: date) -> ToolContext:
    return ToolContext(store=db, config=config, now=now)
