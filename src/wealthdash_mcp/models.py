"""Typed ledger rows.

Rows coming back from a store are plain dicts; they are converted here, at
the fetch boundary, so aggregation code only ever sees these dataclasses.
Numeric columns keep ``None`` for missing values; callers resolve them to
zero after currency resolution.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any


def parse_day(value: Any) -> date:
    """Parse a store date value ('YYYY-MM-DD' or ISO timestamp) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).replace("Z", "+00:00")
    parsed = datetime.fromisoformat(text)
    # Mixed naive/aware stamps must stay comparable
    return parsed.replace(tzinfo=None)


def to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class Account:
    institution: str
    account_name: str
    category: str
    currency: str
    balance_total_local: float | None
    balance_personal_local: float | None
    balance_family_local: float | None
    date_updated: datetime

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the account across balance updates."""
        return (self.institution, self.account_name)

    @property
    def total(self) -> float:
        """Local-currency total; personal + family when the total is missing."""
        if self.balance_total_local is not None:
            return self.balance_total_local
        return (self.balance_personal_local or 0.0) + (self.balance_family_local or 0.0)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        return cls(
            institution=row.get("institution") or "",
            account_name=row.get("account_name") or "",
            category=row.get("category") or "Unknown",
            currency=(row.get("currency") or "GBP").strip().upper(),
            balance_total_local=to_float(row.get("balance_total_local")),
            balance_personal_local=to_float(row.get("balance_personal_local")),
            balance_family_local=to_float(row.get("balance_family_local")),
            date_updated=parse_timestamp(row["date_updated"]),
        )


@dataclass(frozen=True)
class Transaction:
    date: date
    category: str
    counterparty: str | None
    amount_gbp: float | None
    amount_usd: float | None
    currency: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Transaction":
        currency = row.get("currency")
        return cls(
            date=parse_day(row["date"]),
            category=row.get("category") or "Unknown",
            counterparty=row.get("counterparty"),
            amount_gbp=to_float(row.get("amount_gbp")),
            amount_usd=to_float(row.get("amount_usd")),
            currency=currency.strip().upper() if currency else None,
        )


@dataclass(frozen=True)
class BudgetTarget:
    category: str
    annual_budget_gbp: float | None
    tracking_est_gbp: float | None
    ytd_gbp: float | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BudgetTarget":
        return cls(
            category=row.get("category") or "Unknown",
            annual_budget_gbp=to_float(row.get("annual_budget_gbp")),
            tracking_est_gbp=to_float(row.get("tracking_est_gbp")),
            ytd_gbp=to_float(row.get("ytd_gbp")),
        )


@dataclass(frozen=True)
class HistoricalNetWorthEntry:
    date: date
    category: str
    amount_gbp: float | None
    amount_usd: float | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "HistoricalNetWorthEntry":
        return cls(
            date=parse_day(row["date"]),
            category=row.get("category") or "Unknown",
            amount_gbp=to_float(row.get("amount_gbp")),
            amount_usd=to_float(row.get("amount_usd")),
        )


@dataclass(frozen=True)
class BudgetHistorySnapshot:
    date: date
    category: str
    forecast_spend: float | None
    annual_budget: float | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BudgetHistorySnapshot":
        return cls(
            date=parse_day(row["date"]),
            category=row.get("category") or "Unknown",
            forecast_spend=to_float(row.get("forecast_spend")),
            annual_budget=to_float(row.get("annual_budget")),
        )


@dataclass(frozen=True)
class FXRate:
    date: date
    gbpusd_rate: float | None
    eurusd_rate: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FXRate":
        return cls(
            date=parse_day(row["date"]),
            gbpusd_rate=to_float(row.get("gbpusd_rate")),
            eurusd_rate=to_float(row.get("eurusd_rate")),
        )
