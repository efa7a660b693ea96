"""Recurring payment detection (subscriptions, regular bills)."""

from collections import Counter
from datetime import date, timedelta
from typing import Any

from .config import EngineConfig
from .currency import format_money
from .dates import shift_months
from .models import Transaction
from .policy import CategoryPolicy


MONTHLY_DAYS = (25, 37)
YEARLY_DAYS = (330, 400)


def _within(days: float, bounds: tuple[int, int]) -> bool:
    return bounds[0] <= days <= bounds[1]


def _intervals(txs: list[Transaction]) -> list[int]:
    return [(txs[i].date - txs[i - 1].date).days for i in range(1, len(txs))]


def _outflow(tx: Transaction, currency: str, rate: float) -> float:
    """Positive spend in ``currency``; 0 for inflows."""
    if currency == "USD":
        if tx.amount_usd is not None and tx.amount_usd < 0:
            return abs(tx.amount_usd)
        if tx.amount_gbp is not None and tx.amount_gbp < 0:
            return abs(tx.amount_gbp * rate)
    else:
        if tx.amount_gbp is not None and tx.amount_gbp < 0:
            return abs(tx.amount_gbp)
        if tx.amount_usd is not None and tx.amount_usd < 0:
            return abs(tx.amount_usd / rate)
    return 0.0


def classify(txs: list[Transaction], now: date) -> tuple[str, float] | None:
    """Frequency and average interval for a date-sorted series, or None.

    Monthly needs three or more payments with at least two monthly gaps
    making up half the gaps, and two payments in the last four months.
    Yearly needs one yearly gap making up half the gaps. Two payments one
    month apart also count as monthly when both are recent. Failing all of
    those, two or more payments in the last 90 days averaging a monthly gap
    are monthly.
    """
    intervals = _intervals(txs)
    monthly = [d for d in intervals if _within(d, MONTHLY_DAYS)]
    yearly = [d for d in intervals if _within(d, YEARLY_DAYS)]
    four_months_ago = shift_months(now, -4)
    recent_count = sum(1 for tx in txs if tx.date >= four_months_ago)

    if len(txs) >= 3 and len(monthly) >= 2 and len(monthly) >= len(intervals) * 0.5 and recent_count >= 2:
        return "Monthly", sum(monthly) / len(monthly)
    if len(txs) >= 2 and yearly and len(yearly) >= len(intervals) * 0.5:
        return "Yearly", sum(yearly) / len(yearly)
    if len(txs) == 2 and len(monthly) == 1 and recent_count >= 2:
        return "Monthly", monthly[0]

    last_90 = [tx for tx in txs if tx.date >= now - timedelta(days=90)]
    if len(last_90) >= 2:
        gaps = _intervals(last_90)
        average = sum(gaps) / len(gaps)
        if any(_within(d, MONTHLY_DAYS) for d in gaps) and _within(average, MONTHLY_DAYS):
            return "Monthly", average
    return None


def detect_recurring_payments(
    transactions: list[Transaction],
    now: date,
    policy: CategoryPolicy,
    config: EngineConfig,
    currency: str = "GBP",
    rate: float = 1.0,
) -> list[dict[str, Any]]:
    """Detect live recurring payments, soonest next payment first.

    Transactions are grouped by the first ``recurring_key_length`` letters of
    the lower-cased counterparty. A series must have paid within
    ``recurring_live_days`` of ``now`` and every amount must sit within
    ``recurring_tolerance`` of the series average.
    """
    since = shift_months(now, -config.recurring_lookback_months)
    live_since = now - timedelta(days=config.recurring_live_days)

    groups: dict[str, list[Transaction]] = {}
    for tx in transactions:
        if tx.date < since or tx.date > now or policy.is_excluded(tx.category):
            continue
        if not tx.counterparty:
            continue
        pattern = tx.counterparty.lower().strip()[:config.recurring_key_length]
        groups.setdefault(pattern, []).append(tx)

    payments = []
    for pattern, txs in groups.items():
        if len(txs) < 2:
            continue
        txs.sort(key=lambda t: t.date)

        last_date = txs[-1].date
        if last_date < live_since:
            continue

        amounts = [a for a in (_outflow(tx, currency, rate) for tx in txs) if a > 0]
        if len(amounts) < 2:
            continue
        average = sum(amounts) / len(amounts)
        if any(abs(a - average) / average > config.recurring_tolerance for a in amounts):
            continue

        found = classify(txs, now)
        if found is None:
            continue
        frequency, interval = found

        name = Counter(tx.counterparty for tx in txs).most_common(1)[0][0]
        payments.append({
            "counterpartyPattern": pattern,
            "counterpartyName": name,
            "frequency": frequency,
            "averageAmount": round(average, 2),
            "nextExpectedDate": last_date + timedelta(days=int(interval + 0.5)),
            "transactionCount": len(txs),
            "lastTransactionDate": last_date,
        })

    payments.sort(key=lambda p: p["nextExpectedDate"])
    for payment in payments:
        payment["nextExpectedDate"] = payment["nextExpectedDate"].isoformat()
        payment["lastTransactionDate"] = payment["lastTransactionDate"].isoformat()
    return payments


def monthly_total(payments: list[dict[str, Any]]) -> float:
    """Monthly-equivalent cost; yearly payments count a twelfth."""
    total = 0.0
    for payment in payments:
        amount = payment["averageAmount"]
        total += amount if payment["frequency"] == "Monthly" else amount / 12
    return round(total, 2)


def summarize(result: dict[str, Any]) -> str:
    payments = result["payments"]
    if not payments:
        return "No recurring payments detected."
    currency = result["currency"]
    upcoming = payments[0]
    return (
        f"Found {len(payments)} recurring payment(s) costing about "
        f"{format_money(result['monthlyTotal'], currency)} a month. Next: "
        f"{upcoming['counterpartyName']} on {upcoming['nextExpectedDate']}."
    )
