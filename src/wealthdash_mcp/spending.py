"""Transaction filtering, grouping and Pareto breakdown."""

from collections.abc import Callable
from datetime import date
from typing import Any

from .config import EngineConfig
from .currency import format_money, resolve_amounts
from .dates import month_key
from .models import Transaction
from .policy import CategoryPolicy


TRANSACTION_TYPES = ("expenses", "income", "all")
GROUP_BY_OPTIONS = ("category", "merchant", "month")


def filter_transactions(
    transactions: list[Transaction],
    policy: CategoryPolicy,
    rate_for_date: Callable[[date], float],
    category: str | None = None,
    merchant: str | None = None,
    transaction_type: str = "expenses",
    include_excluded: bool = False,
) -> list[tuple[Transaction, tuple[float, float]]]:
    """Apply category, merchant, exclusion and sign filters.

    Returns each surviving transaction paired with its signed (GBP, USD)
    amounts, resolved at the rate valid on the transaction's date.
    """
    needle = merchant.casefold() if merchant else None
    kept = []

    for tx in transactions:
        if category and tx.category != category:
            continue
        if needle and needle not in (tx.counterparty or "").casefold():
            continue
        if not include_excluded and policy.is_excluded(tx.category):
            continue

        amounts = resolve_amounts(tx, rate_for_date(tx.date))
        gbp, usd = amounts
        if transaction_type == "expenses" and not (gbp < 0 or usd < 0):
            continue
        if transaction_type == "income" and not (gbp > 0 or usd > 0):
            continue

        kept.append((tx, amounts))

    return kept


def mark_pareto(groups: list[dict[str, Any]], threshold: float, field: str = "totalGBP") -> None:
    """Annotate groups with their cumulative share, in place.

    Groups are ordered by absolute amount descending. A group is in the
    top share while the running cumulative amount including it is at most
    ``threshold`` of the grand total.
    """
    groups.sort(key=lambda g: abs(g[field]), reverse=True)
    total = sum(abs(g[field]) for g in groups)
    cumulative = 0.0

    for group in groups:
        cumulative += abs(group[field])
        group["cumulative"] = round(cumulative, 2)
        group["cumulativePct"] = round(cumulative / total * 100, 2) if total else 0.0
        group["isTop80Percent"] = total > 0 and cumulative <= threshold * total


def _orient(amount: float, transaction_type: str) -> float:
    # Expenses are reported as positive spend
    return -amount if transaction_type == "expenses" else amount


def aggregate(
    rows: list[tuple[Transaction, tuple[float, float]]],
    config: EngineConfig,
    transaction_type: str = "expenses",
    group_by: str | None = None,
    limit: int = 100,
) -> dict[str, Any]:
    """Aggregate filtered rows into totals and either groups or a transaction list.

    Args:
        rows: Output of ``filter_transactions``.
        config: Engine policy (Pareto threshold, merchant key length).
        transaction_type: expenses, income or all; decides display sign.
        group_by: category, merchant, month, or None for a transaction list.
        limit: Cap on the returned transaction list only.

    Returns:
        Dictionary with totals and ``grouped`` or ``transactions``.
    """
    net_gbp = sum(amounts[0] for _, amounts in rows)
    net_usd = sum(amounts[1] for _, amounts in rows)

    totals = {
        "gbp": round(_orient(net_gbp, transaction_type), 2),
        "usd": round(_orient(net_usd, transaction_type), 2),
        "net_gbp": round(net_gbp, 2),
        "net_usd": round(net_usd, 2),
        "transactionCount": len(rows),
    }

    grouped = None
    transactions = None

    if group_by:
        groups: dict[str, dict[str, Any]] = {}
        for tx, (gbp, usd) in rows:
            if group_by == "category":
                key = tx.category
                label_field, label = "category", tx.category
            elif group_by == "merchant":
                key = CategoryPolicy.counterparty_key(tx.counterparty, config.merchant_key_length)
                label_field, label = "merchant", tx.counterparty or "Unknown"
            else:
                key = month_key(tx.date)
                label_field, label = "month", key

            group = groups.get(key)
            if group is None:
                group = {label_field: label, "totalGBP": 0.0, "totalUSD": 0.0, "count": 0}
                groups[key] = group
            elif group_by == "merchant" and len(label) > len(group["merchant"]):
                # Longest variant is the display name
                group["merchant"] = label

            group["totalGBP"] += _orient(gbp, transaction_type)
            group["totalUSD"] += _orient(usd, transaction_type)
            group["count"] += 1

        grouped = list(groups.values())
        if group_by == "merchant":
            mark_pareto(grouped, config.pareto_threshold)
        else:
            grouped.sort(key=lambda g: g["totalGBP"], reverse=True)

        for group in grouped:
            group["totalGBP"] = round(group["totalGBP"], 2)
            group["totalUSD"] = round(group["totalUSD"], 2)
    else:
        latest = sorted(rows, key=lambda row: row[0].date, reverse=True)[:limit]
        transactions = [
            {
                "date": tx.date.isoformat(),
                "category": tx.category,
                "counterparty": tx.counterparty or "Unknown",
                "amount_gbp": round(gbp, 2),
                "amount_usd": round(usd, 2),
            }
            for tx, (gbp, usd) in latest
        ]

    return {
        "totals": totals,
        "grouped": grouped,
        "transactions": transactions,
    }


def summarize(totals: dict[str, Any], transaction_type: str) -> str:
    label = {"expenses": "Total spending", "income": "Total income"}.get(transaction_type, "Total")
    return (
        f"{label}: {format_money(totals['gbp'], 'GBP')} GBP / "
        f"{format_money(totals['usd'], 'USD')} USD "
        f"({totals['transactionCount']} transactions)"
    )
