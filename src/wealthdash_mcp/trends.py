"""Rolling 13-month breakdown for one category."""

from collections.abc import Callable
from datetime import date
from typing import Any

from .config import EngineConfig
from .currency import format_money, pick, resolve_amounts
from .dates import month_key
from .models import Transaction
from .policy import CategoryPolicy


def _pct(delta: float, denominator: float) -> float | str:
    if denominator == 0:
        return "N/A"
    return round(delta / denominator * 100, 1)


def _against_average(current: float, history: list[float]) -> dict[str, Any]:
    """Compare ``current`` with the mean of the non-None history values."""
    if not history:
        return {"baseline": None, "delta": None, "pct": "N/A"}
    baseline = sum(history) / len(history)
    delta = current - baseline
    return {"baseline": round(baseline, 2), "delta": round(delta, 2), "pct": _pct(delta, baseline)}


def _against_value(current: float, baseline: float) -> dict[str, Any]:
    delta = current - baseline
    return {"baseline": round(baseline, 2), "delta": round(delta, 2), "pct": _pct(delta, baseline)}


def monthly_trends(
    transactions: list[Transaction],
    category: str,
    months: list[date],
    config: EngineConfig,
    rate_for_date: Callable[[date], float],
    currency: str = "GBP",
) -> dict[str, Any] | None:
    """Split each month's spend into the top counterparty vs everything else.

    Args:
        transactions: Transactions covering the window; other categories
            are ignored.
        category: Category to analyze (exact match).
        months: First days of the window's months, oldest first; the last
            one is the month being compared.
        config: Engine policy (trend key length).
        rate_for_date: Historical rate lookup for currency resolution.
        currency: GBP or USD.

    Returns:
        Dictionary with the top counterparty, monthly breakdown and
        comparisons, or None if the category has no spend in the window.
    """
    keys = [month_key(m) for m in months]
    window = set(keys)
    spend: list[tuple[str, str, str, float]] = []

    for tx in transactions:
        if tx.category != category:
            continue
        mk = month_key(tx.date)
        if mk not in window:
            continue
        amount = pick(resolve_amounts(tx, rate_for_date(tx.date)), currency)
        if amount >= 0:
            continue
        name = tx.counterparty or "Unknown"
        spend.append((mk, CategoryPolicy.counterparty_key(name, config.trend_key_length), name, abs(amount)))

    if not spend:
        return None

    # Top counterparty across the whole window, not just the latest month
    by_key: dict[str, list[Any]] = {}
    for _, key, name, amount in spend:
        entry = by_key.setdefault(key, [0.0, name])
        entry[0] += amount
        if len(name) > len(entry[1]):
            entry[1] = name
    top_key = max(by_key, key=lambda k: by_key[k][0])

    totals = {mk: [0.0, 0.0] for mk in keys}
    for mk, key, _, amount in spend:
        totals[mk][1] += amount
        if key == top_key:
            totals[mk][0] += amount

    breakdown = []
    for index, mk in enumerate(keys):
        top, total = totals[mk]
        # Moving average starts at the third month
        recent = [totals[k][1] for k in keys[index - 2:index + 1]] if index >= 2 else [total]
        breakdown.append({
            "month": mk,
            "topTransactionAmount": round(top, 2),
            "otherAmount": round(total - top, 2),
            "total": round(total, 2),
            "trendLine": round(sum(recent) / len(recent), 2),
        })

    current = breakdown[-1]
    prior = breakdown[:-1]
    # Averages only count months with some spend
    active = [m for m in prior if m["total"] > 0]
    last_three = [m for m in prior[-3:] if m["total"] > 0]
    last_year = breakdown[0] if len(breakdown) >= 13 else None

    comparisons = {}
    for row, field in (("total", "total"), ("top", "topTransactionAmount"), ("other", "otherAmount")):
        value = current[field]
        comparisons[row] = {
            "current": value,
            "vsL3M": _against_average(value, [m[field] for m in last_three]),
            "vsL12M": _against_average(value, [m[field] for m in active]),
            "vsLY": (
                _against_value(value, last_year[field]) if last_year is not None
                else {"baseline": None, "delta": None, "pct": "N/A"}
            ),
        }

    top_total, top_name = by_key[top_key]
    return {
        "category": category,
        "currency": currency.upper(),
        "period": {"start": keys[0], "end": keys[-1]},
        "topCounterparty": {"name": top_name, "key": top_key, "total": round(top_total, 2)},
        "monthlyBreakdown": breakdown,
        "comparisons": comparisons,
    }


def summarize(result: dict[str, Any]) -> str:
    currency = result["currency"]
    current = result["comparisons"]["total"]
    text = (
        f"{result['category']} spend in {result['period']['end']}: "
        f"{format_money(current['current'], currency)}. "
        f"Top counterparty: {result['topCounterparty']['name']}."
    )
    l3m = current["vsL3M"]
    if l3m["delta"] is not None:
        direction = "above" if l3m["delta"] > 0 else "below"
        text += f" {format_money(abs(l3m['delta']), currency)} {direction} the 3-month average."
    return text
