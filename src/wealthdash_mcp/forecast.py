"""Forecast gap evolution between two budget-history snapshots."""

import logging
from datetime import date
from typing import Any, NamedTuple

from .config import EngineConfig
from .currency import format_money
from .database import LedgerStore
from .errors import NoDataError
from .models import BudgetHistorySnapshot
from .policy import CategoryPolicy


logger = logging.getLogger(__name__)


class Boundary(NamedTuple):
    """Budget state resolved for one requested date.

    ``source`` is "exact", "nearest_earlier" or "current_targets";
    ``rows`` maps category to (annual budget, forecast spend).
    """

    requested: date
    resolved: date | None
    source: str
    rows: dict[str, tuple[float, float]]


def _rows(snapshots: list[BudgetHistorySnapshot]) -> dict[str, tuple[float, float]]:
    return {s.category: (s.annual_budget or 0.0, s.forecast_spend or 0.0) for s in snapshots}


def resolve_boundary(store: LedgerStore, day: date, allow_current: bool) -> Boundary | None:
    """Find budget state for ``day``.

    Tries the exact date, then the latest snapshot on or before it. When
    ``allow_current`` is set the current budget targets are the last
    resort. Returns None when nothing is found.
    """
    exact = store.get_budget_history(day)
    if exact:
        return Boundary(day, day, "exact", _rows(exact))

    earlier = store.get_latest_budget_history_date(day)
    if earlier is not None:
        snapshots = store.get_budget_history(earlier)
        if snapshots:
            logger.debug("No budget history on %s, using %s", day, earlier)
            return Boundary(day, earlier, "nearest_earlier", _rows(snapshots))

    if allow_current:
        targets = store.get_budget_targets()
        if targets:
            rows = {
                t.category: (t.annual_budget_gbp or 0.0, t.tracking_est_gbp or 0.0)
                for t in targets
            }
            return Boundary(day, None, "current_targets", rows)

    return None


def category_gaps(rows: dict[str, tuple[float, float]], policy: CategoryPolicy) -> dict[str, float]:
    """Gap per expense category as |budget| - |forecast| (positive = under budget)."""
    return {
        category: abs(budget) - abs(forecast)
        for category, (budget, forecast) in rows.items()
        if policy.is_expense(category)
    }


def impact(delta: float) -> str:
    if delta > 0:
        return "Positive"
    if delta < 0:
        return "Negative"
    return "Neutral"


def evolution(
    start: Boundary,
    end: Boundary,
    policy: CategoryPolicy,
    config: EngineConfig,
    currency: str = "GBP",
    rate: float = 1.0,
) -> dict[str, Any]:
    """Compare the gap at two boundaries and rank the category drivers.

    A category present at only one boundary counts as a zero gap at the
    other. USD figures are the GBP figures times ``rate``.
    """
    factor = rate if currency.upper() == "USD" else 1.0
    start_gaps = category_gaps(start.rows, policy)
    end_gaps = category_gaps(end.rows, policy)

    deltas = []
    for category in sorted(set(start_gaps) | set(end_gaps)):
        start_gap = start_gaps.get(category, 0.0) * factor
        end_gap = end_gaps.get(category, 0.0) * factor
        delta = end_gap - start_gap
        deltas.append({
            "category": category,
            "startGap": round(start_gap, 2),
            "endGap": round(end_gap, 2),
            "delta": round(delta, 2),
            "impact": impact(delta),
        })

    deltas.sort(key=lambda d: abs(d["delta"]), reverse=True)
    drivers = deltas[:config.top_drivers]
    rest = deltas[config.top_drivers:]

    start_total = sum(start_gaps.values()) * factor
    end_total = sum(end_gaps.values()) * factor

    return {
        "currency": currency.upper(),
        "start": _describe(start, start_total),
        "end": _describe(end, end_total),
        "drivers": drivers,
        "other_delta": round(sum(d["delta"] for d in rest), 2),
        "other_count": len(rest),
        "total_gap_change": round(end_total - start_total, 2),
    }


def _describe(boundary: Boundary, total_gap: float) -> dict[str, Any]:
    return {
        "requestedDate": boundary.requested.isoformat(),
        "resolvedDate": boundary.resolved.isoformat() if boundary.resolved else None,
        "source": boundary.source,
        "totalGap": round(total_gap, 2),
    }


def analyze(
    store: LedgerStore,
    start_date: date,
    end_date: date,
    policy: CategoryPolicy,
    config: EngineConfig,
    currency: str,
    rate: float,
) -> dict[str, Any]:
    """Resolve both boundaries and compare them.

    Raises:
        NoDataError: If no snapshot exists on or before ``start_date``, or
            nothing at all (not even current targets) for ``end_date``.
    """
    start = resolve_boundary(store, start_date, allow_current=False)
    if start is None:
        raise NoDataError(
            f"No historical forecast data on or before {start_date.isoformat()}"
        )

    end = resolve_boundary(store, end_date, allow_current=True)
    if end is None:
        raise NoDataError(f"No forecast data available for {end_date.isoformat()}")

    return evolution(start, end, policy, config, currency, rate)


def summarize(result: dict[str, Any]) -> str:
    currency = result["currency"]
    change = result["total_gap_change"]
    direction = "improved" if change > 0 else "worsened" if change < 0 else "was unchanged"
    text = (
        f"Gap to budget {direction} by {format_money(abs(change), currency)} "
        f"between {result['start']['resolvedDate']} and "
        f"{result['end']['resolvedDate'] or 'current targets'}."
    )
    if result["drivers"]:
        top = result["drivers"][0]
        text += f" Largest driver: {top['category']} ({format_money(top['delta'], currency)})."
    return text


def gap_over_time(
    snapshots: list[BudgetHistorySnapshot],
    policy: CategoryPolicy,
    currency: str = "GBP",
    rate: float = 1.0,
) -> dict[str, Any] | None:
    """Total expense gap per snapshot date, oldest first.

    Returns None when there are no snapshots in the range.
    """
    factor = rate if currency.upper() == "USD" else 1.0
    by_date: dict[date, float] = {}
    for snapshot in snapshots:
        if not policy.is_expense(snapshot.category):
            continue
        gap = abs(snapshot.annual_budget or 0.0) - abs(snapshot.forecast_spend or 0.0)
        by_date[snapshot.date] = by_date.get(snapshot.date, 0.0) + gap * factor

    if not by_date:
        return None

    series = [{"date": d.isoformat(), "gap": round(by_date[d], 2)} for d in sorted(by_date)]
    return {
        "currency": currency.upper(),
        "series": series,
        "first": series[0],
        "last": series[-1],
        "change": round(series[-1]["gap"] - series[0]["gap"], 2),
    }
