"""Net worth time series from historical entries."""

from datetime import date
from typing import Any

from .currency import format_money
from .models import HistoricalNetWorthEntry


def trend(entries: list[HistoricalNetWorthEntry], group_by: str = "total") -> dict[str, Any] | None:
    """Sum entries per date, optionally with per-entity subtotals.

    First and last refer to dates actually present in the data, which may
    differ from the requested range. Returns None for an empty input.
    """
    if not entries:
        return None

    points: dict[date, dict[str, Any]] = {}
    for entry in entries:
        point = points.setdefault(entry.date, {"gbp": 0.0, "usd": 0.0, "entities": {}})
        gbp = entry.amount_gbp or 0.0
        usd = entry.amount_usd or 0.0
        point["gbp"] += gbp
        point["usd"] += usd
        if group_by == "entity":
            sub = point["entities"].setdefault(entry.category, {"gbp": 0.0, "usd": 0.0})
            sub["gbp"] += gbp
            sub["usd"] += usd

    series = []
    for day in sorted(points):
        point = points[day]
        item: dict[str, Any] = {
            "date": day.isoformat(),
            "gbp": round(point["gbp"], 2),
            "usd": round(point["usd"], 2),
        }
        if group_by == "entity":
            item["entities"] = {
                label: {"gbp": round(v["gbp"], 2), "usd": round(v["usd"], 2)}
                for label, v in sorted(point["entities"].items())
            }
        series.append(item)

    first, last = series[0], series[-1]
    return {
        "series": series,
        "firstDate": first["date"],
        "lastDate": last["date"],
        "change": {
            "gbp": round(last["gbp"] - first["gbp"], 2),
            "usd": round(last["usd"] - first["usd"], 2),
        },
        "groupedBy": group_by,
    }


def summarize(result: dict[str, Any]) -> str:
    change = result["change"]
    return (
        f"Net worth changed by {format_money(change['gbp'], 'GBP')} / "
        f"{format_money(change['usd'], 'USD')} from {result['firstDate']} "
        f"to {result['lastDate']} ({len(result['series'])} data points)."
    )
