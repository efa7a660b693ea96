"""One-call overview composed from the snapshot and budget analyzers."""

from typing import Any

from .budget import net_income_gap, top_expense_categories
from .config import EngineConfig
from .currency import format_money
from .models import Account, BudgetTarget, HistoricalNetWorthEntry
from .policy import CategoryPolicy
from .snapshot import allocation_by_currency, historical_net_worth, net_worth


def health_summary(
    accounts: list[Account] | None,
    history: list[HistoricalNetWorthEntry] | None,
    targets: list[BudgetTarget],
    policy: CategoryPolicy,
    config: EngineConfig,
    currency: str,
    rate: float,
    eur_rate: float,
) -> dict[str, Any]:
    """Net worth, allocation, net income gap and top expense categories.

    Pass ``accounts`` for the current view or ``history`` for an as-of
    date. Allocation by currency is only available from accounts.
    """
    if history is not None:
        worth = historical_net_worth(history, currency)
        allocation = None
    else:
        worth = net_worth(accounts or [], policy, currency, rate, eur_rate)
        allocation = allocation_by_currency(accounts or [], currency, rate, eur_rate)

    net = {"currency": currency, "excludingTrust": worth["excludingTrust"]}
    if worth["includingTrust"] != worth["excludingTrust"]:
        net["includingTrust"] = worth["includingTrust"]

    # Budget targets are stored in GBP
    factor = rate if currency == "USD" else 1.0
    budget = None
    if targets:
        budget = {k: round(v * factor, 2) for k, v in net_income_gap(targets, policy).items()}
    top = [
        {**c, "forecast": round(c["forecastGBP"] * factor, 2)}
        for c in top_expense_categories(targets, policy, config.top_categories)
    ]

    return {
        "netWorth": net,
        "allocationByCurrency": allocation,
        "budget": budget,
        "topExpenseCategories": top,
    }


def summarize(health: dict[str, Any]) -> str:
    net = health["netWorth"]
    currency = net["currency"]
    text = f"Net worth (excluding Trust): {format_money(net['excludingTrust'], currency)}"
    if "includingTrust" in net:
        text += f"; including Trust: {format_money(net['includingTrust'], currency)}"
    text += "."

    budget = health["budget"]
    if budget is not None:
        gap = budget["gap"]
        direction = "ahead of" if gap >= 0 else "behind"
        text += f" Net income forecast is {format_money(abs(gap), currency)} {direction} budget."
    if health["topExpenseCategories"]:
        names = ", ".join(c["category"] for c in health["topExpenseCategories"])
        text += f" Top expense categories: {names}."
    return text
