"""Cash on hand against trailing burn."""

import math
from typing import Any

from .currency import format_money
from .dates import DateRange
from .models import Account
from .policy import CategoryPolicy
from .snapshot import latest_per_account


RUNWAY_CURRENCIES = ("GBP", "USD")


def runway_months(cash: float, burn: float) -> float:
    """Months of cash at the given monthly burn.

    Zero burn with cash on hand is infinite runway; zero of both is zero
    months. Never divides by zero.
    """
    if burn <= 0:
        return math.inf if cash > 0 else 0.0
    return cash / burn


def monthly_burn(net_spend: float, months: int) -> float:
    """Average monthly outflow; net inflow counts as no burn."""
    return max(0.0, -net_spend) / months


def cash_by_currency(accounts: list[Account], policy: CategoryPolicy) -> dict[str, float]:
    cash = {currency: 0.0 for currency in RUNWAY_CURRENCIES}
    for account in latest_per_account(accounts):
        if account.currency in cash and policy.is_cash(account.category):
            cash[account.currency] += account.total
    return cash


def runway(
    accounts: list[Account],
    net_spend: dict[str, float],
    period: DateRange,
    months: int,
    policy: CategoryPolicy,
) -> dict[str, Any]:
    result: dict[str, Any] = {}
    cash = cash_by_currency(accounts, policy)

    for currency in RUNWAY_CURRENCIES:
        spend = net_spend.get(currency, 0.0)
        burn = monthly_burn(spend, months)
        on_hand = runway_months(cash[currency], burn)
        result[currency.lower()] = {
            "totalCash": round(cash[currency], 2),
            "netSpend": round(spend, 2),
            "avgMonthlyBurn": round(burn, 2),
            "monthsOnHand": "infinite" if math.isinf(on_hand) else round(on_hand, 1),
        }

    result["period"] = period.as_dict()
    return result


def summarize(result: dict[str, Any]) -> str:
    parts = []
    for currency in RUNWAY_CURRENCIES:
        figures = result[currency.lower()]
        months = figures["monthsOnHand"]
        label = "infinite runway" if months == "infinite" else f"{months} months"
        parts.append(
            f"{currency}: {format_money(figures['totalCash'], currency)} cash, "
            f"{format_money(figures['avgMonthlyBurn'], currency)}/month burn, {label}"
        )
    return "Cash runway. " + "; ".join(parts) + "."
