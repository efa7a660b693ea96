"""Current and as-of-date balance views."""

from datetime import date
from typing import Any

from .currency import convert, format_money
from .models import Account, HistoricalNetWorthEntry
from .policy import CategoryPolicy


ENTITIES = ("Personal", "Family", "Trust")


def latest_per_account(accounts: list[Account]) -> list[Account]:
    """Most recently updated row per (institution, account_name).

    Older rows for the same account are history and are never summed.
    """
    latest: dict[tuple[str, str], Account] = {}
    for account in accounts:
        existing = latest.get(account.key)
        if existing is None or account.date_updated > existing.date_updated:
            latest[account.key] = account
    return list(latest.values())


def filter_entity(accounts: list[Account], entity: str | None, policy: CategoryPolicy) -> list[Account]:
    """Keep accounts that carry a balance for the given entity.

    Trust matches a category containing "trust" OR any nonzero family
    balance, so family accounts outside the trust are included as well.
    """
    if not entity:
        return accounts
    if entity == "Personal":
        return [a for a in accounts if (a.balance_personal_local or 0) != 0]
    if entity == "Family":
        return [a for a in accounts if (a.balance_family_local or 0) != 0]
    if entity == "Trust":
        return [
            a for a in accounts
            if policy.is_trust(a.category) or (a.balance_family_local or 0) != 0
        ]
    raise ValueError(f"Unknown entity: {entity}")


def group_accounts(accounts: list[Account], group_by: str | None, policy: CategoryPolicy) -> list[dict[str, Any]]:
    grouped: dict[str, dict[str, Any]] = {}

    if group_by == "entity":
        for account in accounts:
            for entity, balance in (
                ("Personal", account.balance_personal_local or 0.0),
                ("Family", account.balance_family_local or 0.0),
            ):
                if balance == 0:
                    continue
                group = grouped.setdefault(entity, {"entity": entity, "totals": {}, "accounts": []})
                totals = group["totals"]
                totals[account.currency] = totals.get(account.currency, 0.0) + balance
                group["accounts"].append({
                    "institution": account.institution,
                    "account_name": account.account_name,
                    "category": policy.normalize_category(account.category),
                    "currency": account.currency,
                    "balance": balance,
                })
        for group in grouped.values():
            group["totals"] = {k: round(v, 2) for k, v in group["totals"].items()}
        return list(grouped.values())

    for account in accounts:
        if group_by == "category":
            category = policy.normalize_category(account.category)
            group = grouped.setdefault(category, {"category": category, "totals": {}, "accounts": []})
            group["totals"][account.currency] = group["totals"].get(account.currency, 0.0) + account.total
            group["accounts"].append({
                "institution": account.institution,
                "account_name": account.account_name,
                "currency": account.currency,
                "balance": account.total,
            })
        else:
            group = grouped.setdefault(account.currency, {"currency": account.currency, "total": 0.0})
            group["total"] += account.total
            if group_by == "currency":
                group.setdefault("accounts", []).append({
                    "institution": account.institution,
                    "account_name": account.account_name,
                    "category": policy.normalize_category(account.category),
                    "balance": account.total,
                    "personal": account.balance_personal_local,
                    "family": account.balance_family_local,
                })

    for group in grouped.values():
        if "total" in group:
            group["total"] = round(group["total"], 2)
        else:
            group["totals"] = {k: round(v, 2) for k, v in group["totals"].items()}
    return list(grouped.values())


def trust_group(accounts: list[Account], policy: CategoryPolicy) -> dict[str, Any]:
    """One "Trust" group over accounts already narrowed by the Trust rule.

    Trust is not a balance column, so each account contributes its total.
    """
    group: dict[str, Any] = {"entity": "Trust", "totals": {}, "accounts": []}
    for account in accounts:
        group["totals"][account.currency] = group["totals"].get(account.currency, 0.0) + account.total
        group["accounts"].append({
            "institution": account.institution,
            "account_name": account.account_name,
            "category": policy.normalize_category(account.category),
            "currency": account.currency,
            "balance": account.total,
        })
    group["totals"] = {k: round(v, 2) for k, v in group["totals"].items()}
    return group


def totals_by_currency(accounts: list[Account]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for account in accounts:
        totals[account.currency] = totals.get(account.currency, 0.0) + account.total
    return {currency: round(total, 2) for currency, total in totals.items()}


def format_totals(totals: dict[str, float]) -> str:
    """'£1,000.00 GBP, $250.00 USD' in a stable currency order."""
    return ", ".join(
        f"{format_money(totals[currency], currency)} {currency}" for currency in sorted(totals)
    )


def current_snapshot(
    accounts: list[Account],
    policy: CategoryPolicy,
    group_by: str | None = None,
    entity: str | None = None,
) -> dict[str, Any]:
    """Snapshot from the latest balance per account."""
    latest = filter_entity(latest_per_account(accounts), entity, policy)
    if entity == "Trust" and group_by == "entity":
        groups = [trust_group(latest, policy)] if latest else []
    elif entity and group_by == "entity":
        # Only the requested entity's column is relevant
        groups = [g for g in group_accounts(latest, group_by, policy) if g["entity"] == entity]
    else:
        groups = group_accounts(latest, group_by, policy)

    totals = totals_by_currency(latest)
    return {
        "snapshot": {
            "date": "current",
            "type": "current",
            "data": groups,
            "totalsByCurrency": totals,
            "accountCount": len(latest),
            "groupedBy": group_by or "none",
            "entity": entity or "all",
        },
        "summary": f"Current balances: {format_totals(totals) or 'none'}",
    }


def historical_snapshot(
    entries: list[HistoricalNetWorthEntry],
    as_of: date,
    group_by: str | None = None,
) -> dict[str, Any]:
    """Snapshot from net worth entries recorded exactly on ``as_of``."""
    totals: dict[str, float] = {}
    for entry in entries:
        if entry.amount_gbp:
            totals["GBP"] = totals.get("GBP", 0.0) + entry.amount_gbp
        if entry.amount_usd:
            totals["USD"] = totals.get("USD", 0.0) + entry.amount_usd
    totals = {currency: round(total, 2) for currency, total in totals.items()}

    data: list[dict[str, Any]] = [
        {"category": e.category, "amount_gbp": e.amount_gbp, "amount_usd": e.amount_usd}
        for e in entries
    ]
    if group_by in ("entity", "category"):
        by_label: dict[str, dict[str, Any]] = {}
        for entry in entries:
            group = by_label.setdefault(entry.category, {"entity": entry.category, "gbp": 0.0, "usd": 0.0})
            group["gbp"] += entry.amount_gbp or 0.0
            group["usd"] += entry.amount_usd or 0.0
        data = [
            {**g, "gbp": round(g["gbp"], 2), "usd": round(g["usd"], 2)} for g in by_label.values()
        ]

    return {
        "snapshot": {
            "date": as_of.isoformat(),
            "type": "historical",
            "data": data,
            "totalsByCurrency": totals,
            "groupedBy": group_by or "none",
        },
        "summary": f"Net worth as of {as_of.isoformat()}: {format_totals(totals)}",
    }


def net_worth(
    accounts: list[Account],
    policy: CategoryPolicy,
    currency: str,
    rate: float,
    eur_rate: float,
) -> dict[str, float]:
    """Net worth in ``currency`` from the latest row per account.

    Returns ``excludingTrust`` (the primary figure) and ``includingTrust``.
    """
    excluding = 0.0
    including = 0.0
    for account in latest_per_account(accounts):
        value = convert(account.total, account.currency, currency, rate, eur_rate)
        including += value
        if not policy.is_trust(account.category):
            excluding += value
    return {"excludingTrust": round(excluding, 2), "includingTrust": round(including, 2)}


def historical_net_worth(entries: list[HistoricalNetWorthEntry], currency: str) -> dict[str, float]:
    """Same split as ``net_worth`` from entity-labelled history rows."""
    field = "amount_usd" if currency.upper() == "USD" else "amount_gbp"
    including = sum(getattr(e, field) or 0.0 for e in entries)
    excluding = sum(getattr(e, field) or 0.0 for e in entries if e.category.lower() != "trust")
    return {"excludingTrust": round(excluding, 2), "includingTrust": round(including, 2)}


def allocation_by_currency(
    accounts: list[Account],
    currency: str,
    rate: float,
    eur_rate: float,
) -> list[dict[str, Any]]:
    """Local totals per currency with their share of the converted whole."""
    local = totals_by_currency(latest_per_account(accounts))
    converted = {c: convert(v, c, currency, rate, eur_rate) for c, v in local.items()}
    whole = sum(converted.values())

    allocation = [
        {
            "currency": c,
            "localTotal": local[c],
            f"value{currency.upper()}": round(converted[c], 2),
            "sharePct": round(converted[c] / whole * 100, 2) if whole else 0.0,
        }
        for c in local
    ]
    allocation.sort(key=lambda a: abs(a[f"value{currency.upper()}"]), reverse=True)
    return allocation
