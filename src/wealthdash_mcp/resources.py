"""Read-only context documents served as MCP resources."""

from typing import Any

from .dates import date_context
from .snapshot import latest_per_account
from .tools import ToolContext


def get_date_context_resource(ctx: ToolContext) -> dict[str, Any]:
    """Resolved relative ranges for today, to quote as exact dates."""
    return date_context(ctx.now)


def get_accounts_resource(ctx: ToolContext) -> dict[str, Any]:
    """Latest balance row per account."""
    policy = ctx.policy
    accounts = sorted(
        latest_per_account(ctx.store.get_account_balances()),
        key=lambda a: (a.currency, a.institution, a.account_name),
    )
    return {
        "accounts": [
            {
                "institution": a.institution,
                "account_name": a.account_name,
                "category": policy.normalize_category(a.category),
                "currency": a.currency,
                "balance": a.total,
                "personal": a.balance_personal_local,
                "family": a.balance_family_local,
                "updated": a.date_updated.isoformat(),
            }
            for a in accounts
        ],
        "count": len(accounts),
    }


def get_categories_resource(ctx: ToolContext) -> dict[str, Any]:
    config = ctx.config
    return {
        "excluded": list(config.excluded_categories),
        "income": list(config.income_categories),
        "cash": list(config.cash_categories),
        "accountCategories": list(config.account_categories),
        "budgetCategories": [t.category for t in ctx.store.get_budget_targets()],
    }
