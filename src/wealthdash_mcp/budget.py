"""Budget vs actual (YTD) and budget vs forecast (annual) variance."""

from typing import Any

from .currency import format_money
from .models import BudgetTarget, Transaction
from .policy import CategoryPolicy


PERIODS = ("ytd", "annual")


def variance(budget: float, actual: float) -> float:
    """Budget minus actual; positive means under budget."""
    return budget - actual


def actual_by_category(
    rows: list[tuple[Transaction, tuple[float, float]]],
) -> dict[str, tuple[float, float]]:
    """Spend per category as positive (GBP, USD) from resolved expense rows."""
    actuals: dict[str, tuple[float, float]] = {}
    for tx, (gbp, usd) in rows:
        prev_gbp, prev_usd = actuals.get(tx.category, (0.0, 0.0))
        actuals[tx.category] = (prev_gbp + abs(gbp), prev_usd + abs(usd))
    return actuals


def compare(
    targets: list[BudgetTarget],
    actuals: dict[str, tuple[float, float]],
    period: str,
    rate: float,
    policy: CategoryPolicy,
) -> dict[str, Any]:
    """Per-category variance, biggest overspend first, with totals.

    Args:
        targets: Budget rows to compare.
        actuals: YTD spend per category (ignored for the annual period).
        period: "ytd" compares ytd_gbp to actual spend; "annual" compares
            annual_budget_gbp to tracking_est_gbp.
        rate: Current GBPUSD rate for the USD budget figures.
        policy: Category policy; excluded categories stay out of the gap.

    Returns:
        Dictionary with ``comparisons`` and a ``summary`` block.
    """
    comparisons = []
    for target in targets:
        if period == "ytd":
            budget_gbp = abs(target.ytd_gbp or 0.0)
            actual_gbp, actual_usd = actuals.get(target.category, (0.0, 0.0))
        else:
            budget_gbp = abs(target.annual_budget_gbp or 0.0)
            actual_gbp = abs(target.tracking_est_gbp or 0.0)
            actual_usd = actual_gbp * rate
        budget_usd = budget_gbp * rate

        variance_gbp = variance(budget_gbp, actual_gbp)
        variance_usd = variance(budget_usd, actual_usd)

        comparisons.append({
            "category": target.category,
            "budgetGBP": round(budget_gbp, 2),
            "budgetUSD": round(budget_usd, 2),
            "actualGBP": round(actual_gbp, 2),
            "actualUSD": round(actual_usd, 2),
            "varianceGBP": round(variance_gbp, 2),
            "varianceUSD": round(variance_usd, 2),
            "percentUsedGBP": round(actual_gbp / budget_gbp * 100, 1) if budget_gbp > 0 else 0.0,
            "percentUsedUSD": round(actual_usd / budget_usd * 100, 1) if budget_usd > 0 else 0.0,
            "isOverBudget": variance_gbp < 0 or variance_usd < 0,
        })

    comparisons.sort(key=lambda c: min(c["varianceGBP"], c["varianceUSD"]))

    over = [c for c in comparisons if c["isOverBudget"]]
    counted = [c for c in comparisons if not policy.is_excluded(c["category"])]

    return {
        "period": period,
        "comparisons": comparisons,
        "summary": {
            "totalCategories": len(comparisons),
            "overBudget": len(over),
            "underBudget": len(comparisons) - len(over),
            "topOverspend": over[:5],
            "totalGapGBP": round(sum(c["varianceGBP"] for c in counted), 2),
            "totalGapUSD": round(sum(c["varianceUSD"] for c in counted), 2),
        },
    }


def summarize(comparison: dict[str, Any], year: int) -> str:
    stats = comparison["summary"]
    label = "YTD" if comparison["period"] == "ytd" else "Annual"
    over = stats["overBudget"]
    gap = stats["totalGapGBP"]
    direction = "under" if gap >= 0 else "over"
    return (
        f"{label} {year} budget analysis: {over} "
        f"{'category' if over == 1 else 'categories'} over budget, "
        f"{stats['underBudget']} under budget. "
        f"Overall {format_money(abs(gap), 'GBP')} {direction} budget."
    )


def net_income_gap(targets: list[BudgetTarget], policy: CategoryPolicy) -> dict[str, float]:
    """Net income budget against net income forecast.

    Income categories contribute to income; every category outside the
    exclusion set contributes to expenses. Magnitudes are used throughout,
    so ``gap`` is positive when the forecast beats the budget.
    """
    income_budget = income_forecast = 0.0
    expense_budget = expense_forecast = 0.0

    for target in targets:
        budget = abs(target.annual_budget_gbp or 0.0)
        forecast = abs(target.tracking_est_gbp or 0.0)
        if policy.is_income(target.category):
            income_budget += budget
            income_forecast += forecast
        elif policy.is_expense(target.category):
            expense_budget += budget
            expense_forecast += forecast

    net_budget = income_budget - expense_budget
    net_forecast = income_forecast - expense_forecast
    return {
        "incomeBudget": round(income_budget, 2),
        "expenseBudget": round(expense_budget, 2),
        "incomeForecast": round(income_forecast, 2),
        "expenseForecast": round(expense_forecast, 2),
        "netBudget": round(net_budget, 2),
        "netForecast": round(net_forecast, 2),
        "gap": round(net_forecast - net_budget, 2),
    }


def top_expense_categories(
    targets: list[BudgetTarget],
    policy: CategoryPolicy,
    count: int,
) -> list[dict[str, Any]]:
    """Largest expense categories by forecast spend."""
    expenses = [t for t in targets if policy.is_expense(t.category)]
    expenses.sort(key=lambda t: abs(t.tracking_est_gbp or 0.0), reverse=True)
    return [
        {
            "category": t.category,
            "forecastGBP": round(abs(t.tracking_est_gbp or 0.0), 2),
            "budgetGBP": round(abs(t.annual_budget_gbp or 0.0), 2),
        }
        for t in expenses[:count]
    ]
