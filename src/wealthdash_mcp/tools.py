"""Tool definitions: input schemas, data fetching and result shaping."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from . import budget, forecast, health, networth, recurring, runway, snapshot, spending, trends
from .config import EngineConfig
from .currency import RateLookup, convert, current_rates, format_money
from .database import LedgerStore
from .dates import DateRange, last_full_months, month_end, resolve_dates, shift_months
from .errors import NoDataError, StoreError
from .policy import CategoryPolicy


logger = logging.getLogger(__name__)

Currency = Literal["GBP", "USD"]


@dataclass(frozen=True)
class ToolContext:
    """Everything one tool call may read. Built fresh for every call."""

    store: LedgerStore
    config: EngineConfig
    now: date
    benchmark_url: str | None = None

    @property
    def policy(self) -> CategoryPolicy:
        return CategoryPolicy(self.config)

    def rate_lookup(self, up_to: date, fallback: float) -> RateLookup:
        return RateLookup(self.store.get_fx_rates_up_to(up_to), fallback)


# ============================================================================
# Inputs
# ============================================================================

class ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class NoInput(ToolInput):
    pass


def _current_as_none(value: Any) -> Any:
    # Callers may say "current" or "null" for the live view
    if isinstance(value, str) and value.strip().lower() in ("", "current", "null", "now", "none"):
        return None
    return value


class DateRangeInput(ToolInput):
    @model_validator(mode="after")
    def check_order(self):
        start = getattr(self, "start_date", None)
        end = getattr(self, "end_date", None)
        if start and end and start > end:
            raise ValueError(f"startDate {start} is after endDate {end}")
        return self


class SnapshotInput(ToolInput):
    as_of_date: date | None = Field(
        default=None,
        alias="asOfDate",
        description="Historical date (YYYY-MM-DD). Omit for current balances.",
    )
    group_by: Literal["currency", "category", "entity"] | None = Field(
        default=None, alias="groupBy", description="Group balances by currency, category or entity"
    )
    entity: Literal["Personal", "Family", "Trust"] | None = Field(
        default=None, description="Restrict to one ownership entity"
    )

    @field_validator("as_of_date", mode="before")
    @classmethod
    def normalize_as_of(cls, value: Any) -> Any:
        return _current_as_none(value)


class SpendingInput(DateRangeInput):
    start_date: date | None = Field(
        default=None, alias="startDate", description="Start (YYYY-MM-DD). Defaults to Jan 1 this year."
    )
    end_date: date | None = Field(
        default=None, alias="endDate", description="End (YYYY-MM-DD). Defaults to today."
    )
    merchant: str | None = Field(default=None, description="Case-insensitive counterparty substring")
    category: str | None = Field(default=None, description="Exact category")
    transaction_type: Literal["expenses", "income", "all"] = Field(
        default="expenses", alias="transactionType"
    )
    include_excluded: bool = Field(
        default=False,
        alias="includeExcluded",
        description="Include Excluded, Income, Gift Money and Other Income",
    )
    group_by: Literal["category", "merchant", "month"] | None = Field(default=None, alias="groupBy")
    limit: int = Field(default=100, ge=1, le=10000, description="Max transactions listed; totals are never capped")


class BudgetInput(ToolInput):
    category: str | None = Field(default=None, description="Single category. Omit for all.")
    year: int | None = Field(default=None, ge=1900, le=2200, description="Defaults to the current year")
    period: Literal["ytd", "annual"] = Field(default="ytd")


class HealthInput(ToolInput):
    as_of_date: date | None = Field(default=None, alias="asOfDate")
    currency: Currency = "GBP"

    @field_validator("as_of_date", mode="before")
    @classmethod
    def normalize_as_of(cls, value: Any) -> Any:
        return _current_as_none(value)


class ForecastInput(DateRangeInput):
    start_date: date = Field(alias="startDate", description="Earlier snapshot date (YYYY-MM-DD)")
    end_date: date | None = Field(default=None, alias="endDate", description="Defaults to today")
    currency: Currency = "GBP"


class NetWorthTrendInput(DateRangeInput):
    start_date: date = Field(alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    group_by: Literal["total", "entity"] = Field(default="total", alias="groupBy")


class MonthlyTrendsInput(ToolInput):
    category: str = Field(min_length=1)
    currency: Currency = "GBP"


class RecurringInput(ToolInput):
    currency: Currency = Field(default="GBP", description="Currency for average amounts")


class ConvertInput(ToolInput):
    amount: float
    from_currency: Literal["GBP", "USD", "EUR"] = Field(alias="fromCurrency")
    to_currency: Literal["GBP", "USD", "EUR"] = Field(alias="toCurrency")


class BenchmarkInput(ToolInput):
    query: str = Field(min_length=1, description="What to compare against, e.g. 'UK household grocery spend'")


# ============================================================================
# Base
# ============================================================================

def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class Tool:
    """validate -> execute -> result, with failures returned as ``{"error": ...}``."""

    name: str = ""
    description: str = ""
    Input: type[ToolInput] = NoInput

    def input_schema(self) -> dict[str, Any]:
        return self.Input.model_json_schema(by_alias=True)

    def validate(self, arguments: dict[str, Any] | None) -> ToolInput:
        return self.Input.model_validate(arguments or {})

    def execute(self, params: Any, ctx: ToolContext) -> dict[str, Any]:
        raise NotImplementedError

    async def aexecute(self, params: Any, ctx: ToolContext) -> dict[str, Any]:
        return self.execute(params, ctx)

    def run(self, arguments: dict[str, Any] | None, ctx: ToolContext) -> dict[str, Any]:
        logger.info("Tool %s called with %s", self.name, arguments)
        try:
            params = self.validate(arguments)
        except ValidationError as e:
            return {"error": f"Invalid arguments: {_format_validation_error(e)}"}
        try:
            return self.execute(params, ctx)
        except Exception as e:
            return self._failure(e)

    async def arun(self, arguments: dict[str, Any] | None, ctx: ToolContext) -> dict[str, Any]:
        logger.info("Tool %s called with %s", self.name, arguments)
        try:
            params = self.validate(arguments)
        except ValidationError as e:
            return {"error": f"Invalid arguments: {_format_validation_error(e)}"}
        try:
            return await self.aexecute(params, ctx)
        except Exception as e:
            return self._failure(e)

    def _failure(self, error: Exception) -> dict[str, str]:
        if isinstance(error, (StoreError, NoDataError, ValueError)):
            logger.warning("Tool %s failed: %s", self.name, error)
        else:
            logger.exception("Tool %s raised unexpectedly", self.name)
        return {"error": str(error) or error.__class__.__name__}


# ============================================================================
# Tools
# ============================================================================

class FinancialSnapshotTool(Tool):
    name = "get_financial_snapshot"
    description = (
        "Net worth and account balances, current or as of a historical date. "
        "Group by currency, category or entity (Personal/Family/Trust), or "
        "filter to one entity."
    )
    Input = SnapshotInput

    def execute(self, params: SnapshotInput, ctx: ToolContext) -> dict[str, Any]:
        if params.as_of_date:
            day = params.as_of_date
            entries = ctx.store.get_historical_net_worth(day, day, params.entity)
            if not entries:
                return {
                    "snapshot": None,
                    "summary": f"No historical net worth data found for {day.isoformat()}.",
                }
            return snapshot.historical_snapshot(entries, day, params.group_by)

        accounts = ctx.store.get_account_balances()
        if not accounts:
            return {"snapshot": None, "summary": "No account balances found."}
        return snapshot.current_snapshot(accounts, ctx.policy, params.group_by, params.entity)


class SpendingTool(Tool):
    name = "analyze_spending"
    description = (
        "Analyze spending, income and transactions by category, merchant or "
        "month. Excludes Excluded, Income, Gift Money and Other Income unless "
        "includeExcluded is set. Merchant grouping marks the groups making up "
        "the top 80% of spend."
    )
    Input = SpendingInput

    def execute(self, params: SpendingInput, ctx: ToolContext) -> dict[str, Any]:
        period = resolve_dates(params.start_date, params.end_date, ctx.now)
        transactions = ctx.store.get_transactions(
            period.start, period.end, params.category, params.merchant
        )

        rate, _ = current_rates(ctx.store, ctx.config)
        rows = spending.filter_transactions(
            transactions,
            ctx.policy,
            ctx.rate_lookup(period.end, rate),
            category=params.category,
            merchant=params.merchant,
            transaction_type=params.transaction_type,
            include_excluded=params.include_excluded,
        )
        if not rows:
            return {"analysis": None, "summary": "No transactions found for the specified criteria."}

        analysis = spending.aggregate(
            rows, ctx.config, params.transaction_type, params.group_by, params.limit
        )
        analysis = {"period": period.as_dict(), **analysis}
        return {
            "analysis": analysis,
            "summary": spending.summarize(analysis["totals"], params.transaction_type),
        }


class BudgetVsActualTool(Tool):
    name = "get_budget_vs_actual"
    description = (
        "Compare budget targets with actual spend (ytd) or with the full-year "
        "forecast (annual). Positive variance is under budget; totalGapGBP is "
        "the overall figure to quote."
    )
    Input = BudgetInput

    def execute(self, params: BudgetInput, ctx: ToolContext) -> dict[str, Any]:
        year = params.year or ctx.now.year
        targets = ctx.store.get_budget_targets(params.category)
        if not targets:
            return {
                "comparison": None,
                "summary": (
                    f"No budget target found for category: {params.category}"
                    if params.category else "No budget targets found."
                ),
            }

        rate, _ = current_rates(ctx.store, ctx.config)
        actuals: dict[str, tuple[float, float]] = {}
        if params.period == "ytd":
            start = date(year, 1, 1)
            end = min(ctx.now, date(year, 12, 31))
            if start <= end:
                transactions = ctx.store.get_transactions(start, end, params.category)
                rows = spending.filter_transactions(
                    transactions, ctx.policy, ctx.rate_lookup(end, rate), transaction_type="expenses"
                )
                actuals = budget.actual_by_category(rows)

        comparison = budget.compare(targets, actuals, params.period, rate, ctx.policy)
        comparison["year"] = year
        return {"comparison": comparison, "summary": budget.summarize(comparison, year)}


class FinancialHealthTool(Tool):
    name = "get_financial_health_summary"
    description = (
        "Overview: net worth excluding Trust (and including it when different), "
        "allocation by currency, net income budget gap and top expense categories."
    )
    Input = HealthInput

    def execute(self, params: HealthInput, ctx: ToolContext) -> dict[str, Any]:
        rate, eur_rate = current_rates(ctx.store, ctx.config)

        accounts = history = None
        if params.as_of_date:
            day = params.as_of_date
            history = ctx.store.get_historical_net_worth(day, day)
            if not history:
                return {
                    "health": None,
                    "summary": f"No historical net worth data found for {day.isoformat()}.",
                }
        else:
            accounts = ctx.store.get_account_balances()

        targets = ctx.store.get_budget_targets()
        result = health.health_summary(
            accounts, history, targets, ctx.policy, ctx.config, params.currency, rate, eur_rate
        )
        result["asOfDate"] = params.as_of_date.isoformat() if params.as_of_date else "current"
        return {"health": result, "summary": health.summarize(result)}


class ForecastEvolutionTool(Tool):
    name = "analyze_forecast_evolution"
    description = (
        "How the gap between annual budget and forecast spend moved between two "
        "dates, with the top category drivers. Uses the nearest earlier snapshot "
        "when a date has none."
    )
    Input = ForecastInput

    def execute(self, params: ForecastInput, ctx: ToolContext) -> dict[str, Any]:
        period = resolve_dates(params.start_date, params.end_date, ctx.now)
        rate, _ = current_rates(ctx.store, ctx.config)
        result = forecast.analyze(
            ctx.store, period.start, period.end, ctx.policy, ctx.config, params.currency, rate
        )
        return {"evolution": result, "summary": forecast.summarize(result)}


class ForecastGapOverTimeTool(Tool):
    name = "get_forecast_gap_over_time"
    description = "Total expense gap to budget for every budget snapshot date in a range."
    Input = ForecastInput

    def execute(self, params: ForecastInput, ctx: ToolContext) -> dict[str, Any]:
        period = resolve_dates(params.start_date, params.end_date, ctx.now)
        rate, _ = current_rates(ctx.store, ctx.config)
        snapshots = ctx.store.get_budget_history_between(period.start, period.end)
        result = forecast.gap_over_time(snapshots, ctx.policy, params.currency, rate)
        if result is None:
            return {
                "gapOverTime": None,
                "summary": (
                    f"No budget history between {period.start.isoformat()} "
                    f"and {period.end.isoformat()}."
                ),
            }

        change = result["change"]
        return {
            "gapOverTime": result,
            "summary": (
                f"Gap to budget moved from {format_money(result['first']['gap'], params.currency)} "
                f"on {result['first']['date']} to {format_money(result['last']['gap'], params.currency)} "
                f"on {result['last']['date']} ({format_money(change, params.currency)})."
            ),
        }


class NetWorthTrendTool(Tool):
    name = "get_net_worth_trend"
    description = "Net worth time series over a date range, optionally split by entity."
    Input = NetWorthTrendInput

    def execute(self, params: NetWorthTrendInput, ctx: ToolContext) -> dict[str, Any]:
        period = resolve_dates(params.start_date, params.end_date, ctx.now)
        entries = ctx.store.get_historical_net_worth(period.start, period.end)
        result = networth.trend(entries, params.group_by)
        if result is None:
            return {
                "trend": None,
                "summary": (
                    f"No historical net worth data between {period.start.isoformat()} "
                    f"and {period.end.isoformat()}."
                ),
            }
        return {"trend": result, "summary": networth.summarize(result)}


class MonthlyCategoryTrendsTool(Tool):
    name = "analyze_monthly_category_trends"
    description = (
        "13-month spend for one category ending at the last full month, split "
        "into the top counterparty and everything else, compared with the "
        "3-month and 12-month averages and the same month last year."
    )
    Input = MonthlyTrendsInput

    def execute(self, params: MonthlyTrendsInput, ctx: ToolContext) -> dict[str, Any]:
        months = last_full_months(ctx.now, ctx.config.trend_window_months)
        start, end = months[0], month_end(months[-1])

        transactions = ctx.store.get_transactions(start, end, params.category)
        rate, _ = current_rates(ctx.store, ctx.config)
        result = trends.monthly_trends(
            transactions,
            params.category,
            months,
            ctx.config,
            ctx.rate_lookup(end, rate),
            params.currency,
        )
        if result is None:
            return {
                "trends": None,
                "summary": (
                    f"No {params.category} spending between {start.isoformat()} and {end.isoformat()}."
                ),
            }
        return {"trends": result, "summary": trends.summarize(result)}


class CashRunwayTool(Tool):
    name = "get_cash_runway"
    description = (
        "Months of cash on hand (Cash, Checking, Savings accounts) at the "
        "average net burn of the last 3 full months, per currency."
    )

    def execute(self, params: NoInput, ctx: ToolContext) -> dict[str, Any]:
        months = last_full_months(ctx.now, ctx.config.runway_months)
        period = DateRange(months[0], month_end(months[-1]))

        accounts = ctx.store.get_account_balances()
        net_spend = ctx.store.get_net_burn(
            period.start, period.end, ctx.config.burn_excluded_categories
        )
        result = runway.runway(accounts, net_spend, period, ctx.config.runway_months, ctx.policy)
        return {"runway": result, "summary": runway.summarize(result)}


class RecurringPaymentsTool(Tool):
    name = "detect_recurring_payments"
    description = (
        "Subscriptions and regular bills from the last 12 months: monthly or "
        "yearly series with stable amounts that paid within the last 60 days, "
        "with the next expected payment date."
    )
    Input = RecurringInput

    def execute(self, params: RecurringInput, ctx: ToolContext) -> dict[str, Any]:
        start = shift_months(ctx.now, -ctx.config.recurring_lookback_months)
        transactions = ctx.store.get_transactions(start, ctx.now)
        rate, _ = current_rates(ctx.store, ctx.config)
        payments = recurring.detect_recurring_payments(
            transactions, ctx.now, ctx.policy, ctx.config, params.currency, rate
        )
        result = {
            "currency": params.currency,
            "period": DateRange(start, ctx.now).as_dict(),
            "payments": payments,
            "count": len(payments),
            "monthlyTotal": recurring.monthly_total(payments),
        }
        return {"recurring": result, "summary": recurring.summarize(result)}


class ConvertCurrencyTool(Tool):
    name = "convert_currency"
    description = "Convert an amount between GBP, USD and EUR at the current rate."
    Input = ConvertInput

    def execute(self, params: ConvertInput, ctx: ToolContext) -> dict[str, Any]:
        rate, eur_rate = current_rates(ctx.store, ctx.config)
        converted = convert(params.amount, params.from_currency, params.to_currency, rate, eur_rate)
        return {
            "conversion": {
                "amount": params.amount,
                "from": params.from_currency,
                "to": params.to_currency,
                "converted": round(converted, 2),
                "gbpusdRate": rate,
                "eurusdRate": eur_rate,
            },
            "summary": (
                f"{format_money(params.amount, params.from_currency)} = "
                f"{format_money(converted, params.to_currency)}"
            ),
        }


class BenchmarkTool(Tool):
    name = "lookup_benchmark"
    description = (
        "Look up external comparative figures (e.g. typical household spend) "
        "for context. Returns unavailable when no lookup service is configured."
    )
    Input = BenchmarkInput

    def __init__(self, transport: httpx.AsyncBaseTransport | httpx.BaseTransport | None = None):
        self.transport = transport

    @staticmethod
    def _unavailable(reason: str) -> dict[str, Any]:
        return {
            "benchmarks": None,
            "unavailable": True,
            "summary": f"Benchmark lookup is unavailable: {reason}",
        }

    @staticmethod
    def _parse(query: str, response: httpx.Response) -> dict[str, Any]:
        if response.status_code != 200:
            return BenchmarkTool._unavailable(f"service returned status {response.status_code}")
        try:
            data = response.json()
        except ValueError:
            return BenchmarkTool._unavailable("service returned invalid JSON")

        results = data.get("results", data) if isinstance(data, dict) else data
        count = len(results) if isinstance(results, list) else 1
        return {
            "benchmarks": results,
            "unavailable": False,
            "summary": f"Found {count} benchmark result(s) for '{query}'.",
        }

    def execute(self, params: BenchmarkInput, ctx: ToolContext) -> dict[str, Any]:
        if not ctx.benchmark_url:
            return self._unavailable("no benchmark service is configured.")
        try:
            with httpx.Client(transport=self.transport, timeout=10.0) as client:
                response = client.get(ctx.benchmark_url, params={"q": params.query})
        except httpx.HTTPError as e:
            logger.warning("Benchmark lookup failed: %s", e)
            return self._unavailable(str(e))
        return self._parse(params.query, response)

    async def aexecute(self, params: BenchmarkInput, ctx: ToolContext) -> dict[str, Any]:
        if not ctx.benchmark_url:
            return self._unavailable("no benchmark service is configured.")
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
                response = await client.get(ctx.benchmark_url, params={"q": params.query})
        except httpx.HTTPError as e:
            logger.warning("Benchmark lookup failed: %s", e)
            return self._unavailable(str(e))
        return self._parse(params.query, response)


TOOLS: list[Tool] = [
    FinancialSnapshotTool(),
    SpendingTool(),
    BudgetVsActualTool(),
    FinancialHealthTool(),
    ForecastEvolutionTool(),
    ForecastGapOverTimeTool(),
    NetWorthTrendTool(),
    MonthlyCategoryTrendsTool(),
    CashRunwayTool(),
    RecurringPaymentsTool(),
    ConvertCurrencyTool(),
    BenchmarkTool(),
]

TOOLS_BY_NAME: dict[str, Tool] = {tool.name: tool for tool in TOOLS}
