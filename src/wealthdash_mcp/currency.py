"""Currency conversion between GBP, USD and EUR."""

import bisect
from datetime import date

from .config import EngineConfig
from .models import FXRate, Transaction


SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€"}


def symbol(currency: str) -> str:
    return SYMBOLS.get(currency.upper(), "")


def format_money(amount: float, currency: str) -> str:
    """Format as e.g. '£1,234.56'; negatives as '-£1,234.56'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol(currency)}{abs(amount):,.2f}"


def convert(
    amount: float,
    from_currency: str,
    to_currency: str,
    rate: float,
    eur_rate: float | None = None,
) -> float:
    """Convert amount between currencies.

    Formula: GBP -> USD multiplies by ``rate`` (USD per 1 GBP), USD -> GBP
    divides. EUR goes through USD with ``eur_rate`` (USD per 1 EUR).

    Args:
        amount: Amount in the source currency.
        from_currency: Source currency code.
        to_currency: Target currency code.
        rate: GBPUSD rate, always the caller-supplied one.
        eur_rate: EURUSD rate, only needed when EUR is involved.

    Returns:
        Amount in the target currency.
    """
    source = from_currency.upper()
    target = to_currency.upper()
    if source == target:
        return amount

    per_usd = {"USD": 1.0, "GBP": rate}
    if eur_rate is not None:
        per_usd["EUR"] = eur_rate

    if source not in per_usd or target not in per_usd:
        raise ValueError(f"Unsupported conversion: {source} -> {target}")
    if per_usd[target] == 0:
        raise ValueError(f"Rate for {target} is 0, conversion not possible")

    return amount * per_usd[source] / per_usd[target]


class RateLookup:
    """GBPUSD rate valid at a given date.

    Uses the rate on that date if present, otherwise the most recent earlier
    rate, otherwise the fallback (the current rate).
    """

    def __init__(self, history: list[FXRate], fallback: float):
        rates = {}
        for row in history:
            if row.gbpusd_rate is not None and row.gbpusd_rate > 0:
                rates[row.date] = row.gbpusd_rate
        self._dates = sorted(rates)
        self._rates = rates
        self.fallback = fallback

    def __call__(self, day: date) -> float:
        index = bisect.bisect_right(self._dates, day)
        if index == 0:
            return self.fallback
        return self._rates[self._dates[index - 1]]


def resolve_amounts(tx: Transaction, rate: float) -> tuple[float, float]:
    """Signed (GBP, USD) amounts for a transaction.

    A missing side is derived from the other with ``rate``; when both are
    missing the transaction counts as zero rather than being dropped.
    """
    gbp = tx.amount_gbp
    usd = tx.amount_usd

    if gbp is None and usd is not None:
        gbp = usd / rate if rate else 0.0
    if usd is None and gbp is not None:
        usd = gbp * rate

    return (gbp or 0.0, usd or 0.0)


def pick(amounts: tuple[float, float], currency: str) -> float:
    """Select the GBP or USD side of a resolved pair."""
    return amounts[1] if currency.upper() == "USD" else amounts[0]


def current_rates(store, config: EngineConfig) -> tuple[float, float]:
    """Current (GBPUSD, EURUSD) rates, falling back to configured constants."""
    gbpusd = store.get_current_fx_rate()
    eurusd = store.get_current_eur_rate()
    return (
        gbpusd if gbpusd else config.fallback_gbpusd_rate,
        eurusd if eurusd else config.fallback_eurusd_rate,
    )
