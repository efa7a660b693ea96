"""Calendar range resolution anchored to an explicit reference date."""

from datetime import date, timedelta
from typing import NamedTuple


class DateRange(NamedTuple):
    start: date
    end: date

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    """Last day of the calendar month containing ``day``."""
    if day.month == 12:
        return date(day.year + 1, 1, 1) - timedelta(days=1)
    return date(day.year, day.month + 1, 1) - timedelta(days=1)


def add_months(day: date, months: int) -> date:
    """Shift a first-of-month date by a whole number of months."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def last_month(now: date) -> DateRange:
    """First to last day of the calendar month immediately before ``now``'s month."""
    end = month_start(now) - timedelta(days=1)
    return DateRange(end.replace(day=1), end)


def this_month(now: date) -> DateRange:
    return DateRange(month_start(now), now)


def this_year(now: date) -> DateRange:
    return DateRange(date(now.year, 1, 1), now)


def last_full_months(now: date, count: int) -> list[date]:
    """First days of the ``count`` months ending at the last completed month.

    The current (partial) month is never included.
    """
    last = add_months(month_start(now), -1)
    return [add_months(last, offset) for offset in range(-(count - 1), 1)]


def resolve_range(phrase: str, now: date) -> DateRange:
    """Convert a relative phrase to an absolute range.

    Args:
        phrase: "last month", "this month", "this year" (spaces or
            underscores), or "YYYY-MM" for a whole calendar month.
        now: Reference date.

    Returns:
        DateRange with inclusive boundaries.

    Raises:
        ValueError: If the phrase is not recognised.
    """
    normalized = phrase.strip().lower().replace("_", " ")

    if normalized == "last month":
        return last_month(now)
    if normalized == "this month":
        return this_month(now)
    if normalized == "this year":
        return this_year(now)

    try:
        year, month = map(int, normalized.split("-"))
        first = date(year, month, 1)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Unrecognised date range: {phrase!r}") from e
    return DateRange(first, month_end(first))


def resolve_dates(
    start: date | None,
    end: date | None,
    now: date,
    default_start: date | None = None,
) -> DateRange:
    """Apply per-tool defaults to optional explicit boundaries.

    Explicit dates always win. A missing end defaults to ``now``; a missing
    start defaults to ``default_start`` (Jan 1 of now's year when not given).
    """
    resolved_end = end or now
    resolved_start = start or default_start or date(now.year, 1, 1)
    if resolved_start > resolved_end:
        raise ValueError(
            f"startDate {resolved_start.isoformat()} is after endDate {resolved_end.isoformat()}"
        )
    return DateRange(resolved_start, resolved_end)


def date_context(now: date) -> dict[str, str]:
    """Relative ranges for ``now``, for the narrating caller's prompt."""
    context = {"today": now.isoformat(), "current_year": str(now.year)}
    for phrase in ("last_month", "this_month", "this_year"):
        period = resolve_range(phrase, now)
        context[phrase] = f"{period.start.isoformat()} to {period.end.isoformat()}"
    return context


def shift_months(day: date, months: int) -> date:
    """Same day-of-month ``months`` away, clamped to the target month's end."""
    first = add_months(month_start(day), months)
    return first.replace(day=min(day.day, month_end(first).day))
