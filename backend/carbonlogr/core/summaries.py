"""Footprint Summaries - Pure functions for aggregating emissions.

All functions are pure: same input always produces same output, no side effects.
"""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from .models import Category, CategoryTotal, FootprintEntry, FootprintSummary, MonthTotal, to_naive_utc, utcnow


MONTHLY_WINDOW_MONTHS = 6


def window_start(now: datetime, months: int = MONTHLY_WINDOW_MONTHS) -> datetime:
    """Start of the trailing window, `months` calendar months before now.

    Day-of-month is clamped, so 31 August minus 6 months is 28/29 February.
    """
    return now - relativedelta(months=months)


def year_month(moment: datetime) -> str:
    """YYYY-MM key for a timestamp."""
    return f"{moment.year:04d}-{moment.month:02d}"


def category_totals(entries: list[FootprintEntry]) -> dict[Category, float]:
    """Sum emissions per category.

    Args:
        entries: Footprint entries in any order

    Returns:
        Mapping in first-seen category order
    """
    totals: dict[Category, float] = {}
    for entry in entries:
        totals[entry.category] = totals.get(entry.category, 0.0) + entry.carbon_emission
    return totals


def total_by_category(entries: list[FootprintEntry]) -> list[CategoryTotal]:
    """Per-category totals sorted by total, largest first.

    The sort is stable, so equal totals keep first-seen order.
    """
    ranked = sorted(category_totals(entries).items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(category=category, total=total) for category, total in ranked]


def total_by_month(entries: list[FootprintEntry], now: datetime) -> list[MonthTotal]:
    """Per-month totals over the trailing window, oldest month first.

    Args:
        entries: Footprint entries in any order
        now: Reference time closing the window

    Returns:
        MonthTotals for months with at least one entry in the window
    """
    start = window_start(now)

    totals: dict[str, float] = {}
    for entry in entries:
        if start <= entry.date <= now:
            key = year_month(entry.date)
            totals[key] = totals.get(key, 0.0) + entry.carbon_emission

    return [MonthTotal(year_month=key, total=totals[key]) for key in sorted(totals)]


def summarize(entries: list[FootprintEntry], now: datetime | None = None) -> FootprintSummary:
    """Aggregate a user's entries into totals.

    The overall total covers every entry regardless of date and is the sum
    of the per-category totals. The monthly breakdown only covers the
    trailing six months.

    Args:
        entries: Footprint entries (may be empty)
        now: Reference time (defaults to current UTC time)

    Returns:
        FootprintSummary; zeroed and empty for no entries
    """
    now = utcnow() if now is None else to_naive_utc(now)

    by_category = total_by_category(entries)
    total = sum(c.total for c in by_category)

    return FootprintSummary(
        total=float(total),
        by_category=by_category,
        by_month=total_by_month(entries, now),
    )
