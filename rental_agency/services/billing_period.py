from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence, TypeVar


MONTH_NAMES = [calendar.month_name[index] for index in range(1, 13)]

T = TypeVar("T")


@dataclass(frozen=True)
class PeriodDays:
    days: int
    period_start: date
    period_end: date


def calculate_days(from_date: date, to_date: date) -> int:
    # Both endpoints are billable.
    return abs((to_date - from_date).days) + 1


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def period_bounds(
    rental_from: date,
    period_month: Optional[int] = None,
    period_year: Optional[int] = None,
) -> Optional[tuple[date, date]]:
    """Calendar window for a month/year filter; ``None`` when no filter is set.

    A month without a year is resolved against the rental's own start year.
    """
    if not period_month and not period_year:
        return None
    if period_month and period_year:
        return _month_bounds(period_year, period_month)
    if period_year:
        return date(period_year, 1, 1), date(period_year, 12, 31)
    return _month_bounds(rental_from.year, period_month)


def days_in_period(
    rental_from: date,
    rental_to: Optional[date],
    period_month: Optional[int] = None,
    period_year: Optional[int] = None,
    today: Optional[date] = None,
) -> PeriodDays:
    effective_to = rental_to or today or date.today()

    bounds = period_bounds(rental_from, period_month, period_year)
    if bounds is None:
        return PeriodDays(
            days=calculate_days(rental_from, effective_to),
            period_start=rental_from,
            period_end=effective_to,
        )

    period_start, period_end = bounds
    effective_start = max(rental_from, period_start)
    effective_end = min(effective_to, period_end)
    days = (effective_end - effective_start).days + 1 if effective_start <= effective_end else 0
    return PeriodDays(days=days, period_start=effective_start, period_end=effective_end)


def rental_overlaps_period(
    rental_from: date,
    rental_to: Optional[date],
    period_month: Optional[int] = None,
    period_year: Optional[int] = None,
    today: Optional[date] = None,
) -> bool:
    bounds = period_bounds(rental_from, period_month, period_year)
    if bounds is None:
        return True
    period_start, period_end = bounds
    effective_to = rental_to or today or date.today()
    return rental_from <= period_end and effective_to >= period_start


def filter_rentals_for_period(
    rentals: Iterable[T],
    period_month: Optional[int] = None,
    period_year: Optional[int] = None,
    today: Optional[date] = None,
) -> list[T]:
    """Keep rentals (anything with ``FromDate``/``ToDate``) that touch the period."""
    return [
        rental
        for rental in rentals
        if rental_overlaps_period(rental.FromDate, rental.ToDate, period_month, period_year, today)
    ]


def rental_years(rentals: Iterable) -> list[int]:
    return sorted({rental.FromDate.year for rental in rentals}, reverse=True)


def months_with_rentals(rentals: Sequence, year: int, today: Optional[date] = None) -> list[int]:
    months = []
    for month in range(1, 13):
        if any(rental_overlaps_period(r.FromDate, r.ToDate, month, year, today) for r in rentals):
            months.append(month)
    return months


def invoice_period_label(period_month: Optional[int] = None, period_year: Optional[int] = None) -> Optional[str]:
    if not period_month and not period_year:
        return None
    parts = []
    if period_month:
        parts.append(MONTH_NAMES[period_month - 1])
    if period_year:
        parts.append(str(period_year))
    return " ".join(parts)


def period_suffix(period_month: Optional[int] = None, period_year: Optional[int] = None) -> Optional[str]:
    if period_year and period_month:
        return f"{period_year}-{period_month:02d}"
    if period_year:
        return str(period_year)
    if period_month:
        return f"{period_month:02d}"
    return None
