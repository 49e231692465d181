from __future__ import annotations

import logging
from datetime import date, timedelta

from ctrm.services.month_codes import DateLike, MonthCode, parse_iso_date

logger = logging.getLogger("ctrm.working_days")

MAX_DISTRIBUTION_MONTHS = 36


class DistributionRangeError(ValueError):
    """Raised when a distribution range spans more months than allowed."""


def is_business_day(d: date) -> bool:
    # No holiday calendar: weekends only.
    return d.weekday() < 5


def business_days_between(start: DateLike, end: DateLike) -> list[date]:
    s = parse_iso_date(start)
    e = parse_iso_date(end)
    if s is None or e is None or e < s:
        return []
    days: list[date] = []
    d = s
    while d <= e:
        if is_business_day(d):
            days.append(d)
        d += timedelta(days=1)
    return days


def count_business_days(start: DateLike, end: DateLike) -> int:
    """Inclusive business-day count; 0 for invalid or inverted ranges."""
    s = parse_iso_date(start)
    e = parse_iso_date(end)
    if s is None or e is None:
        logger.warning(
            "count_business_days_invalid_date",
            extra={"start": str(start), "end": str(end)},
        )
        return 0
    if e < s:
        logger.warning(
            "count_business_days_inverted_range",
            extra={"start": s.isoformat(), "end": e.isoformat()},
        )
        return 0
    return len(business_days_between(s, e))


def business_days_in_month(month_code: str) -> int:
    mc = MonthCode.parse(month_code)
    return len(business_days_between(mc.first_day, mc.last_day))


def distribute_by_business_days(start: DateLike, end: DateLike, total: float) -> dict[str, float]:
    """Split ``total`` across the months of ``[start, end]`` by business days.

    Each month's weight is its business-day count inside the range. Values are
    rounded to 2 decimals and the rounding residual is added to the largest
    allocation, so the result always sums to ``total``.
    """
    s = parse_iso_date(start)
    e = parse_iso_date(end)
    if s is None or e is None or e < s:
        logger.warning(
            "distribution_invalid_range",
            extra={"start": str(start), "end": str(end)},
        )
        return {}
    if not total:
        return {}

    days_by_month: dict[str, int] = {}
    current = MonthCode.from_date(s)
    last = MonthCode.from_date(e)
    months_seen = 0
    while current <= last:
        months_seen += 1
        if months_seen > MAX_DISTRIBUTION_MONTHS:
            raise DistributionRangeError(
                f"distribution range {s.isoformat()}..{e.isoformat()} exceeds "
                f"{MAX_DISTRIBUTION_MONTHS} months"
            )
        slice_start = max(s, current.first_day)
        slice_end = min(e, current.last_day)
        days = len(business_days_between(slice_start, slice_end))
        if days > 0:
            days_by_month[str(current)] = days
        current = current.next()

    total_days = sum(days_by_month.values())
    if total_days == 0:
        logger.warning(
            "distribution_no_business_days",
            extra={"start": s.isoformat(), "end": e.isoformat()},
        )
        return {}

    distribution = {
        code: round(total * days / total_days, 2) for code, days in days_by_month.items()
    }

    residual = round(total - sum(distribution.values()), 2)
    if residual:
        largest = max(distribution, key=lambda code: abs(distribution[code]))
        distribution[largest] = round(distribution[largest] + residual, 2)

    return distribution
