from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Collection, Dict, Iterable, Mapping, Optional, Sequence

from ctrm.schemas.trade_legs import PhysicalTradeLeg, QuantityMap
from ctrm.services.exposure_aggregation import (
    ExposureCalculationResult,
    ExposureMap,
    accumulate,
    calculate_grand_totals,
    calculate_group_totals,
    format_exposure_data,
    initialize_exposure_grid,
    merge_exposure_data,
    restrict_to_periods,
)
from ctrm.services.month_codes import (
    DateRange,
    format_month_code,
    parse_iso_date,
    standardize_month_code,
)
from ctrm.services.paper_exposure import calculate_paper_exposure, iter_paper_legs
from ctrm.services.physical_exposure import (
    as_physical_leg,
    calculate_physical_exposure,
    canonical_pricing_exposures,
    canonical_pricing_instrument,
    iter_physical_legs,
    pricing_exposure_month,
)
from ctrm.services.pricing_formula import build_month_daily_distribution
from ctrm.services.products import EFP_INSTRUMENT_VARIANTS, Instrument

logger = logging.getLogger("ctrm.exposure_engine")


# =============================================================================
# Date-range filtering
# =============================================================================


def filter_physical_exposures(physical: ExposureMap, date_range: DateRange) -> Dict[str, Dict[str, float]]:
    """Whole months touched by the range, copied unchanged."""
    return {m: dict(physical[m]) for m in date_range.month_codes if m in physical}


def _sum_days_in_range(
    result: Dict[str, Dict[str, float]],
    instrument: str,
    days: Mapping[str, float],
    date_range: DateRange,
) -> Dict[str, Dict[str, float]]:
    for day, qty in days.items():
        d = parse_iso_date(day)
        if d is None or not date_range.contains(d):
            continue
        result = accumulate(result, format_month_code(d), {instrument: qty})
    return result


def _efp_exposure(leg: PhysicalTradeLeg) -> float:
    return sum(
        qty
        for instrument, qty in leg.pricing_formula.exposures.pricing.items()
        if instrument in EFP_INSTRUMENT_VARIANTS
    )


def _monthly_pricing(leg: PhysicalTradeLeg, remaining: QuantityMap) -> Dict[str, Dict[str, float]]:
    """Unfiltered monthly pricing of ``remaining`` instruments of one leg."""
    result: Dict[str, Dict[str, float]] = {}
    monthly = leg.pricing_formula.monthly_distribution or {}
    spread: set[str] = set()
    for instrument, months in monthly.items():
        key = canonical_pricing_instrument(leg, instrument)
        if key not in remaining:
            continue
        spread.add(key)
        for code, qty in months.items():
            if qty:
                result = accumulate(result, standardize_month_code(code), {key: qty})

    month = pricing_exposure_month(leg)
    rest = {k: v for k, v in remaining.items() if k not in spread}
    if rest and month:
        result = accumulate(result, month, rest)
    return result


def leg_filtered_pricing(
    leg: PhysicalTradeLeg,
    date_range: DateRange,
    range_months: Optional[Collection[str]] = None,
) -> Dict[str, Dict[str, float]]:
    """Pricing exposure of one physical leg restricted to ``date_range``.

    Each instrument uses the finest signal available: its daily distribution,
    a daily spread of EFP exposure over the designated month, the monthly
    pricing of a pricing period overlapping the range (kept for the months
    the range touches), and finally the loading month when it lies inside
    the range. ``range_months`` may be passed in to avoid rebuilding it per leg.
    """
    formula = leg.pricing_formula
    result: Dict[str, Dict[str, float]] = {}
    handled: set[str] = set()

    if formula.daily_distribution:
        for instrument, days in formula.daily_distribution.items():
            key = canonical_pricing_instrument(leg, instrument)
            handled.add(key)
            result = _sum_days_in_range(result, key, days, date_range)
    elif leg.is_efp and leg.efp_designated_month:
        efp_total = _efp_exposure(leg)
        if efp_total:
            key = Instrument.ice_gasoil_futures_efp.value
            handled.add(key)
            days = build_month_daily_distribution(efp_total, leg.efp_designated_month)
            result = _sum_days_in_range(result, key, days, date_range)

    remaining = {
        k: v for k, v in canonical_pricing_exposures(leg).items() if k not in handled and v
    }
    if not remaining:
        return result

    if range_months is None:
        range_months = set(date_range.month_codes)
    start, end = leg.pricing_period_start, leg.pricing_period_end
    if start and end and start <= date_range.end and end >= date_range.start:
        for month, values in _monthly_pricing(leg, remaining).items():
            if month in range_months:
                result = accumulate(result, month, values)
        return result

    if leg.loading_period_start:
        month = format_month_code(leg.loading_period_start)
        if month in range_months:
            result = accumulate(result, month, remaining)
    return result


def filter_pricing_exposures(
    legs: Iterable[Any], periods: Sequence[str], date_range: DateRange
) -> Dict[str, Dict[str, float]]:
    pricing: Dict[str, Dict[str, float]] = {}
    range_months = set(date_range.month_codes)
    for leg in iter_physical_legs(legs):
        for month, values in leg_filtered_pricing(leg, date_range, range_months).items():
            pricing = accumulate(pricing, month, values)
    return restrict_to_periods(pricing, periods)


def filter_paper_exposures(legs: Iterable[Any], periods: Sequence[str], date_range: DateRange):
    return calculate_paper_exposure(
        legs,
        periods,
        use_only_daily_distribution=True,
        start_date=date_range.start,
        end_date=date_range.end,
    )


# =============================================================================
# Entry point
# =============================================================================


def calculate_exposure(
    physical_legs: Iterable[Any],
    paper_legs: Iterable[Any],
    periods: Sequence[str],
    allowed_products: Sequence[str],
    date_range: Optional[DateRange] = None,
) -> ExposureCalculationResult:
    """Dense monthly exposure table for the given legs.

    With a date range every bucket comes from its filtered variant; without
    one every bucket is the full-period figure.
    """
    periods = [standardize_month_code(p) for p in periods]
    physical_legs = list(iter_physical_legs(physical_legs))
    paper_legs = list(iter_paper_legs(paper_legs))

    full = calculate_physical_exposure(physical_legs, periods)

    if date_range is not None:
        physical = filter_physical_exposures(full.physical_exposures, date_range)
        pricing = filter_pricing_exposures(physical_legs, periods, date_range)
        paper = filter_paper_exposures(paper_legs, periods, date_range)
    else:
        physical = full.physical_exposures
        pricing = full.pricing_exposures
        paper = calculate_paper_exposure(paper_legs, periods)

    grid = initialize_exposure_grid(periods, allowed_products)
    merged = merge_exposure_data(
        grid,
        physical=physical,
        pricing=pricing,
        paper=paper.paper_exposures,
        pricing_from_paper=paper.pricing_from_paper_exposures,
    )
    rows = format_exposure_data(merged.grid, periods, allowed_products)
    grand_totals = calculate_grand_totals(rows, allowed_products)

    logger.info(
        "exposure_calculated",
        extra={
            "physical_legs": len(physical_legs),
            "paper_legs": len(paper_legs),
            "periods": len(periods),
            "filtered": date_range is not None,
            "products_found": len(merged.products_found),
        },
    )

    return ExposureCalculationResult(
        rows=tuple(rows),
        products_found=tuple(sorted(merged.products_found)),
        grand_totals=MappingProxyType(grand_totals),
        group_totals=calculate_group_totals(grand_totals, allowed_products),
        periods=tuple(periods),
        allowed_products=tuple(allowed_products),
        date_range=date_range,
    )
