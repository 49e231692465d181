from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence

from pydantic import ValidationError

from ctrm.schemas.trade_legs import PhysicalTradeLeg, QuantityMap
from ctrm.services.exposure_aggregation import ExposureMap, accumulate, restrict_to_periods
from ctrm.services.month_codes import format_month_code, parse_iso_date, standardize_month_code
from ctrm.services.products import EFP_INSTRUMENT_VARIANTS, Instrument, map_product_to_canonical

logger = logging.getLogger("ctrm.physical_exposure")


@dataclass(frozen=True)
class PhysicalExposureResult:
    physical_exposures: Dict[str, Dict[str, float]]
    pricing_exposures: Dict[str, Dict[str, float]]


def as_physical_leg(leg: Any) -> PhysicalTradeLeg:
    if isinstance(leg, PhysicalTradeLeg):
        return leg
    return PhysicalTradeLeg.model_validate(leg)


def iter_physical_legs(legs: Iterable[Any]) -> Iterator[PhysicalTradeLeg]:
    """Parsed legs; records that cannot be read at all are skipped and logged."""
    for raw in legs:
        try:
            yield as_physical_leg(raw)
        except ValidationError as exc:
            logger.warning("physical_leg_skipped", extra={"errors": exc.error_count()})


def physical_exposure_month(leg: PhysicalTradeLeg) -> Optional[str]:
    if leg.loading_period_start:
        return format_month_code(leg.loading_period_start)
    if leg.trading_period:
        return leg.trading_period
    if leg.pricing_period_start:
        return format_month_code(leg.pricing_period_start)
    return None


def pricing_exposure_month(leg: PhysicalTradeLeg) -> Optional[str]:
    if leg.is_efp and leg.efp_designated_month:
        return leg.efp_designated_month
    if leg.trading_period:
        return leg.trading_period
    if leg.pricing_period_start:
        return format_month_code(leg.pricing_period_start)
    return None


def canonical_pricing_instrument(leg: PhysicalTradeLeg, instrument: str) -> str:
    # EFP legs book all futures exposure on the EFP contract.
    if leg.is_efp and instrument in EFP_INSTRUMENT_VARIANTS:
        return Instrument.ice_gasoil_futures_efp.value
    return map_product_to_canonical(instrument)


def canonical_pricing_exposures(leg: PhysicalTradeLeg) -> QuantityMap:
    out: QuantityMap = {}
    for instrument, qty in leg.pricing_formula.exposures.pricing.items():
        key = canonical_pricing_instrument(leg, instrument)
        out[key] = out.get(key, 0.0) + qty
    return out


def leg_physical_contributions(leg: PhysicalTradeLeg) -> QuantityMap:
    """Physical exposure of one leg, keyed by canonical instrument.

    Falls back to the leg's signed quantity on its own product when the
    formula carries no physical exposure. Futures legs have none.
    """
    canonical_product = map_product_to_canonical(leg.product)
    if canonical_product == Instrument.ice_gasoil_futures.value:
        return {}

    physical = leg.pricing_formula.exposures.physical
    if physical:
        out: QuantityMap = {}
        for instrument, qty in physical.items():
            key = map_product_to_canonical(instrument)
            out[key] = out.get(key, 0.0) + qty
        return out

    if not canonical_product:
        return {}
    return {canonical_product: leg.signed_quantity}


def leg_pricing_contributions(leg: PhysicalTradeLeg) -> Dict[str, Dict[str, float]]:
    """Pricing exposure of one leg by month.

    Daily distribution wins: each day lands in its own month, and instruments
    without a daily breakdown fall back to the pricing month. Otherwise the
    monthly distribution is used, otherwise the whole pricing exposure goes to
    the pricing month.
    """
    formula = leg.pricing_formula
    month = pricing_exposure_month(leg)
    result: Dict[str, Dict[str, float]] = {}

    if formula.daily_distribution:
        covered: set[str] = set()
        for instrument, days in formula.daily_distribution.items():
            key = canonical_pricing_instrument(leg, instrument)
            covered.add(key)
            for day, qty in days.items():
                d = parse_iso_date(day)
                if d is None:
                    logger.warning(
                        "daily_distribution_invalid_date",
                        extra={"leg": leg.leg_reference or leg.id, "day": day},
                    )
                    continue
                result = accumulate(result, format_month_code(d), {key: qty})
        remainder = {
            k: v for k, v in canonical_pricing_exposures(leg).items() if k not in covered and v
        }
        if remainder and month:
            result = accumulate(result, month, remainder)
        return result

    if formula.monthly_distribution:
        for instrument, months in formula.monthly_distribution.items():
            key = canonical_pricing_instrument(leg, instrument)
            for code, qty in months.items():
                if qty:
                    result = accumulate(result, standardize_month_code(code), {key: qty})
        return result

    if month and formula.exposures.pricing:
        result = accumulate(result, month, canonical_pricing_exposures(leg))
    return result


def _log_dropped(source: ExposureMap, periods: Sequence[str], kind: str) -> None:
    allowed = set(periods)
    dropped = sorted(m for m in source if m not in allowed)
    if dropped:
        logger.debug("exposure_months_outside_periods", extra={"kind": kind, "months": dropped})


def calculate_physical_exposure(
    legs: Iterable[Any], periods: Sequence[str]
) -> PhysicalExposureResult:
    """Physical and pricing exposure of physical legs, by month and instrument.

    Contributions for months outside ``periods`` are dropped.
    """
    physical: Dict[str, Dict[str, float]] = {}
    pricing: Dict[str, Dict[str, float]] = {}

    for leg in iter_physical_legs(legs):

        month = physical_exposure_month(leg)
        if month:
            physical = accumulate(physical, month, leg_physical_contributions(leg))

        for pricing_month, values in leg_pricing_contributions(leg).items():
            pricing = accumulate(pricing, pricing_month, values)

    _log_dropped(physical, periods, "physical")
    _log_dropped(pricing, periods, "pricing")
    return PhysicalExposureResult(
        physical_exposures=restrict_to_periods(physical, periods),
        pricing_exposures=restrict_to_periods(pricing, periods),
    )
