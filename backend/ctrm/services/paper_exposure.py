from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence

from pydantic import ValidationError

from ctrm.schemas.trade_legs import DistributionMap, PaperTradeLeg, QuantityMap
from ctrm.services.exposure_aggregation import accumulate, restrict_to_periods
from ctrm.services.month_codes import format_month_code, parse_iso_date
from ctrm.services.pricing_formula import build_month_daily_distribution
from ctrm.services.products import Instrument, map_product_to_canonical, parse_paper_instrument

logger = logging.getLogger("ctrm.paper_exposure")


@dataclass(frozen=True)
class PaperExposureResult:
    paper_exposures: Dict[str, Dict[str, float]]
    pricing_from_paper_exposures: Dict[str, Dict[str, float]]


@dataclass(frozen=True)
class LegPaperExposures:
    paper: QuantityMap
    pricing: QuantityMap


def as_paper_leg(leg: Any) -> PaperTradeLeg:
    if isinstance(leg, PaperTradeLeg):
        return leg
    return PaperTradeLeg.model_validate(leg)


def iter_paper_legs(legs: Iterable[Any]) -> Iterator[PaperTradeLeg]:
    """Parsed legs; records that cannot be read at all are skipped and logged."""
    for raw in legs:
        try:
            yield as_paper_leg(raw)
        except ValidationError as exc:
            logger.warning("paper_leg_skipped", extra={"errors": exc.error_count()})


def _canonical(values: QuantityMap) -> QuantityMap:
    out: QuantityMap = {}
    for instrument, qty in values.items():
        key = map_product_to_canonical(instrument)
        out[key] = out.get(key, 0.0) + qty
    return out


def build_paper_exposures(leg: PaperTradeLeg) -> LegPaperExposures:
    """Exposures of a paper leg derived from its product and relationship.

    The leg itself is booked with its signed quantity. DIFF and SPREAD legs also
    book the right side: its stated quantity (already mirror-signed) or, when
    absent, the negated leg quantity. DIFFs without a right-side product are
    quoted against LSGO.
    """
    parsed = parse_paper_instrument(leg.instrument) if leg.instrument else None
    base = map_product_to_canonical(leg.product) if leg.product else ""
    if not base and parsed:
        base = parsed.base_product

    relationship = leg.relationship_type
    if relationship == "FP" and parsed and not leg.right_side:
        relationship = parsed.relationship_type

    signed = leg.signed_quantity
    paper: QuantityMap = {}
    if base:
        paper[base] = signed

    if relationship in ("DIFF", "SPREAD"):
        opposite: Optional[str] = None
        if leg.right_side and leg.right_side.product:
            opposite = map_product_to_canonical(leg.right_side.product)
        elif parsed and parsed.opposite_product:
            opposite = parsed.opposite_product
        elif relationship == "DIFF":
            opposite = Instrument.platts_lsgo.value

        if opposite:
            if leg.right_side and leg.right_side.quantity is not None:
                right_qty = leg.right_side.quantity
            else:
                right_qty = -signed
            paper[opposite] = paper.get(opposite, 0.0) + right_qty

    return LegPaperExposures(paper=paper, pricing=dict(paper))


def effective_paper_exposures(leg: PaperTradeLeg) -> LegPaperExposures:
    """Stored exposures of a paper leg, canonicalized.

    Legs stored before the ``paper`` map existed keep their paper exposure under
    ``physical``; those entries also count as pricing unless the leg states an
    explicit pricing value for the instrument. Legs with no exposures at all
    are derived from the leg itself.
    """
    exposures = leg.exposures
    if exposures.is_empty():
        return build_paper_exposures(leg)

    if exposures.paper:
        return LegPaperExposures(
            paper=_canonical(exposures.paper), pricing=_canonical(exposures.pricing)
        )

    paper = _canonical(exposures.physical)
    pricing = _canonical(exposures.pricing)
    for instrument, qty in exposures.physical.items():
        if exposures.pricing.get(instrument):
            continue
        key = map_product_to_canonical(instrument)
        pricing[key] = pricing.get(key, 0.0) + qty
    return LegPaperExposures(paper=paper, pricing=pricing)


def _sum_daily_in_range(
    exposures: Dict[str, Dict[str, float]],
    distribution: Optional[DistributionMap],
    start: date,
    end: date,
    leg_ref: Any,
) -> Dict[str, Dict[str, float]]:
    for instrument, days in (distribution or {}).items():
        key = map_product_to_canonical(instrument)
        for day, qty in days.items():
            d = parse_iso_date(day)
            if d is None:
                logger.warning("daily_distribution_invalid_date", extra={"leg": leg_ref, "day": day})
                continue
            if start <= d <= end:
                exposures = accumulate(exposures, format_month_code(d), {key: qty})
    return exposures


def calculate_paper_exposure(
    legs: Iterable[Any],
    periods: Sequence[str],
    use_only_daily_distribution: bool = False,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> PaperExposureResult:
    """Paper and pricing-from-paper exposure of paper legs.

    In full mode each leg's exposures land in the month of its period. With
    ``use_only_daily_distribution`` only legs carrying a daily breakdown
    contribute, summing the days inside ``[start_date, end_date]`` into the
    month of each day; legs without one contribute nothing.
    """
    paper: Dict[str, Dict[str, float]] = {}
    pricing: Dict[str, Dict[str, float]] = {}

    if use_only_daily_distribution:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
        if start is None or end is None:
            raise ValueError("daily distribution mode requires start_date and end_date")
        for leg in iter_paper_legs(legs):
            leg_ref = leg.leg_reference or leg.id
            paper = _sum_daily_in_range(paper, leg.exposures.paper_daily, start, end, leg_ref)
            pricing = _sum_daily_in_range(pricing, leg.exposures.pricing_daily, start, end, leg_ref)
    else:
        for leg in iter_paper_legs(legs):
            month = leg.month
            if not month:
                logger.debug("paper_leg_without_period", extra={"leg": leg.leg_reference or leg.id})
                continue
            exposures = effective_paper_exposures(leg)
            paper = accumulate(paper, month, exposures.paper)
            pricing = accumulate(pricing, month, exposures.pricing)

    return PaperExposureResult(
        paper_exposures=restrict_to_periods(paper, periods),
        pricing_from_paper_exposures=restrict_to_periods(pricing, periods),
    )


def build_paper_daily_distribution(leg: PaperTradeLeg) -> PaperTradeLeg:
    """Return ``leg`` with paper/pricing daily distributions over its period.

    Each instrument's exposure is spread evenly over the business days of the
    leg's month. Legs that already carry a paper daily distribution, or have no
    period, are returned unchanged.
    """
    month = leg.month
    if not month or leg.exposures.paper_daily_distribution:
        return leg

    exposures = effective_paper_exposures(leg)

    def _spread(values: QuantityMap) -> Optional[DistributionMap]:
        out: DistributionMap = {}
        for instrument, qty in values.items():
            daily = build_month_daily_distribution(qty, month)
            if daily:
                out[instrument] = daily
        return out or None

    updated = leg.exposures.model_copy(
        update={
            "paper": exposures.paper,
            "pricing": exposures.pricing,
            "paper_daily_distribution": _spread(exposures.paper),
            "pricing_daily_distribution": _spread(exposures.pricing),
        }
    )
    return leg.model_copy(update={"exposures": updated})
