from __future__ import annotations

import logging
from typing import Iterable, Optional

from ctrm.schemas.trade_legs import (
    DistributionMap,
    FormulaExposures,
    FormulaToken,
    PhysicalTradeLeg,
    PricingFormula,
    QuantityMap,
)
from ctrm.services.month_codes import DateLike, InvalidMonthCodeError, month_code_to_date_range
from ctrm.services.products import Instrument, map_product_to_canonical
from ctrm.services.working_days import business_days_between, distribute_by_business_days

logger = logging.getLogger("ctrm.pricing_formula")


def _format_value(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def formula_to_string(tokens: Iterable[FormulaToken]) -> str:
    parts: list[str] = []
    for token in tokens:
        text = _format_value(token.value)
        parts.append(f"{text}%" if token.type == "percentage" else text)
    return " ".join(parts)


def calculate_formula_exposures(
    tokens: Iterable[FormulaToken],
    quantity: float,
    buy_sell: str,
    product: Optional[str] = None,
) -> FormulaExposures:
    """Exposures implied by a trade's formula.

    Physical exposure sits on the traded product with the trade's sign. Every
    instrument referenced by the formula gets the opposite sign as pricing
    exposure; repeated references accumulate.
    """
    direction = 1 if str(buy_sell).lower() == "buy" else -1

    physical: QuantityMap = {}
    if product:
        physical[product] = quantity * direction

    pricing: QuantityMap = {}
    for token in tokens:
        if token.type != "instrument":
            continue
        pricing[token.value] = pricing.get(token.value, 0.0) + quantity * -direction

    return FormulaExposures(physical=physical, pricing=pricing)


def build_daily_distribution(value: float, start: DateLike, end: DateLike) -> dict[str, float]:
    """Spread ``value`` evenly over the business days of ``[start, end]``.

    Keys are ISO dates. Empty when the range holds no business day.
    """
    days = business_days_between(start, end)
    if not days:
        return {}
    per_day = value / len(days)
    return {d.isoformat(): per_day for d in days}


def build_month_daily_distribution(value: float, month_code: str) -> dict[str, float]:
    try:
        first, last = month_code_to_date_range(month_code)
    except InvalidMonthCodeError:
        logger.warning("daily_distribution_invalid_month", extra={"code": month_code})
        return {}
    return build_daily_distribution(value, first, last)


def build_pricing_daily_distribution(
    pricing: QuantityMap, start: DateLike, end: DateLike
) -> DistributionMap:
    out: DistributionMap = {}
    for instrument, value in pricing.items():
        if not value:
            continue
        daily = build_daily_distribution(value, start, end)
        if daily:
            out[instrument] = daily
    return out


def build_monthly_distribution(pricing: QuantityMap, start: DateLike, end: DateLike) -> DistributionMap:
    """Per-instrument business-day-weighted split of pricing exposure by month."""
    out: DistributionMap = {}
    for instrument, value in pricing.items():
        monthly = distribute_by_business_days(start, end, value)
        if monthly:
            out[instrument] = monthly
    return out


def build_efp_formula(
    quantity: float,
    buy_sell: str,
    agreed: bool,
    designated_month: Optional[str],
    formula: Optional[PricingFormula] = None,
) -> PricingFormula:
    """Attach EFP futures exposure to a physical trade's formula.

    Unagreed EFPs carry pricing exposure on the EFP futures instrument with the
    sign opposite to the physical trade, spread over the designated month.
    Agreed EFPs carry none.
    """
    efp = Instrument.ice_gasoil_futures_efp.value
    base = formula or PricingFormula()

    pricing = dict(base.exposures.pricing)
    pricing.pop(Instrument.ice_gasoil_futures.value, None)
    pricing.pop(efp, None)
    daily = dict(base.daily_distribution or {})
    daily.pop(efp, None)

    if not agreed:
        direction = -1 if str(buy_sell).lower() == "buy" else 1
        exposure = quantity * direction
        pricing[efp] = exposure
        if designated_month:
            month_daily = build_month_daily_distribution(exposure, designated_month)
            if month_daily:
                daily[efp] = month_daily

    return base.model_copy(
        update={
            "exposures": base.exposures.model_copy(update={"pricing": pricing}),
            "daily_distribution": daily or None,
        }
    )


def prepare_physical_formula(leg: PhysicalTradeLeg) -> PricingFormula:
    """Derive the stored formula of a physical leg from its tokens and periods.

    Fills in missing exposures from the tokens, attaches EFP futures exposure
    for unagreed EFP legs, and otherwise spreads pricing exposure over the
    pricing period both daily and by month.
    """
    formula = leg.pricing_formula
    exposures = formula.exposures

    if formula.tokens and not exposures.pricing:
        derived = calculate_formula_exposures(
            formula.tokens, leg.quantity, leg.buy_sell, map_product_to_canonical(leg.product)
        )
        exposures = exposures.model_copy(update={"pricing": derived.pricing})
    if not exposures.physical and leg.product:
        exposures = exposures.model_copy(
            update={"physical": {map_product_to_canonical(leg.product): leg.signed_quantity}}
        )
    formula = formula.model_copy(update={"exposures": exposures})

    if leg.is_efp:
        return build_efp_formula(
            leg.quantity,
            leg.buy_sell,
            bool(leg.efp_agreed_status),
            leg.efp_designated_month,
            formula=formula,
        )

    if leg.pricing_period_start and leg.pricing_period_end and exposures.pricing:
        start, end = leg.pricing_period_start, leg.pricing_period_end
        return formula.model_copy(
            update={
                "daily_distribution": build_pricing_daily_distribution(exposures.pricing, start, end)
                or None,
                "monthly_distribution": build_monthly_distribution(exposures.pricing, start, end)
                or None,
            }
        )

    return formula
