from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence

from ctrm.services.month_codes import DateRange
from ctrm.services.products import split_product_groups

# month code -> instrument -> signed quantity
ExposureMap = Mapping[str, Mapping[str, float]]


def accumulate(
    exposures: ExposureMap, month: str, contributions: Mapping[str, float]
) -> Dict[str, Dict[str, float]]:
    """Return a copy of ``exposures`` with ``contributions`` added into ``month``.

    Values for an instrument already present are summed, never overwritten.
    """
    out = {m: dict(values) for m, values in exposures.items()}
    bucket = out.setdefault(month, {})
    for instrument, qty in contributions.items():
        bucket[instrument] = bucket.get(instrument, 0.0) + float(qty)
    return out


def restrict_to_periods(exposures: ExposureMap, periods: Iterable[str]) -> Dict[str, Dict[str, float]]:
    """Keep only the configured months; every period is present (possibly empty)."""
    return {m: dict(exposures.get(m, {})) for m in periods}


def calculate_net_exposure(physical: float, pricing: float) -> float:
    return physical + pricing


@dataclass(frozen=True)
class ExposureData:
    physical: float = 0.0
    pricing: float = 0.0
    paper: float = 0.0
    net_exposure: float = 0.0

    def add(self, *, physical: float = 0.0, pricing: float = 0.0, paper: float = 0.0) -> "ExposureData":
        p = self.physical + physical
        pr = self.pricing + pricing
        return ExposureData(
            physical=p,
            pricing=pr,
            paper=self.paper + paper,
            net_exposure=calculate_net_exposure(p, pr),
        )

    def __add__(self, other: "ExposureData") -> "ExposureData":
        return self.add(physical=other.physical, pricing=other.pricing, paper=other.paper)


ZERO_EXPOSURE = ExposureData()

# month code -> instrument -> buckets
ExposureGrid = Dict[str, Dict[str, ExposureData]]


@dataclass(frozen=True)
class NormalizedExposureResult:
    products_found: frozenset
    grid: ExposureGrid


@dataclass(frozen=True)
class MonthlyExposure:
    month: str
    products: Mapping[str, ExposureData]
    totals: ExposureData = ZERO_EXPOSURE


def initialize_exposure_grid(periods: Sequence[str], allowed_products: Sequence[str]) -> ExposureGrid:
    return {month: {product: ZERO_EXPOSURE for product in allowed_products} for month in periods}


def merge_exposure_data(
    grid: ExposureGrid,
    physical: Optional[ExposureMap] = None,
    pricing: Optional[ExposureMap] = None,
    paper: Optional[ExposureMap] = None,
    pricing_from_paper: Optional[ExposureMap] = None,
) -> NormalizedExposureResult:
    """Add every source map into a copy of ``grid``.

    Months absent from the grid are skipped. Products absent from a month are
    added as new columns; pre-seeded zero columns are never removed. Pricing
    from paper legs lands in the ``pricing`` bucket.
    """
    merged: ExposureGrid = {month: dict(products) for month, products in grid.items()}
    found: set[str] = set()

    sources = (
        (physical, "physical"),
        (pricing, "pricing"),
        (paper, "paper"),
        (pricing_from_paper, "pricing"),
    )
    for source, bucket in sources:
        for month, values in (source or {}).items():
            row = merged.get(month)
            if row is None:
                continue
            for product, qty in values.items():
                found.add(product)
                current = row.get(product, ZERO_EXPOSURE)
                row[product] = current.add(**{bucket: float(qty)})

    return NormalizedExposureResult(products_found=frozenset(found), grid=merged)


def _sum_exposures(values: Iterable[ExposureData]) -> ExposureData:
    total = ZERO_EXPOSURE
    for v in values:
        total = total + v
    return total


def format_exposure_data(
    grid: ExposureGrid, periods: Sequence[str], allowed_products: Sequence[str]
) -> list[MonthlyExposure]:
    """One row per period, allowed products only, in period order."""
    rows: list[MonthlyExposure] = []
    for month in periods:
        month_data = grid.get(month, {})
        products = {p: month_data.get(p, ZERO_EXPOSURE) for p in allowed_products}
        rows.append(
            MonthlyExposure(
                month=month,
                products=MappingProxyType(products),
                totals=_sum_exposures(products.values()),
            )
        )
    return rows


def calculate_grand_totals(
    rows: Sequence[MonthlyExposure], allowed_products: Sequence[str]
) -> Dict[str, ExposureData]:
    return {
        p: _sum_exposures(row.products.get(p, ZERO_EXPOSURE) for row in rows) for p in allowed_products
    }


def calculate_product_group_total(
    products: Mapping[str, ExposureData], group_products: Iterable[str]
) -> float:
    return sum(products[p].net_exposure for p in group_products if p in products)


@dataclass(frozen=True)
class GroupTotals:
    biodiesel: float = 0.0
    pricing_instruments: float = 0.0
    total: float = 0.0


def calculate_group_totals(
    products: Mapping[str, ExposureData], allowed_products: Sequence[str]
) -> GroupTotals:
    biodiesel, pricing_instruments = split_product_groups(allowed_products)
    bio = calculate_product_group_total(products, biodiesel)
    pricing = calculate_product_group_total(products, pricing_instruments)
    return GroupTotals(biodiesel=bio, pricing_instruments=pricing, total=bio + pricing)


@dataclass(frozen=True)
class ExposureCalculationResult:
    rows: tuple[MonthlyExposure, ...]
    products_found: tuple[str, ...]
    grand_totals: Mapping[str, ExposureData]
    group_totals: GroupTotals
    periods: tuple[str, ...]
    allowed_products: tuple[str, ...]
    date_range: Optional[DateRange] = None
