from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ctrm.config import settings
from ctrm.schemas.trade_legs import PaperTradeLeg, PhysicalTradeLeg
from ctrm.services.exposure_aggregation import (
    ExposureCalculationResult,
    ExposureData,
    GroupTotals,
    MonthlyExposure,
)
from ctrm.services.month_codes import DateRange, MonthCode, next_month_codes

ExposureCategory = Literal["Physical", "Pricing", "Paper", "Exposure"]


class DateRangeInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_date: date = Field(..., alias="from")
    to_date: Optional[date] = Field(None, alias="to", description="Defaults to 'from'")

    @model_validator(mode="after")
    def _check_order(self):
        if self.to_date is not None and self.to_date < self.from_date:
            raise ValueError("'to' must not be before 'from'")
        return self

    def to_domain(self) -> DateRange:
        return DateRange.between(self.from_date, self.to_date)


class ExposureCalculateRequest(BaseModel):
    physical_legs: List[PhysicalTradeLeg] = Field(default_factory=list)
    paper_legs: List[PaperTradeLeg] = Field(default_factory=list)
    periods: Optional[List[str]] = Field(
        None, description="Month codes (e.g. 'Mar-24'); defaults to the coming months"
    )
    allowed_products: Optional[List[str]] = Field(
        None, description="Instruments always present in the table"
    )
    date_range: Optional[DateRangeInput] = None

    @field_validator("periods")
    @classmethod
    def _parse_periods(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        out: List[str] = []
        for code in value:
            canonical = str(MonthCode.parse(code))
            if canonical not in out:
                out.append(canonical)
        return out

    def resolved_periods(self) -> List[str]:
        if self.periods:
            return list(self.periods)
        return next_month_codes(settings.default_period_count)

    def resolved_allowed_products(self) -> List[str]:
        if self.allowed_products:
            return list(self.allowed_products)
        return list(settings.default_allowed_products)


class ExposureDataRead(BaseModel):
    physical: float = 0.0
    pricing: float = 0.0
    paper: float = 0.0
    net_exposure: float = 0.0

    @classmethod
    def from_domain(cls, data: ExposureData) -> "ExposureDataRead":
        return cls(
            physical=data.physical,
            pricing=data.pricing,
            paper=data.paper,
            net_exposure=data.net_exposure,
        )


class MonthlyExposureRead(BaseModel):
    month: str
    products: Dict[str, ExposureDataRead]
    totals: ExposureDataRead

    @classmethod
    def from_domain(cls, row: MonthlyExposure) -> "MonthlyExposureRead":
        return cls(
            month=row.month,
            products={p: ExposureDataRead.from_domain(d) for p, d in row.products.items()},
            totals=ExposureDataRead.from_domain(row.totals),
        )


class GroupTotalsRead(BaseModel):
    biodiesel: float
    pricing_instruments: float
    total: float

    @classmethod
    def from_domain(cls, totals: GroupTotals) -> "GroupTotalsRead":
        return cls(
            biodiesel=totals.biodiesel,
            pricing_instruments=totals.pricing_instruments,
            total=totals.total,
        )


class ExposureCalculateResponse(BaseModel):
    periods: List[str]
    allowed_products: List[str]
    products_found: List[str]
    rows: List[MonthlyExposureRead]
    grand_totals: Dict[str, ExposureDataRead]
    group_totals: GroupTotalsRead
    date_range_label: str

    @classmethod
    def from_result(cls, result: ExposureCalculationResult, label: str) -> "ExposureCalculateResponse":
        return cls(
            periods=list(result.periods),
            allowed_products=list(result.allowed_products),
            products_found=list(result.products_found),
            rows=[MonthlyExposureRead.from_domain(r) for r in result.rows],
            grand_totals={
                p: ExposureDataRead.from_domain(d) for p, d in result.grand_totals.items()
            },
            group_totals=GroupTotalsRead.from_domain(result.group_totals),
            date_range_label=label,
        )


class ExposureExportRequest(ExposureCalculateRequest):
    categories: List[ExposureCategory] = Field(
        default_factory=lambda: ["Physical", "Pricing", "Paper", "Exposure"]
    )
    products: Optional[List[str]] = Field(
        None, description="Columns to export; defaults to the allowed products"
    )


class ExposureExportResponse(BaseModel):
    date_range_label: str
    columns: List[str]
    rows: List[Dict[str, Any]]


class ExposurePeriodsResponse(BaseModel):
    periods: List[str]


class PrepareLegsRequest(BaseModel):
    physical_legs: List[PhysicalTradeLeg] = Field(default_factory=list)
    paper_legs: List[PaperTradeLeg] = Field(default_factory=list)


class PrepareLegsResponse(BaseModel):
    physical_legs: List[PhysicalTradeLeg]
    paper_legs: List[PaperTradeLeg]
