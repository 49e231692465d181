from ctrm.schemas.demurrage import (
    DemurrageCalculateRequest,
    DemurrageCalculateResponse,
    DemurrageTablesResponse,
    PortTimesInput,
)
from ctrm.schemas.exposure import (
    DateRangeInput,
    ExposureCalculateRequest,
    ExposureCalculateResponse,
    ExposureExportRequest,
    ExposureExportResponse,
    ExposurePeriodsResponse,
    PrepareLegsRequest,
    PrepareLegsResponse,
)
from ctrm.schemas.trade_legs import (
    FormulaExposures,
    PaperExposures,
    PaperTradeLeg,
    PhysicalTradeLeg,
    PricingFormula,
    RightSide,
)

__all__ = [
    "DateRangeInput",
    "DemurrageCalculateRequest",
    "DemurrageCalculateResponse",
    "DemurrageTablesResponse",
    "ExposureCalculateRequest",
    "ExposureCalculateResponse",
    "ExposureExportRequest",
    "ExposureExportResponse",
    "ExposurePeriodsResponse",
    "FormulaExposures",
    "PaperExposures",
    "PaperTradeLeg",
    "PhysicalTradeLeg",
    "PortTimesInput",
    "PrepareLegsRequest",
    "PrepareLegsResponse",
    "PricingFormula",
    "RightSide",
]
